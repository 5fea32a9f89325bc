"""Configuration management for calkit."""

import calendar
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from calkit.core.datekey import DisplayMode, parse_weekday

logger = logging.getLogger(__name__)

CALKIT_HOME = Path(os.environ.get("CALKIT_HOME", Path.home() / "calkit"))
CONFIG_FILE = CALKIT_HOME / "config" / "calkit.conf"


@dataclass
class GcalAccount:
    """A Google Calendar account configuration."""

    config_folder: str
    label: str | None = None
    calendars: list[str] = field(default_factory=list)


@dataclass
class Config:
    """calkit configuration."""

    timezone: str = "America/Toronto"
    first_weekday: int = calendar.SUNDAY
    default_view: DisplayMode = DisplayMode.MONTH
    cache_max_entries: int = 512
    fetch_timeout: float | None = None
    # Event sources
    google_accounts: list[GcalAccount] = field(default_factory=list)
    google_client_secret_file: str = ""


def load_config(path: Path | None = None) -> Config:
    """Load configuration from calkit.conf file."""
    config = Config()
    path = path or CONFIG_FILE

    if not path.exists():
        return config

    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        key = key.strip().lower()
        value = _unquote(value.strip())

        try:
            _apply(config, key, value)
        except ValueError as e:
            logger.warning(f"Ignoring invalid {key.upper()} in {path.name}: {e}")

    return config


def _unquote(value: str) -> str:
    # Handle quoted values with inline comments: "value" # comment
    if value.startswith('"') or value.startswith("'"):
        quote = value[0]
        end_quote = value.find(quote, 1)
        return value[1:end_quote] if end_quote != -1 else value[1:]
    # Unquoted: strip inline comments
    if "#" in value:
        value = value.split("#")[0].strip()
    return value


def _apply(config: Config, key: str, value: str) -> None:
    match key:
        case "timezone":
            config.timezone = _check_timezone(value)
        case "first_weekday":
            config.first_weekday = parse_weekday(value)
        case "default_view":
            config.default_view = DisplayMode(value.lower())
        case "cache_max_entries":
            size = int(value)
            if size < 1:
                raise ValueError(f"must be positive, got {size}")
            config.cache_max_entries = size
        case "fetch_timeout":
            config.fetch_timeout = float(value) if value else None
        case "google_accounts":
            config.google_accounts = _parse_accounts(value)
        case "google_client_secret_file":
            config.google_client_secret_file = value


def _parse_accounts(value: str) -> list[GcalAccount]:
    """
    Parse an account list.

    JSON format: [{"config_folder": "...", "label": "...", "calendars": [...]}]
    Simple format: "path1:label1,path2:label2"
    """
    accounts = []
    if value.startswith("["):
        try:
            data = json.loads(value)
            for item in data:
                accounts.append(
                    GcalAccount(
                        config_folder=item["config_folder"],
                        label=item.get("label"),
                        calendars=item.get("calendars", []),
                    )
                )
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise ValueError(f"bad account JSON ({e})") from e
        return accounts

    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        if ":" in entry:
            folder, label = entry.split(":", 1)
            accounts.append(GcalAccount(folder.strip(), label.strip()))
        else:
            accounts.append(GcalAccount(entry))
    return accounts


def _check_timezone(value: str) -> str:
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"unknown time zone {value!r}") from e
    return value
