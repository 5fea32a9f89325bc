"""calkit CLI - print calendar pages through the engine."""

import asyncio
import json
import logging
import sys
from zoneinfo import ZoneInfo

import click

from .adapters.composite_calendar import CompositeCalendarAdapter
from .adapters.google_calendar import authorize
from .config import Config, load_config
from .core.datekey import DateKey, DisplayMode, normalize
from .core.entry import CacheEntry
from .core.events import sort_events_by_start
from .engine.calendar_engine import CalendarEngine
from .errors import CalkitError, InvalidDateError

EMPTY_MESSAGES = {
    DisplayMode.DAY: "No events.",
    DisplayMode.WEEK: "No events this week.",
    DisplayMode.MONTH: "No events this month.",
}


@click.group()
@click.version_option()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool):
    """calkit - calendar events by day, week or month."""
    if debug:
        logging.basicConfig(
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            level=logging.DEBUG,
        )


async def load_page(source, config: Config, day: DateKey, mode: DisplayMode) -> list[tuple[DateKey, CacheEntry]]:
    """Fetch one calendar page and return each visible date with its settled entry."""
    async with CalendarEngine.from_config(source, config) as engine:
        await asyncio.gather(*engine.show(day, mode))
        return [(key, engine.events_for(key)) for key in engine.visible_range]


def _show_page(page: list[tuple[DateKey, CacheEntry]], as_json: bool, empty_msg: str) -> None:
    if as_json:
        click.echo(
            json.dumps(
                [
                    {
                        "date": str(key),
                        "state": entry.state.value,
                        "events": [e.to_dict() for e in entry.events],
                        "error": str(entry.error) if entry.error else None,
                    }
                    for key, entry in page
                ],
                indent=2,
            )
        )
        return

    shown = False
    for key, entry in page:
        if not entry.events and not entry.is_failed:
            continue
        if shown:
            click.echo()
        click.echo(f"### {key.to_date().strftime('%A, %B %d')}")
        shown = True

        if entry.is_failed:
            click.echo(f"  (could not load: {entry.error})")
            continue
        for event in sort_events_by_start(list(entry.events)):
            loc = f" @ {event.location}" if event.location else ""
            click.echo(f"  {event.format_time():8} {event.title}{loc}")

    if not shown:
        click.echo(empty_msg)


def _run_page(target_date: str | None, mode: DisplayMode | None, as_json: bool) -> None:
    config = load_config()
    mode = mode or config.default_view
    try:
        day = normalize(target_date) if target_date else DateKey.today(ZoneInfo(config.timezone))
    except InvalidDateError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    source = CompositeCalendarAdapter(config)
    if not source.sources:
        click.echo("No calendar accounts configured in calkit.conf", err=True)
        sys.exit(1)

    page = asyncio.run(load_page(source, config, day, mode))
    _show_page(page, as_json, EMPTY_MESSAGES[mode])


@main.command()
@click.option("--date", "-d", "target_date", default=None, help="Date to show (YYYY-MM-DD), defaults to today")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def day(target_date: str | None, as_json: bool):
    """Show one day's events."""
    _run_page(target_date, DisplayMode.DAY, as_json)


@main.command()
@click.option("--date", "-d", "target_date", default=None, help="Any date in the week (YYYY-MM-DD)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def week(target_date: str | None, as_json: bool):
    """Show the week containing a date."""
    _run_page(target_date, DisplayMode.WEEK, as_json)


@main.command()
@click.option("--date", "-d", "target_date", default=None, help="Any date in the month (YYYY-MM-DD)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def month(target_date: str | None, as_json: bool):
    """Show the month page containing a date."""
    _run_page(target_date, DisplayMode.MONTH, as_json)


@main.command()
@click.option("--date", "-d", "target_date", default=None, help="Date to show (YYYY-MM-DD), defaults to today")
@click.option("--view", type=click.Choice([m.value for m in DisplayMode]), default=None, help="Page to show (default: DEFAULT_VIEW)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def show(target_date: str | None, view: str | None, as_json: bool):
    """Show the page a calendar view opens on."""
    _run_page(target_date, DisplayMode(view) if view else None, as_json)


@main.command("cal-auth")
@click.option("--account", default=None, help="Label of account to authenticate (default: all)")
def cal_auth(account: str | None):
    """Authenticate with Google Calendar."""
    config = load_config()

    if not config.google_accounts:
        click.echo("No Google accounts configured in calkit.conf", err=True)
        sys.exit(1)

    for acct in config.google_accounts:
        label = acct.label or acct.config_folder
        if account and acct.label != account:
            continue

        click.echo(f"\nAuthenticating: {label}")
        try:
            token_path = authorize(acct, config.google_client_secret_file)
        except CalkitError as e:
            click.echo(f"  ✗ {e}", err=True)
            sys.exit(1)
        click.echo(f"  ✓ Token saved to {token_path}")


if __name__ == "__main__":
    main()
