"""Google Calendar API event source."""

import logging
import threading
from datetime import date, datetime, time, timedelta, tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo

from calkit.config import GcalAccount
from calkit.core.events import Event
from calkit.errors import CalkitError, FetchError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar.readonly"]
TOKEN_FILE = "token.json"


class GoogleCalendarSource:
    """
    One Google account served one date at a time. Implements EventSource protocol.

    Credentials and the calendar ids named by the account are loaded on the
    first fetch and shared afterwards. The API client is not thread-safe, so
    every worker thread the engine runs fetches on builds its own service.
    """

    def __init__(
        self,
        account: GcalAccount,
        client_secret_file: str = "",
        timezone: str = "America/Toronto",
    ):
        self.account = account
        self.label = account.label or Path(account.config_folder).name
        self.client_secret_file = client_secret_file
        self.tz = ZoneInfo(timezone)
        self.token_path = Path(account.config_folder).expanduser() / TOKEN_FILE
        self._lock = threading.Lock()
        self._local = threading.local()
        self._creds = None
        self._calendar_ids: list[str] | None = None

    def fetch_day(self, target_date: date) -> list[Event]:
        """Events on target_date across the account's calendars. Raises FetchError."""
        try:
            service = self._service(target_date)
            time_min, time_max = day_window(target_date, self.tz)
            events = []
            for calendar_id in self._calendars(service):
                for item in self._list_items(service, calendar_id, time_min, time_max):
                    event = event_from_item(item, self.tz, self.label)
                    if event is not None:
                        events.append(event)
        except FetchError:
            raise
        except Exception as e:
            raise FetchError(target_date, e, f"Google Calendar API error for {self.label}: {e}") from e

        logger.debug(f"{self.label}: {len(events)} event(s) on {target_date}")
        return events

    def _credentials(self, target_date: date):
        from google.auth.transport.requests import Request
        from google.oauth2.credentials import Credentials

        with self._lock:
            if self._creds is None:
                if not self.token_path.exists():
                    raise FetchError(target_date, message=f"No {TOKEN_FILE} for {self.label}, run 'calkit cal-auth'")
                self._creds = Credentials.from_authorized_user_file(str(self.token_path), SCOPES)

            if not self._creds.valid:
                if not self._creds.refresh_token:
                    raise FetchError(target_date, message=f"Credentials for {self.label} expired, run 'calkit cal-auth'")
                self._creds.refresh(Request())
                save_token(self.token_path, self._creds)
                logger.info(f"Refreshed token for {self.label}")
            return self._creds

    def _service(self, target_date: date):
        from googleapiclient.discovery import build

        creds = self._credentials(target_date)
        service = getattr(self._local, "service", None)
        if service is None:
            service = build("calendar", "v3", credentials=creds, cache_discovery=False)
            self._local.service = service
        return service

    def _calendars(self, service) -> list[str]:
        with self._lock:
            if self._calendar_ids is None:
                self._calendar_ids = resolve_calendar_ids(service, self.account.calendars, self.label)
            return self._calendar_ids

    def _list_items(self, service, calendar_id: str, time_min: datetime, time_max: datetime):
        page_token = None
        while True:
            result = (
                service.events()
                .list(
                    calendarId=calendar_id,
                    timeMin=time_min.isoformat(),
                    timeMax=time_max.isoformat(),
                    singleEvents=True,
                    orderBy="startTime",
                    pageToken=page_token,
                )
                .execute()
            )
            yield from result.get("items", [])
            page_token = result.get("nextPageToken")
            if not page_token:
                return


def day_window(target_date: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """Local midnight to the next local midnight."""
    start = datetime.combine(target_date, time.min, tzinfo=tz)
    end = datetime.combine(target_date + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


def resolve_calendar_ids(service, names: list[str], label: str) -> list[str]:
    """Map calendar display names to ids; the primary calendar when none match."""
    if not names:
        return ["primary"]

    items = service.calendarList().list().execute().get("items", [])
    by_name = {entry["summary"]: entry["id"] for entry in items}

    missing = [name for name in names if name not in by_name]
    if missing:
        logger.warning(f"Calendar(s) not found for {label}: {', '.join(missing)}")
    return [by_name[name] for name in names if name in by_name] or ["primary"]


def event_from_item(item: dict, tz: tzinfo, label: str) -> Event | None:
    """Convert one API event item. None for cancelled, declined or undated items."""
    if item.get("status") == "cancelled" or _declined(item):
        return None

    start, end = item.get("start", {}), item.get("end", {})
    if "dateTime" in start:
        begins = _parse_datetime(start["dateTime"])
        ends = _parse_datetime(end["dateTime"]) if "dateTime" in end else None
        all_day = False
    elif "date" in start:
        # All-day dates carry no zone; pin them to the account's so they sort with timed events
        begins = datetime.combine(date.fromisoformat(start["date"]), time.min, tzinfo=tz)
        ends = datetime.combine(date.fromisoformat(end["date"]), time.min, tzinfo=tz) if "date" in end else None
        all_day = True
    else:
        return None

    return Event(
        title=item.get("summary", "Untitled"),
        start=begins,
        end=ends,
        location=item.get("location", ""),
        calendar=label,
        all_day=all_day,
        source="google_calendar",
    )


def authorize(account: GcalAccount, client_secret_file: str) -> Path:
    """Run the installed-app OAuth flow for an account. Returns where the token was saved."""
    from google_auth_oauthlib.flow import InstalledAppFlow

    if not client_secret_file:
        raise CalkitError("No client secret file configured")
    secret_path = Path(client_secret_file).expanduser()
    if not secret_path.exists():
        raise CalkitError(f"Client secret file not found: {secret_path}")

    flow = InstalledAppFlow.from_client_secrets_file(str(secret_path), SCOPES)
    creds = flow.run_local_server(port=0)

    token_path = Path(account.config_folder).expanduser() / TOKEN_FILE
    save_token(token_path, creds)
    return token_path


def save_token(path: Path, creds) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(creds.to_json())
    path.chmod(0o600)


def _parse_datetime(value: str) -> datetime:
    # fromisoformat only accepts a trailing Z from 3.11 on
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def _declined(item: dict) -> bool:
    for attendee in item.get("attendees", []):
        if attendee.get("self") and attendee.get("responseStatus") == "declined":
            return True
    return False
