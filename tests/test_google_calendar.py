"""Tests for the Google Calendar event source."""

import asyncio
from datetime import date, datetime
from unittest.mock import MagicMock, patch
from zoneinfo import ZoneInfo

import pytest

from calkit.adapters.google_calendar import (
    GoogleCalendarSource,
    authorize,
    day_window,
    event_from_item,
    resolve_calendar_ids,
)
from calkit.config import GcalAccount
from calkit.engine.calendar_engine import CalendarEngine
from calkit.errors import CalkitError, FetchError

TORONTO = ZoneInfo("America/Toronto")
JAN15 = date(2025, 1, 15)
JAN16 = date(2025, 1, 16)


def timed(summary: str, start: str, end: str, **extra) -> dict:
    return {"summary": summary, "start": {"dateTime": start}, "end": {"dateTime": end}, **extra}


@pytest.fixture
def service():
    service = MagicMock()
    service.calendarList().list().execute.return_value = {"items": []}
    service.events().list().execute.return_value = {"items": []}
    return service


@pytest.fixture
def source(service):
    """A source whose API service is the mock above."""
    source = GoogleCalendarSource(GcalAccount("/tmp/work", "Work"), timezone="America/Toronto")
    with patch.object(GoogleCalendarSource, "_service", return_value=service):
        yield source


class TestEventFromItem:
    def test_timed_event(self):
        event = event_from_item(
            timed("Standup", "2025-01-15T10:00:00-05:00", "2025-01-15T10:30:00-05:00", location="Room A"),
            TORONTO,
            "Work",
        )

        assert event.title == "Standup"
        assert event.start == datetime(2025, 1, 15, 10, 0, tzinfo=TORONTO)
        assert event.duration_minutes() == 30
        assert event.location == "Room A"
        assert event.calendar == "Work"
        assert event.source == "google_calendar"
        assert event.all_day is False

    def test_utc_suffix(self):
        event = event_from_item(timed("Call", "2025-01-15T15:00:00Z", "2025-01-15T16:00:00Z"), TORONTO, "Work")
        assert event.start.astimezone(TORONTO).hour == 10

    def test_all_day_event_pinned_to_zone(self):
        item = {"summary": "Holiday", "start": {"date": "2025-01-15"}, "end": {"date": "2025-01-16"}}

        event = event_from_item(item, TORONTO, "Personal")

        assert event.all_day is True
        assert event.start == datetime(2025, 1, 15, tzinfo=TORONTO)
        assert event.format_time() == "All day"

    def test_missing_summary(self):
        event = event_from_item({"start": {"date": "2025-01-15"}, "end": {}}, TORONTO, "Work")
        assert event.title == "Untitled"
        assert event.end is None

    def test_skips_cancelled_declined_and_undated(self):
        declined = timed(
            "Declined",
            "2025-01-15T11:00:00-05:00",
            "2025-01-15T11:30:00-05:00",
            attendees=[{"email": "me@example.com", "self": True, "responseStatus": "declined"}],
        )
        cancelled = timed("Moved", "2025-01-15T11:00:00-05:00", "2025-01-15T12:00:00-05:00", status="cancelled")

        assert event_from_item(declined, TORONTO, "Work") is None
        assert event_from_item(cancelled, TORONTO, "Work") is None
        assert event_from_item({"summary": "No start"}, TORONTO, "Work") is None

    def test_keeps_events_declined_by_someone_else(self):
        item = timed(
            "Review",
            "2025-01-15T11:00:00-05:00",
            "2025-01-15T11:30:00-05:00",
            attendees=[
                {"email": "me@example.com", "self": True, "responseStatus": "accepted"},
                {"email": "them@example.com", "responseStatus": "declined"},
            ],
        )
        assert event_from_item(item, TORONTO, "Work").title == "Review"


class TestHelpers:
    def test_day_window_spans_local_day(self):
        start, end = day_window(JAN15, TORONTO)
        assert start.isoformat() == "2025-01-15T00:00:00-05:00"
        assert end.isoformat() == "2025-01-16T00:00:00-05:00"

    def test_day_window_across_dst_change(self):
        start, end = day_window(date(2025, 3, 9), TORONTO)
        assert start.isoformat() == "2025-03-09T00:00:00-05:00"
        assert end.isoformat() == "2025-03-10T00:00:00-04:00"

    def test_resolve_calendar_ids_no_filter_is_primary(self, service):
        assert resolve_calendar_ids(service, [], "Work") == ["primary"]

    def test_resolve_calendar_ids_by_name(self, service):
        service.calendarList().list().execute.return_value = {
            "items": [
                {"summary": "Work", "id": "work@group.calendar.google.com"},
                {"summary": "Personal", "id": "personal@gmail.com"},
            ]
        }
        ids = resolve_calendar_ids(service, ["Work", "Gone"], "Work")
        assert ids == ["work@group.calendar.google.com"]

    def test_resolve_calendar_ids_falls_back_to_primary(self, service):
        assert resolve_calendar_ids(service, ["Gone"], "Work") == ["primary"]


class TestGoogleCalendarSource:
    def test_label_from_config_folder(self):
        source = GoogleCalendarSource(GcalAccount("/home/user/.config/work"))
        assert source.label == "work"
        assert source.token_path.name == "token.json"

    def test_fetch_day_queries_local_day(self, source, service):
        service.events().list().execute.return_value = {
            "items": [timed("Standup", "2025-01-15T10:00:00-05:00", "2025-01-15T10:30:00-05:00")]
        }

        events = source.fetch_day(JAN15)

        assert [e.title for e in events] == ["Standup"]
        kwargs = service.events().list.call_args.kwargs
        assert kwargs["calendarId"] == "primary"
        assert kwargs["timeMin"] == "2025-01-15T00:00:00-05:00"
        assert kwargs["timeMax"] == "2025-01-16T00:00:00-05:00"
        assert kwargs["singleEvents"] is True

    def test_fetch_day_follows_pages(self, source, service):
        service.events().list().execute.side_effect = [
            {"items": [timed("First", "2025-01-15T09:00:00-05:00", "2025-01-15T10:00:00-05:00")], "nextPageToken": "p2"},
            {"items": [timed("Second", "2025-01-15T11:00:00-05:00", "2025-01-15T12:00:00-05:00")]},
        ]

        events = source.fetch_day(JAN15)

        assert [e.title for e in events] == ["First", "Second"]
        assert service.events().list.call_args.kwargs["pageToken"] == "p2"

    def test_calendar_ids_resolved_once(self, service):
        service.calendarList().list().execute.return_value = {
            "items": [{"summary": "Work", "id": "work-id"}, {"summary": "Team", "id": "team-id"}]
        }
        source = GoogleCalendarSource(GcalAccount("/tmp/work", "Work", ["Work", "Team"]))

        with patch.object(GoogleCalendarSource, "_service", return_value=service):
            source.fetch_day(JAN15)
            source.fetch_day(JAN16)

        assert service.calendarList().list().execute.call_count == 1
        calendar_ids = [c.kwargs["calendarId"] for c in service.events().list.call_args_list if c.kwargs]
        assert calendar_ids == ["work-id", "team-id", "work-id", "team-id"]

    def test_empty_day_is_empty_list(self, source):
        assert source.fetch_day(JAN15) == []

    def test_api_error_raises_fetch_error(self, source, service):
        service.events().list().execute.side_effect = OSError("connection reset")

        with pytest.raises(FetchError, match="connection reset") as exc_info:
            source.fetch_day(JAN15)

        assert exc_info.value.date == JAN15
        assert isinstance(exc_info.value.cause, OSError)

    def test_missing_token_raises_fetch_error(self, tmp_path):
        source = GoogleCalendarSource(GcalAccount(str(tmp_path), "Work"))

        with pytest.raises(FetchError, match="cal-auth"):
            source.fetch_day(JAN15)


class TestThroughEngine:
    def test_empty_and_failed_days_stay_distinct(self, source, service):
        def list_events(**kwargs):
            request = MagicMock()
            if kwargs["timeMin"].startswith("2025-01-16"):
                request.execute.side_effect = OSError("quota exceeded")
            else:
                request.execute.return_value = {"items": []}
            return request

        service.events().list.side_effect = list_events

        async def scenario():
            async with CalendarEngine(source, tz=TORONTO) as engine:
                await asyncio.gather(*engine.ensure_range([JAN15, JAN16]))
                return engine.events_for(JAN15), engine.events_for(JAN16)

        empty, failed = asyncio.run(scenario())

        assert empty.is_ready
        assert empty.events == []
        assert failed.is_failed
        assert "quota exceeded" in str(failed.error)


class TestAuthorize:
    def test_requires_client_secret(self):
        with pytest.raises(CalkitError, match="No client secret"):
            authorize(GcalAccount("/tmp/work"), "")

    def test_missing_client_secret_file(self, tmp_path):
        with pytest.raises(CalkitError, match="not found"):
            authorize(GcalAccount(str(tmp_path)), str(tmp_path / "missing.json"))

    @patch("google_auth_oauthlib.flow.InstalledAppFlow.from_client_secrets_file")
    def test_saves_token(self, mock_flow, tmp_path):
        secret = tmp_path / "client_secret.json"
        secret.write_text("{}")
        mock_flow.return_value.run_local_server.return_value.to_json.return_value = '{"token": "t"}'

        token_path = authorize(GcalAccount(str(tmp_path / "work")), str(secret))

        assert token_path == tmp_path / "work" / "token.json"
        assert token_path.read_text() == '{"token": "t"}'
        assert oct(token_path.stat().st_mode & 0o777) == "0o600"
