"""Calendar event records produced by the bundled sources - no I/O dependencies."""

from dataclasses import dataclass
from datetime import datetime

from .datekey import DateKey


@dataclass
class Event:
    """A calendar event."""

    title: str
    start: datetime
    end: datetime | None
    location: str = ""
    calendar: str = ""
    all_day: bool = False
    source: str = ""

    def format_time(self) -> str:
        """Format the event time for display."""
        if self.all_day:
            return "All day"
        return self.start.strftime("%H:%M")

    def duration_minutes(self) -> int | None:
        """Event duration in minutes, or None if no end time."""
        if not self.end:
            return None
        return int((self.end - self.start).total_seconds() / 60)

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat() if self.end else None,
            "location": self.location,
            "calendar": self.calendar,
            "all_day": self.all_day,
            "source": self.source,
        }


def sort_events_by_start(events: list[Event]) -> list[Event]:
    """Sort events by start time, all-day events first on their day."""
    return sorted(events, key=lambda e: (e.start.date(), not e.all_day, e.start.replace(tzinfo=None)))


def events_on(events: list[Event], day: DateKey) -> list[Event]:
    """
    Events that start on the given day.

    Pure function - no I/O.
    """
    return [e for e in events if DateKey.from_date(e.start.date()) == day]
