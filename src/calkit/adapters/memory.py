"""In-memory event source."""

from datetime import date

from calkit.core.datekey import DateKey
from calkit.core.events import Event, events_on


class InMemoryEventSource:
    """
    Serves events from a list held in memory.

    Implements EventSource protocol. Useful for views backed by data the
    application already has, and for tests.
    """

    def __init__(self, events: list[Event] | None = None):
        self._events: list[Event] = list(events or [])

    def add(self, event: Event) -> None:
        self._events.append(event)

    def remove(self, event: Event) -> None:
        self._events.remove(event)

    def fetch_day(self, target_date: date) -> list[Event]:
        """Fetch events for a specific date."""
        return events_on(self._events, DateKey.from_date(target_date))
