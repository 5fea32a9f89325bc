"""Event source interface."""

from datetime import date
from typing import Awaitable, Protocol


class EventSource(Protocol):
    """Interface for fetching one day's events from any backend.

    May be a plain method or a coroutine; may be slow; may raise. Raising
    means "could not load", returning [] means "no events".
    """

    def fetch_day(self, target_date: date) -> list | Awaitable[list]:
        """Fetch events for a specific date."""
        ...
