"""Adapters - I/O implementations of ports."""

from .google_calendar import GoogleCalendarSource
from .composite_calendar import CompositeCalendarAdapter
from .memory import InMemoryEventSource

__all__ = [
    "GoogleCalendarSource",
    "CompositeCalendarAdapter",
    "InMemoryEventSource",
]
