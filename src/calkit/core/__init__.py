"""Functional core - pure domain values with no I/O."""

from .datekey import (
    DateKey,
    DisplayMode,
    Ordering,
    compare,
    date_span,
    month_grid,
    normalize,
    visible_range,
    week_range,
)
from .entry import EMPTY, CacheEntry, EntryState
from .events import Event, events_on, sort_events_by_start

__all__ = [
    # Dates
    "DateKey",
    "DisplayMode",
    "Ordering",
    "compare",
    "date_span",
    "month_grid",
    "normalize",
    "visible_range",
    "week_range",
    # Cache entries
    "EMPTY",
    "CacheEntry",
    "EntryState",
    # Events
    "Event",
    "events_on",
    "sort_events_by_start",
]
