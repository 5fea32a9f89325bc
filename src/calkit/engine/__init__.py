"""Engine - caching, coalescing and range fetching behind the view contract."""

from .cache import ResultCache
from .coalescer import QueryCoalescer
from .fetcher import RangeFetcher
from .calendar_engine import CalendarEngine

__all__ = [
    "ResultCache",
    "QueryCoalescer",
    "RangeFetcher",
    "CalendarEngine",
]
