"""Calendar engine - what a calendar view talks to."""

import calendar
import logging
from datetime import tzinfo
from typing import Awaitable, Callable, Iterable
from zoneinfo import ZoneInfo

from calkit.config import Config
from calkit.core.datekey import DateKey, DisplayMode, normalize, visible_range
from calkit.core.entry import CacheEntry
from calkit.ports.event_source import EventSource

from .cache import ResultCache
from .coalescer import QueryCoalescer
from .fetcher import RangeFetcher

logger = logging.getLogger(__name__)


class CalendarEngine:
    """
    Serves per-date events to a calendar view without blocking it.

    Dates may be given as anything `normalize` accepts. All methods except
    `load` and `aclose` are synchronous and must be called from the event
    loop thread; results arrive through `on_change` listeners.

    Usage:
        async with CalendarEngine(source) as engine:
            engine.on_change(view.redraw_date)
            engine.show(today, DisplayMode.MONTH)
    """

    def __init__(
        self,
        source: EventSource,
        max_entries: int = 512,
        fetch_timeout: float | None = None,
        tz: tzinfo | None = None,
        first_weekday: int = calendar.SUNDAY,
    ):
        self.tz = tz
        self.first_weekday = first_weekday
        self._cache = ResultCache(max_entries)
        self._coalescer = QueryCoalescer(source, self._cache, timeout=fetch_timeout)
        self._fetcher = RangeFetcher(self._cache, self._coalescer)
        self._visible: list[DateKey] = []

    @classmethod
    def from_config(cls, source: EventSource, config: Config) -> "CalendarEngine":
        return cls(
            source,
            max_entries=config.cache_max_entries,
            fetch_timeout=config.fetch_timeout,
            tz=ZoneInfo(config.timezone),
            first_weekday=config.first_weekday,
        )

    async def __aenter__(self) -> "CalendarEngine":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    @property
    def visible_range(self) -> list[DateKey]:
        """The range passed to the last ensure_range call."""
        return list(self._visible)

    def events_for(self, date) -> CacheEntry:
        """Current entry for a date. Never fetches, never waits."""
        return self._cache.get(normalize(date, self.tz))

    def ensure_range(self, dates: Iterable) -> list[Awaitable[CacheEntry]]:
        """
        Make the given dates the visible range and fetch whatever is missing.

        Returns immediately with handles for the fetches it issued. Raises
        InvalidDateError before issuing anything if any date is malformed.
        """
        keys = [normalize(d, self.tz) for d in dates]
        self._visible = keys
        return self._fetcher.ensure(keys)

    def show(self, date, mode: DisplayMode = DisplayMode.MONTH) -> list[Awaitable[CacheEntry]]:
        """Fetch the page a view displays around `date` in the given mode."""
        keys = visible_range(normalize(date, self.tz), mode, self.first_weekday)
        return self.ensure_range(keys)

    def invalidate(self, date=None) -> list[Awaitable[CacheEntry]]:
        """
        Forget one date, or everything when date is None.

        Dates of the visible range that were reset are fetched again; returns
        the handles of those fetches. In-flight calls are not cancelled, their
        results are dropped.
        """
        key = None if date is None else normalize(date, self.tz)
        reset = set(self._cache.invalidate(key))
        refetch = [k for k in self._visible if k in reset]
        if refetch:
            logger.debug(f"Refetching {len(refetch)} visible date(s) after invalidation")
        return self._fetcher.ensure(refetch)

    def on_change(self, listener: Callable[[DateKey], None]) -> Callable[[], None]:
        """
        Call `listener(date_key)` whenever a date settles or a settled date is invalidated.

        Returns a function that unregisters the listener.
        """
        return self._cache.subscribe(listener)

    async def load(self, date) -> CacheEntry:
        """Wait for one date's events, fetching only if needed. Leaves the visible range alone."""
        key = normalize(date, self.tz)
        entry = self._cache.get(key)
        if entry.is_settled:
            return entry
        return await self._coalescer.request(key)

    async def aclose(self) -> None:
        """Cancel outstanding fetches and drop all cached state."""
        await self._coalescer.aclose()
        self._cache.clear()
        self._visible = []
        logger.info("Calendar engine closed")
