"""Range fetching."""

from typing import Awaitable, Iterable

from calkit.core.datekey import DateKey
from calkit.core.entry import CacheEntry

from .cache import ResultCache
from .coalescer import QueryCoalescer


class RangeFetcher:
    """Requests the dates of a visible range that nothing covers yet."""

    def __init__(self, cache: ResultCache, coalescer: QueryCoalescer):
        self._cache = cache
        self._coalescer = coalescer

    def ensure(self, keys: Iterable[DateKey]) -> list[Awaitable[CacheEntry]]:
        """
        Issue requests for every Empty date, in the order given.

        Pending, Ready and Failed dates are left alone. Returns the handles of
        the requests issued, without waiting on any of them.
        """
        handles = []
        seen: set[DateKey] = set()
        for key in keys:
            if key in seen:
                continue
            seen.add(key)
            if self._cache.get(key).is_empty:
                handles.append(self._coalescer.request(key))
        return handles
