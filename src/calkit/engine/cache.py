"""Bounded per-date result cache."""

import logging
from collections import OrderedDict
from typing import Callable

from calkit.core.datekey import DateKey
from calkit.core.entry import EMPTY, CacheEntry

logger = logging.getLogger(__name__)

Listener = Callable[[DateKey], None]


class ResultCache:
    """
    Maps DateKey to CacheEntry, least-recently-accessed first.

    Missing keys read as EMPTY. `put` and `invalidate` are the only write
    paths; a settled result is accepted only over the Pending entry with the
    same ticket, so a late completion cannot overwrite a newer invalidation.
    """

    def __init__(self, max_entries: int = 512):
        if max_entries < 1:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self.max_entries = max_entries
        self._entries: OrderedDict[DateKey, CacheEntry] = OrderedDict()
        self._listeners: list[Listener] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: DateKey) -> bool:
        return key in self._entries

    def keys(self) -> list[DateKey]:
        return list(self._entries)

    def get(self, key: DateKey) -> CacheEntry:
        """Look up a date. Never fetches; counts as an access for eviction."""
        entry = self._entries.get(key)
        if entry is None:
            return EMPTY
        self._entries.move_to_end(key)
        return entry

    def peek(self, key: DateKey) -> CacheEntry:
        """Look up a date without touching its recency."""
        return self._entries.get(key, EMPTY)

    def put(self, key: DateKey, entry: CacheEntry) -> bool:
        """Record a Pending, Ready or Failed entry. Returns False if rejected."""
        current = self._entries.get(key, EMPTY)

        if entry.is_empty:
            raise ValueError("Use invalidate() to reset an entry")
        if entry.is_pending:
            if not current.is_empty:
                logger.debug(f"Rejected pending ticket {entry.ticket} for {key}: entry is {current.state.value}")
                return False
        elif not (current.is_pending and current.ticket == entry.ticket):
            logger.debug(f"Dropped stale {entry.state.value} result for {key} (ticket {entry.ticket})")
            return False

        self._entries[key] = entry
        self._entries.move_to_end(key)
        self._evict(keep=key)

        if entry.is_settled:
            self._notify(key)
        return True

    def invalidate(self, key: DateKey | None = None) -> list[DateKey]:
        """
        Reset one date, or every date, to Empty.

        Listeners are told about each reset date that held a Ready or Failed
        entry. Returns all dates that were reset, pending ones included.
        """
        keys = list(self._entries) if key is None else [k for k in (key,) if k in self._entries]

        reset = []
        changed = []
        for k in keys:
            entry = self._entries.pop(k)
            reset.append(k)
            if entry.is_settled:
                changed.append(k)

        if reset:
            logger.debug(f"Invalidated {len(reset)} date(s)")
        for k in changed:
            self._notify(k)
        return reset

    def clear(self) -> None:
        """Drop everything without notifying listeners."""
        self._entries.clear()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _evict(self, keep: DateKey | None = None) -> None:
        overflow = len(self._entries) - self.max_entries
        if overflow <= 0:
            return

        # Oldest first; in-flight entries and the entry just written stay
        victims = [k for k, e in self._entries.items() if not e.is_pending and k != keep][:overflow]
        for k in victims:
            del self._entries[k]
            logger.debug(f"Evicted {k}")

        if len(self._entries) > self.max_entries:
            logger.debug(f"Cache over bound ({len(self._entries)}/{self.max_entries}) with pending entries")

    def _notify(self, key: DateKey) -> None:
        for listener in list(self._listeners):
            try:
                listener(key)
            except Exception as e:
                logger.warning(f"Change listener failed for {key}: {e}")
