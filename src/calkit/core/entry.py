"""Per-date cache entry states - no I/O dependencies."""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from calkit.errors import FetchError


class EntryState(Enum):
    """Lifecycle of one date's events in the cache."""

    EMPTY = "empty"  # Never requested, invalidated or evicted
    PENDING = "pending"  # Fetch in flight
    READY = "ready"  # Events loaded
    FAILED = "failed"  # Source failed, kept until invalidated


@dataclass(frozen=True)
class CacheEntry:
    """
    Snapshot of what the engine knows about one date.

    `ticket` identifies the fetch an entry belongs to: a Pending entry waits
    for that fetch, a Ready/Failed entry was produced by it.
    """

    state: EntryState
    events: Sequence = ()
    error: FetchError | None = None
    ticket: int = 0

    @classmethod
    def pending(cls, ticket: int) -> "CacheEntry":
        return cls(EntryState.PENDING, ticket=ticket)

    @classmethod
    def ready(cls, events, ticket: int = 0) -> "CacheEntry":
        return cls(EntryState.READY, events=events, ticket=ticket)

    @classmethod
    def failed(cls, error: FetchError, ticket: int = 0) -> "CacheEntry":
        return cls(EntryState.FAILED, error=error, ticket=ticket)

    @property
    def is_empty(self) -> bool:
        return self.state is EntryState.EMPTY

    @property
    def is_pending(self) -> bool:
        return self.state is EntryState.PENDING

    @property
    def is_ready(self) -> bool:
        return self.state is EntryState.READY

    @property
    def is_failed(self) -> bool:
        return self.state is EntryState.FAILED

    @property
    def is_settled(self) -> bool:
        """Ready or Failed."""
        return self.state in (EntryState.READY, EntryState.FAILED)


EMPTY = CacheEntry(EntryState.EMPTY)
