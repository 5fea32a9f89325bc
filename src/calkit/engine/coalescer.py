"""Coalesces concurrent fetches for the same date into one source call."""

import asyncio
import inspect
import itertools
import logging
from dataclasses import dataclass
from typing import Awaitable

from calkit.core.datekey import DateKey
from calkit.core.entry import CacheEntry
from calkit.errors import FetchError
from calkit.ports.event_source import EventSource

from .cache import ResultCache

logger = logging.getLogger(__name__)


@dataclass
class _Flight:
    ticket: int
    task: asyncio.Task | None = None
    # The source call itself; it can outlive `task` when a timeout abandons it
    call: asyncio.Future | None = None

    def busy(self) -> list:
        return [f for f in (self.task, self.call) if f is not None and not f.done()]


class QueryCoalescer:
    """
    Issues source fetches, at most one in flight per date.

    Each issued fetch gets a ticket; the cache entry goes Empty -> Pending
    with that ticket when the fetch is issued and settles only if the ticket
    is still current when the source answers. A date stays in flight until
    its source call really returns, even after a timeout has already
    recorded the fetch as failed.
    """

    def __init__(self, source: EventSource, cache: ResultCache, timeout: float | None = None):
        self._source = source
        self._cache = cache
        self.timeout = timeout
        self._tickets = itertools.count(1)
        self._flights: dict[DateKey, _Flight] = {}

    def in_flight(self, key: DateKey) -> bool:
        """True while a source call for this date has not finished."""
        return key in self._flights

    def request(self, key: DateKey) -> Awaitable[CacheEntry]:
        """
        Request events for a date.

        Must be called from the event loop thread. Returns a handle that
        resolves to the settled CacheEntry of the fetch. A request for a date
        whose current fetch is still in flight shares that fetch; a request
        for an already settled date resolves immediately to the cached entry.
        """
        loop = asyncio.get_running_loop()
        previous = self._flights.get(key)
        entry = self._cache.peek(key)

        if entry.is_pending and previous is not None and entry.ticket == previous.ticket:
            logger.debug(f"Coalesced request for {key} into ticket {previous.ticket}")
            return asyncio.shield(previous.task)

        if entry.is_settled:
            done = loop.create_future()
            done.set_result(entry)
            return done

        flight = _Flight(next(self._tickets))
        self._cache.put(key, CacheEntry.pending(flight.ticket))
        # A stale call for this date may still be running; the new one queues behind it
        flight.task = loop.create_task(self._run(key, flight, previous), name=f"calkit-fetch-{key}")
        self._flights[key] = flight
        logger.debug(f"Issued fetch for {key} (ticket {flight.ticket})")
        return asyncio.shield(flight.task)

    async def aclose(self) -> None:
        """Cancel every outstanding fetch and wait for them to unwind."""
        pending = [f for flight in self._flights.values() for f in flight.busy()]
        for fut in pending:
            fut.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._flights.clear()

    async def _run(self, key: DateKey, flight: _Flight, previous: _Flight | None) -> CacheEntry:
        ticket = flight.ticket
        try:
            while previous is not None and previous.busy():
                logger.debug(f"Ticket {ticket} for {key} waiting on a superseded fetch")
                await asyncio.wait(previous.busy())
            events = await self._fetch(key, flight)
        except asyncio.CancelledError:
            raise
        except FetchError as e:
            logger.warning(f"Event source failed for {key}: {e}")
            outcome = CacheEntry.failed(e, ticket)
        except Exception as e:
            logger.warning(f"Event source failed for {key}: {e}")
            outcome = CacheEntry.failed(FetchError(key, e), ticket)
        else:
            outcome = CacheEntry.ready(events if events is not None else [], ticket)
        finally:
            if flight.call is None or flight.call.done():
                self._release(key, flight)
            else:
                flight.call.add_done_callback(lambda call: self._abandoned_call_done(key, flight, call))

        if not self._cache.put(key, outcome):
            logger.debug(f"Discarded result for {key} (ticket {ticket}): date was invalidated")
        return outcome

    async def _fetch(self, key: DateKey, flight: _Flight):
        flight.call = asyncio.ensure_future(self._call_source(key))
        if self.timeout is None:
            return await flight.call
        try:
            return await asyncio.wait_for(asyncio.shield(flight.call), self.timeout)
        except asyncio.TimeoutError as e:
            raise FetchError(key, e, f"Timed out after {self.timeout}s fetching events for {key}") from e

    async def _call_source(self, key: DateKey):
        fetch = self._source.fetch_day
        if inspect.iscoroutinefunction(fetch):
            return await fetch(key.to_date())
        # Blocking sources run off the loop
        result = await asyncio.to_thread(fetch, key.to_date())
        if inspect.isawaitable(result):
            result = await result
        return result

    def _abandoned_call_done(self, key: DateKey, flight: _Flight, call: asyncio.Future) -> None:
        if not call.cancelled() and call.exception() is not None:
            logger.debug(f"Abandoned fetch for {key} (ticket {flight.ticket}) failed: {call.exception()}")
        else:
            logger.debug(f"Abandoned fetch for {key} (ticket {flight.ticket}) returned")
        self._release(key, flight)

    def _release(self, key: DateKey, flight: _Flight) -> None:
        if self._flights.get(key) is flight:
            del self._flights[key]
