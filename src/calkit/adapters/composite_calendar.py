"""Composite calendar adapter - combines multiple calendar sources."""

import logging
from datetime import date

from calkit.config import Config
from calkit.core.events import Event, sort_events_by_start
from calkit.errors import FetchError

from .google_calendar import GoogleCalendarSource

logger = logging.getLogger(__name__)


class CompositeCalendarAdapter:
    """
    Composite calendar adapter that combines every configured Google account.

    Implements EventSource protocol. A source that fails is skipped with a
    warning as long as another one answers; the day fails only when every
    source fails.
    """

    def __init__(self, config: Config):
        self.config = config
        self._adapters: list = [
            GoogleCalendarSource(
                account,
                client_secret_file=config.google_client_secret_file,
                timezone=config.timezone,
            )
            for account in config.google_accounts
        ]

    @classmethod
    def from_sources(cls, sources: list, config: Config | None = None) -> "CompositeCalendarAdapter":
        """Combine already-built sources instead of configured accounts."""
        composite = cls(config or Config())
        composite._adapters = list(sources)
        return composite

    @property
    def sources(self) -> list:
        return list(self._adapters)

    def fetch_day(self, target_date: date) -> list[Event]:
        """Fetch events for a specific date from every source."""
        events = []
        errors = []

        for adapter in self._adapters:
            try:
                events.extend(adapter.fetch_day(target_date))
            except FetchError as e:
                logger.warning(f"Skipping source for {target_date}: {e}")
                errors.append(e)

        if errors and len(errors) == len(self._adapters):
            raise FetchError(target_date, errors[0], f"All {len(errors)} calendar source(s) failed for {target_date}: {errors[0]}")

        return sort_events_by_start(events)
