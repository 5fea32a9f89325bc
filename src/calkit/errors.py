"""Exceptions raised by calkit."""


class CalkitError(Exception):
    """Base class for calkit errors."""


class InvalidDateError(CalkitError, ValueError):
    """Raised when an input cannot be read as a real calendar day."""


class FetchError(CalkitError):
    """An event source failed to return events for a date.

    Stored in a Failed cache entry rather than raised out of the engine.
    """

    def __init__(self, date, cause: BaseException | None = None, message: str | None = None):
        self.date = date
        self.cause = cause
        if message is None:
            message = f"Failed to fetch events for {date}"
            if cause is not None:
                message = f"{message}: {cause}"
        super().__init__(message)
