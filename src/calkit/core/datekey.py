"""Canonical calendar-day keys and visible-range helpers - no I/O dependencies."""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from enum import Enum

from calkit.errors import InvalidDateError

WEEKDAY_NAMES = {name.lower(): i for i, name in enumerate(calendar.day_name)}


class Ordering(Enum):
    """Result of comparing two DateKeys."""

    BEFORE = -1
    SAME = 0
    AFTER = 1


class DisplayMode(Enum):
    """How many days a calendar page shows."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


@dataclass(frozen=True, order=True)
class DateKey:
    """A calendar day with no time-of-day and no timezone."""

    year: int
    month: int
    day: int

    def __post_init__(self) -> None:
        for value in (self.year, self.month, self.day):
            if not isinstance(value, int) or isinstance(value, bool):
                raise InvalidDateError(f"Not a calendar day: {self.year!r}-{self.month!r}-{self.day!r}")
        try:
            date(self.year, self.month, self.day)
        except ValueError as e:
            raise InvalidDateError(f"Not a calendar day: {self.year}-{self.month}-{self.day} ({e})") from e

    def __str__(self) -> str:
        return self.to_date().isoformat()

    def to_date(self) -> date:
        return date(self.year, self.month, self.day)

    def shift(self, days: int) -> "DateKey":
        """Key for the day N days later (or earlier when negative)."""
        try:
            return DateKey.from_date(self.to_date() + timedelta(days=days))
        except OverflowError as e:
            raise InvalidDateError(f"{self} shifted by {days} days is out of range") from e

    def weekday(self) -> int:
        """Day of week, Monday == 0."""
        return self.to_date().weekday()

    @classmethod
    def from_date(cls, d: date) -> "DateKey":
        return cls(d.year, d.month, d.day)

    @classmethod
    def today(cls, tz: tzinfo | None = None) -> "DateKey":
        return cls.from_date(datetime.now(tz).date())


def normalize(raw, tz: tzinfo | None = None) -> DateKey:
    """
    Turn any date-like input into a DateKey.

    Accepts a DateKey, date, datetime, ISO-8601 string or (year, month, day)
    tuple. Time-of-day is truncated; an aware datetime is converted to `tz`
    first when one is given, otherwise its own wall-clock date is used.

    Raises:
        InvalidDateError: the input does not name a real calendar day.
    """
    if isinstance(raw, DateKey):
        return raw

    # datetime before date: datetime is a date subclass
    if isinstance(raw, datetime):
        if tz is not None and raw.tzinfo is not None:
            raw = raw.astimezone(tz)
        return DateKey(raw.year, raw.month, raw.day)

    if isinstance(raw, date):
        return DateKey.from_date(raw)

    if isinstance(raw, str):
        return normalize(_parse_iso(raw), tz)

    if isinstance(raw, tuple) and len(raw) == 3:
        return DateKey(*raw)

    raise InvalidDateError(f"Cannot read a calendar day from {raw!r}")


def _parse_iso(text: str) -> date:
    text = text.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        if len(text) <= 10:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text)
    except ValueError as e:
        raise InvalidDateError(f"Not an ISO date: {text!r}") from e


def compare(a: DateKey, b: DateKey) -> Ordering:
    """Total chronological ordering of two keys."""
    if a < b:
        return Ordering.BEFORE
    if a > b:
        return Ordering.AFTER
    return Ordering.SAME


def parse_weekday(value: str | int) -> int:
    """Read a weekday as an index (Monday == 0) or an English day name."""
    if isinstance(value, int):
        index = value
    elif value.strip().isdigit():
        index = int(value)
    else:
        try:
            return WEEKDAY_NAMES[value.strip().lower()]
        except KeyError:
            raise ValueError(f"Unknown weekday: {value!r}") from None
    if not 0 <= index <= 6:
        raise ValueError(f"Weekday index out of range: {index}")
    return index


def date_span(start: DateKey, end: DateKey) -> list[DateKey]:
    """All days from start to end inclusive. Empty if end is before start."""
    days = (end.to_date() - start.to_date()).days
    return [start.shift(i) for i in range(days + 1)]


def week_range(day: DateKey, first_weekday: int = calendar.SUNDAY) -> list[DateKey]:
    """The seven days of the week containing `day`."""
    offset = (day.weekday() - first_weekday) % 7
    start = day.shift(-offset)
    return [start.shift(i) for i in range(7)]


def month_grid(year: int, month: int, first_weekday: int = calendar.SUNDAY) -> list[DateKey]:
    """
    Days shown on a month page: full weeks covering the month.

    Leading and trailing days from the neighbouring months are included, in
    chronological order, as a month grid displays them.
    """
    try:
        weeks = calendar.Calendar(first_weekday).monthdatescalendar(year, month)
    except (ValueError, calendar.IllegalMonthError, OverflowError) as e:
        raise InvalidDateError(f"Not a calendar month: {year}-{month}") from e
    return [DateKey.from_date(d) for week in weeks for d in week]


def visible_range(
    day: DateKey,
    mode: DisplayMode = DisplayMode.MONTH,
    first_weekday: int = calendar.SUNDAY,
) -> list[DateKey]:
    """Dates shown by a page in the given display mode around `day`."""
    if mode is DisplayMode.DAY:
        return [day]
    if mode is DisplayMode.WEEK:
        return week_range(day, first_weekday)
    return month_grid(day.year, day.month, first_weekday)
