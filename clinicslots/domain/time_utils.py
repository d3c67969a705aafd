"""
Time-of-day and calendar arithmetic shared by the availability engine.

Times of day are handled as integer minute offsets from midnight; the
``HH:MM`` string form only exists at the edges.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Iterator, Union

import pendulum

from .exceptions import InvalidDateFormat, InvalidRange, InvalidTimeFormat

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

MINUTES_PER_DAY = 24 * 60

DateLike = Union[date, str]


def parse_time(value: str) -> int:
    """Parse an ``HH:MM`` string into minutes since midnight."""
    if not isinstance(value, str):
        raise InvalidTimeFormat(f"Time must be a string in HH:MM format, got {value!r}")

    match = TIME_PATTERN.match(value)
    if match is None:
        raise InvalidTimeFormat(f"Invalid time format: {value!r} (expected HH:MM)")

    return int(match.group(1)) * 60 + int(match.group(2))


def format_time(minutes: int) -> str:
    """Format minutes since midnight as a zero-padded ``HH:MM`` string."""
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}"


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """
    Check whether two half-open intervals overlap.

    Touching endpoints do not overlap: 10:00-10:30 and 10:30-11:00 are
    adjacent.
    """
    return a_start < b_end and a_end > b_start


def parse_date(value: DateLike) -> date:
    """Coerce a ``date`` or a ``YYYY-MM-DD`` string into a plain ``date``."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return date(value.year, value.month, value.day)

    try:
        parsed = pendulum.from_format(value, "YYYY-MM-DD")
    except (AttributeError, TypeError, ValueError) as exc:
        raise InvalidDateFormat(f"Invalid date: {value!r} (expected YYYY-MM-DD)") from exc

    return date(parsed.year, parsed.month, parsed.day)


def iso_weekday(day: date) -> int:
    """Return the ISO weekday (1=Monday .. 7=Sunday)."""
    return day.isoweekday()


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every calendar date from ``start`` to ``end`` inclusive."""
    if start > end:
        raise InvalidRange(f"Start date {start} must not be after end date {end}")

    current = pendulum.Date(start.year, start.month, start.day)
    while current <= end:
        yield date(current.year, current.month, current.day)
        current = current.add(days=1)
