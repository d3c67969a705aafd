"""
Weekly recurrence rule for time-off ranges.
"""

from __future__ import annotations

from datetime import date
from typing import Iterator

from .models import TimeOffRange
from .time_utils import iso_weekday, iter_dates


def occurs_on(time_off: TimeOffRange, day: date) -> bool:
    """
    Check whether a time-off range applies on a calendar date.

    Non-recurring ranges cover ``start_date..end_date``. Recurring ranges
    cover every date from ``start_date`` to ``recurring_end_date`` whose ISO
    weekday is in ``recurring_days``.
    """
    if not time_off.is_recurring:
        return time_off.start_date <= day <= time_off.end_date

    if iso_weekday(day) not in time_off.recurring_days:
        return False
    return time_off.start_date <= day <= time_off.effective_end_date


def occurrences(time_off: TimeOffRange, date_from: date, date_to: date) -> Iterator[date]:
    """Yield the dates in ``date_from..date_to`` the range applies on."""
    first = max(date_from, time_off.start_date)
    last = min(date_to, time_off.effective_end_date)
    if first > last:
        return

    for day in iter_dates(first, last):
        if occurs_on(time_off, day):
            yield day
