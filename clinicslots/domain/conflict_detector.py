"""
Conflict detection between candidate windows and staff time-off ranges.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional, Sequence

from .models import Conflict, ConflictType, TimeOffRange, TimeRange
from .recurrence import occurrences, occurs_on
from .time_utils import intervals_overlap

# Reported bounds of a whole-day block.
FULL_DAY_START = 0
FULL_DAY_END = 23 * 60 + 59


class ConflictDetector:
    """
    Decides which time-off ranges collide with a date and an optional window.

    Overlapping ranges are never merged for reporting: each applicable range
    yields its own ``Conflict`` entry. Only the blocked-interval view used for
    slot filtering is merged.
    """

    def applicable(self, day: date, ranges: Iterable[TimeOffRange]) -> List[TimeOffRange]:
        """Return the ranges that apply on ``day``, recurring ones expanded."""
        return [time_off for time_off in ranges if occurs_on(time_off, day)]

    def find_conflicts(
        self,
        day: date,
        ranges: Iterable[TimeOffRange],
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> List[Conflict]:
        """
        Return one conflict per applicable range overlapping ``[start, end)``.

        Omitting ``start``/``end`` checks the whole day, so every applicable
        range conflicts.
        """
        whole_day = start is None or end is None
        conflicts: List[Conflict] = []

        for time_off in self.applicable(day, ranges):
            if time_off.is_full_day:
                conflicts.append(self.to_conflict(time_off))
                continue

            blocked = time_off.time_range()
            if whole_day or intervals_overlap(start, end, blocked.start, blocked.end):
                conflicts.append(self.to_conflict(time_off))

        return conflicts

    def has_full_day_block(self, day: date, ranges: Iterable[TimeOffRange]) -> bool:
        return any(time_off.is_full_day for time_off in self.applicable(day, ranges))

    def blocked_intervals(self, day: date, ranges: Iterable[TimeOffRange]) -> List[TimeRange]:
        """The sorted union of blocked windows on ``day``."""
        return merge_ranges(time_off.time_range() for time_off in self.applicable(day, ranges))

    @staticmethod
    def to_conflict(time_off: TimeOffRange) -> Conflict:
        if time_off.is_full_day:
            return Conflict(
                type=ConflictType.TIME_RANGE,
                start=FULL_DAY_START,
                end=FULL_DAY_END,
                description=time_off.describe(),
                full_day=True,
            )

        blocked = time_off.time_range()
        return Conflict(
            type=ConflictType.TIME_RANGE,
            start=blocked.start,
            end=blocked.end,
            description=time_off.describe(),
        )

    def find_overlapping_time_off(
        self,
        candidate: TimeOffRange,
        existing: Sequence[TimeOffRange],
    ) -> List[TimeOffRange]:
        """
        Return the existing ranges that share at least one blocked moment with
        ``candidate``.

        Used before saving a new time-off range. Recurring patterns on both
        sides are expanded to concrete dates.
        """
        candidate_dates = set(
            occurrences(candidate, candidate.start_date, candidate.effective_end_date)
        )
        if not candidate_dates:
            return []

        candidate_window = candidate.time_range()
        clashes: List[TimeOffRange] = []

        for other in existing:
            if other is candidate or (candidate.id is not None and other.id == candidate.id):
                continue
            if not candidate_window.overlaps(other.time_range()):
                continue

            shared = any(
                day in candidate_dates
                for day in occurrences(other, candidate.start_date, candidate.effective_end_date)
            )
            if shared:
                clashes.append(other)

        return clashes


def merge_ranges(ranges: Iterable[TimeRange]) -> List[TimeRange]:
    """
    Merge overlapping or adjacent time ranges.

    Example: [09:00-10:00, 10:00-11:00] -> [09:00-11:00]
    """
    sorted_ranges = sorted(ranges, key=lambda r: (r.start, r.end))
    if not sorted_ranges:
        return []

    merged: List[TimeRange] = [sorted_ranges[0]]

    for current in sorted_ranges[1:]:
        last = merged[-1]

        if current.start <= last.end:
            merged[-1] = TimeRange(start=last.start, end=max(last.end, current.end))
        else:
            merged.append(current)

    return merged
