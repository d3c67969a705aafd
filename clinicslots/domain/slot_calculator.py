"""
Slot generation and filtering.

Pure domain logic without any external dependencies (no database, no I/O).
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from .exceptions import InvalidRange
from .models import TimeRange, TimeSlot, WorkingHours

MIN_SLOT_DURATION = 5
MAX_SLOT_DURATION = 480


def validate_slot_duration(minutes: int) -> int:
    """Check a requested slot duration against the public 5..480 bound."""
    if isinstance(minutes, bool) or not isinstance(minutes, int):
        raise InvalidRange(f"Slot duration must be an integer number of minutes, got {minutes!r}")
    if not MIN_SLOT_DURATION <= minutes <= MAX_SLOT_DURATION:
        raise InvalidRange(
            f"Slot duration must be between {MIN_SLOT_DURATION} and {MAX_SLOT_DURATION} minutes, got {minutes}"
        )
    return minutes


class SlotCalculator:
    """
    Discretizes a working-hours window into fixed-duration slots.

    Algorithm:
    1. Start at the opening of the working window
    2. Emit slots of ``slot_duration_minutes`` back to back
    3. Truncate the last slot to end exactly at closing time
    """

    def __init__(self, slot_duration_minutes: int):
        if slot_duration_minutes <= 0:
            raise InvalidRange(f"Slot duration must be positive, got {slot_duration_minutes}")
        self.slot_duration_minutes = slot_duration_minutes

    def generate_slots(self, working_hours: WorkingHours) -> List[TimeSlot]:
        """
        Generate contiguous, non-overlapping slots within working hours.

        An empty or inverted window yields no slots.
        """
        slots: List[TimeSlot] = []
        current = working_hours.start

        while current < working_hours.end:
            slot_end = min(current + self.slot_duration_minutes, working_hours.end)
            slots.append(TimeSlot(start=current, end=slot_end))
            current = slot_end

        return slots

    @staticmethod
    def split_available(
        slots: Sequence[TimeSlot],
        blocked: Sequence[TimeRange],
    ) -> Tuple[List[TimeSlot], List[TimeSlot]]:
        """
        Partition slots into (available, blocked) lists.

        A slot is blocked if it overlaps any blocked range. Both lists keep the
        chronological order of ``slots``.
        """
        available: List[TimeSlot] = []
        removed: List[TimeSlot] = []

        for slot in slots:
            slot_range = TimeRange(start=slot.start, end=slot.end)
            if any(slot_range.overlaps(busy) for busy in blocked):
                removed.append(slot)
            else:
                available.append(slot)

        return available, removed
