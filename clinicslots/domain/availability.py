"""
Per-day availability composition.

Combines slot generation with conflict detection against time-off ranges and
existing appointments. The composer only sees already-fetched inputs, so the
same inputs always produce the same output.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import AbstractSet, List, Sequence

from .conflict_detector import ConflictDetector, merge_ranges
from .models import (
    AppointmentSlotRef,
    Conflict,
    ConflictType,
    DayAvailability,
    TimeOffRange,
    WorkingHours,
)
from .slot_calculator import SlotCalculator
from .time_utils import iso_weekday, iter_dates

logger = logging.getLogger(__name__)


class AvailabilityComposer:
    """
    Builds ``DayAvailability`` values from working days, time off and
    appointments.

    Algorithm, per calendar date:
    1. Skip non-working days without scanning for conflicts
    2. Generate all slots inside the working hours
    3. Drop every slot overlapping applicable time off or an appointment;
       a full-day block drops them all
    4. Report the applicable time off and the day's appointments as conflicts
    """

    def __init__(self, conflict_detector: ConflictDetector | None = None):
        self.conflict_detector = conflict_detector or ConflictDetector()

    def compose(
        self,
        date_from: date,
        date_to: date,
        working_days: AbstractSet[int],
        time_off: Sequence[TimeOffRange],
        appointments: Sequence[AppointmentSlotRef],
        working_hours: WorkingHours,
        slot_duration_minutes: int,
    ) -> List[DayAvailability]:
        calculator = SlotCalculator(slot_duration_minutes)

        days = [
            self.compose_day(
                day=day,
                working_days=working_days,
                time_off=time_off,
                appointments=appointments,
                working_hours=working_hours,
                calculator=calculator,
            )
            for day in iter_dates(date_from, date_to)
        ]

        logger.debug(
            "Composed %s day(s) from %s to %s: %s working, %s free slot(s)",
            len(days),
            date_from,
            date_to,
            sum(1 for day in days if day.is_working_day),
            sum(len(day.available_slots) for day in days),
        )
        return days

    def compose_day(
        self,
        *,
        day: date,
        working_days: AbstractSet[int],
        time_off: Sequence[TimeOffRange],
        appointments: Sequence[AppointmentSlotRef],
        working_hours: WorkingHours,
        calculator: SlotCalculator,
    ) -> DayAvailability:
        if iso_weekday(day) not in working_days:
            return DayAvailability(date=day, is_working_day=False, working_hours=working_hours)

        day_time_off = self.conflict_detector.applicable(day, time_off)
        day_appointments = [appointment for appointment in appointments if appointment.date == day]

        all_slots = calculator.generate_slots(working_hours)
        if self.conflict_detector.has_full_day_block(day, day_time_off):
            available, removed = [], all_slots
        else:
            blocked = merge_ranges(
                self.conflict_detector.blocked_intervals(day, day_time_off)
                + [appointment.time_range() for appointment in day_appointments]
            )
            available, removed = calculator.split_available(all_slots, blocked)

        return DayAvailability(
            date=day,
            is_working_day=True,
            working_hours=working_hours,
            available_slots=available,
            conflicts=(
                [self.conflict_detector.to_conflict(time_off) for time_off in day_time_off]
                + self.appointment_conflicts(day, day_appointments)
            ),
            blocked_slots=removed,
        )

    def appointment_conflicts(
        self,
        day: date,
        appointments: Sequence[AppointmentSlotRef],
    ) -> List[Conflict]:
        """One conflict per appointment on ``day``, ordered by start time."""
        day_appointments = sorted(
            (appointment for appointment in appointments if appointment.date == day),
            key=lambda appointment: (appointment.start_time, appointment.end_time),
        )

        conflicts: List[Conflict] = []
        for appointment in day_appointments:
            window = appointment.time_range()
            conflicts.append(
                Conflict(
                    type=ConflictType.APPOINTMENT,
                    start=window.start,
                    end=window.end,
                    description=appointment.describe(),
                )
            )

        return conflicts
