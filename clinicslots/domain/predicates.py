"""
Visibility rules for rows read from the schedule sources.

Status and soft-delete filtering lives here only; adapters apply these
predicates uniformly instead of every consumer re-implementing them.
"""

from __future__ import annotations

from datetime import date
from typing import Union

from .models import (
    RELEASING_STATUSES,
    Appointment,
    AppointmentSlotRef,
    AppointmentStatus,
    TimeOffRange,
    TimeOffStatus,
)


def is_active_time_off(time_off: TimeOffRange, date_from: date, date_to: date) -> bool:
    """Approved, not soft-deleted, and able to apply somewhere in the window."""
    if time_off.deleted_at is not None:
        return False
    if time_off.status is not TimeOffStatus.APPROVED:
        return False
    return time_off.start_date <= date_to and time_off.effective_end_date >= date_from


def holds_slot(appointment: Union[Appointment, AppointmentSlotRef]) -> bool:
    """Not soft-deleted and not released by a terminal status."""
    if appointment.deleted_at is not None:
        return False
    return AppointmentStatus(appointment.status) not in RELEASING_STATUSES


def is_active_appointment(
    appointment: Union[Appointment, AppointmentSlotRef],
    date_from: date,
    date_to: date,
) -> bool:
    """Holds its slot and falls inside the window."""
    return holds_slot(appointment) and date_from <= appointment.date <= date_to
