"""
Domain-specific exception hierarchy for the availability engine.
"""

from __future__ import annotations

from datetime import date


class AvailabilityError(Exception):
    """Base class for all engine-level errors."""


class InvalidTimeFormat(AvailabilityError, ValueError):
    """Raised when a time-of-day string is not a valid ``HH:MM`` value."""


class InvalidDateFormat(AvailabilityError, ValueError):
    """Raised when a calendar date string is not a valid ``YYYY-MM-DD`` value."""


class InvalidRange(AvailabilityError, ValueError):
    """Raised when a date/time window or a time-off range is inconsistent."""


class SourceUnavailable(AvailabilityError):
    """Raised when a schedule source cannot answer (store failure or timeout)."""


class StaffNotFound(AvailabilityError):
    """Raised when the staff member does not exist for the tenant."""


class AppointmentNotFound(AvailabilityError):
    """Raised when a reschedule targets a missing or superseded appointment."""


class SlotConflict(AvailabilityError):
    """
    Raised when the requested booking slot is already held.

    This is an expected, user-facing outcome: somebody else took the slot
    between the availability read and the write.
    """

    def __init__(
        self,
        tenant_id: str,
        staff_id: str,
        day: date,
        start_time: str,
        message: str | None = None,
    ) -> None:
        self.tenant_id = tenant_id
        self.staff_id = staff_id
        self.day = day
        self.start_time = start_time
        super().__init__(
            message
            or f"Slot {day.isoformat()} {start_time} is already booked for staff {staff_id}"
        )


class TimeOffConflict(AvailabilityError):
    """Raised when a new time-off range overlaps approved time off of the same staff member."""

    def __init__(self, staff_id: str, clashes: list) -> None:
        self.staff_id = staff_id
        self.clashes = clashes
        described = ", ".join(clash.describe() for clash in clashes)
        super().__init__(f"Time off overlaps existing time off for staff {staff_id}: {described}")
