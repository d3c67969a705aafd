"""
Domain layer - Pure availability logic without I/O.
"""

from .availability import AvailabilityComposer
from .conflict_detector import ConflictDetector
from .models import (
    Appointment,
    AppointmentSlotRef,
    AppointmentStatus,
    AvailabilitySummary,
    Conflict,
    ConflictType,
    DayAvailability,
    QuickCheckResult,
    TimeOffRange,
    TimeOffStatus,
    TimeOffType,
    TimeRange,
    TimeSlot,
    WorkingHours,
)
from .slot_calculator import SlotCalculator

__all__ = [
    "Appointment",
    "AppointmentSlotRef",
    "AppointmentStatus",
    "AvailabilityComposer",
    "AvailabilitySummary",
    "Conflict",
    "ConflictDetector",
    "ConflictType",
    "DayAvailability",
    "QuickCheckResult",
    "SlotCalculator",
    "TimeOffRange",
    "TimeOffStatus",
    "TimeOffType",
    "TimeRange",
    "TimeSlot",
    "WorkingHours",
]
