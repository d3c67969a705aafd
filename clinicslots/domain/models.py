"""
Domain models for working hours, time-off ranges, appointments and slots.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from .exceptions import InvalidRange
from .time_utils import MINUTES_PER_DAY, format_time, intervals_overlap, parse_time


class TimeOffType(str, Enum):
    BREAK = "break"
    VACATION = "vacation"
    SICK_LEAVE = "sick_leave"
    PERSONAL_TIME = "personal_time"
    LUNCH = "lunch"
    OTHER = "other"


class TimeOffStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    FINISHED = "finished"
    RESCHEDULED = "rescheduled"


# Rows in these statuses no longer hold their booking slot.
RELEASING_STATUSES: FrozenSet[AppointmentStatus] = frozenset(
    {AppointmentStatus.RESCHEDULED, AppointmentStatus.CANCELLED}
)


class ConflictType(str, Enum):
    APPOINTMENT = "appointment"
    TIME_RANGE = "time_range"


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open ``[start, end)`` window within one day.

    Bounds are minute offsets from midnight. Invariant: start must be before end.
    """
    start: int
    end: int

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidRange(
                f"Start time {format_time(self.start)} must be before end time {format_time(self.end)}"
            )

    @classmethod
    def from_strings(cls, start: str, end: str) -> "TimeRange":
        return cls(start=parse_time(start), end=parse_time(end))

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return self.end - self.start

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return intervals_overlap(self.start, self.end, other.start, other.end)

    def __str__(self) -> str:
        return f"{format_time(self.start)}-{format_time(self.end)}"


@dataclass(frozen=True)
class WorkingHours:
    """
    The daily window slots are generated in.

    Unlike ``TimeRange`` an empty or inverted window is allowed here; it
    simply produces no slots.
    """
    start: int
    end: int

    @classmethod
    def from_strings(cls, start: str, end: str) -> "WorkingHours":
        return cls(start=parse_time(start), end=parse_time(end))

    @property
    def start_time(self) -> str:
        return format_time(self.start)

    @property
    def end_time(self) -> str:
        return format_time(self.end)

    def to_dict(self) -> Dict[str, str]:
        return {"start": self.start_time, "end": self.end_time}


@dataclass(frozen=True)
class TimeSlot:
    """A candidate appointment window produced by the slot generator."""
    start: int
    end: int

    @property
    def start_time(self) -> str:
        return format_time(self.start)

    @property
    def end_time(self) -> str:
        return format_time(self.end)

    @property
    def duration_minutes(self) -> int:
        return self.end - self.start

    def to_dict(self) -> Dict[str, object]:
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration_minutes,
        }

    def __str__(self) -> str:
        return f"{self.start_time}-{self.end_time}"


@dataclass(frozen=True)
class TimeOffRange:
    """
    A staff absence: break, vacation, sick leave and the like.

    Ranges without ``start_time``/``end_time`` block the whole day. Recurring
    ranges repeat weekly on ``recurring_days`` (ISO weekdays) from
    ``start_date`` until ``recurring_end_date``.
    """
    staff_id: str
    tenant_id: str
    type: TimeOffType
    start_date: date
    end_date: date
    status: TimeOffStatus = TimeOffStatus.APPROVED
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_recurring: bool = False
    recurring_days: FrozenSet[int] = frozenset()
    recurring_end_date: Optional[date] = None
    description: Optional[str] = None
    id: Optional[str] = None
    deleted_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "type", TimeOffType(self.type))
        object.__setattr__(self, "status", TimeOffStatus(self.status))
        object.__setattr__(self, "recurring_days", frozenset(self.recurring_days or ()))

        if self.start_date > self.end_date:
            raise InvalidRange(
                f"Time-off start date {self.start_date} must not be after end date {self.end_date}"
            )

        if (self.start_time is None) != (self.end_time is None):
            raise InvalidRange("Time-off start_time and end_time must be given together")

        if self.start_time is not None:
            # Validates both the format and start < end.
            TimeRange.from_strings(self.start_time, self.end_time)

        if self.is_recurring:
            if not self.recurring_days:
                raise InvalidRange("Recurring time-off requires recurring_days")
            invalid_days = sorted(day for day in self.recurring_days if day not in range(1, 8))
            if invalid_days:
                raise InvalidRange(f"recurring_days must be between 1 and 7, got {invalid_days}")
            if self.recurring_end_date is None:
                raise InvalidRange("Recurring time-off requires recurring_end_date")
            if self.recurring_end_date < self.end_date:
                raise InvalidRange(
                    f"recurring_end_date {self.recurring_end_date} must not be before end date {self.end_date}"
                )

    @property
    def is_full_day(self) -> bool:
        return self.start_time is None

    @property
    def effective_end_date(self) -> date:
        """Last date this range can apply on."""
        if self.is_recurring and self.recurring_end_date is not None:
            return self.recurring_end_date
        return self.end_date

    def time_range(self) -> TimeRange:
        """The blocked window within a day; the whole day for full-day ranges."""
        if self.is_full_day:
            return TimeRange(start=0, end=MINUTES_PER_DAY)
        return TimeRange.from_strings(self.start_time, self.end_time)

    def describe(self) -> str:
        return f"{self.type.value}: {self.description or 'No description'}"


@dataclass(frozen=True)
class AppointmentSlotRef:
    """The minimal view of an appointment the engine needs."""
    staff_id: str
    tenant_id: str
    date: date
    start_time: str
    end_time: str
    appointment_id: Optional[str] = None
    description: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.PENDING
    deleted_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "status", AppointmentStatus(self.status))

    def time_range(self) -> TimeRange:
        return TimeRange.from_strings(self.start_time, self.end_time)

    def describe(self) -> str:
        return f"Appointment with {self.description or 'Patient'}"


@dataclass
class Appointment:
    """An appointment row as written by the booking guard."""
    id: str
    tenant_id: str
    staff_id: str
    date: date
    start_time: str
    end_time: str
    status: AppointmentStatus = AppointmentStatus.PENDING
    patient_id: Optional[str] = None
    notes: Optional[str] = None
    created_via: str = "staff"
    rescheduled_from_id: Optional[str] = None
    created_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    def __post_init__(self):
        self.status = AppointmentStatus(self.status)

    def slot_key(self) -> tuple:
        return (self.tenant_id, self.staff_id, self.date, self.start_time)

    def to_slot_ref(self) -> AppointmentSlotRef:
        return AppointmentSlotRef(
            staff_id=self.staff_id,
            tenant_id=self.tenant_id,
            date=self.date,
            start_time=self.start_time,
            end_time=self.end_time,
            appointment_id=self.id,
            description=self.patient_id,
            status=self.status,
            deleted_at=self.deleted_at,
        )


@dataclass(frozen=True)
class BookingRequest:
    """The fields needed to write a new appointment row."""
    tenant_id: str
    staff_id: str
    date: date
    start_time: str
    end_time: str
    status: AppointmentStatus = AppointmentStatus.PENDING
    patient_id: Optional[str] = None
    notes: Optional[str] = None
    created_via: str = "staff"
    rescheduled_from_id: Optional[str] = None


@dataclass(frozen=True)
class Conflict:
    """A time-off range or appointment that blocks part of a day."""
    type: ConflictType
    start: int
    end: int
    description: str
    full_day: bool = False

    @property
    def start_time(self) -> str:
        return format_time(self.start)

    @property
    def end_time(self) -> str:
        return format_time(self.end)

    def overlaps(self, start: int, end: int) -> bool:
        return intervals_overlap(start, end, self.start, self.end)

    def to_dict(self) -> Dict[str, str]:
        return {
            "type": self.type.value,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "description": self.description,
        }


@dataclass
class DayAvailability:
    """Computed availability for one calendar date."""
    date: date
    is_working_day: bool
    working_hours: WorkingHours
    available_slots: List[TimeSlot] = field(default_factory=list)
    conflicts: List[Conflict] = field(default_factory=list)
    blocked_slots: List[TimeSlot] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "date": self.date.isoformat(),
            "is_working_day": self.is_working_day,
            "working_hours": self.working_hours.to_dict(),
            "available_slots": [slot.to_dict() for slot in self.available_slots],
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
        }


@dataclass
class AvailabilitySummary:
    """Slot totals over a date range; days without free slots are omitted."""
    total_count: int
    day_count: int
    slots_by_day: Dict[str, List[TimeSlot]]


@dataclass
class QuickCheckResult:
    available: bool
    conflicts: List[Conflict]
