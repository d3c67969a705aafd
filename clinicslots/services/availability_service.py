"""
Application service answering staff availability queries.

The service fetches working days, time off and appointments through the
schedule source adapter and delegates the per-day calculation to the
domain-level ``AvailabilityComposer``. It never writes; bookings go through
``BookingGuard``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import FrozenSet, List, Optional, Tuple

from ..adapters.schedule_sources import ScheduleSources
from ..config import DefaultsConfig
from ..domain.availability import AvailabilityComposer
from ..domain.conflict_detector import FULL_DAY_END, FULL_DAY_START
from ..domain.exceptions import InvalidRange
from ..domain.models import (
    AppointmentSlotRef,
    AvailabilitySummary,
    Conflict,
    ConflictType,
    DayAvailability,
    QuickCheckResult,
    TimeOffRange,
    TimeSlot,
    WorkingHours,
)
from ..domain.slot_calculator import validate_slot_duration
from ..domain.time_utils import DateLike, iso_weekday, iter_dates, parse_date, parse_time

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilityRequest:
    """Parameters of an availability computation."""
    staff_id: str
    tenant_id: str
    start_date: DateLike
    end_date: DateLike
    slot_duration: Optional[int] = None
    working_hours_start: Optional[str] = None
    working_hours_end: Optional[str] = None


class AvailabilityService:
    """
    Orchestrates source reads and availability composition.

    Dependency inversion toward the repository protocols makes it easy to
    plug in the SQL store or the in-memory store in tests.
    """

    def __init__(
        self,
        sources: ScheduleSources,
        composer: AvailabilityComposer | None = None,
        defaults: DefaultsConfig | None = None,
        max_range_days: int = 366,
    ) -> None:
        self._sources = sources
        self._composer = composer or AvailabilityComposer()
        self._defaults = defaults or DefaultsConfig()
        self._max_range_days = max_range_days

    async def compute_availability(
        self,
        request: AvailabilityRequest,
        *,
        timeout: Optional[float] = None,
    ) -> List[DayAvailability]:
        """
        Compute per-day availability for ``request``.

        Raises:
            InvalidTimeFormat: If working hours are not HH:MM
            InvalidDateFormat: If a date is not YYYY-MM-DD
            InvalidRange: If the dates or duration are inconsistent, or only one
                working-hours bound is given
            SourceUnavailable: If any schedule source fails or times out
        """
        start_date = parse_date(request.start_date)
        end_date = parse_date(request.end_date)
        self._validate_range(start_date, end_date)

        slot_duration = validate_slot_duration(
            request.slot_duration
            if request.slot_duration is not None
            else self._defaults.slot_duration_minutes
        )
        working_hours = self._resolve_working_hours(
            request.working_hours_start, request.working_hours_end
        )

        return await self._compose(
            staff_id=request.staff_id,
            tenant_id=request.tenant_id,
            start_date=start_date,
            end_date=end_date,
            working_hours=working_hours,
            slot_duration=slot_duration,
            timeout=timeout,
        )

    async def get_next_available_slot(
        self,
        staff_id: str,
        tenant_id: str,
        day: DateLike,
        preferred_time: Optional[str] = None,
        slot_duration: Optional[int] = None,
        *,
        timeout: Optional[float] = None,
    ) -> Optional[TimeSlot]:
        """
        Return the first free slot of the day, or ``None``.

        With ``preferred_time`` only slots starting at or after it qualify;
        slots keep their alignment to the working-hours start, so a preferred
        time between two slot starts skips to the next one.
        """
        preferred = parse_time(preferred_time) if preferred_time is not None else None

        availability = await self.compute_availability(
            AvailabilityRequest(
                staff_id=staff_id,
                tenant_id=tenant_id,
                start_date=day,
                end_date=day,
                slot_duration=slot_duration,
            ),
            timeout=timeout,
        )

        day_availability = availability[0]
        for slot in day_availability.available_slots:
            if preferred is None or slot.start >= preferred:
                return slot

        return None

    async def get_available_slots_for_date_range(
        self,
        staff_id: str,
        tenant_id: str,
        start_date: DateLike,
        end_date: DateLike,
        slot_duration: Optional[int] = None,
        *,
        timeout: Optional[float] = None,
    ) -> AvailabilitySummary:
        """Summarize free slots per day; days without free slots are left out."""
        availability = await self.compute_availability(
            AvailabilityRequest(
                staff_id=staff_id,
                tenant_id=tenant_id,
                start_date=start_date,
                end_date=end_date,
                slot_duration=slot_duration,
            ),
            timeout=timeout,
        )

        slots_by_day = {
            day.date.isoformat(): day.available_slots
            for day in availability
            if day.is_working_day and day.available_slots
        }

        return AvailabilitySummary(
            total_count=sum(len(slots) for slots in slots_by_day.values()),
            day_count=len(slots_by_day),
            slots_by_day=slots_by_day,
        )

    async def quick_availability_check(
        self,
        staff_id: str,
        tenant_id: str,
        day: DateLike,
        start_time: str,
        end_time: str,
        *,
        timeout: Optional[float] = None,
    ) -> QuickCheckResult:
        """
        Check one specific window instead of enumerating slots.

        A non-working day is reported as unavailable with a single whole-day
        conflict rather than raised.
        """
        check_date = parse_date(day)
        start = parse_time(start_time)
        end = parse_time(end_time)
        if start >= end:
            raise InvalidRange(f"Start time {start_time} must be before end time {end_time}")

        working_days, time_off, appointments = await self._fetch(
            staff_id, tenant_id, check_date, check_date, timeout
        )

        if iso_weekday(check_date) not in working_days:
            return QuickCheckResult(
                available=False,
                conflicts=[
                    Conflict(
                        type=ConflictType.TIME_RANGE,
                        start=FULL_DAY_START,
                        end=FULL_DAY_END,
                        description="Not a working day",
                        full_day=True,
                    )
                ],
            )

        conflicts = self._composer.conflict_detector.find_conflicts(
            check_date, time_off, start, end
        )
        conflicts.extend(
            conflict
            for conflict in self._composer.appointment_conflicts(check_date, appointments)
            if conflict.overlaps(start, end)
        )
        return QuickCheckResult(available=not conflicts, conflicts=conflicts)

    async def _compose(
        self,
        *,
        staff_id: str,
        tenant_id: str,
        start_date: date,
        end_date: date,
        working_hours: WorkingHours,
        slot_duration: int,
        timeout: Optional[float],
    ) -> List[DayAvailability]:
        working_days, time_off, appointments = await self._fetch(
            staff_id, tenant_id, start_date, end_date, timeout
        )

        return self._composer.compose(
            date_from=start_date,
            date_to=end_date,
            working_days=working_days,
            time_off=time_off,
            appointments=appointments,
            working_hours=working_hours,
            slot_duration_minutes=slot_duration,
        )

    async def _fetch(
        self,
        staff_id: str,
        tenant_id: str,
        start_date: date,
        end_date: date,
        timeout: Optional[float],
    ) -> Tuple[FrozenSet[int], List[TimeOffRange], List[AppointmentSlotRef]]:
        working_days = await self._sources.get_working_pattern(staff_id, tenant_id, timeout=timeout)

        # Time off and appointments are only read when some day in range is worked.
        if not any(iso_weekday(day) in working_days for day in iter_dates(start_date, end_date)):
            return working_days, [], []

        time_off, appointments = await asyncio.gather(
            self._sources.get_approved_time_off(
                staff_id, tenant_id, start_date, end_date, timeout=timeout
            ),
            self._sources.get_appointments(
                staff_id, tenant_id, start_date, end_date, timeout=timeout
            ),
        )
        return working_days, time_off, appointments

    def _validate_range(self, start_date: date, end_date: date) -> None:
        if start_date > end_date:
            raise InvalidRange(f"Start date {start_date} must not be after end date {end_date}")

        days = (end_date - start_date).days + 1
        if days > self._max_range_days:
            raise InvalidRange(
                f"Date range spans {days} days; at most {self._max_range_days} are allowed"
            )

    def _resolve_working_hours(self, start: Optional[str], end: Optional[str]) -> WorkingHours:
        # Inverted hours are accepted and simply yield no slots.
        if start is None and end is None:
            return self._defaults.get_working_hours()
        if start is None or end is None:
            raise InvalidRange("Working hours need both a start and an end")
        return WorkingHours.from_strings(start, end)
