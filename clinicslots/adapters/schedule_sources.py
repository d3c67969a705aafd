"""
Read-only views over the staff, time-off and appointment repositories.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Awaitable, FrozenSet, List, Optional, TypeVar

from ..domain.exceptions import SourceUnavailable
from ..domain.models import AppointmentSlotRef, TimeOffRange
from ..domain.predicates import is_active_appointment, is_active_time_off
from .protocols import AppointmentRepository, StaffRepository, TimeOffRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ScheduleSources:
    """
    Adapter combining the three read sources behind one deadline policy.

    Every call runs under ``timeout`` seconds; expiry and I/O failures
    (``OSError``, which covers ``ConnectionError``) surface as
    ``SourceUnavailable``. Nothing is retried and nothing is cached.
    """

    def __init__(
        self,
        staff_repository: StaffRepository,
        time_off_repository: TimeOffRepository,
        appointment_repository: AppointmentRepository,
        default_timeout: Optional[float] = None,
    ) -> None:
        self._staff_repository = staff_repository
        self._time_off_repository = time_off_repository
        self._appointment_repository = appointment_repository
        self._default_timeout = default_timeout

    async def get_working_pattern(
        self,
        staff_id: str,
        tenant_id: str,
        *,
        timeout: Optional[float] = None,
    ) -> FrozenSet[int]:
        working_days = await self._call(
            "working days",
            self._staff_repository.get_working_days(staff_id, tenant_id),
            timeout,
        )
        return frozenset(working_days)

    async def get_approved_time_off(
        self,
        staff_id: str,
        tenant_id: str,
        date_from: date,
        date_to: date,
        *,
        timeout: Optional[float] = None,
    ) -> List[TimeOffRange]:
        ranges = await self._call(
            "time off",
            self._time_off_repository.list_approved(staff_id, tenant_id, date_from, date_to),
            timeout,
        )
        visible = [
            time_off
            for time_off in ranges
            if time_off.staff_id == staff_id
            and time_off.tenant_id == tenant_id
            and is_active_time_off(time_off, date_from, date_to)
        ]
        logger.debug("Fetched %s time-off range(s) for staff %s", len(visible), staff_id)
        return visible

    async def get_appointments(
        self,
        staff_id: str,
        tenant_id: str,
        date_from: date,
        date_to: date,
        *,
        timeout: Optional[float] = None,
    ) -> List[AppointmentSlotRef]:
        appointments = await self._call(
            "appointments",
            self._appointment_repository.list_for_staff(staff_id, tenant_id, date_from, date_to),
            timeout,
        )
        visible = [
            appointment
            for appointment in appointments
            if appointment.staff_id == staff_id
            and appointment.tenant_id == tenant_id
            and is_active_appointment(appointment, date_from, date_to)
        ]
        logger.debug("Fetched %s appointment(s) for staff %s", len(visible), staff_id)
        return visible

    async def _call(self, source: str, awaitable: Awaitable[T], timeout: Optional[float]) -> T:
        deadline = timeout if timeout is not None else self._default_timeout
        try:
            return await asyncio.wait_for(awaitable, timeout=deadline)
        except asyncio.TimeoutError as exc:
            logger.warning("Schedule source '%s' timed out after %ss", source, deadline)
            raise SourceUnavailable(f"Schedule source '{source}' timed out after {deadline}s") from exc
        except OSError as exc:
            logger.warning("Schedule source '%s' failed: %s", source, exc)
            raise SourceUnavailable(f"Schedule source '{source}' failed: {exc}") from exc
