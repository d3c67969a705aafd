"""
Protocols describing the storage collaborators the engine depends on.

Read-side protocols are async so that remote stores can be awaited under a
deadline; implementations backed by blocking drivers push their work to a
thread.
"""

from __future__ import annotations

from datetime import date
from typing import List, Optional, Protocol

from ..domain.models import Appointment, AppointmentSlotRef, BookingRequest, TimeOffRange


class StaffRepository(Protocol):
    """Source of a staff member's working weekdays."""

    async def get_working_days(self, staff_id: str, tenant_id: str) -> List[int]:
        """Return ISO weekdays (1=Monday..7=Sunday); raise ``StaffNotFound`` if unknown."""


class TimeOffRepository(Protocol):
    """Source of approved time-off ranges."""

    async def list_approved(
        self,
        staff_id: str,
        tenant_id: str,
        date_from: date,
        date_to: date,
    ) -> List[TimeOffRange]:
        """Return approved ranges that may apply within ``date_from..date_to``."""


class AppointmentRepository(Protocol):
    """Source of existing appointments."""

    async def list_for_staff(
        self,
        staff_id: str,
        tenant_id: str,
        date_from: date,
        date_to: date,
    ) -> List[AppointmentSlotRef]:
        """Return the staff member's appointments within ``date_from..date_to``."""


class BookingRepository(Protocol):
    """Write side used by the booking guard."""

    async def find_slot_holder(
        self,
        tenant_id: str,
        staff_id: str,
        day: date,
        start_time: str,
    ) -> Optional[Appointment]:
        """Return the active appointment holding the slot, if any (advisory)."""

    async def insert_if_free(self, booking: BookingRequest) -> Appointment:
        """Insert the row; raise ``SlotConflict`` if the uniqueness constraint rejects it."""

    async def get_appointment(self, appointment_id: str, tenant_id: str) -> Optional[Appointment]:
        """Return the appointment, or ``None`` if missing or soft-deleted."""

    async def supersede(
        self,
        original_id: str,
        tenant_id: str,
        booking: BookingRequest,
    ) -> Appointment:
        """Mark the original ``rescheduled`` and insert ``booking`` in one transaction."""


class TimeOffStore(StaffRepository, TimeOffRepository, Protocol):
    """Write side used when staff add time off."""

    async def save_time_off(self, time_off: TimeOffRange) -> TimeOffRange:
        """Persist the range and return it with its id set."""
