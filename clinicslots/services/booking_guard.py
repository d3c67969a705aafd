"""
Booking conflict guard used when appointments are created or rescheduled.

The guard defines the uniqueness invariant: for one
``(tenant_id, staff_id, date, start_time)`` at most one appointment may hold
the slot. Enforcement has two layers:

1. an advisory pre-check, which fails fast for the common case but can race;
2. the storage-level uniqueness constraint hit by ``insert_if_free``, which is
   the actual guarantee.

There is no in-process lock and no retry. A ``SlotConflict`` goes straight
back to the caller, which decides whether to offer another slot.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..adapters.protocols import BookingRepository
from ..domain.exceptions import AppointmentNotFound, InvalidRange, SlotConflict
from ..domain.models import Appointment, AppointmentStatus, BookingRequest, TimeRange
from ..domain.predicates import holds_slot
from ..domain.time_utils import MINUTES_PER_DAY, DateLike, format_time, parse_date, parse_time

logger = logging.getLogger(__name__)


class BookingGuard:
    """Reserves and reschedules appointment slots under the uniqueness invariant."""

    def __init__(self, repository: BookingRepository) -> None:
        self._repository = repository

    async def reserve_slot(
        self,
        tenant_id: str,
        staff_id: str,
        day: DateLike,
        start_time: str,
        end_time: str,
        *,
        patient_id: Optional[str] = None,
        notes: Optional[str] = None,
        created_via: str = "staff",
        status: AppointmentStatus = AppointmentStatus.PENDING,
    ) -> Appointment:
        """
        Create an appointment in the given slot.

        Raises:
            InvalidTimeFormat: If a time is not HH:MM
            InvalidRange: If start is not before end
            SlotConflict: If the slot is already held
        """
        booking_date = parse_date(day)
        TimeRange.from_strings(start_time, end_time)

        booking = BookingRequest(
            tenant_id=tenant_id,
            staff_id=staff_id,
            date=booking_date,
            start_time=start_time,
            end_time=end_time,
            status=status,
            patient_id=patient_id,
            notes=notes,
            created_via=created_via,
        )

        await self._precheck(booking)

        try:
            appointment = await self._repository.insert_if_free(booking)
        except SlotConflict:
            logger.warning(
                "Slot %s %s for staff %s was taken concurrently",
                booking_date,
                start_time,
                staff_id,
            )
            raise

        logger.info(
            "Reserved %s %s-%s for staff %s (appointment %s)",
            booking_date,
            start_time,
            end_time,
            staff_id,
            appointment.id,
        )
        return appointment

    async def reschedule(
        self,
        tenant_id: str,
        appointment_id: str,
        new_date: DateLike,
        new_start_time: str,
        new_end_time: Optional[str] = None,
        staff_id: Optional[str] = None,
    ) -> Appointment:
        """
        Move an appointment by superseding it.

        A new row is created in the target slot and the original is marked
        ``rescheduled``, which releases its slot. The original row is never
        moved in place.

        Raises:
            AppointmentNotFound: If the appointment is missing or no longer active
            SlotConflict: If the target slot is held by another appointment
        """
        original = await self._repository.get_appointment(appointment_id, tenant_id)
        if original is None or not holds_slot(original):
            raise AppointmentNotFound(f"Appointment {appointment_id} not found")

        target_date = parse_date(new_date)
        end_time = new_end_time or self._keep_duration(original, new_start_time)
        TimeRange.from_strings(new_start_time, end_time)

        booking = BookingRequest(
            tenant_id=tenant_id,
            staff_id=staff_id or original.staff_id,
            date=target_date,
            start_time=new_start_time,
            end_time=end_time,
            status=AppointmentStatus.PENDING,
            patient_id=original.patient_id,
            notes=original.notes,
            created_via=original.created_via,
            rescheduled_from_id=original.id,
        )

        await self._precheck(booking, ignore_id=original.id)

        try:
            appointment = await self._repository.supersede(original.id, tenant_id, booking)
        except SlotConflict:
            logger.warning(
                "Reschedule of %s to %s %s lost the slot to a concurrent booking",
                appointment_id,
                target_date,
                new_start_time,
            )
            raise

        logger.info(
            "Rescheduled appointment %s to %s %s-%s (new appointment %s)",
            appointment_id,
            target_date,
            new_start_time,
            end_time,
            appointment.id,
        )
        return appointment

    async def _precheck(self, booking: BookingRequest, ignore_id: Optional[str] = None) -> None:
        """Advisory read; a free answer here proves nothing about the write."""
        holder = await self._repository.find_slot_holder(
            booking.tenant_id, booking.staff_id, booking.date, booking.start_time
        )
        if holder is not None and holder.id != ignore_id:
            logger.warning(
                "Slot %s %s for staff %s is already held by appointment %s",
                booking.date,
                booking.start_time,
                booking.staff_id,
                holder.id,
            )
            raise SlotConflict(booking.tenant_id, booking.staff_id, booking.date, booking.start_time)

    @staticmethod
    def _keep_duration(original: Appointment, new_start_time: str) -> str:
        duration = parse_time(original.end_time) - parse_time(original.start_time)
        new_end = parse_time(new_start_time) + duration
        if new_end >= MINUTES_PER_DAY:
            raise InvalidRange(
                f"Keeping a {duration} minute duration from {new_start_time} crosses midnight"
            )
        return format_time(new_end)
