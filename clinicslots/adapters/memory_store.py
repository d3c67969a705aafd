"""
In-memory schedule store for tests and local runs without a database.
"""

from __future__ import annotations

import json
import threading
import uuid
from dataclasses import replace
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..domain.exceptions import AppointmentNotFound, SlotConflict, StaffNotFound
from ..domain.models import (
    Appointment,
    AppointmentSlotRef,
    AppointmentStatus,
    BookingRequest,
    TimeOffRange,
)
from ..domain.predicates import holds_slot, is_active_appointment, is_active_time_off
from ..domain.time_utils import parse_date

SlotKey = Tuple[str, str, date, str]

MOCK_DATA_FILE = Path(__file__).parent / "mock_schedule_data.json"


class InMemoryScheduleStore:
    """
    Implements every repository protocol over plain Python collections.

    Appointments go in and come out as copies, so callers never hold a
    reference to a stored row.

    The ``_slots`` index plays the part of the database's unique index on
    ``(tenant_id, staff_id, date, start_time)``: it is only touched while
    holding ``_lock``, so concurrent inserts for one slot cannot both win.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._working_days: Dict[Tuple[str, str], List[int]] = {}
        self._time_off: List[TimeOffRange] = []
        self._appointments: Dict[str, Appointment] = {}
        self._slots: Dict[SlotKey, str] = {}

    # ------------------------------------------------------------------
    # Seeding

    def add_staff(self, staff_id: str, tenant_id: str, working_days: List[int]) -> None:
        self._working_days[(staff_id, tenant_id)] = list(working_days)

    def add_time_off(self, time_off: TimeOffRange) -> TimeOffRange:
        if time_off.id is None:
            time_off = replace(time_off, id=str(uuid.uuid4()))
        self._time_off.append(time_off)
        return time_off

    def add_appointment(self, appointment: Appointment) -> Appointment:
        """Seed an existing row; active rows take their slot. The store keeps its own copy."""
        with self._lock:
            if holds_slot(appointment):
                key = appointment.slot_key()
                if key in self._slots:
                    raise SlotConflict(
                        appointment.tenant_id,
                        appointment.staff_id,
                        appointment.date,
                        appointment.start_time,
                    )
                self._slots[key] = appointment.id
            self._appointments[appointment.id] = replace(appointment)
        return appointment

    async def save_time_off(self, time_off: TimeOffRange) -> TimeOffRange:
        with self._lock:
            return self.add_time_off(time_off)

    @classmethod
    def load_from_json(cls, data_file: Optional[Path] = None) -> "InMemoryScheduleStore":
        """
        Build a store from a JSON document (the bundled sample by default).

        Expected layout::

            {
              "staff": [{"id": "...", "tenant_id": "...", "working_days": [1, 2, 3]}],
              "time_off": [{"staff_id": "...", "tenant_id": "...", "type": "vacation", ...}],
              "appointments": [{"id": "...", "staff_id": "...", "date": "2024-11-26", ...}]
            }
        """
        data_file = data_file or MOCK_DATA_FILE
        with open(data_file, "r", encoding="utf-8") as f:
            data = json.load(f)

        store = cls()

        for staff in data.get("staff", []):
            store.add_staff(staff["id"], staff["tenant_id"], staff["working_days"])

        for entry in data.get("time_off", []):
            store.add_time_off(
                TimeOffRange(
                    id=entry.get("id"),
                    staff_id=entry["staff_id"],
                    tenant_id=entry["tenant_id"],
                    type=entry["type"],
                    status=entry.get("status", "approved"),
                    start_date=parse_date(entry["start_date"]),
                    end_date=parse_date(entry["end_date"]),
                    start_time=entry.get("start_time"),
                    end_time=entry.get("end_time"),
                    is_recurring=entry.get("is_recurring", False),
                    recurring_days=frozenset(entry.get("recurring_days") or ()),
                    recurring_end_date=(
                        parse_date(entry["recurring_end_date"])
                        if entry.get("recurring_end_date")
                        else None
                    ),
                    description=entry.get("description"),
                )
            )

        for entry in data.get("appointments", []):
            store.add_appointment(
                Appointment(
                    id=entry.get("id") or str(uuid.uuid4()),
                    tenant_id=entry["tenant_id"],
                    staff_id=entry["staff_id"],
                    date=parse_date(entry["date"]),
                    start_time=entry["start_time"],
                    end_time=entry["end_time"],
                    status=entry.get("status", "pending"),
                    patient_id=entry.get("patient_id"),
                    notes=entry.get("notes"),
                )
            )

        return store

    # ------------------------------------------------------------------
    # Read side

    async def get_working_days(self, staff_id: str, tenant_id: str) -> List[int]:
        try:
            return list(self._working_days[(staff_id, tenant_id)])
        except KeyError:
            raise StaffNotFound(f"Staff {staff_id} not found for tenant {tenant_id}") from None

    async def list_approved(
        self,
        staff_id: str,
        tenant_id: str,
        date_from: date,
        date_to: date,
    ) -> List[TimeOffRange]:
        return [
            time_off
            for time_off in self._time_off
            if time_off.staff_id == staff_id
            and time_off.tenant_id == tenant_id
            and is_active_time_off(time_off, date_from, date_to)
        ]

    async def list_for_staff(
        self,
        staff_id: str,
        tenant_id: str,
        date_from: date,
        date_to: date,
    ) -> List[AppointmentSlotRef]:
        with self._lock:
            appointments = list(self._appointments.values())

        return [
            appointment.to_slot_ref()
            for appointment in appointments
            if appointment.staff_id == staff_id
            and appointment.tenant_id == tenant_id
            and is_active_appointment(appointment, date_from, date_to)
        ]

    # ------------------------------------------------------------------
    # Write side

    async def find_slot_holder(
        self,
        tenant_id: str,
        staff_id: str,
        day: date,
        start_time: str,
    ) -> Optional[Appointment]:
        with self._lock:
            holder_id = self._slots.get((tenant_id, staff_id, day, start_time))
            return replace(self._appointments[holder_id]) if holder_id else None

    async def insert_if_free(self, booking: BookingRequest) -> Appointment:
        with self._lock:
            return self._insert_locked(booking)

    async def get_appointment(self, appointment_id: str, tenant_id: str) -> Optional[Appointment]:
        with self._lock:
            appointment = self._appointments.get(appointment_id)
            if appointment is None or appointment.tenant_id != tenant_id or appointment.deleted_at:
                return None
            return replace(appointment)

    async def supersede(
        self,
        original_id: str,
        tenant_id: str,
        booking: BookingRequest,
    ) -> Appointment:
        with self._lock:
            original = self._appointments.get(original_id)
            if original is None or original.tenant_id != tenant_id or not holds_slot(original):
                raise AppointmentNotFound(f"Appointment {original_id} not found")

            # Release the original slot first so a same-slot reschedule can reuse it.
            released_key = original.slot_key()
            self._slots.pop(released_key, None)
            try:
                created = self._insert_locked(booking)
            except SlotConflict:
                self._slots[released_key] = original.id
                raise

            original.status = AppointmentStatus.RESCHEDULED
            return created

    def _insert_locked(self, booking: BookingRequest) -> Appointment:
        key = (booking.tenant_id, booking.staff_id, booking.date, booking.start_time)
        if key in self._slots:
            raise SlotConflict(booking.tenant_id, booking.staff_id, booking.date, booking.start_time)

        appointment = Appointment(
            id=str(uuid.uuid4()),
            tenant_id=booking.tenant_id,
            staff_id=booking.staff_id,
            date=booking.date,
            start_time=booking.start_time,
            end_time=booking.end_time,
            status=booking.status,
            patient_id=booking.patient_id,
            notes=booking.notes,
            created_via=booking.created_via,
            rescheduled_from_id=booking.rescheduled_from_id,
            created_at=datetime.now(timezone.utc),
        )
        self._appointments[appointment.id] = appointment
        self._slots[key] = appointment.id
        return replace(appointment)
