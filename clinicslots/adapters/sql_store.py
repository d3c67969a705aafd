"""
SQLAlchemy-backed schedule store.

The ``appointments`` table carries a partial unique index over
``(tenant_id, staff_id, date, start_time)`` restricted to rows that still hold
their slot. That index, evaluated at commit, is the only authority on whether
a slot is taken.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Index,
    String,
    Text,
    and_,
    create_engine,
    or_,
    select,
    text,
    update,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from ..domain.exceptions import AppointmentNotFound, SlotConflict, SourceUnavailable, StaffNotFound
from ..domain.models import (
    RELEASING_STATUSES,
    Appointment,
    AppointmentSlotRef,
    AppointmentStatus,
    BookingRequest,
    TimeOffRange,
    TimeOffStatus,
)

logger = logging.getLogger(__name__)

Base = declarative_base()

SLOT_INDEX_NAME = "uq_appointment_slot"

_RELEASING_VALUES = sorted(status.value for status in RELEASING_STATUSES)

# Rows matching this clause occupy their slot.
ACTIVE_APPOINTMENT_CLAUSE = text(
    "deleted_at IS NULL AND status NOT IN ("
    + ", ".join(f"'{value}'" for value in _RELEASING_VALUES)
    + ")"
)


class StaffRow(Base):
    """Staff configuration needed for availability: the working weekdays."""

    __tablename__ = "staff"

    id = Column(String(36), primary_key=True)
    tenant_id = Column(String(36), nullable=False, index=True)
    working_days = Column(JSON, nullable=False, default=list)
    deleted_at = Column(DateTime, nullable=True)


class TimeOffRow(Base):
    """Breaks, vacations and other absences of a staff member."""

    __tablename__ = "staff_time_ranges"

    id = Column(String(36), primary_key=True)
    tenant_id = Column(String(36), nullable=False)
    staff_id = Column(String(36), nullable=False)
    type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=TimeOffStatus.APPROVED.value)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=True)
    end_time = Column(String(5), nullable=True)
    description = Column(Text, nullable=True)
    is_recurring = Column(Boolean, nullable=False, default=False)
    recurring_days = Column(JSON, nullable=True)
    recurring_end_date = Column(Date, nullable=True)
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_staff_time_range_staff_id", "tenant_id", "staff_id"),
        Index("idx_staff_time_range_date_range", "start_date", "end_date"),
    )


class AppointmentRow(Base):
    """Appointment rows; only the columns the engine reads or writes."""

    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True)
    tenant_id = Column(String(36), nullable=False)
    staff_id = Column(String(36), nullable=False)
    patient_id = Column(String(36), nullable=True)
    date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    status = Column(String(20), nullable=False, default=AppointmentStatus.PENDING.value)
    created_via = Column(String(30), nullable=False, default="staff")
    notes = Column(Text, nullable=True)
    rescheduled_from_id = Column(String(36), nullable=True)
    created_at = Column(DateTime, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index(
            SLOT_INDEX_NAME,
            "tenant_id",
            "staff_id",
            "date",
            "start_time",
            unique=True,
            sqlite_where=ACTIVE_APPOINTMENT_CLAUSE,
            postgresql_where=ACTIVE_APPOINTMENT_CLAUSE,
        ),
        Index("idx_appointment_staff_date", "tenant_id", "staff_id", "date"),
    )


def create_store_engine(database_url: str) -> Engine:
    """Create an engine; SQLite connections are shared across worker threads."""
    connect_args = {}
    if make_url(database_url).get_backend_name() == "sqlite":
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(database_url, connect_args=connect_args)


def _active_appointments():
    return and_(
        AppointmentRow.deleted_at.is_(None),
        AppointmentRow.status.not_in(_RELEASING_VALUES),
    )


def _to_appointment(row: AppointmentRow) -> Appointment:
    return Appointment(
        id=row.id,
        tenant_id=row.tenant_id,
        staff_id=row.staff_id,
        date=row.date,
        start_time=row.start_time,
        end_time=row.end_time,
        status=row.status,
        patient_id=row.patient_id,
        notes=row.notes,
        created_via=row.created_via,
        rescheduled_from_id=row.rescheduled_from_id,
        created_at=row.created_at,
        deleted_at=row.deleted_at,
    )


def _to_time_off(row: TimeOffRow) -> TimeOffRange:
    return TimeOffRange(
        id=row.id,
        staff_id=row.staff_id,
        tenant_id=row.tenant_id,
        type=row.type,
        status=row.status,
        start_date=row.start_date,
        end_date=row.end_date,
        start_time=row.start_time,
        end_time=row.end_time,
        is_recurring=bool(row.is_recurring),
        recurring_days=frozenset(row.recurring_days or ()),
        recurring_end_date=row.recurring_end_date,
        description=row.description,
        deleted_at=row.deleted_at,
    )


def _new_row(booking: BookingRequest) -> AppointmentRow:
    return AppointmentRow(
        id=str(uuid.uuid4()),
        tenant_id=booking.tenant_id,
        staff_id=booking.staff_id,
        patient_id=booking.patient_id,
        date=booking.date,
        start_time=booking.start_time,
        end_time=booking.end_time,
        status=AppointmentStatus(booking.status).value,
        created_via=booking.created_via,
        notes=booking.notes,
        rescheduled_from_id=booking.rescheduled_from_id,
        created_at=datetime.now(timezone.utc).replace(tzinfo=None),
    )


def _is_slot_violation(error: IntegrityError) -> bool:
    """Tell a slot-index violation apart from other integrity failures."""
    orig = getattr(error, "orig", None)
    diag = getattr(orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", None) if diag is not None else None
    if constraint_name:
        return constraint_name == SLOT_INDEX_NAME

    message = str(orig if orig is not None else error)
    # SQLite names the columns rather than the index.
    return SLOT_INDEX_NAME in message or "appointments.start_time" in message


class SqlScheduleStore:
    """
    Implements the staff, time-off, appointment and booking repositories.

    Each call opens its own session; blocking driver work runs in a worker
    thread so the async façade never blocks its event loop.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: str) -> "SqlScheduleStore":
        return cls(create_store_engine(database_url))

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    def session(self) -> Session:
        return self._session_factory()

    # ------------------------------------------------------------------
    # Seeding helpers (staff management lives elsewhere)

    def add_staff(self, staff_id: str, tenant_id: str, working_days: List[int]) -> None:
        with self.session() as session:
            session.add(StaffRow(id=staff_id, tenant_id=tenant_id, working_days=list(working_days)))
            session.commit()

    def add_time_off(self, time_off: TimeOffRange) -> str:
        row_id = time_off.id or str(uuid.uuid4())
        with self.session() as session:
            session.add(
                TimeOffRow(
                    id=row_id,
                    tenant_id=time_off.tenant_id,
                    staff_id=time_off.staff_id,
                    type=time_off.type.value,
                    status=time_off.status.value,
                    start_date=time_off.start_date,
                    end_date=time_off.end_date,
                    start_time=time_off.start_time,
                    end_time=time_off.end_time,
                    description=time_off.description,
                    is_recurring=time_off.is_recurring,
                    recurring_days=sorted(time_off.recurring_days) or None,
                    recurring_end_date=time_off.recurring_end_date,
                    deleted_at=time_off.deleted_at,
                )
            )
            session.commit()
        return row_id

    async def save_time_off(self, time_off: TimeOffRange) -> TimeOffRange:
        row_id = await asyncio.to_thread(self.add_time_off, time_off)
        return replace(time_off, id=row_id)

    def soft_delete_appointment(self, appointment_id: str) -> None:
        with self.session() as session:
            row = session.get(AppointmentRow, appointment_id)
            if row is None:
                raise AppointmentNotFound(f"Appointment {appointment_id} not found")
            row.deleted_at = datetime.now(timezone.utc).replace(tzinfo=None)
            session.commit()

    # ------------------------------------------------------------------
    # Read side

    async def get_working_days(self, staff_id: str, tenant_id: str) -> List[int]:
        return await asyncio.to_thread(self._read, self._get_working_days, staff_id, tenant_id)

    async def list_approved(
        self,
        staff_id: str,
        tenant_id: str,
        date_from: date,
        date_to: date,
    ) -> List[TimeOffRange]:
        return await asyncio.to_thread(
            self._read, self._list_approved, staff_id, tenant_id, date_from, date_to
        )

    async def list_for_staff(
        self,
        staff_id: str,
        tenant_id: str,
        date_from: date,
        date_to: date,
    ) -> List[AppointmentSlotRef]:
        return await asyncio.to_thread(
            self._read, self._list_for_staff, staff_id, tenant_id, date_from, date_to
        )

    def _read(self, query, *args):
        try:
            return query(*args)
        except SQLAlchemyError as exc:
            logger.warning("Schedule store read failed: %s", exc)
            raise SourceUnavailable(f"Schedule store read failed: {exc}") from exc

    def _get_working_days(self, staff_id: str, tenant_id: str) -> List[int]:
        with self.session() as session:
            row = session.execute(
                select(StaffRow).where(
                    StaffRow.id == staff_id,
                    StaffRow.tenant_id == tenant_id,
                    StaffRow.deleted_at.is_(None),
                )
            ).scalar_one_or_none()

        if row is None:
            raise StaffNotFound(f"Staff {staff_id} not found for tenant {tenant_id}")
        return [int(day) for day in row.working_days or []]

    def _list_approved(
        self,
        staff_id: str,
        tenant_id: str,
        date_from: date,
        date_to: date,
    ) -> List[TimeOffRange]:
        statement = select(TimeOffRow).where(
            TimeOffRow.staff_id == staff_id,
            TimeOffRow.tenant_id == tenant_id,
            TimeOffRow.deleted_at.is_(None),
            TimeOffRow.status == TimeOffStatus.APPROVED.value,
            TimeOffRow.start_date <= date_to,
            or_(
                and_(TimeOffRow.is_recurring.is_(True), TimeOffRow.recurring_end_date >= date_from),
                and_(TimeOffRow.is_recurring.is_(False), TimeOffRow.end_date >= date_from),
            ),
        )
        with self.session() as session:
            rows = session.execute(statement).scalars().all()
        return [_to_time_off(row) for row in rows]

    def _list_for_staff(
        self,
        staff_id: str,
        tenant_id: str,
        date_from: date,
        date_to: date,
    ) -> List[AppointmentSlotRef]:
        statement = (
            select(AppointmentRow)
            .where(
                AppointmentRow.staff_id == staff_id,
                AppointmentRow.tenant_id == tenant_id,
                AppointmentRow.date >= date_from,
                AppointmentRow.date <= date_to,
                _active_appointments(),
            )
            .order_by(AppointmentRow.date, AppointmentRow.start_time)
        )
        with self.session() as session:
            rows = session.execute(statement).scalars().all()
        return [_to_appointment(row).to_slot_ref() for row in rows]

    # ------------------------------------------------------------------
    # Write side

    async def find_slot_holder(
        self,
        tenant_id: str,
        staff_id: str,
        day: date,
        start_time: str,
    ) -> Optional[Appointment]:
        return await asyncio.to_thread(self._find_slot_holder, tenant_id, staff_id, day, start_time)

    async def insert_if_free(self, booking: BookingRequest) -> Appointment:
        return await asyncio.to_thread(self._insert_if_free, booking)

    async def get_appointment(self, appointment_id: str, tenant_id: str) -> Optional[Appointment]:
        return await asyncio.to_thread(self._get_appointment, appointment_id, tenant_id)

    async def supersede(
        self,
        original_id: str,
        tenant_id: str,
        booking: BookingRequest,
    ) -> Appointment:
        return await asyncio.to_thread(self._supersede, original_id, tenant_id, booking)

    def _find_slot_holder(
        self,
        tenant_id: str,
        staff_id: str,
        day: date,
        start_time: str,
    ) -> Optional[Appointment]:
        statement = select(AppointmentRow).where(
            AppointmentRow.tenant_id == tenant_id,
            AppointmentRow.staff_id == staff_id,
            AppointmentRow.date == day,
            AppointmentRow.start_time == start_time,
            _active_appointments(),
        )
        with self.session() as session:
            row = session.execute(statement).scalars().first()
        return _to_appointment(row) if row is not None else None

    def _insert_if_free(self, booking: BookingRequest) -> Appointment:
        row = _new_row(booking)
        with self.session() as session:
            session.add(row)
            self._commit_booking(session, booking)
        return _to_appointment(row)

    def _get_appointment(self, appointment_id: str, tenant_id: str) -> Optional[Appointment]:
        with self.session() as session:
            row = session.execute(
                select(AppointmentRow).where(
                    AppointmentRow.id == appointment_id,
                    AppointmentRow.tenant_id == tenant_id,
                    AppointmentRow.deleted_at.is_(None),
                )
            ).scalar_one_or_none()
        return _to_appointment(row) if row is not None else None

    def _supersede(self, original_id: str, tenant_id: str, booking: BookingRequest) -> Appointment:
        row = _new_row(booking)
        with self.session() as session:
            # The status guard lets exactly one concurrent reschedule release the original.
            released = session.execute(
                update(AppointmentRow)
                .where(
                    AppointmentRow.id == original_id,
                    AppointmentRow.tenant_id == tenant_id,
                    _active_appointments(),
                )
                .values(status=AppointmentStatus.RESCHEDULED.value)
                .execution_options(synchronize_session=False)
            )
            if released.rowcount != 1:
                session.rollback()
                raise AppointmentNotFound(f"Appointment {original_id} not found")

            session.add(row)
            self._commit_booking(session, booking)
        return _to_appointment(row)

    @staticmethod
    def _commit_booking(session: Session, booking: BookingRequest) -> None:
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            if not _is_slot_violation(exc):
                raise
            raise SlotConflict(
                booking.tenant_id,
                booking.staff_id,
                booking.date,
                booking.start_time,
            ) from exc
