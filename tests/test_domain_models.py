"""
Tests for domain models.
"""

from datetime import date, datetime

import pytest

from clinicslots.domain.exceptions import InvalidRange, InvalidTimeFormat
from clinicslots.domain.models import (
    Appointment,
    AppointmentSlotRef,
    AppointmentStatus,
    Conflict,
    ConflictType,
    TimeOffRange,
    TimeOffStatus,
    TimeOffType,
    TimeRange,
    TimeSlot,
    WorkingHours,
)
from clinicslots.domain.predicates import holds_slot, is_active_appointment, is_active_time_off


def _time_off(**overrides) -> TimeOffRange:
    values = dict(
        staff_id="dr-lee",
        tenant_id="clinic-1",
        type=TimeOffType.VACATION,
        start_date=date(2024, 11, 25),
        end_date=date(2024, 11, 29),
    )
    values.update(overrides)
    return TimeOffRange(**values)


class TestTimeRange:
    """Tests for TimeRange model."""

    def test_create_valid_time_range(self):
        """Test creating a valid time range."""
        tr = TimeRange.from_strings("09:00", "17:00")

        assert tr.start == 540
        assert tr.end == 1020
        assert tr.duration_minutes() == 480  # 8 hours
        assert str(tr) == "09:00-17:00"

    def test_invalid_time_range_raises_error(self):
        """Test that creating an invalid time range raises InvalidRange."""
        with pytest.raises(InvalidRange, match="Start time .* must be before end time"):
            TimeRange.from_strings("17:00", "09:00")

    def test_empty_time_range_raises_error(self):
        with pytest.raises(InvalidRange):
            TimeRange.from_strings("10:00", "10:00")

    def test_overlaps(self):
        """Test overlap detection."""
        tr1 = TimeRange.from_strings("09:00", "12:00")
        tr2 = TimeRange.from_strings("11:00", "14:00")
        tr3 = TimeRange.from_strings("12:00", "17:00")

        assert tr1.overlaps(tr2)
        assert tr2.overlaps(tr1)
        assert not tr1.overlaps(tr3)


class TestWorkingHours:
    """Tests for WorkingHours model."""

    def test_from_strings(self):
        hours = WorkingHours.from_strings("08:30", "16:00")

        assert hours.start == 510
        assert hours.end == 960
        assert hours.to_dict() == {"start": "08:30", "end": "16:00"}

    def test_inverted_window_is_allowed(self):
        """An inverted window is representable; it just produces no slots."""
        hours = WorkingHours.from_strings("17:00", "09:00")
        assert hours.start > hours.end

    def test_bad_format_raises(self):
        with pytest.raises(InvalidTimeFormat):
            WorkingHours.from_strings("9am", "17:00")


class TestTimeSlot:
    """Tests for TimeSlot model."""

    def test_to_dict(self):
        slot = TimeSlot(start=540, end=570)

        assert slot.to_dict() == {"start_time": "09:00", "end_time": "09:30", "duration": 30}
        assert str(slot) == "09:00-09:30"


class TestTimeOffRange:
    """Tests for TimeOffRange invariants."""

    def test_full_day_range(self):
        time_off = _time_off()

        assert time_off.is_full_day
        assert time_off.time_range() == TimeRange(start=0, end=1440)
        assert time_off.status is TimeOffStatus.APPROVED

    def test_partial_day_range(self):
        time_off = _time_off(type="break", start_time="12:00", end_time="12:30", description="Coffee")

        assert not time_off.is_full_day
        assert time_off.type is TimeOffType.BREAK
        assert time_off.time_range() == TimeRange.from_strings("12:00", "12:30")
        assert time_off.describe() == "break: Coffee"

    def test_description_fallback(self):
        assert _time_off().describe() == "vacation: No description"

    def test_start_after_end_date_raises(self):
        with pytest.raises(InvalidRange):
            _time_off(start_date=date(2024, 11, 29), end_date=date(2024, 11, 25))

    def test_only_one_time_bound_raises(self):
        with pytest.raises(InvalidRange):
            _time_off(start_time="12:00")

    def test_inverted_times_raise(self):
        with pytest.raises(InvalidRange):
            _time_off(start_time="13:00", end_time="12:00")

    def test_recurring_requires_days(self):
        with pytest.raises(InvalidRange, match="recurring_days"):
            _time_off(is_recurring=True, recurring_end_date=date(2024, 12, 31))

    def test_recurring_requires_end_date(self):
        with pytest.raises(InvalidRange, match="recurring_end_date"):
            _time_off(is_recurring=True, recurring_days=[1, 3])

    def test_recurring_days_must_be_iso_weekdays(self):
        with pytest.raises(InvalidRange, match="between 1 and 7"):
            _time_off(is_recurring=True, recurring_days=[0, 3], recurring_end_date=date(2024, 12, 31))

    def test_recurring_end_before_end_date_raises(self):
        with pytest.raises(InvalidRange):
            _time_off(is_recurring=True, recurring_days=[1], recurring_end_date=date(2024, 11, 26))

    def test_effective_end_date(self):
        recurring = _time_off(
            end_date=date(2024, 11, 25),
            is_recurring=True,
            recurring_days=[1],
            recurring_end_date=date(2024, 12, 31),
        )

        assert recurring.effective_end_date == date(2024, 12, 31)
        assert recurring.recurring_days == frozenset({1})
        assert _time_off().effective_end_date == date(2024, 11, 29)


class TestAppointments:
    """Tests for appointment models."""

    def test_slot_ref_describe(self):
        ref = AppointmentSlotRef(
            staff_id="dr-lee",
            tenant_id="clinic-1",
            date=date(2024, 11, 26),
            start_time="10:00",
            end_time="10:30",
        )

        assert ref.describe() == "Appointment with Patient"
        assert ref.time_range() == TimeRange.from_strings("10:00", "10:30")

    def test_appointment_coerces_status(self):
        appointment = Appointment(
            id="a1",
            tenant_id="clinic-1",
            staff_id="dr-lee",
            date=date(2024, 11, 26),
            start_time="10:00",
            end_time="10:30",
            status="confirmed",
            patient_id="Maria Rossi",
        )

        assert appointment.status is AppointmentStatus.CONFIRMED
        assert appointment.slot_key() == ("clinic-1", "dr-lee", date(2024, 11, 26), "10:00")
        assert appointment.to_slot_ref().describe() == "Appointment with Maria Rossi"

    def test_conflict_to_dict(self):
        conflict = Conflict(
            type=ConflictType.APPOINTMENT,
            start=600,
            end=630,
            description="Appointment with Patient",
        )

        assert conflict.to_dict() == {
            "type": "appointment",
            "start_time": "10:00",
            "end_time": "10:30",
            "description": "Appointment with Patient",
        }
        assert conflict.overlaps(615, 645)
        assert not conflict.overlaps(630, 660)


class TestVisibilityPredicates:
    """Tests for the shared status and soft-delete filters."""

    def _ref(self, **overrides) -> AppointmentSlotRef:
        values = dict(
            staff_id="dr-lee",
            tenant_id="clinic-1",
            date=date(2024, 11, 26),
            start_time="10:00",
            end_time="10:30",
        )
        values.update(overrides)
        return AppointmentSlotRef(**values)

    @pytest.mark.parametrize(
        "status, visible",
        [
            ("pending", True),
            ("confirmed", True),
            ("finished", True),
            ("no_show", True),
            ("cancelled", False),
            ("rescheduled", False),
        ],
    )
    def test_releasing_statuses_free_the_slot(self, status, visible):
        assert holds_slot(self._ref(status=status)) is visible

    def test_soft_deleted_appointment_is_hidden(self):
        assert not holds_slot(self._ref(deleted_at=datetime(2024, 11, 1)))

    def test_appointment_outside_window_is_hidden(self):
        assert not is_active_appointment(self._ref(), date(2024, 11, 27), date(2024, 11, 30))
        assert is_active_appointment(self._ref(), date(2024, 11, 26), date(2024, 11, 26))

    @pytest.mark.parametrize("status", ["pending", "rejected", "cancelled"])
    def test_only_approved_time_off_is_active(self, status):
        assert not is_active_time_off(_time_off(status=status), date(2024, 11, 25), date(2024, 11, 29))

    def test_soft_deleted_time_off_is_hidden(self):
        time_off = _time_off(deleted_at=datetime(2024, 11, 1))
        assert not is_active_time_off(time_off, date(2024, 11, 25), date(2024, 11, 29))

    def test_recurring_time_off_window_uses_recurring_end(self):
        time_off = _time_off(
            end_date=date(2024, 11, 25),
            is_recurring=True,
            recurring_days=[1],
            recurring_end_date=date(2024, 12, 31),
        )

        assert is_active_time_off(time_off, date(2024, 12, 16), date(2024, 12, 20))
        assert not is_active_time_off(time_off, date(2025, 1, 6), date(2025, 1, 10))
