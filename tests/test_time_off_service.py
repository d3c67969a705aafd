"""
Tests for TimeOffService overlap checks on every backend.
"""

import asyncio
import logging
from datetime import date

import pytest

from clinicslots.domain.exceptions import StaffNotFound, TimeOffConflict
from clinicslots.domain.models import TimeOffRange, TimeOffStatus, TimeOffType
from clinicslots.services.time_off_service import TimeOffService

TENANT = "clinic-1"
STAFF = "dr-lee"
MONDAY = date(2024, 11, 25)
TUESDAY = date(2024, 11, 26)
WEDNESDAY = date(2024, 11, 27)


def _range(start_time="12:00", end_time="13:00", day=TUESDAY, **overrides) -> TimeOffRange:
    values = dict(
        staff_id=STAFF,
        tenant_id=TENANT,
        type=TimeOffType.LUNCH,
        start_date=day,
        end_date=day,
        start_time=start_time,
        end_time=end_time,
    )
    values.update(overrides)
    return TimeOffRange(**values)


def _create(service: TimeOffService, time_off: TimeOffRange) -> TimeOffRange:
    return asyncio.run(service.create_time_off(time_off))


def _approved(store, date_from=MONDAY, date_to=date(2024, 12, 31)):
    return asyncio.run(store.list_approved(STAFF, TENANT, date_from, date_to))


class TestCreateTimeOff:
    """Tests for create_time_off."""

    def test_saves_and_assigns_id(self, time_off_store):
        service = TimeOffService(time_off_store)

        saved = _create(service, _range(description="Team lunch"))

        assert saved.id
        assert [time_off.id for time_off in _approved(time_off_store)] == [saved.id]
        assert _approved(time_off_store)[0].description == "Team lunch"

    def test_overlapping_window_is_rejected(self, time_off_store):
        """12:30-13:30 shares half an hour with the saved 12:00-13:00 range."""
        service = TimeOffService(time_off_store)
        existing = _create(service, _range())

        with pytest.raises(TimeOffConflict) as exc_info:
            _create(service, _range("12:30", "13:30", type=TimeOffType.BREAK))

        assert [clash.id for clash in exc_info.value.clashes] == [existing.id]
        assert len(_approved(time_off_store)) == 1

    def test_adjacent_window_is_saved(self, time_off_store):
        service = TimeOffService(time_off_store)
        _create(service, _range("12:00", "13:00"))

        _create(service, _range("13:00", "14:00", type=TimeOffType.BREAK))

        assert len(_approved(time_off_store)) == 2

    def test_same_window_on_another_day_is_saved(self, time_off_store):
        service = TimeOffService(time_off_store)
        _create(service, _range(day=TUESDAY))

        _create(service, _range(day=WEDNESDAY))

        assert len(_approved(time_off_store)) == 2

    def test_full_day_clashes_with_any_window(self, time_off_store):
        service = TimeOffService(time_off_store)
        _create(service, _range(day=WEDNESDAY))

        with pytest.raises(TimeOffConflict):
            _create(
                service,
                _range(
                    None,
                    None,
                    type=TimeOffType.VACATION,
                    start_date=MONDAY,
                    end_date=date(2024, 11, 29),
                ),
            )

    def test_recurring_pattern_is_expanded(self, time_off_store):
        """A weekly Monday/Wednesday lunch clashes with a one-off break on a later Wednesday."""
        service = TimeOffService(time_off_store)
        _create(
            service,
            _range(
                day=MONDAY,
                is_recurring=True,
                recurring_days=frozenset({1, 3}),
                recurring_end_date=date(2024, 12, 31),
            ),
        )

        with pytest.raises(TimeOffConflict):
            _create(service, _range("12:45", "13:15", day=date(2024, 12, 11), type=TimeOffType.BREAK))

        _create(service, _range("12:45", "13:15", day=date(2024, 12, 10), type=TimeOffType.BREAK))

    def test_pending_time_off_does_not_clash(self, time_off_store):
        service = TimeOffService(time_off_store)
        _create(service, _range(status=TimeOffStatus.PENDING))

        saved = _create(service, _range(type=TimeOffType.BREAK))

        assert [time_off.id for time_off in _approved(time_off_store)] == [saved.id]

    def test_other_staff_does_not_clash(self, time_off_store):
        time_off_store.add_staff("dr-novak", TENANT, [1, 3, 5])
        service = TimeOffService(time_off_store)
        _create(service, _range(day=WEDNESDAY))

        _create(service, _range(day=WEDNESDAY, staff_id="dr-novak"))

    def test_unknown_staff(self, time_off_store):
        service = TimeOffService(time_off_store)

        with pytest.raises(StaffNotFound):
            _create(service, _range(staff_id="dr-nobody"))

        assert _approved(time_off_store) == []

    def test_rejection_is_logged(self, time_off_store, caplog):
        service = TimeOffService(time_off_store)
        _create(service, _range())

        with caplog.at_level(logging.WARNING, logger="clinicslots.services.time_off_service"):
            with pytest.raises(TimeOffConflict):
                _create(service, _range())

        assert "Rejected lunch for staff dr-lee" in caplog.text
