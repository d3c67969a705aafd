"""
Tests for slot calculator.
"""

import pytest

from clinicslots.domain.exceptions import InvalidRange
from clinicslots.domain.models import TimeRange, TimeSlot, WorkingHours
from clinicslots.domain.slot_calculator import SlotCalculator, validate_slot_duration


class TestSlotCalculator:
    """Tests for SlotCalculator."""

    def test_generate_slots_full_day(self):
        """Test an 8 hour day in 30 minute steps."""
        calculator = SlotCalculator(slot_duration_minutes=30)

        slots = calculator.generate_slots(WorkingHours.from_strings("09:00", "17:00"))

        assert len(slots) == 16
        assert str(slots[0]) == "09:00-09:30"
        assert str(slots[-1]) == "16:30-17:00"

    def test_slots_are_contiguous(self):
        """Each slot starts where the previous one ended."""
        calculator = SlotCalculator(slot_duration_minutes=45)

        slots = calculator.generate_slots(WorkingHours.from_strings("09:00", "17:00"))

        for previous, current in zip(slots, slots[1:]):
            assert previous.end == current.start
            assert not TimeRange(previous.start, previous.end).overlaps(TimeRange(current.start, current.end))

    def test_last_slot_is_truncated(self):
        """Test that the final slot ends exactly at closing time."""
        calculator = SlotCalculator(slot_duration_minutes=45)

        slots = calculator.generate_slots(WorkingHours.from_strings("09:00", "10:00"))

        assert slots == [TimeSlot(540, 585), TimeSlot(585, 600)]
        assert slots[-1].duration_minutes == 15

    def test_empty_window_yields_no_slots(self):
        calculator = SlotCalculator(slot_duration_minutes=30)

        assert calculator.generate_slots(WorkingHours.from_strings("09:00", "09:00")) == []
        assert calculator.generate_slots(WorkingHours.from_strings("17:00", "09:00")) == []

    def test_non_positive_duration_rejected(self):
        with pytest.raises(InvalidRange):
            SlotCalculator(slot_duration_minutes=0)

    def test_split_available(self):
        """Test filtering slots against blocked ranges."""
        calculator = SlotCalculator(slot_duration_minutes=30)
        slots = calculator.generate_slots(WorkingHours.from_strings("09:00", "11:00"))
        blocked = [TimeRange.from_strings("09:45", "10:00")]

        available, removed = calculator.split_available(slots, blocked)

        assert [str(slot) for slot in available] == ["09:00-09:30", "10:00-10:30", "10:30-11:00"]
        assert [str(slot) for slot in removed] == ["09:30-10:00"]

    def test_adjacent_block_keeps_neighbours(self):
        """Test that a block ending at a slot start leaves that slot free."""
        calculator = SlotCalculator(slot_duration_minutes=30)
        slots = calculator.generate_slots(WorkingHours.from_strings("09:00", "11:00"))

        available, removed = calculator.split_available(slots, [TimeRange.from_strings("09:30", "10:00")])

        assert len(available) == 3
        assert removed == [TimeSlot(570, 600)]


class TestValidateSlotDuration:
    """Tests for the public duration bounds."""

    @pytest.mark.parametrize("minutes", [5, 30, 480])
    def test_accepted(self, minutes):
        assert validate_slot_duration(minutes) == minutes

    @pytest.mark.parametrize("minutes", [0, 4, 481, -30])
    def test_out_of_bounds(self, minutes):
        with pytest.raises(InvalidRange):
            validate_slot_duration(minutes)

    @pytest.mark.parametrize("minutes", [30.0, "30", True])
    def test_non_integer(self, minutes):
        with pytest.raises(InvalidRange):
            validate_slot_duration(minutes)
