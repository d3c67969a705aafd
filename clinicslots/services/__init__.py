"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability_service import AvailabilityRequest, AvailabilityService
from .booking_guard import BookingGuard
from .time_off_service import TimeOffService

__all__ = ["AvailabilityRequest", "AvailabilityService", "BookingGuard", "TimeOffService"]
