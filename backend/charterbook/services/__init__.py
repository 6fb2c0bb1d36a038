# backend/charterbook/services/__init__.py
"""
Service layer for Charterbook.

Services hold the business rules and own transaction boundaries; they read
and write through repositories.
"""

from .availability_service import AvailabilityService, DayAvailability, Slot
from .base import BaseService
from .booking_service import BookingService
from .conflict_checker import ConflictChecker, ranges_overlap
from .expiration_service import ExpirationService
from .modification_service import ModificationService
from .notification_service import NotificationService
from .refund_policy import RefundDecision, RefundPolicy
from .reminder_service import ReminderService
from .weather_service import WeatherCheckOutcome, WeatherService

__all__ = [
    "AvailabilityService",
    "BaseService",
    "BookingService",
    "ConflictChecker",
    "DayAvailability",
    "ExpirationService",
    "ModificationService",
    "NotificationService",
    "RefundDecision",
    "RefundPolicy",
    "ReminderService",
    "Slot",
    "WeatherCheckOutcome",
    "WeatherService",
    "ranges_overlap",
]
