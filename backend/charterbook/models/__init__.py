# backend/charterbook/models/__init__.py
"""
Database models for Charterbook.

Importing this package registers every table on ``Base.metadata``.
"""

from .availability import AvailabilityWindow, BlackoutDate
from .booking import (
    ACTIVE_STATUSES,
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    Booking,
    BookingStatus,
    PaymentStatus,
    can_transition,
)
from .booking_log import BookingLog
from .booking_modification import BookingModificationRequest
from .captain import CaptainProfile, TripType, Vessel
from .reschedule_offer import RescheduleOffer

__all__ = [
    "ACTIVE_STATUSES",
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATUSES",
    "AvailabilityWindow",
    "BlackoutDate",
    "Booking",
    "BookingLog",
    "BookingModificationRequest",
    "BookingStatus",
    "CaptainProfile",
    "PaymentStatus",
    "RescheduleOffer",
    "TripType",
    "Vessel",
    "can_transition",
]
