# backend/charterbook/core/enums.py
"""
Core enums for Charterbook.

Booking and payment statuses live next to the Booking model; the enums
here are shared by several models and services.
"""

from enum import Enum


class ActorType(str, Enum):
    """Who caused a change recorded in the booking log."""

    CAPTAIN = "captain"
    GUEST = "guest"
    SYSTEM = "system"


class RequestedBy(str, Enum):
    """Origin of a modification request; drives the auto-approval policy."""

    GUEST = "guest"
    CAPTAIN = "captain"


class ModificationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ModificationType(str, Enum):
    DATE_TIME = "date_time"
    PARTY_SIZE = "party_size"
    BOTH = "both"


class LogEntryType(str, Enum):
    """Entry types written to the append-only booking log."""

    BOOKING_CREATED = "booking_created"
    STATUS_CHANGED = "status_changed"
    PAYMENT_RECEIVED = "payment_received"
    PAYMENT_REFUNDED = "payment_refunded"
    PAYMENT_FAILED = "payment_failed"
    RESCHEDULED = "rescheduled"
    WEATHER_HOLD_SET = "weather_hold_set"
    WEATHER_HOLD_CLEARED = "weather_hold_cleared"
    MODIFICATION_REQUESTED = "modification_requested"
    MODIFICATION_APPROVED = "modification_approved"
    MODIFICATION_REJECTED = "modification_rejected"
    TRANSITION_REJECTED = "transition_rejected"
    GUEST_COMMUNICATION = "guest_communication"


class WeatherVerdict(str, Enum):
    SAFE = "safe"
    CAUTION = "caution"
    DANGEROUS = "dangerous"

    @property
    def is_unsafe(self) -> bool:
        return self is not WeatherVerdict.SAFE
