"""Application-wide constants for Charterbook."""

from __future__ import annotations

BRAND_NAME = "Charterbook"
API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = "Charter trip bookings: availability, lifecycle, payments and weather holds"
API_VERSION = "1.0.0"

# Slot generation
SLOT_STEP_MINUTES = 30
DEFAULT_BUFFER_MINUTES = 60
DEFAULT_ADVANCE_BOOKING_DAYS = 60
DEFAULT_TIMEZONE = "America/New_York"

# Booking constraints
MAX_PARTY_SIZE = 6
MIN_PARTY_SIZE = 1

# Guest access
MANAGEMENT_TOKEN_LENGTH = 32
MANAGEMENT_TOKEN_TTL_DAYS = 7  # counted from scheduled_start
CONFIRMATION_CODE_LENGTH = 6
CONFIRMATION_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

# Blackouts
MAX_BLACKOUT_RANGE_DAYS = 60

# Weather holds
RESCHEDULE_OFFER_WEEKS = (1, 2, 3)
RESCHEDULE_OFFER_TTL_DAYS = 14
WEATHER_CHECK_WINDOW_START_HOURS = 24
WEATHER_CHECK_WINDOW_END_HOURS = 48

# Reminders
DEPOSIT_REMINDER_AFTER_HOURS = 24
# Trips starting within these many hours get the matching reminder
TRIP_REMINDER_24H_HOURS = 24
TRIP_REMINDER_48H_HOURS = 48

# Cancellation policy defaults (trip types may override)
DEFAULT_CANCELLATION_POLICY_HOURS = 24
DEFAULT_CANCELLATION_REFUND_PERCENTAGE = 100

# Text constraints
MAX_REASON_LENGTH = 500

# Query limits
DEFAULT_QUERY_LIMIT = 100
