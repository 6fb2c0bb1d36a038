# backend/charterbook/api/dependencies/__init__.py
"""
Central export point for all dependencies.
"""

from .auth import get_current_captain, verify_cron_secret
from .database import get_db
from .services import (
    get_availability_service,
    get_booking_service,
    get_expiration_service,
    get_modification_service,
    get_notification_service,
    get_payment_gateway,
    get_reminder_service,
    get_weather_client,
    get_weather_service,
)

__all__ = [
    # Auth
    "get_current_captain",
    "verify_cron_secret",
    # Database
    "get_db",
    # Services
    "get_availability_service",
    "get_booking_service",
    "get_expiration_service",
    "get_modification_service",
    "get_notification_service",
    "get_payment_gateway",
    "get_reminder_service",
    "get_weather_client",
    "get_weather_service",
]
