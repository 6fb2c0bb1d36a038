# backend/charterbook/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

External clients (payment gateway, weather client, notification sender) are
process-wide singletons; services are built per request around the
request's database session.
"""

from functools import lru_cache
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...integrations.payment_gateway import PaymentGateway, build_payment_gateway
from ...integrations.weather_client import WeatherClient, build_weather_client
from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService
from ...services.expiration_service import ExpirationService
from ...services.modification_service import ModificationService
from ...services.notification_service import NotificationService
from ...services.reminder_service import ReminderService
from ...services.weather_service import WeatherService
from .database import get_db

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_payment_gateway() -> PaymentGateway:
    """Get singleton payment gateway."""
    return build_payment_gateway()


@lru_cache(maxsize=1)
def get_weather_client() -> WeatherClient:
    return build_weather_client()


@lru_cache(maxsize=1)
def get_notification_service() -> NotificationService:
    return NotificationService()


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


def get_booking_service(
    db: Session = Depends(get_db),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
    notification_service: NotificationService = Depends(get_notification_service),
) -> BookingService:
    """
    Get booking service instance.

    Args:
        db: Database session
        payment_gateway: Processor used for deposits and refunds
        notification_service: Guest and captain messaging

    Returns:
        BookingService instance
    """
    return BookingService(
        db, payment_gateway=payment_gateway, notification_service=notification_service
    )


def get_modification_service(
    db: Session = Depends(get_db),
    booking_service: BookingService = Depends(get_booking_service),
) -> ModificationService:
    return ModificationService(db, booking_service=booking_service)


def get_expiration_service(db: Session = Depends(get_db)) -> ExpirationService:
    return ExpirationService(db)


def get_weather_service(
    db: Session = Depends(get_db),
    booking_service: BookingService = Depends(get_booking_service),
    weather_client: WeatherClient = Depends(get_weather_client),
) -> WeatherService:
    return WeatherService(db, booking_service=booking_service, weather_client=weather_client)


def get_reminder_service(
    db: Session = Depends(get_db),
    booking_service: BookingService = Depends(get_booking_service),
) -> ReminderService:
    return ReminderService(db, booking_service=booking_service)
