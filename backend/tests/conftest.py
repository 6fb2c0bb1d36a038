# backend/tests/conftest.py
"""
Pytest configuration for Charterbook.

Tests run against an in-memory SQLite database shared through a StaticPool.
Each test gets a session joined to an outer transaction; service commits
only release savepoints, and the outer transaction is rolled back after the
test so every test starts from an empty schema.
"""

import os

# Settings are read at import time; point them at safe test values first.
os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["PAYMENT_GATEWAY"] = "fake"
os.environ["EMAIL_PROVIDER"] = "console"
os.environ["WEATHER_PROVIDER"] = "fake"

import asyncio
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator, List, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from charterbook.core.constants import MANAGEMENT_TOKEN_TTL_DAYS
from charterbook.core.timezone_utils import ensure_utc, local_today, localize
from charterbook.core.tokens import generate_confirmation_code, generate_management_token
from charterbook.database import Base
from charterbook.integrations.payment_gateway import FakePaymentGateway
from charterbook.integrations.weather_client import FakeWeatherClient
from charterbook.models import (
    AvailabilityWindow,
    Booking,
    BookingStatus,
    CaptainProfile,
    PaymentStatus,
    TripType,
    Vessel,
)
from charterbook.services.availability_service import AvailabilityService
from charterbook.services.booking_service import BookingService
from charterbook.services.modification_service import ModificationService
from charterbook.services.notification_service import (
    ConsoleNotificationSender,
    NotificationService,
)

CAPTAIN_TZ = "America/New_York"

# A Tuesday well inside the default 60-day horizon of NOW.
NOW = datetime(2030, 6, 3, 12, 0, tzinfo=timezone.utc)  # Monday
TRIP_DATE = date(2030, 6, 11)  # Tuesday


def local_dt(day: date, hour: int, minute: int = 0, tz_name: str = CAPTAIN_TZ) -> datetime:
    """Captain-local wall-clock time as an aware UTC datetime."""
    return ensure_utc(localize(day, time(hour, minute), tz_name))


def upcoming_day(days: int = 3, tz_name: str = CAPTAIN_TZ) -> date:
    """A captain-local date relative to the real clock, for HTTP tests."""
    return local_today(datetime.now(timezone.utc), tz_name) + timedelta(days=days)


# ============================================================================
# DATABASE
# ============================================================================


@pytest.fixture(scope="session")
def engine() -> Iterator[Engine]:
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; take it over.
    @event.listens_for(test_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None

    @event.listens_for(test_engine, "begin")
    def _emit_begin(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine: Engine) -> Iterator[Session]:
    connection = engine.connect()
    outer = connection.begin()
    session = Session(
        bind=connection,
        join_transaction_mode="create_savepoint",
        autoflush=False,
        expire_on_commit=False,
    )
    try:
        yield session
    finally:
        session.close()
        outer.rollback()
        connection.close()


# ============================================================================
# COLLABORATORS
# ============================================================================


@pytest.fixture
def payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def sender() -> ConsoleNotificationSender:
    return ConsoleNotificationSender()


@pytest.fixture
def notification_service(sender: ConsoleNotificationSender) -> NotificationService:
    return NotificationService(sender=sender)


@pytest.fixture
def weather_client() -> FakeWeatherClient:
    return FakeWeatherClient()


@pytest.fixture
def availability_service(db: Session) -> AvailabilityService:
    return AvailabilityService(db)


@pytest.fixture
def booking_service(
    db: Session,
    payment_gateway: FakePaymentGateway,
    notification_service: NotificationService,
) -> BookingService:
    return BookingService(
        db, payment_gateway=payment_gateway, notification_service=notification_service
    )


@pytest.fixture
def modification_service(db: Session, booking_service: BookingService) -> ModificationService:
    return ModificationService(db, booking_service=booking_service)


# ============================================================================
# FACTORIES
# ============================================================================


@pytest.fixture
def make_captain(db: Session):
    def _make(
        *,
        display_name: str = "Captain Ahab",
        email: Optional[str] = "ahab@example.com",
        timezone_name: str = CAPTAIN_TZ,
        buffer_minutes: int = 60,
        advance_booking_days: int = 60,
        latitude: Optional[float] = 25.7617,
        longitude: Optional[float] = -80.1918,
        windows: Optional[dict] = None,
    ) -> CaptainProfile:
        captain = CaptainProfile(
            display_name=display_name,
            email=email or "",
            timezone=timezone_name,
            buffer_minutes=buffer_minutes,
            advance_booking_days=advance_booking_days,
            meeting_spot_latitude=latitude,
            meeting_spot_longitude=longitude,
        )
        db.add(captain)
        db.flush()
        # Default: every day 06:00-21:00
        window_map = windows if windows is not None else {d: (time(6), time(21)) for d in range(7)}
        for dow, (start, end) in window_map.items():
            db.add(
                AvailabilityWindow(
                    captain_id=captain.id, day_of_week=dow, start_time=start, end_time=end
                )
            )
        db.flush()
        return captain

    return _make


@pytest.fixture
def make_trip_type(db: Session):
    def _make(
        captain: CaptainProfile,
        *,
        title: str = "Half-day inshore",
        duration_hours: float = 3,
        price_total_cents: int = 60000,
        deposit_cents: int = 20000,
        cancellation_policy_hours: int = 48,
        cancellation_refund_percentage: int = 50,
    ) -> TripType:
        trip_type = TripType(
            captain_id=captain.id,
            title=title,
            duration_hours=duration_hours,
            price_total_cents=price_total_cents,
            deposit_cents=deposit_cents,
            cancellation_policy_hours=cancellation_policy_hours,
            cancellation_refund_percentage=cancellation_refund_percentage,
        )
        db.add(trip_type)
        db.flush()
        return trip_type

    return _make


@pytest.fixture
def make_vessel(db: Session):
    def _make(captain: CaptainProfile, *, capacity: int = 4, is_active: bool = True) -> Vessel:
        vessel = Vessel(captain_id=captain.id, name="Pequod", capacity=capacity, is_active=is_active)
        db.add(vessel)
        db.flush()
        return vessel

    return _make


@pytest.fixture
def make_booking(db: Session):
    """Insert a booking row directly, bypassing admission checks."""

    def _make(
        captain: CaptainProfile,
        trip_type: TripType,
        *,
        start: datetime,
        status: BookingStatus = BookingStatus.PENDING_DEPOSIT,
        deposit_paid_cents: int = 0,
        payment_reference: Optional[str] = None,
        party_size: int = 2,
        created_at: Optional[datetime] = None,
    ) -> Booking:
        booking = Booking(
            captain_id=captain.id,
            trip_type_id=trip_type.id,
            guest_name="Ishmael",
            guest_email="ishmael@example.com",
            party_size=party_size,
            scheduled_start=start,
            scheduled_end=start + trip_type.duration,
            status=status.value,
            payment_status=PaymentStatus.UNPAID.value,
            total_price_cents=trip_type.price_total_cents,
            deposit_required_cents=trip_type.deposit_cents,
            deposit_paid_cents=0,
            refunded_cents=0,
            balance_due_cents=trip_type.price_total_cents,
            payment_reference=payment_reference,
            management_token=generate_management_token(),
            management_token_expires_at=start + timedelta(days=MANAGEMENT_TOKEN_TTL_DAYS),
            confirmation_code=generate_confirmation_code(),
            created_at=created_at or NOW - timedelta(days=2),
        )
        if deposit_paid_cents:
            booking.apply_payment(deposit_paid_cents)
        db.add(booking)
        db.flush()
        return booking

    return _make


@pytest.fixture
def captain(make_captain) -> CaptainProfile:
    return make_captain()


@pytest.fixture
def trip_type(make_trip_type, captain: CaptainProfile) -> TripType:
    return make_trip_type(captain)


# ============================================================================
# HTTP CLIENT
# ============================================================================


@pytest.fixture
def client(
    db: Session,
    payment_gateway: FakePaymentGateway,
    notification_service: NotificationService,
    weather_client: FakeWeatherClient,
) -> Iterator[TestClient]:
    from charterbook.api.dependencies import (
        get_db,
        get_notification_service,
        get_payment_gateway,
        get_weather_client,
    )
    from charterbook.main import app

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway
    app.dependency_overrides[get_notification_service] = lambda: notification_service
    app.dependency_overrides[get_weather_client] = lambda: weather_client
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def offloaded_calls(monkeypatch) -> List[str]:
    """Names of the service calls route handlers run in a worker thread."""
    calls: List[str] = []
    to_thread = asyncio.to_thread

    async def _recording(func, *args, **kwargs):
        calls.append(func.__name__)
        return await to_thread(func, *args, **kwargs)

    monkeypatch.setattr(asyncio, "to_thread", _recording)
    return calls
