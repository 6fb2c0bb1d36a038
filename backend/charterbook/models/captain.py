# backend/charterbook/models/captain.py
"""
Captain-side catalogue: the captain profile, vessels and trip types.

The profile carries the scheduling policy the slot generator needs
(timezone, lead-time buffer, advance-booking horizon).
"""

from datetime import timedelta
import logging

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
import ulid

from ..core.constants import (
    DEFAULT_ADVANCE_BOOKING_DAYS,
    DEFAULT_BUFFER_MINUTES,
    DEFAULT_CANCELLATION_POLICY_HOURS,
    DEFAULT_CANCELLATION_REFUND_PERCENTAGE,
    DEFAULT_TIMEZONE,
)
from ..database import Base
from .types import UTCDateTime, utcnow

logger = logging.getLogger(__name__)


class CaptainProfile(Base):
    """A charter operator and their booking policy."""

    __tablename__ = "captain_profiles"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    display_name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    timezone = Column(String(64), nullable=False, default=DEFAULT_TIMEZONE)
    buffer_minutes = Column(Integer, nullable=False, default=DEFAULT_BUFFER_MINUTES)
    advance_booking_days = Column(Integer, nullable=False, default=DEFAULT_ADVANCE_BOOKING_DAYS)
    # Paused captains list no slots and admit no bookings
    is_hibernating = Column(Boolean, nullable=False, default=False)
    meeting_spot_latitude = Column(Float, nullable=True)
    meeting_spot_longitude = Column(Float, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    vessels = relationship("Vessel", back_populates="captain")
    trip_types = relationship("TripType", back_populates="captain")

    __table_args__ = (
        CheckConstraint("buffer_minutes >= 0", name="ck_captain_buffer_non_negative"),
        CheckConstraint("advance_booking_days > 0", name="ck_captain_horizon_positive"),
    )

    @property
    def has_meeting_spot(self) -> bool:
        return self.meeting_spot_latitude is not None and self.meeting_spot_longitude is not None

    def __repr__(self) -> str:
        return f"<CaptainProfile {self.id}: {self.display_name}>"


class Vessel(Base):
    __tablename__ = "vessels"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    captain_id = Column(
        String(26), ForeignKey("captain_profiles.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(200), nullable=False)
    capacity = Column(Integer, nullable=False, default=6)
    is_active = Column(Boolean, nullable=False, default=True)

    captain = relationship("CaptainProfile", back_populates="vessels")

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_vessel_capacity_positive"),
        Index("idx_vessels_captain", "captain_id"),
    )

    def __repr__(self) -> str:
        return f"<Vessel {self.id}: {self.name} cap={self.capacity}>"


class TripType(Base):
    """A sellable trip product with a fixed duration and price."""

    __tablename__ = "trip_types"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    captain_id = Column(
        String(26), ForeignKey("captain_profiles.id", ondelete="CASCADE"), nullable=False
    )
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    duration_hours = Column(Numeric(5, 2), nullable=False)
    price_total_cents = Column(Integer, nullable=False)
    deposit_cents = Column(Integer, nullable=False, default=0)
    cancellation_policy_hours = Column(
        Integer, nullable=False, default=DEFAULT_CANCELLATION_POLICY_HOURS
    )
    cancellation_refund_percentage = Column(
        Integer, nullable=False, default=DEFAULT_CANCELLATION_REFUND_PERCENTAGE
    )
    is_active = Column(Boolean, nullable=False, default=True)

    captain = relationship("CaptainProfile", back_populates="trip_types")

    __table_args__ = (
        CheckConstraint("duration_hours > 0", name="ck_trip_duration_positive"),
        CheckConstraint("price_total_cents >= 0", name="ck_trip_price_non_negative"),
        CheckConstraint(
            "deposit_cents >= 0 AND deposit_cents <= price_total_cents",
            name="ck_trip_deposit_within_price",
        ),
        CheckConstraint(
            "cancellation_refund_percentage BETWEEN 0 AND 100",
            name="ck_trip_refund_percentage_range",
        ),
        Index("idx_trip_types_captain", "captain_id"),
    )

    @property
    def duration(self) -> timedelta:
        """Trip length rounded to whole minutes."""
        return timedelta(minutes=round(float(self.duration_hours) * 60))

    def __repr__(self) -> str:
        return f"<TripType {self.id}: {self.title} {self.duration_hours}h>"
