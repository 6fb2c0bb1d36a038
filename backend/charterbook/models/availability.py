# backend/charterbook/models/availability.py
"""
Availability models for Charterbook.

Classes:
    AvailabilityWindow: Recurring weekly open hours (split shifts allowed)
    BlackoutDate: Specific dates a captain takes off the calendar
"""

import logging

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
    UniqueConstraint,
)
import ulid

from ..database import Base
from .types import UTCDateTime, utcnow

logger = logging.getLogger(__name__)


class AvailabilityWindow(Base):
    """Weekly recurring window; ``day_of_week`` uses 0 for Sunday."""

    __tablename__ = "availability_windows"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    captain_id = Column(
        String(26), ForeignKey("captain_profiles.id", ondelete="CASCADE"), nullable=False
    )
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_window_day_of_week"),
        CheckConstraint("start_time < end_time", name="ck_window_time_order"),
        Index("idx_windows_captain_day", "captain_id", "day_of_week"),
    )

    def __repr__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return (
            f"<AvailabilityWindow day={self.day_of_week} "
            f"{self.start_time}-{self.end_time} {state}>"
        )


class BlackoutDate(Base):
    """Captain blackout/vacation dates"""

    __tablename__ = "blackout_dates"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    captain_id = Column(
        String(26), ForeignKey("captain_profiles.id", ondelete="CASCADE"), nullable=False
    )
    date = Column(Date, nullable=False, index=True)
    reason = Column(String(255), nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("captain_id", "date", name="unique_captain_blackout_date"),
        Index("idx_blackout_dates_captain_date", "captain_id", "date"),
    )

    def __repr__(self) -> str:
        return f"<BlackoutDate {self.date} - {self.reason or 'No reason'}>"
