# backend/charterbook/models/booking_log.py
"""
Append-only booking log.

Every observable change to a booking writes one row here with the actor,
a human-readable description and before/after snapshots.
"""

from __future__ import annotations

from typing import Any, Mapping, MutableMapping

from sqlalchemy import Column, ForeignKey, Index, String, Text
import ulid

from ..core.enums import ActorType, LogEntryType
from ..database import Base
from .types import JSONType, UTCDateTime, utcnow


class BookingLog(Base):
    """Persistence model for booking history entries."""

    __tablename__ = "booking_logs"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False)
    entry_type = Column(String(40), nullable=False)
    description = Column(Text, nullable=False)
    actor_type = Column(String(20), nullable=False)
    actor_id = Column(String(26), nullable=True)
    old_value = Column(JSONType, nullable=True)
    new_value = Column(JSONType, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (Index("idx_booking_logs_booking_created", "booking_id", "created_at"),)

    @classmethod
    def from_change(
        cls,
        booking_id: str,
        entry_type: LogEntryType,
        description: str,
        actor_type: ActorType,
        actor_id: str | None = None,
        old_value: Mapping[str, Any] | MutableMapping[str, Any] | None = None,
        new_value: Mapping[str, Any] | MutableMapping[str, Any] | None = None,
    ) -> "BookingLog":
        """Factory helper to build a BookingLog row from change metadata."""
        return cls(
            booking_id=booking_id,
            entry_type=entry_type.value,
            description=description,
            actor_type=actor_type.value,
            actor_id=actor_id,
            old_value=dict(old_value) if old_value is not None else None,
            new_value=dict(new_value) if new_value is not None else None,
        )

    def __repr__(self) -> str:
        return f"<BookingLog {self.booking_id} {self.entry_type} by {self.actor_type}>"
