# backend/charterbook/models/booking_modification.py
"""Requests to move a booking or change its party size."""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import ModificationStatus
from ..database import Base
from .types import UTCDateTime, utcnow


class BookingModificationRequest(Base):
    """
    A proposed change to an existing booking.

    Original values are captured at request time so the history stays
    readable after the booking itself moves.
    """

    __tablename__ = "booking_modification_requests"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False)
    requested_by = Column(String(20), nullable=False)
    modification_type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=ModificationStatus.PENDING.value)

    original_start = Column(UTCDateTime, nullable=False)
    original_end = Column(UTCDateTime, nullable=False)
    original_party_size = Column(Integer, nullable=False)
    new_start = Column(UTCDateTime, nullable=True)
    new_end = Column(UTCDateTime, nullable=True)
    new_party_size = Column(Integer, nullable=True)

    reason = Column(Text, nullable=True)
    captain_response = Column(Text, nullable=True)
    responded_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    booking = relationship("Booking")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')", name="ck_modification_status"
        ),
        CheckConstraint(
            "modification_type IN ('date_time', 'party_size', 'both')",
            name="ck_modification_type",
        ),
        Index("idx_modifications_booking_status", "booking_id", "status"),
    )

    @property
    def is_pending(self) -> bool:
        return self.status == ModificationStatus.PENDING.value

    def __repr__(self) -> str:
        return (
            f"<BookingModificationRequest {self.id}: booking={self.booking_id} "
            f"{self.modification_type} {self.status}>"
        )
