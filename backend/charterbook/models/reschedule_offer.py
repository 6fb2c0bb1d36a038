# backend/charterbook/models/reschedule_offer.py
"""Alternative dates offered to a guest while a booking is on weather hold."""

from sqlalchemy import Boolean, Column, ForeignKey, Index, String
import ulid

from ..database import Base
from .types import UTCDateTime, utcnow


class RescheduleOffer(Base):
    __tablename__ = "reschedule_offers"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False)
    proposed_start = Column(UTCDateTime, nullable=False)
    proposed_end = Column(UTCDateTime, nullable=False)
    expires_at = Column(UTCDateTime, nullable=False)
    is_selected = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (Index("idx_reschedule_offers_booking", "booking_id"),)

    def __repr__(self) -> str:
        marker = " selected" if self.is_selected else ""
        return f"<RescheduleOffer {self.id}: {self.proposed_start}{marker}>"
