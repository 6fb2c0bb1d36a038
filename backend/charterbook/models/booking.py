# backend/charterbook/models/booking.py
"""
Booking model for Charterbook.

A booking is a time-boxed trip sold to a guest. Its status and payment
fields only ever change through BookingService, which consults the
transition table defined here. Bookings are never hard-deleted.
"""

from datetime import datetime
from enum import Enum
import logging
from typing import Any, Dict, FrozenSet, Mapping, Optional

from sqlalchemy import (
    DDL,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
)
from sqlalchemy.orm import relationship
import ulid

from ..database import Base
from .types import UTCDateTime, utcnow

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING_DEPOSIT = "pending_deposit"  # Initial - awaiting deposit
    CONFIRMED = "confirmed"
    WEATHER_HOLD = "weather_hold"  # Paused pending a new date
    RESCHEDULED = "rescheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    EXPIRED = "expired"  # Deposit never arrived before the trip


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    DEPOSIT_PAID = "deposit_paid"
    FULLY_PAID = "fully_paid"
    PARTIALLY_REFUNDED = "partially_refunded"
    FULLY_REFUNDED = "fully_refunded"


# Statuses that hold a slot on the captain's calendar
ACTIVE_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {
        BookingStatus.PENDING_DEPOSIT,
        BookingStatus.CONFIRMED,
        BookingStatus.WEATHER_HOLD,
        BookingStatus.RESCHEDULED,
    }
)

TERMINAL_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
        BookingStatus.NO_SHOW,
        BookingStatus.EXPIRED,
    }
)

ALLOWED_TRANSITIONS: Mapping[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING_DEPOSIT: frozenset(
        {
            BookingStatus.CONFIRMED,
            BookingStatus.WEATHER_HOLD,
            BookingStatus.CANCELLED,
            BookingStatus.EXPIRED,
        }
    ),
    BookingStatus.CONFIRMED: frozenset(
        {
            BookingStatus.WEATHER_HOLD,
            BookingStatus.COMPLETED,
            BookingStatus.CANCELLED,
            BookingStatus.NO_SHOW,
        }
    ),
    # Clearing a hold returns to the status held before it
    BookingStatus.WEATHER_HOLD: frozenset(
        {
            BookingStatus.RESCHEDULED,
            BookingStatus.CANCELLED,
            BookingStatus.PENDING_DEPOSIT,
            BookingStatus.CONFIRMED,
        }
    ),
    BookingStatus.RESCHEDULED: frozenset(
        {
            BookingStatus.WEATHER_HOLD,
            BookingStatus.COMPLETED,
            BookingStatus.CANCELLED,
            BookingStatus.NO_SHOW,
        }
    ),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
    BookingStatus.EXPIRED: frozenset(),
}

# Statuses whose schedule/party size may be changed by a modification request
MODIFIABLE_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.PENDING_DEPOSIT, BookingStatus.CONFIRMED, BookingStatus.RESCHEDULED}
)


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class Booking(Base):
    """
    A guest's reservation of a captain's trip.

    Money is tracked in cents. ``deposit_paid_cents`` is the net amount
    collected (payments minus refunds), so
    ``balance_due_cents == total_price_cents - deposit_paid_cents`` always holds.
    """

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    captain_id = Column(String(26), ForeignKey("captain_profiles.id"), nullable=False)
    vessel_id = Column(String(26), ForeignKey("vessels.id"), nullable=True)
    trip_type_id = Column(String(26), ForeignKey("trip_types.id"), nullable=False)

    # Guest identity (guests have no account)
    guest_name = Column(String(200), nullable=False)
    guest_email = Column(String(255), nullable=False)
    guest_phone = Column(String(50), nullable=True)
    party_size = Column(Integer, nullable=False, default=1)

    scheduled_start = Column(UTCDateTime, nullable=False, index=True)
    scheduled_end = Column(UTCDateTime, nullable=False)

    status = Column(
        String(20), nullable=False, default=BookingStatus.PENDING_DEPOSIT.value, index=True
    )
    payment_status = Column(String(30), nullable=False, default=PaymentStatus.UNPAID.value)

    total_price_cents = Column(Integer, nullable=False)
    deposit_required_cents = Column(Integer, nullable=False, default=0)
    deposit_paid_cents = Column(Integer, nullable=False, default=0)
    refunded_cents = Column(Integer, nullable=False, default=0)
    balance_due_cents = Column(Integer, nullable=False)
    payment_reference = Column(String(255), nullable=True, comment="Processor payment intent id")

    # Weather hold tracking
    weather_hold_reason = Column(Text, nullable=True)
    pre_hold_status = Column(String(20), nullable=True)
    original_scheduled_start = Column(UTCDateTime, nullable=True)

    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=True)
    completed_at = Column(UTCDateTime, nullable=True)

    # Reminder counters
    deposit_reminder_sent_at = Column(UTCDateTime, nullable=True)
    # Trip reminders, one column per window
    reminder_sent_at = Column(UTCDateTime, nullable=True)
    reminder_48h_sent_at = Column(UTCDateTime, nullable=True)
    reminders_sent = Column(Integer, nullable=False, default=0)

    # Guest access
    management_token = Column(String(64), nullable=False, unique=True)
    management_token_expires_at = Column(UTCDateTime, nullable=False)
    confirmation_code = Column(String(12), nullable=False)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=utcnow)

    captain = relationship("CaptainProfile")
    vessel = relationship("Vessel")
    trip_type = relationship("TripType")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending_deposit', 'confirmed', 'weather_hold', 'rescheduled', "
            "'completed', 'cancelled', 'no_show', 'expired')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "payment_status IN ('unpaid', 'deposit_paid', 'fully_paid', "
            "'partially_refunded', 'fully_refunded')",
            name="ck_bookings_payment_status",
        ),
        CheckConstraint("scheduled_start < scheduled_end", name="ck_bookings_time_order"),
        CheckConstraint("party_size > 0", name="ck_bookings_party_size_positive"),
        CheckConstraint("total_price_cents >= 0", name="ck_bookings_price_non_negative"),
        CheckConstraint("deposit_paid_cents >= 0", name="ck_bookings_paid_non_negative"),
        CheckConstraint(
            "balance_due_cents = total_price_cents - deposit_paid_cents",
            name="ck_bookings_balance_invariant",
        ),
        Index("idx_bookings_captain_start", "captain_id", "scheduled_start"),
        Index("idx_bookings_status_start", "status", "scheduled_start"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: captain={self.captain_id}, "
            f"{self.scheduled_start}-{self.scheduled_end}, status={self.status}, "
            f"payment={self.payment_status}>"
        )

    @property
    def status_enum(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def is_active(self) -> bool:
        return self.status_enum in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status_enum in TERMINAL_STATUSES

    def apply_payment(self, amount_cents: int) -> None:
        """Add a collected amount and recompute derived payment fields."""
        self.deposit_paid_cents = (self.deposit_paid_cents or 0) + amount_cents
        self._recompute_payment_fields()

    def apply_refund(self, amount_cents: int) -> None:
        """Return money to the guest; the balance due grows by the same amount."""
        self.deposit_paid_cents = (self.deposit_paid_cents or 0) - amount_cents
        self.refunded_cents = (self.refunded_cents or 0) + amount_cents
        self._recompute_payment_fields()

    def clear_trip_reminders(self) -> None:
        """A moved trip gets its 24h and 48h reminders again."""
        self.reminder_sent_at = None
        self.reminder_48h_sent_at = None

    def _recompute_payment_fields(self) -> None:
        paid = self.deposit_paid_cents or 0
        self.balance_due_cents = max(0, self.total_price_cents - paid)
        if paid > self.total_price_cents:
            # Overpayment keeps the invariant by capping what counts as collected.
            self.deposit_paid_cents = self.total_price_cents
            paid = self.total_price_cents
        if paid > 0 and self.balance_due_cents == 0:
            # Paying down a refund restores fully_paid
            self.payment_status = PaymentStatus.FULLY_PAID.value
        elif (self.refunded_cents or 0) > 0:
            self.payment_status = (
                PaymentStatus.FULLY_REFUNDED.value
                if paid == 0
                else PaymentStatus.PARTIALLY_REFUNDED.value
            )
        elif paid == 0:
            self.payment_status = PaymentStatus.UNPAID.value
        else:
            self.payment_status = PaymentStatus.DEPOSIT_PAID.value

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot of the fields the booking log records."""
        return {
            "id": self.id,
            "status": self.status,
            "payment_status": self.payment_status,
            "scheduled_start": _iso(self.scheduled_start),
            "scheduled_end": _iso(self.scheduled_end),
            "party_size": self.party_size,
            "total_price_cents": self.total_price_cents,
            "deposit_paid_cents": self.deposit_paid_cents,
            "refunded_cents": self.refunded_cents,
            "balance_due_cents": self.balance_due_cents,
            "weather_hold_reason": self.weather_hold_reason,
            "cancellation_reason": self.cancellation_reason,
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


# PostgreSQL backstop for the no-overlap rule; the service re-checks inside
# the insert transaction on every backend.
_active_in = ", ".join(f"'{s.value}'" for s in sorted(ACTIVE_STATUSES, key=lambda s: s.value))
event.listen(
    Booking.__table__,
    "after_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        "ALTER TABLE bookings ADD CONSTRAINT bookings_no_overlap_per_captain "
        "EXCLUDE USING gist (captain_id WITH =, "
        "tstzrange(scheduled_start, scheduled_end, '[)') WITH &&) "
        f"WHERE (status IN ({_active_in}))"
    ).execute_if(dialect="postgresql"),
)
