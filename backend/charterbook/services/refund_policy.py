"""Cancellation refund policy evaluation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..core.actor import Actor
from ..core.timezone_utils import ensure_utc
from ..models.booking import Booking, BookingStatus
from ..models.captain import TripType


@dataclass(frozen=True)
class RefundDecision:
    refund_cents: int
    percentage: int
    policy_basis: str
    hours_until_start: float

    def to_payload(self) -> dict[str, object]:
        return {
            "refund_cents": int(self.refund_cents),
            "percentage": int(self.percentage),
            "policy_basis": self.policy_basis,
            "hours_until_start": round(self.hours_until_start, 2),
        }


class RefundPolicy:
    """
    Decides how much of the net amount paid goes back to the guest.

    Captain cancellations, cancellations of trips on weather hold and
    cancellations made at least ``cancellation_policy_hours`` before the
    trip are refunded in full; later guest cancellations get the trip
    type's refund percentage.
    """

    def evaluate(
        self, booking: Booking, trip_type: TripType, actor: Actor, now: datetime
    ) -> RefundDecision:
        paid = max(0, booking.deposit_paid_cents or 0)
        hours_until = (
            ensure_utc(booking.scheduled_start) - ensure_utc(now)
        ).total_seconds() / 3600

        if actor.is_captain:
            percentage, basis = 100, "captain_cancelled"
        elif booking.status_enum is BookingStatus.WEATHER_HOLD:
            percentage, basis = 100, "weather_hold"
        elif hours_until >= trip_type.cancellation_policy_hours:
            percentage, basis = 100, "outside_policy_window"
        else:
            percentage, basis = trip_type.cancellation_refund_percentage, "inside_policy_window"

        # Round down so a refund never exceeds what the policy allows
        refund = (paid * percentage) // 100
        return RefundDecision(
            refund_cents=refund,
            percentage=percentage,
            policy_basis=basis,
            hours_until_start=hours_until,
        )
