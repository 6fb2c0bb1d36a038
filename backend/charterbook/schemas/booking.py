# backend/charterbook/schemas/booking.py
"""
Booking schemas for Charterbook.

Request bodies forbid unknown fields. Datetimes must carry an offset;
the engine stores and compares UTC instants only.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import EmailStr, Field, field_validator

from ..core.constants import MAX_PARTY_SIZE, MAX_REASON_LENGTH, MIN_PARTY_SIZE
from ._strict_base import StrictModel, StrictRequestModel


def _require_aware(value: datetime) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError("datetime must include a timezone offset")
    return value


class BookingCreate(StrictRequestModel):
    """Guest booking request for a specific trip start."""

    captain_id: str = Field(..., min_length=26, max_length=26)
    trip_type_id: str = Field(..., min_length=26, max_length=26)
    vessel_id: Optional[str] = Field(None, min_length=26, max_length=26)
    guest_name: str = Field(..., min_length=1, max_length=200)
    guest_email: EmailStr
    guest_phone: Optional[str] = Field(None, max_length=50)
    party_size: int = Field(..., ge=MIN_PARTY_SIZE, le=MAX_PARTY_SIZE)
    scheduled_start: datetime

    @field_validator("scheduled_start")
    @classmethod
    def _aware_start(cls, value: datetime) -> datetime:
        return _require_aware(value)


class PaymentRecord(StrictRequestModel):
    amount_cents: int = Field(..., gt=0)
    payment_reference: Optional[str] = Field(None, max_length=255)


class DepositPaymentRequest(StrictRequestModel):
    payment_method: str = Field(..., min_length=1, max_length=255)


class CancelRequest(StrictRequestModel):
    reason: str = Field(..., min_length=1, max_length=MAX_REASON_LENGTH)


class RefundRequest(StrictRequestModel):
    amount_cents: int = Field(..., gt=0)
    reason: str = Field(..., min_length=1, max_length=MAX_REASON_LENGTH)


class WeatherHoldRequest(StrictRequestModel):
    reason: str = Field(..., min_length=1, max_length=MAX_REASON_LENGTH)
    generate_offers: bool = True


class RescheduleRequest(StrictRequestModel):
    new_start: datetime

    @field_validator("new_start")
    @classmethod
    def _aware_start(cls, value: datetime) -> datetime:
        return _require_aware(value)


class BookingResponse(StrictModel):
    """Captain-facing booking view."""

    id: str
    captain_id: str
    vessel_id: Optional[str] = None
    trip_type_id: str
    guest_name: str
    guest_email: str
    guest_phone: Optional[str] = None
    party_size: int
    scheduled_start: datetime
    scheduled_end: datetime
    status: str
    payment_status: str
    total_price_cents: int
    deposit_required_cents: int
    deposit_paid_cents: int
    refunded_cents: int
    balance_due_cents: int
    weather_hold_reason: Optional[str] = None
    original_scheduled_start: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    confirmation_code: str
    created_at: datetime


class GuestBookingResponse(StrictModel):
    """What a guest sees through the management link."""

    id: str
    party_size: int
    scheduled_start: datetime
    scheduled_end: datetime
    status: str
    payment_status: str
    total_price_cents: int
    deposit_required_cents: int
    deposit_paid_cents: int
    balance_due_cents: int
    weather_hold_reason: Optional[str] = None
    confirmation_code: str


class BookingCreatedResponse(StrictModel):
    booking: GuestBookingResponse
    management_token: str
    management_token_expires_at: datetime


class RescheduleOfferResponse(StrictModel):
    id: str
    proposed_start: datetime
    proposed_end: datetime
    expires_at: datetime
    is_selected: bool


class BookingLogResponse(StrictModel):
    id: str
    entry_type: str
    description: str
    actor_type: str
    actor_id: Optional[str] = None
    old_value: Optional[Dict[str, Any]] = None
    new_value: Optional[Dict[str, Any]] = None
    created_at: datetime


class BookingListResponse(StrictModel):
    items: List[BookingResponse]
