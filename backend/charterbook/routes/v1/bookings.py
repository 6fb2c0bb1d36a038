# backend/charterbook/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    POST / - Guest books a trip (public)
    GET / - Captain's bookings with filters
    GET /{booking_id} - Full booking details
    GET /{booking_id}/log - Booking history
    POST /{booking_id}/payments - Record a manual payment
    POST /{booking_id}/refunds - Refund part of what was paid
    POST /{booking_id}/cancel - Cancel with policy refund
    POST /{booking_id}/complete - Mark booking as completed
    POST /{booking_id}/no-show - Mark booking as no-show
    POST /{booking_id}/weather-hold - Put a booking on weather hold
    POST /{booking_id}/weather-hold/clear - Lift a weather hold
    GET /{booking_id}/offers - Open reschedule offers
    POST /{booking_id}/reschedule - Move a held booking to a new start
"""

import asyncio
from datetime import datetime, timezone
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status

from ...api.dependencies import get_booking_service, get_current_captain
from ...core.actor import Actor
from ...core.exceptions import DomainException
from ...errors import handle_domain_exception
from ...models.booking import BookingStatus
from ...schemas.booking import (
    BookingCreate,
    BookingCreatedResponse,
    BookingListResponse,
    BookingLogResponse,
    BookingResponse,
    CancelRequest,
    GuestBookingResponse,
    PaymentRecord,
    RefundRequest,
    RescheduleOfferResponse,
    RescheduleRequest,
    WeatherHoldRequest,
)
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@router.post("/", response_model=BookingCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate = Body(...),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingCreatedResponse:
    """
    Book a trip.

    The response carries the guest's management token; it is the only
    credential a guest has for later changes.
    """
    try:
        booking = await asyncio.to_thread(booking_service.create_booking, booking_data, _utcnow())
    except DomainException as e:
        handle_domain_exception(e)
    return BookingCreatedResponse(
        booking=GuestBookingResponse.model_validate(booking),
        management_token=booking.management_token,
        management_token_expires_at=booking.management_token_expires_at,
    )


@router.get("/", response_model=BookingListResponse)
async def list_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    start_from: Optional[datetime] = Query(None),
    start_until: Optional[datetime] = Query(None),
    captain: Actor = Depends(get_current_captain),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingListResponse:
    try:
        bookings = await asyncio.to_thread(
            booking_service.list_bookings,
            captain.id,
            status=status_filter,
            start_from=start_from,
            start_until=start_until,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingListResponse(items=[BookingResponse.model_validate(b) for b in bookings])


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    captain: Actor = Depends(get_current_captain),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.get_booking_for_actor, booking_id, captain
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}/log", response_model=List[BookingLogResponse])
async def get_booking_log(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    captain: Actor = Depends(get_current_captain),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[BookingLogResponse]:
    try:
        entries = await asyncio.to_thread(booking_service.get_booking_log, booking_id, captain)
    except DomainException as e:
        handle_domain_exception(e)
    return [BookingLogResponse.model_validate(entry) for entry in entries]


@router.post("/{booking_id}/payments", response_model=BookingResponse)
async def record_payment(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    payload: PaymentRecord = Body(...),
    captain: Actor = Depends(get_current_captain),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Record money collected outside the processor (cash, manual capture)."""
    try:
        booking = await asyncio.to_thread(
            booking_service.record_payment,
            booking_id,
            payload.amount_cents,
            captain,
            _utcnow(),
            payload.payment_reference,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/refunds", response_model=BookingResponse)
async def refund_payment(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    payload: RefundRequest = Body(...),
    captain: Actor = Depends(get_current_captain),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.refund_payment,
            booking_id,
            payload.amount_cents,
            payload.reason,
            captain,
            _utcnow(),
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    payload: CancelRequest = Body(...),
    captain: Actor = Depends(get_current_captain),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Cancel a booking. Captain cancellations are always refunded in full."""
    try:
        booking, _ = await asyncio.to_thread(
            booking_service.cancel_booking, booking_id, payload.reason, captain, _utcnow()
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    captain: Actor = Depends(get_current_captain),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.complete_booking, booking_id, captain, _utcnow()
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/no-show", response_model=BookingResponse)
async def mark_booking_no_show(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    captain: Actor = Depends(get_current_captain),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.mark_no_show, booking_id, captain, _utcnow()
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/weather-hold", response_model=BookingResponse)
async def set_weather_hold(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    payload: WeatherHoldRequest = Body(...),
    captain: Actor = Depends(get_current_captain),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.set_weather_hold,
            booking_id,
            payload.reason,
            captain,
            _utcnow(),
            payload.generate_offers,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/weather-hold/clear", response_model=BookingResponse)
async def clear_weather_hold(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    captain: Actor = Depends(get_current_captain),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.clear_weather_hold, booking_id, captain, _utcnow()
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}/offers", response_model=List[RescheduleOfferResponse])
async def list_offers(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    captain: Actor = Depends(get_current_captain),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[RescheduleOfferResponse]:
    try:
        offers = await asyncio.to_thread(
            booking_service.list_reschedule_offers, booking_id, captain, _utcnow()
        )
    except DomainException as e:
        handle_domain_exception(e)
    return [RescheduleOfferResponse.model_validate(o) for o in offers]


@router.post("/{booking_id}/reschedule", response_model=BookingResponse)
async def reschedule_booking(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    payload: RescheduleRequest = Body(...),
    captain: Actor = Depends(get_current_captain),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Move a booking that is on weather hold to a new start time."""
    try:
        booking = await asyncio.to_thread(
            booking_service.reschedule_booking, booking_id, payload.new_start, captain, _utcnow()
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)
