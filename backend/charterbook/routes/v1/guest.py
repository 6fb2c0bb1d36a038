# backend/charterbook/routes/v1/guest.py
"""
Guest routes - API v1

Guests have no account. Every endpoint here is addressed by the booking's
management token, which resolves both the booking and the acting guest.

Endpoints:
    GET /guest/bookings/{token} - Booking summary
    POST /guest/bookings/{token}/deposit - Pay the outstanding deposit
    POST /guest/bookings/{token}/cancel - Cancel under the refund policy
    GET /guest/bookings/{token}/offers - Alternative dates after a weather hold
    POST /guest/bookings/{token}/offers/{offer_id}/accept - Take an alternative date
    POST /guest/bookings/{token}/modifications - Ask the captain for a change
    GET /guest/bookings/{token}/modifications - Requests filed for this booking
"""

import asyncio
from datetime import datetime, timezone
import logging
from typing import List, Tuple

from fastapi import APIRouter, Body, Depends, Path, status

from ...api.dependencies import get_booking_service, get_modification_service
from ...core.actor import Actor
from ...core.exceptions import DomainException
from ...errors import handle_domain_exception
from ...models.booking import Booking
from ...schemas.booking import (
    CancelRequest,
    DepositPaymentRequest,
    GuestBookingResponse,
    RescheduleOfferResponse,
)
from ...schemas.modification import ModificationCreate, ModificationResponse
from ...services.booking_service import BookingService
from ...services.modification_service import ModificationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["guest-v1"])

TOKEN_PATH_PATTERN = r"^[A-Za-z0-9]{16,64}$"
ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


async def _resolve_guest(booking_service: BookingService, token: str) -> Tuple[Booking, Actor]:
    booking = await asyncio.to_thread(
        booking_service.get_booking_by_token, token, datetime.now(timezone.utc)
    )
    return booking, Actor.guest(booking.id)


@router.get("/guest/bookings/{token}", response_model=GuestBookingResponse)
async def get_guest_booking(
    token: str = Path(..., pattern=TOKEN_PATH_PATTERN),
    booking_service: BookingService = Depends(get_booking_service),
) -> GuestBookingResponse:
    try:
        booking, _ = await _resolve_guest(booking_service, token)
    except DomainException as e:
        handle_domain_exception(e)
    return GuestBookingResponse.model_validate(booking)


@router.post("/guest/bookings/{token}/deposit", response_model=GuestBookingResponse)
async def pay_deposit(
    token: str = Path(..., pattern=TOKEN_PATH_PATTERN),
    payload: DepositPaymentRequest = Body(...),
    booking_service: BookingService = Depends(get_booking_service),
) -> GuestBookingResponse:
    """Charge the outstanding deposit; a successful charge confirms the booking."""
    try:
        booking, guest = await _resolve_guest(booking_service, token)
        booking = await asyncio.to_thread(
            booking_service.pay_deposit,
            booking.id,
            payload.payment_method,
            guest,
            datetime.now(timezone.utc),
        )
    except DomainException as e:
        handle_domain_exception(e)
    return GuestBookingResponse.model_validate(booking)


@router.post("/guest/bookings/{token}/cancel", response_model=GuestBookingResponse)
async def cancel_guest_booking(
    token: str = Path(..., pattern=TOKEN_PATH_PATTERN),
    payload: CancelRequest = Body(...),
    booking_service: BookingService = Depends(get_booking_service),
) -> GuestBookingResponse:
    try:
        booking, guest = await _resolve_guest(booking_service, token)
        booking, _ = await asyncio.to_thread(
            booking_service.cancel_booking,
            booking.id,
            payload.reason,
            guest,
            datetime.now(timezone.utc),
        )
    except DomainException as e:
        handle_domain_exception(e)
    return GuestBookingResponse.model_validate(booking)


@router.get("/guest/bookings/{token}/offers", response_model=List[RescheduleOfferResponse])
async def list_guest_offers(
    token: str = Path(..., pattern=TOKEN_PATH_PATTERN),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[RescheduleOfferResponse]:
    now = datetime.now(timezone.utc)
    try:
        booking, guest = await _resolve_guest(booking_service, token)
        offers = await asyncio.to_thread(
            booking_service.list_reschedule_offers, booking.id, guest, now
        )
    except DomainException as e:
        handle_domain_exception(e)
    return [RescheduleOfferResponse.model_validate(o) for o in offers]


@router.post(
    "/guest/bookings/{token}/offers/{offer_id}/accept", response_model=GuestBookingResponse
)
async def accept_guest_offer(
    token: str = Path(..., pattern=TOKEN_PATH_PATTERN),
    offer_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    booking_service: BookingService = Depends(get_booking_service),
) -> GuestBookingResponse:
    try:
        booking, guest = await _resolve_guest(booking_service, token)
        booking = await asyncio.to_thread(
            booking_service.accept_reschedule_offer,
            booking.id,
            offer_id,
            guest,
            datetime.now(timezone.utc),
        )
    except DomainException as e:
        handle_domain_exception(e)
    return GuestBookingResponse.model_validate(booking)


@router.post(
    "/guest/bookings/{token}/modifications",
    response_model=ModificationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_guest_modification(
    token: str = Path(..., pattern=TOKEN_PATH_PATTERN),
    payload: ModificationCreate = Body(...),
    booking_service: BookingService = Depends(get_booking_service),
    modification_service: ModificationService = Depends(get_modification_service),
) -> ModificationResponse:
    try:
        booking, guest = await _resolve_guest(booking_service, token)
        request = await asyncio.to_thread(
            modification_service.request_modification,
            booking.id,
            guest,
            payload.new_start,
            payload.new_party_size,
            payload.reason,
            datetime.now(timezone.utc),
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ModificationResponse.model_validate(request)


@router.get(
    "/guest/bookings/{token}/modifications", response_model=List[ModificationResponse]
)
async def list_guest_modifications(
    token: str = Path(..., pattern=TOKEN_PATH_PATTERN),
    booking_service: BookingService = Depends(get_booking_service),
    modification_service: ModificationService = Depends(get_modification_service),
) -> List[ModificationResponse]:
    try:
        booking, guest = await _resolve_guest(booking_service, token)
        requests = await asyncio.to_thread(
            modification_service.list_modifications, booking.id, guest
        )
    except DomainException as e:
        handle_domain_exception(e)
    return [ModificationResponse.model_validate(r) for r in requests]
