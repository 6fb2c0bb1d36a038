# backend/charterbook/routes/v1/availability.py
"""
Availability routes - API v1

Public slot listings and the captain's own schedule management.

Endpoints:
    GET /captains/{captain_id}/slots - Slots for one trip type on one date
    GET /captains/{captain_id}/availability - Per-day summary for a calendar
    GET /captains/me/windows - List the captain's weekly windows
    PUT /captains/me/windows - Replace the weekly windows
    POST /captains/me/windows/seed - Seed the default schedule
    GET /captains/me/blackouts - List blackout dates
    POST /captains/me/blackouts - Block one date
    POST /captains/me/blackouts/range - Block a date range
    DELETE /captains/me/blackouts/{blackout_id} - Unblock a date
    PUT /captains/me/hibernation - Pause or resume taking bookings
"""

import asyncio
from datetime import date, datetime, timezone
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status

from ...api.dependencies import get_availability_service, get_current_captain
from ...core.actor import Actor
from ...core.exceptions import DomainException
from ...errors import handle_domain_exception
from ...schemas.availability import (
    AvailabilityWindowResponse,
    AvailabilityWindowsReplace,
    BlackoutCreate,
    BlackoutRangeCreate,
    BlackoutResponse,
    DayAvailabilityResponse,
    DaySlotsResponse,
    HibernationResponse,
    HibernationUpdate,
    RangeAvailabilityResponse,
    SlotResponse,
)
from ...services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["availability-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


@router.get("/captains/{captain_id}/slots", response_model=DaySlotsResponse)
async def get_slots(
    captain_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    trip_type_id: str = Query(..., min_length=26, max_length=26),
    target_date: date = Query(..., alias="date"),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> DaySlotsResponse:
    """Candidate trip starts; unavailable slots are listed with ``available=false``."""
    now = datetime.now(timezone.utc)
    try:
        captain = await asyncio.to_thread(availability_service.get_captain, captain_id)
        slots = await asyncio.to_thread(
            availability_service.generate_slots, captain_id, trip_type_id, target_date, now
        )
    except DomainException as e:
        handle_domain_exception(e)
    return DaySlotsResponse(
        date=target_date,
        captain_timezone=captain.timezone,
        slots=[SlotResponse(start=s.start, end=s.end, available=s.available) for s in slots],
    )


@router.get("/captains/{captain_id}/availability", response_model=RangeAvailabilityResponse)
async def get_range_availability(
    captain_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    days: int = Query(30, ge=1, le=365),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> RangeAvailabilityResponse:
    now = datetime.now(timezone.utc)
    try:
        captain = await asyncio.to_thread(availability_service.get_captain, captain_id)
        summary = await asyncio.to_thread(
            availability_service.generate_range_availability, captain_id, days, now
        )
    except DomainException as e:
        handle_domain_exception(e)
    return RangeAvailabilityResponse(
        captain_timezone=captain.timezone,
        dates=[DayAvailabilityResponse.model_validate(day) for day in summary],
    )


@router.get("/captains/me/windows", response_model=List[AvailabilityWindowResponse])
async def list_windows(
    captain: Actor = Depends(get_current_captain),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> List[AvailabilityWindowResponse]:
    try:
        windows = await asyncio.to_thread(availability_service.list_windows, captain.id)
    except DomainException as e:
        handle_domain_exception(e)
    return [AvailabilityWindowResponse.model_validate(w) for w in windows]


@router.put("/captains/me/windows", response_model=List[AvailabilityWindowResponse])
async def replace_windows(
    payload: AvailabilityWindowsReplace,
    captain: Actor = Depends(get_current_captain),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> List[AvailabilityWindowResponse]:
    try:
        windows = await asyncio.to_thread(
            availability_service.replace_windows, captain.id, payload.windows
        )
    except DomainException as e:
        handle_domain_exception(e)
    return [AvailabilityWindowResponse.model_validate(w) for w in windows]


@router.post(
    "/captains/me/windows/seed",
    response_model=List[AvailabilityWindowResponse],
    status_code=status.HTTP_201_CREATED,
)
async def seed_windows(
    captain: Actor = Depends(get_current_captain),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> List[AvailabilityWindowResponse]:
    windows = await asyncio.to_thread(availability_service.seed_default_availability, captain.id)
    return [AvailabilityWindowResponse.model_validate(w) for w in windows]


@router.get("/captains/me/blackouts", response_model=List[BlackoutResponse])
async def list_blackouts(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    captain: Actor = Depends(get_current_captain),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> List[BlackoutResponse]:
    try:
        blackouts = await asyncio.to_thread(
            availability_service.list_blackouts, captain.id, start, end
        )
    except DomainException as e:
        handle_domain_exception(e)
    return [BlackoutResponse.model_validate(b) for b in blackouts]


@router.post(
    "/captains/me/blackouts", response_model=BlackoutResponse, status_code=status.HTTP_201_CREATED
)
async def add_blackout(
    payload: BlackoutCreate,
    captain: Actor = Depends(get_current_captain),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> BlackoutResponse:
    try:
        blackout = await asyncio.to_thread(
            availability_service.add_blackout, captain.id, payload.date, payload.reason
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BlackoutResponse.model_validate(blackout)


@router.post(
    "/captains/me/blackouts/range",
    response_model=List[BlackoutResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_blackout_range(
    payload: BlackoutRangeCreate,
    captain: Actor = Depends(get_current_captain),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> List[BlackoutResponse]:
    try:
        created = await asyncio.to_thread(
            availability_service.add_blackout_range,
            captain.id,
            payload.start_date,
            payload.end_date,
            payload.reason,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return [BlackoutResponse.model_validate(b) for b in created]


@router.delete("/captains/me/blackouts/{blackout_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_blackout(
    blackout_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    captain: Actor = Depends(get_current_captain),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> Response:
    try:
        await asyncio.to_thread(availability_service.remove_blackout, captain.id, blackout_id)
    except DomainException as e:
        handle_domain_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/captains/me/hibernation", response_model=HibernationResponse)
async def set_hibernation(
    payload: HibernationUpdate,
    captain: Actor = Depends(get_current_captain),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> HibernationResponse:
    try:
        profile = await asyncio.to_thread(
            availability_service.set_hibernation, captain.id, payload.is_hibernating
        )
    except DomainException as e:
        handle_domain_exception(e)
    return HibernationResponse.model_validate(profile)
