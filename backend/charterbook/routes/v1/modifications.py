# backend/charterbook/routes/v1/modifications.py
"""
Modification routes - API v1

Captain-side change requests. A captain's own request is applied
immediately; guest requests wait here for approval or rejection.

Endpoints:
    POST /bookings/{booking_id}/modifications - Captain changes a booking
    GET /bookings/{booking_id}/modifications - Change history for a booking
    POST /modifications/{request_id}/approve - Approve a guest request
    POST /modifications/{request_id}/reject - Reject a guest request
"""

import asyncio
from datetime import datetime, timezone
import logging
from typing import List

from fastapi import APIRouter, Body, Depends, Path, status

from ...api.dependencies import get_current_captain, get_modification_service
from ...core.actor import Actor
from ...core.exceptions import DomainException
from ...errors import handle_domain_exception
from ...schemas.modification import (
    ModificationCreate,
    ModificationDecision,
    ModificationResponse,
)
from ...services.modification_service import ModificationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["modifications-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


@router.post(
    "/bookings/{booking_id}/modifications",
    response_model=ModificationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_modification(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    payload: ModificationCreate = Body(...),
    captain: Actor = Depends(get_current_captain),
    modification_service: ModificationService = Depends(get_modification_service),
) -> ModificationResponse:
    try:
        request = await asyncio.to_thread(
            modification_service.request_modification,
            booking_id,
            captain,
            payload.new_start,
            payload.new_party_size,
            payload.reason,
            datetime.now(timezone.utc),
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ModificationResponse.model_validate(request)


@router.get("/bookings/{booking_id}/modifications", response_model=List[ModificationResponse])
async def list_modifications(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    captain: Actor = Depends(get_current_captain),
    modification_service: ModificationService = Depends(get_modification_service),
) -> List[ModificationResponse]:
    try:
        requests = await asyncio.to_thread(
            modification_service.list_modifications, booking_id, captain
        )
    except DomainException as e:
        handle_domain_exception(e)
    return [ModificationResponse.model_validate(r) for r in requests]


@router.post("/modifications/{request_id}/approve", response_model=ModificationResponse)
async def approve_modification(
    request_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    payload: ModificationDecision = Body(default_factory=ModificationDecision),
    captain: Actor = Depends(get_current_captain),
    modification_service: ModificationService = Depends(get_modification_service),
) -> ModificationResponse:
    """Approve a guest's request. The new time is checked again before it is applied."""
    try:
        request = await asyncio.to_thread(
            modification_service.approve_modification,
            request_id,
            captain.id,
            payload.captain_response,
            datetime.now(timezone.utc),
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ModificationResponse.model_validate(request)


@router.post("/modifications/{request_id}/reject", response_model=ModificationResponse)
async def reject_modification(
    request_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    payload: ModificationDecision = Body(default_factory=ModificationDecision),
    captain: Actor = Depends(get_current_captain),
    modification_service: ModificationService = Depends(get_modification_service),
) -> ModificationResponse:
    try:
        request = await asyncio.to_thread(
            modification_service.reject_modification,
            request_id,
            captain.id,
            payload.captain_response,
            datetime.now(timezone.utc),
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ModificationResponse.model_validate(request)
