# backend/charterbook/routes/v1/cron.py
"""
Scheduled-job triggers - API v1

HTTP entry points for the daily sweeps, for schedulers that call URLs
instead of running Celery beat. Every endpoint requires the cron secret and
holds the same Redis job lock the Celery tasks use, so a beat run and an
HTTP run never overlap.

Endpoints:
    POST /cron/expire-bookings - Expire unpaid bookings whose date has arrived
    POST /cron/check-weather - Weather-check trips 24-48h out
    POST /cron/deposit-reminders - Remind guests with an unpaid deposit
    POST /cron/trip-reminders - 24h and 48h reminders for upcoming trips
"""

import asyncio
from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Depends

from ...api.dependencies import (
    get_expiration_service,
    get_reminder_service,
    get_weather_service,
    verify_cron_secret,
)
from ...core.job_lock import job_lock
from ...schemas.cron import (
    DepositRemindersResponse,
    ExpireBookingsResponse,
    TripRemindersResponse,
    WeatherCheckResponse,
    WeatherCheckResult,
)
from ...services.expiration_service import ExpirationService
from ...services.reminder_service import ReminderService
from ...services.weather_service import OUTCOME_HELD, WeatherService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron-v1"], dependencies=[Depends(verify_cron_secret)])

EXPIRE_JOB = "expire-pending-bookings"
WEATHER_JOB = "check-weather"
REMINDER_JOB = "send-deposit-reminders"
TRIP_REMINDER_JOB = "send-trip-reminders"


@router.post("/expire-bookings", response_model=ExpireBookingsResponse)
async def expire_bookings(
    expiration_service: ExpirationService = Depends(get_expiration_service),
) -> ExpireBookingsResponse:
    with job_lock(EXPIRE_JOB) as acquired:
        if not acquired:
            logger.info(f"{EXPIRE_JOB} already running; skipping")
            return ExpireBookingsResponse(expired_count=0, expired_booking_ids=[], skipped=True)
        expired = await asyncio.to_thread(
            expiration_service.sweep_expired, datetime.now(timezone.utc)
        )
    return ExpireBookingsResponse(expired_count=len(expired), expired_booking_ids=expired)


@router.post("/check-weather", response_model=WeatherCheckResponse)
async def check_weather(
    weather_service: WeatherService = Depends(get_weather_service),
) -> WeatherCheckResponse:
    with job_lock(WEATHER_JOB) as acquired:
        if not acquired:
            logger.info(f"{WEATHER_JOB} already running; skipping")
            return WeatherCheckResponse(checked=0, held=0, results=[], skipped=True)
        outcomes = await asyncio.to_thread(
            weather_service.check_upcoming_bookings, datetime.now(timezone.utc)
        )
    return WeatherCheckResponse(
        checked=len(outcomes),
        held=sum(1 for o in outcomes if o.outcome == OUTCOME_HELD),
        results=[
            WeatherCheckResult(
                booking_id=o.booking_id, outcome=o.outcome, verdict=o.verdict, reason=o.reason
            )
            for o in outcomes
        ],
    )


@router.post("/deposit-reminders", response_model=DepositRemindersResponse)
async def send_deposit_reminders(
    reminder_service: ReminderService = Depends(get_reminder_service),
) -> DepositRemindersResponse:
    with job_lock(REMINDER_JOB) as acquired:
        if not acquired:
            logger.info(f"{REMINDER_JOB} already running; skipping")
            return DepositRemindersResponse(sent=0, failed=0, skipped=True)
        result = await asyncio.to_thread(
            reminder_service.send_deposit_reminders, datetime.now(timezone.utc)
        )
    return DepositRemindersResponse(sent=result.sent, failed=result.failed)


@router.post("/trip-reminders", response_model=TripRemindersResponse)
async def send_trip_reminders(
    reminder_service: ReminderService = Depends(get_reminder_service),
) -> TripRemindersResponse:
    with job_lock(TRIP_REMINDER_JOB) as acquired:
        if not acquired:
            logger.info(f"{TRIP_REMINDER_JOB} already running; skipping")
            return TripRemindersResponse(sent=0, failed=0, skipped=True)
        result = await asyncio.to_thread(
            reminder_service.send_trip_reminders, datetime.now(timezone.utc)
        )
    return TripRemindersResponse(sent=result.sent, failed=result.failed)
