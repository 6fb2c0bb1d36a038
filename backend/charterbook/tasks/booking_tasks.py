# backend/charterbook/tasks/booking_tasks.py
"""
Celery tasks for the daily booking sweeps.

Each task opens its own session and holds the same Redis job lock as the
matching /api/v1/cron endpoint.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Dict

from ..core.job_lock import job_lock
from ..database import SessionLocal
from ..services.expiration_service import ExpirationService
from ..services.reminder_service import ReminderService
from ..services.weather_service import OUTCOME_HELD, WeatherService
from .celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="charterbook.tasks.expire_pending_bookings")
def expire_pending_bookings() -> Dict[str, Any]:
    with job_lock("expire-pending-bookings") as acquired:
        if not acquired:
            logger.info("expire-pending-bookings already running; skipping")
            return {"skipped": True}
        db = SessionLocal()
        try:
            expired = ExpirationService(db).sweep_expired(datetime.now(timezone.utc))
        finally:
            db.close()
    logger.info(f"Expired {len(expired)} pending bookings")
    return {"expired_count": len(expired), "expired_booking_ids": expired}


@celery_app.task(name="charterbook.tasks.check_weather")
def check_weather() -> Dict[str, Any]:
    with job_lock("check-weather") as acquired:
        if not acquired:
            logger.info("check-weather already running; skipping")
            return {"skipped": True}
        db = SessionLocal()
        try:
            outcomes = WeatherService(db).check_upcoming_bookings(datetime.now(timezone.utc))
        finally:
            db.close()
    held = sum(1 for o in outcomes if o.outcome == OUTCOME_HELD)
    return {"checked": len(outcomes), "held": held}


@celery_app.task(name="charterbook.tasks.send_deposit_reminders")
def send_deposit_reminders() -> Dict[str, Any]:
    with job_lock("send-deposit-reminders") as acquired:
        if not acquired:
            logger.info("send-deposit-reminders already running; skipping")
            return {"skipped": True}
        db = SessionLocal()
        try:
            result = ReminderService(db).send_deposit_reminders(datetime.now(timezone.utc))
        finally:
            db.close()
    return {"sent": result.sent, "failed": result.failed}


@celery_app.task(name="charterbook.tasks.send_trip_reminders")
def send_trip_reminders() -> Dict[str, Any]:
    with job_lock("send-trip-reminders") as acquired:
        if not acquired:
            logger.info("send-trip-reminders already running; skipping")
            return {"skipped": True}
        db = SessionLocal()
        try:
            result = ReminderService(db).send_trip_reminders(datetime.now(timezone.utc))
        finally:
            db.close()
    return {"sent": result.sent, "failed": result.failed}
