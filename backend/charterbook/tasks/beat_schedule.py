# backend/charterbook/tasks/beat_schedule.py
"""
Celery Beat schedule for the daily booking sweeps.

All times are UTC.
"""

from typing import Any, Dict

from celery.schedules import crontab

CELERYBEAT_SCHEDULE: Dict[str, Dict[str, Any]] = {
    # Expire unpaid bookings whose trip date has arrived
    "expire-pending-bookings": {
        "task": "charterbook.tasks.expire_pending_bookings",
        "schedule": crontab(hour=0, minute=15),
    },
    # Marine forecast check for trips 24-48h out
    "check-weather": {
        "task": "charterbook.tasks.check_weather",
        "schedule": crontab(hour=11, minute=0),
    },
    "send-deposit-reminders": {
        "task": "charterbook.tasks.send_deposit_reminders",
        "schedule": crontab(hour=14, minute=0),
    },
    # 24h and 48h reminders for confirmed trips
    "send-trip-reminders": {
        "task": "charterbook.tasks.send_trip_reminders",
        "schedule": crontab(hour=13, minute=0),
    },
}


def get_beat_schedule() -> Dict[str, Dict[str, Any]]:
    return dict(CELERYBEAT_SCHEDULE)
