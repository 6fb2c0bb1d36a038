from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

import pytest

from charterbook.models import BookingStatus
from charterbook.tasks import booking_tasks
from charterbook.tasks.beat_schedule import get_beat_schedule


class _SharedSession:
    """Hands the test session to a task without letting the task close it."""

    def __init__(self, db):
        self._db = db

    def __getattr__(self, name):
        return getattr(self._db, name)

    def close(self):
        pass


@pytest.fixture
def task_session(monkeypatch, db):
    monkeypatch.setattr(booking_tasks, "SessionLocal", lambda: _SharedSession(db))

    @contextmanager
    def acquired(name, ttl_s=600):
        yield True

    monkeypatch.setattr(booking_tasks, "job_lock", acquired)
    return db


def test_expire_task_sweeps(task_session, captain, trip_type, make_booking):
    stale = make_booking(
        captain, trip_type, start=datetime.now(timezone.utc) - timedelta(hours=2)
    )

    result = booking_tasks.expire_pending_bookings()

    assert result == {"expired_count": 1, "expired_booking_ids": [stale.id]}
    assert stale.status == BookingStatus.EXPIRED.value


def test_reminder_task_reports_counts(task_session, captain, trip_type, make_booking):
    now = datetime.now(timezone.utc)
    make_booking(
        captain, trip_type, start=now + timedelta(days=5), created_at=now - timedelta(days=3)
    )

    assert booking_tasks.send_deposit_reminders() == {"sent": 1, "failed": 0}


def test_task_skips_when_lock_is_held(monkeypatch):
    @contextmanager
    def held(name, ttl_s=600):
        yield False

    monkeypatch.setattr(booking_tasks, "job_lock", held)

    assert booking_tasks.check_weather() == {"skipped": True}


def test_trip_reminder_task_reports_counts(task_session, captain, trip_type, make_booking):
    make_booking(
        captain,
        trip_type,
        start=datetime.now(timezone.utc) + timedelta(hours=12),
        status=BookingStatus.CONFIRMED,
    )

    assert booking_tasks.send_trip_reminders() == {"sent": 1, "failed": 0}


def test_beat_schedule_names_registered_tasks():
    schedule = get_beat_schedule()

    assert set(schedule) == {
        "expire-pending-bookings",
        "check-weather",
        "send-deposit-reminders",
        "send-trip-reminders",
    }
    for entry in schedule.values():
        assert entry["task"].startswith("charterbook.tasks.")
