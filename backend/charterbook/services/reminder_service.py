"""Deposit reminders for unpaid bookings and pre-trip reminders for booked ones."""

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.actor import Actor
from ..core.constants import (
    DEPOSIT_REMINDER_AFTER_HOURS,
    TRIP_REMINDER_24H_HOURS,
    TRIP_REMINDER_48H_HOURS,
)
from ..core.enums import LogEntryType
from ..core.timezone_utils import ensure_utc
from .base import BaseService
from .booking_service import BookingService

logger = logging.getLogger(__name__)

# (hours ahead, lower bound in hours, column recording the send)
TRIP_REMINDER_WINDOWS: List[Tuple[int, int, str]] = [
    (TRIP_REMINDER_24H_HOURS, 0, "reminder_sent_at"),
    (TRIP_REMINDER_48H_HOURS, TRIP_REMINDER_24H_HOURS, "reminder_48h_sent_at"),
]


@dataclass(frozen=True)
class ReminderRunResult:
    sent: int
    failed: int


class ReminderService(BaseService):
    def __init__(self, db: Session, booking_service: Optional[BookingService] = None):
        super().__init__(db)
        self.booking_service = booking_service or BookingService(db)

    @BaseService.measure_operation("send_deposit_reminders")
    def send_deposit_reminders(self, now: datetime) -> ReminderRunResult:
        """
        Remind guests whose deposit is still unpaid a day after booking.

        Each booking is reminded once. A failed send leaves the booking
        unmarked so the next run tries again.
        """
        now = ensure_utc(now)
        cutoff = now - timedelta(hours=DEPOSIT_REMINDER_AFTER_HOURS)
        candidates = self.booking_service.repository.get_deposit_reminder_candidates(cutoff)
        notifications = self.booking_service.notification_service

        sent = failed = 0
        for booking in candidates:
            if not notifications.send_deposit_reminder(booking):
                failed += 1
                continue
            with self.transaction():
                booking.deposit_reminder_sent_at = now
                booking.reminders_sent = (booking.reminders_sent or 0) + 1
                self.booking_service.write_log(
                    booking,
                    LogEntryType.GUEST_COMMUNICATION,
                    "Deposit reminder sent",
                    Actor.system(),
                    new_value={"reminders_sent": booking.reminders_sent},
                    now=now,
                )
            sent += 1

        self.log_operation("send_deposit_reminders", sent=sent, failed=failed)
        return ReminderRunResult(sent=sent, failed=failed)

    @BaseService.measure_operation("send_trip_reminders")
    def send_trip_reminders(self, now: datetime) -> ReminderRunResult:
        """
        Remind guests of confirmed or rescheduled trips starting soon.

        Trips starting within 24 hours get the 24h reminder; trips 24 to 48
        hours out get the 48h one. Each window is tracked by its own column,
        so a trip booked two days out receives both, on consecutive runs.
        """
        now = ensure_utc(now)
        repository = self.booking_service.repository
        notifications = self.booking_service.notification_service

        sent = failed = 0
        for hours_ahead, lower_hours, sent_column in TRIP_REMINDER_WINDOWS:
            candidates = repository.get_trip_reminder_candidates(
                now + timedelta(hours=lower_hours),
                now + timedelta(hours=hours_ahead),
                sent_column,
            )
            for booking in candidates:
                if not notifications.send_trip_reminder(booking, hours_ahead):
                    failed += 1
                    continue
                with self.transaction():
                    setattr(booking, sent_column, now)
                    booking.reminders_sent = (booking.reminders_sent or 0) + 1
                    self.booking_service.write_log(
                        booking,
                        LogEntryType.GUEST_COMMUNICATION,
                        f"{hours_ahead}h trip reminder sent",
                        Actor.system(),
                        new_value={
                            "reminder": f"{hours_ahead}h",
                            "reminders_sent": booking.reminders_sent,
                        },
                        now=now,
                    )
                sent += 1

        self.log_operation("send_trip_reminders", sent=sent, failed=failed)
        return ReminderRunResult(sent=sent, failed=failed)
