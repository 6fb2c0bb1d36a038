"""
Expiration sweep for unpaid bookings.

A booking still waiting on its deposit when its trip time arrives is
expired. Each expiry is a conditional update on ``status='pending_deposit'``,
so two sweeps running at once never expire (or log) the same booking twice.
"""

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.actor import Actor
from ..core.enums import LogEntryType
from ..core.timezone_utils import ensure_utc
from ..models.booking import BookingStatus
from ..models.booking_log import BookingLog
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.booking_log_repository import BookingLogRepository
from ..repositories.booking_repository import BookingRepository
from .base import BaseService

logger = logging.getLogger(__name__)

EXPIRY_DESCRIPTION = "Booking expired: deposit not received before scheduled date"


class ExpirationService(BaseService):
    def __init__(
        self,
        db: Session,
        repository: Optional[BookingRepository] = None,
        log_repository: Optional[BookingLogRepository] = None,
    ):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_booking_repository(db)
        self.log_repository = log_repository or RepositoryFactory.create_booking_log_repository(db)

    @BaseService.measure_operation("sweep_expired")
    def sweep_expired(self, now: datetime) -> List[str]:
        """
        Expire every pending-deposit booking whose start is before ``now``.

        Returns:
            IDs of the bookings this call expired; a second run returns []
        """
        now = ensure_utc(now)
        candidate_ids = self.repository.get_expirable_ids(now)
        system = Actor.system()
        expired: List[str] = []

        for booking_id in candidate_ids:
            # One transaction per booking
            with self.transaction():
                if not self.repository.expire_if_pending(booking_id, now):
                    continue
                entry = BookingLog.from_change(
                    booking_id=booking_id,
                    entry_type=LogEntryType.STATUS_CHANGED,
                    description=EXPIRY_DESCRIPTION,
                    actor_type=system.type,
                    actor_id=system.id,
                    old_value={"status": BookingStatus.PENDING_DEPOSIT.value},
                    new_value={"status": BookingStatus.EXPIRED.value},
                )
                entry.created_at = now
                self.log_repository.write(entry)
            expired.append(booking_id)
            prometheus_metrics.record_transition(
                BookingStatus.PENDING_DEPOSIT.value, BookingStatus.EXPIRED.value
            )

        if expired:
            prometheus_metrics.record_expired(len(expired))
        self.log_operation(
            "sweep_expired", candidates=len(candidate_ids), expired_count=len(expired)
        )
        return expired
