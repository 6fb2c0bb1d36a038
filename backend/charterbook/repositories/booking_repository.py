# backend/charterbook/repositories/booking_repository.py
"""
Booking Repository for Charterbook

Implements all data access operations for booking management, including
the selection queries used by the scheduled sweeps and the conditional
status update that makes expiry safe under concurrent sweeps.
"""

from datetime import datetime
import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.constants import DEFAULT_QUERY_LIMIT
from ..core.exceptions import RepositoryException
from ..models.booking import Booking, BookingStatus, PaymentStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """
    Repository for booking data access.

    Status changes other than expiry go through ORM attribute updates made
    by BookingService; this class only runs queries and the conditional
    expiry update.
    """

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def get_with_details(self, booking_id: str) -> Optional[Booking]:
        try:
            return cast(
                Optional[Booking],
                self.db.query(Booking)
                .options(
                    joinedload(Booking.captain),
                    joinedload(Booking.trip_type),
                    joinedload(Booking.vessel),
                )
                .filter(Booking.id == booking_id)
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to get booking: {str(e)}")

    def get_by_management_token(self, token: str) -> Optional[Booking]:
        try:
            return cast(
                Optional[Booking],
                self.db.query(Booking).filter(Booking.management_token == token).first(),
            )
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to get booking by token: {str(e)}")

    def get_by_payment_reference(self, payment_reference: str) -> Optional[Booking]:
        try:
            return cast(
                Optional[Booking],
                self.db.query(Booking)
                .filter(Booking.payment_reference == payment_reference)
                .first(),
            )
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to get booking by payment: {str(e)}")

    def list_for_captain(
        self,
        captain_id: str,
        *,
        status: Optional[BookingStatus] = None,
        start_from: Optional[datetime] = None,
        start_until: Optional[datetime] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> List[Booking]:
        try:
            query = self.db.query(Booking).filter(Booking.captain_id == captain_id)
            if status is not None:
                query = query.filter(Booking.status == status.value)
            if start_from is not None:
                query = query.filter(Booking.scheduled_start >= start_from)
            if start_until is not None:
                query = query.filter(Booking.scheduled_start < start_until)
            return cast(
                List[Booking], query.order_by(Booking.scheduled_start).limit(limit).all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings for captain {captain_id}: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")

    # Sweep queries

    def get_expirable_ids(self, now: datetime) -> List[str]:
        """IDs of pending-deposit bookings whose start has passed."""
        try:
            rows = (
                self.db.query(Booking.id)
                .filter(
                    Booking.status == BookingStatus.PENDING_DEPOSIT.value,
                    Booking.scheduled_start < now,
                )
                .order_by(Booking.scheduled_start)
                .all()
            )
            return [row[0] for row in rows]
        except SQLAlchemyError as e:
            self.logger.error(f"Error selecting expirable bookings: {str(e)}")
            raise RepositoryException(f"Failed to select expirable bookings: {str(e)}")

    def expire_if_pending(self, booking_id: str, now: datetime) -> bool:
        """
        Move one booking to expired only if it is still pending deposit.

        Returns True when this call performed the transition.
        """
        try:
            updated = (
                self.db.query(Booking)
                .filter(
                    Booking.id == booking_id,
                    Booking.status == BookingStatus.PENDING_DEPOSIT.value,
                )
                .update(
                    {Booking.status: BookingStatus.EXPIRED.value, Booking.updated_at: now},
                    synchronize_session="fetch",
                )
            )
            return updated == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error expiring booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to expire booking: {str(e)}")

    def get_weather_candidates(self, window_start: datetime, window_end: datetime) -> List[Booking]:
        """Upcoming bookings that can still be moved to a weather hold."""
        statuses = [
            BookingStatus.CONFIRMED.value,
            BookingStatus.PENDING_DEPOSIT.value,
            BookingStatus.RESCHEDULED.value,
        ]
        try:
            return cast(
                List[Booking],
                self.db.query(Booking)
                .options(joinedload(Booking.captain))
                .filter(
                    Booking.status.in_(statuses),
                    Booking.scheduled_start >= window_start,
                    Booking.scheduled_start <= window_end,
                )
                .order_by(Booking.scheduled_start)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error selecting weather candidates: {str(e)}")
            raise RepositoryException(f"Failed to select weather candidates: {str(e)}")

    def get_deposit_reminder_candidates(self, created_before: datetime) -> List[Booking]:
        try:
            return cast(
                List[Booking],
                self.db.query(Booking)
                .filter(
                    Booking.status == BookingStatus.PENDING_DEPOSIT.value,
                    Booking.payment_status == PaymentStatus.UNPAID.value,
                    Booking.created_at < created_before,
                    Booking.deposit_reminder_sent_at.is_(None),
                )
                .order_by(Booking.created_at)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error selecting reminder candidates: {str(e)}")
            raise RepositoryException(f"Failed to select reminder candidates: {str(e)}")


    def get_trip_reminder_candidates(
        self, starts_after: datetime, starts_until: datetime, sent_column: str
    ) -> List[Booking]:
        """
        Confirmed or rescheduled trips starting in ``(starts_after, starts_until]``
        that have not had the reminder tracked by ``sent_column``.
        """
        statuses = [BookingStatus.CONFIRMED.value, BookingStatus.RESCHEDULED.value]
        try:
            return cast(
                List[Booking],
                self.db.query(Booking)
                .options(joinedload(Booking.captain), joinedload(Booking.trip_type))
                .filter(
                    Booking.status.in_(statuses),
                    Booking.scheduled_start > starts_after,
                    Booking.scheduled_start <= starts_until,
                    getattr(Booking, sent_column).is_(None),
                )
                .order_by(Booking.scheduled_start)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error selecting trip reminder candidates: {str(e)}")
            raise RepositoryException(f"Failed to select trip reminder candidates: {str(e)}")
