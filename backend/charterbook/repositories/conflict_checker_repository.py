# backend/charterbook/repositories/conflict_checker_repository.py
"""
ConflictChecker Repository for Charterbook

Works exclusively with booking time ranges. Two ranges overlap iff
``start1 < end2 and start2 < end1`` (half-open intervals), and only
bookings in an active status hold calendar time.
"""

from datetime import datetime
import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import ACTIVE_STATUSES, Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

_ACTIVE_VALUES = [status.value for status in ACTIVE_STATUSES]


class ConflictCheckerRepository(BaseRepository[Booking]):
    """Repository for conflict checking data access."""

    def __init__(self, db: Session):
        """Initialize with Booking model as primary."""
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def _overlap_query(
        self,
        captain_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str],
    ):
        query = self.db.query(Booking).filter(
            Booking.captain_id == captain_id,
            Booking.status.in_(_ACTIVE_VALUES),
            Booking.scheduled_start < end,
            Booking.scheduled_end > start,
        )
        if exclude_booking_id:
            query = query.filter(Booking.id != exclude_booking_id)
        return query

    def has_overlap(
        self,
        captain_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        try:
            query = self._overlap_query(captain_id, start, end, exclude_booking_id)
            return query.first() is not None
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking overlap: {str(e)}")
            raise RepositoryException(f"Failed to check overlap: {str(e)}")

    def get_overlapping_bookings(
        self,
        captain_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Get active bookings whose range intersects [start, end).

        Args:
            captain_id: The captain whose calendar is checked
            start: Range start (UTC, inclusive)
            end: Range end (UTC, exclusive)
            exclude_booking_id: Optional booking ID to exclude from results

        Returns:
            Conflicting bookings ordered by start
        """
        try:
            query = self._overlap_query(captain_id, start, end, exclude_booking_id)
            return cast(List[Booking], query.order_by(Booking.scheduled_start).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting bookings for conflict check: {str(e)}")
            raise RepositoryException(f"Failed to get conflict bookings: {str(e)}")

    def get_active_bookings_between(
        self, captain_id: str, start: datetime, end: datetime
    ) -> List[Booking]:
        """All active bookings touching a window; used to mark a whole day's slots at once."""
        return self.get_overlapping_bookings(captain_id, start, end)
