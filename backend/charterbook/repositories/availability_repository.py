# backend/charterbook/repositories/availability_repository.py
"""
Availability Repository for Charterbook

Data access for weekly availability windows and blackout dates. The slot
generator only reads through this repository; writes come from the
captain-facing availability management operations.
"""

from datetime import date
import logging
from typing import List, Optional, Set, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.availability import AvailabilityWindow, BlackoutDate
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AvailabilityRepository(BaseRepository[AvailabilityWindow]):
    """Repository for availability windows; blackout queries live here too."""

    def __init__(self, db: Session):
        super().__init__(db, AvailabilityWindow)
        self.logger = logging.getLogger(__name__)

    # Window queries

    def get_windows(self, captain_id: str) -> List[AvailabilityWindow]:
        """All windows for a captain ordered by day and start time."""
        try:
            return cast(
                List[AvailabilityWindow],
                self.db.query(AvailabilityWindow)
                .filter(AvailabilityWindow.captain_id == captain_id)
                .order_by(AvailabilityWindow.day_of_week, AvailabilityWindow.start_time)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting windows for captain {captain_id}: {str(e)}")
            raise RepositoryException(f"Failed to get availability windows: {str(e)}")

    def get_active_windows_for_day(
        self, captain_id: str, day_of_week: int
    ) -> List[AvailabilityWindow]:
        try:
            return cast(
                List[AvailabilityWindow],
                self.db.query(AvailabilityWindow)
                .filter(
                    AvailabilityWindow.captain_id == captain_id,
                    AvailabilityWindow.day_of_week == day_of_week,
                    AvailabilityWindow.is_active.is_(True),
                )
                .order_by(AvailabilityWindow.start_time)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting active windows: {str(e)}")
            raise RepositoryException(f"Failed to get active windows: {str(e)}")

    def get_active_days(self, captain_id: str) -> Set[int]:
        """Days of week (0 = Sunday) with at least one active window."""
        try:
            rows = (
                self.db.query(AvailabilityWindow.day_of_week)
                .filter(
                    AvailabilityWindow.captain_id == captain_id,
                    AvailabilityWindow.is_active.is_(True),
                )
                .distinct()
                .all()
            )
            return {row[0] for row in rows}
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting active days: {str(e)}")
            raise RepositoryException(f"Failed to get active days: {str(e)}")

    def delete_windows(self, captain_id: str) -> int:
        try:
            deleted = (
                self.db.query(AvailabilityWindow)
                .filter(AvailabilityWindow.captain_id == captain_id)
                .delete(synchronize_session=False)
            )
            self.db.flush()
            return int(deleted)
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting windows: {str(e)}")
            raise RepositoryException(f"Failed to delete windows: {str(e)}")

    # Blackout Date Queries

    def get_blackout(self, captain_id: str, target_date: date) -> Optional[BlackoutDate]:
        """
        Check if a specific date is blacked out for a captain.

        Returns:
            BlackoutDate object if exists, None otherwise
        """
        try:
            return cast(
                Optional[BlackoutDate],
                self.db.query(BlackoutDate)
                .filter(BlackoutDate.captain_id == captain_id, BlackoutDate.date == target_date)
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking blackout date: {str(e)}")
            raise RepositoryException(f"Failed to check blackout: {str(e)}")

    def get_blackout_by_id(self, blackout_id: str) -> Optional[BlackoutDate]:
        try:
            return cast(
                Optional[BlackoutDate],
                self.db.query(BlackoutDate).filter(BlackoutDate.id == blackout_id).first(),
            )
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to get blackout: {str(e)}")

    def list_blackouts(
        self, captain_id: str, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[BlackoutDate]:
        try:
            query = self.db.query(BlackoutDate).filter(BlackoutDate.captain_id == captain_id)
            if start is not None:
                query = query.filter(BlackoutDate.date >= start)
            if end is not None:
                query = query.filter(BlackoutDate.date <= end)
            return cast(List[BlackoutDate], query.order_by(BlackoutDate.date).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing blackouts: {str(e)}")
            raise RepositoryException(f"Failed to list blackouts: {str(e)}")

    def create_blackout(
        self, captain_id: str, target_date: date, reason: Optional[str]
    ) -> BlackoutDate:
        try:
            blackout = BlackoutDate(captain_id=captain_id, date=target_date, reason=reason)
            self.db.add(blackout)
            self.db.flush()
            return blackout
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating blackout: {str(e)}")
            raise RepositoryException(f"Failed to create blackout: {str(e)}")

    def delete_blackout(self, blackout: BlackoutDate) -> None:
        try:
            self.db.delete(blackout)
            self.db.flush()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to delete blackout: {str(e)}")
