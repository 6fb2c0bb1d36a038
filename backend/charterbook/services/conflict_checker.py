# backend/charterbook/services/conflict_checker.py
"""
Conflict Checker Service for Charterbook

Decides whether a proposed time range collides with a captain's active
bookings. Ranges are half-open: a trip ending at 13:00 does not collide
with one starting at 13:00.

The check is advisory during slot listing and authoritative when it runs
inside the admission transaction.
"""

from datetime import datetime
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import ValidationException
from ..repositories import RepositoryFactory
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from .base import BaseService

logger = logging.getLogger(__name__)


def ranges_overlap(start1: datetime, end1: datetime, start2: datetime, end2: datetime) -> bool:
    """Half-open interval intersection."""
    return start1 < end2 and start2 < end1


class ConflictChecker(BaseService):
    """Service for checking booking conflicts on a captain's calendar."""

    def __init__(self, db: Session, repository: Optional[ConflictCheckerRepository] = None):
        super().__init__(db)
        self.logger = logging.getLogger(__name__)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)

    @staticmethod
    def _validate_range(start: datetime, end: datetime) -> None:
        if start.tzinfo is None or end.tzinfo is None:
            raise ValidationException("Booking times must be timezone-aware")
        if start >= end:
            raise ValidationException("End time must be after start time")

    def overlaps(
        self,
        start: datetime,
        end: datetime,
        captain_id: str,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        """
        Check if a time range has any conflicts.

        Args:
            start: Range start (aware)
            end: Range end (aware, exclusive)
            captain_id: The captain whose calendar is checked
            exclude_booking_id: Booking to ignore, used when moving a booking

        Returns:
            True if any active booking intersects the range
        """
        self._validate_range(start, end)
        return self.repository.has_overlap(captain_id, start, end, exclude_booking_id)

    @BaseService.measure_operation("find_conflicts")
    def find_conflicts(
        self,
        start: datetime,
        end: datetime,
        captain_id: str,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Conflicting bookings, shaped for error details."""
        self._validate_range(start, end)
        bookings = self.repository.get_overlapping_bookings(
            captain_id, start, end, exclude_booking_id
        )
        conflicts = [
            {
                "booking_id": booking.id,
                "scheduled_start": booking.scheduled_start.isoformat(),
                "scheduled_end": booking.scheduled_end.isoformat(),
                "status": booking.status,
            }
            for booking in bookings
        ]
        if conflicts:
            self.logger.warning(
                f"Found {len(conflicts)} booking conflicts for {captain_id} "
                f"between {start.isoformat()} and {end.isoformat()}"
            )
        return conflicts
