# backend/charterbook/repositories/booking_log_repository.py
"""Append-only access to the booking log."""

import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import LogEntryType
from ..core.exceptions import RepositoryException
from ..models.booking_log import BookingLog
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingLogRepository(BaseRepository[BookingLog]):
    def __init__(self, db: Session):
        super().__init__(db, BookingLog)
        self.logger = logging.getLogger(__name__)

    def write(self, entry: BookingLog) -> BookingLog:
        try:
            self.db.add(entry)
            self.db.flush()
            return entry
        except SQLAlchemyError as e:
            self.logger.error(f"Error writing booking log: {str(e)}")
            raise RepositoryException(f"Failed to write booking log: {str(e)}")

    def list_for_booking(
        self, booking_id: str, entry_type: Optional[LogEntryType] = None
    ) -> List[BookingLog]:
        try:
            query = self.db.query(BookingLog).filter(BookingLog.booking_id == booking_id)
            if entry_type is not None:
                query = query.filter(BookingLog.entry_type == entry_type.value)
            return cast(
                List[BookingLog], query.order_by(BookingLog.created_at, BookingLog.id).all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing booking log: {str(e)}")
            raise RepositoryException(f"Failed to list booking log: {str(e)}")
