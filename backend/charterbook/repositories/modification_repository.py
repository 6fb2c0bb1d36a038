# backend/charterbook/repositories/modification_repository.py
"""Modification request queries."""

import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.enums import ModificationStatus, RequestedBy
from ..core.exceptions import RepositoryException
from ..models.booking_modification import BookingModificationRequest
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ModificationRepository(BaseRepository[BookingModificationRequest]):
    def __init__(self, db: Session):
        super().__init__(db, BookingModificationRequest)
        self.logger = logging.getLogger(__name__)

    def get_with_booking(self, request_id: str) -> Optional[BookingModificationRequest]:
        try:
            return cast(
                Optional[BookingModificationRequest],
                self.db.query(BookingModificationRequest)
                .options(joinedload(BookingModificationRequest.booking))
                .filter(BookingModificationRequest.id == request_id)
                .first(),
            )
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to get modification request: {str(e)}")

    def has_pending_guest_request(self, booking_id: str) -> bool:
        try:
            return (
                self.db.query(BookingModificationRequest.id)
                .filter(
                    BookingModificationRequest.booking_id == booking_id,
                    BookingModificationRequest.requested_by == RequestedBy.GUEST.value,
                    BookingModificationRequest.status == ModificationStatus.PENDING.value,
                )
                .first()
                is not None
            )
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to check pending requests: {str(e)}")

    def list_for_booking(self, booking_id: str) -> List[BookingModificationRequest]:
        try:
            return cast(
                List[BookingModificationRequest],
                self.db.query(BookingModificationRequest)
                .filter(BookingModificationRequest.booking_id == booking_id)
                .order_by(BookingModificationRequest.created_at)
                .all(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing modification requests: {str(e)}")
            raise RepositoryException(f"Failed to list modification requests: {str(e)}")
