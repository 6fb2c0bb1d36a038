# backend/charterbook/repositories/reschedule_offer_repository.py
"""Weather reschedule offers."""

from datetime import datetime
import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.reschedule_offer import RescheduleOffer
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class RescheduleOfferRepository(BaseRepository[RescheduleOffer]):
    def __init__(self, db: Session):
        super().__init__(db, RescheduleOffer)
        self.logger = logging.getLogger(__name__)

    def list_open(self, booking_id: str, now: Optional[datetime] = None) -> List[RescheduleOffer]:
        """Unselected offers, optionally only those not yet expired."""
        try:
            query = self.db.query(RescheduleOffer).filter(
                RescheduleOffer.booking_id == booking_id,
                RescheduleOffer.is_selected.is_(False),
            )
            if now is not None:
                query = query.filter(RescheduleOffer.expires_at > now)
            return cast(List[RescheduleOffer], query.order_by(RescheduleOffer.proposed_start).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing offers: {str(e)}")
            raise RepositoryException(f"Failed to list reschedule offers: {str(e)}")

    def delete_unselected(self, booking_id: str) -> int:
        try:
            deleted = (
                self.db.query(RescheduleOffer)
                .filter(
                    RescheduleOffer.booking_id == booking_id,
                    RescheduleOffer.is_selected.is_(False),
                )
                .delete(synchronize_session=False)
            )
            self.db.flush()
            return int(deleted)
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting offers: {str(e)}")
            raise RepositoryException(f"Failed to delete reschedule offers: {str(e)}")
