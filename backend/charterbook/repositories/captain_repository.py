# backend/charterbook/repositories/captain_repository.py
"""Captain profile, vessel and trip type lookups."""

import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.captain import CaptainProfile, TripType, Vessel
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CaptainRepository(BaseRepository[CaptainProfile]):
    def __init__(self, db: Session):
        super().__init__(db, CaptainProfile)
        self.logger = logging.getLogger(__name__)

    def lock_for_admission(self, captain_id: str) -> Optional[CaptainProfile]:
        """
        SELECT ... FOR UPDATE on the captain row.

        Serialises booking admissions for one captain; SQLite ignores the
        lock clause.
        """
        try:
            return cast(
                Optional[CaptainProfile],
                self.db.query(CaptainProfile)
                .filter(CaptainProfile.id == captain_id)
                .with_for_update()
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking captain {captain_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock captain: {str(e)}")

    def get_trip_type(self, trip_type_id: str) -> Optional[TripType]:
        try:
            return cast(
                Optional[TripType],
                self.db.query(TripType).filter(TripType.id == trip_type_id).first(),
            )
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to get trip type: {str(e)}")

    def get_trip_type_for_captain(self, captain_id: str, trip_type_id: str) -> Optional[TripType]:
        """Trip type only if it belongs to the captain and is active."""
        try:
            return cast(
                Optional[TripType],
                self.db.query(TripType)
                .filter(
                    TripType.id == trip_type_id,
                    TripType.captain_id == captain_id,
                    TripType.is_active.is_(True),
                )
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting trip type {trip_type_id}: {str(e)}")
            raise RepositoryException(f"Failed to get trip type: {str(e)}")

    def get_vessel(self, vessel_id: str) -> Optional[Vessel]:
        try:
            return cast(
                Optional[Vessel], self.db.query(Vessel).filter(Vessel.id == vessel_id).first()
            )
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to get vessel: {str(e)}")

    def get_active_vessels(self, captain_id: str) -> List[Vessel]:
        try:
            return cast(
                List[Vessel],
                self.db.query(Vessel)
                .filter(Vessel.captain_id == captain_id, Vessel.is_active.is_(True))
                .order_by(Vessel.name)
                .all(),
            )
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to get vessels: {str(e)}")
