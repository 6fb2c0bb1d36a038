# backend/charterbook/repositories/factory.py
"""
Repository Factory for Charterbook

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .availability_repository import AvailabilityRepository
    from .booking_log_repository import BookingLogRepository
    from .booking_repository import BookingRepository
    from .captain_repository import CaptainRepository
    from .conflict_checker_repository import ConflictCheckerRepository
    from .modification_repository import ModificationRepository
    from .reschedule_offer_repository import RescheduleOfferRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_availability_repository(db: Session) -> "AvailabilityRepository":
        """Create repository for availability windows and blackouts."""
        from .availability_repository import AvailabilityRepository

        return AvailabilityRepository(db)

    @staticmethod
    def create_captain_repository(db: Session) -> "CaptainRepository":
        from .captain_repository import CaptainRepository

        return CaptainRepository(db)

    @staticmethod
    def create_conflict_checker_repository(db: Session) -> "ConflictCheckerRepository":
        """Create repository for conflict checking operations."""
        from .conflict_checker_repository import ConflictCheckerRepository

        return ConflictCheckerRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        """Create repository for booking operations."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_booking_log_repository(db: Session) -> "BookingLogRepository":
        from .booking_log_repository import BookingLogRepository

        return BookingLogRepository(db)

    @staticmethod
    def create_modification_repository(db: Session) -> "ModificationRepository":
        from .modification_repository import ModificationRepository

        return ModificationRepository(db)

    @staticmethod
    def create_reschedule_offer_repository(db: Session) -> "RescheduleOfferRepository":
        from .reschedule_offer_repository import RescheduleOfferRepository

        return RescheduleOfferRepository(db)
