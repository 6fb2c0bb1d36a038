# backend/charterbook/repositories/__init__.py
"""
Repository layer for Charterbook.

Repositories own every query; services own the transaction boundary.
"""

from .availability_repository import AvailabilityRepository
from .base_repository import BaseRepository
from .booking_log_repository import BookingLogRepository
from .booking_repository import BookingRepository
from .captain_repository import CaptainRepository
from .conflict_checker_repository import ConflictCheckerRepository
from .factory import RepositoryFactory
from .modification_repository import ModificationRepository
from .reschedule_offer_repository import RescheduleOfferRepository

__all__ = [
    "AvailabilityRepository",
    "BaseRepository",
    "BookingLogRepository",
    "BookingRepository",
    "CaptainRepository",
    "ConflictCheckerRepository",
    "ModificationRepository",
    "RepositoryFactory",
    "RescheduleOfferRepository",
]
