# backend/charterbook/services/availability_service.py
"""
Availability Service for Charterbook

Turns a captain's weekly windows, blackout dates and existing bookings into
bookable time slots, and owns the captain-facing management of that data.

Slots are walked in the captain's local wall-clock time in fixed 30-minute
steps. Each local start is localized with pytz and converted to UTC, so a
slot keeps its advertised local time across DST changes.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.constants import MAX_BLACKOUT_RANGE_DAYS, SLOT_STEP_MINUTES
from ..core.exceptions import (
    CaptainHibernatingException,
    DuplicateException,
    NotFoundException,
    OwnershipException,
    ValidationException,
)
from ..core.timezone_utils import day_of_week, ensure_utc, local_today, localize, to_local
from ..models.availability import AvailabilityWindow, BlackoutDate
from ..models.captain import CaptainProfile, TripType
from ..repositories import RepositoryFactory
from ..repositories.availability_repository import AvailabilityRepository
from ..repositories.captain_repository import CaptainRepository
from ..schemas.availability import AvailabilityWindowIn
from .base import BaseService
from .conflict_checker import ConflictChecker, ranges_overlap

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_START = time(6, 0)
DEFAULT_WINDOW_END = time(21, 0)
# Monday is off by convention in the seeded schedule
DEFAULT_INACTIVE_DAYS = frozenset({1})


@dataclass(frozen=True)
class Slot:
    start: datetime
    end: datetime
    available: bool


@dataclass(frozen=True)
class DayAvailability:
    date: date
    day_of_week: int
    has_availability: bool
    is_blackout: bool
    blackout_reason: Optional[str]
    is_past: bool
    is_beyond_advance_window: bool
    has_active_window: bool


class AvailabilityService(BaseService):
    """
    Service layer for slot generation and availability management.

    The slot listing is advisory: admission re-checks conflicts inside its
    own transaction.
    """

    def __init__(
        self,
        db: Session,
        repository: Optional[AvailabilityRepository] = None,
        captain_repository: Optional[CaptainRepository] = None,
        conflict_checker: Optional[ConflictChecker] = None,
    ):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_availability_repository(db)
        self.captain_repository = (
            captain_repository or RepositoryFactory.create_captain_repository(db)
        )
        self.conflict_checker = conflict_checker or ConflictChecker(db)

    # Lookups

    def get_captain(self, captain_id: str) -> CaptainProfile:
        captain = self.captain_repository.get_by_id(captain_id)
        if captain is None:
            raise NotFoundException("Captain not found", details={"captain_id": captain_id})
        return captain

    def get_bookable_captain(self, captain_id: str) -> CaptainProfile:
        captain = self.get_captain(captain_id)
        self._ensure_awake(captain)
        return captain

    @staticmethod
    def _ensure_awake(captain: CaptainProfile) -> None:
        if captain.is_hibernating:
            raise CaptainHibernatingException(captain.id)

    def _get_trip_type(self, captain_id: str, trip_type_id: str) -> TripType:
        trip_type = self.captain_repository.get_trip_type_for_captain(captain_id, trip_type_id)
        if trip_type is None:
            raise NotFoundException(
                "Trip type not found",
                details={"captain_id": captain_id, "trip_type_id": trip_type_id},
            )
        return trip_type

    @staticmethod
    def _horizon_flags(
        captain: CaptainProfile, target_date: date, now: datetime
    ) -> Tuple[bool, bool]:
        today = local_today(now, captain.timezone)
        is_past = target_date < today
        is_beyond = target_date > today + timedelta(days=captain.advance_booking_days)
        return is_past, is_beyond

    # Slot generation

    @BaseService.measure_operation("generate_slots")
    def generate_slots(
        self, captain_id: str, trip_type_id: str, target_date: date, now: datetime
    ) -> List[Slot]:
        """
        List candidate trip starts for one local date.

        Returns an empty list (not an error) for past dates, dates beyond the
        booking horizon, blackout dates and days without an active window.
        Slots overlapping an active booking or inside the lead-time buffer are
        listed with ``available=False``.
        """
        captain = self.get_bookable_captain(captain_id)
        trip_type = self._get_trip_type(captain_id, trip_type_id)
        now = ensure_utc(now)

        is_past, is_beyond = self._horizon_flags(captain, target_date, now)
        if is_past or is_beyond:
            return []
        if self.repository.get_blackout(captain_id, target_date) is not None:
            return []

        windows = self.repository.get_active_windows_for_day(captain_id, day_of_week(target_date))
        if not windows:
            return []

        candidates = self._walk_windows(captain.timezone, target_date, windows, trip_type.duration)
        if not candidates:
            return []

        range_start = candidates[0][0]
        range_end = max(end for _, end in candidates)
        booked = self.conflict_checker.repository.get_active_bookings_between(
            captain_id, range_start, range_end
        )
        earliest_start = now + timedelta(minutes=captain.buffer_minutes)

        slots = []
        for start, end in candidates:
            blocked = any(
                ranges_overlap(start, end, b.scheduled_start, b.scheduled_end) for b in booked
            )
            available = not blocked and start >= earliest_start
            slots.append(Slot(start=start, end=end, available=available))
        return slots

    @staticmethod
    def _walk_windows(
        tz_name: str,
        target_date: date,
        windows: Sequence[AvailabilityWindow],
        duration: timedelta,
    ) -> List[Tuple[datetime, datetime]]:
        step = timedelta(minutes=SLOT_STEP_MINUTES)
        seen = set()
        candidates = []
        for window in windows:
            cursor = datetime.combine(target_date, window.start_time)
            window_end = datetime.combine(target_date, window.end_time)
            while cursor + duration <= window_end:
                start = ensure_utc(localize(target_date, cursor.time(), tz_name))
                if start not in seen:
                    seen.add(start)
                    candidates.append((start, start + duration))
                cursor += step
        candidates.sort(key=lambda pair: pair[0])
        return candidates

    @BaseService.measure_operation("generate_range_availability")
    def generate_range_availability(
        self, captain_id: str, days: int, now: datetime
    ) -> List[DayAvailability]:
        """
        Per-day summary for a calendar, without expanding slots.

        Covers today through today + min(days, advance_booking_days), so the
        last bookable day of the horizon is included.
        """
        captain = self.get_bookable_captain(captain_id)
        count = min(days, captain.advance_booking_days)
        if count <= 0:
            return []

        today = local_today(now, captain.timezone)
        last_day = today + timedelta(days=count)
        blackouts = {
            b.date: b.reason for b in self.repository.list_blackouts(captain_id, today, last_day)
        }
        active_days = self.repository.get_active_days(captain_id)

        result = []
        for offset in range(count + 1):
            current = today + timedelta(days=offset)
            dow = day_of_week(current)
            is_past, is_beyond = self._horizon_flags(captain, current, now)
            is_blackout = current in blackouts
            has_window = dow in active_days
            result.append(
                DayAvailability(
                    date=current,
                    day_of_week=dow,
                    has_availability=has_window and not is_blackout and not is_past and not is_beyond,
                    is_blackout=is_blackout,
                    blackout_reason=blackouts.get(current),
                    is_past=is_past,
                    is_beyond_advance_window=is_beyond,
                    has_active_window=has_window,
                )
            )
        return result

    def validate_requested_range(
        self, captain: CaptainProfile, start: datetime, end: datetime, now: datetime
    ) -> None:
        """
        Admission-time check that a concrete range is offerable.

        Raises:
            CaptainHibernatingException: the captain has paused bookings
            ValidationException: past or beyond horizon, blacked out, inside the
                lead-time buffer, or not fully inside one active window
        """
        self._ensure_awake(captain)
        start = ensure_utc(start)
        end = ensure_utc(end)
        now = ensure_utc(now)
        local_start = to_local(start, captain.timezone)
        target_date = local_start.date()
        details = {"captain_id": captain.id, "scheduled_start": start.isoformat()}

        is_past, is_beyond = self._horizon_flags(captain, target_date, now)
        if is_past or start < now:
            raise ValidationException("Cannot book a time in the past", details=details)
        if is_beyond:
            raise ValidationException(
                f"Bookings open at most {captain.advance_booking_days} days in advance",
                details=details,
            )
        if self.repository.get_blackout(captain.id, target_date) is not None:
            raise ValidationException("The captain is unavailable on this date", details=details)
        if start < now + timedelta(minutes=captain.buffer_minutes):
            raise ValidationException(
                f"Bookings require at least {captain.buffer_minutes} minutes notice",
                details=details,
            )

        windows = self.repository.get_active_windows_for_day(captain.id, day_of_week(target_date))
        for window in windows:
            window_start = ensure_utc(localize(target_date, window.start_time, captain.timezone))
            window_end = ensure_utc(localize(target_date, window.end_time, captain.timezone))
            if window_start <= start and end <= window_end:
                return
        raise ValidationException(
            "Requested time is outside the captain's available hours", details=details
        )

    # Availability management

    @BaseService.measure_operation("seed_default_availability")
    def seed_default_availability(self, captain_id: str) -> List[AvailabilityWindow]:
        """Create the default weekly schedule if the captain has none."""
        self.get_captain(captain_id)
        existing = self.repository.get_windows(captain_id)
        if existing:
            return existing

        with self.transaction():
            windows = self.repository.bulk_create(
                [
                    {
                        "captain_id": captain_id,
                        "day_of_week": dow,
                        "start_time": DEFAULT_WINDOW_START,
                        "end_time": DEFAULT_WINDOW_END,
                        "is_active": dow not in DEFAULT_INACTIVE_DAYS,
                    }
                    for dow in range(7)
                ]
            )
        self.log_operation("seed_default_availability", captain_id=captain_id)
        return windows

    @BaseService.measure_operation("set_hibernation")
    def set_hibernation(self, captain_id: str, hibernating: bool) -> CaptainProfile:
        """Pause or resume new bookings and reschedules; booked trips keep their times."""
        captain = self.get_captain(captain_id)
        if captain.is_hibernating == hibernating:
            return captain
        with self.transaction():
            captain.is_hibernating = hibernating
        self.log_operation("set_hibernation", captain_id=captain_id, is_hibernating=hibernating)
        return captain

    def list_windows(self, captain_id: str) -> List[AvailabilityWindow]:
        self.get_captain(captain_id)
        return self.repository.get_windows(captain_id)

    @BaseService.measure_operation("replace_windows")
    def replace_windows(
        self, captain_id: str, windows: Sequence[AvailabilityWindowIn]
    ) -> List[AvailabilityWindow]:
        self.get_captain(captain_id)
        for window in windows:
            if not 0 <= window.day_of_week <= 6:
                raise ValidationException(f"Invalid day of week: {window.day_of_week}")
            if window.start_time >= window.end_time:
                raise ValidationException(
                    "Window start must be before its end",
                    details={"day_of_week": window.day_of_week},
                )

        with self.transaction():
            self.repository.delete_windows(captain_id)
            created = self.repository.bulk_create(
                [
                    {
                        "captain_id": captain_id,
                        "day_of_week": window.day_of_week,
                        "start_time": window.start_time,
                        "end_time": window.end_time,
                        "is_active": window.is_active,
                    }
                    for window in windows
                ]
            )
        self.log_operation("replace_windows", captain_id=captain_id, count=len(created))
        return created

    @BaseService.measure_operation("add_blackout")
    def add_blackout(
        self, captain_id: str, target_date: date, reason: Optional[str] = None
    ) -> BlackoutDate:
        self.get_captain(captain_id)
        if self.repository.get_blackout(captain_id, target_date) is not None:
            raise DuplicateException(
                "This date is already blocked", details={"date": target_date.isoformat()}
            )
        with self.transaction():
            blackout = self.repository.create_blackout(captain_id, target_date, reason)
        return blackout

    @BaseService.measure_operation("add_blackout_range")
    def add_blackout_range(
        self, captain_id: str, start_date: date, end_date: date, reason: Optional[str] = None
    ) -> List[BlackoutDate]:
        """Block every date in [start_date, end_date]; dates already blocked are skipped."""
        if start_date > end_date:
            raise ValidationException("Start date must be before or equal to end date")
        if (end_date - start_date).days > MAX_BLACKOUT_RANGE_DAYS:
            raise ValidationException(
                f"Date range cannot exceed {MAX_BLACKOUT_RANGE_DAYS} days"
            )
        self.get_captain(captain_id)

        existing = {b.date for b in self.repository.list_blackouts(captain_id, start_date, end_date)}
        missing = [
            start_date + timedelta(days=offset)
            for offset in range((end_date - start_date).days + 1)
            if start_date + timedelta(days=offset) not in existing
        ]
        if not missing:
            raise DuplicateException("All dates in range are already blocked")

        with self.transaction():
            created = [
                self.repository.create_blackout(captain_id, day, reason) for day in missing
            ]
        self.log_operation(
            "add_blackout_range", captain_id=captain_id, created=len(created), skipped=len(existing)
        )
        return created

    def remove_blackout(self, captain_id: str, blackout_id: str) -> None:
        blackout = self.repository.get_blackout_by_id(blackout_id)
        if blackout is None:
            raise NotFoundException("Blackout date not found", details={"blackout_id": blackout_id})
        if blackout.captain_id != captain_id:
            raise OwnershipException("You do not own this blackout date")
        with self.transaction():
            self.repository.delete_blackout(blackout)

    def list_blackouts(
        self, captain_id: str, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[BlackoutDate]:
        self.get_captain(captain_id)
        return self.repository.list_blackouts(captain_id, start, end)
