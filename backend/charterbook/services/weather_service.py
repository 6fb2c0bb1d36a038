"""
Weather Monitor for Charterbook

Daily sweep over trips starting in the next 24-48 hours. Trips at a spot
with an active marine alert are put on weather hold and the guest is sent
alternative dates. One failed lookup never stops the sweep.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.actor import Actor
from ..core.constants import WEATHER_CHECK_WINDOW_END_HOURS, WEATHER_CHECK_WINDOW_START_HOURS
from ..core.exceptions import DomainException
from ..core.timezone_utils import ensure_utc
from ..integrations.weather_client import WeatherClient, WeatherClientError, build_weather_client
from ..models.booking import Booking
from .base import BaseService
from .booking_service import BookingService

logger = logging.getLogger(__name__)

OUTCOME_HELD = "held"
OUTCOME_SAFE = "safe"
OUTCOME_SKIPPED = "skipped"
OUTCOME_ERROR = "error"


@dataclass(frozen=True)
class WeatherCheckOutcome:
    booking_id: str
    outcome: str
    verdict: Optional[str] = None
    reason: Optional[str] = None


class WeatherService(BaseService):
    def __init__(
        self,
        db: Session,
        booking_service: Optional[BookingService] = None,
        weather_client: Optional[WeatherClient] = None,
    ):
        super().__init__(db)
        self.booking_service = booking_service or BookingService(db)
        self.weather_client = weather_client or build_weather_client()

    @BaseService.measure_operation("check_upcoming_bookings")
    def check_upcoming_bookings(self, now: datetime) -> List[WeatherCheckOutcome]:
        now = ensure_utc(now)
        window_start = now + timedelta(hours=WEATHER_CHECK_WINDOW_START_HOURS)
        window_end = now + timedelta(hours=WEATHER_CHECK_WINDOW_END_HOURS)
        candidates = self.booking_service.repository.get_weather_candidates(
            window_start, window_end
        )

        results = [self._check_booking(booking, now) for booking in candidates]
        held = sum(1 for r in results if r.outcome == OUTCOME_HELD)
        self.log_operation("check_upcoming_bookings", checked=len(results), held=held)
        return results

    def _check_booking(self, booking: Booking, now: datetime) -> WeatherCheckOutcome:
        captain = booking.captain
        if captain is None or not captain.has_meeting_spot:
            return WeatherCheckOutcome(
                booking.id, OUTCOME_SKIPPED, reason="Captain has no meeting spot coordinates"
            )

        try:
            assessment = self.weather_client.assess(
                captain.meeting_spot_latitude,
                captain.meeting_spot_longitude,
                booking.scheduled_start,
            )
        except WeatherClientError as exc:
            self.logger.warning(f"Weather lookup failed for booking {booking.id}: {exc}")
            return WeatherCheckOutcome(booking.id, OUTCOME_ERROR, reason=str(exc))

        verdict = assessment.verdict
        if not verdict.is_unsafe:
            return WeatherCheckOutcome(booking.id, OUTCOME_SAFE, verdict=verdict.value)

        reason = assessment.reason or f"Marine forecast is {verdict.value}"
        try:
            self.booking_service.set_weather_hold(
                booking.id, reason, Actor.system(), now, generate_offers=True
            )
        except DomainException as exc:
            self.logger.error(f"Could not place weather hold on booking {booking.id}: {exc.message}")
            return WeatherCheckOutcome(
                booking.id, OUTCOME_ERROR, verdict=verdict.value, reason=exc.message
            )
        return WeatherCheckOutcome(booking.id, OUTCOME_HELD, verdict=verdict.value, reason=reason)
