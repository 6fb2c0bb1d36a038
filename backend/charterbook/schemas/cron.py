# backend/charterbook/schemas/cron.py
"""Responses for the scheduled-job HTTP triggers."""

from typing import List, Optional

from ._strict_base import StrictModel


class ExpireBookingsResponse(StrictModel):
    expired_count: int
    expired_booking_ids: List[str]
    skipped: bool = False


class WeatherCheckResult(StrictModel):
    booking_id: str
    outcome: str
    verdict: Optional[str] = None
    reason: Optional[str] = None


class WeatherCheckResponse(StrictModel):
    checked: int
    held: int
    results: List[WeatherCheckResult]
    skipped: bool = False


class DepositRemindersResponse(StrictModel):
    sent: int
    failed: int
    skipped: bool = False


class TripRemindersResponse(StrictModel):
    sent: int
    failed: int
    skipped: bool = False
