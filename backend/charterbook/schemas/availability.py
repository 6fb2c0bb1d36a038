# backend/charterbook/schemas/availability.py
"""Availability windows, blackouts and slot listings."""

from datetime import date, datetime, time
from typing import List, Optional

from pydantic import Field, model_validator

from ..core.constants import MAX_REASON_LENGTH
from ._strict_base import StrictModel, StrictRequestModel


class AvailabilityWindowIn(StrictRequestModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday")
    start_time: time
    end_time: time
    is_active: bool = True

    @model_validator(mode="after")
    def _check_order(self) -> "AvailabilityWindowIn":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class AvailabilityWindowsReplace(StrictRequestModel):
    windows: List[AvailabilityWindowIn]


class AvailabilityWindowResponse(StrictModel):
    id: str
    day_of_week: int
    start_time: time
    end_time: time
    is_active: bool


class BlackoutCreate(StrictRequestModel):
    date: date
    reason: Optional[str] = Field(None, max_length=255)


class BlackoutRangeCreate(StrictRequestModel):
    start_date: date
    end_date: date
    reason: Optional[str] = Field(None, max_length=MAX_REASON_LENGTH)


class BlackoutResponse(StrictModel):
    id: str
    date: date
    reason: Optional[str] = None


class SlotResponse(StrictModel):
    start: datetime
    end: datetime
    available: bool


class DaySlotsResponse(StrictModel):
    date: date
    captain_timezone: str
    slots: List[SlotResponse]


class DayAvailabilityResponse(StrictModel):
    date: date
    day_of_week: int
    has_availability: bool
    is_blackout: bool
    blackout_reason: Optional[str] = None
    is_past: bool
    is_beyond_advance_window: bool
    has_active_window: bool


class RangeAvailabilityResponse(StrictModel):
    captain_timezone: str
    dates: List[DayAvailabilityResponse]


class HibernationUpdate(StrictRequestModel):
    is_hibernating: bool


class HibernationResponse(StrictModel):
    id: str
    is_hibernating: bool
