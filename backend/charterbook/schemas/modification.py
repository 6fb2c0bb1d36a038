# backend/charterbook/schemas/modification.py
from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator, model_validator

from ..core.constants import MAX_PARTY_SIZE, MAX_REASON_LENGTH, MIN_PARTY_SIZE
from ._strict_base import StrictModel, StrictRequestModel


class ModificationChange(StrictRequestModel):
    """Requested new start and/or party size; at least one is required."""

    new_start: Optional[datetime] = None
    new_party_size: Optional[int] = Field(None, ge=MIN_PARTY_SIZE, le=MAX_PARTY_SIZE)

    @field_validator("new_start")
    @classmethod
    def _aware_start(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and (value.tzinfo is None or value.utcoffset() is None):
            raise ValueError("new_start must include a timezone offset")
        return value

    @model_validator(mode="after")
    def _require_change(self) -> "ModificationChange":
        if self.new_start is None and self.new_party_size is None:
            raise ValueError("Provide new_start and/or new_party_size")
        return self


class ModificationCreate(ModificationChange):
    reason: Optional[str] = Field(None, max_length=MAX_REASON_LENGTH)


class ModificationDecision(StrictRequestModel):
    captain_response: Optional[str] = Field(None, max_length=MAX_REASON_LENGTH)


class ModificationResponse(StrictModel):
    id: str
    booking_id: str
    requested_by: str
    modification_type: str
    status: str
    original_start: datetime
    original_end: datetime
    original_party_size: int
    new_start: Optional[datetime] = None
    new_end: Optional[datetime] = None
    new_party_size: Optional[int] = None
    reason: Optional[str] = None
    captain_response: Optional[str] = None
    responded_at: Optional[datetime] = None
    created_at: datetime
