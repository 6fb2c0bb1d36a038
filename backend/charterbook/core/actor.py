"""Who is acting on a booking, as recorded in the booking log."""

from dataclasses import dataclass
from typing import Optional

from .enums import ActorType


@dataclass(frozen=True)
class Actor:
    type: ActorType
    id: Optional[str] = None

    @classmethod
    def system(cls) -> "Actor":
        return cls(ActorType.SYSTEM)

    @classmethod
    def captain(cls, captain_id: str) -> "Actor":
        return cls(ActorType.CAPTAIN, captain_id)

    @classmethod
    def guest(cls, booking_id: Optional[str] = None) -> "Actor":
        # Guests have no account; the booking id stands in for them.
        return cls(ActorType.GUEST, booking_id)

    @property
    def is_captain(self) -> bool:
        return self.type is ActorType.CAPTAIN
