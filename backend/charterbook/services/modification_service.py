# backend/charterbook/services/modification_service.py
"""
Modification Service for Charterbook

Guests and captains can ask to move a booking or change its party size.
Both go through one validation and apply path; the only difference is that
captain requests are approved on creation while guest requests wait for
the captain's decision. Price is never changed by a modification.
"""

from datetime import datetime
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.actor import Actor
from ..core.enums import ActorType, LogEntryType, ModificationStatus, ModificationType, RequestedBy
from ..core.exceptions import (
    BookingConflictException,
    ConflictException,
    DomainException,
    NotFoundException,
    OwnershipException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc
from ..core.tokens import management_token_expiry
from ..models.booking import MODIFIABLE_STATUSES, Booking
from ..models.booking_modification import BookingModificationRequest
from ..repositories import RepositoryFactory
from ..repositories.modification_repository import ModificationRepository
from .base import BaseService
from .booking_service import BookingService

logger = logging.getLogger(__name__)


def _change_summary(
    new_start: Optional[datetime], new_party_size: Optional[int]
) -> Dict[str, Any]:
    return {
        "new_start": new_start.isoformat() if new_start else None,
        "new_party_size": new_party_size,
    }


class ModificationService(BaseService):
    def __init__(
        self,
        db: Session,
        booking_service: Optional[BookingService] = None,
        repository: Optional[ModificationRepository] = None,
    ):
        super().__init__(db)
        self.booking_service = booking_service or BookingService(db)
        self.repository = repository or RepositoryFactory.create_modification_repository(db)

    def _record_rejection(
        self,
        booking: Booking,
        actor: Actor,
        now: datetime,
        error: DomainException,
        change: Dict[str, Any],
    ) -> None:
        """Log a refused change in its own transaction; the caller re-raises."""
        with self.transaction():
            self.booking_service.write_log(
                booking,
                LogEntryType.TRANSITION_REJECTED,
                error.message,
                actor,
                old_value={"status": booking.status},
                new_value={**change, "code": error.code},
                now=now,
            )
        self.logger.info(f"Modification of booking {booking.id} refused: {error.message}")

    def _ensure_modifiable(
        self, booking: Booking, actor: Actor, now: datetime, change: Dict[str, Any]
    ) -> None:
        if booking.status_enum not in MODIFIABLE_STATUSES:
            error = ConflictException(
                f"A {booking.status} booking cannot be modified",
                details={"booking_id": booking.id, "status": booking.status},
            )
            self._record_rejection(booking, actor, now, error, change)
            raise error

    def _checked_change(
        self,
        booking: Booking,
        new_start: Optional[datetime],
        new_party_size: Optional[int],
        actor: Actor,
        now: datetime,
    ) -> Optional[datetime]:
        """``_validate_change`` that logs calendar conflicts before raising."""
        try:
            return self._validate_change(booking, new_start, new_party_size, now)
        except ConflictException as e:
            self._record_rejection(
                booking, actor, now, e, _change_summary(new_start, new_party_size)
            )
            raise

    def _validate_change(
        self,
        booking: Booking,
        new_start: Optional[datetime],
        new_party_size: Optional[int],
        now: datetime,
    ) -> Optional[datetime]:
        """Check a proposed change against the booking's captain; returns the new end."""
        if new_party_size is not None:
            self.booking_service.validate_party_size(
                booking.captain_id, booking.vessel_id, new_party_size
            )
        if new_start is None:
            return None

        new_end = new_start + booking.trip_type.duration
        self.booking_service.availability_service.validate_requested_range(
            booking.captain, new_start, new_end, now
        )
        conflicts = self.booking_service.conflict_checker.find_conflicts(
            new_start, new_end, booking.captain_id, exclude_booking_id=booking.id
        )
        if conflicts:
            raise BookingConflictException(details={"conflicts": conflicts})
        return new_end

    def _apply(
        self,
        booking: Booking,
        request: BookingModificationRequest,
        actor: Actor,
        now: datetime,
    ) -> None:
        """Apply an approved change. Caller owns the transaction."""
        before = booking.to_dict()
        if request.new_start is not None:
            self.booking_service.lock_and_check_conflicts(
                booking.captain_id,
                request.new_start,
                request.new_end,
                exclude_booking_id=booking.id,
            )
            booking.scheduled_start = request.new_start
            booking.scheduled_end = request.new_end
            booking.management_token_expires_at = management_token_expiry(request.new_start)
            booking.clear_trip_reminders()
        if request.new_party_size is not None:
            booking.party_size = request.new_party_size
        booking.updated_at = now
        self.booking_service.write_log(
            booking,
            LogEntryType.MODIFICATION_APPROVED,
            f"Modification {request.id} applied",
            actor,
            old_value=before,
            new_value={**booking.to_dict(), "modification_id": request.id},
            now=now,
        )

    @BaseService.measure_operation("request_modification")
    def request_modification(
        self,
        booking_id: str,
        actor: Actor,
        new_start: Optional[datetime],
        new_party_size: Optional[int],
        reason: Optional[str],
        now: datetime,
    ) -> BookingModificationRequest:
        """
        File a change request for a booking.

        The requesting side (guest or captain) is taken from ``actor``.
        Captain requests are applied immediately; guest requests stay
        pending and leave the booking untouched.

        Raises:
            ValidationException: Nothing would change, or the new values are invalid
            ConflictException: Booking not modifiable, or a guest request is already pending
            BookingConflictException: The new time collides with another booking
        """
        if actor.type is ActorType.SYSTEM:
            raise ValidationException("Modifications must be requested by a guest or captain")
        requested_by = RequestedBy(actor.type.value)
        now = ensure_utc(now)

        booking = self.booking_service.get_booking_for_actor(booking_id, actor)
        self._ensure_modifiable(booking, actor, now, _change_summary(new_start, new_party_size))

        start = ensure_utc(new_start) if new_start is not None else None
        if start is not None and start == ensure_utc(booking.scheduled_start):
            start = None
        party_size = new_party_size if new_party_size != booking.party_size else None
        if start is None and party_size is None:
            raise ValidationException("The requested change matches the current booking")

        if requested_by is RequestedBy.GUEST and self.repository.has_pending_guest_request(
            booking.id
        ):
            error = ConflictException(
                "A change request for this booking is already awaiting the captain",
                details={"booking_id": booking.id},
            )
            self._record_rejection(booking, actor, now, error, _change_summary(start, party_size))
            raise error

        new_end = self._checked_change(booking, start, party_size, actor, now)
        if start is not None and party_size is not None:
            modification_type = ModificationType.BOTH
        elif start is not None:
            modification_type = ModificationType.DATE_TIME
        else:
            modification_type = ModificationType.PARTY_SIZE

        auto_approve = requested_by is RequestedBy.CAPTAIN
        details = {"booking_id": booking.id}
        with self.booking_service.schedule_transaction(details):
            request = self.repository.create(
                booking_id=booking.id,
                requested_by=requested_by.value,
                modification_type=modification_type.value,
                status=(
                    ModificationStatus.APPROVED.value
                    if auto_approve
                    else ModificationStatus.PENDING.value
                ),
                original_start=booking.scheduled_start,
                original_end=booking.scheduled_end,
                original_party_size=booking.party_size,
                new_start=start,
                new_end=new_end,
                new_party_size=party_size,
                reason=reason,
                responded_at=now if auto_approve else None,
                created_at=now,
            )
            self.booking_service.write_log(
                booking,
                LogEntryType.MODIFICATION_REQUESTED,
                f"{requested_by.value.capitalize()} requested a {modification_type.value} change",
                actor,
                new_value={
                    "modification_id": request.id,
                    "new_start": start.isoformat() if start else None,
                    "new_party_size": party_size,
                },
                now=now,
            )
            if auto_approve:
                self._apply(booking, request, actor, now)

        self.log_operation(
            "request_modification",
            booking_id=booking.id,
            requested_by=requested_by.value,
            status=request.status,
        )
        if auto_approve:
            self.booking_service.notification_service.send_modification_decided(booking, request)
        else:
            self.booking_service.notification_service.send_modification_requested(
                booking, request
            )
        return request

    def _get_pending_for_captain(
        self, request_id: str, captain_id: str
    ) -> BookingModificationRequest:
        request = self.repository.get_with_booking(request_id)
        if request is None:
            raise NotFoundException(
                "Modification request not found", details={"request_id": request_id}
            )
        if request.booking.captain_id != captain_id:
            raise OwnershipException("You do not own this booking")
        if not request.is_pending:
            raise ConflictException(
                f"This request was already {request.status}",
                details={"request_id": request.id, "status": request.status},
            )
        return request

    @BaseService.measure_operation("approve_modification")
    def approve_modification(
        self,
        request_id: str,
        captain_id: str,
        response: Optional[str],
        now: datetime,
    ) -> BookingModificationRequest:
        """Approve a pending guest request after re-validating it against today's calendar."""
        now = ensure_utc(now)
        request = self._get_pending_for_captain(request_id, captain_id)
        booking = request.booking
        actor = Actor.captain(captain_id)
        change = {
            **_change_summary(request.new_start, request.new_party_size),
            "modification_id": request.id,
        }
        self._ensure_modifiable(booking, actor, now, change)
        new_end = self._checked_change(
            booking, request.new_start, request.new_party_size, actor, now
        )

        with self.booking_service.schedule_transaction({"booking_id": booking.id}):
            if new_end is not None:
                request.new_end = new_end
            request.status = ModificationStatus.APPROVED.value
            request.captain_response = response
            request.responded_at = now
            self._apply(booking, request, actor, now)

        self.booking_service.notification_service.send_modification_decided(booking, request)
        return request

    @BaseService.measure_operation("reject_modification")
    def reject_modification(
        self,
        request_id: str,
        captain_id: str,
        response: Optional[str],
        now: datetime,
    ) -> BookingModificationRequest:
        request = self._get_pending_for_captain(request_id, captain_id)
        booking = request.booking
        with self.transaction():
            request.status = ModificationStatus.REJECTED.value
            request.captain_response = response
            request.responded_at = now
            self.booking_service.write_log(
                booking,
                LogEntryType.MODIFICATION_REJECTED,
                f"Modification {request.id} rejected",
                Actor.captain(captain_id),
                new_value={"modification_id": request.id, "captain_response": response},
                now=now,
            )
        self.booking_service.notification_service.send_modification_decided(booking, request)
        return request

    def list_modifications(self, booking_id: str, actor: Actor) -> List[BookingModificationRequest]:
        booking = self.booking_service.get_booking_for_actor(booking_id, actor)
        return self.repository.list_for_booking(booking.id)
