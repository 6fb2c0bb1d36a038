# backend/charterbook/services/booking_service.py
"""
Booking Service for Charterbook

The booking lifecycle state machine. Every change to a booking's schedule,
status or payment fields goes through this service, and every status
transition writes exactly one booking log entry.

Admission and rescheduling serialise per captain: the captain row is locked,
conflicts are re-checked inside the same transaction, and on PostgreSQL the
``bookings_no_overlap_per_captain`` exclusion constraint backs both up.

Payment processor calls never run inside a database transaction. The
booking is only changed once the processor outcome is known.
"""

from contextlib import contextmanager
from datetime import datetime, timedelta
import logging
from typing import Any, Dict, Iterator, List, NoReturn, Optional, Tuple

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ..core.actor import Actor
from ..core.constants import (
    MAX_PARTY_SIZE,
    MIN_PARTY_SIZE,
    RESCHEDULE_OFFER_TTL_DAYS,
    RESCHEDULE_OFFER_WEEKS,
)
from ..core.enums import ActorType, LogEntryType
from ..core.exceptions import (
    BookingConflictException,
    ConflictException,
    InvalidTransitionException,
    NotFoundException,
    OwnershipException,
    PaymentNotAppliedException,
    UpstreamServiceException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc, localize, to_local
from ..core.tokens import (
    generate_confirmation_code,
    generate_management_token,
    management_token_expiry,
)
from ..integrations.payment_gateway import PaymentGateway, build_payment_gateway
from ..models.booking import Booking, BookingStatus, PaymentStatus, can_transition
from ..models.booking_log import BookingLog
from ..models.captain import CaptainProfile
from ..models.reschedule_offer import RescheduleOffer
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.booking_log_repository import BookingLogRepository
from ..repositories.booking_repository import BookingRepository
from ..repositories.captain_repository import CaptainRepository
from ..repositories.reschedule_offer_repository import RescheduleOfferRepository
from ..schemas.booking import BookingCreate
from .availability_service import AvailabilityService
from .base import BaseService
from .conflict_checker import ConflictChecker
from .notification_service import NotificationService
from .refund_policy import RefundDecision, RefundPolicy

logger = logging.getLogger(__name__)

GENERIC_CONFLICT_MESSAGE = "This time slot conflicts with an existing booking"
OVERLAP_CONSTRAINT = "bookings_no_overlap_per_captain"


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Callers pass the acting party as an ``Actor`` and the current time as
    ``now``; nothing here reads the wall clock.
    """

    def __init__(
        self,
        db: Session,
        repository: Optional[BookingRepository] = None,
        availability_service: Optional[AvailabilityService] = None,
        conflict_checker: Optional[ConflictChecker] = None,
        payment_gateway: Optional[PaymentGateway] = None,
        notification_service: Optional[NotificationService] = None,
        log_repository: Optional[BookingLogRepository] = None,
        offer_repository: Optional[RescheduleOfferRepository] = None,
        captain_repository: Optional[CaptainRepository] = None,
        refund_policy: Optional[RefundPolicy] = None,
    ):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_booking_repository(db)
        self.conflict_checker = conflict_checker or ConflictChecker(db)
        self.availability_service = availability_service or AvailabilityService(
            db, conflict_checker=self.conflict_checker
        )
        self.payment_gateway = payment_gateway or build_payment_gateway()
        self.notification_service = notification_service or NotificationService()
        self.log_repository = log_repository or RepositoryFactory.create_booking_log_repository(db)
        self.offer_repository = (
            offer_repository or RepositoryFactory.create_reschedule_offer_repository(db)
        )
        self.captain_repository = (
            captain_repository or RepositoryFactory.create_captain_repository(db)
        )
        self.refund_policy = refund_policy or RefundPolicy()

    # Lookups and authorization

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    def get_booking_for_actor(self, booking_id: str, actor: Actor) -> Booking:
        booking = self.get_booking(booking_id)
        self._authorize(booking, actor)
        return booking

    def get_booking_by_token(self, token: str, now: datetime) -> Booking:
        """Resolve a guest management link."""
        booking = self.repository.get_by_management_token(token)
        if booking is None:
            raise NotFoundException("Booking not found")
        if ensure_utc(booking.management_token_expires_at) <= ensure_utc(now):
            raise OwnershipException("This booking link has expired")
        return booking

    def list_bookings(
        self,
        captain_id: str,
        status: Optional[BookingStatus] = None,
        start_from: Optional[datetime] = None,
        start_until: Optional[datetime] = None,
    ) -> List[Booking]:
        self.availability_service.get_captain(captain_id)
        return self.repository.list_for_captain(
            captain_id, status=status, start_from=start_from, start_until=start_until
        )

    def get_booking_log(self, booking_id: str, actor: Actor) -> List[BookingLog]:
        booking = self.get_booking_for_actor(booking_id, actor)
        return self.log_repository.list_for_booking(booking.id)

    @staticmethod
    def _authorize(booking: Booking, actor: Actor) -> None:
        if actor.type is ActorType.CAPTAIN and booking.captain_id != actor.id:
            raise OwnershipException(
                "You do not have access to this booking", details={"booking_id": booking.id}
            )
        if actor.type is ActorType.GUEST and actor.id is not None and actor.id != booking.id:
            raise OwnershipException(
                "You do not have access to this booking", details={"booking_id": booking.id}
            )

    def validate_party_size(
        self, captain_id: str, vessel_id: Optional[str], party_size: int
    ) -> None:
        if not MIN_PARTY_SIZE <= party_size <= MAX_PARTY_SIZE:
            raise ValidationException(
                f"Party size must be between {MIN_PARTY_SIZE} and {MAX_PARTY_SIZE}",
                details={"party_size": party_size},
            )
        if vessel_id is None:
            return
        vessel = self.captain_repository.get_vessel(vessel_id)
        if vessel is None or vessel.captain_id != captain_id or not vessel.is_active:
            raise NotFoundException("Vessel not found", details={"vessel_id": vessel_id})
        if party_size > vessel.capacity:
            raise ValidationException(
                f"Party size exceeds vessel capacity of {vessel.capacity}",
                details={"party_size": party_size, "capacity": vessel.capacity},
            )

    # Booking log and transitions

    def write_log(
        self,
        booking: Booking,
        entry_type: LogEntryType,
        description: str,
        actor: Actor,
        old_value: Optional[Dict[str, Any]] = None,
        new_value: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> BookingLog:
        entry = BookingLog.from_change(
            booking_id=booking.id,
            entry_type=entry_type,
            description=description,
            actor_type=actor.type,
            actor_id=actor.id,
            old_value=old_value,
            new_value=new_value,
        )
        if now is not None:
            entry.created_at = now
        return self.log_repository.write(entry)

    def _ensure_transition(
        self,
        booking: Booking,
        target: BookingStatus,
        actor: Actor,
        now: datetime,
    ) -> None:
        """Raise (and log the attempt) if ``booking`` cannot move to ``target``."""
        if not can_transition(booking.status_enum, target):
            self._reject_transition(booking, target, actor, now)

    def _reject_transition(
        self,
        booking: Booking,
        target: BookingStatus,
        actor: Actor,
        now: datetime,
        message: Optional[str] = None,
    ) -> None:
        error = InvalidTransitionException(booking.status, target.value, message)
        # Committed on its own so the record survives the rejection
        with self.transaction():
            self.write_log(
                booking,
                LogEntryType.TRANSITION_REJECTED,
                error.message,
                actor,
                old_value={"status": booking.status},
                new_value={"requested_status": target.value},
                now=now,
            )
        self.logger.info(
            f"Rejected transition {booking.status} -> {target.value} for booking {booking.id}"
        )
        raise error

    def _apply_transition(
        self,
        booking: Booking,
        target: BookingStatus,
        actor: Actor,
        description: str,
        now: datetime,
        old_value: Dict[str, Any],
        entry_type: LogEntryType = LogEntryType.STATUS_CHANGED,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Set the new status and write the transition's log entry. Caller owns the transaction."""
        previous = booking.status
        if not can_transition(BookingStatus(previous), target):
            raise InvalidTransitionException(previous, target.value)
        booking.status = target.value
        booking.updated_at = now
        new_value = booking.to_dict()
        if extra:
            new_value.update(extra)
        self.write_log(booking, entry_type, description, actor, old_value, new_value, now=now)
        prometheus_metrics.record_transition(previous, target.value)

    # Admission

    @staticmethod
    def _is_deadlock_error(exc: OperationalError) -> bool:
        orig = getattr(exc, "orig", None)
        pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        if pgcode == "40P01":
            return True
        return "deadlock detected" in str(exc).lower()

    @staticmethod
    def _resolve_integrity_conflict_message(integrity_error: IntegrityError) -> str:
        orig = getattr(integrity_error, "orig", None)
        diag = getattr(orig, "diag", None)
        constraint_name = getattr(diag, "constraint_name", "") if diag is not None else ""
        if constraint_name == OVERLAP_CONSTRAINT or OVERLAP_CONSTRAINT in str(orig):
            return GENERIC_CONFLICT_MESSAGE
        return "This booking could not be saved because it conflicts with existing data"

    @contextmanager
    def schedule_transaction(self, details: Dict[str, Any]) -> Iterator[None]:
        """Transaction for schedule writes; database-level conflicts become 409s."""
        try:
            with self.repository.transaction():
                yield
        except IntegrityError as exc:
            raise BookingConflictException(
                message=self._resolve_integrity_conflict_message(exc), details=details
            ) from exc
        except OperationalError as exc:
            if self._is_deadlock_error(exc):
                raise BookingConflictException(
                    message=GENERIC_CONFLICT_MESSAGE, details=details
                ) from exc
            raise

    def lock_and_check_conflicts(
        self,
        captain_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        self.captain_repository.lock_for_admission(captain_id)
        conflicts = self.conflict_checker.find_conflicts(
            start, end, captain_id, exclude_booking_id=exclude_booking_id
        )
        if conflicts:
            raise BookingConflictException(
                details={
                    "captain_id": captain_id,
                    "scheduled_start": start.isoformat(),
                    "scheduled_end": end.isoformat(),
                    "conflicts": conflicts,
                }
            )

    @BaseService.measure_operation("create_booking")
    def create_booking(self, booking_data: BookingCreate, now: datetime) -> Booking:
        """
        Admit a new booking in ``pending_deposit``.

        Args:
            booking_data: The guest's request
            now: Current instant

        Returns:
            The created booking, including its management token

        Raises:
            NotFoundException: Unknown captain, trip type or vessel
            ValidationException: Time not offerable or party size out of range
            BookingConflictException: The range collides with an active booking
        """
        now = ensure_utc(now)
        captain = self.availability_service.get_captain(booking_data.captain_id)
        trip_type = self.captain_repository.get_trip_type_for_captain(
            captain.id, booking_data.trip_type_id
        )
        if trip_type is None:
            raise NotFoundException(
                "Trip type not found", details={"trip_type_id": booking_data.trip_type_id}
            )
        self.validate_party_size(captain.id, booking_data.vessel_id, booking_data.party_size)

        start = ensure_utc(booking_data.scheduled_start)
        end = start + trip_type.duration
        self.availability_service.validate_requested_range(captain, start, end, now)

        self.log_operation(
            "create_booking",
            captain_id=captain.id,
            trip_type_id=trip_type.id,
            scheduled_start=start.isoformat(),
        )
        details = {"captain_id": captain.id, "scheduled_start": start.isoformat()}
        with self.schedule_transaction(details):
            self.lock_and_check_conflicts(captain.id, start, end)
            booking = self.repository.create(
                captain_id=captain.id,
                vessel_id=booking_data.vessel_id,
                trip_type_id=trip_type.id,
                guest_name=booking_data.guest_name,
                guest_email=str(booking_data.guest_email),
                guest_phone=booking_data.guest_phone,
                party_size=booking_data.party_size,
                scheduled_start=start,
                scheduled_end=end,
                status=BookingStatus.PENDING_DEPOSIT.value,
                payment_status=PaymentStatus.UNPAID.value,
                total_price_cents=trip_type.price_total_cents,
                deposit_required_cents=trip_type.deposit_cents,
                deposit_paid_cents=0,
                refunded_cents=0,
                balance_due_cents=trip_type.price_total_cents,
                management_token=generate_management_token(),
                management_token_expires_at=management_token_expiry(start),
                confirmation_code=generate_confirmation_code(),
                created_at=now,
            )
            self.write_log(
                booking,
                LogEntryType.BOOKING_CREATED,
                f"Booking created for {booking.guest_name}, party of {booking.party_size}",
                Actor.guest(booking.id),
                new_value=booking.to_dict(),
                now=now,
            )

        self.logger.info(f"Booking {booking.id} created for captain {captain.id}")
        self.notification_service.send_booking_created(booking)
        return booking

    # Payments

    def _already_recorded(
        self,
        booking: Booking,
        payment_reference: str,
        entry_type: LogEntryType = LogEntryType.PAYMENT_RECEIVED,
    ) -> bool:
        entries = self.log_repository.list_for_booking(booking.id, entry_type)
        return any(
            (entry.new_value or {}).get("payment_reference") == payment_reference
            for entry in entries
        )

    @BaseService.measure_operation("record_payment")
    def record_payment(
        self,
        booking_id: str,
        amount_cents: int,
        actor: Actor,
        now: datetime,
        payment_reference: Optional[str] = None,
    ) -> Booking:
        """
        Record money received for a booking.

        Confirms a ``pending_deposit`` booking once the net amount paid covers
        the deposit. Replaying a payment reference that was already recorded
        is a no-op.

        Raises:
            PaymentNotAppliedException: the booking is terminal; the rejected
                payment is logged and processor money is refunded
        """
        if amount_cents <= 0:
            raise ValidationException("Payment amount must be positive")
        booking = self.get_booking_for_actor(booking_id, actor)
        if payment_reference and self._already_recorded(booking, payment_reference):
            self.logger.info(
                f"Payment {payment_reference} already recorded for booking {booking.id}"
            )
            return booking
        if booking.is_terminal:
            self._reject_payment(booking, amount_cents, actor, now, payment_reference)

        confirmed = False
        with self.transaction():
            before = booking.to_dict()
            booking.apply_payment(amount_cents)
            if payment_reference:
                booking.payment_reference = payment_reference
            booking.updated_at = now
            self.write_log(
                booking,
                LogEntryType.PAYMENT_RECEIVED,
                f"Payment of {amount_cents} cents received",
                actor,
                old_value=before,
                new_value={
                    **booking.to_dict(),
                    "payment_reference": payment_reference,
                    "amount_cents": amount_cents,
                },
                now=now,
            )
            if (
                booking.status_enum is BookingStatus.PENDING_DEPOSIT
                and booking.deposit_paid_cents >= booking.deposit_required_cents
            ):
                self._apply_transition(
                    booking,
                    BookingStatus.CONFIRMED,
                    actor,
                    "Deposit received; booking confirmed",
                    now,
                    old_value=before,
                )
                confirmed = True

        self.log_operation(
            "record_payment", booking_id=booking.id, amount_cents=amount_cents, confirmed=confirmed
        )
        if confirmed:
            self.notification_service.send_booking_confirmed(booking)
        return booking

    def _reject_payment(
        self,
        booking: Booking,
        amount_cents: int,
        actor: Actor,
        now: datetime,
        payment_reference: Optional[str],
    ) -> NoReturn:
        """
        Log a payment that arrived after the booking closed and return the money.

        Only processor payments (those with a reference) can be refunded. A
        replay of a payment that was already returned is not logged again.
        """
        message = f"Cannot record a payment on a {booking.status} booking"
        details: Dict[str, Any] = {
            "booking_id": booking.id,
            "status": booking.status,
            "payment_reference": payment_reference,
            "amount_cents": amount_cents,
        }
        if payment_reference and self._already_recorded(
            booking, payment_reference, LogEntryType.PAYMENT_REFUNDED
        ):
            raise PaymentNotAppliedException(message, refunded=True, details=details)

        refund = None
        if payment_reference:
            refund = self.payment_gateway.refund(
                payment_reference,
                amount_cents,
                f"Booking is {booking.status}",
                idempotency_key=f"unapplied-{payment_reference}",
            )
        refunded = refund is not None and refund.succeeded

        with self.transaction():
            self.write_log(
                booking,
                LogEntryType.PAYMENT_FAILED,
                f"Payment of {amount_cents} cents rejected: booking is {booking.status}",
                actor,
                new_value={**details, "error": refund.error if refund else None},
                now=now,
            )
            if refunded:
                self.write_log(
                    booking,
                    LogEntryType.PAYMENT_REFUNDED,
                    f"Returned unapplied payment of {amount_cents} cents",
                    Actor.system(),
                    new_value={
                        "payment_reference": payment_reference,
                        "refund_reference": refund.reference,
                        "amount_cents": amount_cents,
                    },
                    now=now,
                )

        if refund is not None and not refunded:
            self.logger.error(
                f"Refund of unapplied payment {payment_reference} failed: {refund.error}",
                extra={"booking_id": booking.id},
            )
        else:
            self.logger.warning(f"{message}: payment {payment_reference} refunded={refunded}")
        raise PaymentNotAppliedException(
            message, refunded=refunded, details={**details, "refunded": refunded}
        )

    def _record_payment_failure(
        self, booking: Booking, actor: Actor, now: datetime, description: str, error: Optional[str]
    ) -> None:
        with self.transaction():
            self.write_log(
                booking,
                LogEntryType.PAYMENT_FAILED,
                description,
                actor,
                new_value={"error": error},
                now=now,
            )
        self.logger.warning(f"{description} for booking {booking.id}: {error}")

    @BaseService.measure_operation("pay_deposit")
    def pay_deposit(
        self, booking_id: str, payment_method: str, actor: Actor, now: datetime
    ) -> Booking:
        """Charge the outstanding deposit through the gateway, then record it."""
        booking = self.get_booking_for_actor(booking_id, actor)
        if booking.status_enum is not BookingStatus.PENDING_DEPOSIT:
            self._reject_transition(
                booking,
                BookingStatus.CONFIRMED,
                actor,
                now,
                "A deposit can only be paid while the booking awaits one",
            )
        amount = booking.deposit_required_cents - booking.deposit_paid_cents
        if amount <= 0:
            with self.transaction():
                before = booking.to_dict()
                self._apply_transition(
                    booking, BookingStatus.CONFIRMED, actor, "No deposit required", now, before
                )
            return booking

        result = self.payment_gateway.charge(
            amount,
            booking.id,
            payment_method,
            idempotency_key=f"deposit-{booking.id}-{booking.deposit_paid_cents}",
        )
        if not result.succeeded:
            self._record_payment_failure(booking, actor, now, "Deposit charge failed", result.error)
            raise UpstreamServiceException(
                "Payment could not be processed", details={"error": result.error}
            )
        # The sweeper may have expired the booking while the charge was in flight
        self.repository.refresh(booking)
        return self.record_payment(
            booking.id, result.amount_cents, actor, now, payment_reference=result.reference
        )

    @BaseService.measure_operation("refund_payment")
    def refund_payment(
        self, booking_id: str, amount_cents: int, reason: str, actor: Actor, now: datetime
    ) -> Booking:
        """Refund part or all of the net amount paid without changing status."""
        if actor.type is ActorType.GUEST:
            raise OwnershipException("Only the captain can issue refunds")
        if amount_cents <= 0:
            raise ValidationException("Refund amount must be positive")
        if not reason or not reason.strip():
            raise ValidationException("A refund reason is required")
        booking = self.get_booking_for_actor(booking_id, actor)
        if amount_cents > booking.deposit_paid_cents:
            raise ValidationException(
                "Refund exceeds the amount paid",
                details={"amount_cents": amount_cents, "paid_cents": booking.deposit_paid_cents},
            )
        if not booking.payment_reference:
            raise ValidationException("No processor payment is on file for this booking")

        result = self.payment_gateway.refund(
            booking.payment_reference,
            amount_cents,
            reason,
            idempotency_key=f"refund-{booking.id}-{booking.refunded_cents}",
        )
        if not result.succeeded:
            self._record_payment_failure(booking, actor, now, "Refund failed", result.error)
            raise UpstreamServiceException(
                "Refund could not be processed", details={"error": result.error}
            )

        with self.transaction():
            self.repository.refresh(booking)
            before = booking.to_dict()
            booking.apply_refund(amount_cents)
            booking.updated_at = now
            self.write_log(
                booking,
                LogEntryType.PAYMENT_REFUNDED,
                f"Refunded {amount_cents} cents: {reason}",
                actor,
                old_value=before,
                new_value={**booking.to_dict(), "refund_reference": result.reference},
                now=now,
            )
        return booking

    # Cancellation and end-of-trip transitions

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self, booking_id: str, reason: str, actor: Actor, now: datetime
    ) -> Tuple[Booking, RefundDecision]:
        """
        Cancel an active booking and refund per the trip type's policy.

        Three phases: validate, refund through the processor with no
        transaction open, then commit the cancellation. A failed refund
        leaves the booking as it was.
        """
        if not reason or not reason.strip():
            raise ValidationException("A cancellation reason is required")
        booking = self.get_booking_for_actor(booking_id, actor)
        self._ensure_transition(booking, BookingStatus.CANCELLED, actor, now)

        trip_type = booking.trip_type or self.captain_repository.get_trip_type(booking.trip_type_id)
        decision = self.refund_policy.evaluate(booking, trip_type, actor, now)
        refund_cents = decision.refund_cents if booking.payment_reference else 0

        refund_reference = None
        if refund_cents > 0:
            result = self.payment_gateway.refund(
                booking.payment_reference,
                refund_cents,
                reason,
                idempotency_key=f"cancel-{booking.id}",
            )
            if not result.succeeded:
                self._record_payment_failure(
                    booking, actor, now, "Cancellation refund failed", result.error
                )
                raise UpstreamServiceException(
                    "Refund could not be processed; booking was not cancelled",
                    details={"error": result.error},
                )
            refund_reference = result.reference

        with self.transaction():
            self.repository.refresh(booking)
            before = booking.to_dict()
            if refund_cents > 0:
                booking.apply_refund(refund_cents)
                self.write_log(
                    booking,
                    LogEntryType.PAYMENT_REFUNDED,
                    f"Cancellation refund of {refund_cents} cents ({decision.percentage}%)",
                    actor,
                    old_value=before,
                    new_value={**booking.to_dict(), "refund_reference": refund_reference},
                    now=now,
                )
            still_cancellable = can_transition(booking.status_enum, BookingStatus.CANCELLED)
            if still_cancellable:
                booking.cancellation_reason = reason
                booking.cancelled_at = now
                self.offer_repository.delete_unselected(booking.id)
                self._apply_transition(
                    booking,
                    BookingStatus.CANCELLED,
                    actor,
                    f"Booking cancelled by {actor.type.value}: {reason}",
                    now,
                    old_value=before,
                    extra={"refund": decision.to_payload(), "refund_cents": refund_cents},
                )

        if not still_cancellable:
            # Status moved while the refund was in flight; the refund stands
            self._reject_transition(booking, BookingStatus.CANCELLED, actor, now)

        self.log_operation(
            "cancel_booking",
            booking_id=booking.id,
            refund_cents=refund_cents,
            policy_basis=decision.policy_basis,
        )
        self.notification_service.send_booking_cancelled(booking, refund_cents)
        return booking, decision

    def _finish_trip(
        self,
        booking_id: str,
        target: BookingStatus,
        actor: Actor,
        now: datetime,
        description: str,
    ) -> Booking:
        booking = self.get_booking_for_actor(booking_id, actor)
        self._ensure_transition(booking, target, actor, now)
        if ensure_utc(booking.scheduled_start) > ensure_utc(now):
            self._reject_transition(
                booking, target, actor, now, "The trip has not started yet"
            )
        with self.transaction():
            before = booking.to_dict()
            if target is BookingStatus.COMPLETED:
                booking.completed_at = now
            self._apply_transition(booking, target, actor, description, now, old_value=before)
        return booking

    @BaseService.measure_operation("complete_booking")
    def complete_booking(self, booking_id: str, actor: Actor, now: datetime) -> Booking:
        return self._finish_trip(
            booking_id, BookingStatus.COMPLETED, actor, now, "Trip completed"
        )

    @BaseService.measure_operation("mark_no_show")
    def mark_no_show(self, booking_id: str, actor: Actor, now: datetime) -> Booking:
        if not actor.is_captain:
            raise OwnershipException("Only the captain can mark a no-show")
        return self._finish_trip(
            booking_id, BookingStatus.NO_SHOW, actor, now, "Guest did not show up"
        )

    # Weather holds and rescheduling

    def _build_offer_times(
        self, booking: Booking, captain: CaptainProfile, now: datetime
    ) -> List[Tuple[datetime, datetime]]:
        """Same local time one, two and three weeks out, skipping unusable dates."""
        duration = ensure_utc(booking.scheduled_end) - ensure_utc(booking.scheduled_start)
        local_start = to_local(booking.scheduled_start, captain.timezone)
        times = []
        for weeks in RESCHEDULE_OFFER_WEEKS:
            day = local_start.date() + timedelta(weeks=weeks)
            start = ensure_utc(localize(day, local_start.time(), captain.timezone))
            end = start + duration
            if start <= now:
                continue
            if self.availability_service.repository.get_blackout(captain.id, day) is not None:
                continue
            if self.conflict_checker.overlaps(start, end, captain.id, exclude_booking_id=booking.id):
                continue
            times.append((start, end))
        return times

    @BaseService.measure_operation("set_weather_hold")
    def set_weather_hold(
        self,
        booking_id: str,
        reason: str,
        actor: Actor,
        now: datetime,
        generate_offers: bool = True,
    ) -> Booking:
        """
        Pause a booking for weather.

        The schedule and payments are untouched; the previous status is kept
        so the hold can be cleared.
        """
        if not reason or not reason.strip():
            raise ValidationException("A weather hold reason is required")
        now = ensure_utc(now)
        booking = self.get_booking_for_actor(booking_id, actor)
        self._ensure_transition(booking, BookingStatus.WEATHER_HOLD, actor, now)

        captain = booking.captain or self.availability_service.get_captain(booking.captain_id)
        offer_times = self._build_offer_times(booking, captain, now) if generate_offers else []

        with self.transaction():
            before = booking.to_dict()
            booking.pre_hold_status = booking.status
            if booking.original_scheduled_start is None:
                booking.original_scheduled_start = booking.scheduled_start
            booking.weather_hold_reason = reason
            self.offer_repository.delete_unselected(booking.id)
            offers = self.offer_repository.bulk_create(
                [
                    {
                        "booking_id": booking.id,
                        "proposed_start": start,
                        "proposed_end": end,
                        "expires_at": now + timedelta(days=RESCHEDULE_OFFER_TTL_DAYS),
                        "is_selected": False,
                        "created_at": now,
                    }
                    for start, end in offer_times
                ]
            )
            self._apply_transition(
                booking,
                BookingStatus.WEATHER_HOLD,
                actor,
                f"Weather hold: {reason}",
                now,
                old_value=before,
                entry_type=LogEntryType.WEATHER_HOLD_SET,
                extra={"offer_count": len(offers)},
            )

        self.notification_service.send_weather_hold(booking, offers)
        return booking

    @BaseService.measure_operation("clear_weather_hold")
    def clear_weather_hold(self, booking_id: str, actor: Actor, now: datetime) -> Booking:
        """Return a held booking to the status it had before the hold."""
        booking = self.get_booking_for_actor(booking_id, actor)
        target = BookingStatus(booking.pre_hold_status or BookingStatus.CONFIRMED.value)
        if (
            target is BookingStatus.PENDING_DEPOSIT
            and booking.deposit_paid_cents >= booking.deposit_required_cents
            and booking.deposit_paid_cents > 0
        ):
            # Deposit arrived during the hold
            target = BookingStatus.CONFIRMED
        if booking.status_enum is not BookingStatus.WEATHER_HOLD:
            self._reject_transition(booking, target, actor, now, "Booking is not on weather hold")

        with self.transaction():
            before = booking.to_dict()
            booking.weather_hold_reason = None
            booking.pre_hold_status = None
            self.offer_repository.delete_unselected(booking.id)
            self._apply_transition(
                booking,
                target,
                actor,
                "Weather hold cleared",
                now,
                old_value=before,
                entry_type=LogEntryType.WEATHER_HOLD_CLEARED,
            )
        return booking

    def list_reschedule_offers(
        self, booking_id: str, actor: Actor, now: datetime
    ) -> List[RescheduleOffer]:
        booking = self.get_booking_for_actor(booking_id, actor)
        if booking.status_enum is not BookingStatus.WEATHER_HOLD:
            return []
        return self.offer_repository.list_open(booking.id, now=now)

    @BaseService.measure_operation("accept_reschedule_offer")
    def accept_reschedule_offer(
        self, booking_id: str, offer_id: str, actor: Actor, now: datetime
    ) -> Booking:
        booking = self.get_booking_for_actor(booking_id, actor)
        offer = self.offer_repository.get_by_id(offer_id)
        if offer is None or offer.booking_id != booking.id:
            raise NotFoundException("Reschedule offer not found", details={"offer_id": offer_id})
        if offer.is_selected:
            raise ConflictException("This offer was already accepted")
        if ensure_utc(offer.expires_at) <= ensure_utc(now):
            raise ValidationException("This reschedule offer has expired")
        return self._reschedule(booking, offer.proposed_start, actor, now, offer=offer)

    @BaseService.measure_operation("reschedule_booking")
    def reschedule_booking(
        self, booking_id: str, new_start: datetime, actor: Actor, now: datetime
    ) -> Booking:
        booking = self.get_booking_for_actor(booking_id, actor)
        return self._reschedule(booking, new_start, actor, now)

    def _reschedule(
        self,
        booking: Booking,
        new_start: datetime,
        actor: Actor,
        now: datetime,
        offer: Optional[RescheduleOffer] = None,
    ) -> Booking:
        now = ensure_utc(now)
        self._ensure_transition(booking, BookingStatus.RESCHEDULED, actor, now)
        captain = booking.captain or self.availability_service.get_captain(booking.captain_id)
        trip_type = booking.trip_type or self.captain_repository.get_trip_type(booking.trip_type_id)

        start = ensure_utc(new_start)
        end = start + trip_type.duration
        self.availability_service.validate_requested_range(captain, start, end, now)

        details = {"booking_id": booking.id, "scheduled_start": start.isoformat()}
        with self.schedule_transaction(details):
            self.lock_and_check_conflicts(captain.id, start, end, exclude_booking_id=booking.id)
            before = booking.to_dict()
            booking.scheduled_start = start
            booking.scheduled_end = end
            booking.management_token_expires_at = management_token_expiry(start)
            booking.clear_trip_reminders()
            booking.weather_hold_reason = None
            booking.pre_hold_status = None
            if offer is not None:
                offer.is_selected = True
                # The bulk delete below reads the flag from the database
                self.db.flush()
            self.offer_repository.delete_unselected(booking.id)
            self._apply_transition(
                booking,
                BookingStatus.RESCHEDULED,
                actor,
                f"Rescheduled to {start.isoformat()}",
                now,
                old_value=before,
                entry_type=LogEntryType.RESCHEDULED,
                extra={"offer_id": offer.id if offer is not None else None},
            )

        self.notification_service.send_booking_rescheduled(booking)
        return booking
