"""
Payment processor gateway.

The booking engine only needs two calls (charge and refund) and a yes/no
outcome. Gateways never raise for processor declines; they return a failed
``PaymentResult`` so the caller can log and leave the booking untouched.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import logging
from typing import Dict, List, Optional
from uuid import uuid4

import stripe

from ..core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentResult:
    succeeded: bool
    reference: Optional[str] = None
    amount_cents: int = 0
    error: Optional[str] = None


class PaymentGateway(ABC):
    """Interface implemented by the Stripe and fake gateways."""

    @abstractmethod
    def charge(
        self,
        amount_cents: int,
        booking_ref: str,
        payment_method: str,
        idempotency_key: Optional[str] = None,
    ) -> PaymentResult:
        pass

    @abstractmethod
    def refund(
        self,
        payment_ref: str,
        amount_cents: int,
        reason: str,
        idempotency_key: Optional[str] = None,
    ) -> PaymentResult:
        pass


class StripePaymentGateway(PaymentGateway):
    """Charges and refunds through Stripe PaymentIntents."""

    def __init__(
        self,
        *,
        api_key: str,
        currency: str = "usd",
        max_network_retries: int = 2,
    ) -> None:
        if not api_key:
            raise ValueError("Stripe secret key must be provided")
        stripe.api_key = api_key
        stripe.max_network_retries = max_network_retries
        self._currency = currency

    def charge(
        self,
        amount_cents: int,
        booking_ref: str,
        payment_method: str,
        idempotency_key: Optional[str] = None,
    ) -> PaymentResult:
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount_cents,
                currency=self._currency,
                payment_method=payment_method,
                confirm=True,
                automatic_payment_methods={"enabled": True, "allow_redirects": "never"},
                metadata={"booking_id": booking_ref, "platform": "charterbook"},
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error charging booking {booking_ref}: {str(e)}")
            return PaymentResult(succeeded=False, error=str(e))

        if getattr(intent, "status", "") != "succeeded":
            logger.warning(
                "stripe_charge_not_succeeded",
                extra={"booking_id": booking_ref, "status": getattr(intent, "status", None)},
            )
            return PaymentResult(
                succeeded=False,
                reference=intent.id,
                error=f"Payment intent status is {intent.status}",
            )
        return PaymentResult(succeeded=True, reference=intent.id, amount_cents=amount_cents)

    def refund(
        self,
        payment_ref: str,
        amount_cents: int,
        reason: str,
        idempotency_key: Optional[str] = None,
    ) -> PaymentResult:
        try:
            refund = stripe.Refund.create(
                payment_intent=payment_ref,
                amount=amount_cents,
                reason="requested_by_customer",
                metadata={"reason": reason[:500]},
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error refunding {payment_ref}: {str(e)}")
            return PaymentResult(succeeded=False, error=str(e))

        status = getattr(refund, "status", "")
        if status not in {"succeeded", "pending"}:
            return PaymentResult(
                succeeded=False, reference=refund.id, error=f"Refund status is {status}"
            )
        return PaymentResult(succeeded=True, reference=refund.id, amount_cents=amount_cents)


@dataclass
class FakePaymentGateway(PaymentGateway):
    """In-memory gateway for development and tests."""

    fail_charges: bool = False
    fail_refunds: bool = False
    charges: List[Dict[str, object]] = field(default_factory=list)
    refunds: List[Dict[str, object]] = field(default_factory=list)

    def charge(
        self,
        amount_cents: int,
        booking_ref: str,
        payment_method: str,
        idempotency_key: Optional[str] = None,
    ) -> PaymentResult:
        if self.fail_charges:
            return PaymentResult(succeeded=False, error="Card declined")
        reference = f"pi_fake_{uuid4().hex}"
        self.charges.append(
            {"amount_cents": amount_cents, "booking_ref": booking_ref, "reference": reference}
        )
        return PaymentResult(succeeded=True, reference=reference, amount_cents=amount_cents)

    def refund(
        self,
        payment_ref: str,
        amount_cents: int,
        reason: str,
        idempotency_key: Optional[str] = None,
    ) -> PaymentResult:
        if self.fail_refunds:
            return PaymentResult(succeeded=False, error="Refund failed")
        reference = f"re_fake_{uuid4().hex}"
        self.refunds.append(
            {"payment_ref": payment_ref, "amount_cents": amount_cents, "reference": reference}
        )
        return PaymentResult(succeeded=True, reference=reference, amount_cents=amount_cents)


def build_payment_gateway() -> PaymentGateway:
    if settings.payment_gateway == "stripe":
        return StripePaymentGateway(
            api_key=settings.stripe_secret_key.get_secret_value(),
            currency=settings.stripe_currency,
            max_network_retries=settings.stripe_max_network_retries,
        )
    return FakePaymentGateway()
