# backend/charterbook/routes/v1/webhooks.py
"""
Payment processor webhooks - API v1

Stripe reports asynchronous payment outcomes here. A succeeded payment
intent tagged with a booking id is recorded against that booking; replays
of the same intent are ignored by the booking service. A payment that lands
on an expired or cancelled booking is logged and refunded; if that refund
fails the receiver answers 502 so Stripe redelivers the event.

Endpoints:
    POST /webhooks/stripe - Stripe event receiver
"""

import asyncio
from datetime import datetime, timezone
import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request
import stripe

from ...api.dependencies import get_booking_service
from ...core.actor import Actor
from ...core.config import settings
from ...core.exceptions import (
    ConflictException,
    DomainException,
    NotFoundException,
    PaymentNotAppliedException,
    UpstreamServiceException,
)
from ...schemas.webhook import WebhookResponse
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks-v1"])

PAYMENT_SUCCEEDED = "payment_intent.succeeded"


def _record_intent(booking_service: BookingService, intent: Dict[str, Any]) -> str:
    metadata = intent.get("metadata") or {}
    booking_id = metadata.get("booking_id")
    if not booking_id:
        return "ignored"
    amount = intent.get("amount_received") or intent.get("amount") or 0
    booking_service.record_payment(
        booking_id,
        int(amount),
        Actor.system(),
        datetime.now(timezone.utc),
        payment_reference=intent.get("id"),
    )
    return "success"


@router.post("/stripe", response_model=WebhookResponse)
async def handle_stripe_webhook(
    request: Request,
    booking_service: BookingService = Depends(get_booking_service),
) -> WebhookResponse:
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        logger.warning("Webhook received without signature")
        raise HTTPException(status_code=400, detail="No signature")

    secret = settings.stripe_webhook_secret.get_secret_value()
    if not secret:
        logger.error("No webhook secret configured")
        raise HTTPException(status_code=500, detail="Webhook configuration error")

    try:
        stripe.Webhook.construct_event(payload, sig_header, secret)
        event = json.loads(payload)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")
    except stripe.SignatureVerificationError:
        logger.error("Webhook signature verification failed")
        raise HTTPException(status_code=400, detail="Invalid signature")

    event_type = event["type"]
    if event_type != PAYMENT_SUCCEEDED:
        return WebhookResponse(status="ignored", event_type=event_type)

    intent = event["data"]["object"]
    try:
        outcome = await asyncio.to_thread(_record_intent, booking_service, intent)
    except PaymentNotAppliedException as e:
        if not e.refunded:
            logger.error(f"Webhook payment {intent.get('id')} could not be returned: {e.message}")
            raise UpstreamServiceException(
                "Unapplied payment could not be refunded", details=e.details
            ).to_http_exception()
        logger.warning(f"Webhook payment {intent.get('id')} refunded: {e.message}")
        return WebhookResponse(status="refunded", event_type=event_type, message=e.message)
    except (NotFoundException, ConflictException) as e:
        # Retrying will not change the outcome; acknowledge so Stripe stops.
        logger.warning(f"Webhook payment for {intent.get('id')} not recorded: {e.message}")
        return WebhookResponse(status="ignored", event_type=event_type, message=e.message)
    except DomainException as e:
        raise e.to_http_exception()

    logger.info(f"Webhook processed: {event_type} ({outcome})")
    return WebhookResponse(status=outcome, event_type=event_type)
