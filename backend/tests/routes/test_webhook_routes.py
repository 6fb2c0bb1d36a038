"""Stripe webhook receiver, exercised with real signature verification."""

import hashlib
import hmac
import json
import time

from pydantic import SecretStr
import pytest

from charterbook.core.actor import Actor
from charterbook.core.config import settings
from charterbook.core.enums import LogEntryType
from charterbook.models import BookingStatus
from tests.conftest import local_dt, upcoming_day

URL = "/api/v1/webhooks/stripe"
SECRET = "whsec_test"


@pytest.fixture(autouse=True)
def webhook_secret(monkeypatch):
    monkeypatch.setattr(settings, "stripe_webhook_secret", SecretStr(SECRET))


def _signed(event: dict, secret: str = SECRET):
    payload = json.dumps(event)
    timestamp = int(time.time())
    signature = hmac.new(
        secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256
    ).hexdigest()
    return payload, {"stripe-signature": f"t={timestamp},v1={signature}"}


def _intent_event(booking_id: str, amount: int, intent_id: str = "pi_webhook_1") -> dict:
    return {
        "id": "evt_1",
        "object": "event",
        "type": "payment_intent.succeeded",
        "data": {
            "object": {
                "id": intent_id,
                "object": "payment_intent",
                "amount": amount,
                "amount_received": amount,
                "metadata": {"booking_id": booking_id},
            }
        },
    }


def test_missing_signature_is_400(client):
    assert client.post(URL, content=b"{}").status_code == 400


def test_bad_signature_is_400(client):
    payload, headers = _signed({"id": "evt_1", "type": "charge.refunded"}, secret="whsec_other")
    assert client.post(URL, content=payload, headers=headers).status_code == 400


def test_unconfigured_secret_is_500(client, monkeypatch):
    monkeypatch.setattr(settings, "stripe_webhook_secret", SecretStr(""))
    payload, headers = _signed({"id": "evt_1", "type": "charge.refunded"})
    assert client.post(URL, content=payload, headers=headers).status_code == 500


def test_other_events_are_acknowledged(client):
    payload, headers = _signed({"id": "evt_2", "object": "event", "type": "charge.refunded"})

    response = client.post(URL, content=payload, headers=headers)

    assert response.status_code == 200
    assert response.json()["status"] == "ignored"


def test_succeeded_intent_records_payment(client, captain, trip_type, make_booking):
    booking = make_booking(captain, trip_type, start=local_dt(upcoming_day(5), 9))
    payload, headers = _signed(_intent_event(booking.id, 20000))

    response = client.post(URL, content=payload, headers=headers)

    assert response.status_code == 200
    assert response.json()["status"] == "success"
    assert booking.status == BookingStatus.CONFIRMED.value
    assert booking.payment_reference == "pi_webhook_1"

    replay = client.post(URL, content=payload, headers=headers)
    assert replay.status_code == 200
    assert booking.deposit_paid_cents == 20000


def test_unknown_booking_is_acknowledged(client):
    payload, headers = _signed(_intent_event("0" * 26, 20000))

    response = client.post(URL, content=payload, headers=headers)

    assert response.status_code == 200
    assert response.json()["status"] == "ignored"
    assert response.json()["message"]


def test_payment_for_expired_booking_is_refunded(
    client, booking_service, payment_gateway, captain, trip_type, make_booking
):
    booking = make_booking(
        captain, trip_type, start=local_dt(upcoming_day(5), 9), status=BookingStatus.EXPIRED
    )
    payload, headers = _signed(_intent_event(booking.id, 20000, intent_id="pi_late"))

    response = client.post(URL, content=payload, headers=headers)

    assert response.status_code == 200
    assert response.json()["status"] == "refunded"
    [refund] = payment_gateway.refunds
    assert refund["payment_ref"] == "pi_late"
    assert refund["amount_cents"] == 20000
    assert booking.deposit_paid_cents == 0
    entries = sorted(
        entry.entry_type for entry in booking_service.get_booking_log(booking.id, Actor.system())
    )
    assert entries == [LogEntryType.PAYMENT_FAILED.value, LogEntryType.PAYMENT_REFUNDED.value]

    replay = client.post(URL, content=payload, headers=headers)
    assert replay.json()["status"] == "refunded"
    assert len(payment_gateway.refunds) == 1


def test_failed_return_of_late_payment_asks_for_redelivery(
    client, payment_gateway, captain, trip_type, make_booking
):
    payment_gateway.fail_refunds = True
    booking = make_booking(
        captain, trip_type, start=local_dt(upcoming_day(5), 9), status=BookingStatus.CANCELLED
    )
    payload, headers = _signed(_intent_event(booking.id, 20000, intent_id="pi_late_2"))

    response = client.post(URL, content=payload, headers=headers)

    assert response.status_code == 502
    assert response.json()["code"] == "UPSTREAM_FAILURE"
