"""Guest management-link flows."""

from datetime import datetime, timedelta, timezone

import pytest

from charterbook.core.actor import Actor
from charterbook.models import BookingStatus
from tests.conftest import local_dt, upcoming_day

API = "/api/v1/guest/bookings"


@pytest.fixture
def trip_day():
    return upcoming_day(5)


@pytest.fixture
def pending(make_booking, captain, trip_type, trip_day):
    return make_booking(captain, trip_type, start=local_dt(trip_day, 9))


def test_token_resolves_booking(client, pending):
    response = client.get(f"{API}/{pending.management_token}")

    assert response.status_code == 200
    assert response.json()["id"] == pending.id
    assert response.json()["confirmation_code"] == pending.confirmation_code


def test_guest_reads_run_off_the_event_loop(client, pending, offloaded_calls):
    token = pending.management_token

    assert client.get(f"{API}/{token}/offers").status_code == 200
    assert client.get(f"{API}/{token}/modifications").status_code == 200

    assert offloaded_calls == [
        "get_booking_by_token",
        "list_reschedule_offers",
        "get_booking_by_token",
        "list_modifications",
    ]


def test_unknown_and_malformed_tokens(client):
    assert client.get(f"{API}/{'z' * 32}").status_code == 404
    assert client.get(f"{API}/short").status_code == 422


def test_expired_token_is_forbidden(client, make_booking, captain, trip_type):
    past = make_booking(
        captain,
        trip_type,
        start=datetime.now(timezone.utc) - timedelta(days=8),
        status=BookingStatus.COMPLETED,
    )
    assert client.get(f"{API}/{past.management_token}").status_code == 403


def test_pay_deposit(client, payment_gateway, pending):
    response = client.post(
        f"{API}/{pending.management_token}/deposit", json={"payment_method": "pm_card_visa"}
    )

    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"
    assert response.json()["deposit_paid_cents"] == 20000
    assert payment_gateway.charges[0]["booking_ref"] == pending.id


def test_declined_deposit_is_502(client, payment_gateway, pending):
    payment_gateway.fail_charges = True

    response = client.post(
        f"{API}/{pending.management_token}/deposit", json={"payment_method": "pm_card_declined"}
    )

    assert response.status_code == 502
    assert pending.status == BookingStatus.PENDING_DEPOSIT.value


def test_guest_cancel(client, pending):
    response = client.post(
        f"{API}/{pending.management_token}/cancel", json={"reason": "Plans changed"}
    )

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


def test_guest_accepts_offer(client, booking_service, make_booking, captain, trip_type, trip_day):
    booking = make_booking(
        captain, trip_type, start=local_dt(trip_day, 9), status=BookingStatus.CONFIRMED
    )
    booking_service.set_weather_hold(
        booking.id, "Gale warning", Actor.system(), datetime.now(timezone.utc)
    )
    token = booking.management_token

    offers = client.get(f"{API}/{token}/offers").json()
    assert len(offers) == 3

    response = client.post(f"{API}/{token}/offers/{offers[0]['id']}/accept")

    assert response.status_code == 200
    assert response.json()["status"] == "rescheduled"
    moved_to = datetime.fromisoformat(response.json()["scheduled_start"].replace("Z", "+00:00"))
    assert moved_to == local_dt(trip_day + timedelta(weeks=1), 9)


def test_guest_modification_request(client, pending):
    token = pending.management_token

    created = client.post(
        f"{API}/{token}/modifications", json={"new_party_size": 4, "reason": "Cousins"}
    )
    assert created.status_code == 201
    assert created.json()["status"] == "pending"
    assert created.json()["requested_by"] == "guest"

    listed = client.get(f"{API}/{token}/modifications").json()
    assert [item["id"] for item in listed] == [created.json()["id"]]

    duplicate = client.post(f"{API}/{token}/modifications", json={"new_party_size": 5})
    assert duplicate.status_code == 409


def test_empty_modification_is_422(client, pending):
    response = client.post(f"{API}/{pending.management_token}/modifications", json={})
    assert response.status_code == 422


def test_captain_decides_guest_request(client, pending, captain):
    created = client.post(
        f"{API}/{pending.management_token}/modifications", json={"new_party_size": 3}
    ).json()

    response = client.post(
        f"/api/v1/modifications/{created['id']}/approve",
        json={"captain_response": "Room for one more"},
        headers={"X-Captain-Id": captain.id},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert pending.party_size == 3
