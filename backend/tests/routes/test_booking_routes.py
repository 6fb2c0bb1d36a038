"""HTTP tests for booking admission and the captain's booking actions."""

from datetime import datetime, timedelta, timezone

import pytest

from charterbook.models import BookingStatus
from tests.conftest import local_dt, upcoming_day

API = "/api/v1"


@pytest.fixture
def trip_day():
    return upcoming_day(3)


def _captain_headers(captain):
    return {"X-Captain-Id": captain.id}


def _payload(captain, trip_type, start, **overrides):
    body = {
        "captain_id": captain.id,
        "trip_type_id": trip_type.id,
        "guest_name": "Ishmael",
        "guest_email": "ishmael@example.com",
        "party_size": 2,
        "scheduled_start": start.isoformat(),
    }
    body.update(overrides)
    return body


class TestCreateBookingRoute:
    def test_creates_booking_and_returns_token(self, client, captain, trip_type, trip_day):
        start = local_dt(trip_day, 9)

        response = client.post(f"{API}/bookings/", json=_payload(captain, trip_type, start))

        assert response.status_code == 201
        data = response.json()
        assert data["booking"]["status"] == "pending_deposit"
        assert data["booking"]["deposit_required_cents"] == 20000
        assert len(data["management_token"]) == 32
        assert "guest_email" not in data["booking"]

    def test_conflict_returns_409(self, client, captain, trip_type, trip_day):
        client.post(f"{API}/bookings/", json=_payload(captain, trip_type, local_dt(trip_day, 9)))

        response = client.post(
            f"{API}/bookings/", json=_payload(captain, trip_type, local_dt(trip_day, 10))
        )

        assert response.status_code == 409
        assert response.json()["code"] == "BOOKING_CONFLICT"

    def test_naive_start_is_rejected(self, client, captain, trip_type, trip_day):
        body = _payload(captain, trip_type, local_dt(trip_day, 9))
        body["scheduled_start"] = f"{trip_day.isoformat()}T09:00:00"

        assert client.post(f"{API}/bookings/", json=body).status_code == 422

    def test_unknown_fields_are_rejected(self, client, captain, trip_type, trip_day):
        body = _payload(captain, trip_type, local_dt(trip_day, 9), total_price_cents=1)
        assert client.post(f"{API}/bookings/", json=body).status_code == 422

    def test_outside_hours_is_400(self, client, captain, trip_type, trip_day):
        response = client.post(
            f"{API}/bookings/", json=_payload(captain, trip_type, local_dt(trip_day, 20))
        )
        assert response.status_code == 400


class TestCaptainBookingRoutes:
    def test_captain_identity_is_required(self, client):
        assert client.get(f"{API}/bookings/").status_code == 401
        assert client.get(f"{API}/bookings/", headers={"X-Captain-Id": "nobody"}).status_code == 401

    def test_list_and_filter(self, client, captain, trip_type, make_booking, trip_day):
        make_booking(captain, trip_type, start=local_dt(trip_day, 9))
        make_booking(
            captain, trip_type, start=local_dt(trip_day, 14), status=BookingStatus.CONFIRMED
        )

        response = client.get(
            f"{API}/bookings/", params={"status": "confirmed"}, headers=_captain_headers(captain)
        )

        assert response.status_code == 200
        items = response.json()["items"]
        assert [item["status"] for item in items] == ["confirmed"]

    def test_reads_run_off_the_event_loop(
        self, client, captain, trip_type, make_booking, trip_day, offloaded_calls
    ):
        booking = make_booking(captain, trip_type, start=local_dt(trip_day, 9))
        headers = _captain_headers(captain)

        for path in ("/bookings/", f"/bookings/{booking.id}", f"/bookings/{booking.id}/log"):
            assert client.get(f"{API}{path}", headers=headers).status_code == 200
        offers = client.get(f"{API}/bookings/{booking.id}/offers", headers=headers)
        assert offers.status_code == 200

        assert offloaded_calls == [
            "list_bookings",
            "get_booking_for_actor",
            "get_booking_log",
            "list_reschedule_offers",
        ]

    def test_other_captains_booking_is_forbidden(
        self, client, captain, trip_type, make_booking, make_captain, trip_day
    ):
        other = make_captain(display_name="Captain Peleg", email="peleg@example.com")
        booking = make_booking(captain, trip_type, start=local_dt(trip_day, 9))

        response = client.get(f"{API}/bookings/{booking.id}", headers=_captain_headers(other))

        assert response.status_code == 403

    def test_record_payment_confirms(self, client, captain, trip_type, make_booking, trip_day):
        booking = make_booking(captain, trip_type, start=local_dt(trip_day, 9))

        response = client.post(
            f"{API}/bookings/{booking.id}/payments",
            json={"amount_cents": 20000, "payment_reference": "cash-001"},
            headers=_captain_headers(captain),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"
        assert response.json()["balance_due_cents"] == 40000

        log = client.get(f"{API}/bookings/{booking.id}/log", headers=_captain_headers(captain))
        assert sorted(entry["entry_type"] for entry in log.json()) == [
            "payment_received",
            "status_changed",
        ]

    def test_complete_before_start_is_409(
        self, client, captain, trip_type, make_booking, trip_day
    ):
        booking = make_booking(
            captain, trip_type, start=local_dt(trip_day, 9), status=BookingStatus.CONFIRMED
        )

        response = client.post(
            f"{API}/bookings/{booking.id}/complete", headers=_captain_headers(captain)
        )

        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_TRANSITION"
        assert booking.status == BookingStatus.CONFIRMED.value

    def test_no_show_after_start(self, client, captain, trip_type, make_booking):
        booking = make_booking(
            captain,
            trip_type,
            start=datetime.now(timezone.utc) - timedelta(hours=1),
            status=BookingStatus.CONFIRMED,
        )

        response = client.post(
            f"{API}/bookings/{booking.id}/no-show", headers=_captain_headers(captain)
        )

        assert response.status_code == 200
        assert response.json()["status"] == "no_show"

    def test_cancel_by_captain_refunds(
        self, client, payment_gateway, captain, trip_type, make_booking, trip_day
    ):
        booking = make_booking(
            captain,
            trip_type,
            start=local_dt(trip_day, 9),
            status=BookingStatus.CONFIRMED,
            deposit_paid_cents=20000,
            payment_reference="pi_route",
        )

        response = client.post(
            f"{API}/bookings/{booking.id}/cancel",
            json={"reason": "Engine trouble"},
            headers=_captain_headers(captain),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert payment_gateway.refunds[0]["amount_cents"] == 20000

    def test_refund_failure_is_502(
        self, client, payment_gateway, captain, trip_type, make_booking, trip_day
    ):
        payment_gateway.fail_refunds = True
        booking = make_booking(
            captain,
            trip_type,
            start=local_dt(trip_day, 9),
            status=BookingStatus.CONFIRMED,
            deposit_paid_cents=20000,
            payment_reference="pi_route",
        )

        response = client.post(
            f"{API}/bookings/{booking.id}/refunds",
            json={"amount_cents": 1000, "reason": "Goodwill"},
            headers=_captain_headers(captain),
        )

        assert response.status_code == 502

    def test_weather_hold_and_reschedule(
        self, client, captain, trip_type, make_booking, trip_day
    ):
        booking = make_booking(
            captain, trip_type, start=local_dt(trip_day, 9), status=BookingStatus.CONFIRMED
        )
        headers = _captain_headers(captain)

        held = client.post(
            f"{API}/bookings/{booking.id}/weather-hold",
            json={"reason": "Small craft advisory"},
            headers=headers,
        )
        assert held.status_code == 200
        assert held.json()["status"] == "weather_hold"

        offers = client.get(f"{API}/bookings/{booking.id}/offers", headers=headers).json()
        assert len(offers) == 3

        new_start = local_dt(trip_day + timedelta(days=2), 13)
        moved = client.post(
            f"{API}/bookings/{booking.id}/reschedule",
            json={"new_start": new_start.isoformat()},
            headers=headers,
        )
        assert moved.status_code == 200
        assert moved.json()["status"] == "rescheduled"
        assert moved.json()["original_scheduled_start"] is not None

    def test_invalid_booking_id_is_422(self, client, captain):
        response = client.get(f"{API}/bookings/not-a-ulid", headers=_captain_headers(captain))
        assert response.status_code == 422
