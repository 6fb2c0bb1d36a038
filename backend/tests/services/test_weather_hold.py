"""Weather holds, reschedule offers and the daily weather sweep."""

from datetime import timedelta

import pytest

from charterbook.core.actor import Actor
from charterbook.core.enums import LogEntryType, WeatherVerdict
from charterbook.core.exceptions import (
    ConflictException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from charterbook.integrations.weather_client import FakeWeatherClient, WeatherClientError
from charterbook.models import BookingStatus
from charterbook.services.weather_service import (
    OUTCOME_ERROR,
    OUTCOME_HELD,
    OUTCOME_SAFE,
    OUTCOME_SKIPPED,
    WeatherService,
)
from tests.conftest import NOW, TRIP_DATE, local_dt


@pytest.fixture
def confirmed(make_booking, captain, trip_type):
    return make_booking(
        captain,
        trip_type,
        start=local_dt(TRIP_DATE, 9),
        status=BookingStatus.CONFIRMED,
        deposit_paid_cents=20000,
        payment_reference="pi_paid",
    )


class TestWeatherHold:
    def test_hold_offers_same_time_on_following_weeks(
        self, booking_service, confirmed, sender
    ):
        system = Actor.system()
        booking_service.set_weather_hold(confirmed.id, "Small craft advisory", system, NOW)

        assert confirmed.status == BookingStatus.WEATHER_HOLD.value
        assert confirmed.pre_hold_status == BookingStatus.CONFIRMED.value
        assert confirmed.weather_hold_reason == "Small craft advisory"
        assert confirmed.scheduled_start == local_dt(TRIP_DATE, 9)
        assert confirmed.deposit_paid_cents == 20000

        offers = booking_service.list_reschedule_offers(confirmed.id, system, NOW)
        assert [offer.proposed_start for offer in offers] == [
            local_dt(TRIP_DATE + timedelta(weeks=weeks), 9) for weeks in (1, 2, 3)
        ]
        assert all(offer.expires_at == NOW + timedelta(days=14) for offer in offers)
        recipients = {message["to"] for message in sender.sent}
        assert recipients == {"ishmael@example.com", "ahab@example.com"}

    def test_offers_skip_blackouts_and_busy_dates(
        self, booking_service, availability_service, confirmed, captain, trip_type, make_booking
    ):
        availability_service.add_blackout(captain.id, TRIP_DATE + timedelta(weeks=1))
        make_booking(
            captain,
            trip_type,
            start=local_dt(TRIP_DATE + timedelta(weeks=2), 10),
            status=BookingStatus.CONFIRMED,
        )

        booking_service.set_weather_hold(confirmed.id, "Gale warning", Actor.system(), NOW)

        offers = booking_service.list_reschedule_offers(confirmed.id, Actor.system(), NOW)
        assert [offer.proposed_start for offer in offers] == [
            local_dt(TRIP_DATE + timedelta(weeks=3), 9)
        ]

    def test_accepting_an_offer_reschedules(self, booking_service, confirmed):
        guest = Actor.guest(confirmed.id)
        booking_service.set_weather_hold(confirmed.id, "Gale warning", Actor.system(), NOW)
        offer = booking_service.list_reschedule_offers(confirmed.id, guest, NOW)[1]
        later = NOW + timedelta(minutes=5)

        booking_service.accept_reschedule_offer(confirmed.id, offer.id, guest, later)

        assert confirmed.status == BookingStatus.RESCHEDULED.value
        assert confirmed.scheduled_start == offer.proposed_start
        assert confirmed.original_scheduled_start == local_dt(TRIP_DATE, 9)
        assert confirmed.weather_hold_reason is None
        assert offer.is_selected
        # Other offers are withdrawn and the open list is empty outside a hold
        assert booking_service.list_reschedule_offers(confirmed.id, guest, later) == []
        log_types = [e.entry_type for e in booking_service.get_booking_log(confirmed.id, guest)]
        assert log_types[-2:] == [
            LogEntryType.WEATHER_HOLD_SET.value,
            LogEntryType.RESCHEDULED.value,
        ]

    def test_expired_or_foreign_offers_are_refused(
        self, booking_service, confirmed, captain, trip_type, make_booking
    ):
        guest = Actor.guest(confirmed.id)
        booking_service.set_weather_hold(confirmed.id, "Gale warning", Actor.system(), NOW)
        offer = booking_service.list_reschedule_offers(confirmed.id, guest, NOW)[0]

        with pytest.raises(ValidationException):
            booking_service.accept_reschedule_offer(
                confirmed.id, offer.id, guest, NOW + timedelta(days=15)
            )
        other = make_booking(captain, trip_type, start=local_dt(TRIP_DATE, 15))
        with pytest.raises(NotFoundException):
            booking_service.accept_reschedule_offer(
                other.id, offer.id, Actor.guest(other.id), NOW
            )

    def test_accepted_offer_cannot_be_reused(self, booking_service, confirmed):
        guest = Actor.guest(confirmed.id)
        booking_service.set_weather_hold(confirmed.id, "Gale warning", Actor.system(), NOW)
        offer = booking_service.list_reschedule_offers(confirmed.id, guest, NOW)[0]
        booking_service.accept_reschedule_offer(confirmed.id, offer.id, guest, NOW)

        with pytest.raises(ConflictException):
            booking_service.accept_reschedule_offer(confirmed.id, offer.id, guest, NOW)

    def test_clearing_restores_previous_status(self, booking_service, confirmed, captain):
        booking_service.set_weather_hold(confirmed.id, "Squalls", Actor.captain(captain.id), NOW)

        booking_service.clear_weather_hold(confirmed.id, Actor.captain(captain.id), NOW)

        assert confirmed.status == BookingStatus.CONFIRMED.value
        assert confirmed.weather_hold_reason is None
        assert booking_service.list_reschedule_offers(confirmed.id, Actor.system(), NOW) == []

    def test_deposit_paid_during_hold_clears_to_confirmed(
        self, booking_service, captain, trip_type, make_booking
    ):
        pending = make_booking(captain, trip_type, start=local_dt(TRIP_DATE, 9))
        booking_service.set_weather_hold(pending.id, "Squalls", Actor.system(), NOW)

        booking_service.record_payment(pending.id, 20000, Actor.system(), NOW, "pi_hold")
        assert pending.status == BookingStatus.WEATHER_HOLD.value

        booking_service.clear_weather_hold(pending.id, Actor.system(), NOW)
        assert pending.status == BookingStatus.CONFIRMED.value

    def test_unpaid_hold_clears_back_to_pending(
        self, booking_service, captain, trip_type, make_booking
    ):
        pending = make_booking(captain, trip_type, start=local_dt(TRIP_DATE, 9))
        booking_service.set_weather_hold(pending.id, "Squalls", Actor.system(), NOW)
        booking_service.clear_weather_hold(pending.id, Actor.system(), NOW)
        assert pending.status == BookingStatus.PENDING_DEPOSIT.value

    def test_clearing_without_hold_is_rejected(self, booking_service, confirmed):
        with pytest.raises(InvalidTransitionException):
            booking_service.clear_weather_hold(confirmed.id, Actor.system(), NOW)

    def test_cancelling_a_held_trip_refunds_in_full(
        self, booking_service, payment_gateway, make_booking, captain, trip_type
    ):
        soon = make_booking(
            captain,
            trip_type,
            start=NOW + timedelta(hours=30),
            status=BookingStatus.CONFIRMED,
            deposit_paid_cents=20000,
            payment_reference="pi_soon",
        )
        booking_service.set_weather_hold(soon.id, "Gale warning", Actor.system(), NOW)

        _, decision = booking_service.cancel_booking(
            soon.id, "Rather not wait", Actor.guest(soon.id), NOW
        )

        assert decision.policy_basis == "weather_hold"
        assert payment_gateway.refunds[0]["amount_cents"] == 20000
        assert soon.status == BookingStatus.CANCELLED.value


class _BrokenWeatherClient(FakeWeatherClient):
    def assess(self, latitude, longitude, when):
        raise WeatherClientError("Weather API responded with status 503", status_code=503)


class TestWeatherService:
    def _service(self, db, booking_service, client):
        return WeatherService(db, booking_service=booking_service, weather_client=client)

    def test_dangerous_forecast_puts_trip_on_hold(
        self, db, booking_service, make_booking, captain, trip_type
    ):
        tomorrow = make_booking(
            captain, trip_type, start=NOW + timedelta(hours=30), status=BookingStatus.CONFIRMED
        )
        client = FakeWeatherClient(WeatherVerdict.DANGEROUS, "Gale Warning: winds to 40 kt")

        results = self._service(db, booking_service, client).check_upcoming_bookings(NOW)

        assert [(r.booking_id, r.outcome) for r in results] == [(tomorrow.id, OUTCOME_HELD)]
        assert results[0].verdict == "dangerous"
        assert tomorrow.status == BookingStatus.WEATHER_HOLD.value
        assert tomorrow.weather_hold_reason == "Gale Warning: winds to 40 kt"
        assert client.calls[0][:2] == (captain.meeting_spot_latitude, captain.meeting_spot_longitude)

    def test_caution_also_holds(self, db, booking_service, make_booking, captain, trip_type):
        make_booking(captain, trip_type, start=NOW + timedelta(hours=30))
        client = FakeWeatherClient(WeatherVerdict.CAUTION)
        results = self._service(db, booking_service, client).check_upcoming_bookings(NOW)
        assert results[0].outcome == OUTCOME_HELD

    def test_safe_forecast_changes_nothing(
        self, db, booking_service, make_booking, captain, trip_type
    ):
        booking = make_booking(
            captain, trip_type, start=NOW + timedelta(hours=30), status=BookingStatus.CONFIRMED
        )
        results = self._service(
            db, booking_service, FakeWeatherClient(WeatherVerdict.SAFE)
        ).check_upcoming_bookings(NOW)

        assert results[0].outcome == OUTCOME_SAFE
        assert booking.status == BookingStatus.CONFIRMED.value

    def test_only_trips_24_to_48_hours_out_are_checked(
        self, db, booking_service, make_booking, captain, trip_type
    ):
        make_booking(captain, trip_type, start=NOW + timedelta(hours=12))
        make_booking(captain, trip_type, start=NOW + timedelta(hours=60))
        make_booking(
            captain,
            trip_type,
            start=NOW + timedelta(hours=30),
            status=BookingStatus.CANCELLED,
        )
        client = FakeWeatherClient(WeatherVerdict.DANGEROUS)

        assert self._service(db, booking_service, client).check_upcoming_bookings(NOW) == []
        assert client.calls == []

    def test_missing_coordinates_are_skipped(
        self, db, booking_service, make_captain, make_trip_type, make_booking
    ):
        landlocked = make_captain(email="dry@example.com", latitude=None, longitude=None)
        trip = make_trip_type(landlocked)
        make_booking(landlocked, trip, start=NOW + timedelta(hours=30))
        client = FakeWeatherClient(WeatherVerdict.DANGEROUS)

        results = self._service(db, booking_service, client).check_upcoming_bookings(NOW)

        assert results[0].outcome == OUTCOME_SKIPPED
        assert client.calls == []

    def test_lookup_failure_does_not_stop_the_sweep(
        self, db, booking_service, make_booking, captain, trip_type
    ):
        first = make_booking(captain, trip_type, start=NOW + timedelta(hours=26))
        second = make_booking(captain, trip_type, start=NOW + timedelta(hours=40))

        results = self._service(
            db, booking_service, _BrokenWeatherClient()
        ).check_upcoming_bookings(NOW)

        assert [r.booking_id for r in results] == [first.id, second.id]
        assert {r.outcome for r in results} == {OUTCOME_ERROR}
        assert first.status == BookingStatus.PENDING_DEPOSIT.value
