from datetime import time, timedelta

import pytest

from charterbook.core.exceptions import (
    CaptainHibernatingException,
    DuplicateException,
    NotFoundException,
    OwnershipException,
    ValidationException,
)
from charterbook.models import BookingStatus
from charterbook.schemas.availability import AvailabilityWindowIn
from tests.conftest import NOW, TRIP_DATE, local_dt

TUESDAY = 2


@pytest.fixture
def morning_captain(make_captain):
    return make_captain(windows={TUESDAY: (time(8), time(14))}, advance_booking_days=30)


class TestGenerateSlots:
    def test_slots_walk_the_window_in_half_hour_steps(
        self, availability_service, morning_captain, make_trip_type
    ):
        trip_type = make_trip_type(morning_captain, duration_hours=3)
        now = local_dt(TRIP_DATE, 7, 30)

        slots = availability_service.generate_slots(morning_captain.id, trip_type.id, TRIP_DATE, now)

        starts = [slot.start for slot in slots]
        assert starts == [local_dt(TRIP_DATE, 8) + timedelta(minutes=30 * i) for i in range(7)]
        assert starts[-1] == local_dt(TRIP_DATE, 11)
        assert all(slot.end - slot.start == timedelta(hours=3) for slot in slots)
        # 08:00 is inside the 60-minute lead time from 07:30
        assert [slot.available for slot in slots] == [False] + [True] * 6

    def test_booking_blocks_every_overlapping_candidate(
        self, availability_service, morning_captain, make_trip_type, make_booking
    ):
        trip_type = make_trip_type(morning_captain, duration_hours=3)
        make_booking(
            morning_captain,
            trip_type,
            start=local_dt(TRIP_DATE, 10),
            status=BookingStatus.CONFIRMED,
        )

        slots = availability_service.generate_slots(
            morning_captain.id, trip_type.id, TRIP_DATE, local_dt(TRIP_DATE, 7, 30)
        )

        assert len(slots) == 7
        assert not any(slot.available for slot in slots)

    def test_adjacent_booking_does_not_block(
        self, availability_service, morning_captain, make_trip_type, make_booking
    ):
        trip_type = make_trip_type(morning_captain, duration_hours=3)
        short_trip = make_trip_type(morning_captain, title="Sunset hour", duration_hours=1)
        make_booking(
            morning_captain,
            short_trip,
            start=local_dt(TRIP_DATE, 12),
            status=BookingStatus.CONFIRMED,
        )

        slots = availability_service.generate_slots(
            morning_captain.id, trip_type.id, TRIP_DATE, local_dt(TRIP_DATE, 7, 30)
        )
        available = {slot.start: slot.available for slot in slots}

        assert available[local_dt(TRIP_DATE, 8, 30)]
        # 09:00-12:00 ends exactly when the 12:00 trip starts
        assert available[local_dt(TRIP_DATE, 9)]
        for hour, minute in [(9, 30), (10, 0), (10, 30), (11, 0)]:
            assert not available[local_dt(TRIP_DATE, hour, minute)]

    def test_cancelled_booking_does_not_block(
        self, availability_service, morning_captain, make_trip_type, make_booking
    ):
        trip_type = make_trip_type(morning_captain)
        make_booking(
            morning_captain, trip_type, start=local_dt(TRIP_DATE, 10), status=BookingStatus.CANCELLED
        )

        slots = availability_service.generate_slots(
            morning_captain.id, trip_type.id, TRIP_DATE, local_dt(TRIP_DATE, 7, 30)
        )
        assert sum(slot.available for slot in slots) == 6

    @pytest.mark.parametrize("offset_days", [-1, 31])
    def test_out_of_horizon_dates_are_empty(
        self, availability_service, morning_captain, make_trip_type, offset_days
    ):
        trip_type = make_trip_type(morning_captain)
        now = local_dt(TRIP_DATE, 7, 30)
        target = TRIP_DATE + timedelta(days=offset_days)
        assert availability_service.generate_slots(morning_captain.id, trip_type.id, target, now) == []

    def test_blackout_and_inactive_days_are_empty(
        self, availability_service, morning_captain, make_trip_type
    ):
        trip_type = make_trip_type(morning_captain)
        now = local_dt(TRIP_DATE, 7, 30)
        wednesday = TRIP_DATE + timedelta(days=1)
        assert availability_service.generate_slots(morning_captain.id, trip_type.id, wednesday, now) == []

        availability_service.add_blackout(morning_captain.id, TRIP_DATE, "Haul-out")
        assert availability_service.generate_slots(morning_captain.id, trip_type.id, TRIP_DATE, now) == []

    def test_unknown_captain_or_trip_type(self, availability_service, captain):
        with pytest.raises(NotFoundException):
            availability_service.generate_slots("0" * 26, "1" * 26, TRIP_DATE, NOW)
        with pytest.raises(NotFoundException):
            availability_service.generate_slots(captain.id, "1" * 26, TRIP_DATE, NOW)

    def test_slots_keep_local_time_across_dst(self, availability_service, make_captain, make_trip_type):
        captain = make_captain(windows={0: (time(8), time(12))}, advance_booking_days=30)
        trip_type = make_trip_type(captain, duration_hours=2)
        # 2030-03-10 is the Sunday US clocks spring forward
        dst_day = TRIP_DATE.replace(month=3, day=10)
        now = local_dt(dst_day - timedelta(days=3), 9)

        slots = availability_service.generate_slots(captain.id, trip_type.id, dst_day, now)

        assert slots[0].start == local_dt(dst_day, 8)
        assert slots[0].start.hour == 12  # 08:00 EDT is 12:00 UTC


class TestRangeAvailability:
    def test_summary_flags(self, availability_service, make_captain):
        captain = make_captain(windows={TUESDAY: (time(8), time(14))}, advance_booking_days=10)
        availability_service.add_blackout(captain.id, TRIP_DATE, "Tournament")

        days = availability_service.generate_range_availability(captain.id, 30, NOW)

        assert len(days) == 11
        assert days[-1].date == NOW.date() + timedelta(days=10)
        by_date = {day.date: day for day in days}
        assert by_date[TRIP_DATE].is_blackout
        assert by_date[TRIP_DATE].blackout_reason == "Tournament"
        assert not by_date[TRIP_DATE].has_availability
        tuesday_before = TRIP_DATE - timedelta(days=7)
        assert by_date[tuesday_before].has_availability
        assert not by_date[tuesday_before + timedelta(days=1)].has_active_window

    def test_last_horizon_day_is_offered_in_both_views(
        self, availability_service, make_captain, make_trip_type
    ):
        captain = make_captain(advance_booking_days=30)
        trip_type = make_trip_type(captain)
        last_day = NOW.date() + timedelta(days=30)

        slots = availability_service.generate_slots(captain.id, trip_type.id, last_day, NOW)
        days = availability_service.generate_range_availability(captain.id, 60, NOW)

        assert any(slot.available for slot in slots)
        assert days[-1].date == last_day
        assert days[-1].has_availability
        assert not days[-1].is_beyond_advance_window


class TestHibernation:
    def test_hibernating_captain_offers_nothing(
        self, availability_service, morning_captain, make_trip_type
    ):
        trip_type = make_trip_type(morning_captain)
        availability_service.set_hibernation(morning_captain.id, True)
        start = local_dt(TRIP_DATE, 9)

        with pytest.raises(CaptainHibernatingException) as exc_info:
            availability_service.generate_slots(morning_captain.id, trip_type.id, TRIP_DATE, NOW)
        assert exc_info.value.code == "HIBERNATING"
        with pytest.raises(CaptainHibernatingException):
            availability_service.generate_range_availability(morning_captain.id, 14, NOW)
        with pytest.raises(CaptainHibernatingException):
            availability_service.validate_requested_range(
                morning_captain, start, start + timedelta(hours=3), NOW
            )

    def test_waking_up_restores_slots(self, availability_service, morning_captain, make_trip_type):
        trip_type = make_trip_type(morning_captain)
        availability_service.set_hibernation(morning_captain.id, True)
        availability_service.set_hibernation(morning_captain.id, False)

        assert not morning_captain.is_hibernating
        slots = availability_service.generate_slots(morning_captain.id, trip_type.id, TRIP_DATE, NOW)
        assert slots


class TestValidateRequestedRange:
    def test_accepts_range_inside_window(self, availability_service, morning_captain):
        start = local_dt(TRIP_DATE, 9)
        availability_service.validate_requested_range(
            morning_captain, start, start + timedelta(hours=3), NOW
        )

    @pytest.mark.parametrize(
        "hour,duration,message",
        [
            (12, 3, "outside"),
            (6, 2, "outside"),
        ],
    )
    def test_rejects_range_leaving_window(
        self, availability_service, morning_captain, hour, duration, message
    ):
        start = local_dt(TRIP_DATE, hour)
        with pytest.raises(ValidationException, match=message):
            availability_service.validate_requested_range(
                morning_captain, start, start + timedelta(hours=duration), NOW
            )

    def test_rejects_past_and_lead_time(self, availability_service, morning_captain):
        start = local_dt(TRIP_DATE, 9)
        with pytest.raises(ValidationException, match="past"):
            availability_service.validate_requested_range(
                morning_captain, start, start + timedelta(hours=1), start + timedelta(minutes=1)
            )
        with pytest.raises(ValidationException, match="notice"):
            availability_service.validate_requested_range(
                morning_captain, start, start + timedelta(hours=1), start - timedelta(minutes=30)
            )

    def test_rejects_beyond_horizon(self, availability_service, morning_captain):
        start = local_dt(TRIP_DATE + timedelta(days=35), 9)
        with pytest.raises(ValidationException, match="in advance"):
            availability_service.validate_requested_range(
                morning_captain, start, start + timedelta(hours=1), NOW
            )


class TestAvailabilityManagement:
    def test_seed_default_schedule(self, availability_service, make_captain):
        captain = make_captain(windows={})

        windows = availability_service.seed_default_availability(captain.id)

        assert len(windows) == 7
        active = {w.day_of_week for w in windows if w.is_active}
        assert active == {0, 2, 3, 4, 5, 6}
        assert all(w.start_time == time(6) and w.end_time == time(21) for w in windows)
        # Seeding again leaves the existing schedule alone
        assert len(availability_service.seed_default_availability(captain.id)) == 7

    def test_replace_windows(self, availability_service, captain):
        created = availability_service.replace_windows(
            captain.id,
            [
                AvailabilityWindowIn(day_of_week=6, start_time=time(7), end_time=time(11)),
                AvailabilityWindowIn(day_of_week=6, start_time=time(13), end_time=time(18)),
            ],
        )
        assert len(created) == 2
        assert {w.day_of_week for w in availability_service.list_windows(captain.id)} == {6}

    def test_duplicate_blackout(self, availability_service, captain):
        availability_service.add_blackout(captain.id, TRIP_DATE)
        with pytest.raises(DuplicateException):
            availability_service.add_blackout(captain.id, TRIP_DATE)

    def test_blackout_range_skips_existing_dates(self, availability_service, captain):
        availability_service.add_blackout(captain.id, TRIP_DATE)

        created = availability_service.add_blackout_range(
            captain.id, TRIP_DATE - timedelta(days=1), TRIP_DATE + timedelta(days=1), "Vacation"
        )

        assert len(created) == 2
        assert len(availability_service.list_blackouts(captain.id)) == 3

    def test_blackout_range_limits(self, availability_service, captain):
        with pytest.raises(ValidationException):
            availability_service.add_blackout_range(
                captain.id, TRIP_DATE, TRIP_DATE - timedelta(days=1)
            )
        with pytest.raises(ValidationException):
            availability_service.add_blackout_range(
                captain.id, TRIP_DATE, TRIP_DATE + timedelta(days=61)
            )

    def test_remove_blackout_requires_owner(self, availability_service, captain, make_captain):
        other = make_captain(display_name="Captain Queequeg", email="q@example.com")
        blackout = availability_service.add_blackout(captain.id, TRIP_DATE)

        with pytest.raises(OwnershipException):
            availability_service.remove_blackout(other.id, blackout.id)

        availability_service.remove_blackout(captain.id, blackout.id)
        assert availability_service.list_blackouts(captain.id) == []
