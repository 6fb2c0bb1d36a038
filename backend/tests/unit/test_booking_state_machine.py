from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from charterbook.models.booking import (
    ACTIVE_STATUSES,
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    Booking,
    BookingStatus,
    PaymentStatus,
    can_transition,
)


def test_transition_table_covers_every_status():
    assert set(ALLOWED_TRANSITIONS) == set(BookingStatus)


def test_active_and_terminal_partition_the_statuses():
    assert ACTIVE_STATUSES | TERMINAL_STATUSES == set(BookingStatus)
    assert not ACTIVE_STATUSES & TERMINAL_STATUSES


@pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
def test_terminal_statuses_have_no_exits(terminal):
    for target in BookingStatus:
        assert not can_transition(terminal, target)


@pytest.mark.parametrize(
    "current,target",
    [
        (BookingStatus.PENDING_DEPOSIT, BookingStatus.CONFIRMED),
        (BookingStatus.PENDING_DEPOSIT, BookingStatus.EXPIRED),
        (BookingStatus.CONFIRMED, BookingStatus.WEATHER_HOLD),
        (BookingStatus.CONFIRMED, BookingStatus.COMPLETED),
        (BookingStatus.CONFIRMED, BookingStatus.NO_SHOW),
        (BookingStatus.WEATHER_HOLD, BookingStatus.RESCHEDULED),
        (BookingStatus.WEATHER_HOLD, BookingStatus.CONFIRMED),
        (BookingStatus.RESCHEDULED, BookingStatus.COMPLETED),
        (BookingStatus.RESCHEDULED, BookingStatus.WEATHER_HOLD),
    ],
)
def test_allowed_transitions(current, target):
    assert can_transition(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        (BookingStatus.PENDING_DEPOSIT, BookingStatus.COMPLETED),
        (BookingStatus.PENDING_DEPOSIT, BookingStatus.NO_SHOW),
        (BookingStatus.CONFIRMED, BookingStatus.EXPIRED),
        (BookingStatus.CONFIRMED, BookingStatus.PENDING_DEPOSIT),
        (BookingStatus.WEATHER_HOLD, BookingStatus.COMPLETED),
    ],
)
def test_disallowed_transitions(current, target):
    assert not can_transition(current, target)


@pytest.mark.parametrize("active", sorted(ACTIVE_STATUSES, key=lambda s: s.value))
def test_every_active_status_can_be_cancelled(active):
    assert can_transition(active, BookingStatus.CANCELLED)


def _money_booking(total: int = 60000) -> Booking:
    return Booking(
        total_price_cents=total,
        deposit_paid_cents=0,
        refunded_cents=0,
        balance_due_cents=total,
        payment_status=PaymentStatus.UNPAID.value,
    )


class TestPaymentArithmetic:
    def test_payment_then_refund_keeps_balance_invariant(self):
        booking = _money_booking()

        booking.apply_payment(20000)
        assert booking.payment_status == PaymentStatus.DEPOSIT_PAID.value
        assert booking.balance_due_cents == 40000

        booking.apply_refund(5000)
        assert booking.deposit_paid_cents == 15000
        assert booking.refunded_cents == 5000
        assert booking.balance_due_cents == 45000
        assert booking.payment_status == PaymentStatus.PARTIALLY_REFUNDED.value
        assert booking.balance_due_cents == booking.total_price_cents - booking.deposit_paid_cents

    def test_full_payment_and_full_refund(self):
        booking = _money_booking()

        booking.apply_payment(60000)
        assert booking.payment_status == PaymentStatus.FULLY_PAID.value
        assert booking.balance_due_cents == 0

        booking.apply_refund(60000)
        assert booking.payment_status == PaymentStatus.FULLY_REFUNDED.value
        assert booking.balance_due_cents == 60000

    def test_paying_down_a_partial_refund_restores_fully_paid(self):
        booking = _money_booking()
        booking.apply_payment(60000)
        booking.apply_refund(10000)
        assert booking.payment_status == PaymentStatus.PARTIALLY_REFUNDED.value

        booking.apply_payment(10000)
        assert booking.balance_due_cents == 0
        assert booking.refunded_cents == 10000
        assert booking.payment_status == PaymentStatus.FULLY_PAID.value

    def test_overpayment_is_capped_at_total(self):
        booking = _money_booking(total=10000)
        booking.apply_payment(12000)
        assert booking.deposit_paid_cents == 10000
        assert booking.balance_due_cents == 0


def test_to_dict_serializes_datetimes():
    start = datetime(2030, 6, 11, 14, tzinfo=timezone.utc)
    booking = _money_booking()
    booking.id = "01HZZZZZZZZZZZZZZZZZZZZZZZ"
    booking.status = BookingStatus.CONFIRMED.value
    booking.scheduled_start = start
    booking.scheduled_end = start
    snapshot = booking.to_dict()
    assert snapshot["scheduled_start"] == start.isoformat()
    assert snapshot["status"] == "confirmed"


def test_status_enum_property():
    booking = SimpleNamespace(status="weather_hold")
    assert Booking.status_enum.fget(booking) is BookingStatus.WEATHER_HOLD
