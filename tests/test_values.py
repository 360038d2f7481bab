"""Tests for the money and interval value objects."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from memberdesk.domain.values import CurrencyMismatchError, DateRange, Money, TimeSlot, max_of, min_of


# --- Money construction ---

def test_won_amounts_are_rounded_to_whole_units() -> None:
    assert Money.won(1000.4).amount == Decimal("1000")
    assert Money.won("1000.5").amount == Decimal("1001")


def test_usd_amounts_round_half_up_to_cents() -> None:
    assert Money.usd("10.005").amount == Decimal("10.01")
    assert Money.usd(0.1).amount == Decimal("0.10")


def test_negative_amount_raises() -> None:
    with pytest.raises(ValueError):
        Money.won(-1)


def test_blank_currency_raises() -> None:
    with pytest.raises(ValueError):
        Money.of(100, "  ")


def test_boolean_amount_is_rejected() -> None:
    with pytest.raises(ValueError):
        Money.won(True)


def test_currency_code_is_upper_cased() -> None:
    assert Money.of(5, "eur") == Money.eur(5)


@pytest.mark.parametrize("amount", ["NaN", "Infinity", float("inf"), Decimal("-Infinity")])
def test_non_finite_amount_raises(amount) -> None:
    with pytest.raises(ValueError, match="finite"):
        Money.of(amount, "KRW")


# --- Money arithmetic ---

def test_add_and_subtract_same_currency() -> None:
    assert Money.won(1000) + Money.won(500) == Money.won(1500)
    assert Money.won(1000) - Money.won(400) == Money.won(600)


def test_subtract_below_zero_raises() -> None:
    with pytest.raises(ValueError):
        Money.won(100).subtract(Money.won(200))


def test_subtract_or_zero_clamps() -> None:
    assert Money.won(100).subtract_or_zero(Money.won(200)) == Money.zero("KRW")


def test_mixing_currencies_raises() -> None:
    with pytest.raises(CurrencyMismatchError):
        Money.won(100).add(Money.usd(1))
    with pytest.raises(CurrencyMismatchError):
        _ = Money.won(100) < Money.usd(1)


def test_multiply_and_divide() -> None:
    assert Money.won(10000).multiply(Decimal("0.15")) == Money.won(1500)
    assert Money.won(10000).divide(3) == Money.won(3333)


def test_multiply_by_negative_factor_raises() -> None:
    with pytest.raises(ValueError):
        Money.won(100).multiply(-1)


def test_divide_by_zero_raises() -> None:
    with pytest.raises(ValueError):
        Money.won(100).divide(0)


def test_min_and_max_of() -> None:
    low, high = Money.won(100), Money.won(200)
    assert min_of(low, high) is low
    assert max_of(low, high) is high


def test_string_form_uses_thousands_separator() -> None:
    assert str(Money.won(1000)) == "1,000 KRW"


# --- DateRange ---

def test_of_days_is_inclusive() -> None:
    period = DateRange.of_days(date(2025, 6, 1), 30)
    assert period.end == date(2025, 6, 30)
    assert period.days == 30


def test_reversed_date_range_raises() -> None:
    with pytest.raises(ValueError):
        DateRange(date(2025, 6, 3), date(2025, 6, 1))


def test_closed_ranges_sharing_a_day_overlap() -> None:
    first = DateRange(date(2025, 6, 1), date(2025, 6, 3))
    second = DateRange(date(2025, 6, 3), date(2025, 6, 5))
    assert first.overlaps(second)
    assert not first.is_adjacent_to(second)


def test_adjacent_ranges_do_not_overlap() -> None:
    first = DateRange(date(2025, 6, 1), date(2025, 6, 2))
    second = DateRange(date(2025, 6, 3), date(2025, 6, 5))
    assert not first.overlaps(second)
    assert first.is_adjacent_to(second)


def test_extend_and_shorten() -> None:
    period = DateRange(date(2025, 6, 1), date(2025, 6, 10))
    assert period.extend(5).end == date(2025, 6, 15)
    assert period.shorten(9).end == date(2025, 6, 1)
    with pytest.raises(ValueError):
        period.shorten(10)


def test_past_future_current() -> None:
    period = DateRange(date(2025, 6, 1), date(2025, 6, 10))
    assert period.is_current(date(2025, 6, 10))
    assert period.is_past(date(2025, 6, 11))
    assert period.is_future(date(2025, 5, 31))


# --- TimeSlot ---

def test_slot_requires_start_before_end() -> None:
    start = datetime(2025, 6, 2, 10, 0)
    with pytest.raises(ValueError):
        TimeSlot(start, start)


def test_back_to_back_slots_do_not_overlap() -> None:
    first = TimeSlot(datetime(2025, 6, 2, 9, 0), datetime(2025, 6, 2, 10, 0))
    second = TimeSlot(datetime(2025, 6, 2, 10, 0), datetime(2025, 6, 2, 11, 0))
    assert not first.overlaps(second)
    assert first.is_adjacent_to(second)


def test_partially_overlapping_slots() -> None:
    first = TimeSlot(datetime(2025, 6, 2, 9, 0), datetime(2025, 6, 2, 10, 30))
    second = TimeSlot(datetime(2025, 6, 2, 10, 0), datetime(2025, 6, 2, 11, 0))
    assert first.overlaps(second)
    assert second.overlaps(first)


def test_slot_end_is_exclusive() -> None:
    slot = TimeSlot.of_minutes(datetime(2025, 6, 2, 9, 0), 60)
    assert slot.contains(datetime(2025, 6, 2, 9, 59))
    assert not slot.contains(datetime(2025, 6, 2, 10, 0))


def test_billable_hours_round_up() -> None:
    start = datetime(2025, 6, 2, 9, 0)
    assert TimeSlot.of_minutes(start, 30).billable_hours == 1
    assert TimeSlot.of_minutes(start, 90).billable_hours == 2
    assert TimeSlot(start, start + timedelta(hours=3)).billable_hours == 3
