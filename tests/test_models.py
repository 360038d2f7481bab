from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, time, timedelta
from decimal import Decimal

import pytest

from memberdesk.domain.models import (
    InvalidStateTransitionError,
    Member,
    MembershipPlan,
    MemberStatus,
    OperatingWindow,
    PlanType,
    Reservation,
    ReservationStatus,
    Resource,
    ResourceType,
    daily_windows,
)
from memberdesk.domain.values import DateRange, Money, TimeSlot


NOW = datetime(2025, 6, 2, 10, 0)  # Monday


def _member(**overrides) -> Member:
    defaults = {
        "member_id": "M-001",
        "name": "Kim Minji",
        "email": "minji@example.com",
        "phone": "010-1234-5678",
        "plan": MembershipPlan.basic_monthly(),
        "membership_period": DateRange(date(2025, 6, 1), date(2025, 6, 30)),
    }
    defaults.update(overrides)
    return Member(**defaults)


def _reservation(**overrides) -> Reservation:
    defaults = {
        "reservation_id": "RSV-000001",
        "member_id": "M-001",
        "resource_id": "GYM-01",
        "time_slot": TimeSlot.of_minutes(NOW + timedelta(hours=3), 60),
        "created_at": NOW,
    }
    defaults.update(overrides)
    return Reservation(**defaults)


# --- Plans ---

def test_plan_type_durations() -> None:
    assert PlanType.MONTHLY.is_valid_duration(30)
    assert not PlanType.MONTHLY.is_valid_duration(40)
    assert PlanType.YEARLY.is_valid_duration(366)
    assert PlanType.PERIOD.is_valid_duration(1)


def test_plan_with_invalid_duration_raises() -> None:
    with pytest.raises(ValueError):
        replace(MembershipPlan.basic_monthly(), duration_days=40)


def test_plan_advance_window_over_three_durations_raises() -> None:
    with pytest.raises(ValueError):
        replace(MembershipPlan.basic_monthly(), max_advance_reservation_days=91)


def test_plan_discount_rate_out_of_range_raises() -> None:
    with pytest.raises(ValueError):
        replace(MembershipPlan.basic_monthly(), discount_rate=Decimal("1.5"))


def test_plan_without_resource_types_raises() -> None:
    with pytest.raises(ValueError):
        replace(MembershipPlan.basic_monthly(), allowed_resource_types=frozenset())


def test_plan_prices() -> None:
    assert MembershipPlan.premium_monthly().discounted_price() == Money.won(90000)
    assert MembershipPlan.basic_monthly().pro_rated_price(15) == Money.won(25000)
    assert MembershipPlan.basic_monthly().pro_rated_price(45) == Money.won(50000)


def test_inactive_plan_grants_nothing() -> None:
    plan = MembershipPlan.basic_monthly().deactivate()
    assert not plan.has_privilege(ResourceType.GYM)
    assert plan.activate().has_privilege(ResourceType.GYM)


# --- Members ---

def test_invalid_email_raises() -> None:
    with pytest.raises(ValueError):
        _member(email="not-an-email")


def test_suspend_and_reactivate() -> None:
    suspended = _member().suspend("payment overdue")
    assert suspended.status is MemberStatus.SUSPENDED
    assert suspended.suspension_reason == "payment overdue"
    active = suspended.activate()
    assert active.status is MemberStatus.ACTIVE
    assert active.suspension_reason is None


def test_withdrawn_member_cannot_transition() -> None:
    withdrawn = _member().withdraw()
    with pytest.raises(InvalidStateTransitionError):
        withdrawn.activate()
    with pytest.raises(InvalidStateTransitionError):
        withdrawn.assign_membership(MembershipPlan.basic_monthly(), DateRange.of_days(date(2025, 7, 1), 30))


def test_active_member_cannot_be_activated_again() -> None:
    with pytest.raises(InvalidStateTransitionError):
        _member().activate()


def test_membership_day_counts() -> None:
    member = _member()
    today = date(2025, 6, 2)
    assert member.has_active_membership(today)
    assert member.remaining_membership_days(today) == 29
    assert member.days_since_expiry(date(2025, 7, 3)) == 3
    assert member.is_membership_expired(date(2025, 7, 1))


def test_can_reserve_checks_plan_and_date() -> None:
    member = _member()
    today = date(2025, 6, 2)
    assert member.can_reserve(ResourceType.GYM, date(2025, 6, 10), today)
    assert not member.can_reserve(ResourceType.POOL, date(2025, 6, 10), today)
    assert not member.can_reserve(ResourceType.GYM, date(2025, 7, 10), today)


# --- Resources ---

def test_office_hours_resource_is_closed_on_saturday() -> None:
    resource = Resource(
        "MEET-01",
        "Meeting Room A",
        ResourceType.MEETING_ROOM,
        8,
        Money.won(20000),
        operating_hours=daily_windows(time(9), time(18), weekdays=range(5)),
    )
    weekday_slot = TimeSlot.of_minutes(datetime(2025, 6, 3, 10, 0), 60)
    saturday_slot = TimeSlot.of_minutes(datetime(2025, 6, 7, 10, 0), 60)
    late_slot = TimeSlot.of_minutes(datetime(2025, 6, 3, 17, 30), 60)
    assert resource.is_open_during(weekday_slot)
    assert not resource.is_open_during(saturday_slot)
    assert not resource.is_open_during(late_slot)
    assert not resource.deactivate().is_open_during(weekday_slot)


def test_window_closing_at_midnight_covers_late_slot() -> None:
    window = OperatingWindow(1, time(6), time(0))
    assert window.covers(TimeSlot(datetime(2025, 6, 3, 22, 0), datetime(2025, 6, 4, 0, 0)))


def test_window_with_reversed_hours_raises() -> None:
    with pytest.raises(ValueError):
        OperatingWindow(0, time(18), time(9))


# --- Reservations ---

def test_reservation_lifecycle_records_history() -> None:
    reservation = _reservation()
    done = reservation.confirm(NOW).start_use(NOW + timedelta(hours=3)).complete(NOW + timedelta(hours=4))
    assert done.status is ReservationStatus.COMPLETED
    assert [change.to_status for change in done.history] == [
        ReservationStatus.REQUESTED,
        ReservationStatus.CONFIRMED,
        ReservationStatus.IN_USE,
        ReservationStatus.COMPLETED,
    ]


def test_completed_reservation_cannot_be_cancelled() -> None:
    done = _reservation().confirm(NOW).start_use(NOW).complete(NOW)
    with pytest.raises(InvalidStateTransitionError):
        done.cancel("changed plans", NOW)


def test_cancel_requires_reason() -> None:
    with pytest.raises(ValueError):
        _reservation().cancel("  ", NOW)


def test_auto_cancel_after_window() -> None:
    reservation = _reservation()
    assert not reservation.should_auto_cancel(NOW + timedelta(hours=23))
    cancelled = reservation.auto_cancel(NOW + timedelta(hours=24))
    assert cancelled.status is ReservationStatus.CANCELLED
    with pytest.raises(InvalidStateTransitionError):
        reservation.confirm(NOW).auto_cancel(NOW + timedelta(days=2))


def test_no_show_and_modification_windows() -> None:
    confirmed = _reservation().confirm(NOW)
    start = confirmed.time_slot.start
    assert not confirmed.is_no_show(start + timedelta(minutes=15))
    assert confirmed.is_no_show(start + timedelta(minutes=16))
    assert confirmed.is_modifiable(start - timedelta(minutes=61))
    assert not confirmed.is_modifiable(start - timedelta(minutes=60))


def test_conflicts_ignore_final_reservations() -> None:
    first = _reservation()
    second = _reservation(reservation_id="RSV-000002", member_id="M-002")
    assert first.conflicts_with(second)
    assert not first.conflicts_with(second.cancel("no longer needed", NOW))
