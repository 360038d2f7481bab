"""Tests for the specification algebra and the business-rule leaves."""

from __future__ import annotations

import itertools
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from memberdesk.domain.context import ReservationContext
from memberdesk.domain.models import Member, MembershipPlan, MemberStatus, Resource, ResourceType
from memberdesk.domain.specifications import (
    ActiveMemberSpecification,
    AdvanceReservationLimitSpecification,
    AndSpecification,
    DayOfWeekSpecification,
    MembershipPrivilegeSpecification,
    NotSpecification,
    PredicateSpecification,
    ResourceCapacitySpecification,
    RestrictionMode,
    SimultaneousReservationLimitSpecification,
    TimeOfDaySpecification,
    ValidReservationTimeSpecification,
    all_of,
    any_of,
    weekdays_only,
    weekend_restriction,
)
from memberdesk.domain.values import DateRange, Money, TimeSlot


NOW = datetime(2025, 6, 2, 10, 0)  # Monday
JUNE = DateRange(date(2025, 6, 1), date(2025, 6, 30))


def _member(
    status: MemberStatus = MemberStatus.ACTIVE,
    plan: MembershipPlan | None = None,
    period: DateRange | None = JUNE,
    suspension_reason: str | None = None,
) -> Member:
    return Member(
        member_id="M-001",
        name="Kim Minji",
        email="minji@example.com",
        phone="010-1234-5678",
        status=status,
        plan=plan or MembershipPlan.basic_monthly(),
        membership_period=period,
        suspension_reason=suspension_reason,
    )


def _resource(resource_type: ResourceType = ResourceType.GYM, capacity: int = 10) -> Resource:
    return Resource("GYM-01", "Main Gym", resource_type, capacity, Money.won(10000))


def _context(
    member: Member | None = None,
    resource: Resource | None = None,
    start: datetime | None = None,
    **counts,
) -> ReservationContext:
    slot_start = start or NOW + timedelta(days=1)
    return ReservationContext(
        member=member or _member(),
        resource=resource or _resource(),
        time_slot=TimeSlot.of_minutes(slot_start, 60),
        evaluated_at=NOW,
        **counts,
    )


class CountingSpecification(PredicateSpecification):
    """Predicate leaf that records how often it was evaluated."""

    def __init__(self, result: bool, label: str) -> None:
        calls = []

        def predicate(context) -> bool:
            calls.append(context)
            return result

        super().__init__(predicate, label)
        object.__setattr__(self, "calls", calls)


def _always(result: bool, label: str = "fixed") -> PredicateSpecification:
    return PredicateSpecification(lambda context: result, label)


# --- Algebra ---

@pytest.mark.parametrize("left, right", list(itertools.product([True, False], repeat=2)))
def test_composites_follow_boolean_logic(left: bool, right: bool) -> None:
    a, b = _always(left, "a"), _always(right, "b")
    context = _context()
    assert a.and_(b).is_satisfied_by(context) == (left and right)
    assert a.or_(b).is_satisfied_by(context) == (left or right)
    assert a.not_().is_satisfied_by(context) == (not left)
    assert (a & b).is_satisfied_by(context) == (left and right)
    assert (a | b).is_satisfied_by(context) == (left or right)
    assert (~a).is_satisfied_by(context) == (not left)


@pytest.mark.parametrize("values", list(itertools.product([True, False], repeat=3)))
def test_and_or_are_associative(values: tuple[bool, bool, bool]) -> None:
    a, b, c = (_always(value, name) for value, name in zip(values, "abc"))
    context = _context()
    assert ((a & b) & c).is_satisfied_by(context) == (a & (b & c)).is_satisfied_by(context)
    assert ((a | b) | c).is_satisfied_by(context) == (a | (b | c)).is_satisfied_by(context)


@pytest.mark.parametrize("left, right", list(itertools.product([True, False], repeat=2)))
def test_de_morgan(left: bool, right: bool) -> None:
    a, b = _always(left, "a"), _always(right, "b")
    context = _context()
    assert (~(a & b)).is_satisfied_by(context) == (~a | ~b).is_satisfied_by(context)


def test_and_short_circuits_on_false_left() -> None:
    left = CountingSpecification(False, "left")
    right = CountingSpecification(True, "right")
    assert not left.and_(right).is_satisfied_by(_context())
    assert len(left.calls) == 1
    assert right.calls == []


def test_or_short_circuits_on_true_left() -> None:
    left = CountingSpecification(True, "left")
    right = CountingSpecification(False, "right")
    assert left.or_(right).is_satisfied_by(_context())
    assert right.calls == []


def test_descriptions_nest() -> None:
    spec = (_always(True, "a") & _always(True, "b")) | ~_always(True, "c")
    assert spec.description == "((a) AND (b)) OR (NOT (c))"


def test_composite_rejects_non_specification() -> None:
    with pytest.raises(ValueError):
        AndSpecification(_always(True), "not a spec")
    with pytest.raises(ValueError):
        NotSpecification(None)


def test_all_of_and_any_of() -> None:
    context = _context()
    single = _always(True, "only")
    assert all_of([single]) is single
    assert all_of([_always(True), _always(True), _always(False)]).is_satisfied_by(context) is False
    assert any_of([_always(False), _always(False), _always(True)]).is_satisfied_by(context) is True
    with pytest.raises(ValueError):
        all_of([])
    with pytest.raises(ValueError):
        any_of([])


def test_failure_reasons_of_composites() -> None:
    context = _context()
    a = PredicateSpecification(lambda ctx: False, "a", reason="a failed")
    b = PredicateSpecification(lambda ctx: False, "b", reason="b failed")
    assert a.and_(b).failure_reason(context) == "a failed"
    assert a.or_(b).failure_reason(context) == "a failed and b failed"
    assert _always(True, "yes").not_().failure_reason(context) == "NOT (yes) is not satisfied"
    assert _always(True).and_(_always(True)).failure_reason(context) is None


# --- Active member ---

def test_active_member_with_current_membership_passes() -> None:
    assert ActiveMemberSpecification().is_satisfied_by(_context())


def test_withdrawn_member_fails() -> None:
    context = _context(member=_member(status=MemberStatus.WITHDRAWN))
    assert ActiveMemberSpecification().failure_reason(context) == "Member M-001 has withdrawn"
    assert not ActiveMemberSpecification.lenient().is_satisfied_by(context)


def test_suspended_member_only_passes_lenient_rule() -> None:
    context = _context(member=_member(status=MemberStatus.SUSPENDED, suspension_reason="payment overdue"))
    assert ActiveMemberSpecification().failure_reason(context) == "Member M-001 is suspended: payment overdue"
    assert ActiveMemberSpecification.lenient().is_satisfied_by(context)


def test_expired_membership_and_grace_period() -> None:
    may = DateRange(date(2025, 5, 1), date(2025, 5, 31))
    context = _context(member=_member(period=may))
    assert ActiveMemberSpecification().failure_reason(context) == "Membership expired on 2025-05-31"
    assert ActiveMemberSpecification(grace_period_days=2).is_satisfied_by(context)
    assert not ActiveMemberSpecification(grace_period_days=1).is_satisfied_by(context)


def test_membership_not_started_yet() -> None:
    context = _context(member=_member(period=DateRange(date(2025, 6, 10), date(2025, 7, 9))))
    assert ActiveMemberSpecification().failure_reason(context) == "Membership starts on 2025-06-10"


def test_status_only_ignores_membership() -> None:
    context = _context(member=_member(period=DateRange(date(2025, 1, 1), date(2025, 1, 30))))
    assert ActiveMemberSpecification.status_only().is_satisfied_by(context)


def test_negative_grace_period_raises() -> None:
    with pytest.raises(ValueError):
        ActiveMemberSpecification(grace_period_days=-1)


# --- Membership privilege ---

def test_plan_without_resource_type_suggests_upgrade() -> None:
    context = _context(resource=_resource(ResourceType.POOL))
    reason = MembershipPrivilegeSpecification().failure_reason(context)
    assert "does not grant" in reason
    assert "upgrade to a plan that includes POOL" in reason


def test_reservation_after_membership_end_uses_grace() -> None:
    context = _context(start=datetime(2025, 7, 2, 10, 0))
    assert not MembershipPrivilegeSpecification().is_satisfied_by(context)
    assert MembershipPrivilegeSpecification(grace_period_days=2).is_satisfied_by(context)
    assert MembershipPrivilegeSpecification(check_date_validity=False).is_satisfied_by(context)


def test_required_types_override_resource_type() -> None:
    spec = MembershipPrivilegeSpecification(required_types=frozenset({ResourceType.GYM, ResourceType.SAUNA}))
    assert not spec.is_satisfied_by(_context())
    assert spec.upgrade_suggestion(_context()) == "upgrade to a plan that includes SAUNA"
    with pytest.raises(ValueError):
        MembershipPrivilegeSpecification(required_types=frozenset())


# --- Capacity ---

def test_capacity_boundary() -> None:
    spec = ResourceCapacitySpecification.standard()
    assert spec.allowed_occupancy(10) == 9
    assert spec.is_satisfied_by(_context(current_occupancy=8))
    reason = spec.failure_reason(_context(current_occupancy=9))
    assert reason.startswith("Resource capacity exceeded for Main Gym")


def test_capacity_counts_party_size_and_reserved_seats() -> None:
    spec = ResourceCapacitySpecification(Decimal("1"), reserved_seats=2)
    assert spec.is_satisfied_by(_context(current_occupancy=4, party_size=4))
    assert not spec.is_satisfied_by(_context(current_occupancy=4, party_size=5))


@pytest.mark.parametrize("ceiling", [Decimal("0"), Decimal("1.5")])
def test_capacity_ceiling_out_of_range_raises(ceiling: Decimal) -> None:
    with pytest.raises(ValueError):
        ResourceCapacitySpecification(ceiling)


# --- Reservation time ---

def test_lead_time_and_horizon() -> None:
    spec = ValidReservationTimeSpecification(max_advance_days=365, min_lead_minutes=30)
    assert "at least 30 minutes" in spec.failure_reason(_context(start=NOW + timedelta(minutes=10)))
    assert "more than 365 days" in spec.failure_reason(_context(start=NOW + timedelta(days=400)))
    assert spec.is_satisfied_by(_context(start=NOW + timedelta(minutes=30)))


def test_business_hours_and_weekdays_only() -> None:
    spec = ValidReservationTimeSpecification(business_hours=(9, 18), weekdays_only=True)
    evening = _context(start=datetime(2025, 6, 3, 20, 0))
    saturday = _context(start=datetime(2025, 6, 7, 10, 0))
    assert "between 09:00 and 18:00" in spec.failure_reason(evening)
    assert "only accepted on weekdays" in spec.failure_reason(saturday)
    with pytest.raises(ValueError):
        ValidReservationTimeSpecification(business_hours=(18, 9))


# --- Plan limits ---

def test_simultaneous_limit_counts_pending_by_default() -> None:
    context = _context(active_reservation_count=2, pending_reservation_count=1)
    reason = SimultaneousReservationLimitSpecification().failure_reason(context)
    assert reason == "Simultaneous reservation limit reached: 3 held, limit 3"
    assert SimultaneousReservationLimitSpecification(count_pending=False).is_satisfied_by(context)


def test_strict_simultaneous_limit_keeps_a_buffer() -> None:
    context = _context(active_reservation_count=2)
    assert SimultaneousReservationLimitSpecification().is_satisfied_by(context)
    assert not SimultaneousReservationLimitSpecification.strict().is_satisfied_by(context)


def test_advance_limit_uses_plan_window() -> None:
    spec = AdvanceReservationLimitSpecification()
    assert spec.is_satisfied_by(_context(start=NOW + timedelta(days=30)))
    reason = spec.failure_reason(_context(start=NOW + timedelta(days=31)))
    assert reason == "Advance booking limit exceeded: 31 days ahead, limit 30"


def test_vip_bonus_extends_advance_window() -> None:
    member = _member(plan=MembershipPlan.premium_monthly(), period=DateRange(date(2025, 6, 1), date(2025, 8, 31)))
    context = _context(member=member, start=NOW + timedelta(days=50))
    assert not AdvanceReservationLimitSpecification().is_satisfied_by(context)
    assert AdvanceReservationLimitSpecification(vip_bonus_days=7).is_satisfied_by(context)


def test_same_day_and_minimum_notice() -> None:
    same_day = _context(start=NOW + timedelta(hours=2))
    assert AdvanceReservationLimitSpecification.strict().failure_reason(same_day) == (
        "Same-day reservations are not accepted"
    )
    early_tomorrow = _context(start=NOW + timedelta(hours=20))
    assert not AdvanceReservationLimitSpecification(minimum_advance_hours=24).is_satisfied_by(early_tomorrow)
    assert AdvanceReservationLimitSpecification(minimum_advance_hours=24).is_satisfied_by(
        _context(start=NOW + timedelta(days=1))
    )


# --- Calendar restrictions ---

def test_weekend_restriction() -> None:
    saturday = _context(start=datetime(2025, 6, 7, 10, 0))
    monday = _context(start=datetime(2025, 6, 9, 10, 0))
    assert weekend_restriction(False).failure_reason(saturday) == "Reservations are not accepted on Sat"
    assert weekend_restriction(False).is_satisfied_by(monday)
    assert weekend_restriction(True).is_satisfied_by(saturday)
    assert not weekdays_only().is_satisfied_by(saturday)


def test_day_numbers_out_of_range_raise() -> None:
    with pytest.raises(ValueError):
        DayOfWeekSpecification(frozenset({7}))


@pytest.mark.parametrize("hour, allowed", [(23, True), (2, True), (5, True), (6, False), (10, False), (18, True)])
def test_night_hours_wrap_past_midnight(hour: int, allowed: bool) -> None:
    context = _context(start=datetime(2025, 6, 3, hour, 0))
    assert TimeOfDaySpecification.night_hours().is_satisfied_by(context) is allowed


def test_deny_mode_inverts_window() -> None:
    spec = TimeOfDaySpecification(9, 18, RestrictionMode.DENY)
    assert not spec.is_satisfied_by(_context(start=datetime(2025, 6, 3, 10, 0)))
    assert spec.is_satisfied_by(_context(start=datetime(2025, 6, 3, 19, 0)))
    assert TimeOfDaySpecification.night_hours().description == "Starts inside 18:00-06:00"
    with pytest.raises(ValueError):
        TimeOfDaySpecification(18, 31)
