from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from memberdesk.domain.context import ReservationContext
from memberdesk.domain.eligibility import (
    ALLOWED_MESSAGE,
    CombinationMode,
    EligibilityDecision,
    PolicyLevel,
    ReservationPolicy,
    ReservationPolicyBuilder,
)
from memberdesk.domain.models import Member, MembershipPlan, MemberStatus, Resource, ResourceType
from memberdesk.domain.specifications import PredicateSpecification, weekdays_only
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


def _context(member: Member | None = None, start: datetime | None = None, **counts) -> ReservationContext:
    return ReservationContext(
        member=member or _member(),
        resource=Resource("GYM-01", "Main Gym", ResourceType.GYM, 10, Money.won(10000)),
        time_slot=TimeSlot.of_minutes(start or NOW + timedelta(days=1), 60),
        evaluated_at=NOW,
        **counts,
    )


# --- Named policies ---

def test_standard_policy_allows_valid_request() -> None:
    policy = ReservationPolicy.standard()
    context = _context()
    assert policy.can_reserve(context)
    assert policy.violation_reason(context) == ALLOWED_MESSAGE


def test_reason_lists_every_failed_rule() -> None:
    member = _member(status=MemberStatus.SUSPENDED, suspension_reason="payment overdue")
    context = _context(member=member, current_occupancy=9)
    policy = ReservationPolicy.standard()

    decision = policy.evaluate(context)

    assert not decision.allowed
    assert len(decision.violations) == 2
    assert decision.violations[0] == "Member M-001 is suspended: payment overdue"
    assert decision.violations[1].startswith("Resource capacity exceeded for Main Gym")
    assert policy.violation_reason(context) == "; ".join(decision.violations)


def test_restrictive_policy_rejects_weekend_and_same_day() -> None:
    policy = ReservationPolicy.restrictive()
    saturday = _context(start=datetime(2025, 6, 7, 10, 0))
    same_day = _context(start=NOW + timedelta(hours=3))
    assert "Reservations are not accepted on Sat" in policy.violation_reason(saturday)
    assert "Same-day reservations are not accepted" in policy.violation_reason(same_day)
    assert policy.can_reserve(_context(start=datetime(2025, 6, 3, 10, 0)))


def test_premium_policy_tolerates_recent_expiry() -> None:
    member = _member(membership_period=DateRange(date(2025, 5, 1), date(2025, 5, 30)))
    context = _context(member=member)
    assert ReservationPolicy.premium().can_reserve(context)
    assert not ReservationPolicy.standard().can_reserve(context)


def test_premium_policy_ignores_pending_requests() -> None:
    context = _context(active_reservation_count=1, pending_reservation_count=2)
    assert ReservationPolicy.premium().can_reserve(context)
    assert not ReservationPolicy.standard().can_reserve(context)


# --- Levels ---

def test_minimal_level_checks_status_only() -> None:
    policy = ReservationPolicy.for_level(PolicyLevel.MINIMAL)
    assert policy.can_reserve(_context(member=_member(plan=None, membership_period=None)))
    assert not policy.can_reserve(_context(member=_member(status=MemberStatus.WITHDRAWN)))


def test_custom_level_has_no_preset() -> None:
    with pytest.raises(ValueError):
        ReservationPolicy.for_level(PolicyLevel.CUSTOM)


def test_named_lookup() -> None:
    assert ReservationPolicy.named(" Premium ").name == "premium"
    assert ReservationPolicy.named("STRICT").name == "strict"
    with pytest.raises(ValueError):
        ReservationPolicy.named("unknown")


def test_policy_needs_rules() -> None:
    with pytest.raises(ValueError):
        ReservationPolicy("empty", [])


def test_decision_reason_is_never_empty() -> None:
    assert EligibilityDecision(True, ()).reason == ALLOWED_MESSAGE
    assert EligibilityDecision(False, ()).reason == "Reservation not allowed"


# --- Builder ---

def test_builder_adds_rules_to_level() -> None:
    policy = ReservationPolicyBuilder("weekday gym").with_level(PolicyLevel.BASIC).with_rule(weekdays_only()).build()
    assert policy.name == "weekday gym"
    assert len(policy.rules) == 5
    assert not policy.can_reserve(_context(start=datetime(2025, 6, 7, 10, 0)))
    assert policy.can_reserve(_context())


def test_builder_any_mode() -> None:
    never = PredicateSpecification(lambda context: False, "never")
    always = PredicateSpecification(lambda context: True, "always")
    policy = ReservationPolicyBuilder().with_rules([never, always]).combine_with(CombinationMode.ANY).build()
    assert policy.mode is CombinationMode.ANY
    assert policy.can_reserve(_context())


def test_builder_without_rules_raises() -> None:
    with pytest.raises(ValueError):
        ReservationPolicyBuilder().build()
