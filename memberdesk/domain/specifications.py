"""Boolean specification algebra over reservation context snapshots.

Composites (AND/OR/NOT) hold their children as plain values and never read
the context themselves; only leaves inspect context fields. Every leaf is a
frozen dataclass so one configured instance can be shared across threads
and evaluations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from decimal import ROUND_FLOOR, Decimal
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from memberdesk.domain.constraints import (
    require_hour_window,
    require_non_negative_int,
    require_positive_int,
    require_text,
    to_decimal,
)
from memberdesk.domain.context import ReservationContext
from memberdesk.domain.models import MemberStatus, ResourceType


WEEKDAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
WEEKDAYS = frozenset(range(5))
WEEKEND = frozenset({5, 6})


class Specification(ABC):
    """A named predicate that can be combined with and_/or_/not_."""

    @abstractmethod
    def is_satisfied_by(self, context: Any) -> bool:
        raise NotImplementedError

    @property
    @abstractmethod
    def description(self) -> str:
        raise NotImplementedError

    def failure_reason(self, context: Any) -> Optional[str]:
        if self.is_satisfied_by(context):
            return None
        return f"{self.description} is not satisfied"

    def and_(self, other: "Specification") -> "Specification":
        return AndSpecification(self, other)

    def or_(self, other: "Specification") -> "Specification":
        return OrSpecification(self, other)

    def not_(self) -> "Specification":
        return NotSpecification(self)

    def __and__(self, other: "Specification") -> "Specification":
        return self.and_(other)

    def __or__(self, other: "Specification") -> "Specification":
        return self.or_(other)

    def __invert__(self) -> "Specification":
        return self.not_()


def _require_specification(value: Any, field_name: str) -> None:
    if not isinstance(value, Specification):
        raise ValueError(f"{field_name} must be a Specification, got {type(value).__name__}")


@dataclass(frozen=True)
class AndSpecification(Specification):
    left: Specification
    right: Specification

    def __post_init__(self) -> None:
        _require_specification(self.left, "left")
        _require_specification(self.right, "right")

    def is_satisfied_by(self, context: Any) -> bool:
        return self.left.is_satisfied_by(context) and self.right.is_satisfied_by(context)

    @property
    def description(self) -> str:
        return f"({self.left.description}) AND ({self.right.description})"

    def failure_reason(self, context: Any) -> Optional[str]:
        return self.left.failure_reason(context) or self.right.failure_reason(context)


@dataclass(frozen=True)
class OrSpecification(Specification):
    left: Specification
    right: Specification

    def __post_init__(self) -> None:
        _require_specification(self.left, "left")
        _require_specification(self.right, "right")

    def is_satisfied_by(self, context: Any) -> bool:
        return self.left.is_satisfied_by(context) or self.right.is_satisfied_by(context)

    @property
    def description(self) -> str:
        return f"({self.left.description}) OR ({self.right.description})"

    def failure_reason(self, context: Any) -> Optional[str]:
        if self.is_satisfied_by(context):
            return None
        return f"{self.left.failure_reason(context)} and {self.right.failure_reason(context)}"


@dataclass(frozen=True)
class NotSpecification(Specification):
    inner: Specification

    def __post_init__(self) -> None:
        _require_specification(self.inner, "inner")

    def is_satisfied_by(self, context: Any) -> bool:
        return not self.inner.is_satisfied_by(context)

    @property
    def description(self) -> str:
        return f"NOT ({self.inner.description})"


@dataclass(frozen=True)
class PredicateSpecification(Specification):
    """Ad-hoc leaf wrapping a plain callable."""

    predicate: Callable[[Any], bool]
    label: str
    reason: Optional[str] = None

    def __post_init__(self) -> None:
        if not callable(self.predicate):
            raise ValueError("predicate must be callable")
        require_text(self.label, "label")

    def is_satisfied_by(self, context: Any) -> bool:
        return bool(self.predicate(context))

    @property
    def description(self) -> str:
        return self.label

    def failure_reason(self, context: Any) -> Optional[str]:
        if self.is_satisfied_by(context):
            return None
        return self.reason or f"{self.label} is not satisfied"


def all_of(specifications: Iterable[Specification]) -> Specification:
    """Fold specifications into a left-nested AND chain."""
    items = list(specifications)
    if not items:
        raise ValueError("at least one specification is required")
    combined = items[0]
    for item in items[1:]:
        combined = combined.and_(item)
    return combined


def any_of(specifications: Iterable[Specification]) -> Specification:
    """Fold specifications into a left-nested OR chain."""
    items = list(specifications)
    if not items:
        raise ValueError("at least one specification is required")
    combined = items[0]
    for item in items[1:]:
        combined = combined.or_(item)
    return combined


class LeafSpecification(Specification):
    """Base for business-rule leaves.

    Subclasses implement failure_reason only; satisfaction is the absence of
    a reason, so the boolean and the diagnostic can never disagree.
    """

    @abstractmethod
    def failure_reason(self, context: ReservationContext) -> Optional[str]:
        raise NotImplementedError

    def is_satisfied_by(self, context: ReservationContext) -> bool:
        return self.failure_reason(context) is None


# --- member rules ---


@dataclass(frozen=True)
class ActiveMemberSpecification(LeafSpecification):
    allow_suspended: bool = False
    grace_period_days: int = 0
    check_membership: bool = True

    def __post_init__(self) -> None:
        require_non_negative_int(self.grace_period_days, "grace_period_days")

    @classmethod
    def lenient(cls, grace_period_days: int = 7) -> "ActiveMemberSpecification":
        return cls(allow_suspended=True, grace_period_days=grace_period_days)

    @classmethod
    def status_only(cls) -> "ActiveMemberSpecification":
        return cls(check_membership=False)

    @property
    def description(self) -> str:
        options = []
        if self.allow_suspended:
            options.append("suspended tolerated")
        if self.grace_period_days:
            options.append(f"{self.grace_period_days}-day grace")
        if not self.check_membership:
            options.append("status only")
        suffix = f" ({', '.join(options)})" if options else ""
        return f"Member is active{suffix}"

    def failure_reason(self, context: ReservationContext) -> Optional[str]:
        member = context.member
        if member.status is MemberStatus.WITHDRAWN:
            return f"Member {member.member_id} has withdrawn"
        if member.status is MemberStatus.SUSPENDED and not self.allow_suspended:
            detail = f": {member.suspension_reason}" if member.suspension_reason else ""
            return f"Member {member.member_id} is suspended{detail}"
        if not self.check_membership:
            return None

        plan = member.plan
        period = member.membership_period
        if plan is None or period is None:
            return f"Member {member.member_id} has no membership"
        if not plan.active:
            return f"Membership plan {plan.name} is no longer offered"
        today = context.today
        if period.contains(today):
            return None
        if period.is_future(today):
            return f"Membership starts on {period.start.isoformat()}"
        overdue = member.days_since_expiry(today)
        if overdue <= self.grace_period_days:
            return None
        if self.grace_period_days:
            return (
                f"Membership expired on {period.end.isoformat()} "
                f"({overdue} days ago, grace is {self.grace_period_days} days)"
            )
        return f"Membership expired on {period.end.isoformat()}"


@dataclass(frozen=True)
class MembershipPrivilegeSpecification(LeafSpecification):
    grace_period_days: int = 0
    check_date_validity: bool = True
    required_types: Optional[frozenset[ResourceType]] = None

    def __post_init__(self) -> None:
        require_non_negative_int(self.grace_period_days, "grace_period_days")
        if self.required_types is not None:
            if not self.required_types:
                raise ValueError("required_types must not be empty when given")
            object.__setattr__(self, "required_types", frozenset(self.required_types))

    @property
    def description(self) -> str:
        if self.required_types:
            names = ", ".join(sorted(item.value for item in self.required_types))
            return f"Plan grants {names}"
        return "Plan grants the requested resource"

    def _types(self, context: ReservationContext) -> frozenset[ResourceType]:
        return self.required_types or frozenset({context.resource_type})

    def upgrade_suggestion(self, context: ReservationContext) -> Optional[str]:
        plan = context.plan
        missing = self._types(context) if plan is None else self._types(context) - plan.allowed_resource_types
        if not missing:
            return None
        names = ", ".join(sorted(item.value for item in missing))
        return f"upgrade to a plan that includes {names}"

    def failure_reason(self, context: ReservationContext) -> Optional[str]:
        member = context.member
        plan = context.plan
        if plan is None:
            return f"Member {member.member_id} has no membership plan"
        if not plan.active:
            return f"Membership plan {plan.name} is no longer offered"
        if not self._types(context) <= plan.allowed_resource_types:
            return f"Plan {plan.name} does not grant this resource; {self.upgrade_suggestion(context)}"
        if not self.check_date_validity:
            return None

        period = member.membership_period
        if period is None:
            return f"Member {member.member_id} has no membership period"
        reserved_on = context.reservation_date
        if period.contains(reserved_on):
            return None
        if reserved_on < period.start:
            return f"Reservation date {reserved_on.isoformat()} is before the membership starts"
        overdue = (reserved_on - period.end).days
        if overdue <= self.grace_period_days:
            return None
        return f"Reservation date {reserved_on.isoformat()} is after the membership ends ({period.end.isoformat()})"


# --- resource and schedule rules ---


@dataclass(frozen=True)
class ResourceCapacitySpecification(LeafSpecification):
    utilization_ceiling: Decimal = Decimal("1")
    reserved_seats: int = 0

    def __post_init__(self) -> None:
        ceiling = to_decimal(self.utilization_ceiling, "utilization_ceiling")
        if not Decimal("0") < ceiling <= Decimal("1"):
            raise ValueError("utilization_ceiling must be in (0, 1]")
        object.__setattr__(self, "utilization_ceiling", ceiling)
        require_non_negative_int(self.reserved_seats, "reserved_seats")

    @classmethod
    def standard(cls) -> "ResourceCapacitySpecification":
        return cls(Decimal("0.9"))

    @classmethod
    def restrictive(cls) -> "ResourceCapacitySpecification":
        return cls(Decimal("0.8"))

    @classmethod
    def unrestricted(cls) -> "ResourceCapacitySpecification":
        return cls(Decimal("1"))

    @property
    def description(self) -> str:
        percent = (self.utilization_ceiling * 100).normalize()
        seats = f", {self.reserved_seats} seats held back" if self.reserved_seats else ""
        return f"Occupancy within {percent:f}% of capacity{seats}"

    def allowed_occupancy(self, capacity: int) -> int:
        ceiling = (Decimal(capacity) * self.utilization_ceiling).to_integral_value(rounding=ROUND_FLOOR)
        return max(0, int(ceiling) - self.reserved_seats)

    def failure_reason(self, context: ReservationContext) -> Optional[str]:
        allowed = self.allowed_occupancy(context.resource.capacity)
        projected = context.projected_occupancy
        if projected <= allowed:
            return None
        return (
            f"Resource capacity exceeded for {context.resource.name}: "
            f"{projected} of {allowed} allowed (capacity {context.resource.capacity})"
        )


@dataclass(frozen=True)
class ValidReservationTimeSpecification(LeafSpecification):
    max_advance_days: int = 365
    min_lead_minutes: int = 30
    business_hours: Optional[tuple[int, int]] = None
    weekdays_only: bool = False

    def __post_init__(self) -> None:
        require_positive_int(self.max_advance_days, "max_advance_days")
        require_non_negative_int(self.min_lead_minutes, "min_lead_minutes")
        if self.business_hours is not None:
            earliest, latest = self.business_hours
            require_hour_window(earliest, latest)
            object.__setattr__(self, "business_hours", (earliest, latest))

    @property
    def description(self) -> str:
        parts = [f"Starts {self.min_lead_minutes}+ minutes ahead and within {self.max_advance_days} days"]
        if self.business_hours is not None:
            parts.append(f"between {self.business_hours[0]:02d}:00 and {self.business_hours[1]:02d}:00")
        if self.weekdays_only:
            parts.append("on weekdays")
        return " ".join(parts)

    def failure_reason(self, context: ReservationContext) -> Optional[str]:
        start = context.reservation_start
        problems = []
        if start < context.evaluated_at + timedelta(minutes=self.min_lead_minutes):
            problems.append(f"reservations must be made at least {self.min_lead_minutes} minutes in advance")
        if start > context.evaluated_at + timedelta(days=self.max_advance_days):
            problems.append(f"reservations cannot be made more than {self.max_advance_days} days ahead")
        if self.business_hours is not None:
            earliest, latest = self.business_hours
            if not earliest <= start.hour < latest:
                problems.append(f"start must fall between {earliest:02d}:00 and {latest:02d}:00")
        if self.weekdays_only and start.weekday() in WEEKEND:
            problems.append("reservations are only accepted on weekdays")
        if not problems:
            return None
        return "Invalid reservation time: " + ", ".join(problems)


# --- plan limit rules ---


@dataclass(frozen=True)
class SimultaneousReservationLimitSpecification(LeafSpecification):
    count_pending: bool = True
    buffer: int = 0

    def __post_init__(self) -> None:
        require_non_negative_int(self.buffer, "buffer")

    @classmethod
    def strict(cls) -> "SimultaneousReservationLimitSpecification":
        return cls(count_pending=True, buffer=1)

    @property
    def description(self) -> str:
        counted = "active and pending" if self.count_pending else "active"
        buffer = f" minus {self.buffer}" if self.buffer else ""
        return f"Concurrent {counted} reservations below plan limit{buffer}"

    def counted_reservations(self, context: ReservationContext) -> int:
        pending = context.pending_reservation_count if self.count_pending else 0
        return context.active_reservation_count + pending

    def failure_reason(self, context: ReservationContext) -> Optional[str]:
        plan = context.plan
        if plan is None:
            return f"Member {context.member.member_id} has no plan to set a reservation limit"
        limit = plan.max_simultaneous_reservations - self.buffer
        counted = self.counted_reservations(context)
        if counted < limit:
            return None
        return f"Simultaneous reservation limit reached: {counted} held, limit {max(limit, 0)}"


@dataclass(frozen=True)
class AdvanceReservationLimitSpecification(LeafSpecification):
    vip_bonus_days: int = 0
    allow_same_day: bool = True
    minimum_advance_hours: int = 0

    def __post_init__(self) -> None:
        require_non_negative_int(self.vip_bonus_days, "vip_bonus_days")
        require_non_negative_int(self.minimum_advance_hours, "minimum_advance_hours")

    @classmethod
    def strict(cls) -> "AdvanceReservationLimitSpecification":
        return cls(allow_same_day=False)

    @property
    def description(self) -> str:
        parts = ["Within plan advance-booking window"]
        if self.vip_bonus_days:
            parts.append(f"(+{self.vip_bonus_days} days for VIP)")
        if not self.allow_same_day:
            parts.append("excluding same-day bookings")
        if self.minimum_advance_hours:
            parts.append(f"at least {self.minimum_advance_hours} hours ahead")
        return " ".join(parts)

    def allowed_days(self, context: ReservationContext) -> int:
        plan = context.plan
        bonus = self.vip_bonus_days if plan is not None and plan.vip else 0
        return plan.max_advance_reservation_days + bonus if plan is not None else 0

    def failure_reason(self, context: ReservationContext) -> Optional[str]:
        if context.plan is None:
            return f"Member {context.member.member_id} has no plan to set an advance-booking window"
        days_ahead = context.days_until_start
        allowed = self.allowed_days(context)
        if days_ahead > allowed:
            return f"Advance booking limit exceeded: {days_ahead} days ahead, limit {allowed}"
        if not self.allow_same_day and days_ahead < 1:
            return "Same-day reservations are not accepted"
        if self.minimum_advance_hours and context.minutes_until_start < self.minimum_advance_hours * 60:
            return f"Reservations must be made at least {self.minimum_advance_hours} hours in advance"
        return None


# --- calendar restrictions ---


class RestrictionMode(str, Enum):
    ALLOW = "ALLOW"
    DENY = "DENY"


@dataclass(frozen=True)
class DayOfWeekSpecification(LeafSpecification):
    days: frozenset[int]
    mode: RestrictionMode = RestrictionMode.ALLOW

    def __post_init__(self) -> None:
        days = frozenset(self.days)
        if any(not 0 <= day <= 6 for day in days):
            raise ValueError("days must be weekday numbers between 0 (Monday) and 6 (Sunday)")
        object.__setattr__(self, "days", days)

    @property
    def description(self) -> str:
        names = ", ".join(WEEKDAY_NAMES[day] for day in sorted(self.days)) or "no days"
        verb = "on" if self.mode is RestrictionMode.ALLOW else "not on"
        return f"Starts {verb} {names}"

    def failure_reason(self, context: ReservationContext) -> Optional[str]:
        weekday = context.reservation_start.weekday()
        listed = weekday in self.days
        if listed == (self.mode is RestrictionMode.ALLOW):
            return None
        return f"Reservations are not accepted on {WEEKDAY_NAMES[weekday]}"


def weekend_restriction(allow_weekend: bool) -> DayOfWeekSpecification:
    if allow_weekend:
        return DayOfWeekSpecification(frozenset(range(7)))
    return DayOfWeekSpecification(WEEKEND, RestrictionMode.DENY)


def weekdays_only() -> DayOfWeekSpecification:
    return DayOfWeekSpecification(WEEKDAYS)


@dataclass(frozen=True)
class TimeOfDaySpecification(LeafSpecification):
    """Start-hour window; latest_hour above 24 wraps past midnight."""

    earliest_hour: int
    latest_hour: int
    mode: RestrictionMode = RestrictionMode.ALLOW

    def __post_init__(self) -> None:
        require_hour_window(self.earliest_hour, self.latest_hour, max_hour=30)

    @classmethod
    def business_hours(cls) -> "TimeOfDaySpecification":
        return cls(9, 18)

    @classmethod
    def operating_hours(cls) -> "TimeOfDaySpecification":
        return cls(9, 22)

    @classmethod
    def night_hours(cls) -> "TimeOfDaySpecification":
        return cls(18, 30)

    @classmethod
    def around_the_clock(cls) -> "TimeOfDaySpecification":
        return cls(0, 24)

    @property
    def description(self) -> str:
        verb = "inside" if self.mode is RestrictionMode.ALLOW else "outside"
        return f"Starts {verb} {self.earliest_hour:02d}:00-{self.latest_hour % 24:02d}:00"

    def covers_hour(self, hour: int) -> bool:
        if self.latest_hour <= 24:
            return self.earliest_hour <= hour < self.latest_hour
        return hour >= self.earliest_hour or hour < self.latest_hour - 24

    def failure_reason(self, context: ReservationContext) -> Optional[str]:
        hour = context.reservation_start.hour
        if self.covers_hour(hour) == (self.mode is RestrictionMode.ALLOW):
            return None
        return f"Start time {hour:02d}:00 is outside the allowed hours ({self.description})"
