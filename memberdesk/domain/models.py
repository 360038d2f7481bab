"""Domain models for memberships, resources and reservations.

Entities are frozen; every state change returns a new instance so rule
evaluation can never observe a half-applied mutation.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from memberdesk.domain.constraints import (
    require_email,
    require_non_negative_int,
    require_phone,
    require_positive_int,
    require_rate,
    require_text,
)
from memberdesk.domain.values import DateRange, Money, TimeSlot


NO_SHOW_GRACE = timedelta(minutes=15)
MODIFICATION_CUTOFF = timedelta(minutes=60)
DEFAULT_AUTO_CANCEL_AFTER = timedelta(hours=24)


class InvalidStateTransitionError(Exception):
    """Raised when an entity is asked to move to a status it cannot reach."""


class MemberStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    WITHDRAWN = "WITHDRAWN"

    def can_transition_to(self, target: "MemberStatus") -> bool:
        return target in _MEMBER_TRANSITIONS[self]


_MEMBER_TRANSITIONS: dict[MemberStatus, frozenset[MemberStatus]] = {
    MemberStatus.ACTIVE: frozenset({MemberStatus.SUSPENDED, MemberStatus.WITHDRAWN}),
    MemberStatus.SUSPENDED: frozenset({MemberStatus.ACTIVE, MemberStatus.WITHDRAWN}),
    MemberStatus.WITHDRAWN: frozenset(),
}


class ReservationStatus(str, Enum):
    REQUESTED = "REQUESTED"
    CONFIRMED = "CONFIRMED"
    IN_USE = "IN_USE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_active(self) -> bool:
        return self in (ReservationStatus.CONFIRMED, ReservationStatus.IN_USE)

    @property
    def is_pending(self) -> bool:
        return self is ReservationStatus.REQUESTED

    @property
    def is_final(self) -> bool:
        return self in (ReservationStatus.COMPLETED, ReservationStatus.CANCELLED)

    def can_transition_to(self, target: "ReservationStatus") -> bool:
        return target in _RESERVATION_TRANSITIONS[self]


_RESERVATION_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.REQUESTED: frozenset({ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED}),
    ReservationStatus.CONFIRMED: frozenset({ReservationStatus.IN_USE, ReservationStatus.CANCELLED}),
    ReservationStatus.IN_USE: frozenset({ReservationStatus.COMPLETED}),
    ReservationStatus.COMPLETED: frozenset(),
    ReservationStatus.CANCELLED: frozenset(),
}


class PlanType(str, Enum):
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"
    PERIOD = "PERIOD"

    def is_valid_duration(self, days: int) -> bool:
        if self is PlanType.MONTHLY:
            return 28 <= days <= 31
        if self is PlanType.YEARLY:
            return 365 <= days <= 366
        return days >= 1


class ResourceType(str, Enum):
    GYM = "GYM"
    POOL = "POOL"
    SAUNA = "SAUNA"
    STUDY_ROOM = "STUDY_ROOM"
    MEETING_ROOM = "MEETING_ROOM"
    OFFICE_DESK = "OFFICE_DESK"
    TENNIS_COURT = "TENNIS_COURT"
    BADMINTON_COURT = "BADMINTON_COURT"
    BASKETBALL_COURT = "BASKETBALL_COURT"
    CLASS_ROOM = "CLASS_ROOM"
    SEMINAR_ROOM = "SEMINAR_ROOM"
    PARKING_SPACE = "PARKING_SPACE"

    @property
    def is_fitness(self) -> bool:
        return self in (ResourceType.GYM, ResourceType.POOL, ResourceType.SAUNA)

    @property
    def is_workspace(self) -> bool:
        return self in (ResourceType.STUDY_ROOM, ResourceType.MEETING_ROOM, ResourceType.OFFICE_DESK)

    @property
    def is_sports(self) -> bool:
        return self in (
            ResourceType.TENNIS_COURT,
            ResourceType.BADMINTON_COURT,
            ResourceType.BASKETBALL_COURT,
        )

    @property
    def is_education(self) -> bool:
        return self in (ResourceType.CLASS_ROOM, ResourceType.SEMINAR_ROOM)


@dataclass(frozen=True)
class MembershipPlan:
    plan_id: str
    name: str
    plan_type: PlanType
    price: Money
    duration_days: int
    allowed_resource_types: frozenset[ResourceType]
    max_simultaneous_reservations: int = 3
    max_advance_reservation_days: int = 30
    discount_rate: Decimal = Decimal("0")
    vip: bool = False
    active: bool = True

    def __post_init__(self) -> None:
        require_text(self.plan_id, "plan_id")
        require_text(self.name, "name")
        require_positive_int(self.duration_days, "duration_days")
        if not self.plan_type.is_valid_duration(self.duration_days):
            raise ValueError(
                f"duration_days={self.duration_days} is not valid for {self.plan_type.value} plans"
            )
        if not self.allowed_resource_types:
            raise ValueError("allowed_resource_types must not be empty")
        object.__setattr__(self, "allowed_resource_types", frozenset(self.allowed_resource_types))
        require_positive_int(self.max_simultaneous_reservations, "max_simultaneous_reservations")
        require_positive_int(self.max_advance_reservation_days, "max_advance_reservation_days")
        if self.max_advance_reservation_days > self.duration_days * 3:
            raise ValueError("max_advance_reservation_days must not exceed 3x duration_days")
        object.__setattr__(self, "discount_rate", require_rate(self.discount_rate, "discount_rate"))

    @classmethod
    def basic_monthly(cls, plan_id: str = "BASIC_MONTHLY") -> "MembershipPlan":
        return cls(
            plan_id=plan_id,
            name="Basic Monthly",
            plan_type=PlanType.MONTHLY,
            price=Money.won(50000),
            duration_days=30,
            allowed_resource_types=frozenset({ResourceType.GYM, ResourceType.STUDY_ROOM}),
        )

    @classmethod
    def premium_monthly(cls, plan_id: str = "PREMIUM_MONTHLY") -> "MembershipPlan":
        return cls(
            plan_id=plan_id,
            name="Premium Monthly",
            plan_type=PlanType.MONTHLY,
            price=Money.won(100000),
            duration_days=30,
            allowed_resource_types=frozenset(
                {ResourceType.GYM, ResourceType.POOL, ResourceType.SAUNA, ResourceType.STUDY_ROOM}
            ),
            max_simultaneous_reservations=5,
            max_advance_reservation_days=45,
            discount_rate=Decimal("0.10"),
            vip=True,
        )

    @classmethod
    def vip_yearly(cls, plan_id: str = "VIP_YEARLY") -> "MembershipPlan":
        return cls(
            plan_id=plan_id,
            name="VIP Yearly",
            plan_type=PlanType.YEARLY,
            price=Money.won(1000000),
            duration_days=365,
            allowed_resource_types=frozenset(ResourceType),
            max_simultaneous_reservations=10,
            max_advance_reservation_days=90,
            discount_rate=Decimal("0.20"),
            vip=True,
        )

    def has_privilege(self, resource_type: ResourceType) -> bool:
        return self.active and resource_type in self.allowed_resource_types

    def discounted_price(self) -> Money:
        return self.price.multiply(Decimal("1") - self.discount_rate)

    def pro_rated_price(self, remaining_days: int) -> Money:
        require_non_negative_int(remaining_days, "remaining_days")
        if remaining_days >= self.duration_days:
            return self.price
        return self.price.multiply(remaining_days).divide(self.duration_days)

    def deactivate(self) -> "MembershipPlan":
        return replace(self, active=False)

    def activate(self) -> "MembershipPlan":
        return replace(self, active=True)


@dataclass(frozen=True)
class Member:
    member_id: str
    name: str
    email: str
    phone: str
    status: MemberStatus = MemberStatus.ACTIVE
    plan: Optional[MembershipPlan] = None
    membership_period: Optional[DateRange] = None
    suspension_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        require_text(self.member_id, "member_id")
        require_text(self.name, "name")
        require_email(self.email)
        require_phone(self.phone)

    def _transition(self, target: MemberStatus, **changes) -> "Member":
        if not self.status.can_transition_to(target):
            raise InvalidStateTransitionError(
                f"member {self.member_id} cannot move from {self.status.value} to {target.value}"
            )
        return replace(self, status=target, **changes)

    def assign_membership(self, plan: MembershipPlan, period: DateRange) -> "Member":
        if self.status is MemberStatus.WITHDRAWN:
            raise InvalidStateTransitionError(f"withdrawn member {self.member_id} cannot hold a membership")
        if not plan.active:
            raise ValueError(f"plan {plan.plan_id} is not active")
        return replace(self, plan=plan, membership_period=period)

    def suspend(self, reason: str) -> "Member":
        return self._transition(MemberStatus.SUSPENDED, suspension_reason=require_text(reason, "reason"))

    def activate(self) -> "Member":
        return self._transition(MemberStatus.ACTIVE, suspension_reason=None)

    def withdraw(self) -> "Member":
        return self._transition(MemberStatus.WITHDRAWN)

    def is_membership_expired(self, today: date) -> bool:
        return self.membership_period is None or self.membership_period.is_past(today)

    def has_active_membership(self, today: date) -> bool:
        return (
            self.status is MemberStatus.ACTIVE
            and self.plan is not None
            and self.plan.active
            and self.membership_period is not None
            and self.membership_period.contains(today)
        )

    def days_since_expiry(self, today: date) -> int:
        if self.membership_period is None or not self.membership_period.is_past(today):
            return 0
        return (today - self.membership_period.end).days

    def remaining_membership_days(self, today: date) -> int:
        if not self.has_active_membership(today):
            return 0
        return (self.membership_period.end - today).days + 1

    def can_reserve(self, resource_type: ResourceType, on_date: date, today: date) -> bool:
        return (
            self.has_active_membership(today)
            and self.plan.has_privilege(resource_type)
            and self.membership_period.contains(on_date)
        )


@dataclass(frozen=True)
class OperatingWindow:
    weekday: int
    opens: time
    closes: time

    def __post_init__(self) -> None:
        if not 0 <= self.weekday <= 6:
            raise ValueError("weekday must be between 0 (Monday) and 6 (Sunday)")
        # closes == 00:00 means the window runs until midnight
        if self.closes != time(0) and self.opens >= self.closes:
            raise ValueError("opens must be before closes")

    def covers(self, slot: TimeSlot) -> bool:
        day = slot.start.date()
        if day.weekday() != self.weekday:
            return False
        opening = datetime.combine(day, self.opens, tzinfo=slot.start.tzinfo)
        closing = datetime.combine(day, self.closes, tzinfo=slot.start.tzinfo)
        if self.closes == time(0):
            closing += timedelta(days=1)
        return opening <= slot.start and slot.end <= closing


def daily_windows(opens: time, closes: time, weekdays: Iterable[int] = range(7)) -> tuple[OperatingWindow, ...]:
    return tuple(OperatingWindow(day, opens, closes) for day in weekdays)


@dataclass(frozen=True)
class Resource:
    resource_id: str
    name: str
    resource_type: ResourceType
    capacity: int
    hourly_rate: Money
    location: str = ""
    operating_hours: tuple[OperatingWindow, ...] = ()
    features: frozenset[str] = frozenset()
    active: bool = True

    def __post_init__(self) -> None:
        require_text(self.resource_id, "resource_id")
        require_text(self.name, "name")
        require_positive_int(self.capacity, "capacity")
        object.__setattr__(self, "operating_hours", tuple(self.operating_hours))
        object.__setattr__(self, "features", frozenset(self.features))

    def is_open_during(self, slot: TimeSlot) -> bool:
        if not self.active:
            return False
        if not self.operating_hours:
            return True
        return any(window.covers(slot) for window in self.operating_hours)

    def has_feature(self, feature: str) -> bool:
        return feature in self.features

    def deactivate(self) -> "Resource":
        return replace(self, active=False)

    def activate(self) -> "Resource":
        return replace(self, active=True)


@dataclass(frozen=True)
class StatusChange:
    from_status: Optional[ReservationStatus]
    to_status: ReservationStatus
    changed_at: datetime
    reason: str = ""


@dataclass(frozen=True)
class Reservation:
    reservation_id: str
    member_id: str
    resource_id: str
    time_slot: TimeSlot
    created_at: datetime
    status: ReservationStatus = ReservationStatus.REQUESTED
    price: Optional[Money] = None
    party_size: int = 1
    notes: str = ""
    cancellation_reason: Optional[str] = None
    payment_reference: Optional[str] = None
    history: tuple[StatusChange, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        require_text(self.reservation_id, "reservation_id")
        require_text(self.member_id, "member_id")
        require_text(self.resource_id, "resource_id")
        require_positive_int(self.party_size, "party_size")
        if not self.history:
            initial = StatusChange(None, self.status, self.created_at, "created")
            object.__setattr__(self, "history", (initial,))

    def _transition(self, target: ReservationStatus, at: datetime, reason: str = "", **changes) -> "Reservation":
        if not self.status.can_transition_to(target):
            raise InvalidStateTransitionError(
                f"reservation {self.reservation_id} cannot move from {self.status.value} to {target.value}"
            )
        change = StatusChange(self.status, target, at, reason)
        return replace(self, status=target, history=self.history + (change,), **changes)

    def confirm(self, at: datetime) -> "Reservation":
        return self._transition(ReservationStatus.CONFIRMED, at, "confirmed")

    def start_use(self, at: datetime) -> "Reservation":
        return self._transition(ReservationStatus.IN_USE, at, "check-in")

    def complete(self, at: datetime) -> "Reservation":
        return self._transition(ReservationStatus.COMPLETED, at, "completed")

    def cancel(self, reason: str, at: datetime) -> "Reservation":
        reason = require_text(reason, "reason")
        return self._transition(ReservationStatus.CANCELLED, at, reason, cancellation_reason=reason)

    def should_auto_cancel(self, now: datetime, after: timedelta = DEFAULT_AUTO_CANCEL_AFTER) -> bool:
        return self.status is ReservationStatus.REQUESTED and now - self.created_at >= after

    def auto_cancel(self, now: datetime, after: timedelta = DEFAULT_AUTO_CANCEL_AFTER) -> "Reservation":
        if not self.should_auto_cancel(now, after):
            raise InvalidStateTransitionError(
                f"reservation {self.reservation_id} is not eligible for automatic cancellation"
            )
        return self.cancel("not confirmed in time", now)

    def with_price(self, price: Money) -> "Reservation":
        return replace(self, price=price)

    def conflicts_with(self, other: "Reservation") -> bool:
        return (
            self.reservation_id != other.reservation_id
            and self.resource_id == other.resource_id
            and not self.status.is_final
            and not other.status.is_final
            and self.time_slot.overlaps(other.time_slot)
        )

    def is_no_show(self, now: datetime) -> bool:
        return self.status is ReservationStatus.CONFIRMED and now > self.time_slot.start + NO_SHOW_GRACE

    def is_modifiable(self, now: datetime) -> bool:
        return not self.status.is_final and self.time_slot.start - now > MODIFICATION_CUTOFF

    def reschedule(self, slot: TimeSlot, at: datetime) -> "Reservation":
        if not self.is_modifiable(at):
            raise InvalidStateTransitionError(
                f"reservation {self.reservation_id} can no longer be modified"
            )
        change = StatusChange(self.status, self.status, at, f"rescheduled to {slot}")
        return replace(self, time_slot=slot, history=self.history + (change,))
