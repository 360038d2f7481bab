"""Immutable context snapshots handed to eligibility, discount and cancellation rules."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from memberdesk.domain.constraints import require_non_negative_int, require_positive_int
from memberdesk.domain.models import Member, MembershipPlan, Resource, ResourceType
from memberdesk.domain.values import Money, TimeSlot


@dataclass(frozen=True)
class ReservationContext:
    """Point-in-time facts for one eligibility evaluation.

    Built fresh per request by the caller; occupancy and the clock move
    between calls, so a snapshot is never reused.
    """

    member: Member
    resource: Resource
    time_slot: TimeSlot
    evaluated_at: datetime
    active_reservation_count: int = 0
    pending_reservation_count: int = 0
    current_occupancy: int = 0
    party_size: int = 1

    def __post_init__(self) -> None:
        if self.member is None or self.resource is None or self.time_slot is None:
            raise ValueError("member, resource and time_slot are required")
        require_non_negative_int(self.active_reservation_count, "active_reservation_count")
        require_non_negative_int(self.pending_reservation_count, "pending_reservation_count")
        require_non_negative_int(self.current_occupancy, "current_occupancy")
        require_positive_int(self.party_size, "party_size")

    @property
    def plan(self) -> Optional[MembershipPlan]:
        return self.member.plan

    @property
    def resource_type(self) -> ResourceType:
        return self.resource.resource_type

    @property
    def reservation_start(self) -> datetime:
        return self.time_slot.start

    @property
    def reservation_date(self) -> date:
        return self.time_slot.start.date()

    @property
    def today(self) -> date:
        return self.evaluated_at.date()

    @property
    def minutes_until_start(self) -> float:
        return (self.time_slot.start - self.evaluated_at).total_seconds() / 60

    @property
    def days_until_start(self) -> int:
        return (self.reservation_date - self.today).days

    @property
    def projected_occupancy(self) -> int:
        return self.current_occupancy + self.party_size


@dataclass(frozen=True)
class DiscountContext:
    purchase_date: date
    member: Optional[Member] = None
    plan: Optional[MembershipPlan] = None
    coupon_code: Optional[str] = None
    resource_type: Optional[ResourceType] = None

    def __post_init__(self) -> None:
        if self.purchase_date is None:
            raise ValueError("purchase_date is required")
        if self.plan is None and self.member is not None:
            object.__setattr__(self, "plan", self.member.plan)
        if self.coupon_code is not None:
            code = self.coupon_code.strip()
            object.__setattr__(self, "coupon_code", code or None)

    @property
    def has_coupon(self) -> bool:
        return self.coupon_code is not None

    @property
    def member_id(self) -> Optional[str]:
        return self.member.member_id if self.member is not None else None


@dataclass(frozen=True)
class CancellationContext:
    reservation_start: datetime
    cancelled_at: datetime
    original_price: Money
    first_cancellation: bool = False
    emergency: bool = False

    @property
    def hours_until_start(self) -> float:
        return (self.reservation_start - self.cancelled_at).total_seconds() / 3600

    @property
    def is_after_start(self) -> bool:
        return self.cancelled_at >= self.reservation_start
