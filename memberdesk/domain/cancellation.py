"""Cancellation fee policies driven by hours remaining before the booking."""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional, Sequence

from memberdesk.domain.context import CancellationContext
from memberdesk.domain.values import Money


FULL_FEE = Decimal("1")
NO_FEE = Decimal("0")

# (hours before start, fee rate): the first tier whose threshold is not reached applies
FeeTiers = Sequence[tuple[float, Decimal]]

STANDARD_TIERS: FeeTiers = (
    (2, Decimal("0.80")),
    (6, Decimal("0.50")),
    (24, Decimal("0.20")),
)
FLEXIBLE_TIERS: FeeTiers = (
    (2, Decimal("0.60")),
    (6, Decimal("0.30")),
    (24, Decimal("0.10")),
)
FLEXIBLE_FIRST_TIME_TIERS: FeeTiers = ((2, Decimal("0.10")),)
STRICT_TIERS: FeeTiers = (
    (6, Decimal("0.90")),
    (24, Decimal("0.60")),
    (48, Decimal("0.30")),
)


def tiered_fee_rate(hours_until_start: float, tiers: FeeTiers) -> Decimal:
    for threshold, rate in tiers:
        if hours_until_start < threshold:
            return rate
    return NO_FEE


class CancellationPolicy(ABC):
    name: str = "cancellation"
    description: str = ""

    @abstractmethod
    def fee_rate(self, context: CancellationContext) -> Decimal:
        raise NotImplementedError

    def denial_reason(self, context: CancellationContext) -> Optional[str]:
        return None

    def can_cancel(self, context: CancellationContext) -> bool:
        return self.denial_reason(context) is None

    def calculate_fee(self, context: CancellationContext) -> Money:
        if not self.can_cancel(context):
            return context.original_price
        return context.original_price.multiply(self.fee_rate(context))

    def calculate_refund(self, context: CancellationContext) -> Money:
        return context.original_price.subtract(self.calculate_fee(context))

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class StandardCancellationPolicy(CancellationPolicy):
    name = "standard"
    description = "Free until 24 hours before start, then tiered fees"

    def fee_rate(self, context: CancellationContext) -> Decimal:
        if context.is_after_start:
            return FULL_FEE
        return tiered_fee_rate(context.hours_until_start, STANDARD_TIERS)


class FlexibleCancellationPolicy(CancellationPolicy):
    name = "flexible"
    description = "Lower fees, and first-time cancellers are free until 2 hours before start"

    def fee_rate(self, context: CancellationContext) -> Decimal:
        if context.is_after_start:
            return FULL_FEE
        tiers = FLEXIBLE_FIRST_TIME_TIERS if context.first_cancellation else FLEXIBLE_TIERS
        return tiered_fee_rate(context.hours_until_start, tiers)


class StrictCancellationPolicy(CancellationPolicy):
    name = "strict"
    description = "High fees; no cancellation within 6 hours of start"

    minimum_notice_hours = 6

    def fee_rate(self, context: CancellationContext) -> Decimal:
        if context.is_after_start:
            return FULL_FEE
        return tiered_fee_rate(context.hours_until_start, STRICT_TIERS)

    def denial_reason(self, context: CancellationContext) -> Optional[str]:
        if context.is_after_start:
            return "The reservation has already started"
        if context.hours_until_start < self.minimum_notice_hours:
            return f"Cancellations close {self.minimum_notice_hours} hours before start"
        return None


class NoCancellationPolicy(CancellationPolicy):
    name = "none"

    emergency_notice_hours = 24

    def __init__(self, allow_emergency: bool = False) -> None:
        self.allow_emergency = allow_emergency
        if allow_emergency:
            self.description = "Non-cancellable except emergencies 24 hours before start"
        else:
            self.description = "Non-cancellable"

    def fee_rate(self, context: CancellationContext) -> Decimal:
        # emergency cancellation frees the slot but is not refunded
        return FULL_FEE

    def denial_reason(self, context: CancellationContext) -> Optional[str]:
        if self.allow_emergency and context.emergency:
            if context.hours_until_start >= self.emergency_notice_hours:
                return None
            return f"Emergency cancellations close {self.emergency_notice_hours} hours before start"
        return "This reservation cannot be cancelled"

    def __repr__(self) -> str:
        return f"NoCancellationPolicy(allow_emergency={self.allow_emergency})"


CANCELLATION_POLICIES = {
    "standard": StandardCancellationPolicy,
    "flexible": FlexibleCancellationPolicy,
    "strict": StrictCancellationPolicy,
    "none": NoCancellationPolicy,
}


def cancellation_policy_for(name: str) -> CancellationPolicy:
    try:
        return CANCELLATION_POLICIES[name.strip().lower()]()
    except KeyError as exc:
        raise ValueError(f"unknown cancellation policy: {name}") from exc
