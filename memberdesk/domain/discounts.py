"""Leaf discount policies.

Every policy maps a price to a price that is never negative and never
higher than the input. A policy that does not apply returns the price
unchanged, so callers never need a "no policy" branch.
"""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Mapping, Optional

from memberdesk.domain.constraints import require_rate, require_text
from memberdesk.domain.context import DiscountContext
from memberdesk.domain.models import MemberStatus
from memberdesk.domain.values import DateRange, Money


DEFAULT_PRIORITY = 100
COUPON_PRIORITY = 10
SEASONAL_PRIORITY = 30
MEMBERSHIP_PRIORITY = 50
LOWEST_PRIORITY = sys.maxsize


class DiscountKind(str, Enum):
    RATE = "RATE"
    AMOUNT = "AMOUNT"
    OTHER = "OTHER"


@dataclass(frozen=True)
class DiscountAnalysis:
    original_price: Money
    final_price: Money
    strategy: Optional[str]
    applied_policies: tuple[str, ...]
    skipped_policies: tuple[str, ...]

    @property
    def total_discount(self) -> Money:
        return self.original_price.subtract(self.final_price)

    @property
    def discount_rate(self) -> Decimal:
        if self.original_price.is_zero():
            return Decimal("0")
        return self.total_discount.amount / self.original_price.amount

    def summary(self) -> str:
        percent = (self.discount_rate * 100).quantize(Decimal("0.1"))
        return (
            f"Discount analysis: {self.original_price} -> {self.final_price} "
            f"(discount {self.total_discount}, {percent}%)"
        )


class DiscountPolicy(ABC):
    """Price transformer with an applicability gate and a priority (lower wins)."""

    kind: ClassVar[DiscountKind] = DiscountKind.OTHER
    description: str
    priority: int

    @abstractmethod
    def is_applicable(self, context: DiscountContext) -> bool:
        raise NotImplementedError

    @abstractmethod
    def _discounted(self, price: Money, context: DiscountContext) -> Money:
        """Return the discounted price; only called when the policy applies."""
        raise NotImplementedError

    def apply_discount(self, price: Money, context: DiscountContext) -> Money:
        if not self.is_applicable(context):
            return price
        discounted = self._discounted(price, context)
        return discounted if discounted <= price else price

    def discount_for(self, price: Money, context: DiscountContext) -> Money:
        return price.subtract(self.apply_discount(price, context))

    def analyze(self, price: Money, context: DiscountContext) -> DiscountAnalysis:
        applicable = self.is_applicable(context)
        return DiscountAnalysis(
            original_price=price,
            final_price=self.apply_discount(price, context),
            strategy=None,
            applied_policies=(self.description,) if applicable else (),
            skipped_policies=() if applicable else (self.description,),
        )


def _validate_common(policy: DiscountPolicy) -> None:
    require_text(policy.description, "description")
    if isinstance(policy.priority, bool) or not isinstance(policy.priority, int):
        raise ValueError("priority must be an integer")


def _require_positive_money(value: Money, field_name: str) -> None:
    if not isinstance(value, Money) or not value.is_positive():
        raise ValueError(f"{field_name} must be a positive Money amount")


def _require_optional_money(value: Optional[Money], field_name: str) -> None:
    if value is not None:
        _require_positive_money(value, field_name)


def _below_minimum(price: Money, minimum_purchase: Optional[Money]) -> bool:
    return minimum_purchase is not None and price < minimum_purchase


def _apply_rate(price: Money, rate: Decimal, maximum_discount: Optional[Money] = None) -> Money:
    discount = price.multiply(rate)
    if maximum_discount is not None and discount > maximum_discount:
        discount = maximum_discount
    return price.subtract_or_zero(discount)


@dataclass(frozen=True)
class RateDiscountPolicy(DiscountPolicy):
    kind: ClassVar[DiscountKind] = DiscountKind.RATE

    rate: Decimal
    description: str
    minimum_purchase: Optional[Money] = None
    maximum_discount: Optional[Money] = None
    priority: int = DEFAULT_PRIORITY

    def __post_init__(self) -> None:
        object.__setattr__(self, "rate", require_rate(self.rate))
        _validate_common(self)
        _require_optional_money(self.minimum_purchase, "minimum_purchase")
        _require_optional_money(self.maximum_discount, "maximum_discount")

    def is_applicable(self, context: DiscountContext) -> bool:
        return self.rate > 0

    def _discounted(self, price: Money, context: DiscountContext) -> Money:
        if _below_minimum(price, self.minimum_purchase):
            return price
        return _apply_rate(price, self.rate, self.maximum_discount)


@dataclass(frozen=True)
class AmountDiscountPolicy(DiscountPolicy):
    kind: ClassVar[DiscountKind] = DiscountKind.AMOUNT

    amount: Money
    description: str
    minimum_purchase: Optional[Money] = None
    priority: int = DEFAULT_PRIORITY

    def __post_init__(self) -> None:
        _require_positive_money(self.amount, "amount")
        _require_optional_money(self.minimum_purchase, "minimum_purchase")
        _validate_common(self)

    def is_applicable(self, context: DiscountContext) -> bool:
        return True

    def _discounted(self, price: Money, context: DiscountContext) -> Money:
        if _below_minimum(price, self.minimum_purchase):
            return price
        return price.subtract_or_zero(self.amount)


@dataclass(frozen=True)
class CouponDiscountPolicy(DiscountPolicy):
    code: str
    valid_period: DateRange
    description: str
    rate: Optional[Decimal] = None
    amount: Optional[Money] = None
    minimum_purchase: Optional[Money] = None
    target_member_ids: Optional[frozenset[str]] = None
    priority: int = COUPON_PRIORITY

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", require_text(self.code, "code").upper())
        if self.valid_period is None:
            raise ValueError("valid_period is required")
        if (self.rate is None) == (self.amount is None):
            raise ValueError("a coupon needs exactly one of rate or amount")
        if self.rate is not None:
            object.__setattr__(self, "rate", require_rate(self.rate))
        else:
            _require_positive_money(self.amount, "amount")
        _require_optional_money(self.minimum_purchase, "minimum_purchase")
        if self.target_member_ids is not None:
            object.__setattr__(self, "target_member_ids", frozenset(self.target_member_ids))
        _validate_common(self)

    def matches(self, code: Optional[str]) -> bool:
        return code is not None and code.strip().upper() == self.code

    def is_valid_on(self, on: date) -> bool:
        return self.valid_period.contains(on)

    def is_applicable(self, context: DiscountContext) -> bool:
        if not context.has_coupon or not self.matches(context.coupon_code):
            return False
        if not self.is_valid_on(context.purchase_date):
            return False
        return self.target_member_ids is None or context.member_id in self.target_member_ids

    def _discounted(self, price: Money, context: DiscountContext) -> Money:
        if _below_minimum(price, self.minimum_purchase):
            return price
        if self.rate is not None:
            return _apply_rate(price, self.rate)
        return price.subtract_or_zero(self.amount)


class SeasonalPeriod(str, Enum):
    SPRING = "SPRING"
    SUMMER = "SUMMER"
    AUTUMN = "AUTUMN"
    WINTER = "WINTER"
    HOLIDAY_SEASON = "HOLIDAY_SEASON"
    BACK_TO_SCHOOL = "BACK_TO_SCHOOL"
    SUMMER_VACATION = "SUMMER_VACATION"
    OFF_SEASON = "OFF_SEASON"


@dataclass(frozen=True)
class SeasonalWindow:
    """Inclusive (month, day) window that may wrap over New Year."""

    start: tuple[int, int]
    end: tuple[int, int]

    def __post_init__(self) -> None:
        for month, day in (self.start, self.end):
            # validates the pair against a leap year so Feb 29 is accepted
            date(2024, month, day)

    def contains(self, on: date) -> bool:
        key = (on.month, on.day)
        if self.start <= self.end:
            return self.start <= key <= self.end
        return key >= self.start or key <= self.end


DEFAULT_OVERRIDE_WINDOWS: tuple[tuple[SeasonalPeriod, SeasonalWindow], ...] = (
    (SeasonalPeriod.HOLIDAY_SEASON, SeasonalWindow((12, 20), (1, 10))),
    (SeasonalPeriod.BACK_TO_SCHOOL, SeasonalWindow((2, 25), (3, 10))),
    (SeasonalPeriod.SUMMER_VACATION, SeasonalWindow((7, 25), (8, 31))),
    (SeasonalPeriod.OFF_SEASON, SeasonalWindow((11, 1), (11, 30))),
)

SEASON_BY_MONTH: dict[int, SeasonalPeriod] = {
    3: SeasonalPeriod.SPRING,
    4: SeasonalPeriod.SPRING,
    5: SeasonalPeriod.SPRING,
    6: SeasonalPeriod.SUMMER,
    7: SeasonalPeriod.SUMMER,
    8: SeasonalPeriod.SUMMER,
    9: SeasonalPeriod.AUTUMN,
    10: SeasonalPeriod.AUTUMN,
    11: SeasonalPeriod.AUTUMN,
    12: SeasonalPeriod.WINTER,
    1: SeasonalPeriod.WINTER,
    2: SeasonalPeriod.WINTER,
}


@dataclass(frozen=True)
class SeasonalRule:
    rate: Optional[Decimal] = None
    amount: Optional[Money] = None
    minimum_purchase: Optional[Money] = None

    def __post_init__(self) -> None:
        if (self.rate is None) == (self.amount is None):
            raise ValueError("a seasonal rule needs exactly one of rate or amount")
        if self.rate is not None:
            object.__setattr__(self, "rate", require_rate(self.rate))
        else:
            _require_positive_money(self.amount, "amount")
        _require_optional_money(self.minimum_purchase, "minimum_purchase")

    def apply(self, price: Money) -> Money:
        if _below_minimum(price, self.minimum_purchase):
            return price
        if self.rate is not None:
            return _apply_rate(price, self.rate)
        return price.subtract_or_zero(self.amount)


@dataclass(frozen=True, eq=False)
class SeasonalDiscountPolicy(DiscountPolicy):
    rules: Mapping[SeasonalPeriod, SeasonalRule]
    description: str
    priority: int = SEASONAL_PRIORITY
    override_windows: tuple[tuple[SeasonalPeriod, SeasonalWindow], ...] = DEFAULT_OVERRIDE_WINDOWS

    def __post_init__(self) -> None:
        if not self.rules:
            raise ValueError("at least one seasonal rule is required")
        object.__setattr__(self, "rules", dict(self.rules))
        _validate_common(self)

    @classmethod
    def summer_special(cls) -> "SeasonalDiscountPolicy":
        return cls(
            {
                SeasonalPeriod.SUMMER: SeasonalRule(rate=Decimal("0.15")),
                SeasonalPeriod.SUMMER_VACATION: SeasonalRule(rate=Decimal("0.20")),
            },
            "Summer special",
        )

    @classmethod
    def winter_warmup(cls) -> "SeasonalDiscountPolicy":
        return cls(
            {
                SeasonalPeriod.WINTER: SeasonalRule(rate=Decimal("0.10")),
                SeasonalPeriod.HOLIDAY_SEASON: SeasonalRule(rate=Decimal("0.15")),
            },
            "Winter warm-up",
        )

    @classmethod
    def holiday_special(cls) -> "SeasonalDiscountPolicy":
        return cls(
            {SeasonalPeriod.HOLIDAY_SEASON: SeasonalRule(rate=Decimal("0.25"))},
            "Holiday special",
            priority=COUPON_PRIORITY,
        )

    def resolve_period(self, on: date) -> Optional[SeasonalPeriod]:
        """Return the configured period for a date; override windows win over seasons."""
        for period, window in self.override_windows:
            if period in self.rules and window.contains(on):
                return period
        season = SEASON_BY_MONTH[on.month]
        return season if season in self.rules else None

    def is_applicable(self, context: DiscountContext) -> bool:
        return self.resolve_period(context.purchase_date) is not None

    def _discounted(self, price: Money, context: DiscountContext) -> Money:
        return self.rules[self.resolve_period(context.purchase_date)].apply(price)


@dataclass(frozen=True)
class MembershipDiscountPolicy(DiscountPolicy):
    description: str = "Membership plan discount"
    priority: int = MEMBERSHIP_PRIORITY

    def __post_init__(self) -> None:
        _validate_common(self)

    def is_applicable(self, context: DiscountContext) -> bool:
        member = context.member
        plan = context.plan
        if member is None or member.status is not MemberStatus.ACTIVE:
            return False
        return plan is not None and plan.active and plan.discount_rate > 0

    def _discounted(self, price: Money, context: DiscountContext) -> Money:
        return _apply_rate(price, context.plan.discount_rate)


@dataclass(frozen=True)
class NoDiscountPolicy(DiscountPolicy):
    description: str = "No discount"
    priority: int = LOWEST_PRIORITY

    def __post_init__(self) -> None:
        _validate_common(self)

    def is_applicable(self, context: DiscountContext) -> bool:
        return True

    def _discounted(self, price: Money, context: DiscountContext) -> Money:
        return price


NO_DISCOUNT = NoDiscountPolicy()
