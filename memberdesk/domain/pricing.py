"""Discount composition strategies and the composite discount policy.

Strategies are plain functions over (price, context, policies) looked up by
enum in STRATEGIES, so adding a leaf policy never touches combinator code.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence

from memberdesk.domain.constraints import require_text
from memberdesk.domain.context import DiscountContext
from memberdesk.domain.discounts import (
    AmountDiscountPolicy,
    CouponDiscountPolicy,
    DiscountAnalysis,
    DiscountKind,
    DiscountPolicy,
    MembershipDiscountPolicy,
    RateDiscountPolicy,
)
from memberdesk.domain.values import Money, min_of


class CombinationStrategy(str, Enum):
    SEQUENTIAL = "SEQUENTIAL"
    BEST_SINGLE = "BEST_SINGLE"
    PRIORITY_FIRST = "PRIORITY_FIRST"
    SMART_COMBINATION = "SMART_COMBINATION"


StrategyFunction = Callable[[Money, DiscountContext, Sequence[DiscountPolicy]], Money]


def _applicable(policies: Iterable[DiscountPolicy], context: DiscountContext) -> list[DiscountPolicy]:
    return [policy for policy in policies if policy.is_applicable(context)]


def apply_sequential(price: Money, context: DiscountContext, policies: Sequence[DiscountPolicy]) -> Money:
    current = price
    for policy in _applicable(policies, context):
        current = policy.apply_discount(current, context)
    return current


def apply_best_single(price: Money, context: DiscountContext, policies: Sequence[DiscountPolicy]) -> Money:
    best_price = price
    best_discount = Money.zero(price.currency)
    for policy in _applicable(policies, context):
        candidate = policy.apply_discount(price, context)
        discount = price.subtract(candidate)
        # strict comparison keeps the first-listed policy on ties
        if discount > best_discount:
            best_price, best_discount = candidate, discount
    return best_price


def apply_priority_first(price: Money, context: DiscountContext, policies: Sequence[DiscountPolicy]) -> Money:
    candidates = _applicable(policies, context)
    if not candidates:
        return price
    # min() returns the first of equal keys, so ties go to list order
    chosen = min(candidates, key=lambda policy: policy.priority)
    return chosen.apply_discount(price, context)


def apply_smart_combination(price: Money, context: DiscountContext, policies: Sequence[DiscountPolicy]) -> Money:
    """Stack OTHER policies, then keep the better of best-rate and best-amount.

    The rate result must beat the amount result strictly to be chosen.
    """
    applicable = _applicable(policies, context)
    rate_policies = [policy for policy in applicable if policy.kind is DiscountKind.RATE]
    amount_policies = [policy for policy in applicable if policy.kind is DiscountKind.AMOUNT]
    other_policies = [policy for policy in applicable if policy.kind is DiscountKind.OTHER]

    current = apply_sequential(price, context, other_policies)
    best_rate = apply_best_single(current, context, rate_policies)
    best_amount = apply_best_single(current, context, amount_policies)
    if current.subtract(best_rate) > current.subtract(best_amount):
        return best_rate
    return best_amount


STRATEGIES: dict[CombinationStrategy, StrategyFunction] = {
    CombinationStrategy.SEQUENTIAL: apply_sequential,
    CombinationStrategy.BEST_SINGLE: apply_best_single,
    CombinationStrategy.PRIORITY_FIRST: apply_priority_first,
    CombinationStrategy.SMART_COMBINATION: apply_smart_combination,
}


class CompositeDiscountPolicy(DiscountPolicy):
    """Runs child policies through a strategy, then applies cap and floor."""

    def __init__(
        self,
        policies: Sequence[DiscountPolicy],
        strategy: CombinationStrategy,
        description: str,
        *,
        maximum_total_discount: Optional[Money] = None,
        minimum_final_amount: Optional[Money] = None,
    ) -> None:
        self.policies: tuple[DiscountPolicy, ...] = tuple(policies)
        if not self.policies:
            raise ValueError("a composite discount policy needs at least one policy")
        if any(not isinstance(policy, DiscountPolicy) for policy in self.policies):
            raise ValueError("policies must be DiscountPolicy instances")
        self.strategy = CombinationStrategy(strategy)
        self.description = require_text(description, "description")
        if maximum_total_discount is not None and (
            not isinstance(maximum_total_discount, Money) or not maximum_total_discount.is_positive()
        ):
            raise ValueError("maximum_total_discount must be a positive Money amount")
        if minimum_final_amount is not None and not isinstance(minimum_final_amount, Money):
            raise ValueError("minimum_final_amount must be a Money amount")
        if (
            maximum_total_discount is not None
            and minimum_final_amount is not None
            and maximum_total_discount.currency != minimum_final_amount.currency
        ):
            raise ValueError("maximum_total_discount and minimum_final_amount must share a currency")
        self.maximum_total_discount = maximum_total_discount
        self.minimum_final_amount = minimum_final_amount
        self.priority = min(policy.priority for policy in self.policies)

    def is_applicable(self, context: DiscountContext) -> bool:
        return any(policy.is_applicable(context) for policy in self.policies)

    def _discounted(self, price: Money, context: DiscountContext) -> Money:
        candidate = STRATEGIES[self.strategy](price, context, self.policies)
        return self._apply_constraints(price, candidate)

    def _apply_constraints(self, original: Money, candidate: Money) -> Money:
        if self.maximum_total_discount is not None:
            if original.subtract(candidate) > self.maximum_total_discount:
                candidate = original.subtract(self.maximum_total_discount)
        if self.minimum_final_amount is not None:
            # the floor never lifts a price above what was charged before discounting
            floor = min_of(self.minimum_final_amount, original)
            if candidate < floor:
                candidate = floor
        return candidate

    def analyze(self, price: Money, context: DiscountContext) -> DiscountAnalysis:
        applied = tuple(policy.description for policy in self.policies if policy.is_applicable(context))
        skipped = tuple(policy.description for policy in self.policies if not policy.is_applicable(context))
        return DiscountAnalysis(
            original_price=price,
            final_price=self.apply_discount(price, context),
            strategy=self.strategy.value,
            applied_policies=applied,
            skipped_policies=skipped,
        )

    def __repr__(self) -> str:
        return (
            f"CompositeDiscountPolicy(description={self.description!r}, "
            f"strategy={self.strategy.value}, policies={len(self.policies)})"
        )


class DiscountLevel(str, Enum):
    MINIMAL = "MINIMAL"
    BASIC = "BASIC"
    STANDARD = "STANDARD"
    GENEROUS = "GENEROUS"
    PREMIUM = "PREMIUM"
    CUSTOM = "CUSTOM"


@dataclass(frozen=True)
class DiscountPreset:
    policies: Callable[[str], list[DiscountPolicy]]
    strategy: CombinationStrategy
    maximum_total_discount: Optional[int] = None
    minimum_final_amount: Optional[int] = None
    accepts_coupons: bool = True


DISCOUNT_LEVEL_PRESETS: dict[DiscountLevel, DiscountPreset] = {
    DiscountLevel.MINIMAL: DiscountPreset(
        lambda currency: [MembershipDiscountPolicy()],
        CombinationStrategy.SEQUENTIAL,
        accepts_coupons=False,
    ),
    DiscountLevel.BASIC: DiscountPreset(
        lambda currency: [
            MembershipDiscountPolicy(),
            AmountDiscountPolicy(Money.of(1000, currency), "Basic discount"),
        ],
        CombinationStrategy.SEQUENTIAL,
        accepts_coupons=False,
    ),
    DiscountLevel.STANDARD: DiscountPreset(
        lambda currency: [
            MembershipDiscountPolicy(),
            AmountDiscountPolicy(Money.of(2000, currency), "Standard discount"),
        ],
        CombinationStrategy.SMART_COMBINATION,
    ),
    DiscountLevel.GENEROUS: DiscountPreset(
        lambda currency: [
            MembershipDiscountPolicy(),
            RateDiscountPolicy(Decimal("0.15"), "Generous rate discount"),
            AmountDiscountPolicy(Money.of(5000, currency), "Generous amount discount"),
        ],
        CombinationStrategy.SEQUENTIAL,
        maximum_total_discount=20000,
    ),
    DiscountLevel.PREMIUM: DiscountPreset(
        lambda currency: [
            MembershipDiscountPolicy(),
            RateDiscountPolicy(Decimal("0.20"), "Premium rate discount"),
            AmountDiscountPolicy(Money.of(10000, currency), "Premium bonus"),
        ],
        CombinationStrategy.SEQUENTIAL,
        maximum_total_discount=50000,
        minimum_final_amount=1000,
    ),
    DiscountLevel.CUSTOM: DiscountPreset(lambda currency: [], CombinationStrategy.SEQUENTIAL),
}


class DiscountPolicyBuilder:
    """Assembles a CompositeDiscountPolicy from a level preset and extras."""

    def __init__(self, currency: str = "KRW") -> None:
        self._currency = require_text(currency, "currency").upper()
        self._name: Optional[str] = None
        self._level = DiscountLevel.CUSTOM
        self._policies: list[DiscountPolicy] = []
        self._coupons: list[CouponDiscountPolicy] = []
        self._strategy: Optional[CombinationStrategy] = None
        self._maximum_total_discount: Optional[Money] = None
        self._minimum_final_amount: Optional[Money] = None

    def named(self, name: str) -> "DiscountPolicyBuilder":
        self._name = name
        return self

    def with_level(self, level: DiscountLevel) -> "DiscountPolicyBuilder":
        self._level = DiscountLevel(level)
        return self

    def add_policy(self, policy: DiscountPolicy) -> "DiscountPolicyBuilder":
        self._policies.append(policy)
        return self

    def with_coupons(self, coupons: Iterable[CouponDiscountPolicy]) -> "DiscountPolicyBuilder":
        self._coupons.extend(coupons)
        return self

    def combine_with(self, strategy: CombinationStrategy) -> "DiscountPolicyBuilder":
        self._strategy = CombinationStrategy(strategy)
        return self

    def with_maximum_discount(self, amount: Money) -> "DiscountPolicyBuilder":
        self._maximum_total_discount = amount
        return self

    def with_minimum_final_amount(self, amount: Money) -> "DiscountPolicyBuilder":
        self._minimum_final_amount = amount
        return self

    def build(self) -> CompositeDiscountPolicy:
        preset = DISCOUNT_LEVEL_PRESETS[self._level]
        policies = preset.policies(self._currency) + self._policies
        if preset.accepts_coupons or self._level is DiscountLevel.CUSTOM:
            policies += self._coupons
        if not policies:
            raise ValueError("no discount policies configured; choose a level or add policies")

        maximum = self._maximum_total_discount
        if maximum is None and preset.maximum_total_discount is not None:
            maximum = Money.of(preset.maximum_total_discount, self._currency)
        minimum = self._minimum_final_amount
        if minimum is None and preset.minimum_final_amount is not None:
            minimum = Money.of(preset.minimum_final_amount, self._currency)

        strategy = self._strategy or preset.strategy
        return CompositeDiscountPolicy(
            policies,
            strategy,
            self._name or f"{self._level.value.title()} discount",
            maximum_total_discount=maximum,
            minimum_final_amount=minimum,
        )
