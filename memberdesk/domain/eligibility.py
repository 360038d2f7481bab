"""Named eligibility policies assembled from atomic specifications.

A policy owns one composed specification tree for the yes/no answer and
keeps the flat leaf list so it can re-check each rule when explaining a
rejection. Tiers differ only in which leaves they list.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence

from memberdesk.domain.constraints import require_text
from memberdesk.domain.context import ReservationContext
from memberdesk.domain.specifications import (
    ActiveMemberSpecification,
    AdvanceReservationLimitSpecification,
    MembershipPrivilegeSpecification,
    ResourceCapacitySpecification,
    SimultaneousReservationLimitSpecification,
    Specification,
    TimeOfDaySpecification,
    ValidReservationTimeSpecification,
    all_of,
    any_of,
    weekdays_only,
    weekend_restriction,
)


ALLOWED_MESSAGE = "Reservation allowed"
REASON_SEPARATOR = "; "
PREMIUM_GRACE_DAYS = 7
PREMIUM_VIP_BONUS_DAYS = 7


class CombinationMode(str, Enum):
    ALL = "ALL"
    ANY = "ANY"


class PolicyLevel(str, Enum):
    MINIMAL = "MINIMAL"
    BASIC = "BASIC"
    STANDARD = "STANDARD"
    STRICT = "STRICT"
    CUSTOM = "CUSTOM"


@dataclass(frozen=True)
class EligibilityDecision:
    allowed: bool
    violations: tuple[str, ...]

    @property
    def reason(self) -> str:
        if self.allowed:
            return ALLOWED_MESSAGE
        return REASON_SEPARATOR.join(self.violations) or "Reservation not allowed"


def standard_rules() -> list[Specification]:
    return [
        ActiveMemberSpecification(),
        MembershipPrivilegeSpecification(),
        ResourceCapacitySpecification.standard(),
        ValidReservationTimeSpecification(max_advance_days=365, min_lead_minutes=30),
        SimultaneousReservationLimitSpecification(),
        AdvanceReservationLimitSpecification(),
    ]


def restrictive_rules() -> list[Specification]:
    return [
        ActiveMemberSpecification(),
        MembershipPrivilegeSpecification(),
        ResourceCapacitySpecification.restrictive(),
        ValidReservationTimeSpecification(max_advance_days=30, min_lead_minutes=120),
        SimultaneousReservationLimitSpecification.strict(),
        AdvanceReservationLimitSpecification.strict(),
        weekdays_only(),
        TimeOfDaySpecification.business_hours(),
    ]


def premium_rules() -> list[Specification]:
    return [
        ActiveMemberSpecification.lenient(grace_period_days=PREMIUM_GRACE_DAYS),
        MembershipPrivilegeSpecification(grace_period_days=PREMIUM_GRACE_DAYS),
        ResourceCapacitySpecification.unrestricted(),
        ValidReservationTimeSpecification(max_advance_days=730, min_lead_minutes=15),
        SimultaneousReservationLimitSpecification(count_pending=False),
        AdvanceReservationLimitSpecification(vip_bonus_days=PREMIUM_VIP_BONUS_DAYS),
        weekend_restriction(allow_weekend=True),
    ]


def minimal_rules() -> list[Specification]:
    return [
        ActiveMemberSpecification.status_only(),
        ResourceCapacitySpecification(Decimal("1")),
    ]


def basic_rules() -> list[Specification]:
    return [
        ActiveMemberSpecification(),
        MembershipPrivilegeSpecification(),
        ResourceCapacitySpecification(Decimal("1")),
        ValidReservationTimeSpecification(),
    ]


LEVEL_PRESETS: dict[PolicyLevel, Callable[[], list[Specification]]] = {
    PolicyLevel.MINIMAL: minimal_rules,
    PolicyLevel.BASIC: basic_rules,
    PolicyLevel.STANDARD: standard_rules,
    PolicyLevel.STRICT: restrictive_rules,
    PolicyLevel.CUSTOM: list,
}


class ReservationPolicy:
    """Eligibility tier exposing can_reserve and violation_reason."""

    def __init__(
        self,
        name: str,
        rules: Sequence[Specification],
        *,
        mode: CombinationMode = CombinationMode.ALL,
        description: Optional[str] = None,
    ) -> None:
        self.name = require_text(name, "name")
        self.rules: tuple[Specification, ...] = tuple(rules)
        if not self.rules:
            raise ValueError("a reservation policy needs at least one rule")
        if any(not isinstance(rule, Specification) for rule in self.rules):
            raise ValueError("rules must be Specification instances")
        self.mode = CombinationMode(mode)
        combine = all_of if self.mode is CombinationMode.ALL else any_of
        self.specification = combine(self.rules)
        self.description = description or self.specification.description

    @classmethod
    def standard(cls) -> "ReservationPolicy":
        return cls("standard", standard_rules(), description="Standard reservation policy")

    @classmethod
    def restrictive(cls) -> "ReservationPolicy":
        return cls(
            "restrictive",
            restrictive_rules(),
            description="Restrictive policy for scarce or peak-time resources",
        )

    @classmethod
    def premium(cls) -> "ReservationPolicy":
        return cls(
            "premium",
            premium_rules(),
            description="Premium policy with grace periods and extended booking horizon",
        )

    @classmethod
    def for_level(cls, level: PolicyLevel) -> "ReservationPolicy":
        level = PolicyLevel(level)
        rules = LEVEL_PRESETS[level]()
        if not rules:
            raise ValueError(f"level {level.value} has no preset rules; add rules through the builder")
        return cls(level.value.lower(), rules)

    @classmethod
    def named(cls, name: str) -> "ReservationPolicy":
        factories: dict[str, Callable[[], ReservationPolicy]] = {
            "standard": cls.standard,
            "restrictive": cls.restrictive,
            "premium": cls.premium,
        }
        key = name.strip().lower()
        if key in factories:
            return factories[key]()
        try:
            return cls.for_level(PolicyLevel(key.upper()))
        except ValueError as exc:
            raise ValueError(f"unknown reservation policy: {name}") from exc

    def can_reserve(self, context: ReservationContext) -> bool:
        return self.specification.is_satisfied_by(context)

    def violations(self, context: ReservationContext) -> tuple[str, ...]:
        reasons = (rule.failure_reason(context) for rule in self.rules)
        return tuple(reason for reason in reasons if reason)

    def evaluate(self, context: ReservationContext) -> EligibilityDecision:
        if self.can_reserve(context):
            return EligibilityDecision(True, ())
        return EligibilityDecision(False, self.violations(context))

    def violation_reason(self, context: ReservationContext) -> str:
        return self.evaluate(context).reason

    def __repr__(self) -> str:
        return f"ReservationPolicy(name={self.name!r}, mode={self.mode.value}, rules={len(self.rules)})"


class ReservationPolicyBuilder:
    """Assembles a ReservationPolicy from a level preset plus extra rules."""

    def __init__(self, name: str = "custom") -> None:
        self._name = name
        self._level = PolicyLevel.CUSTOM
        self._extra_rules: list[Specification] = []
        self._mode = CombinationMode.ALL

    def named(self, name: str) -> "ReservationPolicyBuilder":
        self._name = name
        return self

    def with_level(self, level: PolicyLevel) -> "ReservationPolicyBuilder":
        self._level = PolicyLevel(level)
        return self

    def with_rule(self, rule: Specification) -> "ReservationPolicyBuilder":
        self._extra_rules.append(rule)
        return self

    def with_rules(self, rules: Iterable[Specification]) -> "ReservationPolicyBuilder":
        self._extra_rules.extend(rules)
        return self

    def combine_with(self, mode: CombinationMode) -> "ReservationPolicyBuilder":
        self._mode = CombinationMode(mode)
        return self

    def build(self) -> ReservationPolicy:
        rules = LEVEL_PRESETS[self._level]() + self._extra_rules
        if not rules:
            raise ValueError("no rules configured; choose a level or add rules")
        return ReservationPolicy(
            self._name,
            rules,
            mode=self._mode,
            description=f"{self._level.value.title()} policy ({self._mode.value} of {len(rules)} rules)",
        )
