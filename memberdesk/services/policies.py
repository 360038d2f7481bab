"""Shared providers resolving configured rule policies from Settings."""

from __future__ import annotations

from typing import Iterable

from memberdesk.domain.cancellation import CancellationPolicy, cancellation_policy_for
from memberdesk.domain.discounts import CouponDiscountPolicy, DiscountPolicy
from memberdesk.domain.eligibility import ReservationPolicy
from memberdesk.domain.pricing import DiscountLevel, DiscountPolicyBuilder
from memberdesk.utils.config import Settings


def build_discount_policy(
    settings: Settings,
    coupons: Iterable[CouponDiscountPolicy] = (),
) -> DiscountPolicy:
    try:
        level = DiscountLevel(settings.discount_level.upper())
    except ValueError as exc:
        raise ValueError(f"unknown discount level: {settings.discount_level}") from exc
    if level is DiscountLevel.CUSTOM:
        raise ValueError("the CUSTOM discount level must be built explicitly with DiscountPolicyBuilder")
    return DiscountPolicyBuilder(settings.default_currency).with_level(level).with_coupons(coupons).build()


def build_reservation_policy(settings: Settings) -> ReservationPolicy:
    return ReservationPolicy.named(settings.reservation_policy)


def build_cancellation_policy(settings: Settings) -> CancellationPolicy:
    return cancellation_policy_for(settings.cancellation_policy)
