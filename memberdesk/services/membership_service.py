"""Membership registration, plan assignment and member status changes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from memberdesk.domain.context import DiscountContext
from memberdesk.domain.discounts import DiscountAnalysis, DiscountPolicy
from memberdesk.domain.models import Member, MembershipPlan, MemberStatus
from memberdesk.domain.values import DateRange, Money
from memberdesk.repository.memory_repository import InMemoryMemberRepository, InMemoryPlanRepository
from memberdesk.services.commands import AssignMembershipCommand, ChangePlanCommand, RegisterMemberCommand
from memberdesk.services.policies import build_discount_policy
from memberdesk.services.ports import LoggingNotificationService, NotificationService, PaymentGateway
from memberdesk.utils.config import Settings, get_settings
from memberdesk.utils.logger import get_logger


logger = get_logger(__name__)


class MembershipError(Exception):
    """Base membership workflow failure."""


class MemberNotFoundError(MembershipError):
    """Raised when a member id is unknown."""


class PlanNotFoundError(MembershipError):
    """Raised when a plan id is unknown or the plan is no longer offered."""


class DuplicateMemberError(MembershipError):
    """Raised when registering an id or email that already exists."""


class PlanChangeError(MembershipError):
    """Raised when a member cannot switch to the requested plan."""


@dataclass(frozen=True)
class MembershipPurchase:
    member: Member
    plan: MembershipPlan
    period: DateRange
    list_price: Money
    paid: Money
    payment_reference: Optional[str]

    @property
    def discount(self) -> Money:
        return self.list_price.subtract(self.paid)


@dataclass(frozen=True)
class PlanChange:
    member: Member
    previous_plan: Optional[MembershipPlan]
    plan: MembershipPlan
    period: DateRange
    plan_price: Money
    credit: Money
    amount_due: Money
    payment_reference: Optional[str]


class MembershipService:
    """Registers members and sells plans through the configured discount policy."""

    def __init__(
        self,
        members: Optional[InMemoryMemberRepository] = None,
        plans: Optional[InMemoryPlanRepository] = None,
        discount_policy: Optional[DiscountPolicy] = None,
        notifier: Optional[NotificationService] = None,
        payment_gateway: Optional[PaymentGateway] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._settings = settings or get_settings()
        self._members = members if members is not None else InMemoryMemberRepository()
        self._plans = plans if plans is not None else InMemoryPlanRepository()
        self._discount_policy = discount_policy or build_discount_policy(self._settings)
        self._notifier = notifier or LoggingNotificationService()
        self._payment_gateway = payment_gateway
        self._clock = clock

    def get_member(self, member_id: str) -> Member:
        member = self._members.get(member_id)
        if member is None:
            raise MemberNotFoundError(f"member_id {member_id} not found")
        return member

    def get_plan(self, plan_id: str) -> MembershipPlan:
        plan = self._plans.get(plan_id)
        if plan is None:
            raise PlanNotFoundError(f"plan_id {plan_id} not found")
        return plan

    def register_member(self, command: RegisterMemberCommand) -> Member:
        if self._members.exists(command.member_id):
            raise DuplicateMemberError(f"member_id {command.member_id} already exists")
        if self._members.find_by_email(command.email) is not None:
            raise DuplicateMemberError(f"email {command.email} is already registered")
        member = Member(
            member_id=command.member_id,
            name=command.name,
            email=command.email,
            phone=command.phone,
            created_at=self._clock(),
        )
        self._members.save(member)
        logger.info("Member registered | member_id=%s", member.member_id)
        return member

    def quote_membership(
        self,
        member: Member,
        plan: MembershipPlan,
        purchase_date: date,
        coupon_code: Optional[str] = None,
    ) -> DiscountAnalysis:
        context = DiscountContext(
            purchase_date=purchase_date,
            member=member,
            plan=plan,
            coupon_code=coupon_code,
        )
        return self._discount_policy.analyze(plan.price, context)

    def _require_offered_plan(self, plan_id: str) -> MembershipPlan:
        plan = self.get_plan(plan_id)
        if not plan.active:
            raise PlanNotFoundError(f"plan_id {plan.plan_id} is no longer offered")
        return plan

    def _charge(self, member: Member, amount: Money, reference: str) -> Optional[str]:
        if self._payment_gateway is None or not amount.is_positive():
            return None
        return self._payment_gateway.charge(member.member_id, amount, reference)

    def assign_membership(self, command: AssignMembershipCommand) -> MembershipPurchase:
        """Sell a plan; a renewal while still valid extends the current period."""
        member = self.get_member(command.member_id)
        plan = self._require_offered_plan(command.plan_id)
        today = self._clock().date()

        current = member.membership_period
        if current is not None and not member.is_membership_expired(today):
            period = DateRange.of_days(current.end + timedelta(days=1), plan.duration_days)
            held = DateRange(current.start, period.end)
        else:
            period = DateRange.of_days(command.start_date, plan.duration_days)
            held = period

        quote = self.quote_membership(member, plan, today, command.coupon_code)
        payment_reference = self._charge(
            member,
            quote.final_price,
            f"membership:{plan.plan_id}:{period.start.isoformat()}",
        )

        updated = member.assign_membership(plan, held)
        self._members.save(updated)
        logger.info(
            "Membership assigned | member_id=%s | plan_id=%s | period=%s | list_price=%s | paid=%s",
            member.member_id,
            plan.plan_id,
            period,
            plan.price,
            quote.final_price,
        )
        return MembershipPurchase(
            member=updated,
            plan=plan,
            period=period,
            list_price=plan.price,
            paid=quote.final_price,
            payment_reference=payment_reference,
        )

    def change_plan(self, command: ChangePlanCommand) -> PlanChange:
        """Switch plans, crediting the unused days of the current plan."""
        member = self.get_member(command.member_id)
        if member.status is not MemberStatus.ACTIVE:
            raise PlanChangeError(
                f"member {member.member_id} is {member.status.value}; only active members can change plans"
            )
        plan = self._require_offered_plan(command.plan_id)
        previous = member.plan
        if previous is not None and previous.plan_id == plan.plan_id:
            raise PlanChangeError(f"member {member.member_id} already holds plan {plan.plan_id}")

        today = self._clock().date()
        quote = self.quote_membership(member, plan, today, command.coupon_code)
        credit = Money.zero(quote.final_price.currency)
        if previous is not None:
            credit = previous.pro_rated_price(member.remaining_membership_days(today))
        amount_due = quote.final_price.subtract_or_zero(credit)

        if member.membership_period is not None and not member.is_membership_expired(today):
            period = member.membership_period
        else:
            period = DateRange.of_days(today, plan.duration_days)

        payment_reference = self._charge(member, amount_due, f"plan-change:{plan.plan_id}:{today.isoformat()}")
        updated = member.assign_membership(plan, period)
        self._members.save(updated)
        logger.info(
            "Plan changed | member_id=%s | from=%s | to=%s | price=%s | credit=%s | due=%s",
            member.member_id,
            previous.plan_id if previous is not None else None,
            plan.plan_id,
            quote.final_price,
            credit,
            amount_due,
        )
        return PlanChange(
            member=updated,
            previous_plan=previous,
            plan=plan,
            period=period,
            plan_price=quote.final_price,
            credit=credit,
            amount_due=amount_due,
            payment_reference=payment_reference,
        )

    def suspend_member(self, member_id: str, reason: str) -> Member:
        updated = self.get_member(member_id).suspend(reason)
        self._members.save(updated)
        logger.info("Member suspended | member_id=%s | reason=%s", member_id, reason)
        return updated

    def reactivate_member(self, member_id: str) -> Member:
        updated = self.get_member(member_id).activate()
        self._members.save(updated)
        logger.info("Member reactivated | member_id=%s", member_id)
        return updated

    def withdraw_member(self, member_id: str) -> Member:
        updated = self.get_member(member_id).withdraw()
        self._members.save(updated)
        logger.info("Member withdrawn | member_id=%s", member_id)
        return updated

    def list_members(self, status: Optional[MemberStatus] = None) -> list[Member]:
        if status is None:
            return self._members.list_all()
        return self._members.find_by_status(status)

    def notify_expiring_members(self, days: Optional[int] = None) -> list[Member]:
        window = self._settings.membership_expiry_warning_days if days is None else days
        today = self._clock().date()
        expiring = self._members.find_expiring_within(today, window)
        for member in expiring:
            self._notifier.send_membership_expiring(member, member.remaining_membership_days(today))
        logger.info("Expiry notices sent | window_days=%s | count=%s", window, len(expiring))
        return expiring
