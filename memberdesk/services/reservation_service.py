"""Reservation workflow: snapshot, eligibility, pricing and status changes."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from threading import Lock
from typing import Callable, Optional

from memberdesk.domain.context import DiscountContext, ReservationContext
from memberdesk.domain.discounts import DiscountAnalysis, DiscountPolicy
from memberdesk.domain.eligibility import EligibilityDecision, ReservationPolicy
from memberdesk.domain.models import InvalidStateTransitionError, Member, Reservation, ReservationStatus, Resource
from memberdesk.domain.values import Money, TimeSlot
from memberdesk.repository.memory_repository import (
    InMemoryMemberRepository,
    InMemoryReservationRepository,
    InMemoryResourceRepository,
)
from memberdesk.services.commands import CreateReservationCommand, ModifyReservationCommand
from memberdesk.services.policies import build_discount_policy, build_reservation_policy
from memberdesk.services.ports import (
    LocalLockManager,
    LockManager,
    LoggingNotificationService,
    NotificationService,
    PaymentGateway,
)
from memberdesk.utils.config import Settings, get_settings
from memberdesk.utils.logger import get_logger


logger = get_logger(__name__)


class ReservationError(Exception):
    """Base reservation workflow failure."""


class ReservationNotFoundError(ReservationError):
    """Raised when a reservation id is unknown."""


class UnknownPartyError(ReservationError):
    """Raised when the member or resource referenced by a request does not exist."""


class ResourceUnavailableError(ReservationError):
    """Raised when the resource is inactive or closed for the requested slot."""


class ReservationConflictError(ReservationError):
    """Raised when the member already holds an overlapping booking on the resource."""


class ReservationRejectedError(ReservationError):
    """Raised when eligibility rules reject a request."""

    def __init__(self, decision: EligibilityDecision) -> None:
        super().__init__(decision.reason)
        self.decision = decision

    @property
    def violations(self) -> tuple[str, ...]:
        return self.decision.violations


@dataclass(frozen=True)
class PriceQuote:
    base_price: Money
    analysis: DiscountAnalysis

    @property
    def final_price(self) -> Money:
        return self.analysis.final_price

    @property
    def discount(self) -> Money:
        return self.analysis.total_discount


class ReservationService:
    """Builds point-in-time snapshots and runs them through the configured policies."""

    def __init__(
        self,
        members: InMemoryMemberRepository,
        resources: InMemoryResourceRepository,
        reservations: Optional[InMemoryReservationRepository] = None,
        reservation_policy: Optional[ReservationPolicy] = None,
        discount_policy: Optional[DiscountPolicy] = None,
        notifier: Optional[NotificationService] = None,
        payment_gateway: Optional[PaymentGateway] = None,
        lock_manager: Optional[LockManager] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._settings = settings or get_settings()
        self._members = members
        self._resources = resources
        self._reservations = reservations if reservations is not None else InMemoryReservationRepository()
        self._reservation_policy = reservation_policy or build_reservation_policy(self._settings)
        self._discount_policy = discount_policy or build_discount_policy(self._settings)
        self._notifier = notifier or LoggingNotificationService()
        self._payment_gateway = payment_gateway
        self._lock_manager = lock_manager or LocalLockManager()
        self._clock = clock
        self._sequence = itertools.count(1)
        self._sequence_lock = Lock()

    @property
    def reservation_policy(self) -> ReservationPolicy:
        return self._reservation_policy

    def _next_reservation_id(self) -> str:
        with self._sequence_lock:
            while True:
                candidate = f"{self._settings.reservation_id_prefix}-{next(self._sequence):06d}"
                if not self._reservations.exists(candidate):
                    return candidate

    def _require_member(self, member_id: str) -> Member:
        member = self._members.get(member_id)
        if member is None:
            raise UnknownPartyError(f"member_id {member_id} not found")
        return member

    def _require_resource(self, resource_id: str) -> Resource:
        resource = self._resources.get(resource_id)
        if resource is None:
            raise UnknownPartyError(f"resource_id {resource_id} not found")
        return resource

    def get_reservation(self, reservation_id: str) -> Reservation:
        reservation = self._reservations.get(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(f"reservation_id {reservation_id} not found")
        return reservation

    def _snapshot(
        self,
        member: Member,
        resource: Resource,
        slot: TimeSlot,
        party_size: int,
        now: datetime,
        moving: Optional[Reservation] = None,
    ) -> ReservationContext:
        active = self._reservations.count_active_by_member(member.member_id)
        pending = self._reservations.count_pending_by_member(member.member_id)
        occupancy = self._reservations.count_occupancy(resource.resource_id, slot)
        # a reservation being moved must not count against itself
        if moving is not None:
            active -= 1 if moving.status.is_active else 0
            pending -= 1 if moving.status.is_pending else 0
            if moving.resource_id == resource.resource_id and moving.time_slot.overlaps(slot):
                occupancy -= moving.party_size
        return ReservationContext(
            member=member,
            resource=resource,
            time_slot=slot,
            evaluated_at=now,
            active_reservation_count=active,
            pending_reservation_count=pending,
            current_occupancy=occupancy,
            party_size=party_size,
        )

    def build_context(
        self,
        member_id: str,
        resource_id: str,
        slot: TimeSlot,
        *,
        party_size: int = 1,
        now: Optional[datetime] = None,
    ) -> ReservationContext:
        member = self._require_member(member_id)
        resource = self._require_resource(resource_id)
        return self._snapshot(member, resource, slot, party_size, now or self._clock())

    def check_eligibility(
        self,
        member_id: str,
        resource_id: str,
        slot: TimeSlot,
        *,
        party_size: int = 1,
        now: Optional[datetime] = None,
    ) -> EligibilityDecision:
        context = self.build_context(member_id, resource_id, slot, party_size=party_size, now=now)
        decision = self._reservation_policy.evaluate(context)
        logger.debug(
            "Eligibility evaluated | member_id=%s | resource_id=%s | policy=%s | allowed=%s",
            member_id,
            resource_id,
            self._reservation_policy.name,
            decision.allowed,
        )
        return decision

    def quote_price(
        self,
        member: Member,
        resource: Resource,
        slot: TimeSlot,
        coupon_code: Optional[str] = None,
    ) -> PriceQuote:
        base_price = resource.hourly_rate.multiply(slot.billable_hours)
        context = DiscountContext(
            purchase_date=slot.start.date(),
            member=member,
            plan=member.plan,
            coupon_code=coupon_code,
            resource_type=resource.resource_type,
        )
        return PriceQuote(base_price=base_price, analysis=self._discount_policy.analyze(base_price, context))

    def create_reservation(self, command: CreateReservationCommand) -> Reservation:
        slot = TimeSlot(command.start, command.end)
        with self._lock_manager.hold(f"resource:{command.resource_id}"):
            now = self._clock()
            member = self._require_member(command.member_id)
            resource = self._require_resource(command.resource_id)
            if not resource.is_open_during(slot):
                raise ResourceUnavailableError(f"resource {resource.resource_id} is not available for {slot}")

            overlapping = [
                reservation
                for reservation in self._reservations.find_conflicting(resource.resource_id, slot)
                if reservation.member_id == member.member_id
            ]
            if overlapping:
                raise ReservationConflictError(
                    f"member {member.member_id} already holds {overlapping[0].reservation_id} for {slot}"
                )

            context = self._snapshot(member, resource, slot, command.party_size, now)
            decision = self._reservation_policy.evaluate(context)
            if not decision.allowed:
                logger.info(
                    "Reservation rejected | member_id=%s | resource_id=%s | policy=%s | reason=%s",
                    member.member_id,
                    resource.resource_id,
                    self._reservation_policy.name,
                    decision.reason,
                )
                raise ReservationRejectedError(decision)

            quote = self.quote_price(member, resource, slot, command.coupon_code)
            reservation = Reservation(
                reservation_id=self._next_reservation_id(),
                member_id=member.member_id,
                resource_id=resource.resource_id,
                time_slot=slot,
                created_at=now,
                price=quote.final_price,
                party_size=command.party_size,
                notes=command.notes,
            )
            if self._payment_gateway is not None and quote.final_price.is_positive():
                payment_reference = self._payment_gateway.charge(
                    member.member_id,
                    quote.final_price,
                    reservation.reservation_id,
                )
                reservation = replace(reservation, payment_reference=payment_reference)
            self._reservations.save(reservation)

        logger.info(
            "Reservation created | reservation_id=%s | member_id=%s | resource_id=%s | slot=%s | base=%s | price=%s",
            reservation.reservation_id,
            member.member_id,
            resource.resource_id,
            slot,
            quote.base_price,
            quote.final_price,
        )
        return reservation

    def modify_reservation(self, command: ModifyReservationCommand) -> Reservation:
        """Move a reservation to a new slot on the same resource and settle any price difference."""
        slot = TimeSlot(command.start, command.end)
        existing = self.get_reservation(command.reservation_id)
        with self._lock_manager.hold(f"resource:{existing.resource_id}"):
            now = self._clock()
            existing = self.get_reservation(command.reservation_id)
            if not existing.is_modifiable(now):
                raise InvalidStateTransitionError(
                    f"reservation {existing.reservation_id} can no longer be modified"
                )
            member = self._require_member(existing.member_id)
            resource = self._require_resource(existing.resource_id)
            if not resource.is_open_during(slot):
                raise ResourceUnavailableError(f"resource {resource.resource_id} is not available for {slot}")

            overlapping = [
                reservation
                for reservation in self._reservations.find_conflicting(resource.resource_id, slot)
                if reservation.member_id == member.member_id
                and reservation.reservation_id != existing.reservation_id
            ]
            if overlapping:
                raise ReservationConflictError(
                    f"member {member.member_id} already holds {overlapping[0].reservation_id} for {slot}"
                )

            context = self._snapshot(member, resource, slot, existing.party_size, now, moving=existing)
            decision = self._reservation_policy.evaluate(context)
            if not decision.allowed:
                logger.info(
                    "Modification rejected | reservation_id=%s | policy=%s | reason=%s",
                    existing.reservation_id,
                    self._reservation_policy.name,
                    decision.reason,
                )
                raise ReservationRejectedError(decision)

            quote = self.quote_price(member, resource, slot)
            paid = existing.price or Money.zero(quote.final_price.currency)
            if self._payment_gateway is not None:
                if quote.final_price > paid:
                    self._payment_gateway.charge(
                        member.member_id,
                        quote.final_price.subtract(paid),
                        f"{existing.reservation_id}:modify",
                    )
                elif paid > quote.final_price and existing.payment_reference:
                    self._payment_gateway.refund(existing.payment_reference, paid.subtract(quote.final_price))
            updated = existing.reschedule(slot, now).with_price(quote.final_price)
            self._reservations.save(updated)

        logger.info(
            "Reservation modified | reservation_id=%s | from=%s | to=%s | previous_price=%s | price=%s",
            updated.reservation_id,
            existing.time_slot,
            slot,
            paid,
            quote.final_price,
        )
        return updated

    def _change_status(
        self,
        reservation_id: str,
        change: Callable[[Reservation, datetime], Reservation],
        at: Optional[datetime],
    ) -> Reservation:
        reservation = self.get_reservation(reservation_id)
        with self._lock_manager.hold(f"resource:{reservation.resource_id}"):
            updated = change(self.get_reservation(reservation_id), at or self._clock())
            self._reservations.save(updated)
        logger.info(
            "Reservation status changed | reservation_id=%s | status=%s",
            reservation_id,
            updated.status.value,
        )
        return updated

    def confirm_reservation(self, reservation_id: str, at: Optional[datetime] = None) -> Reservation:
        updated = self._change_status(reservation_id, lambda item, when: item.confirm(when), at)
        member = self._members.get(updated.member_id)
        if member is not None:
            self._notifier.send_reservation_confirmed(member, updated)
        return updated

    def start_reservation(self, reservation_id: str, at: Optional[datetime] = None) -> Reservation:
        return self._change_status(reservation_id, lambda item, when: item.start_use(when), at)

    def complete_reservation(self, reservation_id: str, at: Optional[datetime] = None) -> Reservation:
        return self._change_status(reservation_id, lambda item, when: item.complete(when), at)

    def auto_cancel_stale_requests(self, now: Optional[datetime] = None) -> list[Reservation]:
        """Cancel REQUESTED reservations left unconfirmed past the configured window."""
        moment = now or self._clock()
        after = timedelta(hours=self._settings.auto_cancel_hours)
        cancelled = []
        for reservation in self._reservations.find_by_status(ReservationStatus.REQUESTED):
            if reservation.should_auto_cancel(moment, after):
                cancelled.append(
                    self._change_status(
                        reservation.reservation_id,
                        lambda item, when: item.auto_cancel(when, after),
                        moment,
                    )
                )
        logger.info("Stale requests cancelled | count=%s", len(cancelled))
        return cancelled

    def list_member_reservations(self, member_id: str) -> list[Reservation]:
        return sorted(self._reservations.find_by_member(member_id), key=lambda item: item.time_slot.start)
