"""Reservation cancellation with policy-driven fees and refunds."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from memberdesk.domain.cancellation import CancellationPolicy
from memberdesk.domain.context import CancellationContext
from memberdesk.domain.models import Reservation
from memberdesk.domain.values import Money
from memberdesk.repository.memory_repository import InMemoryMemberRepository, InMemoryReservationRepository
from memberdesk.services.policies import build_cancellation_policy
from memberdesk.services.ports import (
    LocalLockManager,
    LockManager,
    LoggingNotificationService,
    NotificationService,
    PaymentGateway,
)
from memberdesk.services.reservation_service import ReservationNotFoundError
from memberdesk.utils.config import Settings, get_settings
from memberdesk.utils.logger import get_logger


logger = get_logger(__name__)


class CancellationDeniedError(Exception):
    """Raised when the cancellation policy refuses a cancellation."""


@dataclass(frozen=True)
class CancellationOutcome:
    reservation: Reservation
    fee: Money
    refund: Money


class CancellationService:
    """Cancels reservations and settles the refund through the payment port."""

    def __init__(
        self,
        reservations: InMemoryReservationRepository,
        members: Optional[InMemoryMemberRepository] = None,
        cancellation_policy: Optional[CancellationPolicy] = None,
        notifier: Optional[NotificationService] = None,
        payment_gateway: Optional[PaymentGateway] = None,
        lock_manager: Optional[LockManager] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._settings = settings or get_settings()
        self._reservations = reservations
        self._members = members
        self._policy = cancellation_policy or build_cancellation_policy(self._settings)
        self._notifier = notifier or LoggingNotificationService()
        self._payment_gateway = payment_gateway
        self._lock_manager = lock_manager or LocalLockManager()
        self._clock = clock

    def build_context(
        self,
        reservation: Reservation,
        now: datetime,
        *,
        emergency: bool = False,
    ) -> CancellationContext:
        price = reservation.price or Money.zero(self._settings.default_currency)
        return CancellationContext(
            reservation_start=reservation.time_slot.start,
            cancelled_at=now,
            original_price=price,
            first_cancellation=self._reservations.count_cancelled_by_member(reservation.member_id) == 0,
            emergency=emergency,
        )

    def preview(self, reservation_id: str, now: Optional[datetime] = None) -> CancellationOutcome:
        """Fee and refund that cancelling now would produce, without cancelling."""
        reservation = self._require(reservation_id)
        context = self.build_context(reservation, now or self._clock())
        fee = self._policy.calculate_fee(context)
        return CancellationOutcome(reservation, fee, context.original_price.subtract(fee))

    def _require(self, reservation_id: str) -> Reservation:
        reservation = self._reservations.get(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(f"reservation_id {reservation_id} not found")
        return reservation

    def cancel_reservation(
        self,
        reservation_id: str,
        reason: str,
        now: Optional[datetime] = None,
        *,
        emergency: bool = False,
    ) -> CancellationOutcome:
        moment = now or self._clock()
        reservation = self._require(reservation_id)
        with self._lock_manager.hold(f"resource:{reservation.resource_id}"):
            reservation = self._require(reservation_id)
            context = self.build_context(reservation, moment, emergency=emergency)
            denial = self._policy.denial_reason(context)
            if denial is not None:
                logger.info(
                    "Cancellation denied | reservation_id=%s | policy=%s | reason=%s",
                    reservation_id,
                    self._policy.name,
                    denial,
                )
                raise CancellationDeniedError(denial)

            fee = self._policy.calculate_fee(context)
            refund = context.original_price.subtract(fee)
            cancelled = reservation.cancel(reason, moment)
            self._reservations.save(cancelled)

        if self._payment_gateway is not None and reservation.payment_reference and refund.is_positive():
            self._payment_gateway.refund(reservation.payment_reference, refund)
        member = self._members.get(reservation.member_id) if self._members is not None else None
        if member is not None:
            self._notifier.send_reservation_cancelled(member, cancelled, refund)
        logger.info(
            "Reservation cancelled | reservation_id=%s | policy=%s | fee=%s | refund=%s",
            reservation_id,
            self._policy.name,
            fee,
            refund,
        )
        return CancellationOutcome(cancelled, fee, refund)

    def process_no_show(self, reservation_id: str, now: Optional[datetime] = None) -> CancellationOutcome:
        """Cancel a confirmed reservation the member never checked in for; the price is forfeited."""
        moment = now or self._clock()
        reservation = self._require(reservation_id)
        with self._lock_manager.hold(f"resource:{reservation.resource_id}"):
            reservation = self._require(reservation_id)
            if not reservation.is_no_show(moment):
                raise CancellationDeniedError(
                    f"reservation {reservation_id} is not a no-show at {moment.isoformat()}"
                )
            price = reservation.price or Money.zero(self._settings.default_currency)
            cancelled = reservation.cancel("no-show", moment)
            self._reservations.save(cancelled)

        refund = Money.zero(price.currency)
        member = self._members.get(reservation.member_id) if self._members is not None else None
        if member is not None:
            self._notifier.send_reservation_cancelled(member, cancelled, refund)
        logger.info(
            "No-show processed | reservation_id=%s | member_id=%s | forfeited=%s",
            reservation_id,
            reservation.member_id,
            price,
        )
        return CancellationOutcome(cancelled, price, refund)
