"""Outbound collaborator interfaces used by the application services."""

from __future__ import annotations

from contextlib import contextmanager
from threading import Lock, RLock
from typing import Iterator, Protocol

from memberdesk.domain.models import Member, Reservation
from memberdesk.domain.values import Money
from memberdesk.utils.logger import get_logger


logger = get_logger(__name__)


class NotificationService(Protocol):
    def send_reservation_confirmed(self, member: Member, reservation: Reservation) -> None:
        ...

    def send_reservation_cancelled(self, member: Member, reservation: Reservation, refund: Money) -> None:
        ...

    def send_membership_expiring(self, member: Member, days_left: int) -> None:
        ...


class PaymentGateway(Protocol):
    def charge(self, member_id: str, amount: Money, reference: str) -> str:
        """Charge the member and return the gateway's payment reference."""
        ...

    def refund(self, payment_reference: str, amount: Money) -> None:
        ...


class LockManager(Protocol):
    def hold(self, key: str) -> Iterator[None]:
        """Context manager serializing work on one key."""
        ...


class LoggingNotificationService:
    """Default notifier that only records outbound messages in the log."""

    def send_reservation_confirmed(self, member: Member, reservation: Reservation) -> None:
        logger.info(
            "Notification | kind=reservation_confirmed | member_id=%s | reservation_id=%s",
            member.member_id,
            reservation.reservation_id,
        )

    def send_reservation_cancelled(self, member: Member, reservation: Reservation, refund: Money) -> None:
        logger.info(
            "Notification | kind=reservation_cancelled | member_id=%s | reservation_id=%s | refund=%s",
            member.member_id,
            reservation.reservation_id,
            refund,
        )

    def send_membership_expiring(self, member: Member, days_left: int) -> None:
        logger.info(
            "Notification | kind=membership_expiring | member_id=%s | days_left=%s",
            member.member_id,
            days_left,
        )


class LocalLockManager:
    """In-process lock manager keeping one re-entrant lock per key.

    A key's lock is dropped once no caller holds or waits on it.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[str, RLock] = {}
        self._users: dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, RLock())
            self._users[key] = self._users.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]
