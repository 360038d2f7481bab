"""In-memory repositories feeding context snapshots.

Each store guards its dict with an RLock so a snapshot read is consistent
even when several service threads save concurrently.
"""

from __future__ import annotations

import threading
from datetime import date, time
from typing import Callable, Generic, Iterable, Optional, TypeVar

from memberdesk.domain.models import (
    Member,
    MembershipPlan,
    MemberStatus,
    Reservation,
    ReservationStatus,
    Resource,
    ResourceType,
    daily_windows,
)
from memberdesk.domain.values import Money, TimeSlot
from memberdesk.utils.logger import get_logger


logger = get_logger(__name__)

RecordT = TypeVar("RecordT")


class _InMemoryStore(Generic[RecordT]):
    """Keyed store shared by the concrete repositories."""

    def __init__(self, key: Callable[[RecordT], str], records: Iterable[RecordT] = ()) -> None:
        self._key = key
        self._lock = threading.RLock()
        self._records: dict[str, RecordT] = {}
        for record in records:
            self.save(record)

    def get(self, record_id: str) -> Optional[RecordT]:
        with self._lock:
            return self._records.get(record_id)

    def exists(self, record_id: str) -> bool:
        with self._lock:
            return record_id in self._records

    def save(self, record: RecordT) -> RecordT:
        with self._lock:
            self._records[self._key(record)] = record
        return record

    def delete(self, record_id: str) -> bool:
        with self._lock:
            return self._records.pop(record_id, None) is not None

    def list_all(self) -> list[RecordT]:
        with self._lock:
            return list(self._records.values())

    def _filter(self, predicate: Callable[[RecordT], bool]) -> list[RecordT]:
        with self._lock:
            return [record for record in self._records.values() if predicate(record)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class InMemoryMemberRepository(_InMemoryStore[Member]):
    def __init__(self, members: Iterable[Member] = ()) -> None:
        super().__init__(lambda member: member.member_id, members)

    def find_by_email(self, email: str) -> Optional[Member]:
        matches = self._filter(lambda member: member.email.lower() == email.strip().lower())
        return matches[0] if matches else None

    def find_by_status(self, status: MemberStatus) -> list[Member]:
        return self._filter(lambda member: member.status is status)

    def find_expiring_within(self, today: date, days: int) -> list[Member]:
        """Active members whose membership ends within `days` days of today."""

        def expiring(member: Member) -> bool:
            if not member.has_active_membership(today):
                return False
            return (member.membership_period.end - today).days <= days

        return self._filter(expiring)


class InMemoryPlanRepository(_InMemoryStore[MembershipPlan]):
    def __init__(self, plans: Iterable[MembershipPlan] = ()) -> None:
        super().__init__(lambda plan: plan.plan_id, plans)

    def list_active(self) -> list[MembershipPlan]:
        return self._filter(lambda plan: plan.active)

    def seed_defaults(self) -> int:
        """Store the preset plans if the repository is empty."""
        if len(self):
            logger.info("Plans already present; skipping seed | count=%s", len(self))
            return 0
        presets = [
            MembershipPlan.basic_monthly(),
            MembershipPlan.premium_monthly(),
            MembershipPlan.vip_yearly(),
        ]
        for plan in presets:
            self.save(plan)
        logger.info("Seeded membership plans | count=%s", len(presets))
        return len(presets)


class InMemoryResourceRepository(_InMemoryStore[Resource]):
    def __init__(self, resources: Iterable[Resource] = ()) -> None:
        super().__init__(lambda resource: resource.resource_id, resources)

    def find_by_type(self, resource_type: ResourceType) -> list[Resource]:
        return self._filter(lambda resource: resource.resource_type is resource_type)

    def list_active(self) -> list[Resource]:
        return self._filter(lambda resource: resource.active)

    def seed_defaults(self, currency: str = "KRW") -> int:
        """Store a small demo catalogue if the repository is empty."""
        if len(self):
            logger.info("Resources already present; skipping seed | count=%s", len(self))
            return 0
        day_hours = daily_windows(time(6), time(0))
        office_hours = daily_windows(time(9), time(18), weekdays=range(5))
        catalogue = [
            Resource("GYM-01", "Main Gym", ResourceType.GYM, 30, Money.of(10000, currency), "B1", day_hours),
            Resource("POOL-01", "Lap Pool", ResourceType.POOL, 20, Money.of(15000, currency), "B2", day_hours),
            Resource(
                "STUDY-01",
                "Quiet Study Room",
                ResourceType.STUDY_ROOM,
                10,
                Money.of(5000, currency),
                "3F",
                day_hours,
            ),
            Resource(
                "MEET-01",
                "Meeting Room A",
                ResourceType.MEETING_ROOM,
                8,
                Money.of(20000, currency),
                "4F",
                office_hours,
                frozenset({"projector", "whiteboard"}),
            ),
        ]
        for resource in catalogue:
            self.save(resource)
        logger.info("Seeded resources | count=%s", len(catalogue))
        return len(catalogue)


class InMemoryReservationRepository(_InMemoryStore[Reservation]):
    def __init__(self, reservations: Iterable[Reservation] = ()) -> None:
        super().__init__(lambda reservation: reservation.reservation_id, reservations)

    def find_by_member(self, member_id: str) -> list[Reservation]:
        return self._filter(lambda reservation: reservation.member_id == member_id)

    def find_by_resource(self, resource_id: str) -> list[Reservation]:
        return self._filter(lambda reservation: reservation.resource_id == resource_id)

    def find_by_status(self, status: ReservationStatus) -> list[Reservation]:
        return self._filter(lambda reservation: reservation.status is status)

    def count_active_by_member(self, member_id: str) -> int:
        return len(
            self._filter(
                lambda reservation: reservation.member_id == member_id and reservation.status.is_active
            )
        )

    def count_pending_by_member(self, member_id: str) -> int:
        return len(
            self._filter(
                lambda reservation: reservation.member_id == member_id and reservation.status.is_pending
            )
        )

    def count_cancelled_by_member(self, member_id: str) -> int:
        return len(
            self._filter(
                lambda reservation: reservation.member_id == member_id
                and reservation.status is ReservationStatus.CANCELLED
            )
        )

    def find_conflicting(self, resource_id: str, slot: TimeSlot) -> list[Reservation]:
        return self._filter(
            lambda reservation: reservation.resource_id == resource_id
            and not reservation.status.is_final
            and reservation.time_slot.overlaps(slot)
        )

    def count_occupancy(self, resource_id: str, slot: TimeSlot) -> int:
        """Headcount of non-final reservations overlapping the slot."""
        return sum(reservation.party_size for reservation in self.find_conflicting(resource_id, slot))
