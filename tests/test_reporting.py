from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, time

import pytest

from memberdesk.domain.discounts import DiscountAnalysis
from memberdesk.domain.models import Reservation, Resource, ResourceType
from memberdesk.domain.values import Money, TimeSlot
from memberdesk.repository.memory_repository import InMemoryReservationRepository, InMemoryResourceRepository
from memberdesk.services.reporting_service import (
    RESERVATION_COLUMNS,
    UTILIZATION_COLUMNS,
    ReportingService,
    open_hours_on,
)
from memberdesk.utils.config import get_settings


DAY = date(2025, 6, 3)  # Tuesday
CREATED = datetime(2025, 6, 2, 10, 0)


def _reservation(reservation_id: str, resource_id: str, start_hour: int, end_hour: int, **overrides) -> Reservation:
    values = {
        "reservation_id": reservation_id,
        "member_id": "M-001",
        "resource_id": resource_id,
        "time_slot": TimeSlot(datetime.combine(DAY, time(start_hour)), datetime.combine(DAY, time(end_hour))),
        "created_at": CREATED,
        "price": Money.won(10000 * (end_hour - start_hour)),
    }
    values.update(overrides)
    return Reservation(**values)


def _build_service(reservations=()) -> ReportingService:
    resources = InMemoryResourceRepository()
    resources.seed_defaults("KRW")
    settings = replace(get_settings(), default_currency="KRW")
    return ReportingService(InMemoryReservationRepository(reservations), resources, settings)


def _sample_reservations() -> list[Reservation]:
    return [
        _reservation("RSV-000002", "GYM-01", 14, 15, party_size=2, member_id="M-002"),
        _reservation("RSV-000001", "GYM-01", 10, 12),
        _reservation("RSV-000003", "STUDY-01", 9, 10).cancel("schedule change", CREATED),
    ]


# --- Frames ---

def test_reservations_frame_is_sorted_by_start() -> None:
    frame = _build_service(_sample_reservations()).reservations_frame()
    assert list(frame.columns) == RESERVATION_COLUMNS
    assert list(frame["reservation_id"]) == ["RSV-000003", "RSV-000001", "RSV-000002"]
    assert list(frame["duration_hours"]) == [1.0, 2.0, 1.0]


def test_empty_frame_keeps_columns() -> None:
    frame = _build_service().reservations_frame()
    assert frame.empty
    assert list(frame.columns) == RESERVATION_COLUMNS


def test_status_summary_lists_every_status() -> None:
    summary = _build_service(_sample_reservations()).status_summary()
    assert summary == {
        "REQUESTED": 2,
        "CONFIRMED": 0,
        "IN_USE": 0,
        "COMPLETED": 0,
        "CANCELLED": 1,
    }
    assert set(_build_service().status_summary().values()) == {0}


def test_revenue_excludes_cancelled() -> None:
    revenue = _build_service(_sample_reservations()).revenue_by_resource_type()
    assert list(revenue["resource_type"]) == ["GYM"]
    assert int(revenue.loc[0, "reservations"]) == 2
    assert revenue.loc[0, "revenue"] == pytest.approx(30000.0)


# --- Utilization ---

def test_utilization_by_resource() -> None:
    frame = _build_service(_sample_reservations()).utilization_by_resource(DAY).set_index("resource_id")
    gym = frame.loc["GYM-01"]
    assert gym["open_hours"] == pytest.approx(18.0)
    assert gym["booked_hours"] == pytest.approx(3.0)
    assert gym["seat_hours"] == pytest.approx(4.0)
    assert gym["utilization"] == pytest.approx(round(4 / (30 * 18), 4))
    assert frame.loc["STUDY-01", "booked_hours"] == 0.0
    assert frame.loc["MEET-01", "open_hours"] == pytest.approx(9.0)


def test_utilization_without_bookings() -> None:
    frame = _build_service().utilization_by_resource(DAY)
    assert list(frame.columns) == UTILIZATION_COLUMNS
    assert len(frame) == 4
    assert (frame["utilization"] == 0.0).all()


def test_utilization_on_other_day_is_zero() -> None:
    frame = _build_service(_sample_reservations()).utilization_by_resource(date(2025, 6, 4))
    assert frame["booked_hours"].sum() == 0.0


def test_open_hours() -> None:
    always_open = Resource("DESK-01", "Hot Desk", ResourceType.OFFICE_DESK, 1, Money.won(3000))
    resources = InMemoryResourceRepository()
    resources.seed_defaults("KRW")
    assert open_hours_on(always_open, DAY) == 24.0
    assert open_hours_on(resources.get("MEET-01"), date(2025, 6, 7)) == 0.0


# --- Discounts ---

def test_discount_report() -> None:
    analyses = [
        DiscountAnalysis(Money.won(10000), Money.won(8000), "SEQUENTIAL", ("A", "B"), ()),
        DiscountAnalysis(Money.won(5000), Money.won(5000), None, (), ("A",)),
    ]
    report = _build_service().discount_report(analyses)
    assert list(report["discount"]) == [2000.0, 0.0]
    assert list(report["applied_count"]) == [2, 0]
    assert report.loc[0, "discount_rate"] == pytest.approx(0.2)
