"""Tabular reservation reporting built on pandas."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from memberdesk.domain.discounts import DiscountAnalysis
from memberdesk.domain.models import ReservationStatus, Resource
from memberdesk.repository.memory_repository import InMemoryReservationRepository, InMemoryResourceRepository
from memberdesk.utils.config import Settings, get_settings
from memberdesk.utils.logger import get_logger


logger = get_logger(__name__)

RESERVATION_COLUMNS = [
    "reservation_id",
    "member_id",
    "resource_id",
    "resource_type",
    "status",
    "start",
    "end",
    "duration_hours",
    "party_size",
    "price",
    "currency",
]

UTILIZATION_COLUMNS = [
    "resource_id",
    "resource_type",
    "capacity",
    "open_hours",
    "booked_hours",
    "seat_hours",
    "utilization",
]


def open_hours_on(resource: Resource, day: date) -> float:
    """Hours the resource is open on the given day; no calendar means 24h."""
    if not resource.operating_hours:
        return 24.0
    total = 0.0
    for window in resource.operating_hours:
        if window.weekday != day.weekday():
            continue
        opening = datetime.combine(day, window.opens)
        closing = datetime.combine(day, window.closes)
        if window.closes == time(0):
            closing += timedelta(days=1)
        total += (closing - opening).total_seconds() / 3600
    return total


class ReportingService:
    """Summarizes reservations for operators; read-only over the repositories."""

    def __init__(
        self,
        reservations: InMemoryReservationRepository,
        resources: InMemoryResourceRepository,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._reservations = reservations
        self._resources = resources

    def reservations_frame(self) -> pd.DataFrame:
        rows = []
        for reservation in self._reservations.list_all():
            resource = self._resources.get(reservation.resource_id)
            rows.append(
                {
                    "reservation_id": reservation.reservation_id,
                    "member_id": reservation.member_id,
                    "resource_id": reservation.resource_id,
                    "resource_type": resource.resource_type.value if resource is not None else None,
                    "status": reservation.status.value,
                    "start": reservation.time_slot.start,
                    "end": reservation.time_slot.end,
                    "duration_hours": reservation.time_slot.duration_minutes / 60,
                    "party_size": reservation.party_size,
                    "price": float(reservation.price.amount) if reservation.price is not None else 0.0,
                    "currency": (
                        reservation.price.currency
                        if reservation.price is not None
                        else self._settings.default_currency
                    ),
                }
            )
        if not rows:
            return pd.DataFrame(columns=RESERVATION_COLUMNS)
        frame = pd.DataFrame(rows, columns=RESERVATION_COLUMNS)
        return frame.sort_values(by=["start", "reservation_id"]).reset_index(drop=True)

    def status_summary(self) -> dict[str, int]:
        frame = self.reservations_frame()
        counts = frame["status"].value_counts() if not frame.empty else pd.Series(dtype="int64")
        return {status.value: int(counts.get(status.value, 0)) for status in ReservationStatus}

    def revenue_by_resource_type(self) -> pd.DataFrame:
        frame = self.reservations_frame()
        frame = frame[frame["status"] != ReservationStatus.CANCELLED.value]
        if frame.empty:
            return pd.DataFrame(columns=["resource_type", "reservations", "revenue"])
        grouped = frame.groupby("resource_type", sort=True).agg(
            reservations=("reservation_id", "count"),
            revenue=("price", "sum"),
        )
        return grouped.reset_index()

    def utilization_by_resource(self, day: date) -> pd.DataFrame:
        """Booked hours and seat-hour utilization per active resource for one day."""
        resources = sorted(self._resources.list_active(), key=lambda item: item.resource_id)
        if not resources:
            return pd.DataFrame(columns=UTILIZATION_COLUMNS)

        base = pd.DataFrame(
            [
                {
                    "resource_id": resource.resource_id,
                    "resource_type": resource.resource_type.value,
                    "capacity": resource.capacity,
                    "open_hours": open_hours_on(resource, day),
                }
                for resource in resources
            ]
        )

        bookings = self.reservations_frame()
        bookings = bookings[bookings["status"] != ReservationStatus.CANCELLED.value]
        day_start = pd.Timestamp(datetime.combine(day, time(0)))
        day_end = day_start + pd.Timedelta(days=1)
        if not bookings.empty:
            starts = pd.to_datetime(bookings["start"]).clip(lower=day_start)
            ends = pd.to_datetime(bookings["end"]).clip(upper=day_end)
            hours = ((ends - starts).dt.total_seconds() / 3600).clip(lower=0)
            bookings = bookings.assign(hours_on_day=hours, seat_hours=hours * bookings["party_size"])
            per_resource = bookings.groupby("resource_id").agg(
                booked_hours=("hours_on_day", "sum"),
                seat_hours=("seat_hours", "sum"),
            )
            base = base.merge(per_resource, how="left", left_on="resource_id", right_index=True)
        else:
            base = base.assign(booked_hours=0.0, seat_hours=0.0)

        base[["booked_hours", "seat_hours"]] = base[["booked_hours", "seat_hours"]].fillna(0.0)
        capacity_hours = base["capacity"] * base["open_hours"]
        base["utilization"] = np.where(
            capacity_hours > 0,
            base["seat_hours"] / capacity_hours.where(capacity_hours > 0, 1),
            0.0,
        ).round(4)
        logger.info(
            "Utilization report built | day=%s | resources=%s | mean_utilization=%.4f",
            day.isoformat(),
            len(base),
            float(base["utilization"].mean()),
        )
        return base[UTILIZATION_COLUMNS]

    def discount_report(self, analyses: Iterable[DiscountAnalysis]) -> pd.DataFrame:
        rows = [
            {
                "original": float(analysis.original_price.amount),
                "final": float(analysis.final_price.amount),
                "discount": float(analysis.total_discount.amount),
                "discount_rate": float(analysis.discount_rate),
                "strategy": analysis.strategy,
                "applied_count": len(analysis.applied_policies),
                "skipped_count": len(analysis.skipped_policies),
            }
            for analysis in analyses
        ]
        columns = [
            "original",
            "final",
            "discount",
            "discount_rate",
            "strategy",
            "applied_count",
            "skipped_count",
        ]
        return pd.DataFrame(rows, columns=columns)
