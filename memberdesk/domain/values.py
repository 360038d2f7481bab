"""Immutable value primitives: money and intervals."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Union

from memberdesk.domain.constraints import require_text, to_decimal


ZERO_DECIMAL_CURRENCIES = frozenset({"KRW", "JPY"})


class CurrencyMismatchError(ValueError):
    """Raised when an operation mixes two currencies."""


def _quantum(currency: str) -> Decimal:
    return Decimal("1") if currency in ZERO_DECIMAL_CURRENCIES else Decimal("0.01")


@dataclass(frozen=True)
class Money:
    """Non-negative amount in a single currency.

    Amounts are quantized to the currency's minor unit with ROUND_HALF_UP at
    construction, so repeated multiply/divide chains stay deterministic.
    """

    amount: Decimal
    currency: str

    def __post_init__(self) -> None:
        currency = require_text(self.currency, "currency").upper()
        amount = to_decimal(self.amount, "amount")
        if amount < 0:
            raise ValueError(f"amount must not be negative, got {amount}")
        object.__setattr__(self, "currency", currency)
        object.__setattr__(self, "amount", amount.quantize(_quantum(currency), rounding=ROUND_HALF_UP))

    @classmethod
    def of(cls, amount: Any, currency: str) -> "Money":
        return cls(to_decimal(amount, "amount"), currency)

    @classmethod
    def won(cls, amount: Any) -> "Money":
        return cls.of(amount, "KRW")

    @classmethod
    def usd(cls, amount: Any) -> "Money":
        return cls.of(amount, "USD")

    @classmethod
    def eur(cls, amount: Any) -> "Money":
        return cls.of(amount, "EUR")

    @classmethod
    def zero(cls, currency: str) -> "Money":
        return cls(Decimal("0"), currency)

    def _require_same_currency(self, other: "Money") -> None:
        if not isinstance(other, Money):
            raise TypeError(f"expected Money, got {type(other).__name__}")
        if self.currency != other.currency:
            raise CurrencyMismatchError(
                f"currency mismatch: {self.currency} vs {other.currency}"
            )

    def add(self, other: "Money") -> "Money":
        self._require_same_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def subtract(self, other: "Money") -> "Money":
        self._require_same_currency(other)
        result = self.amount - other.amount
        if result < 0:
            raise ValueError(f"subtraction result would be negative: {self} - {other}")
        return Money(result, self.currency)

    def subtract_or_zero(self, other: "Money") -> "Money":
        self._require_same_currency(other)
        return Money(max(self.amount - other.amount, Decimal("0")), self.currency)

    def multiply(self, factor: Any) -> "Money":
        multiplier = to_decimal(factor, "factor")
        if multiplier < 0:
            raise ValueError("factor must not be negative")
        return Money(self.amount * multiplier, self.currency)

    def divide(self, divisor: Any) -> "Money":
        value = to_decimal(divisor, "divisor")
        if value <= 0:
            raise ValueError("divisor must be > 0")
        return Money(self.amount / value, self.currency)

    def is_zero(self) -> bool:
        return self.amount == 0

    def is_positive(self) -> bool:
        return self.amount > 0

    def __add__(self, other: "Money") -> "Money":
        return self.add(other)

    def __sub__(self, other: "Money") -> "Money":
        return self.subtract(other)

    def __lt__(self, other: "Money") -> bool:
        self._require_same_currency(other)
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        self._require_same_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: "Money") -> bool:
        self._require_same_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: "Money") -> bool:
        self._require_same_currency(other)
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount:,} {self.currency}"


def min_of(first: Money, second: Money) -> Money:
    return first if first <= second else second


def max_of(first: Money, second: Money) -> Money:
    return first if first >= second else second


@dataclass(frozen=True)
class DateRange:
    """Closed date interval [start, end]."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start is None or self.end is None:
            raise ValueError("start and end are required")
        if self.start > self.end:
            raise ValueError(f"start {self.start} must not be after end {self.end}")

    @classmethod
    def of_days(cls, start: date, days: int) -> "DateRange":
        if days <= 0:
            raise ValueError("days must be > 0")
        return cls(start, start + timedelta(days=days - 1))

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, value: Union[date, "DateRange"]) -> bool:
        if isinstance(value, DateRange):
            return self.start <= value.start and value.end <= self.end
        return self.start <= value <= self.end

    def overlaps(self, other: "DateRange") -> bool:
        return self.start <= other.end and other.start <= self.end

    def is_adjacent_to(self, other: "DateRange") -> bool:
        one_day = timedelta(days=1)
        return self.end + one_day == other.start or other.end + one_day == self.start

    def extend(self, days: int) -> "DateRange":
        if days < 0:
            raise ValueError("days must be >= 0")
        return DateRange(self.start, self.end + timedelta(days=days))

    def shorten(self, days: int) -> "DateRange":
        if days < 0:
            raise ValueError("days must be >= 0")
        new_end = self.end - timedelta(days=days)
        if new_end < self.start:
            raise ValueError("cannot shorten range past its start date")
        return DateRange(self.start, new_end)

    def is_past(self, today: date) -> bool:
        return self.end < today

    def is_future(self, today: date) -> bool:
        return self.start > today

    def is_current(self, today: date) -> bool:
        return self.contains(today)

    def __str__(self) -> str:
        return f"[{self.start.isoformat()} ~ {self.end.isoformat()}]"


@dataclass(frozen=True)
class TimeSlot:
    """Half-open datetime interval [start, end).

    Back-to-back bookings share a boundary instant without overlapping.
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start is None or self.end is None:
            raise ValueError("start and end are required")
        if self.start >= self.end:
            raise ValueError(f"start {self.start} must be before end {self.end}")

    @classmethod
    def of_minutes(cls, start: datetime, minutes: int) -> "TimeSlot":
        if minutes <= 0:
            raise ValueError("minutes must be > 0")
        return cls(start, start + timedelta(minutes=minutes))

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    @property
    def billable_hours(self) -> int:
        return max(1, math.ceil((self.end - self.start).total_seconds() / 3600))

    @property
    def start_date(self) -> date:
        return self.start.date()

    def contains(self, value: Union[datetime, "TimeSlot"]) -> bool:
        if isinstance(value, TimeSlot):
            return self.start <= value.start and value.end <= self.end
        return self.start <= value < self.end

    def overlaps(self, other: "TimeSlot") -> bool:
        return self.start < other.end and other.start < self.end

    def is_adjacent_to(self, other: "TimeSlot") -> bool:
        return self.end == other.start or other.end == self.start

    def __str__(self) -> str:
        return f"[{self.start.isoformat(timespec='minutes')} ~ {self.end.isoformat(timespec='minutes')})"
