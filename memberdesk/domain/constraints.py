"""Domain-level validation rules shared by value objects and policies."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any


EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
PHONE_PATTERN = re.compile(r"^\+?[0-9][0-9 -]{6,18}[0-9]$")


def to_decimal(value: Any, field_name: str) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be numeric")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            # floats go through str so 0.1 stays 0.1
            result = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
        except (InvalidOperation, TypeError) as exc:
            raise ValueError(f"{field_name} must be numeric, got {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"{field_name} must be a finite number, got {value!r}")
    return result


def require_text(value: str | None, field_name: str) -> str:
    if value is None or not str(value).strip():
        raise ValueError(f"{field_name} must not be blank")
    return str(value).strip()


def require_rate(value: Any, field_name: str = "rate") -> Decimal:
    rate = to_decimal(value, field_name)
    if not Decimal("0") <= rate <= Decimal("1"):
        raise ValueError(f"{field_name} must be between 0 and 1")
    return rate


def require_positive_int(value: int, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{field_name} must be > 0")
    return value


def require_non_negative_int(value: int, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return value


def require_email(value: str) -> str:
    email = require_text(value, "email")
    if not EMAIL_PATTERN.match(email):
        raise ValueError(f"email is not valid: {email}")
    return email


def require_phone(value: str) -> str:
    phone = require_text(value, "phone")
    if not PHONE_PATTERN.match(phone):
        raise ValueError(f"phone is not valid: {phone}")
    return phone


def require_hour_window(earliest_hour: int, latest_hour: int, *, max_hour: int = 24) -> None:
    if not 0 <= earliest_hour <= 23:
        raise ValueError("earliest_hour must be between 0 and 23")
    if not 1 <= latest_hour <= max_hour:
        raise ValueError(f"latest_hour must be between 1 and {max_hour}")
    if earliest_hour >= latest_hour:
        raise ValueError("earliest_hour must be less than latest_hour")
