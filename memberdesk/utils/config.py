"""Application settings loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


ENV_PREFIX = "MEMBERDESK_"


def _env_str(name: str, default: str) -> str:
    value = os.getenv(ENV_PREFIX + name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    default_currency: str
    reservation_policy: str
    discount_level: str
    cancellation_policy: str
    membership_expiry_warning_days: int
    reservation_id_prefix: str
    auto_cancel_hours: int


@lru_cache
def get_settings() -> Settings:
    """Build settings once per process; tests override with dataclasses.replace."""
    return Settings(
        app_name=_env_str("APP_NAME", "memberdesk"),
        app_version=_env_str("APP_VERSION", "0.1.0"),
        log_level=_env_str("LOG_LEVEL", "INFO"),
        default_currency=_env_str("DEFAULT_CURRENCY", "KRW").upper(),
        reservation_policy=_env_str("RESERVATION_POLICY", "standard").lower(),
        discount_level=_env_str("DISCOUNT_LEVEL", "STANDARD").upper(),
        cancellation_policy=_env_str("CANCELLATION_POLICY", "standard").lower(),
        membership_expiry_warning_days=_env_int("MEMBERSHIP_EXPIRY_WARNING_DAYS", 7),
        reservation_id_prefix=_env_str("RESERVATION_ID_PREFIX", "RSV"),
        auto_cancel_hours=_env_int("AUTO_CANCEL_HOURS", 24),
    )
