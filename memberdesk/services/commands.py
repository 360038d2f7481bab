"""Input DTOs validated before entering the service layer."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from memberdesk.domain.constraints import EMAIL_PATTERN, PHONE_PATTERN


class RegisterMemberCommand(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    member_id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(pattern=EMAIL_PATTERN.pattern)
    phone: str = Field(pattern=PHONE_PATTERN.pattern)


class AssignMembershipCommand(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    member_id: str = Field(min_length=1)
    plan_id: str = Field(min_length=1)
    start_date: date
    coupon_code: Optional[str] = None

    @field_validator("coupon_code")
    @classmethod
    def normalize_coupon(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value:
            return None
        return value.upper()


class ChangePlanCommand(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    member_id: str = Field(min_length=1)
    plan_id: str = Field(min_length=1)
    coupon_code: Optional[str] = None

    @field_validator("coupon_code")
    @classmethod
    def normalize_coupon(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value:
            return None
        return value.upper()


class CreateReservationCommand(BaseModel):
    """Reservation request; the time slot is half-open [start, end)."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    member_id: str = Field(min_length=1)
    resource_id: str = Field(min_length=1)
    start: datetime
    end: datetime
    party_size: int = Field(default=1, ge=1)
    coupon_code: Optional[str] = None
    notes: str = Field(default="", max_length=500)

    @field_validator("coupon_code")
    @classmethod
    def normalize_coupon(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value:
            return None
        return value.upper()

    @model_validator(mode="after")
    def validate_slot_boundaries(self) -> "CreateReservationCommand":
        if self.start >= self.end:
            raise ValueError("start must be before end")
        return self


class ModifyReservationCommand(BaseModel):
    """Moves an existing reservation to a new half-open slot [start, end)."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    reservation_id: str = Field(min_length=1)
    start: datetime
    end: datetime

    @model_validator(mode="after")
    def validate_slot_boundaries(self) -> "ModifyReservationCommand":
        if self.start >= self.end:
            raise ValueError("start must be before end")
        return self
