"""Pydantic schemas for the onboarding step payloads.

Each content step has one payload model. Field names are snake_case in
Python and camelCase on the wire (the form components and the Progress
Store both speak camelCase), so every model dumps `by_alias=True` before
it is merged into `savedData`.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from receptionist.schemas.validators import (
    parse_time_of_day,
    validate_area_code,
    validate_email,
    validate_optional_url,
    validate_zip_code,
)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Step 1: Business information ────────────────────────────

class BusinessInfoStep(CamelModel):
    """Name and e-mail are required; the rest is shape-checked when given.

    The review gate insists on area code and timezone before provisioning.
    """
    name: str = Field(min_length=2)
    email: str
    website: str | None = None
    address: str | None = Field(default=None, min_length=5)
    city: str | None = Field(default=None, min_length=2)
    state: str | None = Field(default=None, min_length=2)
    zip_code: str | None = None
    phone_area_code: str | None = None
    timezone: str | None = Field(default=None, min_length=1)

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v: str) -> str:
        return validate_email(v)

    @field_validator("website")
    @classmethod
    def validate_website_field(cls, v: str | None) -> str | None:
        return validate_optional_url(v)

    @field_validator("zip_code")
    @classmethod
    def validate_zip_field(cls, v: str | None) -> str | None:
        return validate_zip_code(v)

    @field_validator("phone_area_code")
    @classmethod
    def validate_area_code_field(cls, v: str | None) -> str | None:
        return validate_area_code(v)


# ── Step 2: Services & operating hours ──────────────────────

class ServiceInput(CamelModel):
    id: str
    name: str = Field(min_length=1)
    duration_min: int = Field(ge=5, le=480)
    price: float | None = Field(default=None, ge=0)


class DayHours(CamelModel):
    enabled: bool
    start: str
    end: str

    @model_validator(mode="after")
    def _start_before_end(self):
        if not self.enabled:
            return self
        if parse_time_of_day(self.start) >= parse_time_of_day(self.end):
            raise ValueError("End time must be after start time")
        return self


class ServicesStep(CamelModel):
    services: list[ServiceInput]
    operating_hours: dict[str, DayHours] | None = None

    @model_validator(mode="after")
    def _at_least_one(self):
        if not self.services:
            raise ValueError("Add at least one service")
        return self

    @field_validator("operating_hours")
    @classmethod
    def _known_days(cls, value):
        if value:
            unknown = sorted(set(value) - set(WEEKDAYS))
            if unknown:
                raise ValueError(f"Unknown weekday(s): {', '.join(unknown)}")
        return value


# ── Step 3: Staff ───────────────────────────────────────────

class StaffMemberInput(CamelModel):
    id: str
    name: str = Field(min_length=2)
    email: str
    services: list[str]

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v: str) -> str:
        return validate_email(v)

    @field_validator("services")
    @classmethod
    def _assigned(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("Assign at least one service")
        return value


class StaffStep(CamelModel):
    staff_members: list[StaffMemberInput]

    @model_validator(mode="after")
    def _at_least_one(self):
        if not self.staff_members:
            raise ValueError("Add at least one staff member")
        return self


# ── Step 4: Calendar connection ─────────────────────────────

class CalendarStep(CamelModel):
    calendar_connected: bool
    calendar_email: str | None = None

    @field_validator("calendar_connected")
    @classmethod
    def _confirmed(cls, value: bool) -> bool:
        if not value:
            raise ValueError("Connect your calendar to continue")
        return value


# ── Step 5: AI voice settings ───────────────────────────────

class AISettingsStep(CamelModel):
    voice_choice: Literal["Brian", "Anna"]
    greeting_message: str = Field(min_length=10, max_length=500)


# ── Step 6: Review ──────────────────────────────────────────

class ReviewStep(CamelModel):
    """Review carries no fields of its own; the Validation Gate decides."""
