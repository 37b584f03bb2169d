"""Schemas for onboarding progress, provisioning and the session views."""

import enum
from datetime import datetime, timezone
from typing import Any

from pydantic import Field, field_validator, model_validator

from receptionist.schemas.steps import CamelModel


class OnboardingStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    BUSINESS_INFO = "business_info"
    SERVICES = "services"
    STAFF = "staff"
    CALENDAR = "calendar"
    AI_SETTINGS = "ai_settings"
    REVIEW = "review"
    PROVISIONING = "provisioning"
    READY = "ready"
    FAILED = "failed"


# ── Progress snapshot (Progress Store document) ─────────────

class OnboardingProgress(CamelModel):
    current_step: int = 1
    status: OnboardingStatus = OnboardingStatus.NOT_STARTED
    completed_steps: int = 0
    total_steps: int = 7
    onboarding_completed: bool = False
    saved_data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("saved_data", mode="before")
    @classmethod
    def none_is_empty(cls, v):
        return {} if v is None else v

    @model_validator(mode="after")
    def _within_bounds(self):
        if not 1 <= self.current_step <= self.total_steps:
            raise ValueError(
                f"currentStep {self.current_step} outside 1..{self.total_steps}"
            )
        if not 0 <= self.completed_steps <= self.total_steps:
            raise ValueError(
                f"completedSteps {self.completed_steps} outside 0..{self.total_steps}"
            )
        return self


class StepCompletion(CamelModel):
    """Body of a Progress Store step write."""
    step: int
    status: OnboardingStatus
    data: dict[str, Any] | None = None


# ── Provisioning ────────────────────────────────────────────

class ProvisioningOutcome(str, enum.Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_SUCCEEDED = {"ready", "succeeded", "complete", "completed", "active"}
_FAILED = {"failed", "error"}


class ProvisioningStatus(CamelModel):
    """Body of the provisioning API status endpoint."""
    status: str
    agent_id: str | None = None
    phone_number: str | None = None
    error_message: str | None = None

    @property
    def outcome(self) -> ProvisioningOutcome:
        value = (self.status or "").lower()
        if value in _SUCCEEDED:
            return ProvisioningOutcome.SUCCEEDED
        if value in _FAILED:
            return ProvisioningOutcome.FAILED
        return ProvisioningOutcome.PENDING


class ProvisioningAttempt(CamelModel):
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    outcome: ProvisioningOutcome = ProvisioningOutcome.PENDING
    error_message: str | None = None
    agent_id: str | None = None
    phone_number: str | None = None
    polls: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.outcome != ProvisioningOutcome.PENDING


# ── Views exposed to the UI shell ───────────────────────────

class StepSummary(CamelModel):
    id: int
    key: str
    title: str
    description: str
    completed: bool
    current: bool


class OnboardingView(CamelModel):
    current_step_id: int | None
    status: OnboardingStatus
    saved_data_so_far: dict[str, Any]
    is_submitting: bool
    completed_steps: int
    total_steps: int
    progress_percent: int
    steps: list[StepSummary] = []
    redirect: str | None = None


class ReviewView(CamelModel):
    violations: list[str]
    can_confirm: bool


class AttemptView(CamelModel):
    attempt: ProvisioningAttempt | None
    status: OnboardingStatus
    polling: bool
    still_working: bool = False
