"""The fixed, ordered list of onboarding steps.

The controller depends only on this table: a step's id, its status key,
the payload model that enforces its required fields, and the fields it
reads from earlier steps. Rendering each step's form is left to the UI.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from receptionist.schemas.onboarding import OnboardingStatus
from receptionist.schemas.steps import (
    AISettingsStep,
    BusinessInfoStep,
    CalendarStep,
    ReviewStep,
    ServicesStep,
    StaffStep,
)


@dataclass(frozen=True)
class StepDefinition:
    id: int
    status: OnboardingStatus
    title: str
    description: str
    payload_model: type[BaseModel] | None
    # Fields of earlier steps this step cross-checks against
    reads: frozenset[str] = field(default_factory=frozenset)

    @property
    def key(self) -> str:
        return self.status.value

    @property
    def fields(self) -> frozenset[str]:
        """Wire (camelCase) field keys captured by this step."""
        if self.payload_model is None:
            return frozenset()
        return frozenset(
            f.alias or to_camel(name) for name, f in self.payload_model.model_fields.items()
        )

    @property
    def required_fields(self) -> frozenset[str]:
        if self.payload_model is None:
            return frozenset()
        return frozenset(
            f.alias or to_camel(name)
            for name, f in self.payload_model.model_fields.items()
            if f.is_required()
        )


STEPS: tuple[StepDefinition, ...] = (
    StepDefinition(
        1, OnboardingStatus.BUSINESS_INFO, "Business Information",
        "Tell us about your business", BusinessInfoStep,
    ),
    StepDefinition(
        2, OnboardingStatus.SERVICES, "Services & Hours",
        "Add your services and operating hours", ServicesStep,
    ),
    StepDefinition(
        3, OnboardingStatus.STAFF, "Staff Setup",
        "Configure your team members", StaffStep,
        reads=frozenset({"services"}),
    ),
    StepDefinition(
        4, OnboardingStatus.CALENDAR, "Calendar Connection",
        "Connect your calendar", CalendarStep,
    ),
    StepDefinition(
        5, OnboardingStatus.AI_SETTINGS, "AI Voice Settings",
        "Choose your AI voice and greeting", AISettingsStep,
    ),
    StepDefinition(
        6, OnboardingStatus.REVIEW, "Review & Confirm",
        "Review everything before we set up your AI", ReviewStep,
    ),
    StepDefinition(
        7, OnboardingStatus.PROVISIONING, "Setting Up Your AI",
        "Creating your AI receptionist...", None,
    ),
)

TOTAL_STEPS = len(STEPS)
REVIEW_STEP = 6
PROVISIONING_STEP = 7

_BY_ID = {s.id: s for s in STEPS}


def get_step(step_id: int) -> StepDefinition:
    try:
        return _BY_ID[step_id]
    except KeyError:
        raise ValueError(f"Unknown onboarding step: {step_id}") from None


def validate_registry(steps: tuple[StepDefinition, ...] = STEPS) -> None:
    """Check that ids are 1..N in order and no step reads a later step's data.

    Raises ValueError describing the first violation.
    """
    seen: set[str] = set()
    for index, step in enumerate(steps, start=1):
        if step.id != index:
            raise ValueError(f"Step ids must be contiguous from 1 (got {step.id} at {index})")
        missing = step.reads - seen
        if missing:
            raise ValueError(
                f"Step {step.id} reads {', '.join(sorted(missing))} "
                "before any earlier step captures it"
            )
        seen |= step.fields


validate_registry()
