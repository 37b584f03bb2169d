"""Onboarding controller — the step state machine.

Design:
  - The Progress Store owns the record; the controller holds a cached,
    possibly stale snapshot plus its own step pointer.
  - `status` (last fully completed step) and the pointer are separate:
    jumping back to edit a step moves the pointer only, the status
    changes when that step is resubmitted.
  - savedData is merged additively; a later step never erases fields an
    earlier step captured unless it resubmits the same key.
  - Nothing advances locally until the store has accepted the write.
"""

import copy
import logging
from typing import Any

from pydantic import ValidationError

from receptionist.clients.progress import ProgressStoreClient
from receptionist.clients.provisioning import ProvisioningClient
from receptionist.onboarding import gate
from receptionist.onboarding.errors import (
    LoadFailure,
    NavigationError,
    SubmissionInProgressError,
    ValidationFailure,
)
from receptionist.onboarding.provisioning import ProvisioningOrchestrator
from receptionist.onboarding.registry import (
    PROVISIONING_STEP,
    REVIEW_STEP,
    TOTAL_STEPS,
    get_step,
)
from receptionist.schemas.onboarding import OnboardingProgress, OnboardingStatus

logger = logging.getLogger(__name__)


def _format_errors(exc: ValidationError) -> dict[str, str]:
    fields: dict[str, str] = {}
    for error in exc.errors():
        path = ".".join(str(loc) for loc in error["loc"]) or "payload"
        message = error["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        fields.setdefault(path, message)
    return fields


def _unknown_staff_services(data: dict[str, Any], saved: dict[str, Any]) -> dict[str, str]:
    offered = {str(s["id"]) for s in gate.records(saved, "services") if s.get("id") is not None}
    problems = {}
    for i, member in enumerate(data.get("staffMembers") or []):
        unknown = [str(sid) for sid in member.get("services", []) if str(sid) not in offered]
        if unknown:
            problems[f"staffMembers.{i}.services"] = (
                f"Unknown service(s): {', '.join(unknown)}"
            )
    return problems


# Checks against data captured by earlier steps, keyed by step id
_CROSS_CHECKS = {
    3: _unknown_staff_services,
}


class OnboardingController:
    """Single source of truth for which step is active."""

    def __init__(
        self,
        store: ProgressStoreClient,
        provisioning: ProvisioningClient,
        poll_interval: float | None = None,
        max_poll_cycles: int | None = None,
    ):
        self.store = store
        self.orchestrator = ProvisioningOrchestrator(
            self,
            provisioning,
            poll_interval=poll_interval,
            max_cycles=max_poll_cycles,
        )
        self.progress: OnboardingProgress | None = None
        self.current_step: int | None = None
        self.is_submitting = False
        self.redirect_required = False
        self.last_error: str | None = None

    # ── Read surface ─────────────────────────────────────────

    @property
    def loaded(self) -> bool:
        return self.progress is not None

    @property
    def status(self) -> OnboardingStatus | None:
        return self.progress.status if self.progress else None

    @property
    def saved_data_so_far(self) -> dict[str, Any]:
        """A copy; step UIs must not mutate the cached document."""
        if self.progress is None:
            return {}
        return copy.deepcopy(self.progress.saved_data)

    @property
    def is_terminal(self) -> bool:
        return self.redirect_required or self.status == OnboardingStatus.READY

    # ── Loading ──────────────────────────────────────────────

    async def load_progress(self) -> OnboardingProgress:
        """Fetch the remote snapshot and resolve the active step.

        On failure nothing is rendered: the pointer is cleared rather than
        defaulted to step 1, since progress may exist upstream.
        """
        try:
            snapshot = await self.store.get_progress()
            if snapshot.current_step > TOTAL_STEPS:
                raise LoadFailure(
                    f"Progress Store reports step {snapshot.current_step} "
                    f"but onboarding has {TOTAL_STEPS} steps"
                )
        except LoadFailure:
            self.progress = None
            self.current_step = None
            raise

        self.progress = snapshot
        self.last_error = None
        await self.orchestrator.settle()

        if self.progress.onboarding_completed:
            logger.info("Onboarding already completed; redirecting away from setup")
            self.redirect_required = True
            self.current_step = None
            return self.progress

        self.redirect_required = False
        self.current_step = self._resolve_step(self.progress)
        return self.progress

    @staticmethod
    def _resolve_step(snapshot: OnboardingProgress) -> int:
        if snapshot.status in (OnboardingStatus.PROVISIONING, OnboardingStatus.READY):
            return PROVISIONING_STEP
        if snapshot.status == OnboardingStatus.FAILED:
            return REVIEW_STEP
        if snapshot.current_step == PROVISIONING_STEP:
            # Not provisioning, so the provisioning screen has nothing to show
            return REVIEW_STEP
        return snapshot.current_step

    # ── Guards ───────────────────────────────────────────────

    def _require_active(self) -> None:
        if self.progress is None or self.current_step is None:
            if self.redirect_required:
                raise NavigationError("Onboarding is already complete")
            raise NavigationError("Onboarding progress has not been loaded")
        if self.is_terminal:
            raise NavigationError("Onboarding is already complete")
        if self.is_submitting:
            raise SubmissionInProgressError()

    def _require_editable(self) -> None:
        self._require_active()
        if self.status == OnboardingStatus.PROVISIONING or self.current_step == PROVISIONING_STEP:
            raise NavigationError("Provisioning is in progress")

    # ── Validation ───────────────────────────────────────────

    def validate_step(self, step_id: int, payload: dict[str, Any] | None) -> dict[str, Any]:
        """Check a payload against the step's contract; return the wire form."""
        definition = get_step(step_id)
        if definition.payload_model is None:
            raise NavigationError(f"Step {step_id} does not accept submissions")
        try:
            model = definition.payload_model.model_validate(payload or {})
        except ValidationError as e:
            fields = _format_errors(e)
            raise ValidationFailure(
                [f"{k}: {v}" for k, v in fields.items()], fields=fields, step=step_id
            ) from e

        data = model.model_dump(mode="json", by_alias=True, exclude_unset=True)
        cross_check = _CROSS_CHECKS.get(step_id)
        if cross_check:
            fields = cross_check(data, self.progress.saved_data if self.progress else {})
            if fields:
                raise ValidationFailure(
                    [f"{k}: {v}" for k, v in fields.items()], fields=fields, step=step_id
                )
        return data

    # ── Transitions ──────────────────────────────────────────

    async def advance(self, step_id: int, payload: dict[str, Any] | None = None) -> OnboardingProgress:
        """Validate, persist and move past `step_id`.

        Completing the review step hands over to the provisioning
        orchestrator instead of incrementing the pointer.
        """
        self._require_editable()
        if step_id != self.current_step:
            raise NavigationError(
                f"Cannot submit step {step_id} while step {self.current_step} is active"
            )

        data = self.validate_step(step_id, payload)
        merged = {**self.progress.saved_data, **data}
        if step_id == REVIEW_STEP:
            violations = gate.check(merged)
            if violations:
                raise ValidationFailure(violations, step=step_id)

        definition = get_step(step_id)
        self.is_submitting = True
        try:
            snapshot = await self.store.save_step(step_id, definition.status, merged)
            next_step = step_id if step_id == REVIEW_STEP else step_id + 1
            self._record(snapshot, merged, definition.status, next_step)
            logger.info("Step %d (%s) saved; now on step %d", step_id, definition.key, next_step)

            if step_id == REVIEW_STEP:
                await self.orchestrator.start()
        finally:
            self.is_submitting = False
        return self.progress

    def go_back(self) -> int:
        """Move the pointer back one step. No persistence; data is kept."""
        self._require_editable()
        if self.current_step > 1:
            self.current_step -= 1
        return self.current_step

    def jump_to(self, step_id: int) -> int:
        """Re-open an already reached step for editing (pointer only)."""
        self._require_editable()
        if not 1 <= step_id <= self.current_step:
            raise NavigationError(
                f"Cannot jump to step {step_id}; only steps 1..{self.current_step} are reachable"
            )
        self.current_step = step_id
        return self.current_step

    # ── State updates used by the orchestrator ──────────────

    def _record(
        self,
        snapshot: OnboardingProgress,
        merged: dict[str, Any] | None,
        status: OnboardingStatus,
        current_step: int,
    ) -> None:
        if merged is None:
            # Status-only write; the cached document stays as it was
            saved = dict(self.progress.saved_data)
        else:
            # Server echo wins on conflicting keys
            saved = {**merged, **snapshot.saved_data}
        self.progress = snapshot.model_copy(
            update={
                "saved_data": saved,
                "status": status,
                "current_step": current_step,
            }
        )
        self.current_step = current_step

    def _set_local(self, status: OnboardingStatus, current_step: int, **extra) -> None:
        self.progress = self.progress.model_copy(
            update={"status": status, "current_step": current_step, **extra}
        )
        self.current_step = current_step
