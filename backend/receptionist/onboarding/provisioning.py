"""Provisioning orchestrator: from "all data collected" to "agent is live".

State machine (terminal states are sinks):

    review --(confirm)--> provisioning --(success)--> ready
                               |
                               +--(failure)--> review   [error surfaced]

A failed attempt never touches savedData, so the tenant can retry
without re-entering anything. Deduplicating concurrent start() calls
is the caller's job (see services.sessions).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from receptionist.clients.base import UpstreamError
from receptionist.clients.provisioning import ProvisioningClient
from receptionist.config import settings
from receptionist.onboarding import gate
from receptionist.onboarding.errors import (
    NavigationError,
    OnboardingError,
    PersistFailure,
    SessionExpiredError,
    ValidationFailure,
)
from receptionist.onboarding.registry import PROVISIONING_STEP, REVIEW_STEP
from receptionist.schemas.onboarding import (
    OnboardingStatus,
    ProvisioningAttempt,
    ProvisioningOutcome,
)

if TYPE_CHECKING:
    from receptionist.onboarding.controller import OnboardingController

logger = logging.getLogger("receptionist.provisioning")

COMPLETION_SAVE_FAILED = "Failed to save completion status. Please retry."


@dataclass
class PollResult:
    outcome: ProvisioningOutcome
    attempt: ProvisioningAttempt
    still_working: bool = False


class ProvisioningOrchestrator:

    def __init__(
        self,
        controller: OnboardingController,
        client: ProvisioningClient,
        poll_interval: float | None = None,
        max_cycles: int | None = None,
    ):
        self.controller = controller
        self.client = client
        self.poll_interval = settings.poll_interval_seconds if poll_interval is None else poll_interval
        self.max_cycles = settings.max_poll_cycles if max_cycles is None else max_cycles
        self.attempt: ProvisioningAttempt | None = None
        # Set when a failed attempt could not write its revert to review
        self.revert_pending = False

    @property
    def tenant_id(self) -> str:
        return self.client.session.tenant_id

    # ── start ────────────────────────────────────────────────

    async def start(self) -> ProvisioningAttempt:
        """Submit the finalized bundle and enter `provisioning`.

        Returns as soon as the provisioning API has accepted the job;
        poll() / run() observe the outcome.
        """
        c = self.controller
        if c.progress is None or c.is_terminal:
            raise NavigationError("Provisioning can only start from the review step")
        if c.status not in (OnboardingStatus.REVIEW, OnboardingStatus.FAILED):
            raise NavigationError(
                f"Provisioning can only start from the review step (status is {c.status.value})"
            )

        violations = gate.check(c.progress.saved_data)
        if violations:
            raise ValidationFailure(violations, step=REVIEW_STEP)

        bundle = c.saved_data_so_far
        snapshot = await c.store.save_step(PROVISIONING_STEP, OnboardingStatus.PROVISIONING)
        c._record(snapshot, None, OnboardingStatus.PROVISIONING, PROVISIONING_STEP)

        self.attempt = ProvisioningAttempt()
        self.revert_pending = False
        c.last_error = None
        logger.info("Submitting provisioning bundle for tenant %s", self.tenant_id)
        try:
            await self.client.start(bundle)
        except OnboardingError as e:
            # Job never reached the provisioning API, including a 401/403
            await self._fail(e.message)
            raise
        return self.attempt

    def resume(self) -> ProvisioningAttempt:
        """Track an attempt started in an earlier session (status already provisioning)."""
        c = self.controller
        if c.redirect_required or c.status not in (OnboardingStatus.PROVISIONING, OnboardingStatus.READY):
            raise NavigationError("No provisioning attempt to resume")
        if self.attempt is None or self.attempt.is_terminal:
            self.attempt = ProvisioningAttempt()
        return self.attempt

    # ── poll ─────────────────────────────────────────────────

    async def poll(self) -> ProvisioningOutcome:
        """Fetch the status once and apply a terminal outcome if there is one.

        Transport errors count as `pending`; a wrongly reported failure
        would strand the tenant, so only the API's own verdict ends an
        attempt.
        """
        if self.attempt is None:
            raise NavigationError("No provisioning attempt is in progress")
        if self.attempt.is_terminal:
            return self.attempt.outcome

        self.attempt.polls += 1
        try:
            status = await self.client.get_status()
        except UpstreamError as e:
            logger.warning(
                "Provisioning status check failed for tenant %s (poll %d): %s",
                self.tenant_id,
                self.attempt.polls,
                e.message,
            )
            return ProvisioningOutcome.PENDING

        outcome = status.outcome
        if outcome == ProvisioningOutcome.SUCCEEDED:
            self.attempt.agent_id = status.agent_id
            self.attempt.phone_number = status.phone_number
            await self._succeed()
        elif outcome == ProvisioningOutcome.FAILED:
            await self._fail(status.error_message or "Provisioning failed")
        return self.attempt.outcome

    async def run(self) -> PollResult:
        """Poll on a fixed interval until terminal or out of cycles.

        Running out of cycles is not a failure: the attempt stays pending,
        status stays `provisioning`, and the caller shows "still working".
        Cancel the task running this to stop polling.
        """
        if self.attempt is None:
            raise NavigationError("No provisioning attempt is in progress")

        for _ in range(self.max_cycles):
            if self.attempt.is_terminal:
                break
            await asyncio.sleep(self.poll_interval)
            try:
                outcome = await self.poll()
            except PersistFailure as e:
                logger.warning("Tenant %s: %s", self.tenant_id, e.message)
                continue
            except SessionExpiredError as e:
                # Nothing more can be read until the admin logs in again
                self.controller.last_error = e.message
                logger.warning("Polling stopped for tenant %s: %s", self.tenant_id, e.message)
                break
            if outcome != ProvisioningOutcome.PENDING:
                break

        if self.attempt.is_terminal:
            logger.info(
                "Provisioning for tenant %s finished: %s after %d poll(s)",
                self.tenant_id,
                self.attempt.outcome.value,
                self.attempt.polls,
            )
            return PollResult(self.attempt.outcome, self.attempt)

        logger.info(
            "Provisioning for tenant %s still running after %d poll(s)",
            self.tenant_id,
            self.attempt.polls,
        )
        return PollResult(ProvisioningOutcome.PENDING, self.attempt, still_working=True)

    # ── outcomes ─────────────────────────────────────────────

    async def _succeed(self) -> None:
        c = self.controller
        try:
            snapshot = await c.store.save_step(PROVISIONING_STEP, OnboardingStatus.READY)
            await c.store.mark_complete()
        except PersistFailure as e:
            # Attempt stays pending; the next poll sees success again and retries
            c.last_error = COMPLETION_SAVE_FAILED
            raise PersistFailure(COMPLETION_SAVE_FAILED) from e

        c._record(snapshot, None, OnboardingStatus.READY, PROVISIONING_STEP)
        c.progress = c.progress.model_copy(update={"onboarding_completed": True})
        c.last_error = None
        self.attempt.outcome = ProvisioningOutcome.SUCCEEDED
        logger.info(
            "Tenant %s is live (agent=%s, phone=%s)",
            self.tenant_id,
            self.attempt.agent_id,
            self.attempt.phone_number,
        )

    async def _fail(self, message: str) -> None:
        c = self.controller
        self.attempt.outcome = ProvisioningOutcome.FAILED
        self.attempt.error_message = message
        c.last_error = message
        c._set_local(OnboardingStatus.REVIEW, REVIEW_STEP)
        logger.warning("Provisioning failed for tenant %s: %s", self.tenant_id, message)
        await self._write_revert()

    async def _write_revert(self) -> None:
        try:
            await self.controller.store.save_step(REVIEW_STEP, OnboardingStatus.REVIEW)
        except (PersistFailure, SessionExpiredError) as e:
            # Store still says provisioning; the next load re-sends the revert
            self.revert_pending = True
            logger.warning("Could not record revert to review for tenant %s: %s", self.tenant_id, e.message)
        else:
            self.revert_pending = False

    # ── settling on load ─────────────────────────────────────

    async def settle(self) -> None:
        """Finish writes an earlier attempt could not get through.

        Called with a freshly loaded snapshot. A `ready` tenant without
        the completion marker gets the marker posted; a tenant whose
        failed attempt never recorded its revert goes back to review.
        """
        c = self.controller
        if c.status == OnboardingStatus.READY and not c.progress.onboarding_completed:
            try:
                await c.store.mark_complete()
            except PersistFailure as e:
                c.last_error = COMPLETION_SAVE_FAILED
                logger.warning("Tenant %s: completion marker still missing: %s", self.tenant_id, e.message)
                return
            c.progress = c.progress.model_copy(update={"onboarding_completed": True})
            logger.info("Completion marker recorded for tenant %s", self.tenant_id)
            return

        if not self.revert_pending:
            return
        if c.status != OnboardingStatus.PROVISIONING:
            self.revert_pending = False
            return
        c._set_local(OnboardingStatus.REVIEW, REVIEW_STEP)
        if self.attempt is not None:
            c.last_error = self.attempt.error_message
        await self._write_revert()
