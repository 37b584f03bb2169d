"""Progress Store client (the remote record of a tenant's onboarding).

Endpoints (relative to settings.progress_api_url):
  GET  /api/receptionist/onboarding/progress  → {"progress": {...}}
  POST /api/receptionist/onboarding/step      → {step, status, data?}
  POST /api/receptionist/onboarding/complete  → marks onboardingCompleted

The store is treated as a versioned document: most recent write wins.
"""

import logging
from typing import Any

from pydantic import ValidationError

from receptionist.clients.base import UpstreamClient, UpstreamError
from receptionist.onboarding.errors import LoadFailure, PersistFailure
from receptionist.schemas.onboarding import (
    OnboardingProgress,
    OnboardingStatus,
    StepCompletion,
)

logger = logging.getLogger(__name__)

PROGRESS_PATH = "/api/receptionist/onboarding/progress"
STEP_PATH = "/api/receptionist/onboarding/step"
COMPLETE_PATH = "/api/receptionist/onboarding/complete"


def parse_progress(body: Any) -> OnboardingProgress:
    """Parse a snapshot from either `{"progress": {...}}` or a bare document."""
    if isinstance(body, dict) and isinstance(body.get("progress"), dict):
        body = body["progress"]
    if not isinstance(body, dict):
        raise LoadFailure("Progress Store returned a malformed snapshot")
    try:
        return OnboardingProgress.model_validate(body)
    except ValidationError as e:
        logger.warning("Malformed progress snapshot: %s", e)
        raise LoadFailure(f"Progress Store returned a malformed snapshot: {e.error_count()} error(s)") from e


class ProgressStoreClient(UpstreamClient):

    async def get_progress(self) -> OnboardingProgress:
        try:
            body = await self._request("GET", PROGRESS_PATH)
        except UpstreamError as e:
            raise LoadFailure(f"Could not load onboarding progress: {e.message}") from e
        return parse_progress(body)

    async def save_step(
        self,
        step: int,
        status: OnboardingStatus,
        data: dict[str, Any] | None = None,
    ) -> OnboardingProgress:
        """Persist a step completion and return the updated snapshot."""
        payload = StepCompletion(step=step, status=status, data=data).model_dump(
            mode="json", by_alias=True, exclude_none=True
        )
        try:
            body = await self._request("POST", STEP_PATH, json=payload)
        except UpstreamError as e:
            raise PersistFailure(f"Failed to save progress: {e.message}") from e

        if isinstance(body, dict) and isinstance(body.get("progress"), dict):
            try:
                return parse_progress(body)
            except LoadFailure as e:
                raise PersistFailure(e.message) from e

        # Store acknowledged without echoing the document; read it back.
        try:
            return await self.get_progress()
        except LoadFailure as e:
            raise PersistFailure(f"Saved, but could not re-read progress: {e.message}") from e

    async def mark_complete(self) -> None:
        try:
            await self._request("POST", COMPLETE_PATH, json={})
        except UpstreamError as e:
            raise PersistFailure(f"Failed to save completion status: {e.message}") from e
