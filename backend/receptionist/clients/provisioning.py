"""Provisioning API client.

  POST /api/tenants/create-ai-agent   → accepted/queued (no client timeout)
  GET  /api/tenants/ai-agent-status   → {status, agentId?, phoneNumber?, errorMessage?}

The vendor work behind these calls (calendar, speech agent, phone
number) may take tens of seconds; polling is the timeout mechanism.
"""

from typing import Any

from pydantic import ValidationError

from receptionist.clients.base import UpstreamClient, UpstreamError
from receptionist.onboarding.errors import ProvisioningFailure
from receptionist.schemas.onboarding import ProvisioningStatus

START_PATH = "/api/tenants/create-ai-agent"
STATUS_PATH = "/api/tenants/ai-agent-status"


class ProvisioningClient(UpstreamClient):

    async def start(self, bundle: dict[str, Any]) -> None:
        try:
            await self._request("POST", START_PATH, json=bundle, timeout=None)
        except UpstreamError as e:
            raise ProvisioningFailure(e.message) from e

    async def get_status(self) -> ProvisioningStatus:
        """Fetch the current status. Raises UpstreamError on transport trouble."""
        body = await self._request("GET", STATUS_PATH)
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            body = body["data"]
        try:
            return ProvisioningStatus.model_validate(body)
        except ValidationError as e:
            raise UpstreamError(f"Malformed provisioning status: {e.error_count()} error(s)", body=body) from e
