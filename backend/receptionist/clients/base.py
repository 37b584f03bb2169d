"""Shared httpx plumbing for the upstream API clients."""

import logging
from typing import Any

import httpx

from receptionist.clients.session import SessionContext
from receptionist.onboarding.errors import SessionExpiredError

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """Transport failure or non-2xx answer from an upstream API."""

    def __init__(self, message: str, status_code: int | None = None, body: Any = None):
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(message)


def error_message(body: Any, default: str) -> str:
    """Pull a human-readable message out of an upstream error body."""
    if isinstance(body, dict):
        for key in ("errorMessage", "message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and isinstance(value.get("message"), str):
                return value["message"]
    if isinstance(body, str) and body:
        return body
    return default


class UpstreamClient:
    """Thin async wrapper around httpx that applies the session context."""

    def __init__(
        self,
        session: SessionContext,
        base_url: str,
        timeout: float | None = None,
        http: httpx.AsyncClient | None = None,
    ):
        self.session = session
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = self.session.headers()
        try:
            response = await self._http.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise UpstreamError(f"Could not reach {path}: {e}") from e

        if response.status_code in (401, 403):
            logger.info(
                "Upstream rejected session for tenant %s (HTTP %d); dropping token",
                self.session.tenant_id,
                response.status_code,
            )
            self.session.drop()
            raise SessionExpiredError()

        body = _json_or_text(response)
        if response.is_error:
            raise UpstreamError(
                error_message(body, f"HTTP {response.status_code} from {path}"),
                status_code=response.status_code,
                body=body,
            )
        return body


def _json_or_text(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
