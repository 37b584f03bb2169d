"""Explicit admin session context passed into every upstream client.

Lifecycle: acquired on login (built from the caller's bearer token),
dropped as soon as an upstream answers 401/403, never cached beyond
the session boundary. Once dropped, every call fails fast.
"""

from dataclasses import dataclass

from receptionist.onboarding.errors import SessionExpiredError


@dataclass
class SessionContext:
    tenant_id: str
    token: str | None

    @property
    def is_active(self) -> bool:
        return bool(self.token)

    def drop(self) -> None:
        self.token = None

    def headers(self) -> dict[str, str]:
        if not self.token:
            raise SessionExpiredError()
        return {
            "Authorization": f"Bearer {self.token}",
            "X-Tenant-ID": self.tenant_id,
        }
