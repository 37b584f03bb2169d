"""Pytest configuration and fixtures for the onboarding tests.

Upstream services (Progress Store, provisioning API, staff schedule API)
are replaced by one in-memory FakeUpstream served through
httpx.MockTransport, so no network is involved.
"""

import copy
import json
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from receptionist.auth.jwt import create_access_token
from receptionist.clients.progress import ProgressStoreClient
from receptionist.clients.provisioning import ProvisioningClient
from receptionist.clients.session import SessionContext
from receptionist.clients.staff import StaffScheduleClient
from receptionist.config import settings
from receptionist.main import app
from receptionist.onboarding.controller import OnboardingController
from receptionist.services.sessions import SessionRegistry, get_session_registry

TENANT_ID = "tenant_abc123"


# ── Step payloads ────────────────────────────────────────────

BUSINESS_INFO = {
    "name": "Elite Salon",
    "email": "a@b.com",
    "address": "12 Main Street",
    "city": "Austin",
    "state": "TX",
    "zipCode": "73301",
    "phoneAreaCode": "512",
    "timezone": "America/Chicago",
}

SERVICES = {
    "services": [
        {"id": "svc-cut", "name": "Haircut", "durationMin": 30, "price": 40},
        {"id": "svc-color", "name": "Color", "durationMin": 90},
    ],
    "operatingHours": {
        "monday": {"enabled": True, "start": "09:00", "end": "17:00"},
        "sunday": {"enabled": False, "start": "00:00", "end": "00:00"},
    },
}

STAFF = {
    "staffMembers": [
        {"id": "st-1", "name": "Jamie Lee", "email": "jamie@elite.com", "services": ["svc-cut"]},
    ],
}

CALENDAR = {"calendarConnected": True, "calendarEmail": "owner@elite.com"}

AI_SETTINGS = {"voiceChoice": "Anna", "greetingMessage": "Thanks for calling Elite Salon!"}

STEP_PAYLOADS = {1: BUSINESS_INFO, 2: SERVICES, 3: STAFF, 4: CALENDAR, 5: AI_SETTINGS}

CONTENT_STATUSES = {1: "business_info", 2: "services", 3: "staff", 4: "calendar", 5: "ai_settings"}


def full_saved_data() -> dict:
    data = {}
    for payload in STEP_PAYLOADS.values():
        data.update(copy.deepcopy(payload))
    return data


# ── Fake upstream ────────────────────────────────────────────

class FakeUpstream:
    """In-memory Progress Store + provisioning API + staff schedule API."""

    def __init__(self):
        self.progress = {
            "currentStep": 1,
            "status": "not_started",
            "completedSteps": 0,
            "totalSteps": 7,
            "onboardingCompleted": False,
            "savedData": {},
        }
        self.requests: list[tuple[str, str, dict | None]] = []
        self.echo_progress = True
        self.fail_load = False
        self.fail_writes = False
        self.fail_complete = False
        self.auth_status: int | None = None
        self.start_status = 202
        self.start_body: dict = {"success": True}
        self.statuses: list[dict] = [{"status": "pending"}]
        self.bundles: list[dict] = []
        self.staff_calls: list[tuple[str, dict]] = []
        self.headers: list[httpx.Headers] = []

    def set_progress(self, **fields) -> None:
        self.progress.update(fields)

    def calls(self, method: str, path: str) -> list[dict | None]:
        return [body for m, p, body in self.requests if m == method and p == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        path = request.url.path
        self.requests.append((request.method, path, body))
        self.headers.append(request.headers)

        if self.auth_status:
            return httpx.Response(self.auth_status, json={"message": "Unauthorized"})

        if path == "/api/receptionist/onboarding/progress":
            if self.fail_load:
                return httpx.Response(503, json={"message": "store unavailable"})
            return httpx.Response(200, json={"success": True, "progress": self.progress})

        if path == "/api/receptionist/onboarding/step":
            if self.fail_writes:
                return httpx.Response(500, json={"message": "write rejected"})
            self._apply_step(body)
            if self.echo_progress:
                return httpx.Response(200, json={"success": True, "progress": self.progress})
            return httpx.Response(200, json={"success": True})

        if path == "/api/receptionist/onboarding/complete":
            if self.fail_complete:
                return httpx.Response(500, json={"message": "complete rejected"})
            self.progress["onboardingCompleted"] = True
            return httpx.Response(200, json={"success": True})

        if path == "/api/tenants/create-ai-agent":
            self.bundles.append(body)
            return httpx.Response(self.start_status, json=self.start_body)

        if path == "/api/tenants/ai-agent-status":
            status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            if status.get("http") == 500:
                return httpx.Response(500, json={"message": "status unavailable"})
            return httpx.Response(200, json=status)

        if path in ("/staff/hours", "/staff/timeoff"):
            if self.fail_writes:
                return httpx.Response(500, json={"message": "schedule rejected"})
            self.staff_calls.append((path, body))
            return httpx.Response(200, json={"success": True})

        return httpx.Response(404, json={"message": f"no route {path}"})

    def _apply_step(self, body: dict) -> None:
        step, status = body["step"], body["status"]
        if body.get("data"):
            self.progress["savedData"].update(body["data"])
        self.progress["status"] = status
        if status in CONTENT_STATUSES.values():
            self.progress["currentStep"] = min(step + 1, 7)
            self.progress["completedSteps"] = max(self.progress["completedSteps"], step)
        else:
            self.progress["currentStep"] = step
            if status == "review":
                self.progress["completedSteps"] = max(self.progress["completedSteps"], 5)


# ── Library fixtures ─────────────────────────────────────────

@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def session_context() -> SessionContext:
    return SessionContext(tenant_id=TENANT_ID, token="admin-token")


@pytest_asyncio.fixture
async def http(upstream: FakeUpstream) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(upstream.handler),
        base_url="http://upstream.test",
    ) as client:
        yield client


@pytest.fixture
def store(session_context, http) -> ProgressStoreClient:
    return ProgressStoreClient(session_context, "http://upstream.test", http=http)


@pytest.fixture
def provisioning(session_context, http) -> ProvisioningClient:
    return ProvisioningClient(session_context, "http://upstream.test", http=http)


@pytest.fixture
def staff_client(session_context, http) -> StaffScheduleClient:
    return StaffScheduleClient(session_context, "http://upstream.test", http=http)


@pytest.fixture
def controller(store, provisioning) -> OnboardingController:
    return OnboardingController(store, provisioning, poll_interval=0, max_poll_cycles=5)


@pytest_asyncio.fixture
async def at_review(controller: OnboardingController, upstream: FakeUpstream) -> OnboardingController:
    """Controller loaded with steps 1-5 already saved and sitting on review."""
    upstream.set_progress(
        currentStep=6, status="ai_settings", completedSteps=5, savedData=full_saved_data()
    )
    await controller.load_progress()
    return controller


# ── HTTP fixtures ────────────────────────────────────────────

@pytest_asyncio.fixture
async def registry(upstream: FakeUpstream, monkeypatch) -> AsyncGenerator[SessionRegistry, None]:
    monkeypatch.setattr(settings, "poll_interval_seconds", 0)
    monkeypatch.setattr(settings, "max_poll_cycles", 5)

    def http_factory(base_url: str, timeout: float | None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(upstream.handler),
            base_url=base_url,
            timeout=timeout,
        )

    reg = SessionRegistry(http_factory=http_factory)
    yield reg
    await reg.close_all()


@pytest_asyncio.fixture
async def client(registry: SessionRegistry) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_session_registry] = lambda: registry

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict:
    token = create_access_token(user_id="user-1", tenant_id=TENANT_ID)
    return {"Authorization": f"Bearer {token}"}


# ── Test Markers ─────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP surface tests")
    config.addinivalue_line("markers", "provisioning: Provisioning lifecycle tests")
