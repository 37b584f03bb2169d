"""Per-tenant onboarding sessions and the application lifespan.

Each tenant gets one OnboardingSession: its upstream clients, its
controller/orchestrator pair and at most one background poll loop.
The session is also the caller that coalesces provisioning requests:
the orchestrator itself does not deduplicate.

Usage:
    In main.py:

        from receptionist.services.sessions import lifespan
        app = FastAPI(lifespan=lifespan, ...)
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Callable

import httpx
from fastapi import FastAPI

from receptionist.clients.progress import ProgressStoreClient
from receptionist.clients.provisioning import ProvisioningClient
from receptionist.clients.session import SessionContext
from receptionist.clients.staff import StaffScheduleClient
from receptionist.config import settings
from receptionist.onboarding.controller import OnboardingController
from receptionist.onboarding.errors import NavigationError
from receptionist.onboarding.polling import PollRegistry
from receptionist.onboarding.provisioning import PollResult
from receptionist.onboarding.registry import REVIEW_STEP
from receptionist.schemas.onboarding import (
    OnboardingStatus,
    ProvisioningAttempt,
    ProvisioningOutcome,
)

logger = logging.getLogger("receptionist.sessions")

HttpFactory = Callable[[str, float | None], httpx.AsyncClient]


def default_http_factory(base_url: str, timeout: float | None) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=base_url, timeout=timeout)


class OnboardingSession:

    def __init__(
        self,
        context: SessionContext,
        polls: PollRegistry,
        http_factory: HttpFactory = default_http_factory,
    ):
        self.context = context
        self.polls = polls
        self._http = [
            http_factory(settings.progress_api_url, settings.request_timeout_seconds),
            http_factory(settings.provisioning_api_url, None),
            http_factory(settings.staff_api_url, settings.request_timeout_seconds),
        ]
        progress_http, provisioning_http, staff_http = self._http
        self.store = ProgressStoreClient(context, settings.progress_api_url, http=progress_http)
        self.provisioning = ProvisioningClient(context, settings.provisioning_api_url, http=provisioning_http)
        self.staff = StaffScheduleClient(context, settings.staff_api_url, http=staff_http)
        self.controller = OnboardingController(self.store, self.provisioning)
        self.last_result: PollResult | None = None
        self.last_used = time.monotonic()

    @property
    def tenant_id(self) -> str:
        return self.context.tenant_id

    def touch(self) -> None:
        self.last_used = time.monotonic()

    @property
    def idle_seconds(self) -> float:
        return time.monotonic() - self.last_used

    @property
    def busy(self) -> bool:
        """Work is in flight, or a revert still has to reach the store."""
        return (
            self.polling
            or self.controller.is_submitting
            or self.controller.orchestrator.revert_pending
        )

    @property
    def attempt(self) -> ProvisioningAttempt | None:
        return self.controller.orchestrator.attempt

    @property
    def polling(self) -> bool:
        return self.polls.is_running(self.tenant_id)

    @property
    def still_working(self) -> bool:
        return bool(self.last_result and self.last_result.still_working and not self.polling)

    async def load(self) -> None:
        await self.controller.load_progress()
        # A reload while provisioning resumes tracking the running job
        if self.controller.status == OnboardingStatus.PROVISIONING and not self.polling:
            self.controller.orchestrator.resume()
            self._start_polling()

    async def confirm(self) -> ProvisioningAttempt:
        """Confirm the review step and start provisioning, at most once at a time."""
        attempt = self.attempt
        if self.controller.status == OnboardingStatus.READY or self.controller.redirect_required:
            raise NavigationError("Onboarding is already complete")
        if self.polling or (attempt is not None and attempt.outcome == ProvisioningOutcome.PENDING
                            and self.controller.status == OnboardingStatus.PROVISIONING):
            raise NavigationError("Provisioning is already in progress")

        await self.controller.advance(REVIEW_STEP, {})
        self._start_polling()
        return self.attempt

    def resume_polling(self) -> ProvisioningAttempt:
        """Restart the poll loop after a "still working" result."""
        if self.controller.status != OnboardingStatus.PROVISIONING:
            raise NavigationError("Provisioning is not in progress")
        if not self.polling:
            self.controller.orchestrator.resume()
            self._start_polling()
        return self.attempt

    def _start_polling(self) -> None:
        self.last_result = None
        self.polls.start(self.tenant_id, self._poll_until_done())

    async def _poll_until_done(self) -> None:
        try:
            self.last_result = await self.controller.orchestrator.run()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Poll loop crashed for tenant %s", self.tenant_id)

    async def stop_polling(self) -> bool:
        return await self.polls.cancel(self.tenant_id)

    async def aclose(self) -> None:
        await self.stop_polling()
        self.context.drop()
        for http in self._http:
            await http.aclose()


class SessionRegistry:
    """In-process map of tenant id → OnboardingSession.

    Sessions idle for longer than `idle_timeout` seconds are closed the
    next time any tenant acquires one, unless they are busy.
    """

    def __init__(
        self,
        http_factory: HttpFactory = default_http_factory,
        idle_timeout: float | None = None,
    ):
        self.http_factory = http_factory
        self.idle_timeout = settings.session_idle_seconds if idle_timeout is None else idle_timeout
        self.polls = PollRegistry()
        self._sessions: dict[str, OnboardingSession] = {}

    def get(self, tenant_id: str) -> OnboardingSession | None:
        return self._sessions.get(tenant_id)

    async def evict_idle(self) -> list[str]:
        idle = [
            tenant_id
            for tenant_id, session in self._sessions.items()
            if session.idle_seconds >= self.idle_timeout and not session.busy
        ]
        for tenant_id in idle:
            logger.info("Evicting idle onboarding session for tenant %s", tenant_id)
            await self.release(tenant_id)
        return idle

    async def acquire(self, tenant_id: str, token: str) -> OnboardingSession:
        """Return the tenant's session, refreshing its token from the caller."""
        await self.evict_idle()
        session = self._sessions.get(tenant_id)
        if session is None:
            session = OnboardingSession(
                SessionContext(tenant_id=tenant_id, token=token),
                self.polls,
                self.http_factory,
            )
            self._sessions[tenant_id] = session
            logger.info("Onboarding session opened for tenant %s", tenant_id)
        else:
            session.context.token = token
        session.touch()
        return session

    async def release(self, tenant_id: str) -> None:
        session = self._sessions.pop(tenant_id, None)
        if session is not None:
            await session.aclose()
            logger.info("Onboarding session closed for tenant %s", tenant_id)

    async def close_all(self) -> None:
        await self.polls.cancel_all()
        for tenant_id in list(self._sessions):
            await self.release(tenant_id)


sessions = SessionRegistry()


def get_session_registry() -> SessionRegistry:
    return sessions


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan: cancel every poll loop and close clients on shutdown."""
    logger.info("Onboarding service started")
    try:
        yield
    finally:
        await sessions.close_all()
        logger.info("Onboarding sessions closed")
