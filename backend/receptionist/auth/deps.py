"""FastAPI dependencies for the tenant-scoped onboarding routes.

Dependencies:
  get_session_context     → SessionContext built by SessionMiddleware (or 401)
  get_onboarding_session  → the tenant's OnboardingSession from the registry
"""

from fastapi import Depends, HTTPException, Request, status

from receptionist.clients.session import SessionContext
from receptionist.services.sessions import (
    OnboardingSession,
    SessionRegistry,
    get_session_registry,
)


async def get_session_context(request: Request) -> SessionContext:
    context = getattr(request.state, "session_context", None)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated for a tenant",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return context


async def get_onboarding_session(
    context: SessionContext = Depends(get_session_context),
    registry: SessionRegistry = Depends(get_session_registry),
) -> OnboardingSession:
    return await registry.acquire(context.tenant_id, context.token)
