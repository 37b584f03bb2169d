"""Health check endpoints for load balancers and monitoring."""

import os
from datetime import datetime, timezone

import httpx
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from receptionist.config import settings
from receptionist.services.sessions import sessions

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Lightweight health check (no upstream calls)."""
    return {
        "status": "ok",
        "service": "receptionist-onboarding",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": os.getenv("ENVIRONMENT", settings.environment),
        "active_poll_loops": len(sessions.polls),
    }


@router.get("/health/ready")
async def readiness_check():
    """Readiness check: both upstream APIs must answer.

    Any HTTP answer counts as reachable (the probe carries no session).
    """
    checks = {
        "service": "ok",
        "progress_store": "unknown",
        "provisioning_api": "unknown",
    }
    overall_healthy = True

    async with httpx.AsyncClient(timeout=5.0) as client:
        for name, url in (
            ("progress_store", settings.progress_api_url),
            ("provisioning_api", settings.provisioning_api_url),
        ):
            try:
                await client.get(url)
                checks[name] = "ok"
            except httpx.HTTPError as e:
                checks[name] = f"error: {str(e)[:100]}"
                overall_healthy = False

    return JSONResponse(
        status_code=status.HTTP_200_OK if overall_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if overall_healthy else "not_ready", "checks": checks},
    )
