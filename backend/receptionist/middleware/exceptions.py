"""Exception handlers for the onboarding API.

Every error, whichever layer raised it, renders as:
    {
        "error": {
            "code": "NAVIGATION_ERROR",
            "message": "Cannot submit step 3 while step 1 is active",
            "details": {...}  // only when there is something to highlight
        }
    }

Request-shape errors use the same `fields` mapping as step validation
failures, so the UI highlights both the same way.
"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from receptionist.onboarding.errors import OnboardingError

logger = logging.getLogger(__name__)


def create_error_response(
    status_code: int,
    message: str,
    error_code: str,
    details: dict | None = None,
    headers: dict | None = None,
) -> JSONResponse:
    error = {"code": error_code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error}, headers=headers)


def _field_path(loc: tuple) -> str:
    # ("body", "hours", 0, "start") -> "hours.0.start"
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts) or "payload"


async def onboarding_exception_handler(request: Request, exc: OnboardingError) -> JSONResponse:
    """Workflow errors carry their own status and code."""
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s (%s)",
            request.method,
            request.url.path,
            exc.message,
            exc.error_code,
            extra={"error_code": exc.error_code, "path": request.url.path},
        )
    else:
        logger.warning(
            "%s %s rejected: %s (%s)",
            request.method,
            request.url.path,
            exc.message,
            exc.error_code,
            extra={"error_code": exc.error_code, "path": request.url.path},
        )

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return create_error_response(
        exc.status_code, exc.message, exc.error_code, details=exc.details, headers=headers
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("HTTP %d on %s: %s", exc.status_code, request.url.path, exc.detail)
    return create_error_response(
        exc.status_code,
        str(exc.detail),
        f"HTTP_{exc.status_code}",
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError | ValidationError,
) -> JSONResponse:
    """Malformed request bodies (staff schedule, path params)."""
    fields: dict[str, str] = {}
    for error in exc.errors():
        fields.setdefault(_field_path(tuple(error["loc"])), error["msg"])

    logger.warning(
        "Invalid request on %s: %s",
        request.url.path,
        ", ".join(fields),
        extra={"path": request.url.path, "method": request.method},
    )
    return create_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        "VALIDATION_ERROR",
        details={"fields": fields},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        "INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(OnboardingError, onboarding_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
