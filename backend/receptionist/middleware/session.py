"""Session middleware — builds the admin session context from the JWT.

Flow:
  1. Extract Bearer token from Authorization header
  2. Decode JWT → get `tenant_id` claim
  3. Attach SessionContext(tenant_id, token) to request.state
  4. Tenant-scoped routes read it through the get_session_context dependency

The token is forwarded verbatim to the upstream APIs; it is never
stored beyond the in-process session it belongs to.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from receptionist.auth.jwt import decode_token
from receptionist.clients.session import SessionContext

# Routes that never require auth
_PUBLIC_PREFIXES = ("/docs", "/openapi.json", "/health")


class SessionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        auth_header = request.headers.get("authorization", "")
        path = request.url.path
        request.state.session_context = None

        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
            payload = decode_token(token)

            if not payload or payload.get("type") != "access":
                if not any(path.startswith(p) for p in _PUBLIC_PREFIXES):
                    return JSONResponse(
                        status_code=401,
                        content={"error": {"code": "HTTP_401", "message": "Token expired or invalid"}},
                        headers={"WWW-Authenticate": "Bearer"},
                    )
            elif payload.get("tenant_id"):
                request.state.session_context = SessionContext(
                    tenant_id=str(payload["tenant_id"]),
                    token=token,
                )

        return await call_next(request)
