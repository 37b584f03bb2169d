from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from receptionist.config import settings
from receptionist.middleware.exceptions import register_exception_handlers
from receptionist.middleware.session import SessionMiddleware
from receptionist.routers import health, onboarding
from receptionist.services.sessions import lifespan

app = FastAPI(
    title="Receptionist Onboarding",
    description="Tenant onboarding and AI receptionist provisioning workflow",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware (outermost first) ─────────────────────────────
# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Session context (innermost - reads the bearer token)
app.add_middleware(SessionMiddleware)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(onboarding.router, prefix="/api/onboarding", tags=["onboarding"])
