"""Onboarding workflow — 7-step setup ending in AI receptionist provisioning.

Endpoints:
  GET    /api/onboarding/                 → current view (loads on first access)
  DELETE /api/onboarding/                 → leave the workflow (stops polling)
  POST   /api/onboarding/step/{step}      → validate + persist a step
  POST   /api/onboarding/back             → pointer back one step
  POST   /api/onboarding/jump/{step}      → re-open an earlier step for editing
  GET    /api/onboarding/review           → validation gate result
  POST   /api/onboarding/provision        → confirm review, start provisioning
  GET    /api/onboarding/provision        → latest provisioning attempt
  POST   /api/onboarding/provision/poll   → resume polling after "still working"
  DELETE /api/onboarding/provision        → cancel the poll loop
  PUT    /api/onboarding/staff/{id}/hours    → staff working hours
  PUT    /api/onboarding/staff/{id}/timeoff  → staff time off

Design:
  - The controller owns every transition; handlers only translate HTTP.
  - Completed tenants get a redirect instead of a step.
  - Submitting the review step is the same as confirming provisioning.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, status

from receptionist.auth.deps import get_onboarding_session
from receptionist.config import settings
from receptionist.onboarding import gate
from receptionist.onboarding.errors import SubmissionInProgressError
from receptionist.onboarding.registry import REVIEW_STEP, STEPS, TOTAL_STEPS
from receptionist.schemas.onboarding import (
    AttemptView,
    OnboardingStatus,
    OnboardingView,
    ReviewView,
    StepSummary,
)
from receptionist.schemas.staff import StaffHoursUpdate, StaffTimeOffUpdate
from receptionist.services.sessions import (
    OnboardingSession,
    SessionRegistry,
    get_session_registry,
)

router = APIRouter()


# ── Helpers ──────────────────────────────────────────────────

def _make_view(session: OnboardingSession) -> OnboardingView:
    c = session.controller
    progress = c.progress
    if c.redirect_required:
        return OnboardingView(
            current_step_id=None,
            status=progress.status,
            saved_data_so_far={},
            is_submitting=False,
            completed_steps=progress.completed_steps,
            total_steps=TOTAL_STEPS,
            progress_percent=100,
            redirect=settings.completion_redirect,
        )

    current = c.current_step
    if c.status == OnboardingStatus.READY:
        percent = 100
    else:
        percent = round((current - 1) / TOTAL_STEPS * 100)
    return OnboardingView(
        current_step_id=current,
        status=progress.status,
        saved_data_so_far=c.saved_data_so_far,
        is_submitting=c.is_submitting,
        completed_steps=progress.completed_steps,
        total_steps=TOTAL_STEPS,
        progress_percent=percent,
        steps=[
            StepSummary(
                id=s.id,
                key=s.key,
                title=s.title,
                description=s.description,
                completed=s.id < current,
                current=s.id == current,
            )
            for s in STEPS
        ],
    )


def _make_attempt_view(session: OnboardingSession) -> AttemptView:
    return AttemptView(
        attempt=session.attempt,
        status=session.controller.status or OnboardingStatus.NOT_STARTED,
        polling=session.polling,
        still_working=session.still_working,
    )


async def _ensure_loaded(session: OnboardingSession) -> None:
    if not session.controller.loaded:
        await session.load()


# ── Progress & navigation ────────────────────────────────────

@router.get("/", response_model=OnboardingView)
async def get_onboarding(
    reload: bool = Query(False),
    session: OnboardingSession = Depends(get_onboarding_session),
):
    """Current step, saved data and status. Pass ?reload=true to re-fetch."""
    if reload:
        if session.controller.is_submitting:
            raise SubmissionInProgressError()
        await session.load()
    else:
        await _ensure_loaded(session)
    return _make_view(session)


@router.delete("/", status_code=status.HTTP_204_NO_CONTENT)
async def leave_onboarding(
    session: OnboardingSession = Depends(get_onboarding_session),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """User navigated away: stop polling and drop the in-process session."""
    await registry.release(session.tenant_id)


@router.post("/step/{step}", response_model=OnboardingView)
async def submit_step(
    step: int,
    payload: dict[str, Any] | None = Body(default=None),
    session: OnboardingSession = Depends(get_onboarding_session),
):
    await _ensure_loaded(session)
    if step == REVIEW_STEP and session.controller.current_step == REVIEW_STEP:
        await session.confirm()
    else:
        await session.controller.advance(step, payload)
    return _make_view(session)


@router.post("/back", response_model=OnboardingView)
async def go_back(session: OnboardingSession = Depends(get_onboarding_session)):
    await _ensure_loaded(session)
    session.controller.go_back()
    return _make_view(session)


@router.post("/jump/{step}", response_model=OnboardingView)
async def jump_to(step: int, session: OnboardingSession = Depends(get_onboarding_session)):
    """Edit affordance on the review screen."""
    await _ensure_loaded(session)
    session.controller.jump_to(step)
    return _make_view(session)


@router.get("/review", response_model=ReviewView)
async def review(session: OnboardingSession = Depends(get_onboarding_session)):
    await _ensure_loaded(session)
    violations = gate.check(session.controller.saved_data_so_far)
    return ReviewView(
        violations=violations,
        can_confirm=not violations and session.controller.current_step == REVIEW_STEP,
    )


# ── Provisioning ─────────────────────────────────────────────

@router.post(
    "/provision",
    response_model=AttemptView,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_provisioning(session: OnboardingSession = Depends(get_onboarding_session)):
    await _ensure_loaded(session)
    await session.confirm()
    return _make_attempt_view(session)


@router.get("/provision", response_model=AttemptView)
async def provisioning_status(session: OnboardingSession = Depends(get_onboarding_session)):
    await _ensure_loaded(session)
    return _make_attempt_view(session)


@router.post("/provision/poll", response_model=AttemptView)
async def resume_polling(session: OnboardingSession = Depends(get_onboarding_session)):
    await _ensure_loaded(session)
    session.resume_polling()
    return _make_attempt_view(session)


@router.delete("/provision", response_model=AttemptView)
async def cancel_polling(session: OnboardingSession = Depends(get_onboarding_session)):
    await session.stop_polling()
    return _make_attempt_view(session)


# ── Staff schedule ───────────────────────────────────────────

@router.put("/staff/{staff_id}/hours", status_code=status.HTTP_204_NO_CONTENT)
async def set_staff_hours(
    staff_id: str,
    body: StaffHoursUpdate,
    session: OnboardingSession = Depends(get_onboarding_session),
):
    await session.staff.set_hours(staff_id, body.hours)


@router.put("/staff/{staff_id}/timeoff", status_code=status.HTTP_204_NO_CONTENT)
async def set_staff_time_off(
    staff_id: str,
    body: StaffTimeOffUpdate,
    session: OnboardingSession = Depends(get_onboarding_session),
):
    await session.staff.set_time_off(staff_id, body.ranges)
