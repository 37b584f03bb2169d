"""Onboarding controller tests: loading, step transitions and navigation."""

import pytest

from receptionist.clients.progress import COMPLETE_PATH, PROGRESS_PATH, STEP_PATH
from receptionist.onboarding.errors import (
    LoadFailure,
    NavigationError,
    PersistFailure,
    SessionExpiredError,
    SubmissionInProgressError,
    ValidationFailure,
)
from receptionist.onboarding.provisioning import COMPLETION_SAVE_FAILED
from receptionist.schemas.onboarding import OnboardingStatus

from conftest import (
    BUSINESS_INFO,
    CONTENT_STATUSES,
    SERVICES,
    STAFF,
    STEP_PAYLOADS,
    full_saved_data,
)


@pytest.mark.unit
@pytest.mark.asyncio
class TestLoadProgress:

    async def test_fresh_tenant_starts_on_step_one(self, controller, upstream):
        progress = await controller.load_progress()
        assert controller.current_step == 1
        assert controller.status == OnboardingStatus.NOT_STARTED
        assert progress.saved_data == {}
        assert controller.saved_data_so_far == {}
        assert upstream.calls("GET", PROGRESS_PATH) == [None]

    async def test_resumes_on_stored_step(self, controller, upstream):
        upstream.set_progress(currentStep=4, status="staff", completedSteps=3)
        await controller.load_progress()
        assert controller.current_step == 4
        assert controller.status == OnboardingStatus.STAFF

    async def test_load_failure_renders_nothing(self, controller, upstream):
        upstream.fail_load = True
        with pytest.raises(LoadFailure):
            await controller.load_progress()
        assert controller.current_step is None
        assert controller.progress is None
        assert not controller.loaded

    async def test_failed_reload_clears_previous_snapshot(self, controller, upstream):
        upstream.set_progress(currentStep=3, status="services")
        await controller.load_progress()
        upstream.fail_load = True
        with pytest.raises(LoadFailure):
            await controller.load_progress()
        assert controller.current_step is None

    @pytest.mark.parametrize(
        "fields",
        [
            {"currentStep": 9},
            {"currentStep": 0},
            {"completedSteps": 8},
            {"status": "launched"},
        ],
    )
    async def test_malformed_snapshot(self, controller, upstream, fields):
        upstream.set_progress(**fields)
        with pytest.raises(LoadFailure):
            await controller.load_progress()
        assert controller.current_step is None

    async def test_completed_tenant_is_redirected(self, controller, upstream):
        upstream.set_progress(
            currentStep=7, status="ready", onboardingCompleted=True, savedData=full_saved_data()
        )
        await controller.load_progress()
        assert controller.redirect_required
        assert controller.current_step is None
        assert controller.is_terminal

    async def test_ready_without_completion_marker_is_finished_on_load(self, controller, upstream):
        upstream.set_progress(currentStep=7, status="ready", savedData=full_saved_data())
        await controller.load_progress()

        assert len(upstream.calls("POST", COMPLETE_PATH)) == 1
        assert upstream.progress["onboardingCompleted"] is True
        assert controller.redirect_required
        assert controller.current_step is None
        assert upstream.calls("POST", STEP_PATH) == []

    async def test_missing_completion_marker_is_retried_on_next_load(self, controller, upstream):
        upstream.set_progress(currentStep=7, status="ready", savedData=full_saved_data())
        upstream.fail_complete = True
        await controller.load_progress()
        assert not controller.redirect_required
        assert controller.current_step == 7
        assert controller.last_error == COMPLETION_SAVE_FAILED

        upstream.fail_complete = False
        await controller.load_progress()
        assert controller.redirect_required
        assert controller.last_error is None

    async def test_provisioning_resolves_to_last_step(self, controller, upstream):
        upstream.set_progress(currentStep=7, status="provisioning", savedData=full_saved_data())
        await controller.load_progress()
        assert controller.current_step == 7

    async def test_failed_status_resolves_to_review(self, controller, upstream):
        upstream.set_progress(currentStep=7, status="failed", savedData=full_saved_data())
        await controller.load_progress()
        assert controller.current_step == 6

    async def test_stale_provisioning_pointer_resolves_to_review(self, controller, upstream):
        upstream.set_progress(currentStep=7, status="review", savedData=full_saved_data())
        await controller.load_progress()
        assert controller.current_step == 6

    async def test_rejected_session_drops_token(self, controller, upstream, session_context):
        upstream.auth_status = 401
        with pytest.raises(SessionExpiredError):
            await controller.load_progress()
        assert session_context.token is None
        assert not session_context.is_active

        # No further upstream call is made without a token
        upstream.auth_status = None
        sent = len(upstream.requests)
        with pytest.raises(SessionExpiredError):
            await controller.load_progress()
        assert len(upstream.requests) == sent


@pytest.mark.unit
@pytest.mark.asyncio
class TestAdvance:

    async def test_first_step_with_required_fields_only(self, controller, upstream):
        await controller.load_progress()
        progress = await controller.advance(1, {"name": "Elite Salon", "email": "a@b.com"})

        assert controller.current_step == 2
        assert progress.status == OnboardingStatus.BUSINESS_INFO
        assert progress.saved_data == {"name": "Elite Salon", "email": "a@b.com"}
        assert upstream.calls("POST", STEP_PATH) == [
            {
                "step": 1,
                "status": "business_info",
                "data": {"name": "Elite Salon", "email": "a@b.com"},
            }
        ]

    async def test_walk_through_content_steps(self, controller, upstream):
        await controller.load_progress()
        for step_id, payload in STEP_PAYLOADS.items():
            await controller.advance(step_id, payload)
            assert controller.current_step == step_id + 1
            assert controller.status.value == CONTENT_STATUSES[step_id]

        assert controller.current_step == 6
        assert controller.saved_data_so_far == full_saved_data()
        assert upstream.progress["savedData"] == full_saved_data()

    async def test_edit_earlier_step_keeps_later_data(self, controller, upstream):
        saved = {**BUSINESS_INFO, **SERVICES, **STAFF}
        upstream.set_progress(currentStep=4, status="staff", completedSteps=3, savedData=saved)
        await controller.load_progress()

        controller.jump_to(2)
        assert controller.current_step == 2
        # Pointer moved, status did not
        assert controller.status == OnboardingStatus.STAFF

        services = {
            "services": SERVICES["services"] + [
                {"id": "svc-trim", "name": "Beard trim", "durationMin": 15},
            ],
        }
        progress = await controller.advance(2, services)

        assert controller.current_step == 3
        assert progress.status == OnboardingStatus.SERVICES
        assert progress.saved_data["name"] == "Elite Salon"
        assert progress.saved_data["staffMembers"] == STAFF["staffMembers"]
        assert progress.saved_data["operatingHours"] == SERVICES["operatingHours"]
        assert [s["id"] for s in progress.saved_data["services"]] == [
            "svc-cut", "svc-color", "svc-trim",
        ]

    async def test_cannot_skip_ahead(self, controller, upstream):
        await controller.load_progress()
        with pytest.raises(NavigationError):
            await controller.advance(2, SERVICES)
        assert controller.current_step == 1
        assert upstream.calls("POST", STEP_PATH) == []

    async def test_invalid_payload_is_not_persisted(self, controller, upstream):
        await controller.load_progress()
        with pytest.raises(ValidationFailure) as exc_info:
            await controller.advance(1, {"name": "E"})

        err = exc_info.value
        assert err.step == 1
        assert set(err.fields) == {"name", "email"}
        assert err.details["fields"]["email"] == "Field required"
        assert controller.current_step == 1
        assert upstream.calls("POST", STEP_PATH) == []

    async def test_field_validator_message_is_clean(self, controller):
        await controller.load_progress()
        with pytest.raises(ValidationFailure) as exc_info:
            await controller.advance(1, {"name": "Elite Salon", "email": "not-an-email"})
        assert exc_info.value.fields == {"email": "Please enter a valid email address"}

    async def test_optional_fields_are_shape_checked(self, controller):
        await controller.load_progress()
        payload = {**BUSINESS_INFO, "zipCode": "7330", "phoneAreaCode": "51"}
        with pytest.raises(ValidationFailure) as exc_info:
            await controller.advance(1, payload)
        assert set(exc_info.value.fields) == {"zipCode", "phoneAreaCode"}

    async def test_empty_service_list(self, controller, upstream):
        upstream.set_progress(currentStep=2, status="business_info", savedData=dict(BUSINESS_INFO))
        await controller.load_progress()
        with pytest.raises(ValidationFailure) as exc_info:
            await controller.advance(2, {"services": []})
        assert exc_info.value.fields == {"payload": "Add at least one service"}

    async def test_staff_must_use_saved_services(self, controller, upstream):
        upstream.set_progress(
            currentStep=3, status="services", savedData={**BUSINESS_INFO, **SERVICES}
        )
        await controller.load_progress()
        staff = {
            "staffMembers": [
                {"id": "st-1", "name": "Jamie Lee", "email": "jamie@elite.com", "services": ["svc-x"]},
            ],
        }
        with pytest.raises(ValidationFailure) as exc_info:
            await controller.advance(3, staff)
        assert "staffMembers.0.services" in exc_info.value.fields
        assert upstream.calls("POST", STEP_PATH) == []

    async def test_malformed_saved_services_offer_nothing(self, controller, upstream):
        upstream.set_progress(
            currentStep=3, status="services", savedData={**BUSINESS_INFO, "services": ["svc-cut", 7]}
        )
        await controller.load_progress()
        with pytest.raises(ValidationFailure) as exc_info:
            await controller.advance(3, STAFF)
        assert exc_info.value.fields == {"staffMembers.0.services": "Unknown service(s): svc-cut"}

    async def test_pointer_waits_for_store(self, controller, upstream):
        await controller.load_progress()
        upstream.fail_writes = True
        with pytest.raises(PersistFailure):
            await controller.advance(1, BUSINESS_INFO)

        assert controller.current_step == 1
        assert controller.status == OnboardingStatus.NOT_STARTED
        assert controller.saved_data_so_far == {}
        assert not controller.is_submitting

    async def test_store_without_echo_is_re_read(self, controller, upstream):
        upstream.echo_progress = False
        await controller.load_progress()
        await controller.advance(1, BUSINESS_INFO)

        assert controller.current_step == 2
        assert len(upstream.calls("GET", PROGRESS_PATH)) == 2

    async def test_second_submission_is_rejected(self, controller):
        await controller.load_progress()
        controller.is_submitting = True
        with pytest.raises(SubmissionInProgressError):
            await controller.advance(1, BUSINESS_INFO)

    async def test_review_rejects_incomplete_bundle(self, controller, upstream):
        data = full_saved_data()
        del data["staffMembers"]
        upstream.set_progress(currentStep=6, status="ai_settings", savedData=data)
        await controller.load_progress()

        with pytest.raises(ValidationFailure) as exc_info:
            await controller.advance(6, {})
        assert exc_info.value.violations == ["At least one staff member is required"]
        assert controller.status == OnboardingStatus.AI_SETTINGS
        assert upstream.bundles == []

    async def test_requires_loaded_progress(self, controller):
        with pytest.raises(NavigationError):
            await controller.advance(1, BUSINESS_INFO)


@pytest.mark.unit
@pytest.mark.asyncio
class TestNavigation:

    async def test_go_back_is_local(self, controller, upstream):
        upstream.set_progress(currentStep=3, status="services", savedData={**BUSINESS_INFO, **SERVICES})
        await controller.load_progress()
        sent = len(upstream.requests)

        assert controller.go_back() == 2
        assert controller.go_back() == 1
        assert controller.go_back() == 1
        assert len(upstream.requests) == sent
        assert controller.saved_data_so_far == {**BUSINESS_INFO, **SERVICES}

    async def test_jump_only_to_reached_steps(self, controller, upstream):
        upstream.set_progress(currentStep=3, status="services")
        await controller.load_progress()

        with pytest.raises(NavigationError):
            controller.jump_to(4)
        with pytest.raises(NavigationError):
            controller.jump_to(0)
        assert controller.current_step == 3
        assert controller.jump_to(1) == 1

    async def test_no_navigation_while_provisioning(self, controller, upstream):
        upstream.set_progress(currentStep=7, status="provisioning", savedData=full_saved_data())
        await controller.load_progress()

        with pytest.raises(NavigationError):
            controller.go_back()
        with pytest.raises(NavigationError):
            controller.jump_to(2)
        with pytest.raises(NavigationError):
            await controller.advance(7, {})
        assert controller.current_step == 7

    async def test_ready_is_terminal(self, controller, upstream):
        upstream.fail_complete = True
        upstream.set_progress(currentStep=7, status="ready", savedData=full_saved_data())
        await controller.load_progress()
        assert controller.is_terminal
        assert not controller.redirect_required

        with pytest.raises(NavigationError):
            controller.go_back()
        with pytest.raises(NavigationError):
            controller.jump_to(1)
        with pytest.raises(NavigationError):
            await controller.advance(7, {})
        assert controller.current_step == 7
        assert upstream.calls("POST", STEP_PATH) == []
        # Only the load tried to record completion
        assert len(upstream.calls("POST", COMPLETE_PATH)) == 1

    async def test_redirected_tenant_cannot_navigate(self, controller, upstream):
        upstream.set_progress(currentStep=7, status="ready", onboardingCompleted=True)
        await controller.load_progress()
        with pytest.raises(NavigationError, match="already complete"):
            controller.jump_to(1)
        with pytest.raises(NavigationError, match="already complete"):
            await controller.advance(1, BUSINESS_INFO)

    async def test_saved_data_copy_is_detached(self, controller, upstream):
        upstream.set_progress(currentStep=3, status="services", savedData={**BUSINESS_INFO, **SERVICES})
        await controller.load_progress()
        copy = controller.saved_data_so_far
        copy["services"].clear()
        assert len(controller.saved_data_so_far["services"]) == 2
