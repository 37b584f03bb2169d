"""Error taxonomy for the onboarding workflow.

Every error carries an HTTP status and a stable error code so the
service layer can render it without knowing which phase raised it.
Only ProvisioningFailure crosses a phase boundary; its message is shown
to the end user verbatim.
"""

from fastapi import status


class OnboardingError(Exception):
    """Base exception for onboarding workflow errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "ONBOARDING_ERROR",
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(self.message)

    @property
    def details(self) -> dict | None:
        return None


class LoadFailure(OnboardingError):
    """Progress snapshot could not be fetched or was malformed."""

    def __init__(self, message: str = "Could not load onboarding progress"):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="LOAD_FAILURE",
        )


class ValidationFailure(OnboardingError):
    """A step payload (or the full bundle) failed its required-field check.

    `fields` maps a field path to its message so the UI can highlight it.
    `violations` holds the flat, human-readable list.
    """

    def __init__(
        self,
        violations: list[str],
        fields: dict[str, str] | None = None,
        step: int | None = None,
    ):
        self.violations = list(violations)
        self.fields = dict(fields or {})
        self.step = step
        prefix = f"Step {step}: " if step else ""
        super().__init__(
            message=prefix + "; ".join(self.violations),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="VALIDATION_FAILURE",
        )

    @property
    def details(self) -> dict:
        return {"step": self.step, "violations": self.violations, "fields": self.fields}


class PersistFailure(OnboardingError):
    """The Progress Store rejected or failed a write."""

    def __init__(self, message: str = "Failed to save progress"):
        super().__init__(
            message=message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code="PERSIST_FAILURE",
        )


class ProvisioningFailure(OnboardingError):
    """The provisioning API reported failure. Message is shown verbatim."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code="PROVISIONING_FAILURE",
        )


class NavigationError(OnboardingError):
    """A step operation was called against the wrong pointer position."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code="NAVIGATION_ERROR",
        )


class SubmissionInProgressError(OnboardingError):
    def __init__(self, message: str = "A submission is already in progress"):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code="SUBMISSION_IN_PROGRESS",
        )


class SessionExpiredError(OnboardingError):
    """Upstream returned 401/403; the session token has been dropped."""

    def __init__(self, message: str = "Session expired. Please log in again."):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="SESSION_EXPIRED",
        )
