from typing import List, Optional
from fastapi import HTTPException, status


class OnboardingError(Exception):
    """Base class for every error raised by the onboarding engine."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict:
        return {"error": type(self).__name__, "message": self.message}


class ValidationError(OnboardingError):
    """
    Structural or business-rule failure.

    Recoverable: the caller gets the enumerated errors and warnings back and
    nothing was written.
    """

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(
        self,
        errors: List[str],
        warnings: Optional[List[str]] = None,
        missing_steps: Optional[List[str]] = None,
        message: str = "Validation failed",
    ):
        super().__init__(message)
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        self.missing_steps = list(missing_steps or [])

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["errors"] = self.errors
        detail["warnings"] = self.warnings
        if self.missing_steps:
            detail["missing_steps"] = self.missing_steps
        return detail


class NotFoundError(OnboardingError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(OnboardingError):
    status_code = status.HTTP_409_CONFLICT


class ExpiredError(OnboardingError):
    status_code = status.HTTP_410_GONE


class ConflictError(OnboardingError):
    """Optimistic concurrency retries were exhausted."""

    status_code = status.HTTP_409_CONFLICT


class AnalysisError(OnboardingError):
    """Image statistics could not be computed. Never escapes the analyzer."""


def to_http_exception(exc: OnboardingError) -> HTTPException:
    """Translate an engine error into the HTTP error the API returns."""
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())
