"""Exception hierarchy for the assessing engine."""

from __future__ import annotations

from typing import Any


class AssessingError(Exception):
    """Base exception for all assessing errors.

    Carries a machine-readable ``code`` so the web layer can return a
    structured body instead of a bare message.
    """

    code: str = "ASSESSING_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.details}


class MissingZoneError(AssessingError):
    """Raised when a land assessment has no zone reference at all."""

    code = "ZONE_REQUIRED"


class BillingPeriodLockedError(AssessingError):
    """Raised when a write targets a year that may not be modified."""

    def __init__(
        self,
        code: str,
        message: str,
        redirect_year: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.code = code
        self.redirect_year = redirect_year


class RecalculationCancelledError(AssessingError):
    """Raised inside a job when cancellation was requested between batches."""

    code = "RECALCULATION_CANCELLED"


class AssessmentNotFoundError(AssessingError):
    """Raised when no assessment exists for a card in or before the year."""

    code = "ASSESSMENT_NOT_FOUND"
