"""Admission-time errors surfaced to the API layer as tagged results."""

from __future__ import annotations


class AppError(Exception):
    """Error with an HTTP status and a stable machine-readable code."""

    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = 400
    error_code = "INVALID_INPUT"


class NotFoundError(AppError):
    status_code = 404
    error_code = "NOT_FOUND"


class QuotaExceededError(AppError):
    """Per-user pending cap or per-application artifact cap reached."""

    status_code = 429
    error_code = "QUEUE_LIMIT"


class RateLimitedError(AppError):
    status_code = 429
    error_code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, message: str, *, retry_after_seconds: int) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class QueueUnavailableError(AppError):
    status_code = 503
    error_code = "QUEUE_UNAVAILABLE"


class MissingJobDescriptionError(Exception):
    """Worker found no posting text to analyze."""

    def __init__(self, message: str = "No job description text available") -> None:
        super().__init__(message)
