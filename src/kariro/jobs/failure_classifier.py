"""Map raw worker failures to user-safe messages and a retry decision."""

from __future__ import annotations

from dataclasses import dataclass

from kariro.ai.base import AiNotConfiguredError, AiOutputError, AiProviderError
from kariro.http.safe_fetcher import (
    BlockedUrlError,
    InvalidUrlError,
    ResponseTooLargeError,
    UpstreamError,
)
from kariro.jobs.errors import MissingJobDescriptionError, NotFoundError

FETCH_FAILED_MESSAGE = "Failed to fetch the job posting URL"
TIMEOUT_MESSAGE = "Request timed out while processing"
MISSING_DESCRIPTION_MESSAGE = "No job description text available"
URL_NOT_ACCESSIBLE_MESSAGE = "The provided URL is not accessible"
GENERIC_FAILURE_MESSAGE = "Analysis failed. Please try again later."

USER_SAFE_MESSAGES: tuple[str, ...] = (
    FETCH_FAILED_MESSAGE,
    TIMEOUT_MESSAGE,
    MISSING_DESCRIPTION_MESSAGE,
    URL_NOT_ACCESSIBLE_MESSAGE,
    GENERIC_FAILURE_MESSAGE,
)

# Checked in order; the blocked-URL rule must precede the generic fetch/url rule.
_MESSAGE_RULES: tuple[tuple[str, tuple[str, ...], str, bool], ...] = (
    ("url_blocked", ("internal urls",), URL_NOT_ACCESSIBLE_MESSAGE, False),
    ("missing_description", ("no job description",), MISSING_DESCRIPTION_MESSAGE, False),
    ("timeout", ("timeout", "timed out"), TIMEOUT_MESSAGE, True),
    ("fetch_failed", ("fetch", "url"), FETCH_FAILED_MESSAGE, True),
)


@dataclass(slots=True, frozen=True)
class FailureClassification:
    """User-safe message plus whether the queue should try again."""

    user_message: str
    reason_code: str
    retryable: bool


def classify_failure(error: BaseException) -> FailureClassification:  # noqa: PLR0911
    """Classify by exception type first, then by message text for untyped errors."""

    if isinstance(error, BlockedUrlError):
        return FailureClassification(URL_NOT_ACCESSIBLE_MESSAGE, "url_blocked", retryable=False)
    if isinstance(error, (InvalidUrlError, ResponseTooLargeError)):
        return FailureClassification(FETCH_FAILED_MESSAGE, "url_rejected", retryable=False)
    if isinstance(error, UpstreamError):
        if _is_timeout_text(str(error)):
            return FailureClassification(TIMEOUT_MESSAGE, "fetch_timeout", retryable=True)
        return FailureClassification(FETCH_FAILED_MESSAGE, "fetch_upstream", retryable=True)
    if isinstance(error, MissingJobDescriptionError):
        return FailureClassification(
            MISSING_DESCRIPTION_MESSAGE,
            "missing_description",
            retryable=False,
        )
    if isinstance(error, NotFoundError):
        return FailureClassification(GENERIC_FAILURE_MESSAGE, "entity_not_found", retryable=False)
    if isinstance(error, AiNotConfiguredError):
        return FailureClassification(GENERIC_FAILURE_MESSAGE, "ai_not_configured", retryable=False)
    if isinstance(error, AiOutputError):
        return FailureClassification(GENERIC_FAILURE_MESSAGE, "ai_output_invalid", retryable=False)
    if isinstance(error, AiProviderError):
        if _is_timeout_text(str(error)):
            return FailureClassification(TIMEOUT_MESSAGE, "ai_timeout", retryable=error.retryable)
        return FailureClassification(GENERIC_FAILURE_MESSAGE, "ai_provider", error.retryable)
    if isinstance(error, TimeoutError):
        return FailureClassification(TIMEOUT_MESSAGE, "timeout", retryable=True)

    haystack = str(error).lower()
    for reason_code, patterns, message, retryable in _MESSAGE_RULES:
        if _first_match(haystack, patterns) is not None:
            return FailureClassification(message, reason_code, retryable)
    return FailureClassification(GENERIC_FAILURE_MESSAGE, "unclassified", retryable=True)


def _is_timeout_text(text: str) -> bool:
    return _first_match(text.lower(), ("timeout", "timed out")) is not None


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
