"""Application-level exception types.

Every failure of the flowchart pipeline is terminal for the request and is
reported as one of these categories. The ``message`` is safe to show to the
caller; upstream diagnostics belong in ``details`` or in the log only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    limit: int
    retry_after: float
    timeout_seconds: float
    stage: str
    max_value: int
    actual_value: int
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class RateLimitAppError(AppError):
    """Raised when an identity exhausted its request window."""


class SubscriptionAppError(AppError):
    """Raised when an identity has no quota record or zero turns left."""


class LLMAppError(AppError):
    """Raised when the generation provider call fails."""


class QuotaAppError(AppError):
    """Raised when the quota store cannot be read or updated."""


class TimeoutAppError(AppError):
    """Raised when an external call exceeds the configured timeout."""


def rate_limit_exceeded(retry_after: float | None = None) -> RateLimitAppError:
    details: ErrorDetails | None = None
    if retry_after is not None:
        details = {"retry_after": retry_after}
    return RateLimitAppError(
        code="rate_limit_exceeded",
        message="Rate limit exceeded. Please try again in a minute.",
        details=details,
    )


def not_subscribed() -> SubscriptionAppError:
    return SubscriptionAppError(
        code="not_subscribed",
        message="User not subscribed or out of turns",
    )


def empty_input() -> ValidationAppError:
    return ValidationAppError(
        code="empty_input",
        message="Please provide valid code to convert.",
    )


def generation_failed() -> LLMAppError:
    return LLMAppError(
        code="generation_failed",
        message="Failed to generate flowchart. Please try again.",
    )


def quota_fetch_failed() -> QuotaAppError:
    return QuotaAppError(
        code="quota_fetch_failed",
        message="Failed to fetch user turns",
    )


def quota_update_failed() -> QuotaAppError:
    return QuotaAppError(
        code="quota_update_failed",
        message="Failed to update turns",
    )


def timed_out(stage: str, timeout_seconds: float) -> TimeoutAppError:
    return TimeoutAppError(
        code="timeout",
        message="The request timed out. Please try again.",
        details={"stage": stage, "timeout_seconds": timeout_seconds},
    )
