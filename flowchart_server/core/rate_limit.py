"""Per-identity rate limiting for tool invocations.

The limiter is keyed by the caller's email exactly as given;
identities are logged only as a hash.
"""

from __future__ import annotations

import logging

from flowchart_server.adapters.rate_limit.base import AbstractRateLimiter
from flowchart_server.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from flowchart_server.core.config import settings
from flowchart_server.core.errors import rate_limit_exceeded
from flowchart_server.core.logging import hash_identity

logger = logging.getLogger(__name__)


_limiter: AbstractRateLimiter | None = None
_limiter_config: tuple[int, int, int, int] | None = None


def get_rate_limiter() -> AbstractRateLimiter:
    """Return a process-wide rate limiter instance.

    The instance is cached in-module to preserve state across requests.
    If configuration changes (primarily in tests), the limiter is rebuilt.
    """

    global _limiter, _limiter_config

    config = (
        settings.app.rate_limit_requests,
        settings.app.rate_limit_window_seconds,
        settings.app.rate_limit_max_keys,
        settings.app.rate_limit_sweep_interval_seconds,
    )

    if _limiter is None or _limiter_config != config:
        _limiter = InMemoryFixedWindowRateLimiter(
            limit=settings.app.rate_limit_requests,
            window_seconds=settings.app.rate_limit_window_seconds,
            max_keys=settings.app.rate_limit_max_keys,
            sweep_interval_seconds=settings.app.rate_limit_sweep_interval_seconds,
        )
        _limiter_config = config

    return _limiter


def admit(identity: str, limiter: AbstractRateLimiter | None = None) -> None:
    """Count one request for ``identity`` or reject it.

    Args:
        identity: Caller email.
        limiter: Limiter to use; defaults to the process-wide instance.

    Raises:
        RateLimitAppError: When the identity already used its window.
    """

    if not settings.app.rate_limit_enabled:
        return

    if limiter is None:
        limiter = get_rate_limiter()
    result = limiter.consume(identity)
    if result.allowed:
        logger.info(
            "rate_limit.allowed",
            extra={
                "identity_hash": hash_identity(identity),
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "identity_hash": hash_identity(identity),
            "limit": result.limit,
            "window_s": settings.app.rate_limit_window_seconds,
            "retry_after_s": retry_after,
        },
    )
    raise rate_limit_exceeded(retry_after=retry_after)
