"""Unit tests for in-memory rate limiter adapter."""

from unittest.mock import Mock

import pytest

from flowchart_server.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter


def test_allows_up_to_limit_in_same_window() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=10, window_seconds=60, clock=clock)

    for _ in range(9):
        assert limiter.consume("a@x.com").allowed is True
    result = limiter.consume("a@x.com")
    assert result.allowed is True
    assert result.remaining == 0


def test_blocks_eleventh_request_in_window() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=10, window_seconds=60, clock=clock)

    for _ in range(10):
        assert limiter.consume("c@x.com").allowed is True

    clock.return_value = 1000.9
    blocked = limiter.consume("c@x.com")
    assert blocked.allowed is False
    assert blocked.remaining == 0
    assert blocked.retry_after_seconds == 60


def test_blocked_attempt_leaves_window_unchanged() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)

    assert limiter.consume("k").allowed is True
    clock.return_value = 1030.0
    assert limiter.consume("k").allowed is False

    # Still the window opened at 1000, not one opened by the blocked attempt
    clock.return_value = 1060.5
    assert limiter.consume("k").allowed is True


def test_window_is_not_reset_at_exactly_window_size() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)

    assert limiter.consume("k").allowed is True

    clock.return_value = 1060.0
    assert limiter.consume("k").allowed is False

    clock.return_value = 1060.001
    assert limiter.consume("k").allowed is True


def test_window_anchors_at_admitting_request() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=2, window_seconds=60, clock=clock)

    assert limiter.consume("k").allowed is True

    # Long idle period: the new window opens at 5000, not at an epoch boundary
    clock.return_value = 5000.0
    result = limiter.consume("k")
    assert result.allowed is True
    assert result.reset_at == 5060.0


def test_isolated_by_key() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)

    assert limiter.consume("k1").allowed is True
    assert limiter.consume("k1").allowed is False

    assert limiter.consume("k2").allowed is True


def test_sweep_evicts_expired_windows() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(
        limit=5, window_seconds=60, sweep_interval_seconds=30, clock=clock
    )

    limiter.consume("old-1")
    limiter.consume("old-2")
    assert len(limiter) == 2

    clock.return_value = 1100.0
    limiter.consume("fresh")

    assert len(limiter) == 1


def test_capacity_evicts_least_recently_used() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=60, max_keys=2, clock=clock)

    assert limiter.consume("k1").allowed is True
    assert limiter.consume("k2").allowed is True
    assert limiter.consume("k3").allowed is True
    assert len(limiter) == 2

    # k1 was dropped, so its count is forgotten
    assert limiter.consume("k1").allowed is True
    # k3 is still tracked
    assert limiter.consume("k3").allowed is False


@pytest.mark.parametrize(
    "kwargs",
    [
        {"limit": 0, "window_seconds": 60},
        {"limit": 1, "window_seconds": 0},
        {"limit": 1, "window_seconds": 60, "max_keys": 0},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        InMemoryFixedWindowRateLimiter(**kwargs)


def test_invalid_consume_args() -> None:
    limiter = InMemoryFixedWindowRateLimiter(limit=1, window_seconds=60)

    with pytest.raises(ValueError):
        limiter.consume("")
