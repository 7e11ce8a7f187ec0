"""In-memory fixed-window rate limiter with bounded state.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- The window is anchored at the request that opens it, not at epoch
  boundaries, so up to twice the limit can pass in a short span straddling a
  reset.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from flowchart_server.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult

logger = logging.getLogger(__name__)


@dataclass
class _WindowState:
    window_start: float
    count: int


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed time window per key.

    Each key gets ``limit`` requests per window. A window opens at the first
    request seen for the key and is replaced by a fresh one, opened at the
    current request, once more than ``window_seconds`` have elapsed.

    State is bounded: windows that already ended are swept at most once per
    ``sweep_interval_seconds``, and when more than ``max_keys`` keys are tracked
    the least recently used one is dropped. Dropping an expired window is
    invisible to callers because the next request would reset it anyway;
    dropping a live window under capacity pressure forgets that key's count.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: int,
        max_keys: int | None = 10000,
        sweep_interval_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of requests per window.
            window_seconds: Size of the fixed window in seconds.
            max_keys: Maximum number of tracked keys (None for unbounded).
            sweep_interval_seconds: Minimum interval between expiry sweeps;
                defaults to the window size.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit, window_seconds or max_keys are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")
        if max_keys is not None and max_keys < 1:
            raise ValueError("max_keys must be >= 1")

        self._limit = limit
        self._window_seconds = window_seconds
        self._max_keys = max_keys
        self._sweep_interval = sweep_interval_seconds or float(window_seconds)
        self._clock = clock
        self._lock = threading.RLock()
        self._state_by_key: OrderedDict[str, _WindowState] = OrderedDict()
        self._last_sweep = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._state_by_key)

    def _is_expired(self, state: _WindowState, now: float) -> bool:
        return now - state.window_start > self._window_seconds

    def _get_or_reset_state(self, key: str, now: float) -> _WindowState:
        state = self._state_by_key.get(key)
        if state is None or self._is_expired(state, now):
            state = _WindowState(window_start=now, count=0)
            self._state_by_key[key] = state
        self._state_by_key.move_to_end(key)
        return state

    def _sweep_expired_locked(self, now: float) -> None:
        if now - self._last_sweep < self._sweep_interval:
            return
        self._last_sweep = now
        expired = [k for k, s in self._state_by_key.items() if self._is_expired(s, now)]
        for key in expired:
            del self._state_by_key[key]
        if expired:
            logger.debug(
                "rate_limit.swept",
                extra={"evicted": len(expired), "tracked": len(self._state_by_key)},
            )

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_keys is None:
            return
        while len(self._state_by_key) > self._max_keys:
            self._state_by_key.popitem(last=False)

    def consume(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` when the current window has room.

        Args:
            key: Identity being admitted.

        Returns:
            RateLimitResult with the admission decision.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()

        with self._lock:
            self._sweep_expired_locked(now)
            state = self._get_or_reset_state(key, now)
            reset_at = state.window_start + self._window_seconds

            if state.count >= self._limit:
                return RateLimitResult(
                    allowed=False,
                    limit=self._limit,
                    remaining=0,
                    reset_at=reset_at,
                    retry_after_seconds=max(0, int(math.ceil(reset_at - now))),
                )

            state.count += 1
            self._evict_if_over_capacity_locked()
            return RateLimitResult(
                allowed=True,
                limit=self._limit,
                remaining=max(0, self._limit - state.count),
                reset_at=reset_at,
                retry_after_seconds=None,
            )
