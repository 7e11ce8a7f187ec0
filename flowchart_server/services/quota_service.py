"""Prepaid quota gate in front of the remote quota store.

Two operations per request: a lenient check before generation and a strict
decrement after it. The decrement uses the store's atomic
decrement-if-positive when one is deployed; otherwise it falls back to
fetch-then-write, serialized per identity inside this process. Decrements
issued by other processes can still interleave with that fallback.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import datetime, timezone
from typing import Callable

from flowchart_server.adapters.quota.base import AbstractQuotaStore
from flowchart_server.core.errors import quota_fetch_failed, quota_update_failed
from flowchart_server.core.logging import hash_identity

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuotaGate:
    """Check and debit the remaining turns of an identity.

    Attributes:
        store: Quota store adapter.
        atomic_decrement: Use ``store.decrement_if_positive`` instead of
            fetch-then-write.
    """

    def __init__(
        self,
        store: AbstractQuotaStore,
        *,
        atomic_decrement: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.atomic_decrement = atomic_decrement
        self._clock = clock
        # Entries disappear once no coroutine holds or awaits the lock.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, identity: str) -> asyncio.Lock:
        lock = self._locks.get(identity)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[identity] = lock
        return lock

    async def has_remaining_turns(self, identity: str) -> bool:
        """Return True when the identity has at least one turn left.

        Unknown identities and failed lookups both yield False: a missing quota
        is treated exactly like an empty one.
        """
        try:
            turns = await self.store.fetch_turns(identity)
        except Exception as exc:
            logger.warning(
                "quota.check_failed",
                extra={
                    "identity_hash": hash_identity(identity),
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            return False

        allowed = turns is not None and turns > 0
        logger.info(
            "quota.check",
            extra={
                "identity_hash": hash_identity(identity),
                "found": turns is not None,
                "allowed": allowed,
            },
        )
        return allowed

    async def decrement_turn(self, identity: str) -> int:
        """Debit one turn.

        Returns:
            int: Turns left after the decrement.

        Raises:
            QuotaAppError: ``quota_fetch_failed`` when the current value cannot
                be read, ``quota_update_failed`` when the write does not apply
                or no turn is left to take.
        """
        if self.atomic_decrement:
            remaining = await self._decrement_atomic(identity)
        else:
            async with self._lock_for(identity):
                remaining = await self._decrement_read_write(identity)

        logger.info(
            "quota.decremented",
            extra={
                "identity_hash": hash_identity(identity),
                "remaining": remaining,
                "atomic": self.atomic_decrement,
            },
        )
        return remaining

    async def _decrement_atomic(self, identity: str) -> int:
        try:
            remaining = await self.store.decrement_if_positive(identity)
        except Exception as exc:
            self._log_failure("quota.update_failed", identity, exc)
            raise quota_update_failed() from exc

        if remaining is None:
            self._log_failure("quota.update_failed", identity, None)
            raise quota_update_failed()
        return remaining

    async def _decrement_read_write(self, identity: str) -> int:
        try:
            turns = await self.store.fetch_turns(identity)
        except Exception as exc:
            self._log_failure("quota.fetch_failed", identity, exc)
            raise quota_fetch_failed() from exc

        if turns is None:
            self._log_failure("quota.fetch_failed", identity, None)
            raise quota_fetch_failed()

        # Another request may have taken the last turn since the check.
        if turns <= 0:
            self._log_failure("quota.update_failed", identity, None)
            raise quota_update_failed()

        try:
            applied = await self.store.write_turns(identity, turns - 1, self._clock())
        except Exception as exc:
            self._log_failure("quota.update_failed", identity, exc)
            raise quota_update_failed() from exc

        if not applied:
            self._log_failure("quota.update_failed", identity, None)
            raise quota_update_failed()
        return turns - 1

    @staticmethod
    def _log_failure(event: str, identity: str, exc: Exception | None) -> None:
        extra: dict[str, object] = {"identity_hash": hash_identity(identity)}
        if exc is not None:
            extra["error_type"] = type(exc).__name__
            extra["error_msg"] = str(exc)
        logger.error(event, extra=extra)
