"""Quota store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime


class QuotaStoreError(Exception):
    """Raised when the store cannot be reached or rejects a call."""


class AbstractQuotaStore(ABC):
    """Row-oriented access to the remaining turns of each identity."""

    @abstractmethod
    async def fetch_turns(self, identity: str) -> int | None:
        """Return the remaining turns, or None when the identity has no row.

        Raises:
            QuotaStoreError: If the lookup itself fails.
        """

    @abstractmethod
    async def write_turns(self, identity: str, turns: int, updated_at: datetime) -> bool:
        """Overwrite the turns of an identity.

        Returns:
            bool: False when no row was updated.

        Raises:
            QuotaStoreError: If the store rejects the write.
        """

    async def decrement_if_positive(self, identity: str) -> int | None:
        """Atomically take one turn when at least one is left.

        Returns:
            int | None: Turns left after the decrement, or None when nothing
                was decremented (unknown identity or no turns left).

        Raises:
            NotImplementedError: If the store has no atomic decrement.
            QuotaStoreError: If the call fails.
        """
        raise NotImplementedError
