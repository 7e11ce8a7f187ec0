"""In-memory quota store for local development and tests."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone

from flowchart_server.adapters.quota.base import AbstractQuotaStore


@dataclass
class QuotaRecord:
    turns: int
    updated_at: datetime


def parse_seed(seed: str | None) -> dict[str, int]:
    """Parse ``"a@x.com=3,b@x.com=0"`` into a mapping.

    Raises:
        ValueError: If a pair is malformed or a count is negative.
    """
    if not seed:
        return {}

    records: dict[str, int] = {}
    for pair in seed.split(","):
        if not pair.strip():
            continue
        identity, sep, turns = pair.partition("=")
        if not sep or not identity.strip():
            raise ValueError(f"invalid quota seed entry: {pair.strip()!r}")
        count = int(turns)
        if count < 0:
            raise ValueError("seeded turns must be >= 0")
        records[identity.strip()] = count
    return records


class InMemoryQuotaStore(AbstractQuotaStore):
    """Dict-backed store with an atomic decrement.

    Attributes:
        write_calls: Number of write_turns calls, for assertions in tests.
    """

    def __init__(self, turns_by_identity: dict[str, int] | None = None) -> None:
        now = datetime.now(timezone.utc)
        self._lock = threading.Lock()
        self._records: dict[str, QuotaRecord] = {
            identity: QuotaRecord(turns=turns, updated_at=now)
            for identity, turns in (turns_by_identity or {}).items()
        }
        self.write_calls = 0

    def get(self, identity: str) -> QuotaRecord | None:
        with self._lock:
            return self._records.get(identity)

    async def fetch_turns(self, identity: str) -> int | None:
        with self._lock:
            record = self._records.get(identity)
            return None if record is None else record.turns

    async def write_turns(self, identity: str, turns: int, updated_at: datetime) -> bool:
        with self._lock:
            self.write_calls += 1
            record = self._records.get(identity)
            if record is None:
                return False
            record.turns = turns
            record.updated_at = updated_at
            return True

    async def decrement_if_positive(self, identity: str) -> int | None:
        with self._lock:
            record = self._records.get(identity)
            if record is None or record.turns <= 0:
                return None
            record.turns -= 1
            record.updated_at = datetime.now(timezone.utc)
            return record.turns
