"""Unit tests for QuotaGate."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from flowchart_server.adapters.quota.base import QuotaStoreError
from flowchart_server.adapters.quota.in_memory import InMemoryQuotaStore
from flowchart_server.core.errors import QuotaAppError
from flowchart_server.services.quota_service import QuotaGate

FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class TestHasRemainingTurns:
    @pytest.mark.asyncio
    async def test_true_when_turns_left(self) -> None:
        gate = QuotaGate(InMemoryQuotaStore({"a@x.com": 3}))

        assert await gate.has_remaining_turns("a@x.com") is True

    @pytest.mark.asyncio
    async def test_false_when_zero_turns(self) -> None:
        gate = QuotaGate(InMemoryQuotaStore({"b@x.com": 0}))

        assert await gate.has_remaining_turns("b@x.com") is False

    @pytest.mark.asyncio
    async def test_false_when_unknown(self) -> None:
        gate = QuotaGate(InMemoryQuotaStore())

        assert await gate.has_remaining_turns("nobody@x.com") is False

    @pytest.mark.asyncio
    async def test_false_when_lookup_fails(self) -> None:
        store = MagicMock()
        store.fetch_turns = AsyncMock(side_effect=QuotaStoreError("fetch_turns: HTTP 503"))
        gate = QuotaGate(store)

        assert await gate.has_remaining_turns("a@x.com") is False


class TestDecrementReadWrite:
    @pytest.mark.asyncio
    async def test_decrements_by_one(self) -> None:
        store = InMemoryQuotaStore({"a@x.com": 3})
        gate = QuotaGate(store, clock=lambda: FIXED_NOW)

        remaining = await gate.decrement_turn("a@x.com")

        assert remaining == 2
        record = store.get("a@x.com")
        assert record is not None
        assert record.turns == 2
        assert record.updated_at == FIXED_NOW

    @pytest.mark.asyncio
    async def test_fetch_error_raises_fetch_failed(self) -> None:
        store = MagicMock()
        store.fetch_turns = AsyncMock(side_effect=QuotaStoreError("down"))
        store.write_turns = AsyncMock()
        gate = QuotaGate(store)

        with pytest.raises(QuotaAppError) as exc_info:
            await gate.decrement_turn("a@x.com")

        assert exc_info.value.code == "quota_fetch_failed"
        store.write_turns.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_identity_raises_fetch_failed(self) -> None:
        gate = QuotaGate(InMemoryQuotaStore())

        with pytest.raises(QuotaAppError) as exc_info:
            await gate.decrement_turn("nobody@x.com")

        assert exc_info.value.code == "quota_fetch_failed"

    @pytest.mark.asyncio
    async def test_never_writes_below_zero(self) -> None:
        store = InMemoryQuotaStore({"a@x.com": 0})
        gate = QuotaGate(store)

        with pytest.raises(QuotaAppError) as exc_info:
            await gate.decrement_turn("a@x.com")

        assert exc_info.value.code == "quota_update_failed"
        assert store.write_calls == 0
        assert (await store.fetch_turns("a@x.com")) == 0

    @pytest.mark.asyncio
    async def test_write_not_applied_raises_update_failed(self) -> None:
        store = MagicMock()
        store.fetch_turns = AsyncMock(return_value=2)
        store.write_turns = AsyncMock(return_value=False)
        gate = QuotaGate(store)

        with pytest.raises(QuotaAppError) as exc_info:
            await gate.decrement_turn("a@x.com")

        assert exc_info.value.code == "quota_update_failed"

    @pytest.mark.asyncio
    async def test_write_error_raises_update_failed(self) -> None:
        store = MagicMock()
        store.fetch_turns = AsyncMock(return_value=2)
        store.write_turns = AsyncMock(side_effect=QuotaStoreError("write_turns: HTTP 500"))
        gate = QuotaGate(store)

        with pytest.raises(QuotaAppError) as exc_info:
            await gate.decrement_turn("a@x.com")

        assert exc_info.value.code == "quota_update_failed"

    @pytest.mark.asyncio
    async def test_concurrent_decrements_do_not_lose_updates(self) -> None:
        store = InMemoryQuotaStore({"a@x.com": 5})
        original_fetch = store.fetch_turns

        async def slow_fetch(identity: str) -> int | None:
            turns = await original_fetch(identity)
            # Yield so an unserialized second request would read the same value
            await asyncio.sleep(0.01)
            return turns

        store.fetch_turns = slow_fetch  # type: ignore[method-assign]
        gate = QuotaGate(store)

        results = await asyncio.gather(*(gate.decrement_turn("a@x.com") for _ in range(3)))

        assert sorted(results) == [2, 3, 4]
        assert (await original_fetch("a@x.com")) == 2


class TestDecrementAtomic:
    @pytest.mark.asyncio
    async def test_uses_store_decrement(self) -> None:
        store = InMemoryQuotaStore({"a@x.com": 3})
        gate = QuotaGate(store, atomic_decrement=True)

        assert await gate.decrement_turn("a@x.com") == 2
        assert store.write_calls == 0

    @pytest.mark.asyncio
    async def test_nothing_left_raises_update_failed(self) -> None:
        gate = QuotaGate(InMemoryQuotaStore({"a@x.com": 0}), atomic_decrement=True)

        with pytest.raises(QuotaAppError) as exc_info:
            await gate.decrement_turn("a@x.com")

        assert exc_info.value.code == "quota_update_failed"

    @pytest.mark.asyncio
    async def test_store_error_raises_update_failed(self) -> None:
        store = MagicMock()
        store.decrement_if_positive = AsyncMock(side_effect=QuotaStoreError("rpc: HTTP 404"))
        gate = QuotaGate(store, atomic_decrement=True)

        with pytest.raises(QuotaAppError) as exc_info:
            await gate.decrement_turn("a@x.com")

        assert exc_info.value.code == "quota_update_failed"
