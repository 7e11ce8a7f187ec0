"""Supabase (PostgREST) quota store over httpx."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from flowchart_server.adapters.quota.base import AbstractQuotaStore, QuotaStoreError


class PostgrestQuotaStore(AbstractQuotaStore):
    """Reads and writes the ``turns`` column through the PostgREST API.

    Every call authenticates with the service role key, both as ``apikey`` and
    as a bearer token, so row level security does not hide user rows.
    """

    def __init__(
        self,
        *,
        base_url: str,
        service_key: str,
        table: str = "users",
        identity_column: str = "email",
        timeout_seconds: float = 10.0,
        decrement_rpc: str | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._table = table
        self._identity_column = identity_column
        self._timeout = timeout_seconds
        self._decrement_rpc = decrement_rpc
        self._headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _make_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=f"{self._base_url}/rest/v1",
            headers=self._headers,
            timeout=self._timeout,
        )

    def _filter(self, identity: str) -> dict[str, str]:
        return {self._identity_column: f"eq.{identity}"}

    @staticmethod
    def _raise_for_status(resp: httpx.Response, context: str) -> None:
        if resp.status_code >= 400:
            raise QuotaStoreError(f"{context}: HTTP {resp.status_code}")

    @staticmethod
    def _json(resp: httpx.Response, context: str) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise QuotaStoreError(f"{context}: response is not JSON") from e

    async def fetch_turns(self, identity: str) -> int | None:
        try:
            async with self._make_client() as client:
                resp = await client.get(
                    f"/{self._table}",
                    params={"select": "turns", **self._filter(identity)},
                )
        except httpx.HTTPError as e:
            raise QuotaStoreError(f"fetch_turns: {type(e).__name__}") from e

        self._raise_for_status(resp, "fetch_turns")
        rows = self._json(resp, "fetch_turns")
        if not isinstance(rows, list):
            raise QuotaStoreError("fetch_turns: expected a list of rows")
        if not rows:
            return None
        if len(rows) > 1:
            raise QuotaStoreError("fetch_turns: identity matches more than one row")
        try:
            return int(rows[0]["turns"])
        except (KeyError, TypeError, ValueError) as e:
            raise QuotaStoreError("fetch_turns: row has no usable turns value") from e

    async def write_turns(self, identity: str, turns: int, updated_at: datetime) -> bool:
        try:
            async with self._make_client() as client:
                resp = await client.patch(
                    f"/{self._table}",
                    params=self._filter(identity),
                    json={"turns": turns, "updated_at": updated_at.isoformat()},
                    headers={"Prefer": "return=representation"},
                )
        except httpx.HTTPError as e:
            raise QuotaStoreError(f"write_turns: {type(e).__name__}") from e

        self._raise_for_status(resp, "write_turns")
        return bool(self._json(resp, "write_turns"))

    async def decrement_if_positive(self, identity: str) -> int | None:
        if self._decrement_rpc is None:
            raise NotImplementedError("no decrement function configured")

        try:
            async with self._make_client() as client:
                resp = await client.post(
                    f"/rpc/{self._decrement_rpc}",
                    json={"identity": identity},
                )
        except httpx.HTTPError as e:
            raise QuotaStoreError(f"decrement_if_positive: {type(e).__name__}") from e

        self._raise_for_status(resp, "decrement_if_positive")
        remaining = self._json(resp, "decrement_if_positive")
        if remaining is None:
            return None
        try:
            return int(remaining)
        except (TypeError, ValueError) as e:
            raise QuotaStoreError("decrement_if_positive: unexpected result") from e
