import asyncio
import os
from typing import Any

import httpx

from smart_categorizer.logger import get_logger
from smart_categorizer.storage.base import RecordStore, StoreQuery, StoreResult

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def build_query_params(query: StoreQuery) -> dict[str, str]:
    """Translate a StoreQuery into PostgREST query parameters."""
    params: dict[str, str] = {"select": "*"}
    for column, value in query.filters.items():
        if value is None:
            params[column] = "is.null"
        else:
            params[column] = f"eq.{_format_value(value)}"
    for column in query.not_null:
        # An equality filter on the same column already excludes nulls
        params.setdefault(column, "not.is.null")
    if query.order_by:
        direction = "desc" if query.descending else "asc"
        params["order"] = f"{query.order_by}.{direction}"
    if query.limit is not None:
        params["limit"] = str(query.limit)
    return params


class SupabaseStore(RecordStore):
    """RecordStore backed by the Supabase PostgREST API."""

    def __init__(
        self,
        url: str | None = None,
        key: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        base_url = url or os.getenv("SUPABASE_URL")
        self.base_url = base_url.rstrip("/") if base_url else None
        self.key = key or os.getenv("SUPABASE_KEY")
        self.timeout = timeout
        self.headers = {
            "apikey": self.key or "",
            "Authorization": f"Bearer {self.key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self._client = client
        self._client_lock = asyncio.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.key)

    async def aclose(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _get_client(self) -> httpx.AsyncClient:
        client = self._client
        if client is not None and not client.is_closed:
            return client

        async with self._client_lock:
            # Another task may have created it while we waited
            client = self._client
            if client is None or client.is_closed:
                client = httpx.AsyncClient()
                self._client = client
            return client

    def _table_url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    async def find_many(self, table: str, query: StoreQuery | None = None) -> StoreResult:
        if not self.configured:
            return StoreResult(error="Supabase credentials missing")

        params = build_query_params(query or StoreQuery())
        try:
            client = await self._get_client()
            response = await client.get(
                self._table_url(table),
                headers=self.headers,
                params=params,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except Exception as exc:
            logger.error("[STORE] Error reading '%s': %s", table, exc)
            return StoreResult(error=str(exc))

        if not isinstance(data, list):
            return StoreResult(error=f"Unexpected response for '{table}'")
        return StoreResult(data=data)

    async def _post(
        self,
        table: str,
        row: dict[str, Any],
        *,
        prefer: str,
        params: dict[str, str] | None = None,
    ) -> StoreResult:
        if not self.configured:
            return StoreResult(error="Supabase credentials missing")

        try:
            client = await self._get_client()
            response = await client.post(
                self._table_url(table),
                headers={**self.headers, "Prefer": prefer},
                params=params,
                json=[row],
                timeout=self.timeout,
            )
            response.raise_for_status()
        except Exception as exc:
            logger.error("[STORE] Error writing '%s': %s", table, exc)
            return StoreResult(error=str(exc))
        return StoreResult(data=[row])

    async def insert(self, table: str, row: dict[str, Any]) -> StoreResult:
        return await self._post(table, row, prefer="return=minimal")

    async def upsert(self, table: str, key: str, fields: dict[str, Any]) -> StoreResult:
        if key not in fields:
            return StoreResult(error=f"upsert on '{table}' is missing key column '{key}'")
        return await self._post(
            table,
            fields,
            prefer="resolution=merge-duplicates,return=minimal",
            params={"on_conflict": key},
        )
