import asyncio
from collections import defaultdict
from typing import Any

from smart_categorizer.storage.base import RecordStore, StoreQuery, StoreResult


class InMemoryRecordStore(RecordStore):
    """Process-local store, for tests and for running without a database."""

    def __init__(self, tables: dict[str, list[dict[str, Any]]] | None = None):
        self.tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for table, rows in (tables or {}).items():
            self.tables[table] = [dict(row) for row in rows]
        self._lock = asyncio.Lock()

    def rows(self, table: str) -> list[dict[str, Any]]:
        return [dict(row) for row in self.tables.get(table, [])]

    async def find_many(self, table: str, query: StoreQuery | None = None) -> StoreResult:
        query = query or StoreQuery()
        rows = [
            dict(row) for row in self.tables.get(table, [])
            if all(row.get(column) == value for column, value in query.filters.items())
            and all(row.get(column) is not None for column in query.not_null)
        ]

        if query.order_by:
            column = query.order_by
            present = [row for row in rows if row.get(column) is not None]
            missing = [row for row in rows if row.get(column) is None]
            present.sort(key=lambda row: row[column], reverse=query.descending)
            rows = present + missing

        if query.limit is not None:
            rows = rows[:query.limit]

        return StoreResult(data=rows)

    async def insert(self, table: str, row: dict[str, Any]) -> StoreResult:
        async with self._lock:
            self.tables[table].append(dict(row))
        return StoreResult(data=[dict(row)])

    async def upsert(self, table: str, key: str, fields: dict[str, Any]) -> StoreResult:
        if key not in fields:
            return StoreResult(error=f"upsert on '{table}' is missing key column '{key}'")

        async with self._lock:
            for existing in self.tables[table]:
                if existing.get(key) == fields[key]:
                    existing.update(fields)
                    return StoreResult(data=[dict(existing)])
            self.tables[table].append(dict(fields))
        return StoreResult(data=[dict(fields)])
