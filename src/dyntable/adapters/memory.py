"""In-memory document store adapter.

Provides ``MemoryDocumentStore``, an in-process implementation of the
``DocumentStore`` protocol.  It evaluates fetch plans with the same
semantics as the PostgreSQL adapter (case-insensitive full-document
search, text equality filters, code point text ordering with missing
values last ascending) and is used for tests, demos, and the ``memory``
provider.

All mutations hold an ``asyncio.Lock``; rows are deep-copied on the way
in and out so callers never share state with the store.

Usage:
    from dyntable.adapters.memory import MemoryDocumentStore

    store = MemoryDocumentStore()
    await store.insert("schemas", {...})
    rows = await store.fetch(plan)
"""

import asyncio
import copy
from typing import Any

from dyntable.content.query import FetchPlan, document_text, json_text
from dyntable.errors import ConflictError


# Unique key per collection
UNIQUE_KEYS: dict[str, tuple[str, ...]] = {
    "schemas": ("id", "table_slug"),
    "contents": ("id",),
}


class MemoryDocumentStore:
    """Dict-backed implementation of the ``DocumentStore`` protocol.

    Example:
        store = MemoryDocumentStore()
        row = await store.insert("contents", {"id": "r1", "table_slug": "t", "values": {}})
        await store.close()
    """

    def __init__(self) -> None:
        self._tables: dict[str, list[dict]] = {name: [] for name in UNIQUE_KEYS}
        self._lock: asyncio.Lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # CRUD Methods
    # ------------------------------------------------------------------

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select rows matching *filters*, optionally ordered."""
        rows = [r for r in self._rows(table) if _matches(r, filters or {})]

        if order_by:
            column, _, direction = order_by.partition(" ")
            rows.sort(key=lambda r: r.get("id") or "")
            rows.sort(key=lambda r: r[column], reverse=direction.strip().upper() == "DESC")

        return [_project(r, columns) for r in rows]

    async def insert(self, table: str, data: dict) -> dict:
        """Insert a row, enforcing the collection's unique keys."""
        async with self._lock:
            rows = self._rows(table)
            for key in UNIQUE_KEYS.get(table, ()):
                if key in data and any(r.get(key) == data[key] for r in rows):
                    raise ConflictError(
                        f"Conflict inserting into {table}: {key}={data[key]!r} already exists"
                    )
            row = copy.deepcopy(data)
            rows.append(row)
            return copy.deepcopy(row)

    async def update(self, table: str, data: dict, filters: dict[str, Any]) -> dict | None:
        """Update matching rows; return the first, or ``None`` if none matched."""
        async with self._lock:
            updated: list[dict] = []
            for row in self._rows(table):
                if _matches(row, filters):
                    row.update(copy.deepcopy(data))
                    updated.append(row)
            return copy.deepcopy(updated[0]) if updated else None

    async def delete(self, table: str, filters: dict[str, Any]) -> int:
        """Delete matching rows and return how many were removed."""
        counts = await self.delete_atomic([(table, filters)])
        return counts[0]

    async def delete_atomic(self, steps: list[tuple[str, dict[str, Any]]]) -> list[int]:
        """Apply every delete under one lock acquisition."""
        async with self._lock:
            counts: list[int] = []
            for table, filters in steps:
                rows = self._rows(table)
                kept = [r for r in rows if not _matches(r, filters)]
                counts.append(len(rows) - len(kept))
                self._tables[table] = kept
            return counts

    # ------------------------------------------------------------------
    # Content Queries
    # ------------------------------------------------------------------

    async def fetch(self, plan: FetchPlan) -> list[dict]:
        """Evaluate a fetch plan and return one page of rows."""
        rows = self._matching(plan)

        rows.sort(key=lambda r: r["id"])
        if plan.sort.field is not None:
            field = plan.sort.field
            # Missing values sort last ascending, first descending
            rows.sort(
                key=lambda r: _sort_text(r["values"].get(field)),
                reverse=plan.sort.descending,
            )
        else:
            column = plan.sort.column or "created_at"
            rows.sort(key=lambda r: r[column], reverse=plan.sort.descending)

        page = rows[plan.offset:plan.offset + plan.limit]
        return [copy.deepcopy(r) for r in page]

    async def count(self, plan: FetchPlan) -> int:
        """Count rows matching a plan's predicates."""
        return len(self._matching(plan))

    async def find_matching(
        self,
        table_slug: str,
        field: str,
        values: list[str],
    ) -> list[dict]:
        """Rows of *table_slug* whose ``values[field]`` text is in *values*, oldest first."""
        wanted = set(values)
        rows = [
            r for r in self._rows("contents")
            if r["table_slug"] == table_slug and json_text(r["values"].get(field)) in wanted
        ]
        rows.sort(key=lambda r: r["id"])
        rows.sort(key=lambda r: r["created_at"])
        return [copy.deepcopy(r) for r in rows]

    # ------------------------------------------------------------------
    # DDL and Lifecycle
    # ------------------------------------------------------------------

    async def execute(self, sql: str, params: dict | None = None) -> None:
        """Raw statements are not supported by the in-memory store.

        Raises:
            NotImplementedError: Always.  Collections exist implicitly.
        """
        raise NotImplementedError("DDL operations not supported for this adapter type")

    async def close(self) -> None:
        """Drop all stored rows."""
        async with self._lock:
            for name in self._tables:
                self._tables[name] = []

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _rows(self, table: str) -> list[dict]:
        if table not in self._tables:
            raise KeyError(f"Unknown collection: {table}")
        return self._tables[table]

    def _matching(self, plan: FetchPlan) -> list[dict]:
        needle = plan.search.lower() if plan.search else None
        result: list[dict] = []
        for row in self._rows("contents"):
            if row["table_slug"] != plan.table_slug:
                continue
            values = row["values"]
            if needle is not None and needle not in document_text(values).lower():
                continue
            if any(json_text(values.get(p.field)) != p.value for p in plan.filters):
                continue
            result.append(row)
        return result


def _matches(row: dict, filters: dict[str, Any]) -> bool:
    return all(row.get(k) == v for k, v in filters.items())


def _project(row: dict, columns: str) -> dict:
    if columns.strip() == "*":
        return copy.deepcopy(row)
    names = [c.strip() for c in columns.split(",")]
    return {name: copy.deepcopy(row.get(name)) for name in names}


def _sort_text(value: Any) -> tuple[bool, str]:
    text = json_text(value)
    return (text is None, text or "")
