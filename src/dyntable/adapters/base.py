"""Document store protocol definition.

Defines the ``DocumentStore`` Protocol that all store adapters must
implement.  All methods are ``async def`` -- the library is async-first.

The store holds two logical collections: ``schemas`` (one row per table,
keyed by ``table_slug``) and ``contents`` (records, each tagged with its
owning ``table_slug`` and holding a JSON ``values`` map).

Usage:
    from dyntable.adapters.base import DocumentStore

    async def do_work(store: DocumentStore) -> None:
        rows = await store.select("schemas", "*", order_by="created_at DESC")
        page = await store.fetch(plan)
        total = await store.count(plan)
        await store.close()
"""

from typing import Any, Protocol

from dyntable.content.query import FetchPlan


class DocumentStore(Protocol):
    """Store interface that all adapters must implement.

    This Protocol ensures consistent behavior across backends
    (PostgreSQL, in-memory).  All methods are async -- callers must
    ``await`` every operation.
    """

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
    ) -> list[dict]:
        """Select rows from a collection.

        Args:
            table: Collection name (``"schemas"`` or ``"contents"``).
            columns: Comma-separated column names, or ``"*"``.
            filters: Optional dict of column=value filters (all must match).
            order_by: Optional fixed ordering such as ``"created_at DESC"``.
                Never built from caller input.

        Returns:
            List of dicts, one per row.  Empty list if no matches.
        """
        ...

    async def insert(self, table: str, data: dict) -> dict:
        """Insert a row and return the stored row.

        Raises:
            ConflictError: If a unique key (e.g. ``table_slug``) is taken.
        """
        ...

    async def update(self, table: str, data: dict, filters: dict[str, Any]) -> dict | None:
        """Update matching rows and return the first updated row.

        Returns:
            The updated row, or ``None`` if no row matched *filters*.
        """
        ...

    async def delete(self, table: str, filters: dict[str, Any]) -> int:
        """Delete matching rows.

        Returns:
            Number of rows deleted.
        """
        ...

    async def delete_atomic(self, steps: list[tuple[str, dict[str, Any]]]) -> list[int]:
        """Run several deletes as one all-or-nothing operation.

        Args:
            steps: ``(table, filters)`` pairs, executed in order.

        Returns:
            Rows deleted per step, in order.

        Example:
            records, schemas = await store.delete_atomic([
                ("contents", {"table_slug": "contacts"}),
                ("schemas", {"table_slug": "contacts"}),
            ])
        """
        ...

    async def fetch(self, plan: FetchPlan) -> list[dict]:
        """Return one page of ``contents`` rows matching *plan*, in plan order."""
        ...

    async def count(self, plan: FetchPlan) -> int:
        """Count ``contents`` rows matching *plan*'s predicates (ignores paging)."""
        ...

    async def find_matching(
        self,
        table_slug: str,
        field: str,
        values: list[str],
    ) -> list[dict]:
        """Find ``contents`` rows whose ``values[field]`` text is in *values*.

        Rows are returned oldest first so callers can take the first
        match per value.

        Args:
            table_slug: Table to search.
            field: Value field to match on.
            values: Candidate text values.
        """
        ...

    async def execute(self, sql: str, params: dict | None = None) -> None:
        """Execute a raw statement (DDL for layout bootstrap).

        Raises:
            NotImplementedError: If the adapter does not support DDL.
        """
        ...

    async def close(self) -> None:
        """Release connections and other resources."""
        ...
