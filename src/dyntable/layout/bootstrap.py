"""Expected store layout and idempotent bootstrap DDL.

Two tables back every dynamic table:

- ``schemas``: one row per table, ``table_slug`` unique, the ordered
  field list in a JSONB ``fields`` column.
- ``contents``: one row per record, tagged with ``table_slug`` and
  holding a JSONB ``values`` map.  Deleting a schema row cascades to its
  records.

Usage:
    from dyntable.layout.bootstrap import ensure_layout

    store = await get_adapter("local")
    await ensure_layout(store)
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dyntable.adapters.base import DocumentStore

logger = logging.getLogger(__name__)

EXPECTED_COLUMNS: dict[str, set[str]] = {
    "schemas": {"id", "table_slug", "table_name", "fields", "created_at", "updated_at"},
    "contents": {"id", "table_slug", "values", "created_at", "updated_at"},
}

LAYOUT_DDL: list[str] = [
    """
    CREATE TABLE IF NOT EXISTS schemas (
        id UUID PRIMARY KEY,
        table_slug TEXT NOT NULL UNIQUE,
        table_name TEXT NOT NULL,
        fields JSONB NOT NULL DEFAULT '[]'::jsonb,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS contents (
        id UUID PRIMARY KEY,
        table_slug TEXT NOT NULL
            REFERENCES schemas (table_slug) ON DELETE CASCADE,
        values JSONB NOT NULL DEFAULT '{}'::jsonb,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_contents_table_slug ON contents (table_slug)",
    "CREATE INDEX IF NOT EXISTS idx_contents_values ON contents USING GIN (values)",
]


async def ensure_layout(store: "DocumentStore") -> int:
    """Create the ``schemas``/``contents`` tables and indexes if missing.

    Safe to run repeatedly.

    Returns:
        Number of statements executed.

    Raises:
        RuntimeError: The store does not support DDL (e.g. in-memory).
    """
    try:
        for statement in LAYOUT_DDL:
            await store.execute(statement)
    except NotImplementedError as e:
        raise RuntimeError(
            f"Store does not support layout bootstrap: {e}"
        ) from e

    logger.info("Store layout ensured (%d statements)", len(LAYOUT_DDL))
    return len(LAYOUT_DDL)
