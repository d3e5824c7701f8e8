"""Schema registry: create, read, update, and delete table schemas.

Schemas are stored in the ``schemas`` collection keyed by their slug,
with the ordered field list serialized as a JSON document.  Deleting a
schema deletes all of its records in the same atomic store operation.

Usage:
    from dyntable.content.registry import SchemaRegistry

    registry = SchemaRegistry(store)
    schema = await registry.create("Contacts", "contacts", fields)
    await registry.delete("contacts")
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from dyntable.content.models import Field, TableSchema
from dyntable.content.validator import validate_field_definitions, validate_table_identity
from dyntable.errors import ConflictError, TableNotFoundError, ValidationFailed, store_call

if TYPE_CHECKING:
    from dyntable.adapters.base import DocumentStore

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _dump_fields(fields: list[Field]) -> list[dict]:
    """Serialize fields in their camelCase wire form."""
    return [f.model_dump(mode="json", by_alias=True, exclude_none=True) for f in fields]


class SchemaRegistry:
    """Stores per-table field definitions.

    Args:
        store: Document store holding the ``schemas`` collection.
    """

    def __init__(self, store: "DocumentStore") -> None:
        self._store = store

    async def create(self, table_name: str, table_slug: str, fields: list[Field]) -> TableSchema:
        """Register a new table.

        Raises:
            ValidationFailed: Invalid name/slug, empty field list, or an
                empty, malformed, or duplicate field name.
            ConflictError: The slug is already registered.
        """
        violations = validate_table_identity(table_name, table_slug)
        violations.extend(validate_field_definitions(fields))
        if violations:
            raise ValidationFailed(violations)

        entity = f"schema '{table_slug}'"
        async with store_call("check", entity):
            existing = await self._store.select(
                "schemas", "id", filters={"table_slug": table_slug}
            )
        if existing:
            raise ConflictError(f"Table slug already exists: '{table_slug}'")

        now = _now()
        async with store_call("create", entity):
            row = await self._store.insert(
                "schemas",
                {
                    "id": str(uuid.uuid4()),
                    "table_slug": table_slug,
                    "table_name": table_name,
                    "fields": _dump_fields(fields),
                    "created_at": now,
                    "updated_at": now,
                },
            )

        logger.info("Created table '%s' with %d fields", table_slug, len(fields))
        return TableSchema.model_validate(row)

    async def get(self, table_slug: str) -> TableSchema:
        """Return the schema for *table_slug*.

        Raises:
            TableNotFoundError: No schema is registered under the slug.
        """
        schema = await self.find(table_slug)
        if schema is None:
            raise TableNotFoundError(table_slug)
        return schema

    async def find(self, table_slug: str) -> TableSchema | None:
        """Return the schema for *table_slug*, or ``None``."""
        async with store_call("get", f"schema '{table_slug}'"):
            rows = await self._store.select(
                "schemas", "*", filters={"table_slug": table_slug}
            )
        return TableSchema.model_validate(rows[0]) if rows else None

    async def update(self, table_slug: str, table_name: str, fields: list[Field]) -> TableSchema:
        """Replace a table's name and field list.  The slug never changes.

        Existing records are not rewritten; values for removed fields stay
        in storage until the record is next updated.

        Raises:
            ValidationFailed: Invalid name or field list.
            TableNotFoundError: No schema is registered under the slug.
        """
        violations = validate_table_identity(table_name)
        violations.extend(validate_field_definitions(fields))
        if violations:
            raise ValidationFailed(violations)

        async with store_call("update", f"schema '{table_slug}'"):
            row = await self._store.update(
                "schemas",
                {
                    "table_name": table_name,
                    "fields": _dump_fields(fields),
                    "updated_at": _now(),
                },
                filters={"table_slug": table_slug},
            )
        if row is None:
            raise TableNotFoundError(table_slug)

        logger.info("Updated table '%s' (%d fields)", table_slug, len(fields))
        return TableSchema.model_validate(row)

    async def delete(self, table_slug: str) -> int:
        """Delete a schema and every record belonging to it.

        Both deletes run as one atomic store operation.

        Returns:
            Number of records deleted with the schema.

        Raises:
            TableNotFoundError: No schema is registered under the slug.
        """
        async with store_call("delete", f"schema '{table_slug}'"):
            records_deleted, schemas_deleted = await self._store.delete_atomic(
                [
                    ("contents", {"table_slug": table_slug}),
                    ("schemas", {"table_slug": table_slug}),
                ]
            )
        if schemas_deleted == 0:
            raise TableNotFoundError(table_slug)

        logger.info(
            "Deleted table '%s' and %d records", table_slug, records_deleted
        )
        return records_deleted

    async def list(self) -> list[TableSchema]:
        """All schemas, newest first."""
        async with store_call("list", "schemas"):
            rows = await self._store.select("schemas", "*", order_by="created_at DESC")
        return [TableSchema.model_validate(row) for row in rows]
