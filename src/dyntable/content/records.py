"""Record lifecycle: create, read, list, update, and delete table records.

``RecordManager`` validates value maps against the owning table's schema
before every write, and plans, fetches, and relation-enriches pages on
every listing.  Identifiers and timestamps are assigned here, not by the
store, so every backend behaves the same.

Usage:
    from dyntable.content.records import RecordManager
    from dyntable.content.models import ContentQueryParams

    manager = RecordManager(store)
    record = await manager.create("contacts", {"name": "Ada"})
    page = await manager.list("contacts", ContentQueryParams(search="ada"))
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from dyntable.content.models import ContentPage, ContentQueryParams, Record
from dyntable.content.query import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    FetchPlan,
    plan_query,
    total_pages,
)
from dyntable.content.registry import SchemaRegistry
from dyntable.content.relations import RelationResolver
from dyntable.content.validator import check_values
from dyntable.errors import RecordNotFoundError, RelationFieldNotFoundError, store_call

if TYPE_CHECKING:
    from dyntable.adapters.base import DocumentStore

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _canonical_id(record_id: str) -> str | None:
    """Canonical hyphenated form of a record id, or ``None`` if not a UUID."""
    try:
        return str(uuid.UUID(str(record_id)))
    except ValueError:
        return None


class RecordManager:
    """Orchestrates record writes and reads for every table.

    Args:
        store: Document store holding ``schemas`` and ``contents``.
        registry: Schema lookups (defaults to one over *store*).
        resolver: Relation enrichment (defaults to one over *store*).
        strict: Also check emptiness, patterns, and options on write.
        default_page_size: Page size when a listing gives none.
        max_page_size: Upper bound for a listing's page size.

    Example:
        manager = RecordManager(store, strict=True)
        record = await manager.create("contacts", {"name": "Ada", "status": "active"})
        await manager.update(record.id, {"name": "Ada L.", "status": "active"})
        await manager.delete(record.id)
    """

    def __init__(
        self,
        store: "DocumentStore",
        registry: SchemaRegistry | None = None,
        resolver: RelationResolver | None = None,
        *,
        strict: bool = False,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ) -> None:
        self._store = store
        self.registry = registry or SchemaRegistry(store)
        self.resolver = resolver or RelationResolver(store)
        self.strict = strict
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, table_slug: str, values: dict[str, Any]) -> Record:
        """Validate and store a new record.

        ``created_at`` and ``updated_at`` are set to the same instant.

        Raises:
            TableNotFoundError: No schema is registered under *table_slug*.
            ValidationFailed: *values* do not conform to the schema.
        """
        schema = await self.registry.get(table_slug)
        check_values(schema.fields, values, strict=self.strict)

        now = _now()
        async with store_call("create", f"record in '{table_slug}'"):
            row = await self._store.insert(
                "contents",
                {
                    "id": str(uuid.uuid4()),
                    "table_slug": table_slug,
                    "values": dict(values),
                    "created_at": now,
                    "updated_at": now,
                },
            )

        logger.debug("Created record %s in '%s'", row["id"], table_slug)
        return Record.model_validate(row)

    async def update(self, record_id: str, values: dict[str, Any]) -> Record:
        """Replace a record's value map.

        The id and owning table never change; ``updated_at`` never moves
        backwards.

        Raises:
            RecordNotFoundError: No record has *record_id*.
            TableNotFoundError: The record's schema no longer exists.
            ValidationFailed: *values* do not conform to the schema.
        """
        existing = await self.read(record_id)
        schema = await self.registry.get(existing.table_slug)
        check_values(schema.fields, values, strict=self.strict)

        updated_at = max(_now(), existing.updated_at)
        async with store_call("update", f"record '{record_id}'"):
            row = await self._store.update(
                "contents",
                {"values": dict(values), "updated_at": updated_at},
                filters={"id": existing.id},
            )
        if row is None:
            raise RecordNotFoundError(record_id)

        logger.debug("Updated record %s in '%s'", record_id, existing.table_slug)
        return Record.model_validate(row)

    async def delete(self, record_id: str) -> None:
        """Delete a record.

        Raises:
            RecordNotFoundError: No record has *record_id*.
        """
        canonical = _canonical_id(record_id)
        if canonical is None:
            raise RecordNotFoundError(record_id)

        async with store_call("delete", f"record '{record_id}'"):
            deleted = await self._store.delete("contents", {"id": canonical})
        if deleted == 0:
            raise RecordNotFoundError(record_id)

        logger.debug("Deleted record %s", record_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def read(self, record_id: str) -> Record:
        """Return one record by id.

        Raises:
            RecordNotFoundError: No record has *record_id*.
        """
        canonical = _canonical_id(record_id)
        if canonical is None:
            raise RecordNotFoundError(record_id)

        async with store_call("get", f"record '{record_id}'"):
            rows = await self._store.select("contents", "*", filters={"id": canonical})
        if not rows:
            raise RecordNotFoundError(record_id)
        return Record.model_validate(rows[0])

    async def list_all(self, table_slug: str) -> list[Record]:
        """Every record of a table, newest first, relation-enriched."""
        schema = await self.registry.get(table_slug)
        plan = FetchPlan(table_slug=table_slug)

        async with store_call("list", f"records in '{table_slug}'"):
            total = await self._store.count(plan)
            rows = await self._store.fetch(
                plan.model_copy(update={"page_size": max(total, 1)})
            )

        records = [Record.model_validate(row) for row in rows]
        return await self.resolver.enrich(records, schema)

    async def related_options(self, table_slug: str, field_name: str) -> list[Record]:
        """Selectable target records for one relation field.

        Raises:
            TableNotFoundError: No schema is registered under *table_slug*.
            RelationFieldNotFoundError: The field is missing or is not a
                configured relation.
        """
        schema = await self.registry.get(table_slug)
        field = schema.get_field(field_name)
        if field is None or field.relation_config is None or not field.is_relation:
            raise RelationFieldNotFoundError(table_slug, field_name)

        async with store_call("list", f"related options for '{table_slug}.{field_name}'"):
            return await self.resolver.list_relation_targets(field.relation_config)

    async def list(
        self,
        table_slug: str,
        params: ContentQueryParams | None = None,
    ) -> ContentPage:
        """Return one page of a table's records, relation-enriched.

        An empty result is an empty page, never ``None``.

        Raises:
            TableNotFoundError: No schema is registered under *table_slug*.
            ValidationFailed: A filter or sort names an unknown field.
        """
        schema = await self.registry.get(table_slug)
        plan = plan_query(
            table_slug,
            params,
            schema.field_names(),
            default_page_size=self.default_page_size,
            max_page_size=self.max_page_size,
        )

        async with store_call("list", f"records in '{table_slug}'"):
            total = await self._store.count(plan)
            rows = await self._store.fetch(plan)

        records = [Record.model_validate(row) for row in rows]
        records = await self.resolver.enrich(records, schema)

        return ContentPage(
            contents=records,
            total=total,
            page=plan.page,
            page_size=plan.page_size,
            total_pages=total_pages(total, plan.page_size),
        )
