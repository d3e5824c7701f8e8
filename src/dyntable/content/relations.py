"""Relation enrichment for listed records.

For each relation field of a schema, looks up the referenced record in
the target table and attaches its value map under the reserved derived
key ``_<field>_related``.  Lookups are batched: one store query per
relation field per page, matching ``values[related_field]`` as text.

A failed lookup is logged and the field is skipped; partial enrichment
is returned instead of failing the listing.

Usage:
    from dyntable.content.relations import RelationResolver

    resolver = RelationResolver(store)
    records = await resolver.enrich(records, schema)
    options = await resolver.list_relation_targets(field.relation_config)
"""

import logging
from typing import TYPE_CHECKING, Any

from dyntable.content.models import Field, Record, RelationConfig, TableSchema
from dyntable.content.query import json_text
from dyntable.content.validator import related_key

if TYPE_CHECKING:
    from dyntable.adapters.base import DocumentStore

logger = logging.getLogger(__name__)


class RelationResolver:
    """Resolves single-hop relations between tables.

    Args:
        store: Document store holding both the source and target records.
    """

    def __init__(self, store: "DocumentStore") -> None:
        self._store = store

    async def enrich(self, records: list[Record], schema: TableSchema) -> list[Record]:
        """Attach related target records to each record.

        Scalar relation values get the first matching target record
        (oldest first).  For ``allow_multiple`` fields holding a list,
        the matched targets are attached as a list, unmatched entries
        dropped.  No match means no derived key.

        Args:
            records: Records of *schema*'s table.
            schema: Schema declaring the relation fields.

        Returns:
            New ``Record`` objects; the inputs are not modified.
        """
        relation_fields = schema.relation_fields()
        if not relation_fields or not records:
            return records

        enriched = [r.model_copy(update={"values": dict(r.values)}) for r in records]

        for field in relation_fields:
            try:
                matches = await self._lookup(field, enriched)
            except Exception as e:
                logger.warning(
                    "Failed to load related data for field %s: %s", field.name, e
                )
                continue

            key = related_key(field.name)
            for record in enriched:
                attached = self._attach(field, record.values.get(field.name), matches)
                if attached is not None:
                    record.values[key] = attached

        return enriched

    async def list_relation_targets(self, config: RelationConfig) -> list[Record]:
        """Every record of the target table, newest first (no paging)."""
        rows = await self._store.select(
            "contents",
            "*",
            filters={"table_slug": config.related_table},
            order_by="created_at DESC",
        )
        return [Record.model_validate(row) for row in rows]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _lookup(self, field: Field, records: list[Record]) -> dict[str, dict]:
        """Fetch target value maps keyed by the text of their matched field."""
        config = field.relation_config
        if config is None:
            return {}

        wanted: set[str] = set()
        for record in records:
            for candidate in _candidates(field, record.values.get(field.name)):
                wanted.add(candidate)
        if not wanted:
            return {}

        rows = await self._store.find_matching(
            config.related_table, config.related_field, sorted(wanted)
        )

        matches: dict[str, dict] = {}
        for row in rows:
            text = json_text(row["values"].get(config.related_field))
            if text is not None:
                matches.setdefault(text, row["values"])
        return matches

    @staticmethod
    def _attach(field: Field, value: Any, matches: dict[str, dict]) -> Any:
        """Derived payload for one record's relation value, or ``None``."""
        if isinstance(value, list) and field.relation_config and field.relation_config.allow_multiple:
            found = [matches[c] for c in _candidates(field, value) if c in matches]
            return found or None
        text = json_text(value)
        if text is None or isinstance(value, list):
            return None
        return matches.get(text)


def _candidates(field: Field, value: Any) -> list[str]:
    """Text values to look up for one record's relation value."""
    if value is None:
        return []
    if isinstance(value, list):
        if field.relation_config and field.relation_config.allow_multiple:
            return [t for t in (json_text(v) for v in value) if t is not None]
        return []
    text = json_text(value)
    return [text] if text is not None else []
