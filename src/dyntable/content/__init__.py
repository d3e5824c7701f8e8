"""Dynamic tables: schemas, validation, listing queries, and relations.

Usage:
    from dyntable.content import SchemaRegistry, RecordManager
    from dyntable.content import Field, DataType, ContentQueryParams
"""

from dyntable.content.models import (
    ContentPage,
    ContentQueryParams,
    DataType,
    Field,
    Record,
    RelationConfig,
    RelationType,
    TableSchema,
)
from dyntable.content.query import FetchPlan, parse_filters, plan_query
from dyntable.content.records import RecordManager
from dyntable.content.registry import SchemaRegistry
from dyntable.content.relations import RelationResolver
from dyntable.content.validator import (
    check_values,
    validate_field_definitions,
    validate_values,
)

__all__ = [
    "ContentPage",
    "ContentQueryParams",
    "DataType",
    "Field",
    "Record",
    "RelationConfig",
    "RelationType",
    "TableSchema",
    "FetchPlan",
    "parse_filters",
    "plan_query",
    "RecordManager",
    "SchemaRegistry",
    "RelationResolver",
    "check_values",
    "validate_field_definitions",
    "validate_values",
]
