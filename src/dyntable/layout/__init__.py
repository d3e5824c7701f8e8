"""Store layout: expected tables, bootstrap DDL, introspection, validation.

Usage:
    from dyntable.layout import validate_schema, SchemaIntrospector, ensure_layout
"""

from dyntable.layout.bootstrap import EXPECTED_COLUMNS, ensure_layout
from dyntable.layout.comparator import validate_schema
from dyntable.layout.introspector import SchemaIntrospector
from dyntable.layout.models import ColumnDiff, ConnectionResult, SchemaValidationResult

__all__ = [
    "EXPECTED_COLUMNS",
    "ensure_layout",
    "validate_schema",
    "SchemaIntrospector",
    "ColumnDiff",
    "ConnectionResult",
    "SchemaValidationResult",
]
