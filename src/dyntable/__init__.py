"""dyntable: user-defined tables over an async JSON document store.

Provides a schema registry, record lifecycle management with validation,
paginated listing with search/filter/sort, relation enrichment,
multi-profile configuration, and a store layout CLI.

Usage:
    from dyntable import SchemaRegistry, RecordManager, get_adapter
    from dyntable import Field, DataType, ContentQueryParams
    from dyntable import MemoryDocumentStore, AsyncPostgresAdapter
    from dyntable import load_db_config, DatabaseProfile, DatabaseConfig
"""

__version__ = "0.1.0"

# Adapters
from dyntable.adapters.base import DocumentStore
from dyntable.adapters.memory import MemoryDocumentStore
from dyntable.adapters.postgres import AsyncPostgresAdapter

# Config
from dyntable.config.loader import load_db_config
from dyntable.config.models import ContentSettings, DatabaseConfig, DatabaseProfile

# Content
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
from dyntable.content.records import RecordManager
from dyntable.content.registry import SchemaRegistry
from dyntable.content.relations import RelationResolver

# Errors
from dyntable.errors import (
    ConflictError,
    DyntableError,
    NotFoundError,
    RecordNotFoundError,
    RelationFieldNotFoundError,
    StoreFailure,
    TableNotFoundError,
    ValidationFailed,
    Violation,
)

# Factory
from dyntable.factory import (
    ProfileNotFoundError,
    connect_and_validate,
    get_adapter,
    resolve_url,
)

# Layout
from dyntable.layout.bootstrap import ensure_layout
from dyntable.layout.comparator import validate_schema

__all__ = [
    # Adapters
    "DocumentStore",
    "MemoryDocumentStore",
    "AsyncPostgresAdapter",
    # Config
    "load_db_config",
    "ContentSettings",
    "DatabaseConfig",
    "DatabaseProfile",
    # Content
    "ContentPage",
    "ContentQueryParams",
    "DataType",
    "Field",
    "Record",
    "RelationConfig",
    "RelationType",
    "TableSchema",
    "RecordManager",
    "SchemaRegistry",
    "RelationResolver",
    # Errors
    "DyntableError",
    "NotFoundError",
    "TableNotFoundError",
    "RecordNotFoundError",
    "RelationFieldNotFoundError",
    "ValidationFailed",
    "Violation",
    "ConflictError",
    "StoreFailure",
    # Factory
    "get_adapter",
    "connect_and_validate",
    "ProfileNotFoundError",
    "resolve_url",
    # Layout
    "ensure_layout",
    "validate_schema",
]
