"""Document store adapters package.

Provides the ``DocumentStore`` Protocol and concrete async adapter
implementations for PostgreSQL and an in-process memory store.

Usage:
    from dyntable.adapters import DocumentStore, AsyncPostgresAdapter, MemoryDocumentStore
"""

from dyntable.adapters.base import DocumentStore
from dyntable.adapters.memory import MemoryDocumentStore
from dyntable.adapters.postgres import AsyncPostgresAdapter

__all__ = [
    "DocumentStore",
    "AsyncPostgresAdapter",
    "MemoryDocumentStore",
]
