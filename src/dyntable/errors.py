"""Exception taxonomy for schema and record operations.

Validation and registry errors are raised before any mutation is
attempted.  Store-level failures are wrapped in ``StoreFailure`` with the
operation and entity that failed, chained from the original exception.

Usage:
    from dyntable.errors import NotFoundError, ValidationFailed, store_call

    try:
        await manager.create("contacts", {"name": "Ada"})
    except ValidationFailed as e:
        for violation in e.violations:
            print(violation.code, violation.field)
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from pydantic import BaseModel


class Violation(BaseModel):
    """A single validation problem, naming the offending field."""

    code: str
    field: str | None = None
    message: str = ""


class DyntableError(Exception):
    """Base class for all domain errors."""


class NotFoundError(DyntableError):
    """A schema, record, or relation field does not exist."""


class TableNotFoundError(NotFoundError):
    """Raised when no schema is registered under a table slug."""

    def __init__(self, table_slug: str) -> None:
        self.table_slug = table_slug
        super().__init__(f"Table not found: '{table_slug}'")


class RecordNotFoundError(NotFoundError):
    """Raised when no record exists with the given id."""

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"Record not found: '{record_id}'")


class RelationFieldNotFoundError(NotFoundError):
    """Raised when a field is missing or is not a configured relation."""

    def __init__(self, table_slug: str, field_name: str) -> None:
        self.table_slug = table_slug
        self.field_name = field_name
        super().__init__(
            f"Relation field '{field_name}' not found in table '{table_slug}'"
        )


class ValidationFailed(DyntableError):
    """One or more violations were found in a schema, record, or query.

    Attributes:
        violations: Every violation found, in detection order.
    """

    def __init__(self, violations: list[Violation]) -> None:
        self.violations = violations
        super().__init__("; ".join(v.message for v in violations))

    @property
    def codes(self) -> list[str]:
        """Violation codes, in detection order."""
        return [v.code for v in self.violations]


class ConflictError(DyntableError):
    """Raised on a uniqueness conflict (e.g. duplicate table slug)."""


class StoreFailure(DyntableError):
    """An underlying store call failed.

    Attributes:
        operation: What was being attempted (``"create"``, ``"list"``, ...).
        entity: What it was attempted on (``"schema 'contacts'"``, ...).
    """

    def __init__(self, operation: str, entity: str, cause: BaseException | None = None) -> None:
        self.operation = operation
        self.entity = entity
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to {operation} {entity}{detail}")


@asynccontextmanager
async def store_call(operation: str, entity: str) -> AsyncIterator[None]:
    """Wrap store I/O so non-domain exceptions become ``StoreFailure``.

    Domain errors (``DyntableError`` subclasses) propagate unchanged.

    Example:
        async with store_call("delete", f"record '{record_id}'"):
            deleted = await store.delete("contents", {"id": record_id})
    """
    try:
        yield
    except DyntableError:
        raise
    except Exception as e:
        raise StoreFailure(operation, entity, e) from e
