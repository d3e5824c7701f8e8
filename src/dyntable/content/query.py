"""Translate listing parameters into a store-independent fetch plan.

A ``FetchPlan`` is a structured description of one listing request:
the owning table, an optional case-insensitive full-document search
term, exact-match field filters, a single ordering, and pagination
bounds.  Plans never contain query text.  Store adapters compile them
(``AsyncPostgresAdapter`` binds every value *and* every field name as a
parameter) or evaluate them directly (``MemoryDocumentStore``).

Field names used for filtering or dynamic sorting are checked against
the table's declared field names before a plan is built.

Ordering rules:

- No ``sort_by``: newest first (``created_at`` descending).
- ``sort_by`` naming a system timestamp (``created_at``/``createdAt``,
  ``updated_at``/``updatedAt``): that column, ascending unless
  ``sort_dir`` is ``"desc"`` (case-insensitive).
- Any other ``sort_by``: the JSON text of ``values[sort_by]`` compared
  as text.  Strings compare unquoted; numbers, booleans, arrays and
  objects compare by their JSON text, so ``"10" < "9"``.  Records
  without the field sort last ascending and first descending.
- Ties are broken by record id ascending.

Usage:
    from dyntable.content.query import plan_query
    from dyntable.content.models import ContentQueryParams

    plan = plan_query(
        "contacts",
        ContentQueryParams(search="john", sort_by="name", page=2),
        field_names=schema.field_names(),
    )
"""

import json
import math
from collections.abc import Collection
from typing import Any, Literal

from pydantic import BaseModel, Field

from dyntable.content.models import ContentQueryParams
from dyntable.errors import ValidationFailed, Violation

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

SystemColumn = Literal["created_at", "updated_at"]

# Accepted sort_by spellings for the system timestamp columns
SYSTEM_SORT_FIELDS: dict[str, SystemColumn] = {
    "created_at": "created_at",
    "createdAt": "created_at",
    "updated_at": "updated_at",
    "updatedAt": "updated_at",
}


# ============================================================================
# Plan Models
# ============================================================================


class FilterPredicate(BaseModel):
    """Exact match: ``values[field]`` as text equals ``value``."""

    field: str
    value: str


class SortSpec(BaseModel):
    """Ordering for a fetch plan.

    Exactly one of ``column`` (system timestamp) or ``field`` (dynamic
    value field) is set.
    """

    column: SystemColumn | None = None
    field: str | None = None
    descending: bool = False


class FetchPlan(BaseModel):
    """Resolved predicates, ordering, and pagination for one listing."""

    table_slug: str
    search: str | None = None
    filters: list[FilterPredicate] = Field(default_factory=list)
    sort: SortSpec = Field(
        default_factory=lambda: SortSpec(column="created_at", descending=True)
    )
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def limit(self) -> int:
        """Maximum number of records in the page."""
        return self.page_size

    @property
    def offset(self) -> int:
        """Number of matching records skipped before the page."""
        return (self.page - 1) * self.page_size


# ============================================================================
# Value helpers
# ============================================================================


def json_text(value: Any) -> str | None:
    """Text form of a JSON value, as extracted by ``->>`` in PostgreSQL.

    Examples:
        >>> json_text("Ada")
        'Ada'
        >>> json_text(42)
        '42'
        >>> json_text(True)
        'true'
        >>> json_text(None) is None
        True
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def document_text(values: dict[str, Any]) -> str:
    """Serialized form of a value map, as scanned by full-document search."""
    return json.dumps(values, ensure_ascii=False)


def escape_like(term: str) -> str:
    r"""Escape LIKE metacharacters so *term* matches literally.

    Example:
        >>> escape_like("50%_off")
        '50\\%\\_off'
    """
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def total_pages(total: int, page_size: int) -> int:
    """Number of pages needed for *total* records.

    Example:
        >>> total_pages(25, 10)
        3
    """
    if page_size < 1:
        return 0
    return math.ceil(total / page_size)


def parse_filters(raw: str) -> dict[str, str]:
    """Parse ``"field=value,field2=value2"`` into a filter mapping.

    Pairs without ``=`` are ignored.  Only the first ``=`` splits, so
    values may contain ``=``.

    Example:
        >>> parse_filters("status=active,bogus,note=a=b")
        {'status': 'active', 'note': 'a=b'}
    """
    filters: dict[str, str] = {}
    if not raw:
        return filters
    for pair in raw.split(","):
        if "=" not in pair:
            continue
        key, value = pair.split("=", 1)
        filters[key] = value
    return filters


# ============================================================================
# Translation
# ============================================================================


def clamp_pagination(
    page: int,
    page_size: int,
    default_page_size: int = DEFAULT_PAGE_SIZE,
    max_page_size: int = MAX_PAGE_SIZE,
) -> tuple[int, int]:
    """Clamp page to >= 1 and page size to [1, max_page_size].

    A page size below 1 falls back to *default_page_size*.  A configured
    *max_page_size* never lifts the cap above ``MAX_PAGE_SIZE``.

    Example:
        >>> clamp_pagination(0, 500)
        (1, 100)
        >>> clamp_pagination(3, 0)
        (3, 10)
        >>> clamp_pagination(1, 500, max_page_size=500)
        (1, 100)
    """
    max_page_size = min(max_page_size, MAX_PAGE_SIZE)
    if page < 1:
        page = 1
    if page_size < 1:
        page_size = default_page_size
    if page_size > max_page_size:
        page_size = max_page_size
    return page, page_size


def plan_query(
    table_slug: str,
    params: ContentQueryParams | None,
    field_names: Collection[str],
    default_page_size: int = DEFAULT_PAGE_SIZE,
    max_page_size: int = MAX_PAGE_SIZE,
) -> FetchPlan:
    """Build a ``FetchPlan`` for listing one table.

    Args:
        table_slug: Table whose records are listed.
        params: Runtime listing parameters (``None`` means defaults).
        field_names: The table's declared field names; filter keys and
            dynamic sort fields must be among them.
        default_page_size: Page size used when none (or < 1) is given.
        max_page_size: Upper bound for the page size.

    Returns:
        ``FetchPlan`` scoped to *table_slug*.

    Raises:
        ValidationFailed: A filter key or ``sort_by`` is not a declared
            field (code ``InvalidQuery``).

    Examples:
        >>> from dyntable.content.models import ContentQueryParams
        >>> plan = plan_query("t", ContentQueryParams(page=2, page_size=10), ["name"])
        >>> plan.offset, plan.limit
        (10, 10)
        >>> plan.sort.column, plan.sort.descending
        ('created_at', True)
    """
    params = params or ContentQueryParams(page_size=default_page_size)
    allowed = set(field_names)
    violations: list[Violation] = []

    filters: list[FilterPredicate] = []
    for name, value in params.filters.items():
        if value == "":
            continue
        if name not in allowed:
            violations.append(
                Violation(
                    code="InvalidQuery",
                    field=name,
                    message=f"cannot filter on unknown field '{name}'",
                )
            )
            continue
        filters.append(FilterPredicate(field=name, value=value))

    if not params.sort_by:
        sort = SortSpec(column="created_at", descending=True)
    else:
        descending = params.sort_dir.lower() == "desc"
        if params.sort_by in SYSTEM_SORT_FIELDS:
            sort = SortSpec(column=SYSTEM_SORT_FIELDS[params.sort_by], descending=descending)
        elif params.sort_by in allowed:
            sort = SortSpec(field=params.sort_by, descending=descending)
        else:
            violations.append(
                Violation(
                    code="InvalidQuery",
                    field=params.sort_by,
                    message=f"cannot sort on unknown field '{params.sort_by}'",
                )
            )
            sort = SortSpec(column="created_at", descending=True)

    if violations:
        raise ValidationFailed(violations)

    page, page_size = clamp_pagination(
        params.page, params.page_size, default_page_size, max_page_size
    )

    return FetchPlan(
        table_slug=table_slug,
        search=params.search or None,
        filters=filters,
        sort=sort,
        page=page,
        page_size=page_size,
    )
