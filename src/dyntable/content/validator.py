"""Field validation for record values and schema field lists.

Pure logic -- no I/O, no store access.

Two checks run against record values:

- Baseline (always): every required field is present, and every key is
  either a declared field name or starts with the reserved prefix.
- Strict (opt-in): required values are non-empty, values match the
  field's ``data_validation`` pattern, and option-typed values are one of
  the declared options.

Usage:
    from dyntable.content.validator import validate_values

    violations = validate_values(schema.fields, {"name": "Ada"})
    if violations:
        ...
"""

import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import JsonValue, TypeAdapter, ValidationError

from dyntable.content.models import DataType, Field
from dyntable.content.query import json_text
from dyntable.errors import ValidationFailed, Violation

logger = logging.getLogger(__name__)

# Keys with this prefix hold derived data (e.g. attached related records)
RESERVED_PREFIX = "_"

FIELD_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")
SLUG_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")

_OPTION_TYPES = {DataType.OPTIONS, DataType.RADIO}

_JSON_VALUE: TypeAdapter[JsonValue] = TypeAdapter(JsonValue)


def related_key(field_name: str) -> str:
    """Derived key under which a field's related record is attached.

    Example:
        >>> related_key("company")
        '_company_related'
    """
    return f"{RESERVED_PREFIX}{field_name}_related"


def is_reserved_key(key: str) -> bool:
    """True if *key* is derived data rather than a field value."""
    return key.startswith(RESERVED_PREFIX)


# ============================================================================
# Record values
# ============================================================================


def validate_values(
    fields: Sequence[Field],
    values: Mapping[str, Any],
    strict: bool = False,
) -> list[Violation]:
    """Check a record's value map against a schema's field list.

    Args:
        fields: The schema's field definitions.
        values: Candidate value map.
        strict: Also check emptiness, patterns, and option membership.

    Returns:
        List of violations; empty when the values are acceptable.

    Examples:
        >>> from dyntable.content.models import Field
        >>> fields = [Field(name="name", data_type="text", required=True)]
        >>> validate_values(fields, {"name": "Ada"})
        []
        >>> [v.code for v in validate_values(fields, {"foo": 1})]
        ['MissingRequiredField', 'UnknownField']
        >>> validate_values(fields, {"name": "Ada", "_name_related": {}})
        []
        >>> [v.code for v in validate_values(fields, {"name": {1, 2}})]
        ['InvalidValue']
    """
    violations: list[Violation] = []
    by_name = {f.name: f for f in fields}
    not_json: set[Any] = set()

    for f in fields:
        if f.required and f.name not in values:
            violations.append(
                Violation(
                    code="MissingRequiredField",
                    field=f.name,
                    message=f"required field '{f.name}' is missing",
                )
            )

    for key, value in values.items():
        if not isinstance(key, str) or not _is_json(value):
            violations.append(
                Violation(
                    code="InvalidValue",
                    field=str(key),
                    message=f"field '{key}' does not hold a JSON value",
                )
            )
            not_json.add(key)
            continue
        if is_reserved_key(key):
            continue
        if key not in by_name:
            violations.append(
                Violation(
                    code="UnknownField",
                    field=key,
                    message=f"field '{key}' is not defined in schema",
                )
            )

    if strict:
        for name, value in values.items():
            f = by_name.get(name)
            if f is not None and name not in not_json:
                violations.extend(_check_value_format(f, value))

    return violations


def check_values(
    fields: Sequence[Field],
    values: Mapping[str, Any],
    strict: bool = False,
) -> None:
    """Raise ``ValidationFailed`` if ``validate_values`` finds anything."""
    violations = validate_values(fields, values, strict=strict)
    if violations:
        raise ValidationFailed(violations)


def _is_json(value: Any) -> bool:
    try:
        _JSON_VALUE.validate_python(value, strict=True)
    except ValidationError:
        return False
    return True


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == []


def _check_value_format(f: Field, value: Any) -> list[Violation]:
    """Strict per-value checks for one field."""
    if _is_empty(value):
        if f.required:
            return [
                Violation(
                    code="EmptyRequiredValue",
                    field=f.name,
                    message=f"{f.label or f.name} is required",
                )
            ]
        return []

    violations: list[Violation] = []

    if f.data_validation:
        try:
            pattern = re.compile(f.data_validation)
        except re.error:
            logger.warning(
                "Ignoring invalid pattern %r on field '%s'", f.data_validation, f.name
            )
        else:
            text = json_text(value)
            if not pattern.search(text):
                violations.append(
                    Violation(
                        code="PatternMismatch",
                        field=f.name,
                        message=f"{f.label or f.name} format is invalid",
                    )
                )

    if f.options:
        if f.data_type in _OPTION_TYPES and value not in f.options:
            violations.append(
                Violation(
                    code="OptionNotAllowed",
                    field=f.name,
                    message=f"'{value}' is not an allowed option for '{f.name}'",
                )
            )
        elif f.data_type == DataType.CHECKBOX and isinstance(value, list):
            not_allowed = [v for v in value if v not in f.options]
            if not_allowed:
                violations.append(
                    Violation(
                        code="OptionNotAllowed",
                        field=f.name,
                        message=f"{not_allowed} are not allowed options for '{f.name}'",
                    )
                )

    return violations


# ============================================================================
# Schema definitions
# ============================================================================


def validate_field_definitions(fields: Sequence[Field]) -> list[Violation]:
    """Check a schema's field list before it is stored.

    The list must be non-empty; every name must be non-empty, match
    ``FIELD_NAME_PATTERN`` and be unique (case-sensitive).  Patterns must
    compile and relation descriptors must name a target table and field.

    Examples:
        >>> from dyntable.content.models import Field
        >>> [v.code for v in validate_field_definitions([])]
        ['EmptyFieldList']
        >>> dup = [Field(name="a", data_type="text"), Field(name="a", data_type="number")]
        >>> [v.code for v in validate_field_definitions(dup)]
        ['DuplicateFieldName']
    """
    if not fields:
        return [Violation(code="EmptyFieldList", message="at least one field is required")]

    violations: list[Violation] = []
    seen: set[str] = set()

    for index, f in enumerate(fields):
        if not f.name:
            violations.append(
                Violation(
                    code="EmptyFieldName",
                    message=f"field name cannot be empty (field #{index + 1})",
                )
            )
            continue
        if f.name in seen:
            violations.append(
                Violation(
                    code="DuplicateFieldName",
                    field=f.name,
                    message=f"duplicate field name '{f.name}'",
                )
            )
        seen.add(f.name)

        if not FIELD_NAME_PATTERN.match(f.name):
            violations.append(
                Violation(
                    code="InvalidFieldName",
                    field=f.name,
                    message=(
                        f"field name '{f.name}' must start with a letter and contain "
                        "only letters, digits and underscores"
                    ),
                )
            )

        if f.data_validation:
            try:
                re.compile(f.data_validation)
            except re.error as e:
                violations.append(
                    Violation(
                        code="InvalidPattern",
                        field=f.name,
                        message=f"invalid validation pattern for '{f.name}': {e}",
                    )
                )

        config = f.relation_config
        if config is not None and not (config.related_table and config.related_field):
            violations.append(
                Violation(
                    code="InvalidRelationConfig",
                    field=f.name,
                    message=f"relation field '{f.name}' must name a related table and field",
                )
            )

    return violations


def validate_table_identity(table_name: str, table_slug: str | None = None) -> list[Violation]:
    """Check a table's display name and (on create) its slug."""
    violations: list[Violation] = []
    if not table_name.strip():
        violations.append(
            Violation(code="EmptyTableName", message="table name cannot be empty")
        )
    if table_slug is not None and not SLUG_PATTERN.match(table_slug):
        violations.append(
            Violation(
                code="InvalidSlug",
                field=table_slug,
                message=(
                    f"table slug '{table_slug}' must start with a letter or digit and "
                    "contain only letters, digits, '-' and '_'"
                ),
            )
        )
    return violations
