"""Store layout comparison using set operations.

Compares the expected ``schemas``/``contents`` columns against the
columns found in the live database.  Pure logic -- no I/O.

Usage:
    from dyntable.layout.comparator import validate_schema
    from dyntable.layout.introspector import SchemaIntrospector

    async with SchemaIntrospector(database_url) as introspector:
        actual_columns = await introspector.get_column_names()

    result = validate_schema(actual_columns)
    if not result.valid:
        print(result.format_report())
"""

from dyntable.layout.bootstrap import EXPECTED_COLUMNS
from dyntable.layout.models import ColumnDiff, SchemaValidationResult


def validate_schema(
    actual_columns: dict[str, set[str]],
    expected_columns: dict[str, set[str]] | None = None,
) -> SchemaValidationResult:
    """Validate the live store layout against the expected columns.

    Args:
        actual_columns: Dict mapping table name to set of column names,
            as returned by ``introspector.get_column_names()``.
        expected_columns: Dict mapping table name to expected column
            names (default: the ``schemas``/``contents`` layout).

    Returns:
        ``SchemaValidationResult``; extra tables are reported but do not
        affect ``valid``.

    Examples:
        >>> result = validate_schema({"schemas": {"id"}}, {"schemas": {"id", "fields"}})
        >>> result.valid
        False
        >>> result.missing_columns[0].column
        'fields'

        >>> validate_schema({"other": {"id"}}, {}).extra_tables
        ['other']
    """
    if expected_columns is None:
        expected_columns = EXPECTED_COLUMNS

    actual_tables = set(actual_columns)
    expected_tables = set(expected_columns)

    missing_columns: list[ColumnDiff] = []
    for table_name in sorted(expected_tables & actual_tables):
        for col_name in sorted(expected_columns[table_name] - actual_columns[table_name]):
            missing_columns.append(
                ColumnDiff(
                    table=table_name,
                    column=col_name,
                    message=f"Column '{col_name}' missing from table '{table_name}'",
                )
            )

    missing_tables = sorted(expected_tables - actual_tables)

    return SchemaValidationResult(
        valid=not missing_tables and not missing_columns,
        missing_tables=missing_tables,
        missing_columns=missing_columns,
        extra_tables=sorted(actual_tables - expected_tables),
    )
