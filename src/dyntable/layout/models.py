"""Pydantic models for store layout validation and connection results."""

from pydantic import BaseModel, Field


# ============================================================================
# Validation Result Models
# ============================================================================


class ColumnDiff(BaseModel):
    """A missing column detected during validation."""

    table: str
    column: str
    message: str = ""


class SchemaValidationResult(BaseModel):
    """Result of comparing the live store layout with the expected one."""

    valid: bool
    missing_tables: list[str] = Field(default_factory=list)
    missing_columns: list[ColumnDiff] = Field(default_factory=list)
    extra_tables: list[str] = Field(default_factory=list)  # Warning only

    @property
    def error_count(self) -> int:
        """Count of critical errors (missing tables + missing columns)."""
        return len(self.missing_tables) + len(self.missing_columns)

    def format_report(self) -> str:
        """Format validation result as human-readable report."""
        if self.valid:
            return "Store layout valid"

        lines = ["Store layout validation failed:"]

        if self.missing_tables:
            lines.append(f"\n  Missing tables ({len(self.missing_tables)}):")
            lines.extend(f"    - {table}" for table in self.missing_tables)

        if self.missing_columns:
            lines.append(f"\n  Missing columns ({len(self.missing_columns)}):")
            lines.extend(f"    - {d.table}.{d.column}" for d in self.missing_columns)

        if self.extra_tables:
            lines.append(f"\n  Extra tables (warning): {', '.join(self.extra_tables)}")

        lines.append("\n  Run 'dyntable init --confirm' to create the missing layout.")
        return "\n".join(lines)


# ============================================================================
# Connection Result
# ============================================================================


class ConnectionResult(BaseModel):
    """Result of connect_and_validate()."""

    success: bool
    profile_name: str | None = None
    provider: str | None = None
    schema_valid: bool | None = None
    schema_report: SchemaValidationResult | None = None
    error: str | None = None
