"""Pydantic models for table schemas, records, and listing queries.

The wire format is camelCase (``tableSlug``, ``dataType``, ``pageSize``);
every model also accepts snake_case names on input.

Usage:
    from dyntable.content.models import DataType, Field, TableSchema

    schema = TableSchema(
        table_slug="contacts",
        table_name="Contacts",
        fields=[Field(name="name", label="Name", data_type=DataType.TEXT, required=True)],
    )
    schema.model_dump(by_alias=True)
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, JsonValue
from pydantic import Field as ModelField
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialising to camelCase while accepting snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Field Definitions
# ============================================================================


class DataType(str, Enum):
    """Data types a field may declare."""

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    FILE = "file"
    OPTIONS = "options"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    TEXTAREA = "textarea"
    EMAIL = "email"
    URL = "url"
    PHONE = "phone"
    RELATION = "relation"


class RelationType(str, Enum):
    """Cardinality of a relation field."""

    ONE_TO_ONE = "one-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_ONE = "many-to-one"
    MANY_TO_MANY = "many-to-many"


class RelationConfig(CamelModel):
    """How a relation field points at records of another table."""

    relation_type: RelationType
    related_table: str                  # target table slug
    related_field: str                  # target field matched against our value
    display_field: str = ""             # target field shown in selection UIs
    allow_multiple: bool = False


class Field(CamelModel):
    """One named, typed slot in a table schema.

    Example:
        >>> f = Field(name="email", label="Email", data_type="email", required=True)
        >>> f.model_dump(by_alias=True, exclude_none=True)["dataType"]
        'email'
    """

    name: str
    label: str = ""
    data_type: DataType
    data_validation: str | None = None  # regex applied to the value's string form
    required: bool = False
    options: list[str] | None = None
    relation_config: RelationConfig | None = None

    @property
    def is_relation(self) -> bool:
        """True when this field is a relation with a usable descriptor."""
        return self.data_type == DataType.RELATION and self.relation_config is not None


# ============================================================================
# Schema and Record
# ============================================================================


class TableSchema(CamelModel):
    """The declared structure of one dynamic table."""

    id: str | None = None
    table_slug: str
    table_name: str
    fields: list[Field] = ModelField(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def field_names(self) -> list[str]:
        """Field names in display order."""
        return [f.name for f in self.fields]

    def get_field(self, name: str) -> Field | None:
        """Return the field called *name*, or ``None``."""
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def relation_fields(self) -> list[Field]:
        """Relation fields that carry a relation descriptor."""
        return [f for f in self.fields if f.is_relation]


class Record(CamelModel):
    """One schema-free row belonging to a table."""

    id: str
    table_slug: str
    values: dict[str, JsonValue] = ModelField(default_factory=dict)
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Listing
# ============================================================================


class ContentQueryParams(CamelModel):
    """Runtime listing parameters.

    Out-of-range ``page``/``page_size`` values are clamped when the fetch
    plan is built, not rejected here.
    """

    search: str = ""
    filters: dict[str, str] = ModelField(default_factory=dict)
    sort_by: str = ""
    sort_dir: str = ""
    page: int = 1
    page_size: int = 10


class ContentPage(CamelModel):
    """One page of listing results."""

    contents: list[Record] = ModelField(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 10
    total_pages: int = 0
