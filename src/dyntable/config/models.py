"""Pydantic models for store configuration (db.toml)."""

from typing import Literal

from pydantic import BaseModel, Field

from dyntable.content.query import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseProfile(BaseModel):
    """Store connection profile from db.toml."""

    url: str = ""
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    provider: Literal["postgres", "memory"] = "postgres"


class ContentSettings(BaseModel):
    """Listing and validation settings from the ``[content]`` section."""

    default_page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    max_page_size: int = Field(default=MAX_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    strict_validation: bool = False


class DatabaseConfig(BaseModel):
    """Complete store configuration from db.toml."""

    profiles: dict[str, DatabaseProfile]
    content: ContentSettings = Field(default_factory=ContentSettings)
