"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from dyntable.config import load_db_config, DatabaseProfile, DatabaseConfig
"""

from dyntable.config.loader import load_db_config
from dyntable.config.models import ContentSettings, DatabaseConfig, DatabaseProfile

__all__ = ["load_db_config", "ContentSettings", "DatabaseConfig", "DatabaseProfile"]
