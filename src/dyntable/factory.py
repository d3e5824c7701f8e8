"""Document store factory.

Resolves the active profile from db.toml (``<PREFIX>DB_PROFILE`` env var
or the ``.db-profile`` lock file in the current directory), builds the
matching store adapter, and validates the live store layout.

The caller owns every store returned by ``get_adapter()`` and must
``await store.close()`` when done.  Nothing is cached at module level.

Usage:
    from dyntable.factory import connect_and_validate, get_adapter

    result = await connect_and_validate("local")
    store = await get_adapter()
    try:
        ...
    finally:
        await store.close()
"""

import logging
import os
from pathlib import Path
from urllib.parse import quote

from dyntable.adapters.base import DocumentStore
from dyntable.adapters.memory import MemoryDocumentStore
from dyntable.adapters.postgres import AsyncPostgresAdapter
from dyntable.config.loader import load_db_config
from dyntable.config.models import DatabaseProfile
from dyntable.layout.comparator import validate_schema
from dyntable.layout.introspector import SchemaIntrospector
from dyntable.layout.models import ConnectionResult

logger = logging.getLogger(__name__)

# Profile lock file path
_PROFILE_LOCK_FILE = Path.cwd() / ".db-profile"


# ============================================================================
# Profile Lock File Operations
# ============================================================================


class ProfileNotFoundError(Exception):
    """Raised when no store profile is configured."""


def read_profile_lock() -> str | None:
    """Read profile name from lock file.

    Returns:
        Profile name if lock file exists, None otherwise
    """
    if _PROFILE_LOCK_FILE.exists():
        return _PROFILE_LOCK_FILE.read_text().strip() or None
    return None


def write_profile_lock(profile_name: str) -> None:
    """Write profile name to lock file.

    Only call this after a successful connection.
    """
    _PROFILE_LOCK_FILE.write_text(profile_name)


def get_active_profile_name(env_prefix: str = "") -> str:
    """Get active profile name from env var or lock file.

    Priority:
    1. ``{env_prefix}DB_PROFILE`` env var
    2. ``.db-profile`` file (profile from a previous connect)
    3. Raise ProfileNotFoundError

    Args:
        env_prefix: Prefix for the env var (``"MYAPP_"`` reads
            ``MYAPP_DB_PROFILE``).

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    env_var = f"{env_prefix}DB_PROFILE"
    env_profile = os.environ.get(env_var)
    if env_profile:
        return env_profile

    lock_profile = read_profile_lock()
    if lock_profile:
        return lock_profile

    raise ProfileNotFoundError(
        "No store profile configured.\n"
        f"Run: {env_var}=<name> dyntable connect\n"
        "Profiles are defined in db.toml under [profiles.<name>]."
    )


def get_active_profile(
    profile_name: str | None = None,
    env_prefix: str = "",
    config_path: Path | None = None,
) -> tuple[str, DatabaseProfile]:
    """Get a profile's name and configuration.

    Args:
        profile_name: Profile from db.toml (default: active profile).
        env_prefix: Prefix for the ``DB_PROFILE`` env var.
        config_path: Path to db.toml (default: ``./db.toml``).

    Raises:
        ProfileNotFoundError: If no profile given and none configured
        KeyError: If profile not found in db.toml
    """
    if profile_name is None:
        profile_name = get_active_profile_name(env_prefix)
    config = load_db_config(config_path)

    if profile_name not in config.profiles:
        raise KeyError(
            f"Profile '{profile_name}' not found in db.toml.\n"
            f"Available profiles: {', '.join(config.profiles.keys())}"
        )

    return profile_name, config.profiles[profile_name]


# ============================================================================
# URL Resolution
# ============================================================================


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    The password is URL-quoted so special characters survive.

    Example:
        >>> p = DatabaseProfile(url="postgresql://u:[YOUR-PASSWORD]@h/db", db_password="p@ss")
        >>> resolve_url(p)
        'postgresql://u:p%40ss@h/db'
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


# ============================================================================
# Store Factory
# ============================================================================


async def get_adapter(
    profile_name: str | None = None,
    env_prefix: str = "",
    database_url: str | None = None,
    config_path: Path | None = None,
) -> DocumentStore:
    """Build a new document store.

    Args:
        profile_name: Profile from db.toml (default: active profile).
        env_prefix: Prefix for the ``DB_PROFILE`` env var.
        database_url: Direct PostgreSQL URL; skips profile resolution.
        config_path: Path to db.toml (default: ``./db.toml``).

    Returns:
        ``AsyncPostgresAdapter``, or ``MemoryDocumentStore`` for profiles
        with ``provider = "memory"``.  A fresh instance on every call.

    Raises:
        ProfileNotFoundError: No profile given and none active.
        KeyError: The profile is not defined in db.toml.
    """
    if database_url is not None:
        return AsyncPostgresAdapter(database_url=database_url)

    profile_name, profile = get_active_profile(profile_name, env_prefix, config_path)

    if profile.provider == "memory":
        logger.debug("Using in-memory store for profile '%s'", profile_name)
        return MemoryDocumentStore()

    logger.debug("Using PostgreSQL store for profile '%s'", profile_name)
    return AsyncPostgresAdapter(database_url=resolve_url(profile))


# ============================================================================
# Connection and Validation
# ============================================================================


async def connect_and_validate(
    profile_name: str | None = None,
    env_prefix: str = "",
    validate_only: bool = False,
    config_path: Path | None = None,
) -> ConnectionResult:
    """Connect to the store and validate its layout.

    Writes the profile lock file when the layout is valid (unless
    *validate_only*), so later calls can omit the profile name.

    Args:
        profile_name: Profile from db.toml (default: active profile).
        env_prefix: Prefix for the ``DB_PROFILE`` env var.
        validate_only: Check only; never write the lock file.
        config_path: Path to db.toml (default: ``./db.toml``).

    Returns:
        ConnectionResult with success status and validation report

    Example:
        >>> result = await connect_and_validate("local")
        >>> if not result.success:
        ...     print(result.error)
    """
    if profile_name is None:
        try:
            profile_name = get_active_profile_name(env_prefix)
        except ProfileNotFoundError as e:
            return ConnectionResult(success=False, error=str(e))

    try:
        config = load_db_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        return ConnectionResult(success=False, profile_name=profile_name, error=str(e))

    if profile_name not in config.profiles:
        available = ", ".join(config.profiles.keys())
        return ConnectionResult(
            success=False,
            profile_name=profile_name,
            error=f"Profile '{profile_name}' not found. Available: {available}",
        )
    profile = config.profiles[profile_name]

    # In-memory stores have no live layout to introspect
    if profile.provider == "memory":
        if not validate_only:
            write_profile_lock(profile_name)
        return ConnectionResult(
            success=True,
            profile_name=profile_name,
            provider=profile.provider,
        )

    try:
        async with SchemaIntrospector(resolve_url(profile)) as introspector:
            actual_columns = await introspector.get_column_names()
    except Exception as e:
        return ConnectionResult(
            success=False,
            profile_name=profile_name,
            provider=profile.provider,
            error=f"Failed to connect to store: {e}",
        )

    validation = validate_schema(actual_columns)

    if not validation.valid:
        return ConnectionResult(
            success=False,
            profile_name=profile_name,
            provider=profile.provider,
            schema_valid=False,
            schema_report=validation,
            error=f"Store layout validation failed: {validation.error_count} errors",
        )

    if not validate_only:
        write_profile_lock(profile_name)

    return ConnectionResult(
        success=True,
        profile_name=profile_name,
        provider=profile.provider,
        schema_valid=True,
        schema_report=validation,
    )
