"""CLI for store profiles, layout management, and table browsing.

Usage:
    DB_PROFILE=local dyntable connect
    dyntable status
    dyntable profiles
    dyntable validate
    dyntable init --confirm
    dyntable tables
    dyntable show contacts
    dyntable records contacts --search john --filters status=active --sort-by name

Commands:
    connect   - Connect to the store and validate its layout
    status    - Show current connection status
    profiles  - List available profiles
    validate  - Re-validate the current profile's store layout
    init      - Create the schemas/contents tables and indexes
    tables    - List registered tables
    show      - Show one table's fields
    records   - List one page of a table's records
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from dyntable.config.loader import load_db_config
from dyntable.config.models import ContentSettings
from dyntable.content.models import ContentQueryParams
from dyntable.content.query import parse_filters
from dyntable.content.records import RecordManager
from dyntable.content.registry import SchemaRegistry
from dyntable.content.validator import related_key
from dyntable.errors import DyntableError
from dyntable.factory import (
    ProfileNotFoundError,
    connect_and_validate,
    get_active_profile_name,
    get_adapter,
    read_profile_lock,
)
from dyntable.layout.bootstrap import LAYOUT_DDL, ensure_layout

console = Console()
logger = logging.getLogger("dyntable")


# ============================================================================
# Helpers
# ============================================================================


def _config_path(args: argparse.Namespace) -> Path | None:
    config = getattr(args, "config", None)
    return Path(config) if config else None


def _content_settings(args: argparse.Namespace) -> ContentSettings:
    """Content settings from db.toml, or defaults if it cannot be read."""
    try:
        return load_db_config(_config_path(args)).content
    except (FileNotFoundError, ValueError):
        return ContentSettings()


def _format_value(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_connect(args: argparse.Namespace) -> int:
    """Async implementation for connect command.

    Returns:
        0 on success, 1 on failure.
    """
    previous_profile = read_profile_lock()

    console.print("Connecting to store...", style="dim")

    result = await connect_and_validate(
        env_prefix=args.env_prefix, config_path=_config_path(args)
    )

    if not result.success:
        console.print()
        console.print(f"[bold red]x[/bold red] {result.error}")
        if result.schema_report:
            console.print("\n[bold]Store layout report:[/bold]")
            console.print(result.schema_report.format_report())
        return 1

    console.print()
    console.print(
        f"[bold green]v[/bold green] Connected to profile: "
        f"[bold cyan]{result.profile_name}[/bold cyan] ({result.provider})"
    )
    if result.schema_valid:
        console.print("  Store layout: [green]PASSED[/green]")
    if result.schema_report and result.schema_report.extra_tables:
        console.print(
            f"  Extra tables: [yellow]"
            f"{', '.join(result.schema_report.extra_tables)}[/yellow]"
        )

    if previous_profile and previous_profile != result.profile_name:
        console.print(
            f"\n[dim]Switched from[/dim] [bold]{previous_profile}[/bold] "
            f"[dim]to[/dim] [bold cyan]{result.profile_name}[/bold cyan]"
        )
    return 0


async def _async_validate(args: argparse.Namespace) -> int:
    """Async implementation for validate command.

    Returns:
        0 on valid layout, 1 on invalid or no profile.
    """
    profile = read_profile_lock()
    if not profile:
        console.print("[yellow]No validated profile.[/yellow]")
        console.print("[dim]Run[/dim] [cyan]dyntable connect[/cyan] [dim]first.[/dim]")
        return 1

    console.print(f"Validating store layout for profile: [bold cyan]{profile}[/bold cyan]")

    result = await connect_and_validate(
        profile_name=profile,
        env_prefix=args.env_prefix,
        validate_only=True,
        config_path=_config_path(args),
    )

    console.print()
    if result.success:
        console.print("[bold green]v[/bold green] Store layout is valid")
        return 0

    console.print(f"[bold red]x[/bold red] {result.error}")
    if result.schema_report:
        console.print(result.schema_report.format_report())
    return 1


async def _async_init(args: argparse.Namespace) -> int:
    """Async implementation for init command.

    Without ``--confirm`` only prints the statements that would run.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        profile = get_active_profile_name(env_prefix=args.env_prefix)
    except ProfileNotFoundError as e:
        console.print(f"[yellow]{e}[/yellow]")
        return 1

    if not args.confirm:
        console.print(f"Statements for profile [bold cyan]{profile}[/bold cyan]:\n")
        for statement in LAYOUT_DDL:
            console.print(statement.strip(), style="dim", markup=False, highlight=False)
            console.print()
        console.print("[yellow]Dry run.[/yellow] Re-run with [cyan]--confirm[/cyan] to apply.")
        return 0

    store = await get_adapter(
        profile, env_prefix=args.env_prefix, config_path=_config_path(args)
    )
    try:
        count = await ensure_layout(store)
    except RuntimeError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1
    finally:
        await store.close()

    console.print(
        f"[bold green]v[/bold green] Store layout ready ({count} statements applied)"
    )
    return 0


async def _async_tables(args: argparse.Namespace) -> int:
    """Async implementation for tables command."""
    store = await get_adapter(env_prefix=args.env_prefix, config_path=_config_path(args))
    try:
        schemas = await SchemaRegistry(store).list()
    finally:
        await store.close()

    if not schemas:
        console.print("[yellow]No tables registered.[/yellow]")
        return 0

    table = Table(title="Tables", show_header=True, header_style="bold")
    table.add_column("Slug", style="cyan")
    table.add_column("Name")
    table.add_column("Fields", justify="right")
    table.add_column("Created", style="dim")

    for schema in schemas:
        created = schema.created_at.strftime("%Y-%m-%d %H:%M") if schema.created_at else ""
        table.add_row(schema.table_slug, schema.table_name, str(len(schema.fields)), created)

    console.print(table)
    return 0


async def _async_show(args: argparse.Namespace) -> int:
    """Async implementation for show command."""
    store = await get_adapter(env_prefix=args.env_prefix, config_path=_config_path(args))
    try:
        schema = await SchemaRegistry(store).get(args.slug)
    finally:
        await store.close()

    table = Table(
        title=f"{schema.table_name} ({schema.table_slug})",
        show_header=True,
        header_style="bold",
    )
    table.add_column("Field", style="cyan")
    table.add_column("Label")
    table.add_column("Type")
    table.add_column("Required", justify="center")
    table.add_column("Details", style="dim")

    for field in schema.fields:
        details: list[str] = []
        if field.data_validation:
            details.append(f"pattern {field.data_validation}")
        if field.options:
            details.append(f"options {', '.join(field.options)}")
        if field.relation_config:
            rc = field.relation_config
            multiple = ", multiple" if rc.allow_multiple else ""
            details.append(
                f"{rc.relation_type.value} -> {rc.related_table}.{rc.related_field}{multiple}"
            )
        table.add_row(
            field.name,
            field.label,
            field.data_type.value,
            "[green]v[/green]" if field.required else "",
            "; ".join(details),
        )

    console.print(table)
    return 0


async def _async_records(args: argparse.Namespace) -> int:
    """Async implementation for records command."""
    settings = _content_settings(args)
    params = ContentQueryParams(
        search=args.search,
        filters=parse_filters(args.filters),
        sort_by=args.sort_by,
        sort_dir=args.sort_dir,
        page=args.page,
        page_size=args.page_size or settings.default_page_size,
    )

    store = await get_adapter(env_prefix=args.env_prefix, config_path=_config_path(args))
    try:
        manager = RecordManager(
            store,
            strict=settings.strict_validation,
            default_page_size=settings.default_page_size,
            max_page_size=settings.max_page_size,
        )
        schema = await manager.registry.get(args.slug)
        page = await manager.list(args.slug, params)
    finally:
        await store.close()

    table = Table(
        title=f"{schema.table_name}: page {page.page} of {max(page.total_pages, 1)}",
        caption=f"{page.total} records",
        show_header=True,
        header_style="bold",
    )
    table.add_column("id", style="dim", no_wrap=True)
    for field in schema.fields:
        table.add_column(field.label or field.name)

    for record in page.contents:
        row = [record.id[:8]]
        for field in schema.fields:
            related = record.values.get(related_key(field.name))
            if isinstance(related, dict) and field.relation_config:
                shown = related.get(field.relation_config.display_field)
                if shown is None:
                    shown = record.values.get(field.name)
                row.append(_format_value(shown))
            else:
                row.append(_format_value(record.values.get(field.name)))
        table.add_row(*row)

    console.print(table)
    return 0


def _run(coro_fn, args: argparse.Namespace) -> int:
    """Run an async command, reporting domain and profile errors."""
    try:
        return asyncio.run(coro_fn(args))
    except (DyntableError, ProfileNotFoundError, KeyError, FileNotFoundError, ValueError) as e:
        logger.debug("Command failed", exc_info=True)
        message = e.args[0] if isinstance(e, KeyError) and e.args else e
        console.print(f"[bold red]x[/bold red] {message}")
        return 1


# ============================================================================
# Command wrappers (cmd_status, cmd_profiles read local files only)
# ============================================================================


def cmd_connect(args: argparse.Namespace) -> int:
    """Connect to the store and validate its layout."""
    return _run(_async_connect, args)


def cmd_status(args: argparse.Namespace) -> int:
    """Show current connection status.

    Reads only local files (lock file and TOML config) -- no store calls.

    Returns:
        0 always (informational command).
    """
    profile = read_profile_lock()

    if not profile:
        console.print("[yellow]No validated profile.[/yellow]")
        console.print("[dim]Run:[/dim] [cyan]DB_PROFILE=<name> dyntable connect[/cyan]")
        return 0

    table = Table(title="Connection Status", show_header=False)
    table.add_column("Key", style="dim")
    table.add_column("Value")

    table.add_row("Current profile", f"[bold cyan]{profile}[/bold cyan]")
    table.add_row("Profile source", ".db-profile (validated)")

    try:
        config = load_db_config(_config_path(args))
        if profile in config.profiles:
            p = config.profiles[profile]
            table.add_row("Provider", p.provider)
            if p.description:
                table.add_row("Description", p.description)
        table.add_row("Page size", f"{config.content.default_page_size} (max {config.content.max_page_size})")
        table.add_row("Strict validation", "on" if config.content.strict_validation else "off")
    except FileNotFoundError:
        table.add_row("Warning", "[yellow]db.toml not found[/yellow]")

    console.print(table)
    return 0


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from db.toml.

    Returns:
        0 on success, 1 if db.toml not found.
    """
    try:
        config = load_db_config(_config_path(args))
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    current = read_profile_lock()

    table = Table(title="Store Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Provider")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        table.add_row(
            marker,
            f"[bold cyan]{name}[/bold cyan]" if name == current else name,
            profile.provider,
            profile.description or "",
        )

    console.print(table)
    if current:
        console.print("\n[bold green]*[/bold green] = current profile")
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """Re-validate the current profile's store layout."""
    return _run(_async_validate, args)


def cmd_init(args: argparse.Namespace) -> int:
    """Create the store layout (requires ``--confirm``)."""
    return _run(_async_init, args)


def cmd_tables(args: argparse.Namespace) -> int:
    """List registered tables, newest first."""
    return _run(_async_tables, args)


def cmd_show(args: argparse.Namespace) -> int:
    """Show one table's field definitions."""
    return _run(_async_show, args)


def cmd_records(args: argparse.Namespace) -> int:
    """List one page of a table's records with relations resolved."""
    return _run(_async_records, args)


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="dyntable",
        description="User-defined tables over a JSON document store",
    )
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DB_PROFILE)"
        ),
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to db.toml (default: ./db.toml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "connect", help="Connect to the store and validate its layout"
    ).set_defaults(func=cmd_connect)
    subparsers.add_parser(
        "status", help="Show current connection status"
    ).set_defaults(func=cmd_status)
    subparsers.add_parser(
        "profiles", help="List available profiles"
    ).set_defaults(func=cmd_profiles)
    subparsers.add_parser(
        "validate", help="Re-validate the current profile's store layout"
    ).set_defaults(func=cmd_validate)

    p_init = subparsers.add_parser("init", help="Create the store layout")
    p_init.add_argument("--confirm", action="store_true", help="Apply the statements")
    p_init.set_defaults(func=cmd_init)

    subparsers.add_parser("tables", help="List registered tables").set_defaults(func=cmd_tables)

    p_show = subparsers.add_parser("show", help="Show a table's fields")
    p_show.add_argument("slug", help="Table slug")
    p_show.set_defaults(func=cmd_show)

    p_records = subparsers.add_parser("records", help="List a table's records")
    p_records.add_argument("slug", help="Table slug")
    p_records.add_argument("--search", default="", help="Case-insensitive text search")
    p_records.add_argument(
        "--filters",
        default="",
        help="Exact-match filters (e.g., status=active,city=Paris)",
    )
    p_records.add_argument("--sort-by", default="", help="Field name, created_at, or updated_at")
    p_records.add_argument("--sort-dir", default="", choices=["", "asc", "desc"])
    p_records.add_argument("--page", type=int, default=1)
    p_records.add_argument("--page-size", type=int, default=0, help="Default: from db.toml")
    p_records.set_defaults(func=cmd_records)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
