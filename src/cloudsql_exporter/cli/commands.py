"""Command implementations of the ``cloudsql-exporter`` CLI.

Each ``cmd_*`` function takes the parsed ``argparse.Namespace`` and returns
an exit code.  Remote commands wrap an async implementation with
``asyncio.run()``; ``locate`` is local only.
"""

import argparse
import asyncio
import logging
import signal
from pathlib import Path

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import HttpError
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from cloudsql_exporter.backup.export import backup_instances
from cloudsql_exporter.backup.location import BackupLocation
from cloudsql_exporter.backup.restore import restore_instance
from cloudsql_exporter.config.loader import load_config, password_from_env
from cloudsql_exporter.config.models import BackupOptions, ExporterConfig, RestoreOptions
from cloudsql_exporter.errors import ConfigurationError, ExporterError
from cloudsql_exporter.factory import create_services

logger = logging.getLogger(__name__)

console = Console()

# Errors reported as a failed run instead of a traceback
REMOTE_ERRORS = (HttpError, GoogleAPIError, GoogleAuthError, SQLAlchemyError)


# ============================================================================
# Helpers
# ============================================================================


def _load_config(args: argparse.Namespace) -> ExporterConfig:
    config_path = Path(args.config) if args.config else None
    return load_config(config_path, env_prefix=args.env_prefix)


def _install_cancel_handlers(cancel_event: asyncio.Event) -> None:
    """Set ``cancel_event`` on SIGINT/SIGTERM so pending waits stop."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, cancel_event.set)
        except (NotImplementedError, RuntimeError):
            # No signal support on this platform/loop
            logger.debug(f"Cannot install handler for {sig.name}")


def _report_error(error: Exception) -> int:
    if isinstance(error, (ConfigurationError, ValidationError, ValueError, FileNotFoundError)):
        console.print(f"[bold red]x[/bold red] Configuration error: {error}")
    else:
        console.print(f"[bold red]x[/bold red] {error}")
    return 1


def backup_options_from_args(args: argparse.Namespace) -> BackupOptions:
    """Build ``BackupOptions`` from CLI arguments.

    The password falls back to ``{env_prefix}CLOUDSQL_PASSWORD``.
    """
    password = args.password or password_from_env(args.env_prefix)
    return BackupOptions(
        bucket=args.bucket,
        project=args.project,
        instance=args.instance,
        user=args.user,
        password=password,
        export_stats=args.stats,
        compression=args.compression,
        ensure_iam_bindings=args.ensure_iam_bindings,
        ensure_iam_bindings_temp=args.ensure_iam_bindings_temp,
        validate_restore=args.validate,
    )


def restore_options_from_args(args: argparse.Namespace) -> RestoreOptions:
    """Build ``RestoreOptions`` from CLI arguments."""
    return RestoreOptions(
        bucket=args.bucket,
        project=args.project,
        instance=args.instance,
        file=args.file,
        user=args.user,
        store_secret=args.store_secret,
        cleanup=args.cleanup,
    )


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_backup(args: argparse.Namespace) -> int:
    """Export all (or one) instances of a project."""
    try:
        options = backup_options_from_args(args)
        config = _load_config(args)
    except (ValidationError, ValueError, FileNotFoundError) as e:
        return _report_error(e)

    cancel_event = asyncio.Event()
    _install_cancel_handlers(cancel_event)

    target = options.instance or f"all instances of {options.project}"
    console.print(f"Backing up {target} to gs://{options.bucket}...", style="dim")

    try:
        services = create_services(options.project, config, cancel_event)
        locations = await backup_instances(services, options)
    except (ExporterError, *REMOTE_ERRORS) as e:
        return _report_error(e)

    table = Table(title="Exported databases", show_header=True, header_style="bold")
    table.add_column("Instance")
    table.add_column("Database")
    table.add_column("Location")
    for uri in locations:
        location = BackupLocation.parse(uri)
        table.add_row(location.instance, location.database, uri)

    console.print()
    console.print(table)
    console.print(f"[bold green]v[/bold green] {len(locations)} database(s) exported")
    return 0


async def _async_restore(args: argparse.Namespace) -> int:
    """Restore one dump into the restore instance."""
    try:
        options = restore_options_from_args(args)
        config = _load_config(args)
    except (ValidationError, ValueError, FileNotFoundError) as e:
        return _report_error(e)

    cancel_event = asyncio.Event()
    _install_cancel_handlers(cancel_event)

    console.print(f"Restoring {options.file}...", style="dim")

    try:
        services = create_services(options.project, config, cancel_event)
        result = await restore_instance(services, options)
    except (ExporterError, *REMOTE_ERRORS) as e:
        return _report_error(e)

    table = Table(title="Restore", show_header=False)
    table.add_column("Key", style="dim")
    table.add_column("Value")
    table.add_row("Instance", f"[bold cyan]{result.instance}[/bold cyan]")
    table.add_row("Database", result.database)
    if result.secret_id:
        table.add_row("Root password", f"Secret Manager: {result.secret_id}")
    else:
        table.add_row("Root password", "[yellow]not stored[/yellow]")
    if result.validated:
        table.add_row("Integrity", f"[green]{result.tables_checked} table(s) match[/green]")
    else:
        table.add_row("Integrity", "[yellow]no statistics artifact[/yellow]")
    table.add_row("Cleaned up", "yes" if result.cleaned_up else "no")

    console.print()
    console.print(table)
    console.print("[bold green]v[/bold green] Restore complete")
    return 0


# ============================================================================
# Sync wrappers
# ============================================================================


def cmd_backup(args: argparse.Namespace) -> int:
    """Export databases to the bucket.

    Wraps the async implementation with ``asyncio.run()``.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 on failure.
    """
    return asyncio.run(_async_backup(args))


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore a dump into the restore instance.

    Wraps the async implementation with ``asyncio.run()``.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 on failure.
    """
    return asyncio.run(_async_restore(args))


def cmd_locate(args: argparse.Namespace) -> int:
    """Show the artifact locations derived from a dump reference.

    Parses locally -- no remote calls.

    Returns:
        0 on success, 1 if the reference cannot be parsed.
    """
    try:
        location = BackupLocation.parse(args.file)
    except ConfigurationError as e:
        return _report_error(e)

    table = Table(title="Backup Location", show_header=False)
    table.add_column("Key", style="dim")
    table.add_column("Value")
    table.add_row("Bucket", location.bucket)
    table.add_row("Instance", location.instance)
    table.add_row("Database", location.database)
    table.add_row("Timestamp", location.timestamp)
    table.add_row("Compressed", "yes" if location.compression else "no")
    table.add_row("Dump", location.database_location(location.database))
    table.add_row("Users", location.user_location())
    table.add_row("Statistics", location.stats_location())

    console.print(table)
    return 0
