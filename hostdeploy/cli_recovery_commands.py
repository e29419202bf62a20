"""Recovery CLI commands - rollback, backups."""
from datetime import datetime
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from hostdeploy.core.errors import DeployError, InputError
from hostdeploy.core.lock import deploy_lock
from hostdeploy.models.request import parse_request

# Module-level console instance (will be set by register function)
console: Console = Console()

ROLLBACK_USAGE = "Usage: hostdeploy rollback --app=<name> [--env=<environment>]"
BACKUPS_USAGE = "Usage: hostdeploy backups --app=<name> [--prune --keep N]"


def rollback(
    app_name: Optional[str] = typer.Option(None, "--app", help="Application name"),
    environment: str = typer.Option("default", "--env", help="Environment label for the record"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file path"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Path to log file"),
):
    """Restore the latest backup and restart the application from it."""
    from hostdeploy.cli_support import (
        build_context,
        build_orchestrator,
        handle_cli_error,
        is_mock,
        print_error,
        print_success,
        print_usage_error,
        print_warning,
        setup_file_logging,
    )

    try:
        request = parse_request(app_name, "manual", environment)
    except InputError as e:
        print_usage_error(console, str(e), usage=ROLLBACK_USAGE)

    if not (yes or is_mock()) and not typer.confirm(
        f"Replace the running {request.app_name} container with its latest backup?"
    ):
        print_warning(console, "Cancelled")
        raise typer.Exit(0)

    setup_file_logging(log_file=log_file, verbose=verbose)

    try:
        context = build_context(request, config_path=config)
        orchestrator = build_orchestrator(context)
        with deploy_lock(context.lock_file, timeout=context.config.lock_timeout):
            outcome = orchestrator.rollback("manual rollback requested", record=False)
    except DeployError as e:
        handle_cli_error(e, console, verbose, exit_code=e.exit_code)

    if outcome.backup is None:
        print_error(console, "No backup available, nothing to roll back to")
        raise typer.Exit(1)
    if not outcome.relaunched:
        print_error(console, f"Rollback {outcome.describe()}")
        raise typer.Exit(1)

    print_success(console, f"Rolled back {request.app_name}: {outcome.describe()}")


def backups(
    app_name: Optional[str] = typer.Option(None, "--app", help="Application name"),
    prune: bool = typer.Option(False, "--prune", help="Delete old backups"),
    keep: Optional[int] = typer.Option(None, "--keep", help="Backups to keep when pruning (default: backup_retention)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """List or prune backups of an application."""
    from hostdeploy.cli_support import (
        build_context,
        handle_cli_error,
        is_mock,
        print_success,
        print_usage_error,
        print_warning,
    )
    from hostdeploy.core.backup import BackupManager

    try:
        request = parse_request(app_name, "manual", "default")
    except InputError as e:
        print_usage_error(console, str(e), usage=BACKUPS_USAGE)

    try:
        context = build_context(request, config_path=config)
    except DeployError as e:
        handle_cli_error(e, console, exit_code=e.exit_code)

    manager = BackupManager(context.backup_dir, mock=is_mock())

    if prune:
        limit = keep if keep is not None else context.config.backup_retention
        if limit <= 0:
            print_warning(console, "Retention is unlimited, nothing pruned")
            return
        deleted = manager.cleanup_old_backups(keep=limit)
        print_success(console, f"Deleted {deleted} old backup(s)")
        return

    entries = manager.list_backups()
    if not entries:
        print_warning(console, f"No backups found for {request.app_name}")
        return

    table = Table(title=f"Backups of {request.app_name}")
    table.add_column("Backup", style="cyan", no_wrap=True)
    table.add_column("Created", style="yellow", no_wrap=True)
    table.add_column("Path", style="dim")

    for index, entry in enumerate(entries):
        created = datetime.fromtimestamp(entry.stat().st_mtime).strftime('%Y-%m-%d %H:%M:%S')
        name = f"{entry.name} (latest)" if index == 0 else entry.name
        table.add_row(name, created, str(entry))

    console.print(table)


def register_recovery_commands(app: typer.Typer, shared_console: Console):
    """Register recovery commands with the main Typer app.

    Args:
        app: Main Typer application
        shared_console: Shared Rich console instance
    """
    global console
    console = shared_console

    app.command()(rollback)
    app.command()(backups)
