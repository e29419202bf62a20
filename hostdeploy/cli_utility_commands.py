"""Utility CLI commands - status, doctor, version."""
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from hostdeploy import __version__
from hostdeploy.core.errors import DeployError, InputError
from hostdeploy.core.lock import check_lock_status
from hostdeploy.models.request import parse_request

# Module-level console instance (will be set by register function)
console: Console = Console()

STATUS_USAGE = "Usage: hostdeploy status --app=<name>"


def status(
    app_name: Optional[str] = typer.Option(None, "--app", help="Application name"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Show the lock holder, container state and latest backup of an app."""
    from hostdeploy.cli_support import build_context, handle_cli_error, is_mock, print_usage_error
    from hostdeploy.core.backup import BackupManager
    from hostdeploy.core.releases import ReleaseManager
    from hostdeploy.services.docker_manager import DockerManager

    try:
        request = parse_request(app_name, "manual", "default")
    except InputError as e:
        print_usage_error(console, str(e), usage=STATUS_USAGE)

    try:
        context = build_context(request, config_path=config)
    except DeployError as e:
        handle_cli_error(e, console, exit_code=e.exit_code)

    docker = DockerManager(mock=is_mock())
    lock_info = check_lock_status(context.lock_file)
    latest_backup = BackupManager(context.backup_dir).latest_backup()
    releases = ReleaseManager(context.deploy_dir).list_releases()

    if docker.is_running(context.container_name):
        container_state = "[green]running[/green]"
    elif docker.container_exists(context.container_name):
        container_state = "[yellow]stopped[/yellow]"
    else:
        container_state = "[red]absent[/red]"

    if lock_info:
        lock_state = f"[yellow]held by PID {lock_info['pid']} since {lock_info['time']}[/yellow]"
    else:
        lock_state = "[green]free[/green]"

    console.print(Panel(
        f"[bold]Container:[/bold] {context.container_name} ({container_state})\n"
        f"[bold]Lock:[/bold] {lock_state}\n"
        f"[bold]Current:[/bold] {context.current_dir if context.current_dir.exists() else 'none'}\n"
        f"[bold]Releases:[/bold] {', '.join(r.name for r in releases) or 'none'}\n"
        f"[bold]Latest backup:[/bold] {latest_backup.name if latest_backup else 'none'}",
        title=f"{request.app_name}",
        border_style="blue"
    ))


def doctor(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Check that every tool a deployment needs is installed."""
    from hostdeploy.cli_support import handle_cli_error, print_error, print_success
    from hostdeploy.core.config import load_config
    from hostdeploy.core.preflight import resolve_tools

    try:
        settings = load_config(config)
    except DeployError as e:
        handle_cli_error(e, console, exit_code=e.exit_code)

    resolved = resolve_tools(settings.required_tools)

    table = Table(title="Required tools", show_header=True)
    table.add_column("Tool", style="cyan")
    table.add_column("Path")

    for tool, path in resolved.items():
        table.add_row(tool, path if path else "[red]missing[/red]")

    console.print(table)

    missing = [tool for tool, path in resolved.items() if path is None]
    if missing:
        print_error(console, f"Missing tools: {', '.join(missing)}")
        raise typer.Exit(1)

    print_success(console, "All dependencies are present")


def version():
    """Show hostdeploy version."""
    console.print(f"hostdeploy v{__version__}")


def register_utility_commands(app: typer.Typer, shared_console: Console):
    """Register utility commands with the main Typer app.

    Args:
        app: Main Typer application
        shared_console: Shared Rich console instance
    """
    global console
    console = shared_console

    app.command()(status)
    app.command()(doctor)
    app.command()(version)
