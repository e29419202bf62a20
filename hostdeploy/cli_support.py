"""Shared utilities for hostdeploy CLI modules."""
from __future__ import annotations

import os
from typing import Optional

import typer
from rich.console import Console

from hostdeploy.core.config import DeployConfig, load_config
from hostdeploy.core.orchestrator import DeploymentOrchestrator
from hostdeploy.models.context import DeploymentContext
from hostdeploy.models.request import DeploymentRequest

DEPLOY_USAGE = "Usage: hostdeploy deploy --app=<name> --version=<version> --env=<environment>"


def is_mock() -> bool:
    """Return True when CLI runs in mock mode."""
    return os.environ.get("HOSTDEPLOY_MOCK") == "1"


def setup_file_logging(log_file: Optional[str] = None, verbose: bool = False) -> None:
    """Set up file logging for CLI commands.

    Args:
        log_file: Path to log file (optional)
        verbose: Enable verbose logging
    """
    from hostdeploy.core.logger import set_verbose
    from hostdeploy.core.logger import setup_file_logging as _setup_file_logging
    _setup_file_logging(log_file=log_file, verbose=verbose)
    set_verbose(verbose)


def build_context(request: DeploymentRequest, config_path: Optional[str] = None,
                  config: Optional[DeployConfig] = None) -> DeploymentContext:
    """Combine a request with the effective configuration."""
    return DeploymentContext(request=request, config=config or load_config(config_path))


def build_orchestrator(context: DeploymentContext,
                       mock: Optional[bool] = None) -> DeploymentOrchestrator:
    """Return a DeploymentOrchestrator with mock defaults."""
    if mock is None:
        mock = is_mock()
    return DeploymentOrchestrator.from_context(context, mock=mock)


def handle_cli_error(
    e: Exception,
    console: Console,
    verbose: bool = False,
    exit_code: int = 1
) -> None:
    """Handle CLI errors with consistent formatting.

    Args:
        e: Exception to handle
        console: Rich console for output
        verbose: Show exception traceback if True
        exit_code: Exit code to use
    """
    console.print(f"[red]Error:[/red] {e}")
    if verbose:
        console.print_exception()
    raise typer.Exit(exit_code)


def print_usage_error(console: Console, message: str, usage: str = DEPLOY_USAGE) -> None:
    """Print an input error followed by the usage line, then exit 1."""
    print_error(console, message)
    console.print(usage, markup=False)
    raise typer.Exit(1)


def print_success(console: Console, message: str, prefix: str = "✓") -> None:
    console.print(f"[green]{prefix}[/green] {message}")


def print_error(console: Console, message: str, prefix: str = "✗") -> None:
    console.print(f"[red]{prefix}[/red] {message}")


def print_warning(console: Console, message: str, prefix: str = "⚠") -> None:
    console.print(f"[yellow]{prefix}[/yellow] {message}")
