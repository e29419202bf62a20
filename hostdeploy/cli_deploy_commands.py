"""Deploy CLI command."""
from typing import Optional

import click
import typer
from rich.console import Console
from typer.core import TyperCommand

from hostdeploy.core.errors import DeployError, InputError
from hostdeploy.models.request import parse_request

# Module-level console instance (will be set by register function)
console: Console = Console()


class DeployCommand(TyperCommand):
    """Report option parsing errors with the deploy usage line and exit 1."""

    def parse_args(self, ctx, args):
        try:
            return super().parse_args(ctx, args)
        except click.UsageError as e:
            from hostdeploy.cli_support import print_usage_error
            print_usage_error(console, e.format_message())


def deploy(
    ctx: typer.Context,
    app_name: Optional[str] = typer.Option(None, "--app", help="Application name"),
    version: Optional[str] = typer.Option(None, "--version", help="Version to deploy (image tag)"),
    environment: Optional[str] = typer.Option(None, "--env", help="Target environment"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Path to log file"),
):
    """Deploy a version of an application, rolling back if it is unhealthy.

    Steps: check tools, sync the working copy, back up the current
    deployment, build and start the container, probe it over HTTP.

    Examples:
        hostdeploy deploy --app=myapp --version=1.2.0 --env=production
    """
    from hostdeploy.cli_support import (
        build_context,
        build_orchestrator,
        handle_cli_error,
        print_error,
        print_success,
        print_usage_error,
        setup_file_logging,
    )

    if ctx.args:
        print_usage_error(console, f"Unknown parameter: {ctx.args[0]}")

    try:
        request = parse_request(app_name, version, environment)
    except InputError as e:
        print_usage_error(console, str(e))

    setup_file_logging(log_file=log_file, verbose=verbose)

    try:
        context = build_context(request, config_path=config)
        console.print(
            f"[bold]Deploying {request.app_name} version {request.version} "
            f"to {request.environment}[/bold]"
        )
        result = build_orchestrator(context).run()
    except DeployError as e:
        handle_cli_error(e, console, verbose, exit_code=e.exit_code)

    if result.succeeded:
        print_success(console, "Deployment completed successfully")
        return

    print_error(console, f"Deployment failed: application was {result.health.describe()}")
    console.print(f"Rollback: {result.rollback.describe()}")
    console.print(f"[dim]Failure recorded in {context.config.error_log}[/dim]")
    raise typer.Exit(result.exit_code)


def register_deploy_commands(app: typer.Typer, shared_console: Console):
    """Register the deploy command with the main Typer app.

    Unknown options are collected instead of rejected by click, and option
    values click cannot parse go through DeployCommand, so both are reported
    with exit status 1 like every other input error.
    """
    global console
    console = shared_console

    app.command(
        cls=DeployCommand,
        context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
    )(deploy)
