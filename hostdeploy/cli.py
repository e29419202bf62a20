#!/usr/bin/env python3
"""hostdeploy CLI - single-host container deployments with automatic rollback."""

import typer
from rich.console import Console

from hostdeploy.cli_deploy_commands import register_deploy_commands
from hostdeploy.cli_recovery_commands import register_recovery_commands
from hostdeploy.cli_utility_commands import register_utility_commands
from hostdeploy.core.logger import get_logger

app = typer.Typer(
    name="hostdeploy",
    help="""hostdeploy - Deploy a containerised app on this host, roll back if it is unhealthy

Quick start:
  hostdeploy doctor                                         # Check required tools
  hostdeploy deploy --app=myapp --version=1.2.0 --env=prod  # Deploy a version
  hostdeploy backups --app=myapp                            # List backups
  hostdeploy rollback --app=myapp                           # Restore the latest backup

More commands: hostdeploy --help
""",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)

# Attach modular subcommands
register_deploy_commands(app, console)
register_recovery_commands(app, console)
register_utility_commands(app, console)


def main():
    app()


if __name__ == "__main__":
    main()
