"""Error taxonomy for deployment runs.

Every fatal condition is a DeployError; the CLI turns any of them into
exit status 1. A failed health check is not an error, it triggers rollback.
"""


class DeployError(Exception):
    """Base class for fatal deployment errors."""

    exit_code = 1


class InputError(DeployError):
    """Missing or malformed deployment parameters."""


class PreflightError(DeployError):
    """A required external tool is not installed."""

    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(f"Required tool '{tool}' is not installed")


class SyncError(DeployError):
    """Clone, pull or checkout of the working copy failed."""


class BackupError(DeployError):
    """Copying the current deployment into a backup failed."""


class BuildError(DeployError):
    """Preparing the build context or building the image failed."""


class LaunchError(DeployError):
    """The new container could not be started."""


class RollbackError(DeployError):
    """Restoring or rebuilding the previous version failed."""
