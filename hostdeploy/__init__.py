"""hostdeploy - single-host container deployments with automatic rollback."""

__version__ = "0.1.0"
