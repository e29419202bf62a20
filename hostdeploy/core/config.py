"""hostdeploy runtime configuration and settings."""
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from hostdeploy.core.errors import DeployError

ENV_PREFIX = "HOSTDEPLOY_"

UPDATE_STRATEGIES = ("merge", "tag")

# Default config search paths (ordered by proximity to current run)
CONFIG_PATHS = [
    "./hostdeploy.yml",
    str(Path.home() / ".config" / "hostdeploy" / "hostdeploy.yml"),
    "/etc/hostdeploy/hostdeploy.yml",
]


class ConfigError(DeployError):
    """Raised when configuration cannot be loaded or is invalid."""


@dataclass(frozen=True)
class DeployConfig:
    """Runtime configuration for a deployment run.

    Attributes:
        deploy_root: Parent directory of per-app working copies
        backup_root: Parent directory of per-app backup snapshots
        lock_dir: Directory holding per-app lock files
        lock_timeout: Seconds to wait for the app lock (0 = fail immediately)
        repo_host: Base URL of the git host
        repo_owner: Account owning the repositories
        repo_name: Fixed repository name (None = use the app name)
        default_branch: Branch merged by the ``merge`` update strategy
        update_strategy: ``merge`` (pull default branch) or ``tag`` (checkout a ref)
        tag_template: Ref checked out by the ``tag`` strategy, formatted with ``version``
        required_tools: Executables that must be on PATH before deploying
        host_port: Host port published for the container
        container_port: Port the application listens on inside the container
        health_host: Host used for the health probe URL
        health_path: Path used for the health probe URL
        warmup_delay: Seconds to wait after launch before probing
        connect_timeout: Connect timeout in seconds for each probe
        read_timeout: Read timeout in seconds for each probe
        probe_attempts: Number of probes before declaring failure (default: 1)
        probe_interval: Seconds between probes
        backup_retention: Backups kept per app (0 = keep all)
        release_retention: Release directories kept per app (0 = keep all)
        error_log: Append-only log of failed deployments
        mail_recipients: Operators notified through the ``mail`` command
        mail_command: Mail executable
        webhook_url: Optional URL receiving a JSON failure notification
    """

    deploy_root: str = "/tmp/deployments"
    backup_root: str = "/tmp/backups"
    lock_dir: str = "/tmp/hostdeploy/locks"
    lock_timeout: int = 0

    repo_host: str = "https://github.com"
    repo_owner: str = "vey1po"
    repo_name: Optional[str] = "myapp"
    default_branch: str = "main"
    update_strategy: str = "merge"
    tag_template: str = "v{version}"

    required_tools: Tuple[str, ...] = ("git", "docker", "curl", "nginx")

    host_port: int = 8080
    container_port: int = 80

    health_host: str = "localhost"
    health_path: str = "/"
    warmup_delay: float = 10.0
    connect_timeout: float = 5.0
    read_timeout: float = 10.0
    probe_attempts: int = 1
    probe_interval: float = 5.0

    backup_retention: int = 5
    release_retention: int = 3

    error_log: str = "/tmp/deploy_error.log"
    mail_recipients: Tuple[str, ...] = ()
    mail_command: str = "mail"
    webhook_url: Optional[str] = None

    def __post_init__(self):
        if self.update_strategy not in UPDATE_STRATEGIES:
            raise ConfigError(
                f"update_strategy must be one of {', '.join(UPDATE_STRATEGIES)}, "
                f"got '{self.update_strategy}'"
            )
        for name in ("host_port", "container_port"):
            port = getattr(self, name)
            if not 0 < port < 65536:
                raise ConfigError(f"{name} must be between 1 and 65535, got {port}")
        if self.probe_attempts < 1:
            raise ConfigError("probe_attempts must be at least 1")
        for name in ("lock_timeout", "backup_retention", "release_retention",
                     "warmup_delay", "probe_interval"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must not be negative")
        if self.connect_timeout <= 0 or self.read_timeout <= 0:
            raise ConfigError("Probe timeouts must be positive")
        if not self.health_path.startswith("/"):
            raise ConfigError(f"health_path must start with '/', got '{self.health_path}'")

    @classmethod
    def from_env(cls, base: Optional["DeployConfig"] = None) -> "DeployConfig":
        """Create config from HOSTDEPLOY_* environment variables.

        Each field maps to the upper-cased variable, e.g. ``HOSTDEPLOY_HOST_PORT``.
        List fields accept comma-separated values.

        Args:
            base: Config to overlay (defaults to built-in defaults)

        Returns:
            DeployConfig instance with values from environment or base
        """
        base = base or cls()
        overrides = {}
        for field in fields(cls):
            raw = os.getenv(f"{ENV_PREFIX}{field.name.upper()}")
            if raw is None:
                continue
            overrides[field.name] = _coerce(field.name, raw, from_env=True)
        return replace(base, **overrides) if overrides else base

    @classmethod
    def from_file(cls, path: str, base: Optional["DeployConfig"] = None) -> "DeployConfig":
        """Create config from a YAML file.

        Raises:
            ConfigError: If the file is unreadable, malformed, or has unknown keys
        """
        base = base or cls()
        config_path = Path(path)
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read config file {config_path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

        if data is None:
            return base
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping")

        known = {field.name for field in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys in {config_path}: {', '.join(unknown)}")

        overrides = {key: _coerce(key, value) for key, value in data.items()}
        return replace(base, **overrides)


_INT_FIELDS = {
    "lock_timeout", "host_port", "container_port", "probe_attempts",
    "backup_retention", "release_retention",
}
_FLOAT_FIELDS = {
    "warmup_delay", "connect_timeout", "read_timeout", "probe_interval",
}
_TUPLE_FIELDS = {"required_tools", "mail_recipients"}
_OPTIONAL_FIELDS = {"repo_name", "webhook_url"}


def _coerce(name: str, value: Any, from_env: bool = False) -> Any:
    """Convert a raw YAML or environment value to the field's type."""
    if name in _INT_FIELDS:
        if isinstance(value, bool):
            raise ConfigError(f"{name} must be an integer")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{name} must be an integer, got {value!r}")

    if name in _FLOAT_FIELDS:
        if isinstance(value, bool):
            raise ConfigError(f"{name} must be a number")
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{name} must be a number, got {value!r}")

    if name in _TUPLE_FIELDS:
        if from_env or isinstance(value, str):
            return tuple(item.strip() for item in str(value).split(",") if item.strip())
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return tuple(value)
        raise ConfigError(f"{name} must be a list of strings")

    if value is None or (from_env and value == ""):
        if name in _OPTIONAL_FIELDS:
            return None
        raise ConfigError(f"{name} must not be empty")

    if not isinstance(value, str):
        raise ConfigError(f"{name} must be a string, got {value!r}")
    return value


def find_config(config_path: Optional[str] = None) -> Optional[str]:
    """Locate the active configuration file, if any."""
    if config_path:
        return config_path

    if env_config := os.environ.get("HOSTDEPLOY_CONFIG"):
        return env_config

    for path in CONFIG_PATHS:
        if Path(path).exists():
            return path

    return None


def load_config(config_path: Optional[str] = None) -> DeployConfig:
    """Build the effective config: defaults, then YAML file, then environment."""
    config = DeployConfig()
    resolved = find_config(config_path)
    if resolved:
        config = DeployConfig.from_file(resolved, base=config)
    return DeployConfig.from_env(base=config)
