"""Per-run deployment context: the request, the config, and derived names."""
from dataclasses import dataclass
from pathlib import Path

from hostdeploy.core.config import DeployConfig
from hostdeploy.models.request import DeploymentRequest

CURRENT_DIRNAME = "current"
RELEASE_PREFIX = "v"
RELEASE_MARKER = ".hostdeploy-release"
BACKUP_PREFIX = "backup_"


@dataclass(frozen=True)
class DeploymentContext:
    """Everything a step needs to know about the run.

    All paths and names are derived from the request and config, so every
    step sees the same values for the whole run.
    """

    request: DeploymentRequest
    config: DeployConfig

    @property
    def app_name(self) -> str:
        return self.request.app_name

    @property
    def version(self) -> str:
        return self.request.version

    @property
    def environment(self) -> str:
        return self.request.environment

    @property
    def deploy_dir(self) -> Path:
        """Working copy of the application source."""
        return Path(self.config.deploy_root) / self.app_name

    @property
    def current_dir(self) -> Path:
        """Source of the presently live container."""
        return self.deploy_dir / CURRENT_DIRNAME

    @property
    def version_dir(self) -> Path:
        """Build context for this run's version."""
        return self.deploy_dir / f"{RELEASE_PREFIX}{self.version}"

    @property
    def backup_dir(self) -> Path:
        return Path(self.config.backup_root) / self.app_name

    @property
    def lock_file(self) -> Path:
        return Path(self.config.lock_dir) / f"{self.app_name}.lock"

    @property
    def container_name(self) -> str:
        return f"{self.app_name}_container"

    @property
    def image_tag(self) -> str:
        return f"{self.app_name}:{self.version}"

    @property
    def rollback_tag(self) -> str:
        return f"{self.app_name}:rollback"

    @property
    def repo_url(self) -> str:
        repo_name = self.config.repo_name or self.app_name
        host = self.config.repo_host.rstrip("/")
        return f"{host}/{self.config.repo_owner}/{repo_name}.git"

    @property
    def checkout_ref(self) -> str:
        """Ref checked out by the tag update strategy."""
        return self.config.tag_template.format(version=self.version)

    @property
    def health_url(self) -> str:
        return f"http://{self.config.health_host}:{self.config.host_port}{self.config.health_path}"

    def describe(self) -> str:
        return f"{self.app_name} version {self.version} in environment {self.environment}"
