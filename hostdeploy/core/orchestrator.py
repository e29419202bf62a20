"""Deploy-and-rollback orchestration for a single host.

Runs the steps of one deployment strictly in order:

    preflight -> sync -> backup -> build & launch -> health check
                                                     -> rollback (on failure)

Every fatal condition raises a DeployError and ends the run in FAILED. An
unhealthy service is the only condition that triggers compensation instead
of an immediate abort.
"""
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from hostdeploy.core.backup import BackupManager
from hostdeploy.core.errors import (
    BuildError,
    DeployError,
    LaunchError,
    RollbackError,
    SyncError,
)
from hostdeploy.core.failure_log import FailureLog
from hostdeploy.core.lock import deploy_lock
from hostdeploy.core.logger import get_logger
from hostdeploy.core.preflight import check_dependencies
from hostdeploy.core.releases import ReleaseManager
from hostdeploy.models.context import DeploymentContext
from hostdeploy.models.request import DeploymentRequest
from hostdeploy.services.docker_manager import DockerManager
from hostdeploy.services.git_manager import GitManager
from hostdeploy.services.health import HealthProbe, HealthResult
from hostdeploy.services.notifier import build_notifiers

logger = get_logger(__name__)


class DeployState(str, Enum):
    """Stages of a deployment run."""

    START = "start"
    PREFLIGHT = "preflight"
    SYNC = "sync"
    BACKUP = "backup"
    BUILD_AND_LAUNCH = "build-and-launch"
    HEALTH_CHECK = "health-check"
    ROLLBACK = "rollback"
    SUCCESS = "success"
    FAILED = "failed"


TERMINAL_STATES = {DeployState.SUCCESS, DeployState.FAILED}

# No state is revisited; any non-terminal state may fail.
_TRANSITIONS = {
    DeployState.START: {DeployState.PREFLIGHT, DeployState.ROLLBACK},
    DeployState.PREFLIGHT: {DeployState.SYNC},
    DeployState.SYNC: {DeployState.BACKUP},
    DeployState.BACKUP: {DeployState.BUILD_AND_LAUNCH},
    DeployState.BUILD_AND_LAUNCH: {DeployState.HEALTH_CHECK},
    DeployState.HEALTH_CHECK: {DeployState.SUCCESS, DeployState.ROLLBACK},
    DeployState.ROLLBACK: {DeployState.FAILED},
}


@dataclass
class RollbackResult:
    """What a rollback managed to do."""

    backup: Optional[Path] = None
    restored: bool = False
    relaunched: bool = False
    error: Optional[str] = None

    def describe(self) -> str:
        if self.backup is None:
            return "no backup available"
        if self.error:
            return f"failed ({self.error})"
        if not self.relaunched:
            return f"restored {self.backup.name} but the container did not start"
        return f"restored {self.backup.name}"


@dataclass
class DeploymentResult:
    """Summary of a finished deployment run."""

    request: DeploymentRequest
    state: DeployState = DeployState.START
    backup: Optional[Path] = None
    health: Optional[HealthResult] = None
    rollback: Optional[RollbackResult] = None
    history: List[DeployState] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == DeployState.SUCCESS

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1


class DeploymentOrchestrator:
    """Drive one deployment of one application.

    Collaborators are injected so tests can substitute fakes:
        git: clone_repo / pull_repo / fetch_tags / checkout / repo_exists
        docker: build_image / remove_if_exists / run_container
        probe: check(url) -> HealthResult
        notifiers: objects with notify(subject, body) -> bool
    """

    def __init__(
        self,
        context: DeploymentContext,
        git: GitManager,
        docker: DockerManager,
        probe: HealthProbe,
        backups: Optional[BackupManager] = None,
        releases: Optional[ReleaseManager] = None,
        failure_log: Optional[FailureLog] = None,
        notifiers: Optional[list] = None,
        which: Callable[[str], Optional[str]] = shutil.which,
    ):
        self.context = context
        self.git = git
        self.docker = docker
        self.probe = probe
        self.backups = backups or BackupManager(context.backup_dir)
        self.releases = releases or ReleaseManager(context.deploy_dir)
        self.failure_log = failure_log or FailureLog(context.config.error_log)
        self.notifiers = notifiers if notifiers is not None else []
        self.which = which
        self.state = DeployState.START
        self.history: List[DeployState] = [DeployState.START]

    @classmethod
    def from_context(cls, context: DeploymentContext, mock: bool = False) -> "DeploymentOrchestrator":
        """Wire the real collaborators for a context."""
        config = context.config
        return cls(
            context,
            git=GitManager(mock=mock),
            docker=DockerManager(mock=mock),
            probe=HealthProbe(
                warmup_delay=config.warmup_delay,
                connect_timeout=config.connect_timeout,
                read_timeout=config.read_timeout,
                attempts=config.probe_attempts,
                interval=config.probe_interval,
                mock=mock,
            ),
            backups=BackupManager(context.backup_dir, mock=mock),
            releases=ReleaseManager(context.deploy_dir, mock=mock),
            failure_log=FailureLog(config.error_log),
            notifiers=build_notifiers(config),
        )

    def _transition(self, state: DeployState) -> None:
        if state != DeployState.FAILED and state not in _TRANSITIONS.get(self.state, set()):
            raise RuntimeError(f"Illegal deployment transition {self.state.value} -> {state.value}")
        logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def run(self) -> DeploymentResult:
        """Run the full deployment.

        Returns:
            DeploymentResult in state SUCCESS, or FAILED after a rollback

        Raises:
            DeployError: On any fatal step failure (state is FAILED)
        """
        ctx = self.context
        result = DeploymentResult(request=ctx.request)
        logger.info(f"Deploying {ctx.describe()}")

        try:
            self.preflight()
            with deploy_lock(ctx.lock_file, timeout=ctx.config.lock_timeout):
                self.sync()
                result.backup = self.backup()
                self.build_and_launch()
                result.health = self.health_check()

                if result.health.healthy:
                    self.promote()
                    self.releases.cleanup_old_releases(
                        ctx.config.release_retention, protect=ctx.version_dir
                    )
                    self._transition(DeployState.SUCCESS)
                    logger.info("Deployment completed successfully")
                else:
                    result.rollback = self.rollback(
                        f"health check failed: application is {result.health.describe()}"
                    )
                    self._transition(DeployState.FAILED)
        except DeployError:
            if self.state not in TERMINAL_STATES:
                self._transition(DeployState.FAILED)
            raise

        result.state = self.state
        result.history = list(self.history)
        return result

    def preflight(self) -> None:
        self._transition(DeployState.PREFLIGHT)
        check_dependencies(self.context.config.required_tools, which=self.which)

    def sync(self) -> None:
        """Clone the working copy, or update it per the configured strategy.

        Raises:
            SyncError: If any git step fails
        """
        self._transition(DeployState.SYNC)
        ctx = self.context
        strategy = ctx.config.update_strategy
        logger.info("Updating repository...")

        if not self.git.repo_exists(ctx.deploy_dir):
            if not self.git.clone_repo(ctx.repo_url, ctx.deploy_dir):
                raise SyncError(f"Failed to clone {ctx.repo_url} into {ctx.deploy_dir}")
            if strategy == "tag" and not self.git.checkout(ctx.deploy_dir, ctx.checkout_ref):
                raise SyncError(f"Failed to check out {ctx.checkout_ref}")
            return

        if strategy == "tag":
            if not self.git.fetch_tags(ctx.deploy_dir):
                raise SyncError(f"Failed to fetch updates in {ctx.deploy_dir}")
            if not self.git.checkout(ctx.deploy_dir, ctx.checkout_ref):
                raise SyncError(f"Failed to check out {ctx.checkout_ref}")
        elif not self.git.pull_repo(ctx.deploy_dir, branch=ctx.config.default_branch):
            raise SyncError(f"Failed to update {ctx.deploy_dir} from {ctx.config.default_branch}")

    def backup(self) -> Optional[Path]:
        """Snapshot the current deployment and apply backup retention.

        Returns:
            The new backup, or None on a first deployment
        """
        self._transition(DeployState.BACKUP)
        logger.info("Creating backup...")
        backup_path = self.backups.create_backup(self.context.current_dir)
        if backup_path is not None:
            self.backups.cleanup_old_backups(self.context.config.backup_retention)
        return backup_path

    def build_and_launch(self) -> None:
        """Build the new image and replace the running container.

        The image is built before the old container is touched, so a failed
        build leaves the live version running.

        Raises:
            BuildError: If the build context or the image cannot be built
            LaunchError: If the container cannot be replaced or started
        """
        self._transition(DeployState.BUILD_AND_LAUNCH)
        ctx = self.context
        config = ctx.config
        logger.info(f"Deploying new version {ctx.version}...")

        try:
            self.releases.create_release(ctx.version_dir, ctx.version)
        except OSError as e:
            raise BuildError(f"Failed to prepare build context {ctx.version_dir}: {e}") from e

        if not self.docker.build_image(ctx.version_dir, ctx.image_tag):
            raise BuildError(f"Docker image build failed for {ctx.image_tag}")

        if not self.docker.remove_if_exists(ctx.container_name):
            raise LaunchError(f"Could not remove previous container {ctx.container_name}")

        if not self.docker.run_container(
            ctx.image_tag, ctx.container_name, config.host_port, config.container_port
        ):
            raise LaunchError(f"Failed to start container {ctx.container_name}")

        logger.info("New version deployed")

    def health_check(self) -> HealthResult:
        self._transition(DeployState.HEALTH_CHECK)
        return self.probe.check(self.context.health_url)

    def promote(self) -> None:
        """Record the healthy release as the current deployment.

        Called only after a healthy check; `current` never holds a release
        that failed one.

        Raises:
            LaunchError: If `current` cannot be replaced
        """
        ctx = self.context
        try:
            self.releases.promote(ctx.version_dir, ctx.current_dir)
        except OSError as e:
            raise LaunchError(f"Failed to update {ctx.current_dir}: {e}") from e

    def rollback(self, reason: str, record: bool = True) -> RollbackResult:
        """Replace the running container with the latest backup.

        Sub-step failures are logged and the sequence continues. Restore or
        rebuild failures are raised as RollbackError after the failure has
        been recorded.

        Args:
            reason: Why the deployment is being rolled back
            record: Append to the error log and notify operators
        """
        self._transition(DeployState.ROLLBACK)
        ctx = self.context
        config = ctx.config
        logger.warning("Rolling back...")

        if not self.docker.remove_if_exists(ctx.container_name):
            logger.warning(f"Could not remove container {ctx.container_name}")

        outcome = RollbackResult(backup=self.backups.latest_backup())
        error = None

        if outcome.backup is None:
            logger.error("No backup found, unable to roll back")
        else:
            logger.info(f"Restoring from backup: {outcome.backup}")
            if not self.backups.restore(outcome.backup, ctx.current_dir):
                error = RollbackError(f"Could not restore {ctx.current_dir} from {outcome.backup}")
            elif not self.docker.build_image(ctx.current_dir, ctx.rollback_tag):
                error = RollbackError(f"Rollback image {ctx.rollback_tag} failed to build")
            else:
                outcome.restored = True
                outcome.relaunched = self.docker.run_container(
                    ctx.rollback_tag, ctx.container_name, config.host_port, config.container_port
                )
                if not outcome.relaunched:
                    logger.error(f"Rollback container {ctx.container_name} failed to start")

        if error is not None:
            outcome.error = str(error)
            logger.error(str(error))

        logger.info(f"Rollback finished: {outcome.describe()}")

        if record:
            self._record_failure(reason, outcome)

        if error is not None:
            raise error
        return outcome

    def _record_failure(self, reason: str, outcome: RollbackResult) -> None:
        """Write the error log entry and notify operators, best-effort."""
        ctx = self.context
        self.failure_log.append(ctx.request, reason, outcome.describe())

        subject = f"Deployment failed: {ctx.app_name} {ctx.version} ({ctx.environment})"
        body = (
            f"Deployment of {ctx.describe()} failed.\n"
            f"Reason: {reason}\n"
            f"Rollback: {outcome.describe()}\n"
        )
        for notifier in self.notifiers:
            try:
                delivered = notifier.notify(subject, body)
            except Exception as e:
                logger.warning(f"Notification via {type(notifier).__name__} raised: {e}")
                continue
            if not delivered:
                logger.warning(f"Notification via {type(notifier).__name__} failed")
