"""Shared test fixtures for hostdeploy tests."""
from pathlib import Path

import pytest

from hostdeploy.core.backup import BackupManager
from hostdeploy.core.config import DeployConfig
from hostdeploy.core.failure_log import FailureLog
from hostdeploy.core.orchestrator import DeploymentOrchestrator
from hostdeploy.core.releases import ReleaseManager
from hostdeploy.models.context import DeploymentContext
from hostdeploy.models.request import DeploymentRequest
from hostdeploy.services.health import BAD_STATUS, HEALTHY, UNREACHABLE, HealthResult


@pytest.fixture(autouse=True)
def no_file_logging(monkeypatch):
    """Keep CLI tests from writing to /var/log."""
    monkeypatch.setattr("hostdeploy.core.logger._file_logging_configured", True)


class FakeGit:
    """In-memory stand-in for GitManager that writes real files."""

    def __init__(self, files=None, fail=()):
        self.files = dict(files or {"Dockerfile": "FROM nginx\n", "index.html": "v1"})
        self.fail = set(fail)
        self.calls = []

    def _write(self, path):
        for name, content in self.files.items():
            (Path(path) / name).write_text(content)

    def repo_exists(self, path):
        return (Path(path) / ".git").is_dir()

    def clone_repo(self, url, path):
        self.calls.append(("clone", url, str(path)))
        if "clone" in self.fail:
            return False
        Path(path).mkdir(parents=True, exist_ok=True)
        (Path(path) / ".git").mkdir(exist_ok=True)
        self._write(path)
        return True

    def pull_repo(self, path, branch="main", remote="origin"):
        self.calls.append(("pull", str(path), branch))
        if "pull" in self.fail:
            return False
        self._write(path)
        return True

    def fetch_tags(self, path, remote="origin"):
        self.calls.append(("fetch", str(path)))
        return "fetch" not in self.fail

    def checkout(self, path, ref):
        self.calls.append(("checkout", str(path), ref))
        return "checkout" not in self.fail


class FakeDocker:
    """Tracks images and the named containers like a tiny docker daemon."""

    def __init__(self, failing_builds=(), failing_runs=()):
        self.failing_builds = set(failing_builds)
        self.failing_runs = set(failing_runs)
        self.images = {}
        self.containers = {}
        self.calls = []

    def build_image(self, context_dir, tag):
        self.calls.append(("build", tag, str(context_dir)))
        if tag in self.failing_builds:
            return False
        index = Path(context_dir) / "index.html"
        self.images[tag] = index.read_text() if index.exists() else None
        return True

    def container_exists(self, name):
        return name in self.containers

    def remove_if_exists(self, name):
        self.calls.append(("remove", name))
        self.containers.pop(name, None)
        return True

    def run_container(self, tag, name, host_port, container_port):
        self.calls.append(("run", tag, name, host_port, container_port))
        if tag in self.failing_runs:
            return False
        self.containers[name] = {
            "image": tag,
            "running": True,
            "ports": (host_port, container_port),
            "content": self.images.get(tag),
        }
        return True

    def builds(self):
        return [call[1] for call in self.calls if call[0] == "build"]


class FakeProbe:
    """Returns queued health results and records probed URLs."""

    def __init__(self, *results):
        self.results = list(results) or [healthy()]
        self.urls = []

    def check(self, url):
        self.urls.append(url)
        if len(self.results) > 1:
            return self.results.pop(0)
        return self.results[0]


class FakeNotifier:
    def __init__(self, delivered=True, error=None):
        self.delivered = delivered
        self.error = error
        self.messages = []

    def notify(self, subject, body):
        self.messages.append((subject, body))
        if self.error:
            raise self.error
        return self.delivered


def healthy():
    return HealthResult(healthy=True, reason=HEALTHY, status_code=200)


def bad_status(code=503):
    return HealthResult(healthy=False, reason=BAD_STATUS, status_code=code)


def unreachable():
    return HealthResult(healthy=False, reason=UNREACHABLE, detail="Connection refused")


@pytest.fixture
def config(tmp_path):
    """Config rooted in a temporary directory with no warm-up delay."""
    return DeployConfig(
        deploy_root=str(tmp_path / "deployments"),
        backup_root=str(tmp_path / "backups"),
        lock_dir=str(tmp_path / "locks"),
        error_log=str(tmp_path / "deploy_error.log"),
        warmup_delay=0,
    )


@pytest.fixture
def request_foo():
    return DeploymentRequest(app_name="foo", version="1.2.0", environment="production")


@pytest.fixture
def context(request_foo, config):
    return DeploymentContext(request=request_foo, config=config)


@pytest.fixture
def all_tools():
    """A `which` that finds every tool."""
    return lambda tool: f"/usr/bin/{tool}"


@pytest.fixture
def make_orchestrator(all_tools):
    """Build an orchestrator around fakes, with real filesystem managers."""

    def _make(context, git=None, docker=None, probe=None, notifiers=None, which=None):
        return DeploymentOrchestrator(
            context,
            git=git or FakeGit(),
            docker=docker or FakeDocker(),
            probe=probe or FakeProbe(),
            backups=BackupManager(context.backup_dir),
            releases=ReleaseManager(context.deploy_dir),
            failure_log=FailureLog(context.config.error_log),
            notifiers=notifiers if notifiers is not None else [],
            which=which or all_tools,
        )

    return _make


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point a CLI run at temporary roots, in mock mode, needing no tools."""
    monkeypatch.setattr("hostdeploy.core.config.CONFIG_PATHS", [])
    monkeypatch.delenv("HOSTDEPLOY_CONFIG", raising=False)
    env = {
        "HOSTDEPLOY_MOCK": "1",
        "HOSTDEPLOY_DEPLOY_ROOT": str(tmp_path / "deployments"),
        "HOSTDEPLOY_BACKUP_ROOT": str(tmp_path / "backups"),
        "HOSTDEPLOY_LOCK_DIR": str(tmp_path / "locks"),
        "HOSTDEPLOY_ERROR_LOG": str(tmp_path / "deploy_error.log"),
        "HOSTDEPLOY_REQUIRED_TOOLS": "",
        "HOSTDEPLOY_WARMUP_DELAY": "0",
    }
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    return tmp_path
