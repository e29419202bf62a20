"""CLI tests for rollback, backups, status and doctor."""
from typer.testing import CliRunner

from hostdeploy.cli import app
from hostdeploy.core.lock import DeployLock

runner = CliRunner()


def _make_backups(root, *names):
    for name in names:
        backup = root / "backups" / "foo" / name
        backup.mkdir(parents=True)
        (backup / "index.html").write_text(name)


class TestRollbackCommand:

    def test_requires_app(self, cli_env):
        result = runner.invoke(app, ["rollback"])

        assert result.exit_code == 1
        assert "--app" in result.output

    def test_no_backup(self, cli_env):
        result = runner.invoke(app, ["rollback", "--app=foo"])

        assert result.exit_code == 1
        assert "No backup available" in result.output

    def test_rolls_back_to_latest(self, cli_env):
        _make_backups(cli_env, "backup_20260101_000000", "backup_20260102_000000")

        result = runner.invoke(app, ["rollback", "--app=foo", "--yes"])

        assert result.exit_code == 0
        assert "restored backup_20260102_000000" in result.output

    def test_manual_rollback_is_not_recorded(self, cli_env):
        _make_backups(cli_env, "backup_20260101_000000")

        runner.invoke(app, ["rollback", "--app=foo"])

        assert not (cli_env / "deploy_error.log").exists()

    def test_confirmation_declined(self, cli_env, monkeypatch):
        monkeypatch.delenv("HOSTDEPLOY_MOCK")
        _make_backups(cli_env, "backup_20260101_000000")

        result = runner.invoke(app, ["rollback", "--app=foo"], input="n\n")

        assert result.exit_code == 0
        assert "Cancelled" in result.output

    def test_blocked_by_running_deployment(self, cli_env):
        _make_backups(cli_env, "backup_20260101_000000")
        lock = DeployLock(cli_env / "locks" / "foo.lock")
        lock.acquire()
        try:
            result = runner.invoke(app, ["rollback", "--app=foo", "--yes"])
        finally:
            lock.release()

        assert result.exit_code == 1
        assert "Another deployment is in progress" in result.output


class TestBackupsCommand:

    def test_lists_newest_first(self, cli_env):
        _make_backups(cli_env, "backup_20260101_000000", "backup_20260102_000000")

        result = runner.invoke(app, ["backups", "--app=foo"])

        assert result.exit_code == 0
        assert "backup_20260102_000000 (latest)" in result.output
        assert result.output.index("backup_20260102_000000") < result.output.index("backup_20260101_000000")

    def test_no_backups(self, cli_env):
        result = runner.invoke(app, ["backups", "--app=foo"])

        assert result.exit_code == 0
        assert "No backups found for foo" in result.output

    def test_prune(self, cli_env, monkeypatch):
        monkeypatch.delenv("HOSTDEPLOY_MOCK")
        _make_backups(
            cli_env, "backup_20260101_000000", "backup_20260102_000000", "backup_20260103_000000"
        )

        result = runner.invoke(app, ["backups", "--app=foo", "--prune", "--keep", "1"])

        assert result.exit_code == 0
        assert "Deleted 2 old backup(s)" in result.output
        remaining = sorted(p.name for p in (cli_env / "backups" / "foo").iterdir())
        assert remaining == ["backup_20260103_000000"]

    def test_prune_unlimited(self, cli_env):
        _make_backups(cli_env, "backup_20260101_000000")

        result = runner.invoke(app, ["backups", "--app=foo", "--prune", "--keep", "0"])

        assert "Retention is unlimited" in result.output


class TestStatusCommand:

    def test_status_of_fresh_app(self, cli_env):
        result = runner.invoke(app, ["status", "--app=foo"])

        assert result.exit_code == 0
        assert "foo_container" in result.output
        assert "free" in result.output

    def test_status_shows_lock_holder(self, cli_env):
        _make_backups(cli_env, "backup_20260101_000000")
        lock = DeployLock(cli_env / "locks" / "foo.lock")
        lock.acquire()
        try:
            result = runner.invoke(app, ["status", "--app=foo"])
        finally:
            lock.release()

        assert "held by PID" in result.output
        assert "backup_20260101_000000" in result.output


class TestDoctorCommand:

    def test_nothing_required(self, cli_env):
        result = runner.invoke(app, ["doctor"])

        assert result.exit_code == 0
        assert "All dependencies are present" in result.output

    def test_missing_tool(self, cli_env, monkeypatch):
        monkeypatch.setenv("HOSTDEPLOY_REQUIRED_TOOLS", "hostdeploy-missing-tool")

        result = runner.invoke(app, ["doctor"])

        assert result.exit_code == 1
        assert "Missing tools: hostdeploy-missing-tool" in result.output
