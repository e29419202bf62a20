"""Tests for the failed deployment record."""
from hostdeploy.core.failure_log import FailureLog
from hostdeploy.models.request import DeploymentRequest


def _request():
    return DeploymentRequest(app_name="foo", version="1.2.0", environment="production")


class TestFailureLog:

    def test_appends_one_line(self, tmp_path):
        log = FailureLog(str(tmp_path / "deploy_error.log"))

        assert log.append(_request(), "health check failed: HTTP 503", "restored backup_1") is True

        lines = (tmp_path / "deploy_error.log").read_text().splitlines()
        assert len(lines) == 1
        assert "app=foo version=1.2.0 env=production" in lines[0]
        assert "health check failed: HTTP 503" in lines[0]
        assert lines[0].endswith("rollback: restored backup_1")

    def test_records_accumulate(self, tmp_path):
        path = tmp_path / "deploy_error.log"
        path.write_text("earlier failure\n")
        log = FailureLog(str(path))

        log.append(_request(), "first", "no backup available")
        log.append(_request(), "second", "no backup available")

        lines = path.read_text().splitlines()
        assert lines[0] == "earlier failure"
        assert len(lines) == 3

    def test_multiline_reason_stays_on_one_line(self, tmp_path):
        log = FailureLog(str(tmp_path / "deploy_error.log"))

        log.append(_request(), "unreachable\n(Connection refused)", "failed (\nbuild)")

        assert len((tmp_path / "deploy_error.log").read_text().splitlines()) == 1

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "log" / "hostdeploy" / "deploy_error.log"
        log = FailureLog(str(path))

        assert log.append(_request(), "reason", "outcome") is True
        assert path.exists()

    def test_unwritable_log_returns_false(self, tmp_path):
        (tmp_path / "blocked").write_text("")
        log = FailureLog(str(tmp_path / "blocked" / "deploy_error.log"))

        assert log.append(_request(), "reason", "outcome") is False
