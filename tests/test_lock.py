"""Tests for per-application deployment locking."""
import os
import time

import pytest

from hostdeploy.core.errors import DeployError
from hostdeploy.core.lock import DeployLock, LockError, check_lock_status, deploy_lock


class TestDeployLock:
    """Test file-based locking mechanism."""

    def test_acquire_and_release(self, tmp_path):
        """Can acquire and release lock."""
        lock_file = tmp_path / "foo.lock"
        lock = DeployLock(lock_file=lock_file)

        assert lock.acquire() is True
        assert check_lock_status(lock_file) is not None

        lock.release()
        assert check_lock_status(lock_file) is None

    def test_concurrent_lock_fails(self, tmp_path):
        """Second lock attempt fails when first is held."""
        lock_file = tmp_path / "foo.lock"

        lock1 = DeployLock(lock_file=lock_file, timeout=0)
        lock1.acquire()

        lock2 = DeployLock(lock_file=lock_file, timeout=0)
        with pytest.raises(LockError) as exc_info:
            lock2.acquire()

        assert "Another deployment is in progress" in str(exc_info.value)
        assert f"PID {os.getpid()}" in str(exc_info.value)

        lock1.release()

    def test_lock_error_is_fatal_deploy_error(self):
        assert issubclass(LockError, DeployError)

    def test_context_manager(self, tmp_path):
        """Lock works as context manager."""
        lock_file = tmp_path / "foo.lock"

        with DeployLock(lock_file=lock_file):
            assert check_lock_status(lock_file) is not None

        assert check_lock_status(lock_file) is None

    def test_lock_timeout(self, tmp_path):
        """Lock times out after specified period."""
        lock_file = tmp_path / "foo.lock"

        lock1 = DeployLock(lock_file=lock_file)
        lock1.acquire()

        lock2 = DeployLock(lock_file=lock_file, timeout=1)
        start = time.time()

        with pytest.raises(LockError) as exc_info:
            lock2.acquire()

        elapsed = time.time() - start
        assert elapsed >= 1.0
        assert elapsed < 3.0
        assert "Timeout waiting for lock" in str(exc_info.value)

        lock1.release()

    def test_lock_info_written(self, tmp_path):
        """Lock file contains PID and timestamp while held."""
        lock_file = tmp_path / "foo.lock"
        lock = DeployLock(lock_file=lock_file)

        lock.acquire()

        lines = lock_file.read_text().splitlines()
        assert len(lines) >= 2
        assert str(os.getpid()) in lines[0]
        assert '-' in lines[1]

        lock.release()

    def test_release_clears_holder_info(self, tmp_path):
        """Released lock leaves an empty lock file behind."""
        lock_file = tmp_path / "foo.lock"
        lock = DeployLock(lock_file=lock_file)
        lock.acquire()
        lock.release()

        assert lock_file.read_text() == ""

    def test_reacquire_after_release(self, tmp_path):
        lock_file = tmp_path / "foo.lock"
        first = DeployLock(lock_file=lock_file)
        first.acquire()
        first.release()

        second = DeployLock(lock_file=lock_file)
        assert second.acquire() is True
        second.release()

    def test_lock_directory_creation(self, tmp_path):
        """Lock directory is created if missing."""
        lock_dir = tmp_path / "subdir" / "locks"
        lock_file = lock_dir / "foo.lock"

        lock = DeployLock(lock_file=lock_file)
        lock.acquire()

        assert lock_dir.exists()
        assert lock_file.exists()

        lock.release()


class TestDeployLockContext:
    """Test deploy_lock context manager."""

    def test_deploy_lock_success(self, tmp_path):
        executed = False
        with deploy_lock(tmp_path / "foo.lock"):
            executed = True

        assert executed

    def test_deploy_lock_released_on_exception(self, tmp_path):
        """Lock is released on every exit path."""
        lock_file = tmp_path / "foo.lock"

        with pytest.raises(RuntimeError):
            with deploy_lock(lock_file):
                raise RuntimeError("boom")

        assert check_lock_status(lock_file) is None

    def test_deploy_lock_failure(self, tmp_path):
        """deploy_lock raises LockError when locked."""
        lock_file = tmp_path / "foo.lock"

        lock1 = DeployLock(lock_file=lock_file)
        lock1.acquire()

        with pytest.raises(LockError):
            with deploy_lock(lock_file, timeout=0):
                pass

        lock1.release()


class TestCheckLockStatus:
    """Test lock status checking."""

    def test_no_lock_file(self, tmp_path):
        assert check_lock_status(tmp_path / "nonexistent.lock") is None

    def test_lock_held(self, tmp_path):
        """Returns lock info when lock is held."""
        lock_file = tmp_path / "foo.lock"

        lock = DeployLock(lock_file=lock_file)
        lock.acquire()

        status = check_lock_status(lock_file)

        assert status is not None
        assert str(os.getpid()) in status['pid']
        assert status['lock_file'] == str(lock_file)

        lock.release()

    def test_stale_lock_file(self, tmp_path):
        """A lock file nobody holds is reported as free."""
        lock_file = tmp_path / "foo.lock"
        lock_file.write_text("12345\n2025-01-01 00:00:00\n")

        assert check_lock_status(lock_file) is None
