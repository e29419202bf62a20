"""Per-application locking for deployment runs.

Prevents two deployments of the same app from racing on its working copy,
backups and container name. The lock is an fcntl advisory lock, so the
kernel drops it if the holding process dies.
"""
import fcntl
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from hostdeploy.core.errors import DeployError
from hostdeploy.core.logger import get_logger

logger = get_logger(__name__)


class LockError(DeployError):
    """Raised when unable to acquire lock."""
    pass


class DeployLock:
    """File-based lock held for the duration of one deployment."""

    def __init__(self, lock_file: Path, timeout: float = 0):
        """Initialize lock.

        Args:
            lock_file: Path to lock file (usually <lock_dir>/<app>.lock)
            timeout: Seconds to wait for lock (0 = fail immediately)
        """
        self.lock_file = Path(lock_file)
        self.timeout = timeout
        self.lock_fd = None

    def acquire(self) -> bool:
        """Acquire the lock.

        Returns:
            True if lock acquired successfully

        Raises:
            LockError: If unable to acquire lock
        """
        self.lock_file.parent.mkdir(parents=True, exist_ok=True)

        # Append mode keeps the holder's PID readable until we own the lock
        lock_fd = open(self.lock_file, 'a+')

        start_time = time.time()
        while True:
            try:
                fcntl.flock(lock_fd.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            except OSError:
                if self.timeout == 0:
                    lock_fd.close()
                    lock_info = read_lock_info(self.lock_file)
                    raise LockError(
                        f"Another deployment is in progress.\n"
                        f"Lock held by PID {lock_info['pid']} since {lock_info['time']}\n"
                        f"Wait for it to complete ({self.lock_file})."
                    )

                elapsed = time.time() - start_time
                if elapsed >= self.timeout:
                    lock_fd.close()
                    lock_info = read_lock_info(self.lock_file)
                    raise LockError(
                        f"Timeout waiting for lock after {self.timeout}s.\n"
                        f"Lock held by PID {lock_info['pid']} since {lock_info['time']}"
                    )

                time.sleep(0.5)
                continue

            lock_fd.seek(0)
            lock_fd.truncate()
            lock_fd.write(f"{os.getpid()}\n")
            lock_fd.write(f"{time.strftime('%Y-%m-%d %H:%M:%S')}\n")
            lock_fd.flush()
            self.lock_fd = lock_fd

            logger.debug(f"Acquired lock: {self.lock_file}")
            return True

    def release(self):
        """Release the lock.

        The lock file itself is left in place; unlinking it would let a
        waiting process lock an orphaned inode while a third creates a new one.
        """
        if self.lock_fd is None:
            return

        try:
            self.lock_fd.seek(0)
            self.lock_fd.truncate()
            fcntl.flock(self.lock_fd.fileno(), fcntl.LOCK_UN)
            logger.debug(f"Released lock: {self.lock_file}")
        except OSError as e:
            logger.warning(f"Error releasing lock: {e}")
        finally:
            self.lock_fd.close()
            self.lock_fd = None

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


@contextmanager
def deploy_lock(lock_file: Path, timeout: float = 0):
    """Context manager holding the app lock for a deployment.

    Usage:
        with deploy_lock(context.lock_file):
            ...

    Raises:
        LockError: If unable to acquire lock
    """
    with DeployLock(lock_file=lock_file, timeout=timeout) as lock:
        yield lock


def read_lock_info(lock_file: Path) -> dict:
    """Read info from lock file about who holds it."""
    try:
        with open(lock_file) as f:
            lines = f.readlines()
    except OSError:
        lines = []

    if len(lines) >= 2:
        return {'pid': lines[0].strip(), 'time': lines[1].strip()}
    return {'pid': 'unknown', 'time': 'unknown'}


def check_lock_status(lock_file: Path) -> Optional[dict]:
    """Check if a deployment lock is currently held.

    Returns:
        Dict with lock info if held, None if free
    """
    lock_path = Path(lock_file)
    if not lock_path.exists():
        return None

    try:
        with open(lock_path) as f:
            try:
                fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            except OSError:
                info = read_lock_info(lock_path)
                info['lock_file'] = str(lock_path)
                return info
            fcntl.flock(f.fileno(), fcntl.LOCK_UN)
            return None
    except OSError as e:
        logger.warning(f"Error checking lock status: {e}")
        return None
