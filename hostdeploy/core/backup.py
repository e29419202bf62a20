"""Backup snapshots of the current deployment for rollback."""
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from hostdeploy.core.errors import BackupError
from hostdeploy.core.logger import get_logger
from hostdeploy.models.context import BACKUP_PREFIX

logger = get_logger(__name__)


def replace_tree(source: Path, target: Path) -> None:
    """Replace target with a full copy of source."""
    if target.is_symlink() or target.is_file():
        target.unlink()
    elif target.exists():
        shutil.rmtree(target)
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copytree(source, target, symlinks=True)


class BackupManager:
    """Timestamped copies of an app's current deployment.

    Backups live under ``<backup_root>/<app>/backup_YYYYmmdd_HHMMSS``; the
    name order is the creation order.
    """

    def __init__(self, backup_dir: Path, mock: bool = False,
                 clock: Callable[[], datetime] = datetime.now):
        self.backup_dir = Path(backup_dir)
        self.mock = mock
        self.clock = clock

    def _next_backup_path(self) -> Path:
        timestamp = self.clock().strftime('%Y%m%d_%H%M%S')
        candidate = self.backup_dir / f"{BACKUP_PREFIX}{timestamp}"
        suffix = 1
        while candidate.exists():
            candidate = self.backup_dir / f"{BACKUP_PREFIX}{timestamp}_{suffix}"
            suffix += 1
        return candidate

    def create_backup(self, current_dir: Path) -> Optional[Path]:
        """Copy the current deployment into a new backup.

        Args:
            current_dir: Directory holding the live version's source

        Returns:
            Path to the new backup, or None when there is nothing to back up

        Raises:
            BackupError: If the copy fails
        """
        current_dir = Path(current_dir)
        if not current_dir.is_dir():
            logger.info("No current deployment found, skipping backup")
            return None

        backup_path = self._next_backup_path()

        if self.mock:
            logger.info(f"MOCK: Would back up {current_dir} to {backup_path}")
            return backup_path

        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            shutil.copytree(current_dir, backup_path, symlinks=True)
        except (OSError, shutil.Error) as e:
            shutil.rmtree(backup_path, ignore_errors=True)
            raise BackupError(f"Failed to back up {current_dir}: {e}") from e

        logger.info(f"Backup created in {backup_path}")
        return backup_path

    def list_backups(self) -> List[Path]:
        """Return backups, newest first."""
        if not self.backup_dir.is_dir():
            return []

        backups = [
            path for path in self.backup_dir.iterdir()
            if path.is_dir() and path.name.startswith(BACKUP_PREFIX)
        ]
        return sorted(backups, key=lambda path: path.name, reverse=True)

    def latest_backup(self) -> Optional[Path]:
        backups = self.list_backups()
        return backups[0] if backups else None

    def restore(self, backup_path: Path, target_dir: Path) -> bool:
        """Replace target_dir with the contents of a backup.

        Returns:
            True if successful, False otherwise
        """
        if self.mock:
            logger.info(f"MOCK: Would restore {target_dir} from {backup_path}")
            return True

        try:
            replace_tree(Path(backup_path), Path(target_dir))
        except (OSError, shutil.Error) as e:
            logger.error(f"Failed to restore {target_dir} from {backup_path}: {e}")
            return False

        logger.info(f"Restored {target_dir} from {backup_path}")
        return True

    def cleanup_old_backups(self, keep: int) -> int:
        """Delete all but the newest ``keep`` backups.

        Args:
            keep: Number of backups to keep (0 = keep all)

        Returns:
            Number of backups deleted
        """
        if keep <= 0:
            return 0

        deleted_count = 0
        for backup in self.list_backups()[keep:]:
            if self.mock:
                logger.info(f"MOCK: Would delete backup {backup}")
                deleted_count += 1
                continue
            try:
                shutil.rmtree(backup)
                logger.info(f"Deleted old backup: {backup}")
                deleted_count += 1
            except OSError as e:
                logger.error(f"Failed to delete {backup}: {e}")

        return deleted_count
