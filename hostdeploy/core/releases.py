"""Release directories: point-in-time build contexts cut from the working copy."""
import shutil
from pathlib import Path
from typing import List, Optional

from hostdeploy.core.backup import replace_tree
from hostdeploy.core.logger import get_logger
from hostdeploy.models.context import CURRENT_DIRNAME, RELEASE_MARKER

logger = get_logger(__name__)


class ReleaseManager:
    """Manage ``v<version>`` release directories inside an app's deploy dir.

    A release directory is marked with a marker file so that only managed
    releases are skipped when copying the working copy, and pruned later.
    """

    def __init__(self, deploy_dir: Path, mock: bool = False):
        self.deploy_dir = Path(deploy_dir)
        self.mock = mock

    @staticmethod
    def is_release(path: Path) -> bool:
        return path.is_dir() and (path / RELEASE_MARKER).exists()

    def list_releases(self) -> List[Path]:
        """Return managed release directories, newest first."""
        if not self.deploy_dir.is_dir():
            return []

        releases = [path for path in self.deploy_dir.iterdir() if self.is_release(path)]
        return sorted(
            releases,
            key=lambda path: (path / RELEASE_MARKER).stat().st_mtime,
            reverse=True,
        )

    def _ignore_managed(self, release_dir: Path):
        skipped = {'.git', CURRENT_DIRNAME, release_dir.name}
        skipped.update(path.name for path in self.list_releases())
        root = str(self.deploy_dir)

        def ignore(directory, names):
            if str(Path(directory)) != root:
                return []
            return [name for name in names if name in skipped]

        return ignore

    def create_release(self, release_dir: Path, version: str) -> Path:
        """Copy the working copy into a fresh release directory.

        An existing directory for the same version is replaced, never reused.

        Raises:
            OSError: If the copy fails (partial directory is removed)
        """
        release_dir = Path(release_dir)

        if self.mock:
            logger.info(f"MOCK: Would copy {self.deploy_dir} to {release_dir}")
            return release_dir

        ignore = self._ignore_managed(release_dir)
        if release_dir.exists():
            shutil.rmtree(release_dir)

        try:
            shutil.copytree(self.deploy_dir, release_dir, symlinks=True, ignore=ignore)
            (release_dir / RELEASE_MARKER).write_text(f"{version}\n")
        except (OSError, shutil.Error):
            shutil.rmtree(release_dir, ignore_errors=True)
            raise

        logger.info(f"Prepared build context {release_dir}")
        return release_dir

    def promote(self, release_dir: Path, current_dir: Path) -> None:
        """Make a release the current deployment.

        Raises:
            OSError: If the copy fails
        """
        if self.mock:
            logger.info(f"MOCK: Would promote {release_dir} to {current_dir}")
            return

        replace_tree(Path(release_dir), Path(current_dir))
        marker = Path(current_dir) / RELEASE_MARKER
        if marker.exists():
            marker.unlink()
        logger.info(f"{current_dir} now holds {Path(release_dir).name}")

    def cleanup_old_releases(self, keep: int, protect: Optional[Path] = None) -> int:
        """Delete all but the newest ``keep`` releases, never ``protect``.

        Args:
            keep: Number of releases to keep (0 = keep all)
            protect: Release that must survive (the live version)

        Returns:
            Number of release directories deleted
        """
        if keep <= 0:
            return 0

        protected = Path(protect) if protect else None
        deleted_count = 0
        for release in self.list_releases()[keep:]:
            if protected is not None and release == protected:
                continue
            if self.mock:
                logger.info(f"MOCK: Would delete release {release}")
                deleted_count += 1
                continue
            try:
                shutil.rmtree(release)
                logger.info(f"Deleted old release: {release.name}")
                deleted_count += 1
            except OSError as e:
                logger.error(f"Failed to delete {release}: {e}")

        return deleted_count
