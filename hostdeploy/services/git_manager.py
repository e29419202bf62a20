"""Git working copy management for deployments."""
import subprocess
from pathlib import Path
from typing import List, Optional

from hostdeploy.core.logger import get_logger

logger = get_logger(__name__)


class GitManager:
    """Manages the host-side git working copy of an application."""

    def __init__(self, mock: bool = False):
        self.mock = mock

    def _run(self, args: List[str], cwd: Optional[Path] = None, action: str = "git command") -> bool:
        """Run a git command, logging stderr on failure."""
        cmd = ['git'] + args
        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                check=True
            )
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to {action}: {e}")
            if e.stderr:
                logger.error(f"Error output: {e.stderr.strip()}")
            return False
        except FileNotFoundError:
            logger.error(f"Failed to {action}: git not found")
            return False

        if result.stdout:
            logger.debug(f"Git output: {result.stdout.strip()}")
        return True

    def repo_exists(self, path: Path) -> bool:
        """Check if a git working copy already exists at the given path."""
        return (Path(path) / '.git').is_dir()

    def clone_repo(self, url: str, path: Path) -> bool:
        """Clone a git repository.

        Args:
            url: Git repository URL
            path: Destination directory

        Returns:
            True if successful, False otherwise
        """
        if self.mock:
            logger.info(f"MOCK: Would clone {url} to {path}")
            return True

        Path(path).parent.mkdir(parents=True, exist_ok=True)
        args = ['clone', url, str(path)]

        logger.info(f"Cloning repository from {url}...")
        if not self._run(args, action=f"clone {url}"):
            return False
        logger.info(f"✓ Successfully cloned repository to {path}")
        return True

    def pull_repo(self, path: Path, branch: str = "main", remote: str = "origin") -> bool:
        """Pull the latest changes of a branch into the working copy.

        Returns:
            True if successful, False otherwise
        """
        if self.mock:
            logger.info(f"MOCK: Would git pull {remote} {branch} in {path}")
            return True

        logger.info(f"Pulling {remote}/{branch} in {path}")
        if not self._run(['pull', remote, branch], cwd=path, action="pull repository"):
            return False
        logger.info("✓ Successfully pulled latest changes")
        return True

    def fetch_tags(self, path: Path, remote: str = "origin") -> bool:
        """Fetch history and tags from the remote."""
        if self.mock:
            logger.info(f"MOCK: Would fetch tags from {remote} in {path}")
            return True

        logger.info(f"Fetching {remote} in {path}")
        return self._run(['fetch', '--tags', remote], cwd=path, action="fetch repository")

    def checkout(self, path: Path, ref: str) -> bool:
        """Check out a tag, branch or commit.

        Returns:
            True if successful, False otherwise
        """
        if self.mock:
            logger.info(f"MOCK: Would check out {ref} in {path}")
            return True

        logger.info(f"Checking out {ref}")
        if not self._run(['checkout', ref], cwd=path, action=f"check out {ref}"):
            return False
        logger.info(f"✓ Checked out {ref}")
        return True
