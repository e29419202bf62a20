"""Container runtime operations through the docker CLI."""
import re
import subprocess
from pathlib import Path
from typing import List, Optional

from hostdeploy.core.logger import get_logger

logger = get_logger(__name__)


class DockerManager:
    """Build images and manage the single named container of an app."""

    def __init__(self, mock: bool = False, docker_bin: str = "docker"):
        self.mock = mock
        self.docker_bin = docker_bin

    def _run(self, args: List[str], action: str) -> Optional[subprocess.CompletedProcess]:
        """Run a docker command; return the result, or None on failure."""
        cmd = [self.docker_bin] + args
        try:
            return subprocess.run(cmd, capture_output=True, text=True, check=True)
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to {action}: {e}")
            if e.stderr:
                logger.error(f"Error output: {e.stderr.strip()}")
            return None
        except FileNotFoundError:
            logger.error(f"Failed to {action}: {self.docker_bin} not found")
            return None

    def build_image(self, context_dir: Path, tag: str) -> bool:
        """Build an image from a build context directory.

        Args:
            context_dir: Directory containing the Dockerfile
            tag: Image tag, e.g. ``myapp:1.2.0``

        Returns:
            True if the build succeeded
        """
        if self.mock:
            logger.info(f"MOCK: Would build {tag} from {context_dir}")
            return True

        logger.info(f"Building image {tag} from {context_dir}...")
        result = self._run(['build', '-t', tag, str(context_dir)], action=f"build image {tag}")
        if result is None:
            return False
        logger.debug(result.stdout)
        logger.info(f"✓ Built image {tag}")
        return True

    def container_exists(self, name: str) -> bool:
        """Check for a container with exactly this name, running or stopped."""
        if self.mock:
            logger.info(f"MOCK: Would look up container {name}")
            return False

        result = self._run(
            ['ps', '-aq', '--filter', f'name=^/?{re.escape(name)}$'],
            action=f"look up container {name}",
        )
        return bool(result and result.stdout.strip())

    def is_running(self, name: str) -> bool:
        if self.mock:
            return False

        result = self._run(
            ['inspect', '--format', '{{.State.Running}}', name],
            action=f"inspect container {name}",
        )
        return bool(result and result.stdout.strip() == 'true')

    def stop_container(self, name: str) -> bool:
        if self.mock:
            logger.info(f"MOCK: Would stop container {name}")
            return True

        logger.info(f"Stopping container {name}...")
        return self._run(['stop', name], action=f"stop container {name}") is not None

    def remove_container(self, name: str) -> bool:
        if self.mock:
            logger.info(f"MOCK: Would remove container {name}")
            return True

        return self._run(['rm', name], action=f"remove container {name}") is not None

    def remove_if_exists(self, name: str) -> bool:
        """Stop and remove a container; a missing container is not an error.

        Returns:
            True if no container by that name remains
        """
        if not self.container_exists(name):
            return True

        stopped = self.stop_container(name)
        removed = self.remove_container(name)
        if not removed:
            logger.warning(f"Container {name} could not be removed (stopped: {stopped})")
        return removed

    def run_container(self, tag: str, name: str, host_port: int, container_port: int) -> bool:
        """Start a detached container publishing one port.

        Returns:
            True if the container started
        """
        if self.mock:
            logger.info(f"MOCK: Would run {tag} as {name} on {host_port}:{container_port}")
            return True

        logger.info(f"Starting container {name} from {tag} on port {host_port}")
        result = self._run(
            ['run', '-d', '--name', name, '-p', f'{host_port}:{container_port}', tag],
            action=f"start container {name}",
        )
        if result is None:
            return False
        logger.info(f"✓ Container {name} started ({result.stdout.strip()[:12]})")
        return True
