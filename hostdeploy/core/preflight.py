"""Preflight check for the external tools a deployment shells out to."""
import shutil
from typing import Callable, Dict, Iterable, Optional

from hostdeploy.core.errors import PreflightError
from hostdeploy.core.logger import get_logger

logger = get_logger(__name__)

Which = Callable[[str], Optional[str]]


def resolve_tools(tools: Iterable[str], which: Which = shutil.which) -> Dict[str, Optional[str]]:
    """Map each tool name to its resolved path, or None when missing."""
    return {tool: which(tool) for tool in tools}


def check_dependencies(tools: Iterable[str], which: Which = shutil.which) -> None:
    """Fail on the first tool that cannot be found on PATH.

    Raises:
        PreflightError: Naming the first missing tool
    """
    logger.info("Checking dependencies...")
    for tool in tools:
        if which(tool) is None:
            logger.error(f"{tool} is not installed")
            raise PreflightError(tool)
    logger.info("All dependencies are present")
