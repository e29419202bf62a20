"""Append-only record of failed deployments."""
from datetime import datetime
from pathlib import Path

from hostdeploy.core.logger import get_logger
from hostdeploy.models.request import DeploymentRequest

logger = get_logger(__name__)


class FailureLog:
    """One line per failed deployment, kept for operators."""

    def __init__(self, path: str):
        self.path = Path(path)

    def format_entry(self, request: DeploymentRequest, reason: str, outcome: str) -> str:
        timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
        # Newlines would split one failure across several records
        reason = " ".join(reason.split())
        outcome = " ".join(outcome.split())
        return (
            f"{timestamp} | app={request.app_name} version={request.version} "
            f"env={request.environment} | {reason} | rollback: {outcome}"
        )

    def append(self, request: DeploymentRequest, reason: str, outcome: str) -> bool:
        """Append a failure record.

        Returns:
            True if the record was written
        """
        entry = self.format_entry(request, reason, outcome)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'a') as f:
                f.write(entry + "\n")
        except OSError as e:
            logger.error(f"Failed to write error log {self.path}: {e}")
            return False

        logger.info(f"Deployment failure recorded in {self.path}")
        return True
