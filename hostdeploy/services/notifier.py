"""Operator notification for failed deployments.

Delivery is best-effort: notifiers log their own failures and return False,
they never raise into the deployment flow.
"""
import subprocess
from typing import List, Sequence

import requests

from hostdeploy.core.config import DeployConfig
from hostdeploy.core.logger import get_logger

logger = get_logger(__name__)


class MailNotifier:
    """Send a message through the local ``mail`` command."""

    def __init__(self, recipients: Sequence[str], mail_command: str = "mail", timeout: int = 30):
        self.recipients = list(recipients)
        self.mail_command = mail_command
        self.timeout = timeout

    def notify(self, subject: str, body: str) -> bool:
        delivered = True
        for recipient in self.recipients:
            cmd = [self.mail_command, '-s', subject, recipient]
            try:
                subprocess.run(
                    cmd,
                    input=body,
                    capture_output=True,
                    text=True,
                    check=True,
                    timeout=self.timeout,
                )
                logger.info(f"Notified {recipient}")
            except subprocess.CalledProcessError as e:
                logger.warning(f"Failed to mail {recipient}: {e}")
                if e.stderr:
                    logger.warning(f"Error output: {e.stderr.strip()}")
                delivered = False
            except (OSError, subprocess.TimeoutExpired) as e:
                logger.warning(f"Failed to mail {recipient}: {e}")
                delivered = False
        return delivered


class WebhookNotifier:
    """POST a JSON payload to a webhook URL."""

    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    def notify(self, subject: str, body: str) -> bool:
        try:
            response = requests.post(
                self.url,
                json={'subject': subject, 'text': body},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"Failed to notify webhook {self.url}: {e}")
            return False

        logger.info("Webhook notified")
        return True


def build_notifiers(config: DeployConfig) -> List:
    """Create the notifiers enabled by configuration."""
    notifiers = []
    if config.mail_recipients:
        notifiers.append(MailNotifier(config.mail_recipients, mail_command=config.mail_command))
    if config.webhook_url:
        notifiers.append(WebhookNotifier(config.webhook_url))
    return notifiers
