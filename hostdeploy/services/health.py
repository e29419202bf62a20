"""HTTP health probe for a freshly launched container."""
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

import requests

from hostdeploy.core.logger import get_logger

logger = get_logger(__name__)

HEALTHY = "healthy"
BAD_STATUS = "bad-status"
UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class HealthResult:
    """Outcome of a health check."""

    healthy: bool
    reason: str
    status_code: Optional[int] = None
    detail: str = ""
    attempts: int = 1

    def describe(self) -> str:
        if self.healthy:
            return f"healthy (HTTP {self.status_code})"
        if self.reason == BAD_STATUS:
            return f"responding with HTTP {self.status_code}"
        return f"unreachable ({self.detail})" if self.detail else "unreachable"


class HealthProbe:
    """Classify a service as healthy by the status code of a GET request.

    Only HTTP 200 counts as healthy. A connection failure is reported as
    ``unreachable``, any other status as ``bad-status``.
    """

    def __init__(
        self,
        warmup_delay: float = 10.0,
        connect_timeout: float = 5.0,
        read_timeout: float = 10.0,
        attempts: int = 1,
        interval: float = 5.0,
        mock: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.warmup_delay = warmup_delay
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.attempts = max(1, attempts)
        self.interval = interval
        self.mock = mock
        self.sleep = sleep

    def probe(self, url: str) -> HealthResult:
        """Issue a single GET and classify the response."""
        try:
            response = requests.get(
                url,
                timeout=(self.connect_timeout, self.read_timeout),
                allow_redirects=False,
            )
        except requests.RequestException as e:
            return HealthResult(healthy=False, reason=UNREACHABLE, detail=str(e))

        if response.status_code == 200:
            return HealthResult(healthy=True, reason=HEALTHY, status_code=200)
        return HealthResult(healthy=False, reason=BAD_STATUS, status_code=response.status_code)

    def check(self, url: str) -> HealthResult:
        """Wait for warm-up, then probe up to ``attempts`` times.

        Returns:
            The first healthy result, or the last unhealthy one
        """
        logger.info("Checking application health...")

        if self.mock:
            logger.info(f"MOCK: Would probe {url}")
            return HealthResult(healthy=True, reason=HEALTHY, status_code=200)

        if self.warmup_delay:
            logger.debug(f"Waiting {self.warmup_delay}s for the application to start")
            self.sleep(self.warmup_delay)

        result = None
        for attempt in range(1, self.attempts + 1):
            result = replace(self.probe(url), attempts=attempt)
            if result.healthy:
                logger.info(f"Application is {result.describe()}")
                return result

            if attempt < self.attempts:
                logger.warning(
                    f"Probe {attempt}/{self.attempts}: application is {result.describe()}, "
                    f"retrying in {self.interval:.1f}s"
                )
                self.sleep(self.interval)

        logger.error(f"Application is {result.describe()}")
        return result
