"""Global deadline shared by every polling loop."""

import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)


class Deadline:
    """Monotonic clock gate started once per orchestration run.

    Args:
        timeout: Total budget in seconds.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(self, timeout: float, clock: Callable[[], float] = time.monotonic):
        self.timeout = timeout
        self._clock = clock
        self.start_time = clock()
        self._expiry_reported = False

    def elapsed(self) -> float:
        return self._clock() - self.start_time

    def remaining(self) -> bool:
        """Return True while the global timeout has not been exceeded."""
        elapsed = self.elapsed()
        if elapsed < self.timeout:
            return True

        if not self._expiry_reported:
            logger.warning(
                f"Global timeout of {self.timeout}s exceeded after {elapsed:.1f}s"
            )
            self._expiry_reported = True
        return False
