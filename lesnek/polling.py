"""
Retry policy for the authorization and certificate polling loops.
"""

import time
import logging
from dataclasses import dataclass
from typing import Optional

from .errors import PollTimeoutError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    How long to wait between polls and when to give up.

    The defaults poll every second forever. Set ``max_attempts`` and/or
    ``deadline`` (seconds since the first poll) to bound the loop.
    """

    BACKOFF_STRATEGIES = ("fixed", "linear", "exponential")

    interval: float = 1.0
    max_attempts: Optional[int] = None
    deadline: Optional[float] = None
    backoff: str = "fixed"
    max_interval: float = 30.0

    def delay(self, attempt: int) -> float:
        """Seconds to sleep after the given (1-based) attempt."""
        if self.backoff == "linear":
            delay = self.interval * attempt
        elif self.backoff == "exponential":
            delay = self.interval * (2 ** (attempt - 1))
        else:
            return self.interval
        return min(delay, self.max_interval)

    def wait(self, attempt: int, started: float, what: str = "operation") -> None:
        """
        Sleep before the next poll, or raise if the policy is exhausted.

        Args:
            attempt: Number of polls made so far
            started: ``time.monotonic()`` value taken before the first poll
            what: Description used in log and error messages

        Raises:
            PollTimeoutError: when ``max_attempts`` or ``deadline`` is exceeded
        """
        if self.max_attempts is not None and attempt >= self.max_attempts:
            raise PollTimeoutError(f"{what} still pending after {attempt} attempts")

        delay = self.delay(attempt)
        if self.deadline is not None:
            elapsed = time.monotonic() - started
            if elapsed + delay > self.deadline:
                raise PollTimeoutError(f"{what} still pending after {elapsed:.1f} seconds")

        logger.debug(f"{what} pending (attempt {attempt}), sleeping {delay}s")
        time.sleep(delay)
