"""
Backoff Policy

Computes how long to wait before retrying a request, honouring a
server-provided Retry-After hint and otherwise doubling the wait.
"""

import logging
import random
import re
import time
from typing import Callable, Optional

from core.parser import HTTPResponse

logger = logging.getLogger(__name__)

# Plain decimal seconds, optionally signed
RETRY_AFTER_PATTERN = re.compile(r"[+-]?\d+", re.ASCII)


class Backoff:
    """
    Retry delay policy.

    Example:
        backoff = Backoff(jitter=0.5)
        delay = 1
        delay = backoff.next_delay(response, delay)   # sleeps, returns 2
    """

    def __init__(
        self,
        jitter: float = 0.0,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize the policy.

        Args:
            jitter: Upper bound of a random extra wait added to every sleep
            rng: Random source for the jitter
            sleep: Sleep function (replaceable in tests)
        """
        self.jitter = jitter
        self.rng = rng or random.Random()
        self.sleep = sleep

    @staticmethod
    def retry_after(response: Optional[HTTPResponse]) -> Optional[int]:
        """Integer Retry-After seconds from a response, if present (negative values included)"""
        if response is None:
            return None
        value = response.get_header("Retry-After").strip()
        if not RETRY_AFTER_PATTERN.fullmatch(value):
            return None
        return int(value)

    def _wait(self, seconds: float):
        if self.jitter > 0:
            seconds += self.rng.uniform(0, self.jitter)
        logger.debug("Backing off for %.2fs", seconds)
        self.sleep(seconds)

    def next_delay(self, response: Optional[HTTPResponse], current: int) -> int:
        """
        Sleep before the next attempt and return the backoff for the one after.

        Args:
            response: Last response received, or None after a transport failure
            current: Current backoff in seconds

        Returns:
            ``current`` when the server sent an integer Retry-After,
            otherwise ``current * 2``
        """
        retry_after = self.retry_after(response)
        if retry_after is not None:
            self._wait(max(retry_after, 0))
            return current

        self._wait(current)
        return current * 2
