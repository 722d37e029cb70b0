"""
Cache Buster Generator

Produces the random query tokens that keep every probe from being
answered out of a cache sitting in front of the origin.
"""

import random
import threading
from typing import Optional

from config import CACHE_BUSTER_LENGTH, CACHE_BUSTER_CHARSET


class CacheBuster:
    """
    Thread-safe generator of cache-busting tokens.

    The random source is created once and shared by every call. Pass a
    seeded ``random.Random`` to get a reproducible token sequence.

    Example:
        buster = CacheBuster(random.Random(1337))
        token = buster.generate()   # e.g. "aZ3kQ0pLm9"
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        length: int = CACHE_BUSTER_LENGTH,
        charset: str = CACHE_BUSTER_CHARSET
    ):
        self.rng = rng or random.Random()
        self.length = length
        self.charset = charset
        self._lock = threading.Lock()

    def generate(self) -> str:
        """Return a fresh token"""
        with self._lock:
            return "".join(self.rng.choice(self.charset) for _ in range(self.length))
