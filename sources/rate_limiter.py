#!/usr/bin/env python3
"""
Minimum-interval rate limiting for a single upstream host.

One RateLimiter instance is created per host and handed to every collaborator
that calls that host, so all of them share the same pacing.
"""

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RateLimiter:
    """Blocks callers so consecutive acquisitions are at least ``min_interval_ms`` apart."""

    def __init__(
        self,
        min_interval_ms: int = 1000,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        name: str = "upstream",
    ):
        if min_interval_ms < 0:
            raise ValueError("min_interval_ms must not be negative")
        self.min_interval = min_interval_ms / 1000.0
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_acquired: Optional[float] = None

    def acquire(self) -> float:
        """Wait until the next request may be sent; returns the acquisition time."""
        # Holding the lock while sleeping queues later callers behind this one.
        with self._lock:
            now = self._clock()
            if self._last_acquired is not None:
                wait = self._last_acquired + self.min_interval - now
                while wait > 0:
                    logger.debug(f"Rate limiting {self.name}: sleeping {wait:.2f}s")
                    self._sleep(wait)
                    now = self._clock()
                    wait = self._last_acquired + self.min_interval - now
            self._last_acquired = now
            return now
