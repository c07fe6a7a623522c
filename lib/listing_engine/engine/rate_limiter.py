"""
Outbound Rate Limiter
=====================
Enforces a minimum spacing between consecutive calls to a shared remote
backend, across every worker thread that holds a reference to it.

One instance is constructed per pipeline and handed to the executor, so
independent pipelines (and tests) never share call timing.
"""

import logging
import os
import threading
import time
from typing import Callable, Dict, Optional

from ..config import constants as c

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Serialized minimum-interval throttle.

    Usage:
        limiter = RateLimiter(min_interval_seconds=10)
        with limiter:
            provider.invoke(...)
    """

    def __init__(
        self,
        min_interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if min_interval_seconds < 0:
            raise ValueError("min_interval_seconds must be >= 0")
        self.min_interval_seconds = min_interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_grant: Optional[float] = None
        self.grants = 0

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "RateLimiter":
        """Build from REPLICATE_MIN_INTERVAL_MS (milliseconds)."""
        env = os.environ if environ is None else environ
        raw = env.get('REPLICATE_MIN_INTERVAL_MS')
        interval_ms = c.DEFAULT_MIN_INTERVAL_MS
        if raw:
            try:
                interval_ms = int(raw)
            except ValueError:
                logger.warning("Invalid REPLICATE_MIN_INTERVAL_MS=%r, using %d", raw, interval_ms)
        return cls(interval_ms / 1000.0)

    def acquire(self) -> float:
        """
        Block until the caller may issue its call.

        Callers are granted one at a time; the lock is held while waiting
        so grants are strictly serialized.

        Returns:
            Seconds spent waiting
        """
        with self._lock:
            waited = 0.0
            if self._last_grant is not None:
                remaining = self.min_interval_seconds - (self._clock() - self._last_grant)
                if remaining > 0:
                    logger.debug("Rate limit: waiting %.2fs", remaining)
                    self._sleep(remaining)
                    waited = remaining
            self._last_grant = self._clock()
            self.grants += 1
            return waited

    def __enter__(self) -> "RateLimiter":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None
