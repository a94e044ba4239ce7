"""
Rate Limiter
------------
Token bucket pacing for outbound requests.

Shared by every in-flight invocation of a session; synchronisation is
internal so callers never lock around it.
"""

from dataclasses import dataclass
from threading import Lock
from typing import Callable, Optional
import time


@dataclass(frozen=True)
class RateLimitConfig:
    """Rate limit configuration."""
    requests_per_second: float = 10.0
    burst_size: int = 10  # Allow burst of requests


class RateLimiter:
    """
    Thread-safe token bucket.

    `clock` and `sleep` are injectable so tests run without real waiting.
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(self.config.burst_size)
        self._last_update = clock()
        self._lock = Lock()

    def acquire(self, timeout: float = 30.0) -> bool:
        """
        Take one token, waiting up to `timeout` seconds for it.

        Returns True if a token was acquired.
        """
        deadline = self._clock() + timeout

        while True:
            with self._lock:
                self._refill()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return True
                wait = (1.0 - self._tokens) / self.config.requests_per_second

            remaining = deadline - self._clock()
            if remaining <= 0:
                return False
            self._sleep(min(wait, remaining))

    def try_acquire(self) -> bool:
        """Take one token if available without blocking."""
        with self._lock:
            self._refill()
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last_update
        self._last_update = now
        self._tokens = min(
            float(self.config.burst_size),
            self._tokens + elapsed * self.config.requests_per_second
        )

    @property
    def available_tokens(self) -> float:
        with self._lock:
            self._refill()
            return self._tokens
