"""Token bucket rate limiters for NetStorage operation classes."""

import asyncio
import time
from dataclasses import dataclass
from typing import Optional

from .config import RateLimitConfig


class RateLimiter:
    """Asynchronous token bucket.

    The bucket holds at most ``tokens_per_interval`` tokens and refills
    continuously at ``tokens_per_interval / interval`` tokens per second.
    """

    def __init__(self, tokens_per_interval: int, interval: float = 1.0):
        if tokens_per_interval <= 0:
            raise ValueError("tokens_per_interval must be positive")
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.capacity = float(tokens_per_interval)
        self.interval = interval
        self._rate = tokens_per_interval / interval
        self._tokens = self.capacity
        self._updated = time.monotonic()
        self._lock: Optional[asyncio.Lock] = None

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self._updated
        self._updated = now
        self._tokens = min(self.capacity, self._tokens + elapsed * self._rate)

    async def acquire(self, tokens: int = 1) -> None:
        """Wait until ``tokens`` tokens are available and take them."""
        if tokens > self.capacity:
            raise ValueError(
                f"Cannot acquire {tokens} tokens from a bucket of {self.capacity:g}"
            )
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= tokens:
                    self._tokens -= tokens
                    return
                await asyncio.sleep((tokens - self._tokens) / self._rate)


@dataclass(frozen=True)
class RateLimiters:
    """Limiters for read, write and directory listing operations."""

    read: RateLimiter
    write: RateLimiter
    dir: RateLimiter


# Operation name -> limiter attribute on RateLimiters
OPERATION_LIMITERS = {
    "dir": "dir",
    "download": "read",
    "du": "read",
    "stat": "read",
    "mkdir": "write",
    "mtime": "write",
    "rename": "write",
    "rm": "write",
    "rmdir": "write",
    "symlink": "write",
    "upload": "write",
}


def create_rate_limiters(config: Optional[RateLimitConfig] = None) -> RateLimiters:
    """Create the read, write and dir limiters for a client.

    Args:
        config: Bucket sizes (defaults: 800 read, 25 write, 50 dir per second)

    Returns:
        RateLimiters instance
    """
    config = config or RateLimitConfig()
    return RateLimiters(
        read=RateLimiter(config.read, config.interval),
        write=RateLimiter(config.write, config.interval),
        dir=RateLimiter(config.dir, config.interval),
    )


def select_limiter(operation: str, limiters: RateLimiters) -> RateLimiter:
    """Resolve the limiter guarding a NetStorage operation.

    Raises:
        ValueError: If the operation is unknown
    """
    try:
        return getattr(limiters, OPERATION_LIMITERS[operation])
    except KeyError:
        raise ValueError(
            f"Unsupported operation for limiter selection: {operation}"
        ) from None
