"""Retry with exponential backoff for NetStorage operations."""

import asyncio
import inspect
import logging
import random
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from .exceptions import (
    NetStorageAPIError,
    NetStorageCancelledError,
    NetStorageNetworkError,
    NetStorageRateLimitError,
)
from .rate_limit import RateLimiter
from .utils import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_RETRY_DELAY,
    DEFAULT_RETRY_DELAY,
    RETRYABLE_STATUS_CODES,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How a single call site retries failures.

    Delays are in seconds.
    """

    max_attempts: int = DEFAULT_MAX_RETRIES + 1
    """Total number of attempts, including the first one"""

    base_delay: float = DEFAULT_RETRY_DELAY
    max_delay: float = DEFAULT_MAX_RETRY_DELAY

    jitter: bool = True
    """Randomize each delay uniformly within [0, delay]"""

    is_retryable: Callable[[BaseException], bool] = lambda err: False
    before_attempt: Optional[Callable[[], Any]] = None
    """Called (and awaited, if it returns an awaitable) before every attempt"""

    on_retry: Optional[Callable[[BaseException, int, float], None]] = None
    """Called with (error, attempt, delay) before sleeping"""


def calculate_delay(
    attempt: int, base_delay: float, max_delay: float, jitter: bool
) -> float:
    """Calculate the delay after a failed attempt.

    Args:
        attempt: Number of the attempt that just failed (1-based)
        base_delay: Delay after the first failure
        max_delay: Upper bound for the delay
        jitter: Whether to randomize the delay within [0, delay]

    Returns:
        Delay in seconds

    Examples:
        >>> calculate_delay(1, 0.1, 0.8, False)
        0.1
        >>> calculate_delay(5, 0.1, 0.8, False)
        0.8
    """
    delay = min(max_delay, base_delay * (2 ** (attempt - 1)))
    if jitter:
        return random.uniform(0, delay)
    return delay


async def execute_with_retries(
    policy: RetryPolicy, operation: Callable[[], Awaitable[T]]
) -> T:
    """Run an async operation, retrying retryable failures.

    Args:
        policy: Retry policy for this call site
        operation: Zero-argument callable returning a fresh awaitable per attempt

    Returns:
        The operation's result

    Raises:
        The last error once attempts are exhausted, or the first
        non-retryable error.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            if policy.before_attempt is not None:
                result = policy.before_attempt()
                if inspect.isawaitable(result):
                    await result
            return await operation()
        except Exception as e:
            if attempt >= policy.max_attempts or not policy.is_retryable(e):
                raise

            delay = calculate_delay(
                attempt, policy.base_delay, policy.max_delay, policy.jitter
            )
            if policy.on_retry is not None:
                policy.on_retry(e, attempt, delay)
            await asyncio.sleep(delay)


def is_transient_error(error: BaseException) -> bool:
    """Determine if an error is transient and worth retrying.

    Network failures, timeouts, rate limiting and 5xx gateway/server errors
    are transient. Cancellation, validation and other client errors are not.

    Args:
        error: The exception that occurred

    Returns:
        True if the operation should be retried
    """
    if isinstance(error, NetStorageCancelledError):
        return False

    # Retry on network errors (connection resets, timeouts, DNS hiccups)
    if isinstance(error, NetStorageNetworkError):
        return True

    if isinstance(error, NetStorageRateLimitError):
        return True

    if isinstance(error, NetStorageAPIError):
        return error.status_code in RETRYABLE_STATUS_CODES

    return False


def create_retry_policy(
    method: str,
    limiter: Optional[RateLimiter] = None,
    is_retryable: Optional[Callable[[BaseException], bool]] = None,
    on_retry: Optional[Callable[[BaseException, int, float], None]] = None,
) -> RetryPolicy:
    """Build the default retry policy for a NetStorage method.

    Args:
        method: API method name (used in log messages)
        limiter: Rate limiter to take one token from before every attempt
        is_retryable: Override for error classification
        on_retry: Override for the retry hook (defaults to a warning log)

    Returns:
        RetryPolicy with 3 retries, 0.3s base delay, 2s max delay and jitter
    """

    def log_retry(error: BaseException, attempt: int, delay: float) -> None:
        logger.warning(
            "[%s] Retry %d due to error: %s. Retrying in %.2fs.",
            method,
            attempt,
            error,
            delay,
        )

    return RetryPolicy(
        max_attempts=DEFAULT_MAX_RETRIES + 1,
        base_delay=DEFAULT_RETRY_DELAY,
        max_delay=DEFAULT_MAX_RETRY_DELAY,
        jitter=True,
        is_retryable=is_retryable or is_transient_error,
        before_attempt=limiter.acquire if limiter is not None else None,
        on_retry=on_retry or log_retry,
    )
