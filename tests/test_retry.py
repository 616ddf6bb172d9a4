"""Tests for the retry executor."""

import asyncio

import pytest

from pynetstorage.exceptions import (
    NetStorageAPIError,
    NetStorageCancelledError,
    NetStorageNetworkError,
    NetStorageNotFoundError,
    NetStorageRateLimitError,
    NetStorageValidationError,
)
from pynetstorage.rate_limit import RateLimiter
from pynetstorage.retry import (
    RetryPolicy,
    calculate_delay,
    create_retry_policy,
    execute_with_retries,
    is_transient_error,
)


class Flaky:
    """Async operation failing a fixed number of times before succeeding."""

    def __init__(self, failures: int, error: Exception):
        self.failures = failures
        self.error = error
        self.attempts = 0

    async def __call__(self):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise self.error
        return "ok"


class TestCalculateDelay:
    """Tests for calculate_delay."""

    def test_exponential_growth(self):
        assert calculate_delay(1, 0.1, 10.0, False) == pytest.approx(0.1)
        assert calculate_delay(2, 0.1, 10.0, False) == pytest.approx(0.2)
        assert calculate_delay(3, 0.1, 10.0, False) == pytest.approx(0.4)

    def test_capped_at_max_delay(self):
        assert calculate_delay(10, 0.1, 0.8, False) == pytest.approx(0.8)

    def test_jitter_stays_within_bounds(self):
        for attempt in range(1, 6):
            delay = calculate_delay(attempt, 0.1, 0.8, True)
            assert 0 <= delay <= min(0.8, 0.1 * 2 ** (attempt - 1))


class TestExecuteWithRetries:
    """Tests for execute_with_retries."""

    @pytest.mark.asyncio
    async def test_retries_with_exponential_delays(self):
        delays = []
        policy = RetryPolicy(
            max_attempts=3,
            base_delay=0.01,
            max_delay=0.08,
            jitter=False,
            is_retryable=lambda err: True,
            on_retry=lambda err, attempt, delay: delays.append(delay),
        )
        operation = Flaky(2, NetStorageNetworkError("boom"))

        result = await execute_with_retries(policy, operation)

        assert result == "ok"
        assert operation.attempts == 3
        assert delays == [pytest.approx(0.01), pytest.approx(0.02)]

    @pytest.mark.asyncio
    async def test_reraises_last_error_when_exhausted(self):
        policy = RetryPolicy(
            max_attempts=3,
            base_delay=0,
            max_delay=0,
            jitter=False,
            is_retryable=lambda err: True,
        )
        operation = Flaky(10, NetStorageNetworkError("still down"))

        with pytest.raises(NetStorageNetworkError, match="still down"):
            await execute_with_retries(policy, operation)
        assert operation.attempts == 3

    @pytest.mark.asyncio
    async def test_non_retryable_error_is_raised_immediately(self):
        retries = []
        policy = RetryPolicy(
            max_attempts=5,
            base_delay=0,
            is_retryable=is_transient_error,
            on_retry=lambda *args: retries.append(args),
        )
        operation = Flaky(1, NetStorageValidationError("bad input"))

        with pytest.raises(NetStorageValidationError):
            await execute_with_retries(policy, operation)
        assert operation.attempts == 1
        assert retries == []

    @pytest.mark.asyncio
    async def test_before_attempt_runs_before_every_attempt(self):
        calls = []

        async def before():
            calls.append("before")

        policy = RetryPolicy(
            max_attempts=3,
            base_delay=0,
            max_delay=0,
            is_retryable=lambda err: True,
            before_attempt=before,
        )

        await execute_with_retries(policy, Flaky(2, NetStorageNetworkError("x")))

        assert calls == ["before", "before", "before"]

    @pytest.mark.asyncio
    async def test_sync_before_attempt(self):
        calls = []
        policy = RetryPolicy(max_attempts=1, before_attempt=lambda: calls.append(1))

        assert await execute_with_retries(policy, Flaky(0, ValueError())) == "ok"
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_cancellation_is_never_retried(self):
        attempts = []

        async def operation():
            attempts.append(1)
            raise asyncio.CancelledError()

        policy = RetryPolicy(max_attempts=5, base_delay=0, is_retryable=lambda e: True)

        with pytest.raises(asyncio.CancelledError):
            await execute_with_retries(policy, operation)
        assert len(attempts) == 1


class TestIsTransientError:
    """Tests for error classification."""

    def test_network_errors_are_transient(self):
        assert is_transient_error(NetStorageNetworkError("reset"))

    def test_rate_limit_is_transient(self):
        assert is_transient_error(NetStorageRateLimitError("slow down", status_code=429))

    @pytest.mark.parametrize("status", [500, 502, 503, 504])
    def test_server_errors_are_transient(self, status):
        assert is_transient_error(NetStorageAPIError("server", status_code=status))

    @pytest.mark.parametrize("status", [400, 401, 403, 409])
    def test_client_errors_are_not_transient(self, status):
        assert not is_transient_error(NetStorageAPIError("client", status_code=status))

    def test_not_found_is_not_transient(self):
        assert not is_transient_error(NetStorageNotFoundError("gone", status_code=404))

    def test_cancelled_is_not_transient(self):
        assert not is_transient_error(NetStorageCancelledError("aborted"))

    def test_unrelated_errors_are_not_transient(self):
        assert not is_transient_error(KeyError("x"))


class TestCreateRetryPolicy:
    """Tests for the client's default policy."""

    def test_defaults(self):
        limiter = RateLimiter(10)
        policy = create_retry_policy("dir", limiter)

        assert policy.max_attempts == 4
        assert policy.base_delay == pytest.approx(0.3)
        assert policy.max_delay == pytest.approx(2.0)
        assert policy.jitter is True
        assert policy.before_attempt == limiter.acquire
        assert policy.is_retryable is is_transient_error

    def test_logs_retries_with_method_name(self, caplog):
        policy = create_retry_policy("stat")

        with caplog.at_level("WARNING", logger="pynetstorage.retry"):
            policy.on_retry(NetStorageNetworkError("timeout"), 1, 0.25)

        assert "[stat] Retry 1" in caplog.text
        assert "timeout" in caplog.text
