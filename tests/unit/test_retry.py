"""Tests for exponential backoff retry of sandbox API reads."""

import time
from unittest.mock import AsyncMock

import httpx
import pytest

from gitscout.sandbox.errors import SandboxAPIError, SandboxUnavailableError
from gitscout.utils.retry import (
    RetryConfig,
    RetryExhaustedError,
    calculate_delay,
    is_retryable_exception,
    retry_async,
)


def _fast_config(**overrides) -> RetryConfig:
    values = {"max_retries": 2, "initial_delay": 0, "jitter": False}
    values.update(overrides)
    return RetryConfig(**values)


class TestRetryConfig:
    """Test cases for retry configuration."""

    def test_default_retry_config(self):
        """Test default retry configuration."""
        config = RetryConfig()

        assert config.max_retries == 2
        assert config.initial_delay == 0.5
        assert config.max_delay == 10.0
        assert config.backoff_factor == 2.0
        assert config.jitter is True
        assert config.retry_on_5xx is True
        assert 429 in config.retryable_status_codes


class TestDelayCalculation:
    """Test cases for delay calculation with exponential backoff."""

    def test_calculate_delay_first_attempt(self):
        """Test that the first attempt has no delay."""
        assert calculate_delay(0, RetryConfig(initial_delay=2.0)) == 0

    def test_calculate_delay_exponential_backoff(self):
        """Test exponential backoff calculation."""
        config = RetryConfig(initial_delay=1.0, backoff_factor=2.0, max_delay=60.0, jitter=False)
        assert calculate_delay(1, config) == 1.0
        assert calculate_delay(2, config) == 2.0
        assert calculate_delay(3, config) == 4.0

    def test_calculate_delay_max_cap(self):
        """Test that delays are capped at max_delay."""
        config = RetryConfig(initial_delay=1.0, max_delay=5.0, jitter=False)
        assert calculate_delay(10, config) == 5.0

    def test_calculate_delay_with_jitter(self):
        """Test that jitter adds at most 25%."""
        config = RetryConfig(initial_delay=4.0, jitter=True)
        for _ in range(20):
            delay = calculate_delay(1, config)
            assert 4.0 <= delay <= 5.0


class TestRetryableExceptions:
    """Test cases for retry decisions."""

    def test_5xx_api_error_retryable(self):
        """Server errors are retried."""
        assert is_retryable_exception(SandboxAPIError("boom", status_code=503), RetryConfig())

    def test_rate_limit_retryable(self):
        """429 is retried."""
        assert is_retryable_exception(SandboxAPIError("slow down", status_code=429), RetryConfig())

    def test_dead_sandbox_not_retryable(self):
        """A dead sandbox is never retried at the HTTP layer."""
        error = SandboxUnavailableError("gone", sandbox_id="s", status_code=410)
        assert not is_retryable_exception(error, RetryConfig())

    def test_client_error_not_retryable(self):
        """4xx errors other than 429 are not retried."""
        assert not is_retryable_exception(SandboxAPIError("nope", status_code=403), RetryConfig())

    def test_httpx_transport_errors(self):
        """httpx timeouts and connection errors are retried unless disabled."""
        assert is_retryable_exception(httpx.ReadTimeout("slow"), RetryConfig())
        assert is_retryable_exception(httpx.ConnectError("refused"), RetryConfig())
        assert not is_retryable_exception(
            httpx.ConnectError("refused"), RetryConfig(retry_on_connection_error=False)
        )

    def test_httpx_status_error(self):
        """HTTPStatusError is judged by its response status."""
        request = httpx.Request("GET", "https://sandbox.test")
        response = httpx.Response(502, request=request)
        error = httpx.HTTPStatusError("bad gateway", request=request, response=response)
        assert is_retryable_exception(error, RetryConfig())

    def test_plain_errors_not_retryable(self):
        """Unrelated exceptions are not retried."""
        assert not is_retryable_exception(ValueError("bad"), RetryConfig())


class TestRetryAsync:
    """Test cases for retry_async."""

    @pytest.mark.asyncio
    async def test_retry_success_first_attempt(self):
        """Test that a successful call is not retried."""
        func = AsyncMock(return_value="ok")
        assert await retry_async(func, _fast_config(), "read") == "ok"
        func.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_retry_success_after_retries(self):
        """Test recovery after transient failures."""
        func = AsyncMock(
            side_effect=[SandboxAPIError("x", status_code=502), httpx.ConnectError("y"), "ok"]
        )
        assert await retry_async(func, _fast_config(), "read") == "ok"
        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_retry_exhausted(self):
        """Test that the last error propagates once attempts run out."""
        func = AsyncMock(side_effect=SandboxAPIError("down", status_code=503))
        with pytest.raises(SandboxAPIError, match="down"):
            await retry_async(func, _fast_config(), "read")
        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_retry_non_retryable_error(self):
        """Test that non-retryable errors propagate immediately."""
        func = AsyncMock(side_effect=SandboxUnavailableError("gone", status_code=404))
        with pytest.raises(SandboxUnavailableError):
            await retry_async(func, _fast_config(), "read")
        func.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_retry_with_arguments(self):
        """Test that positional and keyword arguments are forwarded."""
        func = AsyncMock(return_value="ok")
        await retry_async(func, _fast_config(), "read", "GET", "/path", token="t")
        func.assert_awaited_once_with("GET", "/path", token="t")

    @pytest.mark.asyncio
    async def test_time_budget_exhausted(self):
        """Test that RetryExhaustedError is raised when the time budget is spent."""

        async def slow_failure():
            time.sleep(0.02)
            raise SandboxAPIError("down", status_code=503)

        config = _fast_config(max_retry_time_seconds=0.01)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await retry_async(slow_failure, config, "read")

        assert exc_info.value.attempts == 1
        assert isinstance(exc_info.value.last_exception, SandboxAPIError)

    @pytest.mark.asyncio
    async def test_waits_between_attempts(self):
        """Test that backoff delays are slept between attempts."""
        func = AsyncMock(side_effect=[SandboxAPIError("x", status_code=500), "ok"])
        config = RetryConfig(max_retries=1, initial_delay=0.05, jitter=False)

        started = time.monotonic()
        assert await retry_async(func, config, "read") == "ok"

        assert time.monotonic() - started >= 0.04
        assert func.await_count == 2
