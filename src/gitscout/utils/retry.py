"""Exponential backoff retry for idempotent sandbox API reads.

Only requests that are safe to repeat (polling a command for its exit code,
fetching its logs) go through here. Starting a command or creating a sandbox
is never retried at the HTTP layer; environment death is handled once, higher
up, by the command executor.
"""

import asyncio
import random
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Set, Tuple, Type

import httpx

from gitscout.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry behavior with exponential backoff.

    Attributes:
        max_retries: Maximum number of retry attempts after the first call
        initial_delay: Delay before the first retry in seconds
        max_delay: Cap for any single delay in seconds
        max_retry_time_seconds: Total time budget for all attempts (0=disabled)
        backoff_factor: Exponential backoff multiplier
        jitter: Add up to 25% random jitter to each delay
        retry_on_5xx: Retry on 5xx HTTP status codes
        retry_on_timeout: Retry on timeout errors
        retry_on_connection_error: Retry on connection errors
        retryable_status_codes: Extra HTTP status codes to retry on
        retryable_exceptions: Extra exception types to retry on
    """

    max_retries: int = 2
    initial_delay: float = 0.5
    max_delay: float = 10.0
    max_retry_time_seconds: float = 30.0
    backoff_factor: float = 2.0
    jitter: bool = True
    retry_on_5xx: bool = True
    retry_on_timeout: bool = True
    retry_on_connection_error: bool = True
    retryable_status_codes: Set[int] = field(default_factory=lambda: {429})
    retryable_exceptions: Tuple[Type[Exception], ...] = field(
        default_factory=lambda: (TimeoutError, asyncio.TimeoutError, ConnectionError)
    )


class RetryExhaustedError(Exception):
    """Raised when the time budget runs out before an attempt succeeded."""

    def __init__(
        self, message: str, attempts: int, last_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.attempts = attempts
        self.last_exception = last_exception


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calculate the delay before a retry attempt.

    Args:
        attempt: Attempt number (0 = the initial call, which never waits)
        config: Retry configuration

    Returns:
        Delay in seconds
    """
    if attempt <= 0:
        return 0

    delay = config.initial_delay * (config.backoff_factor ** (attempt - 1))
    delay = min(delay, config.max_delay)

    if config.jitter:
        delay += delay * 0.25 * random.random()  # nosec B311 - jitter, not crypto

    return delay


def is_retryable_status_code(status_code: int, config: RetryConfig) -> bool:
    """Check if an HTTP status code should trigger a retry."""
    if config.retry_on_5xx and 500 <= status_code < 600:
        return True
    return status_code in config.retryable_status_codes


def is_retryable_exception(exception: Exception, config: RetryConfig) -> bool:
    """Check if an exception should trigger a retry."""
    if isinstance(exception, httpx.HTTPStatusError):
        return is_retryable_status_code(exception.response.status_code, config)

    status_code = getattr(exception, "status_code", None)
    if isinstance(status_code, int):
        return is_retryable_status_code(status_code, config)

    if config.retry_on_timeout and isinstance(
        exception, (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException)
    ):
        return True

    if config.retry_on_connection_error and isinstance(
        exception, (ConnectionError, httpx.ConnectError, httpx.NetworkError)
    ):
        return True

    return isinstance(exception, config.retryable_exceptions)


async def retry_async(
    func: Callable[..., Awaitable[Any]],
    config: Optional[RetryConfig] = None,
    context_name: str = "operation",
    *args,
    **kwargs,
) -> Any:
    """
    Retry an async function with exponential backoff and a total time limit.

    Args:
        func: The async function to retry
        config: Retry configuration (uses defaults if not provided)
        context_name: Name of the operation for logging
        *args: Arguments to pass to the function
        **kwargs: Keyword arguments to pass to the function

    Returns:
        The result of the first successful call

    Raises:
        RetryExhaustedError: If the time budget ran out between attempts
        Exception: The last exception when it is not retryable or attempts ran out
    """
    if config is None:
        config = RetryConfig()

    last_exception: Optional[Exception] = None
    start_time = time.monotonic()
    time_limit_enabled = config.max_retry_time_seconds > 0

    for attempt in range(config.max_retries + 1):
        if attempt > 0:
            delay = calculate_delay(attempt, config)
            if time_limit_enabled:
                remaining = config.max_retry_time_seconds - (time.monotonic() - start_time)
                if remaining <= 0:
                    raise RetryExhaustedError(
                        f"Retry time budget exceeded for {context_name}",
                        attempts=attempt,
                        last_exception=last_exception,
                    ) from last_exception
                delay = min(delay, remaining)

            logger.info(
                f"Retrying {context_name} (attempt {attempt + 1}/{config.max_retries + 1}) "
                f"after {delay:.2f}s delay"
            )
            await asyncio.sleep(delay)

        try:
            return await func(*args, **kwargs)
        except Exception as e:
            last_exception = e
            if attempt == config.max_retries:
                logger.error(
                    f"Final attempt for {context_name} failed after "
                    f"{config.max_retries} retries: {e}"
                )
                raise
            if not is_retryable_exception(e, config):
                raise
            logger.warning(f"Attempt {attempt + 1} for {context_name} failed, will retry: {e}")

    # Unreachable: the loop either returns or raises
    raise RetryExhaustedError(
        f"All {config.max_retries + 1} attempts failed for {context_name}",
        attempts=config.max_retries + 1,
        last_exception=last_exception,
    )
