"""Utility modules for gitscout."""

from gitscout.utils.logger import get_logger, setup_logging
from gitscout.utils.retry import (
    RetryConfig,
    RetryExhaustedError,
    calculate_delay,
    is_retryable_exception,
    is_retryable_status_code,
    retry_async,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "RetryConfig",
    "RetryExhaustedError",
    "retry_async",
    "calculate_delay",
    "is_retryable_exception",
    "is_retryable_status_code",
]
