"""Error classification for sandbox operations.

Decides how the command executor reacts to a failure: a dead sandbox is
evicted and the operation retried once; configuration and provisioning
failures surface unchanged; anything else ends the operation.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import (
    InvalidCredentialConfigurationError,
    MissingRepositoryError,
    ProvisioningTimeoutError,
    SandboxUnavailableError,
)


class ErrorType(Enum):
    """Classification of sandbox operation errors."""

    # Remote environment is gone; evict and retry once
    SANDBOX_UNAVAILABLE = "sandbox_unavailable"

    # Missing repository URL or partial credentials; caller must fix input
    CONFIGURATION = "configuration"

    # Creation deadline elapsed
    PROVISIONING = "provisioning"

    # Transport, API or command-construction failure
    OPERATION = "operation"


@dataclass
class ClassifiedError:
    """An exception together with its classification."""

    error_type: ErrorType
    message: str
    sandbox_id: Optional[str] = None

    @property
    def retryable(self) -> bool:
        """True when the executor should evict the sandbox and try again."""
        return self.error_type == ErrorType.SANDBOX_UNAVAILABLE


def classify_error(error: BaseException) -> ErrorType:
    """
    Classify an exception raised while resolving a sandbox or running a command.

    Classification is by type only. Providers are responsible for raising
    SandboxUnavailableError when the environment itself has died.

    Args:
        error: The exception to classify

    Returns:
        ErrorType for the exception
    """
    if isinstance(error, SandboxUnavailableError):
        return ErrorType.SANDBOX_UNAVAILABLE
    if isinstance(error, (MissingRepositoryError, InvalidCredentialConfigurationError)):
        return ErrorType.CONFIGURATION
    if isinstance(error, ProvisioningTimeoutError):
        return ErrorType.PROVISIONING
    return ErrorType.OPERATION


def describe_error(error: BaseException) -> ClassifiedError:
    """Build a ClassifiedError with a non-empty message for an exception."""
    message = str(error) or f"{type(error).__name__}: (no message)"
    return ClassifiedError(
        error_type=classify_error(error),
        message=message,
        sandbox_id=getattr(error, "sandbox_id", None),
    )
