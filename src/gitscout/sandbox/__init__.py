"""Sandbox session management for repository exploration.

Example usage:
    from gitscout.sandbox import SandboxManager

    async with SandboxManager.from_settings() as manager:
        result = await manager.run_command(
            "ls", ["-la"], repository_url="https://github.com/owner/repo.git"
        )
        print(result.to_dict())
"""

from .error_classifier import ClassifiedError, ErrorType, classify_error, describe_error
from .errors import (
    CommandExecutionFailedError,
    FileListFailedError,
    FileReadFailedError,
    FileSearchFailedError,
    InvalidCredentialConfigurationError,
    MissingRepositoryError,
    OutputSearchFailedError,
    ProvisioningTimeoutError,
    SandboxAPIError,
    SandboxError,
    SandboxUnavailableError,
)
from .executor import CommandExecutor, ExecutionResult, build_invocation
from .manager import DEFAULT_CHAT_ID, SandboxManager
from .operations import FileContent, FileListing, FileMatch, FileSearchResult, SandboxOperations
from .output_store import CommandRecord, OutputMatch, OutputSearchResult, OutputStore
from .provider import CommandResult, SandboxConfig, SandboxHandle, SandboxProvider
from .provisioner import EnvironmentProvisioner, SandboxCredentials, resolve_credentials
from .registry import Session, SessionRegistry
from .summarizer import TruncatedView, truncate_output

__all__ = [
    # Service
    "SandboxManager",
    "DEFAULT_CHAT_ID",
    # Components
    "SessionRegistry",
    "Session",
    "EnvironmentProvisioner",
    "SandboxCredentials",
    "resolve_credentials",
    "CommandExecutor",
    "ExecutionResult",
    "build_invocation",
    "SandboxOperations",
    "OutputStore",
    "CommandRecord",
    "truncate_output",
    "TruncatedView",
    # Results
    "FileListing",
    "FileContent",
    "FileMatch",
    "FileSearchResult",
    "OutputMatch",
    "OutputSearchResult",
    # Provider boundary
    "SandboxProvider",
    "SandboxHandle",
    "SandboxConfig",
    "CommandResult",
    # Errors
    "SandboxError",
    "MissingRepositoryError",
    "InvalidCredentialConfigurationError",
    "ProvisioningTimeoutError",
    "SandboxAPIError",
    "SandboxUnavailableError",
    "CommandExecutionFailedError",
    "FileListFailedError",
    "FileReadFailedError",
    "FileSearchFailedError",
    "OutputSearchFailedError",
    "ErrorType",
    "classify_error",
    "ClassifiedError",
    "describe_error",
]
