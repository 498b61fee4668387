"""Exception taxonomy for sandbox sessions and operations."""

from typing import Optional


class SandboxError(Exception):
    """Base class for all sandbox errors."""

    pass


class MissingRepositoryError(SandboxError):
    """No sandbox exists for the conversation and no repository URL was given."""

    def __init__(self, chat_id: str):
        super().__init__(
            f"No sandbox exists for chat {chat_id}. "
            "Please provide a repository_url to create a sandbox."
        )
        self.chat_id = chat_id


class InvalidCredentialConfigurationError(SandboxError):
    """Only part of the elevated-tier credential triple is configured."""

    def __init__(self, missing: list):
        super().__init__(
            f"{', '.join(missing)} must be set when any of VERCEL_TEAM_ID, "
            "VERCEL_PROJECT_ID or VERCEL_TOKEN is set"
        )
        self.missing = list(missing)


class ProvisioningTimeoutError(SandboxError):
    """Sandbox creation did not finish before the creation deadline."""

    def __init__(self, timeout_seconds: float):
        minutes = timeout_seconds / 60
        label = f"{minutes:g} minutes" if timeout_seconds >= 60 else f"{timeout_seconds:g} seconds"
        super().__init__(
            f"Sandbox creation timed out after {label}. "
            "The repository may be too large or there may be a network issue."
        )
        self.timeout_seconds = timeout_seconds


class SandboxAPIError(SandboxError):
    """The sandbox provider rejected or failed a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SandboxUnavailableError(SandboxAPIError):
    """The remote sandbox is dead or no longer accepts commands.

    Providers raise this for responses that mean the environment itself is
    gone (stopped, expired, unknown id). The command executor reacts by
    evicting the session and retrying the operation once on a fresh sandbox.
    """

    def __init__(
        self,
        message: str,
        sandbox_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, status_code=status_code)
        self.sandbox_id = sandbox_id


class CommandExecutionFailedError(SandboxError):
    """A command could not be executed, even after the death retry."""

    pass


class FileListFailedError(SandboxError):
    """Listing a sandbox directory failed."""

    pass


class FileReadFailedError(SandboxError):
    """Reading a sandbox file failed."""

    pass


class FileSearchFailedError(SandboxError):
    """Searching sandbox files failed."""

    pass


class OutputSearchFailedError(SandboxError):
    """Searching stored command output failed (e.g. invalid pattern)."""

    pass


# Raised unchanged through every operation instead of being wrapped
PASSTHROUGH_ERRORS = (
    MissingRepositoryError,
    InvalidCredentialConfigurationError,
    ProvisioningTimeoutError,
)
