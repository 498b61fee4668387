"""Command execution with sandbox-death recovery."""

import shlex
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Type, TypeVar

from gitscout.utils.logger import get_logger

from .error_classifier import describe_error
from .errors import PASSTHROUGH_ERRORS, CommandExecutionFailedError, SandboxError
from .output_store import CommandRecord, OutputStore, new_command_id
from .provider import SandboxHandle
from .registry import SessionRegistry
from .summarizer import DEFAULT_MAX_LINES, TruncatedView, truncate_output

logger = get_logger(__name__)

T = TypeVar("T")

# One initial attempt plus one retry on a fresh sandbox. Fixed to bound latency.
MAX_ATTEMPTS = 2


@dataclass(frozen=True)
class Invocation:
    """What is actually sent to the sandbox for one command."""

    cmd: str
    args: List[str]
    command_text: str


def build_invocation(
    command: str,
    args: Sequence[str] = (),
    sudo: bool = False,
    working_directory: Optional[str] = None,
) -> Invocation:
    """
    Translate a command request into the sandbox call.

    With a working directory the command runs as one shell expression
    ``cd <dir> && <command> <args>``, so ``command`` may itself contain shell
    syntax. With sudo the command line is re-issued through ``sudo``.
    """
    command_line = " ".join([command, *args])

    if working_directory:
        shell_line = f"cd {shlex.quote(working_directory)} && {command_line}"
        if sudo:
            return Invocation(
                cmd="sudo",
                args=["sh", "-c", shell_line],
                command_text=f"sudo sh -c {shlex.quote(shell_line)}",
            )
        return Invocation(cmd="sh", args=["-c", shell_line], command_text=shell_line)

    if sudo:
        return Invocation(
            cmd="sudo", args=[command, *args], command_text=f"sudo {command_line}"
        )
    return Invocation(cmd=command, args=list(args), command_text=command_line)


@dataclass
class ExecutionResult:
    """Outcome of one command with truncated views of its output."""

    exit_code: int
    command: str
    command_id: str
    stdout: TruncatedView
    stderr: TruncatedView
    message: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "success": self.success,
            "exit_code": self.exit_code,
            "command": self.command,
            "command_id": self.command_id,
            "stdout": self.stdout.text,
            "stdout_lines": self.stdout.total_lines,
            "stdout_truncated": self.stdout.is_truncated,
            "stderr": self.stderr.text,
            "stderr_lines": self.stderr.total_lines,
            "stderr_truncated": self.stderr.is_truncated,
        }
        if self.message:
            result["message"] = self.message
        return result


class CommandExecutor:
    """Runs operations against a conversation's sandbox.

    Every operation gets the same failure handling: when the sandbox turns
    out to be dead, the session is evicted and the whole operation is retried
    once on a freshly provisioned sandbox for the same repository.
    """

    def __init__(self, registry: SessionRegistry, output_store: OutputStore):
        self.registry = registry
        self.output_store = output_store

    async def execute(
        self,
        chat_id: str,
        repository_url: Optional[str],
        operation: Callable[[SandboxHandle], Awaitable[T]],
        failure: Type[SandboxError] = CommandExecutionFailedError,
        action: str = "run command",
    ) -> T:
        """
        Resolve the conversation's sandbox and run ``operation`` on it.

        Args:
            chat_id: Conversation identifier
            repository_url: Repository to bind; falls back to the one already bound
            operation: Coroutine function receiving the sandbox handle
            failure: Error type raised when the operation cannot complete
            action: Verb phrase used in the failure message ("run command", ...)

        Raises:
            MissingRepositoryError, InvalidCredentialConfigurationError,
            ProvisioningTimeoutError: Unchanged
            failure: For any other error, or a second dead sandbox in a row
        """
        attempt = 0
        while True:
            attempt += 1
            target_url = repository_url or self.registry.bound_repository(chat_id)
            handle: Optional[SandboxHandle] = None
            try:
                handle = await self.registry.resolve(chat_id, target_url)
                return await operation(handle)
            except PASSTHROUGH_ERRORS:
                raise
            except failure:
                raise
            except Exception as e:
                described = describe_error(e)
                if described.retryable and attempt < MAX_ATTEMPTS:
                    logger.warning(
                        f"Sandbox for chat {chat_id} appears dead, replacing it and retrying "
                        f"(attempt {attempt + 1}/{MAX_ATTEMPTS})",
                        error=described.message,
                        sandbox_id=described.sandbox_id,
                    )
                    recovered_url = await self.registry.evict(chat_id, handle)
                    repository_url = repository_url or recovered_url
                    continue

                logger.error(f"Failed to {action} for chat {chat_id}: {described.message}")
                raise failure(f"Failed to {action}: {described.message}") from e

    async def run(
        self,
        chat_id: str,
        repository_url: Optional[str],
        command: str,
        args: Optional[Sequence[str]] = None,
        sudo: bool = False,
        working_directory: Optional[str] = None,
        max_output_lines: int = DEFAULT_MAX_LINES,
    ) -> ExecutionResult:
        """
        Run one command and record its full output.

        A non-zero exit code is part of the result, not an error.

        Returns:
            ExecutionResult with truncated stdout/stderr and a search hint
            when either stream was truncated

        Raises:
            ValueError: If max_output_lines is negative
        """
        if max_output_lines < 0:
            raise ValueError(f"max_output_lines must be >= 0, got {max_output_lines}")

        invocation = build_invocation(command, list(args or []), sudo, working_directory)

        async def _run(handle: SandboxHandle) -> ExecutionResult:
            logger.debug(f"Running in sandbox {handle.sandbox_id}: {invocation.command_text}")
            result = await handle.run_command(invocation.cmd, invocation.args, sudo=sudo)
            stdout = result.stdout or ""
            stderr = result.stderr or ""

            command_id = new_command_id()
            self.output_store.append(
                chat_id,
                CommandRecord(
                    command_id=command_id,
                    command=invocation.command_text,
                    stdout=stdout,
                    stderr=stderr,
                    exit_code=result.exit_code,
                ),
            )

            stdout_view = truncate_output(stdout, max_output_lines)
            stderr_view = truncate_output(stderr, max_output_lines)
            message = None
            if stdout_view.is_truncated or stderr_view.is_truncated:
                message = (
                    "Output truncated. Use search_command_output with "
                    f'command_id "{command_id}" to search the full output.'
                )

            return ExecutionResult(
                exit_code=result.exit_code,
                command=invocation.command_text,
                command_id=command_id,
                stdout=stdout_view,
                stderr=stderr_view,
                message=message,
            )

        return await self.execute(
            chat_id, repository_url, _run, CommandExecutionFailedError, "run command"
        )
