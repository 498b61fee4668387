"""Sandbox tools exposed to the conversational agent.

Each tool is a thin adapter over the process-wide SandboxManager: arguments
come from the model's tool call, results go back as JSON-ready dicts, and
errors propagate for the registry to turn into error results.
"""

from typing import Any, Dict, List, Optional

from gitscout.sandbox.manager import DEFAULT_CHAT_ID, SandboxManager
from gitscout.utils.logger import get_logger

from .decorator import tool
from .registry import ToolRegistry

logger = get_logger(__name__)

_manager: Optional[SandboxManager] = None


def set_sandbox_manager(manager: Optional[SandboxManager]) -> None:
    """Install the manager the sandbox tools delegate to."""
    global _manager
    _manager = manager


def get_sandbox_manager() -> SandboxManager:
    if _manager is None:
        raise RuntimeError(
            "Sandbox manager is not configured. Call set_sandbox_manager() first."
        )
    return _manager


@tool
async def run_sandbox_command(
    command: str,
    args: Optional[List[str]] = None,
    chat_id: str = DEFAULT_CHAT_ID,
    repository_url: Optional[str] = None,
    sudo: bool = False,
    working_directory: Optional[str] = None,
    max_output_lines: int = 20,
) -> Dict[str, Any]:
    """Run a shell command in the conversation's sandbox with the repository checked out.

    Long output is truncated to its first and last lines. Use
    search_command_output with the returned command_id to search the full text.

    Args:
        command: Program to run, for example "ls" or "git"
        args: Arguments passed to the program
        chat_id: Conversation identifier that owns the sandbox
        repository_url: Git URL to clone. Required for the first call in a conversation
        sudo: Run the command with elevated privileges
        working_directory: Directory to change into before running the command
        max_output_lines: Maximum lines of stdout and stderr to return

    Returns:
        Exit code, truncated stdout/stderr and the command_id of the full output
    """
    result = await get_sandbox_manager().run_command(
        command,
        args,
        chat_id=chat_id,
        repository_url=repository_url,
        sudo=sudo,
        working_directory=working_directory,
        max_output_lines=max_output_lines,
    )
    return result.to_dict()


@tool
async def list_sandbox_files(
    chat_id: str = DEFAULT_CHAT_ID,
    repository_url: Optional[str] = None,
    path: str = ".",
    recursive: bool = False,
) -> Dict[str, Any]:
    """List files and directories in the sandbox.

    Args:
        chat_id: Conversation identifier that owns the sandbox
        repository_url: Git URL to clone if no sandbox exists yet
        path: Directory to list, relative to the repository root
        recursive: List every file and directory beneath path
    """
    listing = await get_sandbox_manager().list_files(
        chat_id=chat_id, repository_url=repository_url, path=path, recursive=recursive
    )
    return listing.to_dict()


@tool
async def read_sandbox_file(
    file_path: str,
    chat_id: str = DEFAULT_CHAT_ID,
    repository_url: Optional[str] = None,
) -> Dict[str, Any]:
    """Read the full content of a file in the sandbox.

    Args:
        file_path: Path of the file, relative to the repository root
        chat_id: Conversation identifier that owns the sandbox
        repository_url: Git URL to clone if no sandbox exists yet
    """
    content = await get_sandbox_manager().read_file(
        file_path, chat_id=chat_id, repository_url=repository_url
    )
    return content.to_dict()


@tool
async def search_sandbox_files(
    pattern: str,
    chat_id: str = DEFAULT_CHAT_ID,
    repository_url: Optional[str] = None,
    path: str = ".",
    case_sensitive: bool = True,
    include_line_numbers: bool = True,
    file_pattern: Optional[str] = None,
) -> Dict[str, Any]:
    """Search file contents in the sandbox with grep.

    Args:
        pattern: Pattern to search for (grep basic regular expression)
        chat_id: Conversation identifier that owns the sandbox
        repository_url: Git URL to clone if no sandbox exists yet
        path: Directory to search, relative to the repository root
        case_sensitive: Match letter case exactly
        include_line_numbers: Report the line number of each match
        file_pattern: Only search files whose name matches this glob, for example "*.py"
    """
    result = await get_sandbox_manager().search_files(
        pattern,
        chat_id=chat_id,
        repository_url=repository_url,
        path=path,
        case_sensitive=case_sensitive,
        include_line_numbers=include_line_numbers,
        file_pattern=file_pattern,
    )
    return result.to_dict()


@tool
async def search_command_output(
    pattern: str,
    chat_id: str = DEFAULT_CHAT_ID,
    command_id: Optional[str] = None,
    search_stdout: bool = True,
    search_stderr: bool = True,
    case_sensitive: bool = False,
    max_results: int = 50,
) -> Dict[str, Any]:
    """Search the full, untruncated output of earlier sandbox commands.

    Args:
        pattern: Regular expression to search for
        chat_id: Conversation identifier whose command output to search
        command_id: Only search the output of this command
        search_stdout: Include standard output in the search
        search_stderr: Include standard error in the search
        case_sensitive: Match letter case exactly
        max_results: Maximum number of matching lines to return
    """
    result = get_sandbox_manager().search_command_output(
        pattern,
        chat_id=chat_id,
        command_id=command_id,
        search_stdout=search_stdout,
        search_stderr=search_stderr,
        case_sensitive=case_sensitive,
        max_results=max_results,
    )
    return result.to_dict()


SANDBOX_TOOLS = [
    run_sandbox_command,
    list_sandbox_files,
    read_sandbox_file,
    search_sandbox_files,
    search_command_output,
]


def create_sandbox_registry(manager: Optional[SandboxManager] = None) -> ToolRegistry:
    """Create a registry holding all sandbox tools.

    Args:
        manager: Manager the tools should use; installed process-wide when given
    """
    if manager is not None:
        set_sandbox_manager(manager)

    registry = ToolRegistry(name="sandbox")
    for sandbox_tool in SANDBOX_TOOLS:
        registry.register(sandbox_tool)

    logger.info(f"Created sandbox tool registry with {len(registry)} tools")
    return registry
