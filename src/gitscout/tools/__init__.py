"""Agent tools for sandbox exploration."""

from .decorator import Tool, tool
from .registry import ToolRegistry
from .sandbox_tools import (
    SANDBOX_TOOLS,
    create_sandbox_registry,
    get_sandbox_manager,
    list_sandbox_files,
    read_sandbox_file,
    run_sandbox_command,
    search_command_output,
    search_sandbox_files,
    set_sandbox_manager,
)

__all__ = [
    "Tool",
    "tool",
    "ToolRegistry",
    "SANDBOX_TOOLS",
    "create_sandbox_registry",
    "get_sandbox_manager",
    "set_sandbox_manager",
    "run_sandbox_command",
    "list_sandbox_files",
    "read_sandbox_file",
    "search_sandbox_files",
    "search_command_output",
]
