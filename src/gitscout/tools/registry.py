"""Tool registry for listing and dispatching agent tools."""

import inspect
import json
from typing import Any, Callable, Dict, List, Optional, Union

from gitscout.utils.logger import get_logger

from .decorator import Tool, tool

logger = get_logger(__name__)


class ToolRegistry:
    """Registry of tools exposed to a tool-calling agent runtime.

    ``call_tool`` never raises: a tool's exception becomes an error result
    whose content is the exception message, for the runtime to relay into
    the conversation.
    """

    def __init__(self, name: str = "sandbox"):
        self.name = name
        self._tools: Dict[str, Tool] = {}

    def register(self, tool_or_func: Union[Tool, Callable], **kwargs) -> Tool:
        """Register a Tool, or wrap and register a plain callable."""
        t = tool_or_func if isinstance(tool_or_func, Tool) else tool(tool_or_func, **kwargs)

        if t.name in self._tools:
            logger.warning(f"Overwriting existing tool: {t.name}")

        self._tools[t.name] = t
        logger.debug(f"Registered tool: {t.name}")
        return t

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def get_tools(self) -> List[Dict[str, Any]]:
        """All tool definitions, sorted by name for a stable prompt prefix."""
        tools = [t.to_schema() for t in self._tools.values()]
        tools.sort(key=lambda t: t["name"])
        return tools

    def list_tool_names(self) -> List[str]:
        return sorted(self._tools.keys())

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """
        Execute a tool by name.

        Returns:
            {"content": <JSON text or error message>, "tool": <name>,
             "status": "success" | "error"}
        """
        tool_instance = self._tools.get(tool_name)
        if not tool_instance:
            logger.error(f"Tool not found: {tool_name}")
            return {
                "content": f"Error: Tool '{tool_name}' not found",
                "tool": tool_name,
                "status": "error",
            }

        logger.info(f"Executing tool: {tool_name}")
        logger.debug(f"Arguments: {arguments}")

        try:
            inspect.signature(tool_instance.func).bind(**arguments)
        except TypeError as e:
            logger.error(f"Invalid arguments for {tool_name}: {e}")
            return {
                "content": f"Error: invalid arguments for {tool_name}: {e}",
                "tool": tool_name,
                "status": "error",
            }

        try:
            result = await tool_instance.ainvoke(arguments)
        except Exception as e:
            logger.error(f"Tool execution failed: {tool_name}: {e}")
            return {"content": str(e), "tool": tool_name, "status": "error"}

        if isinstance(result, str):
            content = result
        else:
            content = json.dumps(result, indent=2)

        logger.info(f"Tool {tool_name} executed successfully")
        return {"content": content, "tool": tool_name, "status": "success"}

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __repr__(self) -> str:
        return f"ToolRegistry(name={self.name!r}, tools={list(self._tools.keys())})"
