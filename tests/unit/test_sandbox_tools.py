"""Tests for the agent-facing sandbox tools and the tool registry."""

import json

import pytest

from conftest import REPO_URL
from gitscout.sandbox.provider import CommandResult
from gitscout.tools import (
    ToolRegistry,
    create_sandbox_registry,
    get_sandbox_manager,
    set_sandbox_manager,
    tool,
)


@pytest.fixture
def registry(manager):
    registry = create_sandbox_registry(manager)
    yield registry
    set_sandbox_manager(None)


class TestToolDecorator:
    """Test schema generation from function signatures."""

    def test_schema_from_signature(self):
        """Types, defaults and docstring descriptions become the input schema."""
        from typing import List, Optional

        @tool
        def sample(name: str, tags: Optional[List[str]] = None, limit: int = 5) -> dict:
            """Do a sample thing.

            Args:
                name: Name to use
                tags: Labels to attach
            """
            return {}

        schema = sample.to_schema()
        assert schema["name"] == "sample"
        assert schema["description"] == "Do a sample thing."
        props = schema["input_schema"]["properties"]
        assert props["name"] == {"type": "string", "description": "Name to use"}
        assert props["tags"] == {
            "type": "array",
            "items": {"type": "string"},
            "description": "Labels to attach",
        }
        assert props["limit"] == {"type": "integer", "default": 5}
        assert schema["input_schema"]["required"] == ["name"]

    def test_custom_name(self):
        """The decorator accepts an explicit name and description."""

        @tool(name="renamed", description="Custom")
        def original(x: str) -> str:
            return x

        assert original.name == "renamed"
        assert original.description == "Custom"
        assert original("a") == "a"


class TestToolRegistry:
    """Test ToolRegistry dispatch."""

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        """Calling an unknown tool returns an error result."""
        result = await ToolRegistry().call_tool("missing", {})
        assert result["status"] == "error"
        assert "not found" in result["content"]

    @pytest.mark.asyncio
    async def test_invalid_arguments(self):
        """Unexpected arguments return an error result."""
        registry = ToolRegistry()

        @registry.register
        def echo(text: str) -> str:
            return text

        result = await registry.call_tool("echo", {"wrong": 1})
        assert result["status"] == "error"
        assert "invalid arguments" in result["content"]

    @pytest.mark.asyncio
    async def test_type_error_inside_tool(self):
        """A TypeError raised by the tool body is reported as-is."""
        registry = ToolRegistry()

        @registry.register
        async def explode(text: str) -> str:
            raise TypeError("cannot concatenate")

        result = await registry.call_tool("explode", {"text": "x"})
        assert result["status"] == "error"
        assert result["content"] == "cannot concatenate"


class TestSandboxTools:
    """Test the sandbox tools through the registry."""

    def test_registered_tools(self, registry):
        """All five sandbox tools are registered."""
        assert registry.list_tool_names() == [
            "list_sandbox_files",
            "read_sandbox_file",
            "run_sandbox_command",
            "search_command_output",
            "search_sandbox_files",
        ]

    def test_run_command_schema(self, registry):
        """The run tool exposes args as an array and requires only the command."""
        schema = registry.get("run_sandbox_command").input_schema
        assert schema["required"] == ["command"]
        assert schema["properties"]["args"]["type"] == "array"
        assert schema["properties"]["chat_id"]["default"] == "main"
        assert "repository_url" in schema["properties"]

    def test_manager_required(self):
        """Tools fail clearly when no manager is installed."""
        set_sandbox_manager(None)
        with pytest.raises(RuntimeError, match="not configured"):
            get_sandbox_manager()

    @pytest.mark.asyncio
    async def test_run_and_search(self, registry, fake_provider):
        """Truncated output can be searched with the returned command id."""
        fake_provider.handler = lambda cmd, args, sudo: CommandResult(
            "\n".join(f"entry {i}" for i in range(40)), "", 0
        )

        run = await registry.call_tool(
            "run_sandbox_command",
            {"command": "ls", "args": ["-R"], "repository_url": REPO_URL},
        )
        assert run["status"] == "success"
        run_data = json.loads(run["content"])
        assert run_data["stdout_truncated"] is True

        search = await registry.call_tool(
            "search_command_output",
            {"pattern": "entry 2[0-9]", "command_id": run_data["command_id"]},
        )
        search_data = json.loads(search["content"])
        assert search_data["match_count"] == 10
        assert search_data["command_id"] == run_data["command_id"]

    @pytest.mark.asyncio
    async def test_missing_repository_is_error_result(self, registry):
        """Operation errors surface as error results with the message."""
        result = await registry.call_tool("list_sandbox_files", {"chat_id": "new-chat"})
        assert result["status"] == "error"
        assert "Please provide a repository_url" in result["content"]

    @pytest.mark.asyncio
    async def test_read_and_search_files(self, registry, fake_provider):
        """File tools return structured results."""

        def handler(cmd, args, sudo):
            if cmd == "cat":
                return CommandResult("print('hi')\n", "", 0)
            return CommandResult("main.py:1:print('hi')\n", "", 0)

        fake_provider.handler = handler

        read = await registry.call_tool(
            "read_sandbox_file", {"file_path": "main.py", "repository_url": REPO_URL}
        )
        assert json.loads(read["content"])["content"] == "print('hi')\n"

        search = await registry.call_tool("search_sandbox_files", {"pattern": "print"})
        matches = json.loads(search["content"])["matches"]
        assert matches == [{"file": "main.py", "line": "print('hi')", "line_number": 1}]

    @pytest.mark.asyncio
    async def test_search_output_without_commands(self, registry):
        """Searching before any command returns an explanatory message."""
        result = await registry.call_tool("search_command_output", {"pattern": "x"})
        data = json.loads(result["content"])
        assert data["matches"] == []
        assert "Run some commands first" in data["message"]

    @pytest.mark.asyncio
    async def test_negative_caps_are_error_results(self, registry, fake_provider):
        """Negative size caps come back as error results."""
        search = await registry.call_tool(
            "search_command_output", {"pattern": "x", "max_results": -1}
        )
        run = await registry.call_tool(
            "run_sandbox_command",
            {"command": "ls", "repository_url": REPO_URL, "max_output_lines": -5},
        )

        assert search["status"] == "error"
        assert "max_results must be >= 0" in search["content"]
        assert run["status"] == "error"
        assert "max_output_lines must be >= 0" in run["content"]
        assert fake_provider.configs == []
