"""Pytest configuration and shared fixtures."""

import asyncio
import sys
from pathlib import Path
from typing import Callable, List, Optional

import pytest

# Add src directory to Python path for tests
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from gitscout.sandbox.errors import SandboxUnavailableError  # noqa: E402
from gitscout.sandbox.manager import SandboxManager  # noqa: E402
from gitscout.sandbox.provider import (  # noqa: E402
    CommandResult,
    SandboxConfig,
    SandboxHandle,
    SandboxProvider,
)
from gitscout.utils.logger import setup_logging  # noqa: E402

REPO_URL = "https://github.com/octo/hello.git"
OTHER_REPO_URL = "https://github.com/octo/other.git"

CommandHandler = Callable[[str, List[str], bool], CommandResult]


def _succeed(cmd: str, args: List[str], sudo: bool) -> CommandResult:
    return CommandResult(stdout="", stderr="", exit_code=0)


class FakeSandboxHandle(SandboxHandle):
    """In-memory sandbox that answers commands through the provider's handler."""

    def __init__(self, provider: "FakeSandboxProvider", sandbox_id: str):
        self._provider = provider
        self.sandbox_id = sandbox_id
        self.calls: List[tuple] = []
        self.dead = False
        self.stopped = False
        self.stop_error: Optional[Exception] = None

    async def run_command(self, cmd, args=None, sudo=False):
        args = list(args or [])
        self.calls.append((cmd, args, sudo))
        if self.dead:
            raise SandboxUnavailableError(
                f"Sandbox {self.sandbox_id} is unavailable (Status code 410 is not ok)",
                sandbox_id=self.sandbox_id,
                status_code=410,
            )
        return self._provider.handler(cmd, args, sudo)

    async def stop(self):
        self.stopped = True
        if self.stop_error is not None:
            raise self.stop_error


class FakeSandboxProvider(SandboxProvider):
    """Scriptable provider: set ``handler``, ``create_error``, ``create_delay``
    or ``dead_on_create`` to shape behavior."""

    def __init__(self, handler: Optional[CommandHandler] = None):
        self.handler: CommandHandler = handler or _succeed
        self.configs: List[SandboxConfig] = []
        self.handles: List[FakeSandboxHandle] = []
        self.create_error: Optional[Exception] = None
        self.create_delay: float = 0
        self.dead_on_create = False
        self.closed = False

    async def create(self, config: SandboxConfig) -> FakeSandboxHandle:
        self.configs.append(config)
        if self.create_delay:
            await asyncio.sleep(self.create_delay)
        if self.create_error is not None:
            raise self.create_error
        handle = FakeSandboxHandle(self, f"sbx-{len(self.handles) + 1}")
        handle.dead = self.dead_on_create
        self.handles.append(handle)
        return handle

    @property
    def all_calls(self) -> List[tuple]:
        return [call for handle in self.handles for call in handle.calls]

    async def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def configure_logging():
    """Reset logging to the current stderr; commands under test may reconfigure it."""
    setup_logging(level="DEBUG")


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Setup test environment variables."""
    test_env = {
        "LOG_LEVEL": "DEBUG",
        "JSON_LOGS": "false",
        "SSL_VERIFY": "false",
    }
    for key, value in test_env.items():
        monkeypatch.setenv(key, value)

    for key in (
        "VERCEL_TOKEN",
        "VERCEL_TEAM_ID",
        "VERCEL_PROJECT_ID",
        "VERCEL_OIDC_TOKEN",
        "SANDBOX_API_URL",
        "SANDBOX_VCPUS",
        "SANDBOX_TIMEOUT_MINUTES",
        "SANDBOX_RUNTIME",
        "SANDBOX_REQUEST_TIMEOUT",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def fake_provider():
    """A fresh in-memory sandbox provider."""
    return FakeSandboxProvider()


@pytest.fixture
def manager(fake_provider):
    """SandboxManager wired to the fake provider."""
    return SandboxManager(fake_provider)
