"""Remote environment provider boundary.

A provider creates sandboxes from a SandboxConfig and hands back a
SandboxHandle for running commands. Providers must raise
SandboxUnavailableError when a sandbox has died so the executor can replace
it; every other failure is a SandboxAPIError or a plain exception.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, Field

DEFAULT_RUNTIME = "node22"


class GitSource(BaseModel):
    """Repository cloned into the sandbox at creation time."""

    type: Literal["git"] = "git"
    url: str
    revision: Optional[str] = None


class SandboxResources(BaseModel):
    vcpus: int = Field(4, ge=1)


class SandboxConfig(BaseModel):
    """Everything a provider needs to create one sandbox."""

    source: GitSource
    resources: SandboxResources = Field(default_factory=SandboxResources)
    timeout_ms: int = Field(30 * 60 * 1000, gt=0)
    runtime: str = DEFAULT_RUNTIME
    ports: List[int] = Field(default_factory=list)

    # Elevated-tier credentials, attached only when fully configured
    team_id: Optional[str] = None
    project_id: Optional[str] = None
    token: Optional[str] = Field(None, repr=False)

    @property
    def has_credentials(self) -> bool:
        return bool(self.team_id and self.project_id and self.token)

    def to_payload(self) -> Dict[str, Any]:
        """Request body for the sandbox creation API (credentials excluded)."""
        source: Dict[str, Any] = {"type": self.source.type, "url": self.source.url}
        if self.source.revision:
            source["revision"] = self.source.revision
        return {
            "source": source,
            "resources": {"vcpus": self.resources.vcpus},
            "timeout": self.timeout_ms,
            "runtime": self.runtime,
            "ports": list(self.ports),
        }


@dataclass
class CommandResult:
    """Captured output of one finished command."""

    stdout: str
    stderr: str
    exit_code: int


class SandboxHandle(ABC):
    """A live remote execution environment."""

    sandbox_id: str

    @abstractmethod
    async def run_command(
        self, cmd: str, args: Optional[Sequence[str]] = None, sudo: bool = False
    ) -> CommandResult:
        """Run ``cmd`` with ``args`` and wait for it to finish.

        A non-zero exit code is returned, not raised.
        """

    @abstractmethod
    async def stop(self) -> None:
        """Stop the sandbox."""


class SandboxProvider(ABC):
    """Factory for sandboxes."""

    @abstractmethod
    async def create(self, config: SandboxConfig) -> SandboxHandle:
        """Create a sandbox and return a handle once it accepts commands."""

    async def close(self) -> None:
        """Release provider resources (HTTP clients etc.)."""
