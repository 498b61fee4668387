"""Sandbox provisioning with credential checks and a hard creation deadline."""

import asyncio
from dataclasses import dataclass
from typing import Optional, Set

from gitscout.config.settings import CREDENTIAL_ENV_VAR_NAMES, Settings
from gitscout.utils.logger import get_logger

from .errors import InvalidCredentialConfigurationError, ProvisioningTimeoutError
from .provider import (
    DEFAULT_RUNTIME,
    GitSource,
    SandboxConfig,
    SandboxHandle,
    SandboxProvider,
    SandboxResources,
)

logger = get_logger(__name__)

DEFAULT_VCPUS = 4
DEFAULT_TIMEOUT_MINUTES = 30
CREATION_TIMEOUT_SECONDS = 10 * 60


@dataclass(frozen=True)
class SandboxCredentials:
    """Elevated-tier credential triple."""

    team_id: str
    project_id: str
    token: str

    def __repr__(self) -> str:
        return f"SandboxCredentials(team_id={self.team_id!r}, project_id={self.project_id!r}, token=<masked>)"


def resolve_credentials(settings: Optional[Settings]) -> Optional[SandboxCredentials]:
    """Return the configured credential triple, or None when none is set.

    Raises:
        InvalidCredentialConfigurationError: If only some of the three are set.
    """
    if settings is None:
        return None

    values = {
        "VERCEL_TEAM_ID": settings.vercel_team_id,
        "VERCEL_PROJECT_ID": settings.vercel_project_id,
        "VERCEL_TOKEN": settings.vercel_token,
    }
    present = [name for name in CREDENTIAL_ENV_VAR_NAMES if values[name]]
    if not present:
        return None
    if len(present) != len(CREDENTIAL_ENV_VAR_NAMES):
        missing = [name for name in CREDENTIAL_ENV_VAR_NAMES if not values[name]]
        raise InvalidCredentialConfigurationError(missing)

    return SandboxCredentials(
        team_id=values["VERCEL_TEAM_ID"],
        project_id=values["VERCEL_PROJECT_ID"],
        token=values["VERCEL_TOKEN"],
    )


class EnvironmentProvisioner:
    """Creates sandboxes bound to a git repository.

    Creation races a fixed deadline. When the deadline wins, the pending
    creation keeps running in the background and its result is discarded; a
    sandbox that is created late is logged with its id but not stopped.
    """

    def __init__(
        self,
        provider: SandboxProvider,
        settings: Optional[Settings] = None,
        runtime: Optional[str] = None,
        creation_timeout: float = CREATION_TIMEOUT_SECONDS,
    ):
        self.provider = provider
        self.settings = settings
        self.runtime = runtime or (settings.sandbox_runtime if settings else DEFAULT_RUNTIME)
        self.creation_timeout = creation_timeout
        # Strong references keep abandoned creations from being garbage collected
        self._abandoned: Set[asyncio.Task] = set()

    def build_config(
        self,
        repository_url: str,
        vcpus: int = DEFAULT_VCPUS,
        timeout_minutes: int = DEFAULT_TIMEOUT_MINUTES,
        revision: Optional[str] = None,
    ) -> SandboxConfig:
        """Build the creation config, attaching credentials when fully configured."""
        config = SandboxConfig(
            source=GitSource(url=repository_url, revision=revision),
            resources=SandboxResources(vcpus=vcpus),
            timeout_ms=timeout_minutes * 60 * 1000,
            runtime=self.runtime,
            ports=[],
        )

        credentials = resolve_credentials(self.settings)
        if credentials is not None:
            config.team_id = credentials.team_id
            config.project_id = credentials.project_id
            config.token = credentials.token
        return config

    async def provision(
        self,
        repository_url: str,
        vcpus: int = DEFAULT_VCPUS,
        timeout_minutes: int = DEFAULT_TIMEOUT_MINUTES,
        revision: Optional[str] = None,
    ) -> SandboxHandle:
        """
        Create a sandbox with ``repository_url`` cloned into it.

        Args:
            repository_url: Git URL to clone, e.g. https://github.com/owner/repo.git
            vcpus: vCPUs to allocate
            timeout_minutes: Idle/session timeout for the sandbox
            revision: Optional branch or commit to check out

        Returns:
            Handle to the new sandbox

        Raises:
            InvalidCredentialConfigurationError: Partial credentials configured
            ProvisioningTimeoutError: Creation did not finish before the deadline
        """
        config = self.build_config(repository_url, vcpus, timeout_minutes, revision)

        logger.info(
            f"Creating sandbox for {repository_url} "
            f"(vcpus={vcpus}, timeout={timeout_minutes}m, runtime={config.runtime})"
        )

        task = asyncio.ensure_future(self.provider.create(config))
        done, _ = await asyncio.wait({task}, timeout=self.creation_timeout)

        if task not in done:
            self._abandon(task, repository_url)
            logger.error(
                f"Sandbox creation for {repository_url} timed out after "
                f"{self.creation_timeout:g}s"
            )
            raise ProvisioningTimeoutError(self.creation_timeout)

        try:
            handle = task.result()
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"Failed to create sandbox for {repository_url}: {message}")
            raise

        logger.info(f"Created sandbox {handle.sandbox_id} for {repository_url}")
        return handle

    def _abandon(self, task: asyncio.Task, repository_url: str) -> None:
        self._abandoned.add(task)

        def _report(finished: asyncio.Task) -> None:
            self._abandoned.discard(finished)
            if finished.cancelled():
                return
            error = finished.exception()
            if error is not None:
                logger.debug(
                    f"Abandoned sandbox creation for {repository_url} failed: {error}"
                )
                return
            logger.warning(
                f"Sandbox {finished.result().sandbox_id} for {repository_url} was "
                "created after the creation deadline and is not tracked"
            )

        task.add_done_callback(_report)
