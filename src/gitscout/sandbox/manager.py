"""Long-lived service object owning all sandbox state for a process."""

from typing import Optional, Sequence

from gitscout.config.settings import Settings, load_settings
from gitscout.utils.logger import get_logger

from .executor import CommandExecutor, ExecutionResult
from .operations import FileContent, FileListing, FileSearchResult, SandboxOperations
from .output_store import DEFAULT_MAX_RESULTS, OutputSearchResult, OutputStore
from .provider import SandboxProvider
from .provisioner import CREATION_TIMEOUT_SECONDS, EnvironmentProvisioner
from .registry import SessionRegistry
from .summarizer import DEFAULT_MAX_LINES

logger = get_logger(__name__)

DEFAULT_CHAT_ID = "main"


class SandboxManager:
    """Wires provider, provisioner, session registry, output store and executor.

    State lives in memory only and is lost on restart. Calls for the same
    conversation are expected to be issued one at a time.
    """

    def __init__(
        self,
        provider: SandboxProvider,
        settings: Optional[Settings] = None,
        creation_timeout: float = CREATION_TIMEOUT_SECONDS,
    ):
        self.settings = settings
        self.provider = provider
        self.provisioner = EnvironmentProvisioner(
            provider, settings=settings, creation_timeout=creation_timeout
        )
        self.registry = SessionRegistry(
            self.provisioner,
            vcpus=settings.sandbox_vcpus if settings else 4,
            timeout_minutes=settings.sandbox_timeout_minutes if settings else 30,
        )
        self.output_store = OutputStore()
        self.executor = CommandExecutor(self.registry, self.output_store)
        self.operations = SandboxOperations(self.executor)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SandboxManager":
        """Build a manager backed by the hosted sandbox API."""
        from .vercel import VercelSandboxProvider

        settings = settings or load_settings()
        return cls(VercelSandboxProvider.from_settings(settings), settings=settings)

    async def run_command(
        self,
        command: str,
        args: Optional[Sequence[str]] = None,
        chat_id: str = DEFAULT_CHAT_ID,
        repository_url: Optional[str] = None,
        sudo: bool = False,
        working_directory: Optional[str] = None,
        max_output_lines: int = DEFAULT_MAX_LINES,
    ) -> ExecutionResult:
        return await self.executor.run(
            chat_id,
            repository_url,
            command,
            args,
            sudo=sudo,
            working_directory=working_directory,
            max_output_lines=max_output_lines,
        )

    async def list_files(
        self,
        chat_id: str = DEFAULT_CHAT_ID,
        repository_url: Optional[str] = None,
        path: str = ".",
        recursive: bool = False,
    ) -> FileListing:
        return await self.operations.list_files(chat_id, repository_url, path, recursive)

    async def read_file(
        self,
        file_path: str,
        chat_id: str = DEFAULT_CHAT_ID,
        repository_url: Optional[str] = None,
    ) -> FileContent:
        return await self.operations.read_file(chat_id, file_path, repository_url)

    async def search_files(
        self,
        pattern: str,
        chat_id: str = DEFAULT_CHAT_ID,
        repository_url: Optional[str] = None,
        path: str = ".",
        case_sensitive: bool = True,
        include_line_numbers: bool = True,
        file_pattern: Optional[str] = None,
    ) -> FileSearchResult:
        return await self.operations.search_files(
            chat_id,
            pattern,
            repository_url=repository_url,
            path=path,
            case_sensitive=case_sensitive,
            include_line_numbers=include_line_numbers,
            file_pattern=file_pattern,
        )

    def search_command_output(
        self,
        pattern: str,
        chat_id: str = DEFAULT_CHAT_ID,
        command_id: Optional[str] = None,
        search_stdout: bool = True,
        search_stderr: bool = True,
        case_sensitive: bool = False,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> OutputSearchResult:
        return self.output_store.search(
            chat_id,
            pattern,
            command_id=command_id,
            search_stdout=search_stdout,
            search_stderr=search_stderr,
            case_sensitive=case_sensitive,
            max_results=max_results,
        )

    async def cleanup(self, chat_id: str) -> None:
        """Stop the conversation's sandbox and drop its command output."""
        await self.registry.evict(chat_id)
        self.output_store.clear(chat_id)

    async def cleanup_all(self) -> None:
        """Stop every sandbox and drop all command output."""
        await self.registry.evict_all()
        self.output_store.clear_all()

    async def close(self) -> None:
        await self.cleanup_all()
        await self.provider.close()

    async def __aenter__(self) -> "SandboxManager":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
