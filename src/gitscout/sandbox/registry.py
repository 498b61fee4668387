"""Conversation-to-sandbox session registry."""

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Optional

from gitscout.utils.logger import get_logger

from .errors import MissingRepositoryError
from .provider import SandboxHandle
from .provisioner import EnvironmentProvisioner

logger = get_logger(__name__)


@dataclass
class Session:
    """One live sandbox bound to one conversation."""

    chat_id: str
    handle: SandboxHandle
    sandbox_id: str
    repository_url: str
    created_at: float = field(default_factory=time.time)


async def _stop_quietly(handle: SandboxHandle) -> None:
    try:
        await handle.stop()
    except Exception as e:
        logger.debug(f"Ignoring error stopping sandbox {handle.sandbox_id}: {e}")


class SessionRegistry:
    """Maps each conversation id to at most one live sandbox.

    ``resolve`` and ``evict`` hold a per-conversation lock, so concurrent
    callers for the same conversation never observe a half-replaced entry
    and never provision two sandboxes side by side. Liveness is not checked
    on lookup; dead sandboxes are discovered when a command fails.
    """

    def __init__(
        self,
        provisioner: EnvironmentProvisioner,
        vcpus: int = 4,
        timeout_minutes: int = 30,
    ):
        self.provisioner = provisioner
        self.vcpus = vcpus
        self.timeout_minutes = timeout_minutes
        self._sessions: Dict[str, Session] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def _locked(self, chat_id: str) -> AsyncIterator[None]:
        """Hold the conversation's lock.

        The lock is dropped once no caller holds or awaits it and the
        conversation has no session.
        """
        lock = self._locks.get(chat_id)
        if lock is None:
            lock = self._locks[chat_id] = asyncio.Lock()
        self._lock_users[chat_id] = self._lock_users.get(chat_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[chat_id] -= 1
            if self._lock_users[chat_id] == 0 and chat_id not in self._sessions:
                del self._lock_users[chat_id]
                del self._locks[chat_id]

    def get(self, chat_id: str) -> Optional[Session]:
        return self._sessions.get(chat_id)

    def bound_repository(self, chat_id: str) -> Optional[str]:
        """Repository URL of the conversation's live session, if any."""
        session = self._sessions.get(chat_id)
        return session.repository_url if session else None

    async def resolve(
        self,
        chat_id: str,
        repository_url: Optional[str] = None,
        revision: Optional[str] = None,
    ) -> SandboxHandle:
        """
        Return the conversation's sandbox, creating or replacing it as needed.

        Args:
            chat_id: Conversation identifier
            repository_url: Repository to bind; required when no session exists
            revision: Optional branch or commit for a newly created sandbox

        Returns:
            Handle of the live sandbox

        Raises:
            MissingRepositoryError: No session exists and no repository_url given
        """
        async with self._locked(chat_id):
            existing = self._sessions.get(chat_id)

            if existing is not None:
                if not repository_url or repository_url == existing.repository_url:
                    return existing.handle

                logger.info(
                    f"Replacing sandbox {existing.sandbox_id} for chat {chat_id}: "
                    f"repository changed to {repository_url}"
                )
                await _stop_quietly(existing.handle)
                del self._sessions[chat_id]

            if not repository_url:
                raise MissingRepositoryError(chat_id)

            handle = await self.provisioner.provision(
                repository_url,
                vcpus=self.vcpus,
                timeout_minutes=self.timeout_minutes,
                revision=revision,
            )
            self._sessions[chat_id] = Session(
                chat_id=chat_id,
                handle=handle,
                sandbox_id=handle.sandbox_id,
                repository_url=repository_url,
            )
            return handle

    async def evict(
        self, chat_id: str, handle: Optional[SandboxHandle] = None
    ) -> Optional[str]:
        """
        Stop and forget the conversation's sandbox.

        Args:
            chat_id: Conversation identifier
            handle: Only evict if the session still holds this handle. When a
                different sandbox has already replaced it, the entry is kept.

        Returns:
            Repository URL that was bound to the conversation, if any
        """
        async with self._locked(chat_id):
            session = self._sessions.get(chat_id)
            if session is None:
                return None

            if handle is not None and session.handle is not handle:
                logger.debug(
                    f"Sandbox for chat {chat_id} was already replaced by "
                    f"{session.sandbox_id}; keeping it"
                )
                return session.repository_url

            await _stop_quietly(session.handle)
            del self._sessions[chat_id]
            logger.info(f"Evicted sandbox {session.sandbox_id} for chat {chat_id}")
            return session.repository_url

    async def evict_all(self) -> None:
        """Stop every live sandbox; individual stop failures are ignored.

        Each conversation is evicted under its lock, so a sandbox still being
        provisioned when teardown starts is stopped once it is registered.
        """
        chat_ids = set(self._sessions) | set(self._locks)
        evicted = await asyncio.gather(*(self.evict(chat_id) for chat_id in chat_ids))
        stopped = sum(1 for url in evicted if url is not None)
        if stopped:
            logger.info(f"Stopped {stopped} sandbox(es)")

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, chat_id: str) -> bool:
        return chat_id in self._sessions
