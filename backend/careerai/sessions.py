"""Registry of live client sessions, each owning one state synchronizer."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from .assessment import AssessmentDraftStore, DraftAutosaver
from .config import Settings, get_settings
from .local_cache import LocalCacheFactory
from .persistent_store import DatabasePersistentStore, PersistentStore
from .synchronizer import RetryPolicy, StateSynchronizer

logger = logging.getLogger(__name__)


class SessionNotFoundError(KeyError):
    def __init__(self, session_id: str) -> None:
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"Session '{self.session_id}' was not found."


@dataclass
class ClientSession:
    session_id: str
    client_id: str
    synchronizer: StateSynchronizer
    drafts: AssessmentDraftStore
    autosaver: DraftAutosaver


class SessionRegistry:
    def __init__(
        self,
        *,
        cache_factory: Optional[LocalCacheFactory] = None,
        remote: Optional[PersistentStore] = None,
        retry: Optional[RetryPolicy] = None,
        chat_history_limit: int = 50,
        autosave_seconds: float = 2.0,
    ) -> None:
        self._cache_factory = cache_factory or LocalCacheFactory()
        self._remote = remote
        self._retry = retry or RetryPolicy()
        self._chat_history_limit = chat_history_limit
        self._autosave_seconds = autosave_seconds
        self._sessions: Dict[str, ClientSession] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionRegistry":
        root = Path(settings.local_cache_dir).expanduser() if settings.local_cache_dir else None
        remote: Optional[PersistentStore] = DatabasePersistentStore() if settings.database_url else None
        if remote is None:
            logger.warning("CAREERAI_DATABASE_URL is not set; sessions will only use the local cache.")
        return cls(
            cache_factory=LocalCacheFactory(root),
            remote=remote,
            retry=RetryPolicy.from_settings(settings),
            chat_history_limit=settings.chat_history_limit,
            autosave_seconds=settings.draft_autosave_seconds,
        )

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, client_id: Optional[str] = None) -> ClientSession:
        resolved_client = (client_id or "").strip() or uuid.uuid4().hex
        cache = self._cache_factory.for_client(resolved_client)
        drafts = AssessmentDraftStore(cache)
        session = ClientSession(
            session_id=uuid.uuid4().hex,
            client_id=resolved_client,
            synchronizer=StateSynchronizer(
                cache=cache,
                remote=self._remote,
                retry=self._retry,
                chat_history_limit=self._chat_history_limit,
            ),
            drafts=drafts,
            autosaver=DraftAutosaver(drafts, delay_seconds=self._autosave_seconds),
        )
        self._sessions[session.session_id] = session
        logger.info("Opened session %s for client %s", session.session_id, resolved_client)
        return session

    def get(self, session_id: str) -> ClientSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def close(self, session_id: str) -> bool:
        """Release a session after saving its pending draft and settling its writes."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        if session.autosaver.pending:
            await session.autosaver.flush()
        await session.synchronizer.wait_for_pending()
        logger.info("Closed session %s for client %s", session_id, session.client_id)
        return True

    async def drain(self) -> None:
        """Wait for every session's outstanding persistence tasks and pending drafts."""
        sessions = list(self._sessions.values())
        for session in sessions:
            if session.autosaver.pending:
                await session.autosaver.flush()
        await asyncio.gather(
            *(session.synchronizer.wait_for_pending() for session in sessions),
            return_exceptions=True,
        )


_registry: Optional[SessionRegistry] = None


def get_session_registry() -> SessionRegistry:
    global _registry
    if _registry is None:
        _registry = SessionRegistry.from_settings(get_settings())
    return _registry


def reset_session_registry() -> None:
    global _registry
    _registry = None


__all__ = [
    "ClientSession",
    "SessionNotFoundError",
    "SessionRegistry",
    "get_session_registry",
    "reset_session_registry",
]
