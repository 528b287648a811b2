"""Best-effort persistence of conversation messages."""

import asyncio
from collections.abc import Coroutine
from typing import Any, Protocol

from vea.models.messages import ChatMessage
from vea.utils.logging import get_logger

logger = get_logger(__name__)


class MessageStore(Protocol):
    """Durable message store keyed by session id."""

    async def save_message(self, session_id: str, user_id: str, message: ChatMessage) -> None:
        """Insert or update a message (matched by message id)."""
        ...

    async def get_messages(self, session_id: str) -> list[ChatMessage]:
        """Return a session's messages, oldest first."""
        ...


class MediaArchiver(Protocol):
    """Copies generated media to durable storage."""

    async def archive(self, url: str, message: ChatMessage) -> str | None:
        """Return the durable URL, or None to keep the provider URL."""
        ...


class InMemoryMessageStore:
    """In-memory message store for development and tests."""

    def __init__(self):
        self.sessions: dict[str, dict[str, ChatMessage]] = {}
        self.owners: dict[str, str] = {}

    async def save_message(self, session_id: str, user_id: str, message: ChatMessage) -> None:
        self.owners.setdefault(session_id, user_id)
        self.sessions.setdefault(session_id, {})[message.id] = message.model_copy(deep=True)

    async def get_messages(self, session_id: str) -> list[ChatMessage]:
        messages = self.sessions.get(session_id, {}).values()
        return sorted(messages, key=lambda m: m.created_at)


class PersistenceSink:
    """Fire-and-forget writer in front of a MessageStore.

    Writes never block or fail a conversation turn; failures are logged.
    Pending writes can be drained (tests, shutdown) or cancelled.
    """

    def __init__(self, store: MessageStore | None = None):
        self.store = store
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def run_in_background(self, coro: Coroutine[Any, Any, Any], description: str) -> asyncio.Task:
        """Schedule a coroutine, logging (not raising) its failure."""

        async def guarded() -> None:
            try:
                await coro
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Background {description} failed: {e}", exc_info=True)

        task = asyncio.create_task(guarded())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def save(self, session_id: str, user_id: str, *messages: ChatMessage) -> None:
        """Schedule a write-through of messages, if a store is configured."""
        if self.store is None:
            return

        snapshots = [message.model_copy(deep=True) for message in messages]

        async def write() -> None:
            for message in snapshots:
                await self.store.save_message(session_id, user_id, message)
            logger.debug(f"Persisted {len(snapshots)} message(s) for session {session_id}")

        self.run_in_background(write(), f"persistence for session {session_id}")

    async def drain(self) -> None:
        """Wait for all pending background work."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel(self) -> None:
        """Cancel all pending background work."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
