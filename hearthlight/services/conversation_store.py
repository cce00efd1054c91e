"""Per-thread conversation history, mirrored to the persistence store."""

import asyncio
from datetime import datetime

from pydantic import BaseModel

from hearthlight.errors import PersistenceError
from hearthlight.models.messages import ConversationState, Message, utc_now
from hearthlight.services.storage import PersistenceStore
from hearthlight.utils.logging import get_logger

logger = get_logger(__name__)

NAME_LENGTH = 30
PREVIEW_LENGTH = 50


class ConversationSummary(BaseModel):
    """List entry for a thread."""

    thread_id: str
    name: str
    last_message: str
    timestamp: datetime
    message_count: int


def summarize(thread_id: str, messages: tuple[Message, ...] | list[Message]) -> ConversationSummary:
    first_user = next((message.content for message in messages if message.role == "user"), None)
    last = messages[-1] if messages else None
    return ConversationSummary(
        thread_id=thread_id,
        name=first_user[:NAME_LENGTH] if first_user else "New Conversation",
        last_message=last.content[:PREVIEW_LENGTH] if last else "...",
        timestamp=last.timestamp if last else utc_now(),
        message_count=len(messages),
    )


class ConversationStore:
    """In-memory thread map backed by the persistence store.

    The in-memory copy is authoritative for a running process: a failed persist is
    logged and the conversation carries on. Loading and clearing a thread hold that
    thread's lock, so a thread is only ever rehydrated once.
    """

    def __init__(self, store: PersistenceStore):
        self.store = store
        self._threads: dict[str, ConversationState] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, thread_id: str) -> asyncio.Lock:
        lock = self._locks.get(thread_id)
        if lock is None:
            lock = self._locks[thread_id] = asyncio.Lock()
        return lock

    async def get(self, thread_id: str) -> ConversationState:
        """Return the thread, rehydrating it from storage on first access."""
        state = self._threads.get(thread_id)
        if state is not None:
            return state

        async with self._lock(thread_id):
            # Another caller may have finished loading while we waited
            state = self._threads.get(thread_id)
            if state is not None:
                return state

            try:
                messages = await self.store.get_conversation(thread_id)
            except PersistenceError as e:
                logger.error(f"Could not load thread {thread_id}, starting empty: {e}")
                messages = []

            state = ConversationState.from_messages(thread_id, messages)
            self._threads[thread_id] = state

        logger.debug(f"Loaded thread {thread_id} with {len(messages)} messages")
        return state

    async def append(self, thread_id: str, message: Message) -> ConversationState:
        state = await self.get(thread_id)
        state.append(message)
        await self._persist(state)
        return state

    async def _persist(self, state: ConversationState) -> None:
        try:
            await self.store.save_conversation(state.thread_id, list(state.messages))
        except PersistenceError as e:
            logger.error(f"Failed to persist thread {state.thread_id}: {e}")

    async def clear(self, thread_id: str) -> None:
        """Forget a thread in storage, then in memory.

        Raises:
            PersistenceError: If the stored copy could not be deleted; the thread is left as it was
        """
        async with self._lock(thread_id):
            await self.store.delete_conversation(thread_id)
            self._threads.pop(thread_id, None)
        logger.info(f"Cleared thread {thread_id}")

    async def list_threads(self) -> list[ConversationSummary]:
        """Summaries of every known thread, most recently active first."""
        stored = await self.store.get_all_conversations()
        threads = {thread_id: tuple(messages) for thread_id, messages in stored.items()}
        threads.update({thread_id: state.messages for thread_id, state in self._threads.items()})
        summaries = [summarize(thread_id, messages) for thread_id, messages in threads.items()]
        return sorted(summaries, key=lambda summary: summary.timestamp, reverse=True)
