"""Agent service: one user message in, one composed assistant reply out."""

import asyncio
from collections.abc import AsyncIterator

from hearthlight.clients.providers import ProviderClient
from hearthlight.errors import MessageTooLongError, PersistenceError, ProviderError
from hearthlight.graphs.conversation import TurnGraphManager
from hearthlight.graphs.nodes import format_provider_failure
from hearthlight.models.conversation import StreamEvent
from hearthlight.models.messages import Message, ToolCall
from hearthlight.services.activity import ActivityTracker
from hearthlight.services.conversation_store import ConversationStore, ConversationSummary
from hearthlight.services.extraction import FAILURE_MARK
from hearthlight.services.llm import LLMService
from hearthlight.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_THREAD = "default"


class AgentService:
    """Runs conversational turns against a thread.

    Turns on the same thread are serialized; different threads proceed independently.
    The user message is appended before the model is called so it is part of the
    history the model sees, and the assistant message is appended once composed.
    """

    def __init__(
        self,
        conversations: ConversationStore,
        graph: TurnGraphManager,
        llm: LLMService,
        client: ProviderClient,
        activity: ActivityTracker,
    ):
        self.conversations = conversations
        self.graph = graph
        self.llm = llm
        self.client = client
        self.activity = activity
        self._thread_locks: dict[str, asyncio.Lock] = {}

    def _lock(self, thread_id: str) -> asyncio.Lock:
        lock = self._thread_locks.get(thread_id)
        if lock is None:
            lock = self._thread_locks[thread_id] = asyncio.Lock()
        return lock

    def validate_message(self, text: str) -> None:
        try:
            self.client.validate_message_tokens(text)
        except ValueError as e:
            raise MessageTooLongError(
                f"Your message is too long. Please keep messages under {self.client.config.max_message_tokens} tokens."
            ) from e

    async def send_message(self, text: str, thread_id: str = DEFAULT_THREAD) -> list[Message]:
        """Process a user message and return the ``[user_message, assistant_message]`` pair.

        Args:
            text: User's message
            thread_id: Conversation thread

        Returns:
            The user message and the composed assistant reply, both already persisted

        Raises:
            MessageTooLongError: If the message exceeds the token limit
        """
        self.validate_message(text)

        async with self._lock(thread_id):
            user_message = Message(role="user", content=text)
            state = await self.conversations.append(thread_id, user_message)

            try:
                turn = await self.graph.run_turn(thread_id, text, state.messages)
                reply, tool_calls = turn.display_text, turn.tool_calls
            except Exception as e:
                logger.error(f"Turn failed for thread {thread_id}: {e}", exc_info=True)
                reply, tool_calls = format_provider_failure(str(e)), []

            assistant_message = self._assistant_message(reply, tool_calls)
            await self.conversations.append(thread_id, assistant_message)

        await self._record_interaction(thread_id, text, tool_calls)
        return [user_message, assistant_message]

    async def stream_message(self, text: str, thread_id: str = DEFAULT_THREAD) -> AsyncIterator[StreamEvent]:
        """Streaming variant of :meth:`send_message`.

        Yields ``delta`` events while the provider streams, then a single ``message`` event
        with the composed assistant reply after tools ran. Fallback to the second provider
        only applies while the stream is being opened.
        """
        self.validate_message(text)

        async with self._lock(thread_id):
            user_message = Message(role="user", content=text)
            state = await self.conversations.append(thread_id, user_message)
            messages = self.graph.build_messages(state.messages)

            chunks: list[str] = []
            failure: str | None = None
            try:
                async with await self.llm.open_stream(messages) as stream:
                    async for chunk in stream:
                        chunks.append(chunk)
                        yield StreamEvent(type="delta", text=chunk)
            except ProviderError as e:
                logger.error(f"Stream failed for thread {thread_id}: {e}")
                failure = str(e)

            if chunks:
                turn = await self.graph.complete_turn(thread_id, text, "".join(chunks))
                reply, tool_calls = turn.display_text, turn.tool_calls
                if failure:
                    reply = f"{reply}\n\n{FAILURE_MARK} Response interrupted: {failure}"
            else:
                reply, tool_calls = format_provider_failure(failure or "the provider returned no text"), []

            assistant_message = self._assistant_message(reply, tool_calls)
            await self.conversations.append(thread_id, assistant_message)

        await self._record_interaction(thread_id, text, tool_calls)
        yield StreamEvent(type="message", message=assistant_message)

    @staticmethod
    def _assistant_message(reply: str, tool_calls: list[ToolCall]) -> Message:
        return Message(role="assistant", content=reply, tool_calls=tuple(tool_calls) if tool_calls else None)

    async def _record_interaction(self, thread_id: str, text: str, tool_calls: list[ToolCall]) -> None:
        try:
            await self.activity.record(
                "ai_interaction",
                text[:50],
                metadata={"thread_id": thread_id, "tools": [call.name for call in tool_calls]},
            )
        except PersistenceError as e:
            logger.warning(f"Could not record AI interaction for thread {thread_id}: {e}")

    async def get_history(self, thread_id: str = DEFAULT_THREAD) -> list[Message]:
        async with self._lock(thread_id):
            state = await self.conversations.get(thread_id)
            return list(state.messages)

    async def clear_conversation(self, thread_id: str = DEFAULT_THREAD) -> None:
        async with self._lock(thread_id):
            await self.conversations.clear(thread_id)

    async def list_conversations(self) -> list[ConversationSummary]:
        return await self.conversations.list_threads()
