"""Conversation message models."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from hearthlight.utils.ids import new_id


def utc_now() -> datetime:
    return datetime.now(UTC)


class ToolCall(BaseModel):
    """A tool invocation recognized in model output, with its outcome once executed."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("call"))
    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    result: str | None = None
    is_error: bool = False


class Message(BaseModel):
    """A single message in a conversation thread.

    Messages are frozen once created; a thread only ever grows by appending.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("msg"))
    role: Literal["user", "assistant", "tool"]
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
    tool_calls: tuple[ToolCall, ...] | None = None
    name: str | None = None


@dataclass
class ConversationState:
    """Ordered history of one conversation thread."""

    thread_id: str
    _messages: list[Message] = field(default_factory=list)
    last_updated: datetime = field(default_factory=utc_now)

    @classmethod
    def from_messages(cls, thread_id: str, messages: list[Message]) -> "ConversationState":
        last = messages[-1].timestamp if messages else utc_now()
        return cls(thread_id=thread_id, _messages=list(messages), last_updated=last)

    @property
    def messages(self) -> tuple[Message, ...]:
        """Read-only view of the thread in append order."""
        return tuple(self._messages)

    def append(self, message: Message) -> None:
        self._messages.append(message)
        self.last_updated = utc_now()

    def __len__(self) -> int:
        return len(self._messages)
