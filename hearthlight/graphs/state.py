"""State definitions for the agent turn graph."""

from enum import StrEnum

from pydantic import BaseModel, Field

from hearthlight.models.llm import LLMMessage
from hearthlight.models.messages import ToolCall
from hearthlight.services.extraction import ParsedResponse


class TurnPhase(StrEnum):
    """Where a turn is in its lifecycle."""

    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    EXTRACTING_TOOLS = "extracting_tools"
    EXECUTING_TOOLS = "executing_tools"
    COMPOSED = "composed"


class TurnState(BaseModel):
    """State carried through one conversational turn.

    ``messages`` is the full provider input (system prompt, history, new user message).
    Each node fills in the fields for its phase; ``error`` is set only when the model
    could not be reached, which sends the turn straight to composition.
    """

    thread_id: str
    user_text: str
    messages: list[LLMMessage]
    phase: TurnPhase = TurnPhase.IDLE

    model_text: str | None = None
    error: str | None = None

    parsed: ParsedResponse | None = None
    executed: list[ToolCall] = Field(default_factory=list)

    display_text: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
