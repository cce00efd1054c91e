"""Node implementations for the turn graph."""

from typing import Any

from langchain_core.runnables import RunnableConfig

from hearthlight.errors import ProviderError
from hearthlight.graphs.state import TurnPhase, TurnState
from hearthlight.services.extraction import ToolCallExtractor
from hearthlight.services.llm import LLMService
from hearthlight.utils.logging import get_logger

logger = get_logger(__name__)


def format_provider_failure(error: str) -> str:
    return f"I apologize, but I encountered an error while processing your request: {error}"


class TurnNodes:
    """The four steps of a turn, bound to the services they need."""

    def __init__(self, llm: LLMService, extractor: ToolCallExtractor):
        self.llm = llm
        self.extractor = extractor

    async def call_model(self, state: TurnState, config: RunnableConfig) -> dict[str, Any]:
        """Ask the provider (with its single fallback) for a reply.

        A ``ProviderError`` is recorded on the state rather than raised; the turn then
        ends with an apology instead of a model reply.
        """
        logger.info(f"Calling model for thread {state.thread_id} with {len(state.messages)} messages")
        try:
            text = await self.llm.send(state.messages)
        except ProviderError as e:
            logger.error(f"Provider failure for thread {state.thread_id}: {e}")
            return {"error": str(e), "phase": TurnPhase.AWAITING_MODEL}

        return {"model_text": text, "phase": TurnPhase.AWAITING_MODEL}

    async def extract_tools(self, state: TurnState) -> dict[str, Any]:
        parsed = self.extractor.parse(state.model_text or "", state.user_text)
        if parsed.calls:
            logger.info(f"Found {len(parsed.calls)} tool calls: {', '.join(call.name for call in parsed.calls)}")
        return {"parsed": parsed, "phase": TurnPhase.EXTRACTING_TOOLS}

    async def execute_tools(self, state: TurnState) -> dict[str, Any]:
        executed = await self.extractor.execute(state.parsed)
        failed = sum(1 for call in executed if call.is_error)
        if failed:
            logger.warning(f"{failed} of {len(executed)} tool calls failed for thread {state.thread_id}")
        return {"executed": executed, "phase": TurnPhase.EXECUTING_TOOLS}

    async def compose(self, state: TurnState) -> dict[str, Any]:
        if state.error:
            return {
                "display_text": format_provider_failure(state.error),
                "tool_calls": [],
                "phase": TurnPhase.COMPOSED,
            }

        result = self.extractor.compose(state.parsed, state.executed)
        return {
            "display_text": result.display_text,
            "tool_calls": result.tool_calls,
            "phase": TurnPhase.COMPOSED,
        }
