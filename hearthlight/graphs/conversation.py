"""Turn graph construction and execution."""

from datetime import datetime

from langgraph.graph import END, StateGraph

from hearthlight.graphs.edges import route_extraction_output, route_model_output
from hearthlight.graphs.nodes import TurnNodes
from hearthlight.graphs.state import TurnPhase, TurnState
from hearthlight.models.llm import LLMMessage
from hearthlight.models.messages import Message, utc_now
from hearthlight.tools.registry import ToolsRegistry
from hearthlight.utils.logging import get_logger

logger = get_logger(__name__)


def create_turn_graph(nodes: TurnNodes, include_model_call: bool = True):
    """Create the turn graph.

    The full graph runs model call, extraction, execution and composition. With
    ``include_model_call=False`` it starts at extraction, for replies that were already
    received (e.g. streamed).

    Args:
        nodes: Node implementations bound to the LLM service and extractor
        include_model_call: Whether the graph starts by calling the model

    Returns:
        Compiled LangGraph workflow
    """
    workflow = StateGraph(TurnState)

    workflow.add_node("extract", nodes.extract_tools)
    workflow.add_node("execute", nodes.execute_tools)
    workflow.add_node("compose", nodes.compose)

    if include_model_call:
        workflow.add_node("call_model", nodes.call_model)
        workflow.set_entry_point("call_model")
        workflow.add_conditional_edges(
            "call_model",
            route_model_output,
            {
                "extract": "extract",
                "compose": "compose",
            },
        )
    else:
        workflow.set_entry_point("extract")

    workflow.add_conditional_edges(
        "extract",
        route_extraction_output,
        {
            "execute": "execute",
            "compose": "compose",
        },
    )
    workflow.add_edge("execute", "compose")
    workflow.add_edge("compose", END)

    return workflow.compile()


def get_system_prompt(registry: ToolsRegistry, now: datetime | None = None) -> str:
    """Build the system prompt listing the available tools and the call format."""
    current_date = (now or utc_now()).strftime("%A, %B %d, %Y")

    return f"""You are a supportive productivity coach inside "Hearthlight", an app for tasks, habits, \
goals, pomodoro focus sessions and a personal diary.
The current date is {current_date}.

You can help the user:
- Create and organize tasks (Eisenhower quadrants, priorities)
- Write diary entries and reflect on mood patterns
- Set goals and review their progress
- Understand their productivity and recent activity

To use a tool, include a block in exactly this format in your reply:
<tool_use>
  <name>tool_name</name>
  <arguments>{{"arg1": "value1"}}</arguments>
</tool_use>

Arguments must be a single JSON object. You may use several tools in one reply; they run in order
and each block is replaced by its result.

Available tools:
{registry.describe_tools()}

When the user asks about their progress, check getAppStatus or analyzeProductivity before answering.
When they ask you to create something, use the matching creation tool.
Be warm and encouraging, and end with a concrete next step."""


def to_provider_messages(system_prompt: str, history: tuple[Message, ...] | list[Message]) -> list[LLMMessage]:
    return [
        LLMMessage(role="system", content=system_prompt),
        *(LLMMessage(role=message.role, content=message.content) for message in history),
    ]


class TurnGraphManager:
    """Runs turns through the compiled graphs."""

    def __init__(self, nodes: TurnNodes, registry: ToolsRegistry):
        self.registry = registry
        self.graph = create_turn_graph(nodes)
        self.completion_graph = create_turn_graph(nodes, include_model_call=False)

    def build_messages(self, history: tuple[Message, ...]) -> list[LLMMessage]:
        """Provider input for a thread whose history already ends with the new user message."""
        return to_provider_messages(get_system_prompt(self.registry), history)

    async def _invoke(self, graph, state: TurnState) -> TurnState:
        config = {
            "configurable": {"thread_id": state.thread_id},
            "recursion_limit": 10,
        }
        result = await graph.ainvoke(state.model_dump(), config)
        return TurnState.model_validate(result)

    async def run_turn(self, thread_id: str, user_text: str, history: tuple[Message, ...]) -> TurnState:
        """Run a full turn: model call, extraction, execution, composition.

        Args:
            thread_id: Conversation thread
            user_text: The user's message, already the last entry of ``history``
            history: Thread messages in order

        Returns:
            The final turn state, in the composed phase
        """
        logger.info(f"Running turn for thread {thread_id}")
        state = TurnState(
            thread_id=thread_id,
            user_text=user_text,
            messages=self.build_messages(history),
            phase=TurnPhase.IDLE,
        )
        return await self._invoke(self.graph, state)

    async def complete_turn(self, thread_id: str, user_text: str, model_text: str) -> TurnState:
        """Finish a turn whose model reply was obtained outside the graph."""
        state = TurnState(
            thread_id=thread_id,
            user_text=user_text,
            messages=[],
            phase=TurnPhase.AWAITING_MODEL,
            model_text=model_text,
        )
        return await self._invoke(self.completion_graph, state)
