"""Tools registry for managing AI assistant tools."""

from typing import Any

from pydantic import BaseModel, ValidationError

from hearthlight.errors import ArgumentValidationError, ToolError, ToolExecutionError, ToolNotFoundError
from hearthlight.tools.base import ToolContext, ToolDefinition, ToolResult
from hearthlight.tools.diary import create_diary_entry_tool
from hearthlight.tools.goals import create_goal_tool
from hearthlight.tools.insights import (
    create_diary_insights_tool,
    create_goal_progress_tool,
    create_user_activities_tool,
)
from hearthlight.tools.productivity import create_analyze_productivity_tool, create_task_history_tool
from hearthlight.tools.status import create_app_status_tool
from hearthlight.tools.tasks import create_task_tool
from hearthlight.utils.logging import get_logger

logger = get_logger(__name__)


def _summarize_validation_error(error: ValidationError) -> str:
    parts = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "arguments"
        parts.append(f"{location}: {detail['msg']}")
    return "; ".join(parts)


class ToolsRegistry:
    """Registry for the fixed set of tools the assistant may call.

    The registry resolves names, validates arguments and runs handlers; it holds no
    domain state of its own. Handlers reach the store through the shared ``ToolContext``.
    """

    def __init__(self, context: ToolContext, tools: list[ToolDefinition] | None = None):
        """Initialize the registry.

        Args:
            context: Store, activity tracker and clock handed to every handler
            tools: Tools to register instead of the default set
        """
        self.context = context
        self._tools: dict[str, ToolDefinition] = {}

        if tools is None:
            self._register_default_tools()
        else:
            for tool in tools:
                self.register_tool(tool)

    def _register_default_tools(self) -> None:
        """Register the productivity tools."""
        tools = [
            create_task_tool(),
            create_diary_entry_tool(),
            create_goal_tool(),
            create_app_status_tool(),
            create_analyze_productivity_tool(),
            create_user_activities_tool(),
            create_task_history_tool(),
            create_diary_insights_tool(),
            create_goal_progress_tool(),
        ]

        for tool in tools:
            self.register_tool(tool)

    def register_tool(self, tool: ToolDefinition) -> None:
        """Register a new tool; names must be unique."""
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def lookup(self, name: str) -> ToolDefinition:
        """Resolve a tool by name.

        Raises:
            ToolNotFoundError: If no tool has this name
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    def validate(self, tool: ToolDefinition, args: dict[str, Any]) -> BaseModel:
        """Check arguments against the tool's input schema.

        Raises:
            ArgumentValidationError: On missing fields, bad enum values or wrong types
        """
        try:
            return tool.parse_input(args)
        except ValidationError as e:
            raise ArgumentValidationError(
                tool.name, f"Invalid arguments for {tool.name}: {_summarize_validation_error(e)}"
            ) from e

    async def execute(self, tool: ToolDefinition, params: BaseModel) -> ToolResult:
        """Run a tool handler with validated arguments.

        Raises:
            ToolExecutionError: If the handler raised
        """
        try:
            content = await tool.handler(params, self.context)
        except Exception as e:
            logger.error(f"Tool {tool.name} failed: {e}", exc_info=True)
            raise ToolExecutionError(tool.name, f"Failed to execute {tool.name}: {e}") from e
        return ToolResult(content=content)

    async def invoke(self, name: str, args: dict[str, Any]) -> ToolResult:
        """Look up, validate and execute a tool, turning any tool error into a failure result."""
        try:
            tool = self.lookup(name)
            params = self.validate(tool, args)
            result = await self.execute(tool, params)
        except ToolError as e:
            logger.warning(f"Tool call {name} failed: {e}")
            return ToolResult(content=str(e), is_error=True)

        logger.info(f"Tool {name} executed")
        return result

    def get_tool_names(self) -> list[str]:
        """Get list of all registered tool names."""
        return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools

    def get_tools(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def describe_tools(self) -> str:
        """Bullet list of tool signatures for the system prompt."""
        return "\n".join(f"- {tool.signature()} - {tool.description}" for tool in self._tools.values())
