"""Tools for the productivity assistant."""

from hearthlight.tools.base import ToolContext, ToolDefinition, ToolResult
from hearthlight.tools.registry import ToolsRegistry

__all__ = ["ToolContext", "ToolDefinition", "ToolResult", "ToolsRegistry"]
