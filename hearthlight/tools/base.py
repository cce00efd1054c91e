"""Base types and definitions for tools."""

import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Literal

from pydantic import BaseModel

from hearthlight.errors import PersistenceError
from hearthlight.models.messages import utc_now
from hearthlight.services.activity import ActivityTracker
from hearthlight.services.storage import PersistenceStore
from hearthlight.utils.logging import get_logger

logger = get_logger(__name__)

Period = Literal["day", "week", "month"]


@dataclass
class ToolContext:
    """What a tool handler may touch: the store, the activity log and the clock."""

    store: PersistenceStore
    activity: ActivityTracker
    clock: Callable[[], datetime] = field(default=utc_now)

    def now(self) -> datetime:
        return self.clock()


ToolHandler = Callable[[BaseModel, ToolContext], Awaitable[str]]


@dataclass
class ToolDefinition:
    """Definition of a tool available to the AI assistant."""

    name: str
    description: str
    input_schema_class: type[BaseModel]
    handler: ToolHandler

    def get_json_schema(self) -> dict[str, Any]:
        """Get JSON schema for this tool's input."""
        return self.input_schema_class.model_json_schema()

    def parse_input(self, raw_input: dict[str, Any]) -> BaseModel:
        """Parse and validate tool input."""
        return self.input_schema_class.model_validate(raw_input)

    def signature(self) -> str:
        """One-line argument summary used in the system prompt."""
        properties = self.get_json_schema().get("properties", {})
        if not properties:
            return f"{self.name}(arguments: {{}})"
        return f"{self.name}(arguments: {json.dumps(_describe_properties(properties))})"


def _describe_properties(properties: dict[str, Any]) -> dict[str, str]:
    described = {}
    for name, schema in properties.items():
        options = schema.get("enum")
        if options is None and "anyOf" in schema:
            options = next((item["enum"] for item in schema["anyOf"] if "enum" in item), None)
        described[name] = " | ".join(options) if options else schema.get("type", "string")
    return described


@dataclass
class ToolResult:
    """Outcome of invoking a tool: the text to show and whether it failed."""

    content: str
    is_error: bool = False


def dump_json(payload: Any) -> str:
    """Serialize a tool payload the way results are shown to the model and the user."""
    return json.dumps(payload, indent=2, default=str)


async def record_activity(context: ToolContext, type: str, title: str, **metadata: Any) -> None:
    """Log an activity for a tool; a failed write is logged and never fails the tool."""
    try:
        await context.activity.record(type, title, metadata=metadata or None)
    except PersistenceError as e:
        logger.warning(f"Could not record {type} activity: {e}")


ROLLING_DAYS: dict[str, int] = {"day": 1, "week": 7, "month": 30}


def rolling_window_start(period: Period, now: datetime) -> datetime:
    """Start of a rolling window ending at ``now`` (1, 7 or 30 days)."""
    return now - timedelta(days=ROLLING_DAYS[period])


def calendar_window_start(period: Period, now: datetime) -> datetime:
    """Start of today, the last seven days, or the first of the current month."""
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "day":
        return midnight
    if period == "month":
        return midnight.replace(day=1)
    return now - timedelta(days=7)


def percent(part: int, whole: int) -> int:
    return round(part / whole * 100) if whole else 0
