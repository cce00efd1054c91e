"""Tool-call extraction from free-form model output.

Providers here are plain chat endpoints without native tool calling, so the model is
asked to embed calls in its reply. Each :class:`ExtractionStrategy` recognizes one way
of doing that. The extractor tries its strategies in order, runs whatever calls the
winning strategy found, and splices the outcomes back into the text the user sees.
"""

import json
import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

from pydantic import BaseModel, Field

from hearthlight.models.messages import ToolCall
from hearthlight.tools.registry import ToolsRegistry
from hearthlight.utils.ids import new_id
from hearthlight.utils.logging import get_logger

logger = get_logger(__name__)

SUCCESS_MARK = "✅"
FAILURE_MARK = "❌"
UNNAMED_TOOL = "unknown"


class CallSource(StrEnum):
    TAGGED = "tagged"
    JSON = "json"
    TRIGGER = "trigger"


class PendingCall(BaseModel):
    """A recognized call that has not run yet.

    ``error`` is set when the call could not be parsed; such calls are never executed.
    """

    id: str = Field(default_factory=lambda: new_id("call"))
    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    source: CallSource
    error: str | None = None


class ParsedResponse(BaseModel):
    """Model text split into literal text and the calls embedded in it, in source order."""

    segments: list[PendingCall | str] = Field(default_factory=list)

    @property
    def calls(self) -> list[PendingCall]:
        return [segment for segment in self.segments if isinstance(segment, PendingCall)]


@dataclass
class ExtractionResult:
    display_text: str
    tool_calls: list[ToolCall]


class ExtractionStrategy(Protocol):
    """One way of recognizing tool calls."""

    name: str

    def parse(self, model_text: str, user_text: str) -> ParsedResponse | None:
        """Return the split response, or None when this strategy found nothing."""
        ...


class TaggedBlockStrategy:
    """``<tool_use><name>X</name><arguments>{json}</arguments></tool_use>`` blocks."""

    name = "tagged"

    BLOCK_PATTERN = re.compile(r"<tool_use>(.*?)</tool_use>", re.DOTALL)
    NAME_PATTERN = re.compile(r"<name>(.*?)</name>", re.DOTALL)
    ARGUMENTS_PATTERN = re.compile(r"<arguments>(.*?)</arguments>", re.DOTALL)

    def parse(self, model_text: str, user_text: str) -> ParsedResponse | None:
        segments: list[PendingCall | str] = []
        cursor = 0
        for match in self.BLOCK_PATTERN.finditer(model_text):
            segments.append(model_text[cursor : match.start()])
            segments.append(self._parse_block(match.group(1)))
            cursor = match.end()

        if not segments:
            return None
        segments.append(model_text[cursor:])
        return ParsedResponse(segments=[segment for segment in segments if segment != ""])

    def _parse_block(self, block: str) -> PendingCall:
        name_match = self.NAME_PATTERN.search(block)
        name = name_match.group(1).strip() if name_match else ""
        if not name:
            logger.warning("Tool call block without a tool name")
            return PendingCall(
                name=UNNAMED_TOOL,
                source=CallSource.TAGGED,
                error="Malformed tool call: missing tool name",
            )

        arguments_match = self.ARGUMENTS_PATTERN.search(block)
        raw_arguments = arguments_match.group(1).strip() if arguments_match else ""
        if not raw_arguments:
            return PendingCall(name=name, source=CallSource.TAGGED)

        try:
            args = json.loads(raw_arguments)
        except json.JSONDecodeError as e:
            logger.warning(f"Unparseable arguments for {name}: {e}")
            return PendingCall(
                name=name,
                source=CallSource.TAGGED,
                error=f"Failed to parse arguments for {name}: {e.msg}",
            )

        if not isinstance(args, dict):
            return PendingCall(
                name=name,
                source=CallSource.TAGGED,
                error=f"Failed to parse arguments for {name}: expected a JSON object",
            )
        return PendingCall(name=name, args=args, source=CallSource.TAGGED)


class JsonToolCallStrategy:
    """A ``{"tool_call": {"name": ..., "args": {...}}, "message": ...}`` object in the reply."""

    name = "json"

    OBJECT_PATTERN = re.compile(r"\{.*\"tool_call\".*\}", re.DOTALL)

    def parse(self, model_text: str, user_text: str) -> ParsedResponse | None:
        match = self.OBJECT_PATTERN.search(model_text)
        if not match:
            return None

        try:
            payload = json.loads(match.group(0))
        except json.JSONDecodeError:
            logger.debug("Reply mentions tool_call but is not valid JSON")
            return None

        call = payload.get("tool_call") if isinstance(payload, dict) else None
        if not isinstance(call, dict) or not isinstance(call.get("name"), str):
            return None

        args = call.get("args") or {}
        pending = PendingCall(name=call["name"], source=CallSource.JSON)
        if isinstance(args, dict):
            pending.args = args
        else:
            pending.error = f"Failed to parse arguments for {pending.name}: expected a JSON object"

        message = payload.get("message")
        prefix = model_text[: match.start()].strip()
        lead = "\n\n".join(part for part in (prefix, message if isinstance(message, str) else "") if part)
        return ParsedResponse(segments=[lead, "\n\n", pending] if lead else [pending])


@dataclass(frozen=True)
class TriggerRule:
    pattern: re.Pattern[str]
    tool: str


def _first_words(text: str, count: int = 5) -> str:
    return " ".join(text.split()[:count])


PRIORITY_SUFFIX = re.compile(r"[\s,]+(?:with\s+|at\s+|as\s+)?(?:a\s+)?(?:high|medium|low)\s+priority.*$", re.IGNORECASE)


def _quoted_or_named(text: str, nouns: str, fallback: str | None) -> str:
    named = re.search(rf"(?:{nouns})\s+(?:called|named|titled|about)\s+\"?([^\".!?\n]+)", text, re.IGNORECASE)
    labelled = named or re.search(rf"(?:{nouns})\s*[:\"]\s*([^\".!?\n]+)", text, re.IGNORECASE)
    if labelled:
        title = PRIORITY_SUFFIX.sub("", labelled.group(1)).strip()
        if title:
            return title
    return fallback if fallback is not None else _first_words(text)


def _priority(text: str) -> str:
    match = re.search(r"\b(high|medium|low)\s+priority\b", text, re.IGNORECASE)
    return match.group(1).lower() if match else "medium"


def _period(text: str) -> str:
    match = re.search(r"\b(day|week|month)\b", text, re.IGNORECASE)
    return match.group(1).lower() if match else "week"


class TriggerPhraseStrategy:
    """Infers a single call from the user's own message when the reply contained none."""

    name = "trigger"

    RULES = (
        TriggerRule(
            re.compile(r"\b(?:create|add|make)\s+(?:a\s+|an\s+)?(?:new\s+)?(?:task|todo)", re.IGNORECASE),
            "createTask",
        ),
        TriggerRule(
            re.compile(r"\b(?:write|create|add)\s+(?:a\s+|an\s+)?(?:new\s+)?diary\s+entry", re.IGNORECASE),
            "createDiaryEntry",
        ),
        TriggerRule(
            re.compile(r"\b(?:create|set|add)\s+(?:a\s+|an\s+)?(?:new\s+)?goal", re.IGNORECASE),
            "createGoal",
        ),
        TriggerRule(
            re.compile(r"\b(?:show|get|check)\s+(?:my\s+)?(?:app\s+)?status", re.IGNORECASE),
            "getAppStatus",
        ),
        TriggerRule(
            re.compile(r"\b(?:analyze|analyse|check)\s+(?:my\s+)?productivity", re.IGNORECASE),
            "analyzeProductivity",
        ),
    )

    def infer_args(self, tool: str, text: str) -> dict[str, Any]:
        if tool == "createTask":
            return {
                "title": _quoted_or_named(text, "task|todo", None),
                "description": text,
                "priority": _priority(text),
                "quadrant": "not-urgent-important",
            }
        if tool == "createDiaryEntry":
            return {
                "title": _quoted_or_named(text, "entry|diary", "Daily Reflection"),
                "content": text,
                "mood": "neutral",
                "tags": [],
            }
        if tool == "createGoal":
            return {
                "title": _quoted_or_named(text, "goal|target", None),
                "description": text,
                "category": "personal",
                "type": "monthly",
                "priority": _priority(text),
            }
        if tool == "analyzeProductivity":
            return {"period": _period(text)}
        return {}

    def parse(self, model_text: str, user_text: str) -> ParsedResponse | None:
        for rule in self.RULES:
            if rule.pattern.search(user_text):
                call = PendingCall(
                    name=rule.tool,
                    args=self.infer_args(rule.tool, user_text),
                    source=CallSource.TRIGGER,
                )
                logger.info(f"No tool call in reply; inferred {rule.tool} from the user's message")
                return ParsedResponse(segments=[model_text, "\n\n", call] if model_text else [call])
        return None


STRATEGIES: dict[str, type[TaggedBlockStrategy] | type[JsonToolCallStrategy]] = {
    TaggedBlockStrategy.name: TaggedBlockStrategy,
    JsonToolCallStrategy.name: JsonToolCallStrategy,
}


def build_strategies(names: list[str]) -> list[ExtractionStrategy]:
    """Instantiate primary strategies by name, e.g. ``["tagged", "json"]``."""
    unknown = [name for name in names if name not in STRATEGIES]
    if unknown:
        raise ValueError(f"Unknown extraction strategies: {', '.join(unknown)}")
    return [STRATEGIES[name]() for name in names]


def render_outcome(call: ToolCall) -> str:
    return f"{FAILURE_MARK if call.is_error else SUCCESS_MARK} {call.result}"


class ToolCallExtractor:
    """Finds, executes and splices tool calls for one model reply."""

    def __init__(
        self,
        registry: ToolsRegistry,
        strategies: list[ExtractionStrategy] | None = None,
        fallback: ExtractionStrategy | None = None,
    ):
        """Initialize the extractor.

        Args:
            registry: Registry used to run calls
            strategies: Primary strategies, tried in order; the first that finds anything wins
            fallback: Consulted only when no primary strategy found a call
        """
        self.registry = registry
        self.strategies = strategies if strategies is not None else [TaggedBlockStrategy()]
        self.fallback = fallback

    def parse(self, model_text: str, user_text: str = "") -> ParsedResponse:
        for strategy in self.strategies:
            parsed = strategy.parse(model_text, user_text)
            if parsed is not None:
                logger.debug(f"{strategy.name} strategy found {len(parsed.calls)} calls")
                return parsed

        if self.fallback is not None:
            parsed = self.fallback.parse(model_text, user_text)
            if parsed is not None:
                return parsed

        return ParsedResponse(segments=[model_text])

    async def execute(self, parsed: ParsedResponse) -> list[ToolCall]:
        """Run calls one at a time in the order they appear in the text."""
        executed = []
        for call in parsed.calls:
            if call.error is not None:
                executed.append(ToolCall(id=call.id, name=call.name, args=call.args, result=call.error, is_error=True))
                continue

            result = await self.registry.invoke(call.name, call.args)
            executed.append(
                ToolCall(id=call.id, name=call.name, args=call.args, result=result.content, is_error=result.is_error)
            )
        return executed

    def compose(self, parsed: ParsedResponse, executed: list[ToolCall]) -> ExtractionResult:
        """Replace each call with its outcome; the result carries no call markup."""
        outcomes = {call.id: call for call in executed}
        parts = []
        for segment in parsed.segments:
            if isinstance(segment, str):
                parts.append(segment)
            else:
                parts.append(render_outcome(outcomes[segment.id]))
        return ExtractionResult(display_text="".join(parts).strip(), tool_calls=executed)

    async def extract(self, model_text: str, user_text: str = "") -> ExtractionResult:
        parsed = self.parse(model_text, user_text)
        return self.compose(parsed, await self.execute(parsed))
