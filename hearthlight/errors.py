"""Error taxonomy for the assistant."""


class HearthlightError(Exception):
    """Base class for all assistant errors."""


class ProviderError(HearthlightError):
    """A model provider request failed (transport, timeout, status or response shape)."""

    def __init__(self, message: str, provider_id: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.provider_id = provider_id
        self.status_code = status_code


class ToolError(HearthlightError):
    """Base class for failures while resolving or running a tool call."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(message)
        self.tool_name = tool_name


class ToolNotFoundError(ToolError):
    """The model asked for a tool that is not registered."""

    def __init__(self, tool_name: str):
        super().__init__(tool_name, f"Unknown tool: {tool_name}")


class ArgumentValidationError(ToolError):
    """Tool arguments failed to parse or validate."""


class ToolExecutionError(ToolError):
    """A tool handler raised while executing."""


class PersistenceError(HearthlightError):
    """Reading or writing the local store failed."""


class MessageTooLongError(ValueError):
    """User message exceeds the configured token limit."""


class ProviderNotFoundError(HearthlightError, LookupError):
    """No configured provider has the requested id."""
