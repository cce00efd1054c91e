"""Request and response models for the HTTP API."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from hearthlight.models.messages import Message


class ConversationRequest(BaseModel):
    """Request model for the conversation endpoints."""

    message: str
    thread_id: str = Field(default="default", min_length=1, max_length=200)


class ConversationResponse(BaseModel):
    """The user message and the assistant reply produced for it."""

    thread_id: str
    messages: list[Message]


class HistoryResponse(BaseModel):
    thread_id: str
    messages: list[Message]


class StreamEvent(BaseModel):
    """One line of the streaming conversation response."""

    type: Literal["delta", "message"]
    text: str | None = None
    message: Message | None = None


class ToolInfo(BaseModel):
    name: str
    description: str
    input_schema: dict[str, Any]


class ProvidersResponse(BaseModel):
    providers: list[dict[str, Any]]
    active_provider: str | None


class SelectProviderRequest(BaseModel):
    provider_id: str


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str
