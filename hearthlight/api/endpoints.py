"""API endpoints for the productivity assistant."""

from collections.abc import AsyncIterator
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from hearthlight import __version__
from hearthlight.context import AppContext
from hearthlight.errors import MessageTooLongError, PersistenceError, ProviderNotFoundError
from hearthlight.models.conversation import (
    ConversationRequest,
    ConversationResponse,
    HealthResponse,
    HistoryResponse,
    ProvidersResponse,
    SelectProviderRequest,
    ToolInfo,
)
from hearthlight.services.conversation_store import ConversationSummary
from hearthlight.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def get_context(request: Request) -> AppContext:
    return request.app.state.context


@router.post("/conversation", response_model=ConversationResponse, tags=["Conversation"])
async def handle_conversation(
    request: ConversationRequest, context: AppContext = Depends(get_context)
) -> ConversationResponse:
    """Send a message on a thread and return the user message with the assistant's reply."""
    logger.info(f"Processing message for thread {request.thread_id}: {request.message[:50]}...")
    try:
        messages = await context.agent.send_message(request.message, request.thread_id)
    except MessageTooLongError as e:
        logger.warning(f"Message validation error for thread {request.thread_id}: {e}")
        raise HTTPException(status_code=400, detail=str(e)) from e

    logger.info(f"Generated response for thread {request.thread_id}: {messages[-1].content[:50]}...")
    return ConversationResponse(thread_id=request.thread_id, messages=messages)


@router.post("/conversation/stream", tags=["Conversation"])
async def stream_conversation(
    request: ConversationRequest, context: AppContext = Depends(get_context)
) -> StreamingResponse:
    """Stream the reply as newline-delimited JSON: ``delta`` events, then one ``message`` event."""
    try:
        context.agent.validate_message(request.message)
    except MessageTooLongError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    async def events() -> AsyncIterator[str]:
        async for event in context.agent.stream_message(request.message, request.thread_id):
            yield event.model_dump_json(exclude_none=True) + "\n"

    return StreamingResponse(events(), media_type="application/x-ndjson")


@router.get("/conversations", response_model=list[ConversationSummary], tags=["Conversation"])
async def list_conversations(context: AppContext = Depends(get_context)) -> list[ConversationSummary]:
    return await context.agent.list_conversations()


@router.get("/conversations/{thread_id}", response_model=HistoryResponse, tags=["Conversation"])
async def get_conversation(thread_id: str, context: AppContext = Depends(get_context)) -> HistoryResponse:
    return HistoryResponse(thread_id=thread_id, messages=await context.agent.get_history(thread_id))


@router.delete("/conversations/{thread_id}", status_code=204, tags=["Conversation"])
async def clear_conversation(thread_id: str, context: AppContext = Depends(get_context)) -> None:
    try:
        await context.agent.clear_conversation(thread_id)
    except PersistenceError as e:
        logger.error(f"Failed to clear thread {thread_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to clear conversation") from e


@router.get("/tools", response_model=list[ToolInfo], tags=["Tools"])
async def list_tools(context: AppContext = Depends(get_context)) -> list[ToolInfo]:
    return [
        ToolInfo(name=tool.name, description=tool.description, input_schema=tool.get_json_schema())
        for tool in context.registry.get_tools()
    ]


@router.get("/providers", response_model=ProvidersResponse, tags=["Providers"])
async def list_providers(context: AppContext = Depends(get_context)) -> ProvidersResponse:
    """Configured providers without their API keys."""
    selected = context.models.selected
    return ProvidersResponse(
        providers=[provider.public_dict() for provider in context.models.providers],
        active_provider=selected.id if selected else None,
    )


@router.put("/providers/active", response_model=ProvidersResponse, tags=["Providers"])
async def select_provider(
    request: SelectProviderRequest, context: AppContext = Depends(get_context)
) -> ProvidersResponse:
    try:
        await context.models.select(request.provider_id)
    except ProviderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return await list_providers(context)


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
    )
