"""Explicit wiring of the application's services."""

from dataclasses import dataclass

import httpx

from hearthlight.clients.providers import ProviderClient, ProviderConfig
from hearthlight.graphs.conversation import TurnGraphManager
from hearthlight.graphs.nodes import TurnNodes
from hearthlight.services.activity import ActivityTracker
from hearthlight.services.agent import AgentService
from hearthlight.services.conversation_store import ConversationStore
from hearthlight.services.extraction import ToolCallExtractor, TriggerPhraseStrategy, build_strategies
from hearthlight.services.llm import LLMService
from hearthlight.services.model_selection import ModelSelectionService
from hearthlight.services.storage import JsonFilePersistenceStore, PersistenceStore
from hearthlight.settings import Settings
from hearthlight.tools.base import ToolContext
from hearthlight.tools.registry import ToolsRegistry
from hearthlight.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class AppContext:
    """Every long-lived service of one running app, built once and passed by reference."""

    settings: Settings
    store: PersistenceStore
    activity: ActivityTracker
    models: ModelSelectionService
    client: ProviderClient
    llm: LLMService
    registry: ToolsRegistry
    extractor: ToolCallExtractor
    conversations: ConversationStore
    agent: AgentService

    async def startup(self) -> None:
        await self.models.load()

    async def shutdown(self) -> None:
        await self.client.aclose()


def build_context(
    settings: Settings,
    store: PersistenceStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AppContext:
    """Wire the services together.

    Args:
        settings: Runtime configuration
        store: Persistence store; defaults to JSON files under ``settings.data_dir``
        transport: Optional httpx transport for provider requests

    Returns:
        The application context; call ``startup()`` before serving requests
    """
    store = store or JsonFilePersistenceStore(settings.data_dir)
    activity = ActivityTracker(store)
    models = ModelSelectionService(store, settings.providers, settings.active_provider)

    client = ProviderClient(
        ProviderConfig(
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            timeout=settings.provider_timeout,
            max_message_tokens=settings.max_message_tokens,
            tokenizer_encoding=settings.tokenizer_encoding,
        ),
        transport=transport,
    )
    llm = LLMService(client, models)

    registry = ToolsRegistry(ToolContext(store=store, activity=activity))
    extractor = ToolCallExtractor(
        registry,
        strategies=build_strategies(settings.extraction_strategies),
        fallback=TriggerPhraseStrategy() if settings.trigger_fallback else None,
    )

    conversations = ConversationStore(store)
    graph = TurnGraphManager(TurnNodes(llm, extractor), registry)
    agent = AgentService(conversations, graph, llm, client, activity)

    logger.info(
        f"Built app context: {len(registry.get_tool_names())} tools, "
        f"strategies {settings.extraction_strategies}, trigger fallback {settings.trigger_fallback}"
    )
    return AppContext(
        settings=settings,
        store=store,
        activity=activity,
        models=models,
        client=client,
        llm=llm,
        registry=registry,
        extractor=extractor,
        conversations=conversations,
        agent=agent,
    )
