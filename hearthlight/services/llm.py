"""LLM service: provider routing with a single fallback hop."""

from collections.abc import Awaitable, Callable
from typing import TypeVar

from hearthlight.clients.providers import ProviderClient, ProviderStream
from hearthlight.errors import ProviderError
from hearthlight.models.llm import LLMMessage, Provider, ProviderRoute
from hearthlight.services.model_selection import ModelSelectionService
from hearthlight.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class LLMService:
    """Sends provider-agnostic conversations to the selected provider.

    When the primary provider fails, the same request is tried exactly once against the
    fallback provider. There is no retry loop beyond that single hop.
    """

    def __init__(self, client: ProviderClient, models: ModelSelectionService):
        self.client = client
        self.models = models

    def _resolve(self, primary: Provider | None, fallback: Provider | None) -> ProviderRoute:
        route = ProviderRoute(primary, fallback) if primary else self.models.route()
        if route.primary is None:
            raise ProviderError("No AI provider is configured. Add an API key in settings.")
        if route.fallback is not None and route.fallback.id == route.primary.id:
            return ProviderRoute(route.primary)
        return route

    async def _with_fallback(
        self,
        route: ProviderRoute,
        call: Callable[[Provider], Awaitable[T]],
    ) -> T:
        try:
            return await call(route.primary)
        except ProviderError as primary_error:
            if route.fallback is None:
                raise
            logger.warning(f"{route.primary.name} failed ({primary_error}), falling back to {route.fallback.name}")

            try:
                result = await call(route.fallback)
            except ProviderError as fallback_error:
                raise ProviderError(
                    f"{route.primary.name} failed: {primary_error}; "
                    f"fallback {route.fallback.name} failed: {fallback_error}",
                    route.fallback.id,
                    fallback_error.status_code,
                ) from fallback_error

            logger.info(f"Fallback provider {route.fallback.name} answered")
            return result

    async def send(
        self,
        messages: list[LLMMessage],
        primary: Provider | None = None,
        fallback: Provider | None = None,
    ) -> str:
        """Get a reply from the primary provider, or from the fallback if the primary fails.

        Args:
            messages: Ordered conversation, system prompt first
            primary: Provider to try first; defaults to the selected provider
            fallback: Provider to try once if the primary fails; defaults to the derived fallback
                when no primary is given

        Returns:
            Reply text

        Raises:
            ProviderError: If no provider is configured or every attempted provider failed
        """
        route = self._resolve(primary, fallback)
        return await self._with_fallback(route, lambda provider: self.client.complete(messages, provider))

    async def open_stream(
        self,
        messages: list[LLMMessage],
        primary: Provider | None = None,
        fallback: Provider | None = None,
    ) -> ProviderStream:
        """Open a streaming reply; fallback applies only while opening the stream."""
        route = self._resolve(primary, fallback)
        return await self._with_fallback(route, lambda provider: self.client.open_stream(messages, provider))
