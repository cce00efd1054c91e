"""Configured providers and the active selection, persisted in the settings document."""

from typing import Any

from hearthlight.errors import ProviderNotFoundError
from hearthlight.models.llm import AISettings, Provider, ProviderRoute
from hearthlight.services.storage import SETTINGS, PersistenceStore
from hearthlight.utils.logging import get_logger

logger = get_logger(__name__)


class ModelSelectionService:
    """Tracks which providers exist and which one answers by default."""

    def __init__(
        self,
        store: PersistenceStore,
        seed_providers: list[Provider] | None = None,
        active_provider: str | None = None,
    ):
        """Initialize the service.

        Args:
            store: Persistence store holding the settings document
            seed_providers: Providers from configuration, merged into storage on ``load``
            active_provider: Provider id (or type name) to select on ``load`` when configured
        """
        self.store = store
        self.seed_providers = seed_providers or []
        self.seed_active = active_provider
        self._settings = AISettings(providers=list(self.seed_providers))

    async def load(self) -> AISettings:
        """Merge configured providers into the stored settings and pick the active one."""
        seeds = {provider.id: provider for provider in self.seed_providers}

        def merge(settings: dict[str, Any]) -> dict[str, Any]:
            ai = AISettings.model_validate(settings.get("ai", {}))
            stored_ids = {provider.id for provider in ai.providers}
            providers = [seeds.get(provider.id, provider) for provider in ai.providers]
            providers += [provider for provider_id, provider in seeds.items() if provider_id not in stored_ids]

            active = ai.active_provider
            if self.seed_active:
                active = self._match(providers, self.seed_active) or active

            merged = AISettings(providers=providers, active_provider=active)
            return {**settings, "ai": merged.model_dump(mode="json")}

        updated = await self.store.update(SETTINGS, merge, {})
        self._settings = AISettings.model_validate(updated["ai"])
        logger.info(
            f"Loaded {len(self._settings.providers)} providers, active: {self._settings.active_provider or 'none'}"
        )
        return self._settings

    @staticmethod
    def _match(providers: list[Provider], key: str) -> str | None:
        for provider in providers:
            if key in (provider.id, provider.type.value, provider.name):
                return provider.id
        return None

    async def _persist(self) -> None:
        dumped = self._settings.model_dump(mode="json")
        await self.store.update(SETTINGS, lambda settings: {**settings, "ai": dumped}, {})

    @property
    def providers(self) -> list[Provider]:
        return list(self._settings.providers)

    @property
    def selected(self) -> Provider | None:
        """The active provider, or the first configured one when none is active."""
        providers = self._settings.providers
        for provider in providers:
            if provider.id == self._settings.active_provider:
                return provider
        return providers[0] if providers else None

    def get(self, provider_id: str) -> Provider:
        for provider in self._settings.providers:
            if provider.id == provider_id:
                return provider
        raise ProviderNotFoundError(f"Unknown provider: {provider_id}")

    async def select(self, provider_id: str) -> Provider:
        provider = self.get(provider_id)
        self._settings.active_provider = provider.id
        await self._persist()
        logger.info(f"Selected provider {provider.name}")
        return provider

    async def add_provider(self, provider: Provider) -> None:
        if any(existing.id == provider.id for existing in self._settings.providers):
            return
        self._settings.providers.append(provider)
        await self._persist()

    async def update_provider(self, provider: Provider) -> None:
        self.get(provider.id)
        self._settings.providers = [provider if p.id == provider.id else p for p in self._settings.providers]
        await self._persist()

    async def remove_provider(self, provider_id: str) -> None:
        self.get(provider_id)
        self._settings.providers = [p for p in self._settings.providers if p.id != provider_id]
        if self._settings.active_provider == provider_id:
            remaining = self._settings.providers
            self._settings.active_provider = remaining[0].id if remaining else None
        await self._persist()

    def route(self) -> ProviderRoute:
        """Primary is the selected enabled provider; fallback is the first other enabled one."""
        enabled = [provider for provider in self._settings.providers if provider.enabled]
        selected = self.selected
        primary = selected if selected is not None and selected.enabled else (enabled[0] if enabled else None)
        if primary is None:
            return ProviderRoute(None)
        fallback = next((provider for provider in enabled if provider.id != primary.id), None)
        return ProviderRoute(primary, fallback)
