"""Tests for provider configuration and selection."""

import pytest
from helpers import make_provider

from hearthlight.errors import ProviderNotFoundError
from hearthlight.models.llm import Provider, ProviderType
from hearthlight.services.model_selection import ModelSelectionService
from hearthlight.services.storage import SETTINGS

OPENAI = make_provider("openai")
ANTHROPIC = make_provider("anthropic", ProviderType.ANTHROPIC)
GOOGLE = make_provider("google", ProviderType.GOOGLE)


class TestModelSelectionService:
    """Tests for loading, selecting and routing providers."""

    @pytest.mark.asyncio
    async def test_load_seeds_providers(self, store):
        models = ModelSelectionService(store, [OPENAI, ANTHROPIC])

        await models.load()

        assert [p.id for p in models.providers] == ["openai", "anthropic"]
        assert models.selected.id == "openai"
        stored = await store.read(SETTINGS)
        assert [p["id"] for p in stored["ai"]["providers"]] == ["openai", "anthropic"]

    @pytest.mark.asyncio
    async def test_load_keeps_stored_selection(self, store):
        """A selection made earlier survives a restart."""
        first = ModelSelectionService(store, [OPENAI, ANTHROPIC])
        await first.load()
        await first.select("anthropic")

        second = ModelSelectionService(store, [OPENAI, ANTHROPIC])
        await second.load()

        assert second.selected.id == "anthropic"

    @pytest.mark.asyncio
    async def test_configured_active_provider_by_type(self, store):
        gemini = make_provider("gemini-main", ProviderType.GOOGLE)
        models = ModelSelectionService(store, [OPENAI, gemini], active_provider="google")

        await models.load()

        assert models.selected.id == "gemini-main"

    @pytest.mark.asyncio
    async def test_seed_replaces_stored_copy(self, store):
        """Configuration wins over the stored copy of the same provider, e.g. a rotated key."""
        await ModelSelectionService(store, [OPENAI]).load()

        rotated = make_provider("openai", api_key="new-key")
        models = ModelSelectionService(store, [rotated])
        await models.load()

        assert models.get("openai").api_key == "new-key"

    @pytest.mark.asyncio
    async def test_select_unknown(self, store):
        models = ModelSelectionService(store, [OPENAI])
        await models.load()

        with pytest.raises(ProviderNotFoundError, match="Unknown provider: mistral"):
            await models.select("mistral")

    @pytest.mark.asyncio
    async def test_add_update_remove(self, store):
        models = ModelSelectionService(store, [OPENAI])
        await models.load()

        await models.add_provider(ANTHROPIC)
        await models.update_provider(make_provider("anthropic", ProviderType.ANTHROPIC, model="claude-new"))
        await models.select("anthropic")
        await models.remove_provider("anthropic")

        assert [p.id for p in models.providers] == ["openai"]
        assert models.selected.id == "openai"
        assert (await store.read(SETTINGS))["ai"]["active_provider"] == "openai"

    @pytest.mark.asyncio
    async def test_route(self, store):
        """Primary is the selection; the fallback is the first other enabled provider."""
        disabled = make_provider("google", ProviderType.GOOGLE, enabled=False)
        models = ModelSelectionService(store, [OPENAI, disabled, ANTHROPIC], active_provider="openai")
        await models.load()

        route = models.route()

        assert route.primary.id == "openai"
        assert route.fallback.id == "anthropic"

    @pytest.mark.asyncio
    async def test_route_without_providers(self, store):
        models = ModelSelectionService(store)
        await models.load()

        route = models.route()

        assert route.primary is None
        assert route.fallback is None


class TestProviderModel:
    """Tests for the Provider model."""

    def test_legacy_type_names(self):
        """Older settings name providers "claude" and "gemini"."""
        claude = Provider(name="Claude", type="claude", api_key="k", model="m")
        gemini = Provider(name="Gemini", type="Gemini", api_key="k", model="m")

        assert claude.type == ProviderType.ANTHROPIC
        assert gemini.type == ProviderType.GOOGLE
        assert claude.id.startswith("provider-")

    def test_public_dict_hides_key(self):
        assert "api_key" not in OPENAI.public_dict()
        assert OPENAI.public_dict()["type"] == "openai"
