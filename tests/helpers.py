"""Builders and fakes shared by the test modules."""

import json
from collections.abc import Callable
from datetime import UTC, datetime

import httpx

from hearthlight.context import AppContext, build_context
from hearthlight.models.llm import Provider, ProviderType
from hearthlight.services.storage import InMemoryPersistenceStore, PersistenceStore
from hearthlight.settings import Settings

# A Wednesday afternoon, so "today", "this week" and "this month" windows all differ.
FIXED_NOW = datetime(2026, 3, 18, 15, 30, tzinfo=UTC)


def make_provider(provider_id: str = "openai", type: ProviderType = ProviderType.OPENAI, **overrides) -> Provider:
    fields = {
        "id": provider_id,
        "name": provider_id.title(),
        "type": type,
        "api_key": f"{provider_id}-key",
        "model": "test-model",
    }
    fields.update(overrides)
    return Provider(**fields)


def openai_reply(text: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


class ScriptedTransport:
    """httpx transport handler that answers provider requests from a script.

    Each script entry is either reply text (served as an OpenAI-style body), an
    ``httpx.Response`` or an exception to raise. Requests are recorded in order.
    """

    def __init__(self, *script: str | httpx.Response | Exception):
        self.script = list(script)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.script:
            raise AssertionError(f"Unexpected provider request to {request.url}")

        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        if isinstance(step, httpx.Response):
            return step
        return httpx.Response(200, json=openai_reply(step))

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def bodies(self) -> list[dict]:
        return [json.loads(request.content) for request in self.requests]

    def hosts(self) -> list[str]:
        return [request.url.host for request in self.requests]


def settings_for_tests(**overrides) -> Settings:
    """Settings with one OpenAI provider and length-based token estimates."""
    fields = {
        "providers": [make_provider("openai")],
        "tokenizer_encoding": None,
    }
    fields.update(overrides)
    return Settings(**fields)


def build_test_context(
    handler: Callable[[httpx.Request], httpx.Response],
    store: PersistenceStore | None = None,
    **settings,
) -> AppContext:
    """App context whose provider traffic goes to ``handler`` and whose tools see FIXED_NOW."""
    context = build_context(
        settings_for_tests(**settings),
        store=store or InMemoryPersistenceStore(),
        transport=httpx.MockTransport(handler),
    )
    context.registry.context.clock = lambda: FIXED_NOW
    return context


async def make_context(
    handler: Callable[[httpx.Request], httpx.Response],
    store: PersistenceStore | None = None,
    **settings,
) -> AppContext:
    """Build and start an app context."""
    context = build_test_context(handler, store, **settings)
    await context.startup()
    return context
