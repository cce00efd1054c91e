"""Tests for the provider client and the single-hop fallback."""

import httpx
import pytest
from helpers import ScriptedTransport, make_provider

from hearthlight.clients.providers import ProviderClient, ProviderConfig
from hearthlight.errors import ProviderError
from hearthlight.models.llm import LLMMessage, ProviderType
from hearthlight.services.llm import LLMService
from hearthlight.services.model_selection import ModelSelectionService

MESSAGES = [
    LLMMessage(role="system", content="You are helpful."),
    LLMMessage(role="user", content="Add a task"),
    LLMMessage(role="assistant", content="Which one?"),
    LLMMessage(role="user", content="Buy milk"),
]

OPENAI = make_provider("openai")
ANTHROPIC = make_provider("anthropic", ProviderType.ANTHROPIC, model="claude-test")
GOOGLE = make_provider("google", ProviderType.GOOGLE, model="gemini-test")


def anthropic_reply(text: str) -> httpx.Response:
    return httpx.Response(200, json={"content": [{"type": "text", "text": text}]})


def sse(*events: str) -> httpx.Response:
    body = "".join(f"data: {event}\n\n" for event in events)
    return httpx.Response(200, content=body.encode(), headers={"content-type": "text/event-stream"})


def make_client(script: ScriptedTransport) -> ProviderClient:
    return ProviderClient(ProviderConfig(tokenizer_encoding=None), transport=script.transport)


async def make_llm(script: ScriptedTransport, store, *providers) -> LLMService:
    models = ModelSelectionService(store, list(providers))
    await models.load()
    return LLMService(make_client(script), models)


class TestProviderRequests:
    """Tests for the request shape of each provider family."""

    @pytest.mark.asyncio
    async def test_openai_request(self):
        script = ScriptedTransport("Hello!")
        client = make_client(script)

        text = await client.complete(MESSAGES, OPENAI)

        request = script.requests[0]
        body = script.bodies()[0]
        assert text == "Hello!"
        assert str(request.url) == "https://api.openai.com/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer openai-key"
        assert body["model"] == "test-model"
        assert body["messages"][0] == {"role": "system", "content": "You are helpful."}
        assert [m["role"] for m in body["messages"]] == ["system", "user", "assistant", "user"]
        assert "stream" not in body

    @pytest.mark.asyncio
    async def test_custom_base_url(self):
        script = ScriptedTransport("Hi")
        provider = make_provider("local", ProviderType.CUSTOM, base_url="http://localhost:11434/v1/")

        await make_client(script).complete(MESSAGES, provider)

        assert str(script.requests[0].url) == "http://localhost:11434/v1/chat/completions"

    @pytest.mark.asyncio
    async def test_anthropic_request(self):
        """System text is sent as a user turn and merged with the following user turn."""
        script = ScriptedTransport(anthropic_reply("Claude here"))

        text = await make_client(script).complete(MESSAGES, ANTHROPIC)

        request = script.requests[0]
        body = script.bodies()[0]
        assert text == "Claude here"
        assert str(request.url) == "https://api.anthropic.com/v1/messages"
        assert request.headers["x-api-key"] == "anthropic-key"
        assert request.headers["anthropic-version"] == "2023-06-01"
        assert body["model"] == "claude-test"
        assert [m["role"] for m in body["messages"]] == ["user", "assistant", "user"]
        assert body["messages"][0]["content"] == "You are helpful.\n\nAdd a task"

    @pytest.mark.asyncio
    async def test_google_request(self):
        script = ScriptedTransport(
            httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "Gemini here"}]}}]})
        )

        text = await make_client(script).complete(MESSAGES, GOOGLE)

        request = script.requests[0]
        body = script.bodies()[0]
        assert text == "Gemini here"
        assert request.url.path == "/v1beta/models/gemini-test:generateContent"
        assert request.url.params["key"] == "google-key"
        assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]
        assert body["generationConfig"]["maxOutputTokens"] == 1000

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        """A provider without a key fails before any request is made."""
        script = ScriptedTransport()

        with pytest.raises(ProviderError, match="no API key"):
            await make_client(script).complete(MESSAGES, make_provider("openai", api_key=""))
        assert script.requests == []


class TestProviderErrors:
    """Tests for mapping transport and response failures to ProviderError."""

    @pytest.mark.asyncio
    async def test_error_status(self):
        script = ScriptedTransport(httpx.Response(500, json={"error": {"message": "overloaded"}}))

        with pytest.raises(ProviderError, match="HTTP 500: overloaded") as exc_info:
            await make_client(script).complete(MESSAGES, OPENAI)

        assert exc_info.value.status_code == 500
        assert exc_info.value.provider_id == "openai"

    @pytest.mark.asyncio
    async def test_timeout(self):
        script = ScriptedTransport(httpx.ReadTimeout("read timed out"))

        with pytest.raises(ProviderError, match="timed out"):
            await make_client(script).complete(MESSAGES, OPENAI)

    @pytest.mark.asyncio
    async def test_connection_error(self):
        script = ScriptedTransport(httpx.ConnectError("connection refused"))

        with pytest.raises(ProviderError, match="request failed"):
            await make_client(script).complete(MESSAGES, OPENAI)

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        script = ScriptedTransport(httpx.Response(200, text="<html>gateway</html>"))

        with pytest.raises(ProviderError, match="non-JSON"):
            await make_client(script).complete(MESSAGES, OPENAI)

    @pytest.mark.asyncio
    async def test_unexpected_shape(self):
        script = ScriptedTransport(httpx.Response(200, json={"choices": []}))

        with pytest.raises(ProviderError, match="did not contain reply text"):
            await make_client(script).complete(MESSAGES, OPENAI)


class TestFallback:
    """Tests for the single fallback hop in LLMService."""

    @pytest.mark.asyncio
    async def test_primary_success_skips_fallback(self, store):
        script = ScriptedTransport("From OpenAI")
        llm = await make_llm(script, store, OPENAI, ANTHROPIC)

        assert await llm.send(MESSAGES) == "From OpenAI"
        assert script.hosts() == ["api.openai.com"]

    @pytest.mark.asyncio
    async def test_fallback_answers_after_primary_fails(self, store):
        """Exactly one attempt against each provider."""
        script = ScriptedTransport(httpx.Response(503), anthropic_reply("From Claude"))
        llm = await make_llm(script, store, OPENAI, ANTHROPIC)

        assert await llm.send(MESSAGES) == "From Claude"
        assert script.hosts() == ["api.openai.com", "api.anthropic.com"]

    @pytest.mark.asyncio
    async def test_both_fail(self, store):
        """When both providers fail the error names both, and nothing else is tried."""
        script = ScriptedTransport(httpx.Response(500), httpx.Response(502), "never used")
        llm = await make_llm(script, store, OPENAI, ANTHROPIC, GOOGLE)

        with pytest.raises(ProviderError) as exc_info:
            await llm.send(MESSAGES)

        message = str(exc_info.value)
        assert "Openai failed" in message
        assert "fallback Anthropic failed" in message
        assert len(script.requests) == 2

    @pytest.mark.asyncio
    async def test_single_provider_failure(self, store):
        script = ScriptedTransport(httpx.Response(500))
        llm = await make_llm(script, store, OPENAI)

        with pytest.raises(ProviderError, match="HTTP 500"):
            await llm.send(MESSAGES)
        assert len(script.requests) == 1

    @pytest.mark.asyncio
    async def test_explicit_route(self, store):
        script = ScriptedTransport(httpx.Response(500), "From OpenAI")
        llm = await make_llm(script, store)

        text = await llm.send(MESSAGES, primary=ANTHROPIC, fallback=OPENAI)

        assert text == "From OpenAI"
        assert script.hosts() == ["api.anthropic.com", "api.openai.com"]

    @pytest.mark.asyncio
    async def test_fallback_equal_to_primary_is_dropped(self, store):
        script = ScriptedTransport(httpx.Response(500), "never used")
        llm = await make_llm(script, store)

        with pytest.raises(ProviderError):
            await llm.send(MESSAGES, primary=OPENAI, fallback=OPENAI)
        assert len(script.requests) == 1

    @pytest.mark.asyncio
    async def test_no_provider_configured(self, store):
        script = ScriptedTransport()
        llm = await make_llm(script, store)

        with pytest.raises(ProviderError, match="No AI provider is configured"):
            await llm.send(MESSAGES)

    @pytest.mark.asyncio
    async def test_disabled_primary_is_skipped(self, store):
        script = ScriptedTransport(anthropic_reply("From Claude"))
        llm = await make_llm(script, store, make_provider("openai", enabled=False), ANTHROPIC)

        assert await llm.send(MESSAGES) == "From Claude"
        assert script.hosts() == ["api.anthropic.com"]


class TestStreaming:
    """Tests for streaming replies."""

    @pytest.mark.asyncio
    async def test_openai_stream(self):
        script = ScriptedTransport(
            sse(
                '{"choices": [{"delta": {"role": "assistant"}}]}',
                '{"choices": [{"delta": {"content": "Hel"}}]}',
                '{"choices": [{"delta": {"content": "lo"}}]}',
                "[DONE]",
            )
        )
        client = make_client(script)

        async with await client.open_stream(MESSAGES, OPENAI) as stream:
            chunks = [chunk async for chunk in stream]

        assert chunks == ["Hel", "lo"]
        assert script.bodies()[0]["stream"] is True

    @pytest.mark.asyncio
    async def test_anthropic_stream(self):
        script = ScriptedTransport(
            sse(
                '{"type": "message_start", "message": {}}',
                '{"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Hi"}}',
                '{"type": "content_block_delta", "delta": {"type": "text_delta", "text": " there"}}',
                '{"type": "message_stop"}',
            )
        )

        async with await make_client(script).open_stream(MESSAGES, ANTHROPIC) as stream:
            chunks = [chunk async for chunk in stream]

        assert chunks == ["Hi", " there"]

    @pytest.mark.asyncio
    async def test_google_stream_url(self):
        script = ScriptedTransport(sse('{"candidates": [{"content": {"parts": [{"text": "Hey"}]}}]}'))

        async with await make_client(script).open_stream(MESSAGES, GOOGLE) as stream:
            chunks = [chunk async for chunk in stream]

        assert chunks == ["Hey"]
        assert script.requests[0].url.path == "/v1beta/models/gemini-test:streamGenerateContent"
        assert script.requests[0].url.params["alt"] == "sse"

    @pytest.mark.asyncio
    async def test_malformed_event(self):
        script = ScriptedTransport(sse('{"choices": [{"delta": {"content": "ok"}}]}', "{broken"))

        chunks = []
        with pytest.raises(ProviderError, match="malformed stream event"):
            async with await make_client(script).open_stream(MESSAGES, OPENAI) as stream:
                async for chunk in stream:
                    chunks.append(chunk)

        assert chunks == ["ok"]

    @pytest.mark.asyncio
    async def test_stream_falls_back_on_open(self, store):
        """A stream that cannot be opened is retried once on the fallback provider."""
        script = ScriptedTransport(
            httpx.Response(429, json={"error": {"message": "rate limited"}}),
            sse('{"type": "content_block_delta", "delta": {"text": "From Claude"}}'),
        )
        llm = await make_llm(script, store, OPENAI, ANTHROPIC)

        async with await llm.open_stream(MESSAGES) as stream:
            chunks = [chunk async for chunk in stream]

        assert chunks == ["From Claude"]
        assert script.hosts() == ["api.openai.com", "api.anthropic.com"]
