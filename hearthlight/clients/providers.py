"""HTTP client for chat-completion providers with rate limiting and token budgeting.

Each provider family (OpenAI, Anthropic, Google, OpenAI-compatible custom endpoints)
is described by one :class:`ProviderProtocol` row: where to send the request, how to
authenticate, how to shape the body and where the reply text lives in the response.
"""

import asyncio
import json
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any

import httpx
import tiktoken
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from hearthlight.errors import ProviderError
from hearthlight.models.llm import LLMMessage, Provider, ProviderType
from hearthlight.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ProviderConfig:
    """Request tuning shared by every provider."""

    max_tokens: int = 1000
    temperature: float = 0.7
    timeout: float = 30.0
    anthropic_version: str = "2023-06-01"

    # Token limits for validation and truncation
    max_message_tokens: int = 2000
    max_conversation_tokens: int = 100_000
    token_headroom: int = 2000
    tokenizer_encoding: str | None = "cl100k_base"

    requests_per_minute: int = 50


class ProviderRateLimiter:
    """Moving-window request limiter keyed by provider id."""

    def __init__(self, requests_per_minute: int = 50):
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)
        self.request_limit = parse(f"{requests_per_minute}/minute")

    async def check_rate_limit(self, identifier: str) -> None:
        """Wait until ``identifier`` has room for one more request."""
        while not self.limiter.hit(self.request_limit, identifier):
            window_stats = self.limiter.get_window_stats(self.request_limit, identifier)
            wait_time = max(0.0, window_stats.reset_time - time.time())
            logger.warning(f"Request rate limit exceeded for {identifier}, waiting {wait_time:.2f}s")
            await asyncio.sleep(wait_time or 0.1)


def _dig(payload: Any, path: tuple[str | int, ...]) -> Any:
    """Follow a key/index path through decoded JSON, returning None when it breaks."""
    current = payload
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or len(current) <= step:
                return None
        elif not isinstance(current, dict) or step not in current:
            return None
        current = current[step]
    return current


def _merged_turns(messages: list[LLMMessage], role_map: dict[str, str]) -> list[tuple[str, str]]:
    """Map roles and merge adjacent turns that end up with the same role."""
    turns: list[tuple[str, str]] = []
    for message in messages:
        role = role_map.get(message.role, message.role)
        if turns and turns[-1][0] == role:
            turns[-1] = (role, f"{turns[-1][1]}\n\n{message.content}")
        else:
            turns.append((role, message.content))
    return turns


# OpenAI and OpenAI-compatible endpoints


def _openai_headers(provider: Provider, config: ProviderConfig) -> dict[str, str]:
    return {"Authorization": f"Bearer {provider.api_key}", "Content-Type": "application/json"}


def _openai_body(messages: list[LLMMessage], provider: Provider, config: ProviderConfig, stream: bool) -> dict:
    body: dict[str, Any] = {
        "model": provider.model,
        "messages": [
            {"role": "user" if m.role == "tool" else m.role, "content": m.content} for m in messages
        ],
        "max_tokens": config.max_tokens,
        "temperature": config.temperature,
    }
    if stream:
        body["stream"] = True
    return body


def _openai_delta(event: dict[str, Any]) -> str | None:
    return _dig(event, ("choices", 0, "delta", "content"))


# Anthropic Messages API

ANTHROPIC_ROLES = {"system": "user", "tool": "user"}


def _anthropic_headers(provider: Provider, config: ProviderConfig) -> dict[str, str]:
    return {
        "x-api-key": provider.api_key,
        "anthropic-version": config.anthropic_version,
        "Content-Type": "application/json",
    }


def _anthropic_body(messages: list[LLMMessage], provider: Provider, config: ProviderConfig, stream: bool) -> dict:
    body: dict[str, Any] = {
        "model": provider.model,
        "max_tokens": config.max_tokens,
        "messages": [{"role": role, "content": text} for role, text in _merged_turns(messages, ANTHROPIC_ROLES)],
    }
    if stream:
        body["stream"] = True
    return body


def _anthropic_delta(event: dict[str, Any]) -> str | None:
    if event.get("type") == "error":
        raise ProviderError(f"Anthropic stream error: {_dig(event, ('error', 'message')) or event}")
    if event.get("type") == "content_block_delta":
        return _dig(event, ("delta", "text"))
    return None


# Google Gemini generateContent API

GOOGLE_ROLES = {"system": "user", "tool": "user", "assistant": "model"}


def _google_path(provider: Provider, stream: bool) -> str:
    if stream:
        return f"/v1beta/models/{provider.model}:streamGenerateContent?alt=sse&key={provider.api_key}"
    return f"/v1beta/models/{provider.model}:generateContent?key={provider.api_key}"


def _google_headers(provider: Provider, config: ProviderConfig) -> dict[str, str]:
    return {"Content-Type": "application/json"}


def _google_body(messages: list[LLMMessage], provider: Provider, config: ProviderConfig, stream: bool) -> dict:
    return {
        "contents": [{"role": role, "parts": [{"text": text}]} for role, text in _merged_turns(messages, GOOGLE_ROLES)],
        "generationConfig": {"maxOutputTokens": config.max_tokens, "temperature": config.temperature},
    }


def _google_delta(event: dict[str, Any]) -> str | None:
    return _dig(event, ("candidates", 0, "content", "parts", 0, "text"))


@dataclass(frozen=True)
class ProviderProtocol:
    """How to talk to one provider family."""

    default_base_url: str
    path: Callable[[Provider, bool], str]
    headers: Callable[[Provider, ProviderConfig], dict[str, str]]
    body: Callable[[list[LLMMessage], Provider, ProviderConfig, bool], dict[str, Any]]
    text_path: tuple[str | int, ...]
    delta: Callable[[dict[str, Any]], str | None]

    def build_url(self, provider: Provider, stream: bool = False) -> str:
        base = (provider.base_url or self.default_base_url).rstrip("/")
        return f"{base}{self.path(provider, stream)}"


PROVIDER_PROTOCOLS: dict[ProviderType, ProviderProtocol] = {
    ProviderType.OPENAI: ProviderProtocol(
        default_base_url="https://api.openai.com",
        path=lambda provider, stream: "/v1/chat/completions",
        headers=_openai_headers,
        body=_openai_body,
        text_path=("choices", 0, "message", "content"),
        delta=_openai_delta,
    ),
    ProviderType.ANTHROPIC: ProviderProtocol(
        default_base_url="https://api.anthropic.com",
        path=lambda provider, stream: "/v1/messages",
        headers=_anthropic_headers,
        body=_anthropic_body,
        text_path=("content", 0, "text"),
        delta=_anthropic_delta,
    ),
    ProviderType.GOOGLE: ProviderProtocol(
        default_base_url="https://generativelanguage.googleapis.com",
        path=_google_path,
        headers=_google_headers,
        body=_google_body,
        text_path=("candidates", 0, "content", "parts", 0, "text"),
        delta=_google_delta,
    ),
    ProviderType.CUSTOM: ProviderProtocol(
        default_base_url="https://api.openai.com/v1",
        path=lambda provider, stream: "/chat/completions",
        headers=_openai_headers,
        body=_openai_body,
        text_path=("choices", 0, "message", "content"),
        delta=_openai_delta,
    ),
}


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    detail = _dig(payload, ("error", "message"))
    return str(detail or payload)[:200]


class ProviderStream:
    """Incremental reply text from a streaming provider response.

    Use as an async context manager so the underlying connection is always released::

        async with await client.open_stream(messages, provider) as stream:
            async for chunk in stream:
                ...
    """

    def __init__(self, provider: Provider, protocol: ProviderProtocol, response: httpx.Response):
        self.provider = provider
        self.protocol = protocol
        self.response = response

    async def __aiter__(self) -> AsyncIterator[str]:
        try:
            async for line in self.response.aiter_lines():
                if not line.startswith("data:"):
                    continue
                data = line[len("data:") :].strip()
                if data == "[DONE]":
                    break
                try:
                    event = json.loads(data)
                except json.JSONDecodeError as e:
                    raise ProviderError(
                        f"{self.provider.name} sent a malformed stream event", self.provider.id
                    ) from e
                delta = self.protocol.delta(event)
                if delta:
                    yield delta
        except httpx.HTTPError as e:
            raise ProviderError(f"{self.provider.name} stream interrupted: {e}", self.provider.id) from e

    async def aclose(self) -> None:
        await self.response.aclose()

    async def __aenter__(self) -> "ProviderStream":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class ProviderClient:
    """Low-level provider client: one request, one provider, no fallback."""

    tokenizer: tiktoken.Encoding | None = None

    def __init__(self, config: ProviderConfig | None = None, transport: httpx.AsyncBaseTransport | None = None):
        """Initialize the client.

        Args:
            config: Request tuning and token limits
            transport: Optional httpx transport (tests pass an ``httpx.MockTransport``)
        """
        self.config = config or ProviderConfig()
        self.http = httpx.AsyncClient(timeout=self.config.timeout, transport=transport)
        self.rate_limiter = ProviderRateLimiter(self.config.requests_per_minute)

        if self.config.tokenizer_encoding:
            try:
                self.tokenizer = tiktoken.get_encoding(self.config.tokenizer_encoding)
            except Exception as e:
                logger.warning(f"Tokenizer {self.config.tokenizer_encoding} unavailable, estimating by length: {e}")
                self.tokenizer = None

    async def aclose(self) -> None:
        await self.http.aclose()

    def _build_request(self, messages: list[LLMMessage], provider: Provider, stream: bool) -> httpx.Request:
        if not provider.api_key:
            raise ProviderError(f"{provider.name} has no API key configured", provider.id)

        protocol = PROVIDER_PROTOCOLS[provider.type]
        truncated = self.truncate_conversation(messages)
        logger.debug(f"Sending {len(truncated)} messages to {provider.name} ({provider.type}, {provider.model})")
        return self.http.build_request(
            "POST",
            protocol.build_url(provider, stream),
            headers=protocol.headers(provider, self.config),
            json=protocol.body(truncated, provider, self.config, stream),
        )

    async def _send(self, request: httpx.Request, provider: Provider, stream: bool) -> httpx.Response:
        await self.rate_limiter.check_rate_limit(provider.id)
        try:
            response = await self.http.send(request, stream=stream)
        except httpx.TimeoutException as e:
            raise ProviderError(f"{provider.name} timed out after {self.config.timeout:.0f}s", provider.id) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"{provider.name} request failed: {e}", provider.id) from e

        if response.is_error:
            if stream:
                await response.aread()
                await response.aclose()
            raise ProviderError(
                f"{provider.name} returned HTTP {response.status_code}: {_error_detail(response)}",
                provider.id,
                response.status_code,
            )
        return response

    async def complete(self, messages: list[LLMMessage], provider: Provider) -> str:
        """Send one chat request and return the reply text.

        Raises:
            ProviderError: On transport failure, timeout, non-2xx status or an unexpected body
        """
        request = self._build_request(messages, provider, stream=False)
        response = await self._send(request, provider, stream=False)

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderError(f"{provider.name} returned a non-JSON body", provider.id) from e

        text = _dig(payload, PROVIDER_PROTOCOLS[provider.type].text_path)
        if not isinstance(text, str):
            raise ProviderError(f"{provider.name} response did not contain reply text", provider.id)

        logger.debug(f"{provider.name} replied with {len(text)} characters")
        return text

    async def open_stream(self, messages: list[LLMMessage], provider: Provider) -> ProviderStream:
        """Start a streaming request; the status is checked before the stream is returned."""
        request = self._build_request(messages, provider, stream=True)
        response = await self._send(request, provider, stream=True)
        return ProviderStream(provider, PROVIDER_PROTOCOLS[provider.type], response)

    def estimate_message_tokens(self, message: str) -> int:
        """Estimate token count for a single message.

        Args:
            message: Message content

        Returns:
            Estimated token count
        """
        if self.tokenizer is None:
            return len(message) // 4
        return len(self.tokenizer.encode(message))

    def validate_message_tokens(self, message: str) -> None:
        """Reject a message that exceeds the per-message token limit.

        Raises:
            ValueError: If message exceeds token limit
        """
        token_count = self.estimate_message_tokens(message)
        if token_count > self.config.max_message_tokens:
            raise ValueError(
                f"Message exceeds token limit: {token_count} tokens > {self.config.max_message_tokens} limit"
            )

    def truncate_conversation(self, messages: list[LLMMessage]) -> list[LLMMessage]:
        """Drop the oldest non-system messages until the conversation fits the context budget.

        System messages are always kept, as is the newest message.
        """
        if not messages:
            return messages

        system = [m for m in messages if m.role == "system"]
        history = [m for m in messages if m.role != "system"]

        available_tokens = self.config.max_conversation_tokens - self.config.token_headroom
        available_tokens -= sum(self.estimate_message_tokens(m.content) for m in system)

        kept: list[LLMMessage] = []
        current_tokens = 0
        for message in reversed(history):
            message_tokens = self.estimate_message_tokens(message.content)
            if kept and current_tokens + message_tokens > available_tokens:
                break
            kept.insert(0, message)
            current_tokens += message_tokens

        if len(kept) < len(history):
            logger.warning(
                f"Truncated conversation from {len(history)} to {len(kept)} messages "
                f"to fit within {available_tokens} token limit"
            )

        return [*system, *kept]
