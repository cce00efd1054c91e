"""Application settings read from the environment."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from hearthlight.models.llm import Provider, ProviderType

DEFAULT_MODELS = {
    ProviderType.OPENAI: "gpt-4o-mini",
    ProviderType.ANTHROPIC: "claude-3-5-sonnet-20241022",
    ProviderType.GOOGLE: "gemini-1.5-flash",
}


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: list[str]) -> list[str]:
    value = os.getenv(name)
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


def providers_from_env() -> list[Provider]:
    """Providers for every API key present in the environment, in preference order."""
    sources = [
        (ProviderType.OPENAI, "OpenAI", "OPENAI_API_KEY", "OPENAI_MODEL", "OPENAI_BASE_URL"),
        (ProviderType.ANTHROPIC, "Claude", "ANTHROPIC_API_KEY", "ANTHROPIC_MODEL", "ANTHROPIC_BASE_URL"),
        (ProviderType.GOOGLE, "Gemini", "GEMINI_API_KEY", "GEMINI_MODEL", "GEMINI_BASE_URL"),
    ]
    providers = []
    for provider_type, name, key_var, model_var, url_var in sources:
        api_key = os.getenv(key_var)
        if not api_key:
            continue
        providers.append(
            Provider(
                id=provider_type.value,
                name=name,
                type=provider_type,
                api_key=api_key,
                base_url=os.getenv(url_var) or None,
                model=os.getenv(model_var) or DEFAULT_MODELS[provider_type],
            )
        )
    return providers


@dataclass
class Settings:
    """Runtime configuration for the API and the CLI."""

    data_dir: Path = Path(".hearthlight")
    log_level: str = "INFO"

    provider_timeout: float = 30.0
    max_tokens: int = 1000
    temperature: float = 0.7
    max_message_tokens: int = 2000
    tokenizer_encoding: str | None = "cl100k_base"

    extraction_strategies: list[str] = field(default_factory=lambda: ["tagged"])
    trigger_fallback: bool = True

    providers: list[Provider] = field(default_factory=list)
    active_provider: str | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        tokenizer = os.getenv("HEARTHLIGHT_TOKENIZER", "cl100k_base")
        return cls(
            data_dir=Path(os.getenv("HEARTHLIGHT_DATA_DIR", ".hearthlight")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            provider_timeout=float(os.getenv("HEARTHLIGHT_PROVIDER_TIMEOUT", "30")),
            max_tokens=int(os.getenv("HEARTHLIGHT_MAX_TOKENS", "1000")),
            temperature=float(os.getenv("HEARTHLIGHT_TEMPERATURE", "0.7")),
            max_message_tokens=int(os.getenv("HEARTHLIGHT_MAX_MESSAGE_TOKENS", "2000")),
            tokenizer_encoding=None if tokenizer.lower() in {"", "none"} else tokenizer,
            extraction_strategies=_env_list("HEARTHLIGHT_EXTRACTION_STRATEGIES", ["tagged"]),
            trigger_fallback=_env_bool("HEARTHLIGHT_TRIGGER_FALLBACK", True),
            providers=providers_from_env(),
            active_provider=os.getenv("HEARTHLIGHT_ACTIVE_PROVIDER") or None,
        )
