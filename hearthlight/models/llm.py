"""Provider-agnostic LLM models."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from hearthlight.utils.ids import new_id


class ProviderType(StrEnum):
    """Wire protocol families a provider can speak."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    CUSTOM = "custom"


PROVIDER_TYPE_ALIASES = {"claude": ProviderType.ANTHROPIC, "gemini": ProviderType.GOOGLE}


class Provider(BaseModel):
    """A configured model backend."""

    id: str = Field(default_factory=lambda: new_id("provider"))
    name: str
    type: ProviderType
    api_key: str
    base_url: str | None = None
    model: str
    enabled: bool = True

    @field_validator("type", mode="before")
    @classmethod
    def _accept_legacy_type_names(cls, value: Any) -> Any:
        if isinstance(value, str):
            return PROVIDER_TYPE_ALIASES.get(value.lower(), value.lower())
        return value

    def public_dict(self) -> dict[str, Any]:
        """Serialize without the API key."""
        return self.model_dump(mode="json", exclude={"api_key"})


class LLMMessage(BaseModel):
    """A message in the form sent to a provider."""

    role: Literal["system", "user", "assistant", "tool"]
    content: str


@dataclass(frozen=True)
class ProviderRoute:
    """Primary provider for a request plus the single fallback tried after it."""

    primary: Provider | None
    fallback: Provider | None = None


class AISettings(BaseModel):
    """Provider configuration persisted under the ``ai`` key of the settings document."""

    providers: list[Provider] = Field(default_factory=list)
    active_provider: str | None = None
