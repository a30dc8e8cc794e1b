"""
Pydantic configuration schema for llmbridge.

One EngineSettings object describes every provider the library may talk
to and how conversation memory is stored. It is built once (usually by
``load_settings``) and passed into the Engine, which hands each driver
its own section.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from llmbridge.llm.messages import Provider


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class MemoryBackend(str, Enum):
    MEMORY = "memory"
    SUPABASE = "supabase"


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------

class ProviderSettings(BaseModel):
    """Connection and default generation parameters for one provider."""

    model_config = ConfigDict(extra="allow")

    api_key: Optional[str] = None
    model: Optional[str] = Field(
        None, description="Default model; the provider's built-in default when unset"
    )
    temperature: float = 0.7
    max_tokens: int = 1000
    organization_id: Optional[str] = None
    project_id: Optional[str] = None
    base_url: Optional[str] = None
    api_version: Optional[str] = None
    timeout: Optional[float] = Field(
        None, description="Request timeout in seconds; no timeout when unset"
    )


class MemorySettings(BaseModel):
    """Where conversation history lives and which provider shapes it."""

    default: Optional[str] = Field(
        None, description="Default memory driver; falls back to the engine default"
    )
    backend: MemoryBackend = MemoryBackend.MEMORY
    table_name: str = "engine_memory"


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------

class EngineSettings(BaseModel):
    """Root configuration object."""

    default: str = Provider.OPENAI.value
    providers: dict[str, ProviderSettings] = Field(default_factory=dict)
    memory: MemorySettings = Field(default_factory=MemorySettings)

    @field_validator("default")
    @classmethod
    def validate_default(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in {p.value for p in Provider}:
            raise ValueError(
                f"default engine must be one of {[p.value for p in Provider]}, got {v!r}"
            )
        return v

    @field_validator("providers")
    @classmethod
    def lowercase_provider_names(
        cls, v: dict[str, ProviderSettings]
    ) -> dict[str, ProviderSettings]:
        return {name.strip().lower(): section for name, section in v.items()}

    @property
    def default_memory(self) -> str:
        return (self.memory.default or self.default).strip().lower()

    def provider(self, name: str) -> ProviderSettings:
        """Settings for one provider; defaults when it has no section."""
        return self.providers.get(name.strip().lower()) or ProviderSettings()
