"""
Configuration loader for llmbridge.

Reads an optional YAML file, layers environment overrides on top and
validates the result against the pydantic schema.

File lookup order:
    1. explicit ``path`` argument
    2. ``LLMBRIDGE_CONFIG`` environment variable
    3. ``config/llmbridge.yaml`` relative to the working directory
    4. built-in defaults (no file)

Environment overrides:
    LLMBRIDGE_DEFAULT_ENGINE        default engine driver
    LLMBRIDGE_MEMORY_DRIVER         default memory driver
    LLMBRIDGE_MEMORY_BACKEND        memory | supabase
    LLMBRIDGE_<PROVIDER>_<FIELD>    e.g. LLMBRIDGE_OPENAI_MODEL=gpt-4o

API keys also fall back to OPENAI_API_KEY, ANTHROPIC_API_KEY and
GEMINI_API_KEY when neither the file nor an override sets one.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import ValidationError

from llmbridge.config.schema import EngineSettings, MemoryBackend, ProviderSettings
from llmbridge.exceptions import ConfigurationError
from llmbridge.llm.messages import Provider
from llmbridge.memory.store import InMemoryRecordStore, RecordStore, SupabaseRecordStore

DEFAULT_CONFIG_PATH = Path("config") / "llmbridge.yaml"

API_KEY_ENV_VARS: dict[Provider, str] = {
    Provider.OPENAI: "OPENAI_API_KEY",
    Provider.CLAUDE: "ANTHROPIC_API_KEY",
    Provider.GEMINI: "GEMINI_API_KEY",
}


def find_config_file(
    path: Optional[str | Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Optional[Path]:
    """Resolve the settings file, or None when defaults should be used."""
    env = os.environ if env is None else env

    explicit = path or env.get("LLMBRIDGE_CONFIG")
    if explicit:
        explicit = Path(explicit)
        if not explicit.exists():
            raise ConfigurationError(
                f"Config not found: {explicit}", config_path=str(explicit)
            )
        return explicit

    if DEFAULT_CONFIG_PATH.exists():
        return DEFAULT_CONFIG_PATH
    return None


def read_config_file(config_path: Path) -> dict[str, Any]:
    try:
        with open(config_path, "r") as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Could not read config file {config_path}: {e}",
            config_path=str(config_path),
        ) from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"Config file must contain a mapping: {config_path}",
            config_path=str(config_path),
        )
    return raw


def apply_env_overrides(
    raw: dict[str, Any],
    env: Optional[Mapping[str, str]] = None,
) -> dict[str, Any]:
    """Return a copy of ``raw`` with environment overrides applied."""
    env = os.environ if env is None else env
    data = dict(raw)
    memory = dict(data.get("memory") or {})
    providers = {
        str(name).lower(): dict(section or {})
        for name, section in (data.get("providers") or {}).items()
    }

    if env.get("LLMBRIDGE_DEFAULT_ENGINE"):
        data["default"] = env["LLMBRIDGE_DEFAULT_ENGINE"]
    if env.get("LLMBRIDGE_MEMORY_DRIVER"):
        memory["default"] = env["LLMBRIDGE_MEMORY_DRIVER"]
    if env.get("LLMBRIDGE_MEMORY_BACKEND"):
        memory["backend"] = env["LLMBRIDGE_MEMORY_BACKEND"]

    for provider in Provider:
        section = providers.get(provider.value, {})
        for field_name in ProviderSettings.model_fields:
            var = f"LLMBRIDGE_{provider.value.upper()}_{field_name.upper()}"
            if env.get(var):
                section[field_name] = env[var]

        fallback_key = env.get(API_KEY_ENV_VARS[provider])
        if not section.get("api_key") and fallback_key:
            section["api_key"] = fallback_key

        if section:
            providers[provider.value] = section

    data["memory"] = memory
    data["providers"] = providers
    return data


def load_settings(
    path: Optional[str | Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> EngineSettings:
    """
    Load and validate llmbridge settings.

    Args:
        path: Optional explicit path to a YAML settings file.
        env: Environment mapping; ``os.environ`` when omitted.

    Returns:
        Validated EngineSettings instance.

    Raises:
        ConfigurationError: missing/unreadable file or invalid values.
    """
    config_path = find_config_file(path, env)
    raw = read_config_file(config_path) if config_path else {}
    data = apply_env_overrides(raw, env)

    try:
        return EngineSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid llmbridge configuration:\n{e}",
            config_path=str(config_path) if config_path else None,
        ) from e


def build_store(settings: EngineSettings) -> RecordStore:
    """Instantiate the record store selected by ``memory.backend``."""
    if settings.memory.backend is MemoryBackend.SUPABASE:
        return SupabaseRecordStore(table_name=settings.memory.table_name)
    return InMemoryRecordStore()
