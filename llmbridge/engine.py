"""
Engine — root object tying drivers, memory and helpers together.

One Engine per application (or per test). It owns the configuration,
builds an EngineDriver per provider on first use and hands out the
shared MemoryManager, SSE writers and the JSON repair helper.

Usage:
    from llmbridge import Engine, load_settings

    async with Engine(load_settings()) as engine:
        memory = engine.memory().driver("openai").set_parent("Thread", 42)
        memory.add_user_message("hello")

        response = await engine.engine("openai").send(memory.get_history())
        memory.add_assistant_message(response.content)
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

import httpx

from llmbridge.config.loader import build_store
from llmbridge.config.schema import EngineSettings
from llmbridge.llm.driver import EngineDriver
from llmbridge.llm.json_repair import parse_json
from llmbridge.llm.messages import Provider
from llmbridge.memory.manager import MemoryManager, resolve_provider
from llmbridge.memory.store import RecordStore
from llmbridge.sse import SSEWriter

logger = logging.getLogger(__name__)

_MISSING = object()


class Engine:
    """
    Facade over the per-provider engine drivers and memory.

    Driver resolution is construct-once under a lock: concurrent first
    requests for the same name get the same instance. Unknown names
    raise UnsupportedDriverError and leave nothing cached.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        memory: Optional[MemoryManager] = None,
        store: Optional[RecordStore] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings or EngineSettings()
        self._memory = memory
        self._store = store
        self._transport = transport
        self._drivers: dict[Provider, EngineDriver] = {}
        self._lock = threading.Lock()

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    # --- Engine drivers ---

    def engine(self, name: Optional[str] = None) -> EngineDriver:
        """Cached EngineDriver for ``name`` (configured default when None)."""
        provider = resolve_provider(name or self._settings.default, "engine")

        with self._lock:
            driver = self._drivers.get(provider)
            if driver is None:
                driver = EngineDriver(
                    provider,
                    self._settings.provider(provider.value),
                    transport=self._transport,
                )
                self._drivers[provider] = driver
                logger.info(
                    "engine_driver_created",
                    extra={"provider": provider.value, "model": driver.model},
                )
        return driver

    ai = engine
    chat = engine

    def driver(self, name: str) -> EngineDriver:
        return self.engine(name)

    # --- Memory & helpers ---

    def memory(self) -> MemoryManager:
        """Shared MemoryManager, built on first use from the memory settings."""
        with self._lock:
            if self._memory is None:
                store = self._store if self._store is not None else build_store(self._settings)
                self._memory = MemoryManager(self._settings, store)
        return self._memory

    def sse(self, sink: Optional[Callable[[str], Any]] = None, **kwargs: Any) -> SSEWriter:
        return SSEWriter(sink, **kwargs)

    def json_parser(self, text: str) -> Any:
        return parse_json(text)

    def config(self, key: Optional[str] = None, default: Any = None) -> Any:
        """
        Read configuration by dotted key, e.g. ``"providers.openai.model"``.

        Returns the whole settings dict when ``key`` is None.
        """
        data: Any = self._settings.model_dump(mode="json")
        if key is None:
            return data
        for part in key.split("."):
            if not isinstance(data, dict):
                return default
            data = data.get(part, _MISSING)
            if data is _MISSING:
                return default
        return data

    # --- Lifecycle ---

    async def aclose(self) -> None:
        """Close the HTTP clients of every driver built so far."""
        with self._lock:
            drivers = list(self._drivers.values())
        for driver in drivers:
            await driver.aclose()

    async def __aenter__(self) -> "Engine":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
