"""
Memory Manager — lazy, cached MemoryDriver per provider name.

Drivers are built on first request and reused. Attribute access that
the manager does not define itself falls through to the default driver,
so ``manager.set_parent(...)`` works like ``manager.driver().set_parent(...)``.
"""

from __future__ import annotations

import logging
import threading
from types import MappingProxyType
from typing import Any, Mapping, Optional

from llmbridge.config.schema import EngineSettings
from llmbridge.exceptions import UnsupportedDriverError
from llmbridge.llm.messages import Provider
from llmbridge.memory.driver import MemoryDriver
from llmbridge.memory.store import InMemoryRecordStore, RecordStore

logger = logging.getLogger(__name__)


def resolve_provider(name: str, kind: str) -> Provider:
    """Map a driver name to a Provider or raise UnsupportedDriverError."""
    try:
        return Provider(str(name).strip().lower())
    except ValueError:
        raise UnsupportedDriverError(
            f"Unsupported {kind} driver: {name!r}. "
            f"Supported: {[p.value for p in Provider]}",
            name=str(name),
            kind=kind,
        ) from None


class MemoryManager:
    """Owns the record store and one MemoryDriver per provider."""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        store: Optional[RecordStore] = None,
    ):
        self._settings = settings or EngineSettings()
        self._store = store if store is not None else InMemoryRecordStore()
        self._default = self._settings.default_memory
        self._drivers: dict[Provider, MemoryDriver] = {}
        self._lock = threading.Lock()

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def default_driver(self) -> str:
        return self._default

    def set_default_driver(self, name: str) -> None:
        """Change the default driver; the name is validated immediately."""
        self._default = resolve_provider(name, "memory").value

    def driver(self, name: Optional[str] = None) -> MemoryDriver:
        """Return the cached driver for ``name`` (default driver when None)."""
        provider = resolve_provider(name or self._default, "memory")

        with self._lock:
            driver = self._drivers.get(provider)
            if driver is None:
                driver = MemoryDriver(
                    provider,
                    self._store,
                    self._settings.provider(provider.value),
                )
                self._drivers[provider] = driver
                logger.debug("memory_driver_created", extra={"driver": provider.value})
        return driver

    def get_config(self, name: Optional[str] = None) -> Mapping[str, Any]:
        provider = resolve_provider(name or self._default, "memory")
        config = self._settings.memory.model_dump(mode="json")
        config["driver"] = provider.value
        return MappingProxyType(config)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return getattr(self.driver(), name)
