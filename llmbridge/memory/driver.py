"""
Memory Driver — scoped chat history in a provider's message shape.

Every message belongs to a scope: the owning object's type and id
(``set_parent``) plus the provider this driver serves. Messages are
stored provider-agnostically and encoded on the way out with the same
formatter the engine driver uses, so ``get_messages()`` can be dropped
straight into a request body.

Usage:
    memory = MemoryDriver("openai", InMemoryRecordStore())
    memory.set_parent("Thread", 42)
    memory.add_user_message("hello")
    memory.add_assistant_message("hi there")

    memory.get_messages()
    # → [{"role": "user", "content": "hello"},
    #    {"role": "assistant", "content": "hi there"}]
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from llmbridge.config.schema import ProviderSettings
from llmbridge.exceptions import ScopeNotSetError
from llmbridge.llm.formatters import (
    format_message,
    normalize_role,
    parse_incoming_message,
    storage_role,
)
from llmbridge.llm.messages import Content, Message, MessageType, Provider, Role
from llmbridge.memory.store import PersistedMessageRecord, RecordStore

logger = logging.getLogger(__name__)


def owner_type_name(owner_type: Union[type, str]) -> str:
    """Stable string for a scope owner: ``module.QualName`` for classes."""
    if isinstance(owner_type, type):
        return f"{owner_type.__module__}.{owner_type.__qualname__}"
    return str(owner_type)


class MemoryDriver:
    """Conversation history for one provider, scoped to one owner at a time."""

    def __init__(
        self,
        provider: Union[Provider, str],
        store: RecordStore,
        settings: Optional[ProviderSettings] = None,
    ):
        self.provider = Provider(provider)
        self._store = store
        self._settings = settings or ProviderSettings()
        self._parent_class: Optional[str] = None
        self._parent_id: Optional[str] = None

    # --- Scope ---

    def set_parent(self, owner_type: Union[type, str], owner_id: Any) -> "MemoryDriver":
        """Select the conversation owner. Returns self for chaining."""
        self._parent_class = owner_type_name(owner_type)
        self._parent_id = str(owner_id)
        return self

    @property
    def has_parent(self) -> bool:
        return self._parent_class is not None and self._parent_id is not None

    def _scope(self) -> dict[str, str]:
        if not self.has_parent:
            raise ScopeNotSetError(driver=self.provider.value)
        return {
            "parent_class": self._parent_class,
            "parent_id": self._parent_id,
            "driver": self.provider.value,
        }

    # --- Writes ---

    def add_message(
        self,
        role: Union[Role, str],
        content: Content,
        type: Union[MessageType, str] = MessageType.TEXT,
        metadata: Optional[Mapping[str, Any]] = None,
        message_id: Optional[str] = None,
    ) -> PersistedMessageRecord:
        """Append one message to the current scope."""
        scope = self._scope()
        record = PersistedMessageRecord(
            parent_class=scope["parent_class"],
            parent_id=scope["parent_id"],
            role=storage_role(normalize_role(role), self.provider),
            content=content,
            driver=self.provider.value,
            type=MessageType(type or MessageType.TEXT).value,
            metadata=dict(metadata or {}),
            message_id=message_id,
        )
        self._store.create(record.to_row())
        logger.debug(
            "memory_message_added",
            extra={
                "driver": self.provider.value,
                "parent_class": record.parent_class,
                "parent_id": record.parent_id,
                "role": record.role,
                "type": record.type,
            },
        )
        return record

    def add_user_message(self, content: Content, type=MessageType.TEXT, metadata=None, message_id=None):
        return self.add_message(Role.USER, content, type, metadata, message_id)

    def add_assistant_message(self, content: Content, type=MessageType.TEXT, metadata=None, message_id=None):
        return self.add_message(Role.ASSISTANT, content, type, metadata, message_id)

    def add_system_message(self, content: Content, type=MessageType.TEXT, metadata=None, message_id=None):
        return self.add_message(Role.SYSTEM, content, type, metadata, message_id)

    # --- Reads ---

    def get_history(self) -> list[Message]:
        """Scope messages, oldest first, as generic Message objects."""
        rows = self._store.query(self._scope())
        return [
            parse_incoming_message(
                {
                    "role": row["role"],
                    "content": row.get("content", ""),
                    "type": row.get("type") or MessageType.TEXT.value,
                    "metadata": row.get("metadata") or {},
                },
                self.provider,
            )
            for row in rows
        ]

    def get_messages(self) -> list[dict[str, Any]]:
        """Scope messages, oldest first, in this provider's wire shape."""
        return [format_message(m, self.provider) for m in self.get_history()]

    def clear(self) -> int:
        """Delete this provider's messages in the current scope."""
        scope = self._scope()
        removed = self._store.delete(scope)
        logger.info(
            "memory_cleared",
            extra={
                "driver": self.provider.value,
                "parent_class": scope["parent_class"],
                "parent_id": scope["parent_id"],
                "removed": removed,
            },
        )
        return removed

    def get_config(self) -> Mapping[str, Any]:
        config = self._settings.model_dump()
        config["provider"] = self.provider.value
        return MappingProxyType(config)

    def __repr__(self) -> str:
        return (
            f"MemoryDriver(provider={self.provider.value!r}, "
            f"parent=({self._parent_class!r}, {self._parent_id!r}))"
        )
