"""
Record stores for conversation memory.

A record store is a dumb table of message rows with three operations:
append a row, list rows matching equality filters (oldest first) and
delete rows matching equality filters. Two stores ship:

- InMemoryRecordStore — process-local list, for tests and scripts
- SupabaseRecordStore — the ``engine_memory`` table in Supabase

Expected table columns: id (serial), parent_class, parent_id,
message_id, role, content, type, metadata (jsonb), driver, created_at.
"""

from __future__ import annotations

import itertools
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Protocol

from supabase import Client, create_client

from llmbridge.exceptions import ConfigurationError

Filters = Mapping[str, Any]


# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PersistedMessageRecord:
    """One stored chat message, owned by a (parent_class, parent_id, driver) scope."""

    parent_class: str
    parent_id: str
    role: str
    content: Any
    driver: str
    type: str = "text"
    metadata: dict[str, Any] = field(default_factory=dict)
    message_id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_row(self) -> dict[str, Any]:
        return {
            "parent_class": self.parent_class,
            "parent_id": self.parent_id,
            "message_id": self.message_id,
            "role": self.role,
            "content": self.content,
            "type": self.type,
            "metadata": dict(self.metadata),
            "driver": self.driver,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PersistedMessageRecord":
        created_at = row.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
        return cls(
            parent_class=row["parent_class"],
            parent_id=str(row["parent_id"]),
            role=row["role"],
            content=row.get("content", ""),
            driver=row["driver"],
            type=row.get("type") or "text",
            metadata=dict(row.get("metadata") or {}),
            message_id=row.get("message_id"),
            created_at=created_at or datetime.now(timezone.utc),
        )


# ---------------------------------------------------------------------------
# Store interface
# ---------------------------------------------------------------------------

class RecordStore(Protocol):
    def create(self, row: dict[str, Any]) -> dict[str, Any]: ...

    def query(self, filters: Filters) -> list[dict[str, Any]]: ...

    def delete(self, filters: Filters) -> int: ...


def _matches(row: Mapping[str, Any], filters: Filters) -> bool:
    return all(row.get(key) == value for key, value in filters.items())


class InMemoryRecordStore:
    """
    Thread-safe process-local store.

    Rows come back ordered by ``created_at``; rows created in the same
    instant keep their insertion order.
    """

    def __init__(self) -> None:
        self._rows: list[dict[str, Any]] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def create(self, row: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            stored = {**row, "id": next(self._ids)}
            self._rows.append(stored)
            return dict(stored)

    def query(self, filters: Filters) -> list[dict[str, Any]]:
        with self._lock:
            rows = [dict(r) for r in self._rows if _matches(r, filters)]
        # sort() is stable, so equal timestamps stay in insertion order
        rows.sort(key=lambda r: r.get("created_at") or "")
        return rows

    def delete(self, filters: Filters) -> int:
        with self._lock:
            kept = [r for r in self._rows if not _matches(r, filters)]
            removed = len(self._rows) - len(kept)
            self._rows = kept
        return removed

    def __len__(self) -> int:
        return len(self._rows)


class SupabaseRecordStore:
    """
    Record store backed by a Supabase table.

    Uses the service role key, like every other server-side caller; the
    scope filters applied by the memory driver are the only isolation.
    """

    def __init__(
        self,
        client: Optional[Client] = None,
        table_name: str = "engine_memory",
    ):
        if client is None:
            url = os.environ.get("SUPABASE_URL")
            key = os.environ.get("SUPABASE_SERVICE_KEY")
            if not url or not key:
                raise ConfigurationError(
                    "SUPABASE_URL and SUPABASE_SERVICE_KEY must be set"
                )
            client = create_client(url, key)
        self.client = client
        self.table_name = table_name

    def _filtered(self, query: Any, filters: Filters) -> Any:
        for key, value in filters.items():
            query = query.eq(key, value)
        return query

    def create(self, row: dict[str, Any]) -> dict[str, Any]:
        result = self.client.table(self.table_name).insert(row).execute()
        return result.data[0] if result.data else dict(row)

    def query(self, filters: Filters) -> list[dict[str, Any]]:
        query = self._filtered(
            self.client.table(self.table_name).select("*"), filters
        )
        result = query.order("created_at").order("id").execute()
        return result.data or []

    def delete(self, filters: Filters) -> int:
        query = self._filtered(self.client.table(self.table_name).delete(), filters)
        result = query.execute()
        return len(result.data or [])
