"""
Abstract remote store interface.

A remote store is a networked, authenticated, keyed row store. Rows live in
named tables and are owned by exactly one owner:

    {
        "id": "{row id, unique per table}",
        "owner_id": "{user id}",
        "key_or_title": "{module key or entity title}",
        "data": {...},               # full entity payload
        "created_at": "{iso timestamp}",
        "updated_at": "{iso timestamp}",
    }

Upserts are keyed by ``id``: writing the same id again replaces the row.
Per-module singleton state lives in the ``dashboard_data`` table with an id
derived from ``(owner_id, module_key)``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any

MODULE_TABLE = "dashboard_data"


def utc_now_iso() -> str:
    """Current time as an ISO 8601 UTC timestamp."""
    return datetime.now(UTC).isoformat()


def module_row_id(owner_id: str, key: str) -> str:
    """Generate the row ID for an owner's per-module singleton state."""
    return f"{owner_id}_{key}"


def module_row(owner_id: str, key: str, value: Any) -> dict[str, Any]:
    """Build the ``dashboard_data`` row for an owner's module state."""
    return {
        "id": module_row_id(owner_id, key),
        "owner_id": owner_id,
        "key_or_title": key,
        "data": value,
        "updated_at": utc_now_iso(),
    }


class RemoteStore(ABC):
    """Abstract interface for the remote authoritative store.

    Callers must check ``is_available(owner_id)`` before every operation.
    Operations may raise ``RemoteStoreError`` (or a subclass); converting
    that into a no-op is the caller's job.
    """

    @property
    @abstractmethod
    def configured(self) -> bool:
        """Whether the backend has usable configuration."""
        ...

    def is_available(self, owner_id: str | None) -> bool:
        """Whether remote operations may be attempted for this owner.

        False when the backend is unconfigured or nobody is signed in.
        """
        return bool(owner_id) and self.configured

    @abstractmethod
    async def get_row(self, table: str, owner_id: str, row_id: str) -> dict[str, Any] | None:
        """Fetch one row, or None if it does not exist."""
        ...

    @abstractmethod
    async def select_rows(self, table: str, owner_id: str) -> list[dict[str, Any]]:
        """Fetch all of an owner's rows in a table, newest ``updated_at`` first."""
        ...

    @abstractmethod
    async def upsert_rows(self, table: str, rows: list[dict[str, Any]]) -> None:
        """Insert or replace rows, keyed by their ``id``."""
        ...

    @abstractmethod
    async def delete_row(self, table: str, owner_id: str, row_id: str) -> None:
        """Delete one row. Deleting a missing row is a no-op."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close connections and release resources."""
        ...

    async def load(self, owner_id: str, key: str) -> Any | None:
        """Load an owner's module state, or None if never saved."""
        row = await self.get_row(MODULE_TABLE, owner_id, module_row_id(owner_id, key))
        if row is None:
            return None
        return row.get("data")

    async def upsert(self, owner_id: str, key: str, value: Any) -> None:
        """Save an owner's module state, replacing any previous value."""
        await self.upsert_rows(MODULE_TABLE, [module_row(owner_id, key, value)])
