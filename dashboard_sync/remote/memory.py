"""
In-process remote store.

Behaves like the real backend (unique row ids, owner scoping, newest-first
selects) without a network. Every upsert call is recorded so callers can
check how many remote writes a burst of edits produced.
"""

from __future__ import annotations

import copy
from typing import Any

from .base import RemoteStore, utc_now_iso


class MemoryRemoteStore(RemoteStore):
    """Dict-backed remote store for development and tests."""

    def __init__(self, available: bool = True) -> None:
        self.available = available
        self._rows: dict[tuple[str, str], dict[str, Any]] = {}
        self.upsert_calls: list[tuple[str, list[dict[str, Any]]]] = []
        self.closed = False

    @property
    def configured(self) -> bool:
        return self.available

    async def get_row(self, table: str, owner_id: str, row_id: str) -> dict[str, Any] | None:
        row = self._rows.get((table, row_id))
        if row is None or row.get("owner_id") != owner_id:
            return None
        return copy.deepcopy(row)

    async def select_rows(self, table: str, owner_id: str) -> list[dict[str, Any]]:
        rows = [
            copy.deepcopy(row)
            for (row_table, _), row in self._rows.items()
            if row_table == table and row.get("owner_id") == owner_id
        ]
        rows.sort(key=lambda r: r.get("updated_at") or "", reverse=True)
        return rows

    async def upsert_rows(self, table: str, rows: list[dict[str, Any]]) -> None:
        self.upsert_calls.append((table, copy.deepcopy(rows)))
        for row in rows:
            stored = copy.deepcopy(row)
            stored.setdefault("updated_at", utc_now_iso())
            if not stored.get("created_at"):
                existing = self._rows.get((table, row["id"]))
                stored["created_at"] = (existing or {}).get("created_at") or stored["updated_at"]
            self._rows[(table, row["id"])] = stored

    async def delete_row(self, table: str, owner_id: str, row_id: str) -> None:
        row = self._rows.get((table, row_id))
        if row is not None and row.get("owner_id") == owner_id:
            del self._rows[(table, row_id)]

    async def close(self) -> None:
        self.closed = True

    def row_count(self, table: str | None = None) -> int:
        """Number of stored rows, optionally limited to one table."""
        if table is None:
            return len(self._rows)
        return sum(1 for row_table, _ in self._rows if row_table == table)
