"""
Row mappings between entity values and remote rows.

Feature modules differ only in how their values map onto remote rows: a
per-module singleton keyed by ``(owner_id, module_key)``, or one row per
entity keyed by the entity id. The sync logic is shared; the mapping is
the only thing a feature supplies.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from ..remote.base import MODULE_TABLE, module_row, module_row_id, utc_now_iso


class RowMapping(ABC):
    """Maps values to remote rows of one table and back."""

    table: str

    @abstractmethod
    def row_id(self, owner_id: str, key: str) -> str:
        """Remote row id for a key (module key or entity id)."""
        ...

    @abstractmethod
    def to_row(self, owner_id: str, key: str, value: Any) -> dict[str, Any]:
        """Build the remote row for a value."""
        ...

    @abstractmethod
    def from_row(self, row: dict[str, Any]) -> Any | None:
        """Extract the value from a remote row; None means absent."""
        ...


class ModuleRowMapping(RowMapping):
    """Per-module singleton state in the ``dashboard_data`` table.

    The conflict target is the composite ``(owner_id, module_key)``, folded
    into the row id so repeated saves update one row.
    """

    def __init__(self, table: str = MODULE_TABLE) -> None:
        self.table = table

    def row_id(self, owner_id: str, key: str) -> str:
        return module_row_id(owner_id, key)

    def to_row(self, owner_id: str, key: str, value: Any) -> dict[str, Any]:
        return module_row(owner_id, key, value)

    def from_row(self, row: dict[str, Any]) -> Any | None:
        return row.get("data")


class EntityRowMapping(RowMapping):
    """One row per entity, keyed by the entity's ``id``.

    Entities use camelCase timestamps (``createdAt``/``updatedAt``); rows use
    snake_case columns. ``extra_columns`` flattens selected entity fields
    into their own columns (entity field -> column name). On read, row
    columns take precedence over the ``data`` payload.
    """

    def __init__(
        self,
        table: str,
        title_field: str = "title",
        extra_columns: Mapping[str, str] | None = None,
    ) -> None:
        self.table = table
        self.title_field = title_field
        self.extra_columns = dict(extra_columns or {})

    def row_id(self, owner_id: str, key: str) -> str:
        return key

    def to_row(self, owner_id: str, key: str, value: Any) -> dict[str, Any]:
        now = utc_now_iso()
        row = {
            "id": key,
            "owner_id": owner_id,
            "key_or_title": value.get(self.title_field) or key,
            "data": value,
            "created_at": value.get("createdAt") or now,
            "updated_at": value.get("updatedAt") or now,
        }
        for entity_field, column in self.extra_columns.items():
            if entity_field in value:
                row[column] = value[entity_field]
        return row

    def from_row(self, row: dict[str, Any]) -> Any | None:
        data = row.get("data")
        entity = dict(data) if isinstance(data, dict) else {}
        entity["id"] = row.get("id", entity.get("id"))
        for entity_field, column in self.extra_columns.items():
            if row.get(column) is not None:
                entity[entity_field] = row[column]
        now = utc_now_iso()
        entity["createdAt"] = row.get("created_at") or entity.get("createdAt") or now
        entity["updatedAt"] = row.get("updated_at") or entity.get("updatedAt") or now
        return entity
