"""
Synced collection: a list of entities, one remote row per entity.

Some features keep many independent records (projects, notes) rather than
one module blob. The whole list lives under a single local cache key while
each entity is its own remote row keyed by its ``id``. Writes are not
debounced: every call goes straight to the local cache and then the remote
store.

The local cache is written before the remote attempt, so it always holds
the latest list the consumer produced, whether or not the remote accepted
it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..exceptions import SyncStoreError, ValidationError
from ..local.cache import LocalCache
from ..logging_utils import SyncLoggerAdapter
from ..remote.base import RemoteStore, utc_now_iso
from .rows import RowMapping

logger = logging.getLogger(__name__)

Entity = dict[str, Any]


class SyncedCollection:
    """Local-first store for a collection of entities.

    Args:
        local_key: Local cache key holding the entity list
        mapping: Row mapping for the remote table (entity id = row id)
        local: Durable local cache
        remote: Remote store, or None for local-only operation
        owner_id: Signed-in owner, or None when signed out
        touch: Stamp ``updatedAt`` on every upsert
        remote_timeout: Optional per-call remote timeout in seconds
    """

    def __init__(
        self,
        local_key: str,
        mapping: RowMapping,
        *,
        local: LocalCache,
        remote: RemoteStore | None = None,
        owner_id: str | None = None,
        touch: bool = False,
        remote_timeout: float | None = None,
    ) -> None:
        if not isinstance(local_key, str) or not local_key:
            raise ValidationError("local_key", "must be a non-empty string")

        self.local_key = local_key
        self.mapping = mapping
        self.owner_id = owner_id
        self.touch = touch
        self._local = local
        self._remote = remote
        self._remote_timeout = remote_timeout
        self._log = SyncLoggerAdapter.for_store(logger, local_key, owner_id)

    @property
    def remote_available(self) -> bool:
        if self._remote is None:
            return False
        return self._remote.is_available(self.owner_id)

    def local_entities(self) -> list[Entity]:
        """Entities currently in the local cache (malformed entries dropped)."""
        cached = self._local.get(self.local_key)
        if not isinstance(cached, list):
            return []
        return [entity for entity in cached if isinstance(entity, dict)]

    async def fetch(self) -> list[Entity]:
        """Fetch all entities, newest first.

        Remote rows win when the remote store is available; otherwise, or
        if the remote read fails, the local cache list is returned.
        """
        if not self.remote_available:
            return self.local_entities()

        assert self._remote is not None and self.owner_id is not None
        try:
            rows = await self._call_remote(self._remote.select_rows(self.mapping.table, self.owner_id))
        except Exception as e:
            self._log.warning(f"Load of {self.mapping.table} failed, using local cache: {e}")
            return self.local_entities()

        entities = []
        for row in rows:
            entity = self.mapping.from_row(row)
            if entity is not None:
                entities.append(entity)
        return entities

    async def upsert(self, entity: Entity) -> Entity:
        """Insert or replace an entity. Returns the entity as stored."""
        entity_id = self._entity_id(entity)
        stored = dict(entity)
        if self.touch:
            stored["updatedAt"] = utc_now_iso()

        merged = [stored] + [e for e in self.local_entities() if e.get("id") != entity_id]
        self._save_local(merged)

        if self.remote_available:
            assert self._remote is not None and self.owner_id is not None
            row = self.mapping.to_row(self.owner_id, entity_id, stored)
            try:
                await self._call_remote(self._remote.upsert_rows(self.mapping.table, [row]))
            except Exception as e:
                self._log.warning(f"Upsert of {entity_id} failed, saved locally: {e}")
        return stored

    async def delete(self, entity_id: str) -> None:
        """Remove an entity locally and remotely."""
        self._save_local([e for e in self.local_entities() if e.get("id") != entity_id])

        if self.remote_available:
            assert self._remote is not None and self.owner_id is not None
            row_id = self.mapping.row_id(self.owner_id, entity_id)
            try:
                await self._call_remote(self._remote.delete_row(self.mapping.table, self.owner_id, row_id))
            except Exception as e:
                self._log.warning(f"Delete of {entity_id} failed, updated local cache: {e}")

    async def replace_all(self, entities: list[Entity]) -> None:
        """Replace the local list and bulk-upsert every entity remotely.

        Remote rows for entities missing from ``entities`` are left alone.
        """
        rows_input = [(self._entity_id(entity), entity) for entity in entities]
        self._save_local([dict(entity) for _, entity in rows_input])

        if self.remote_available and rows_input:
            assert self._remote is not None and self.owner_id is not None
            rows = [self.mapping.to_row(self.owner_id, eid, entity) for eid, entity in rows_input]
            try:
                await self._call_remote(self._remote.upsert_rows(self.mapping.table, rows))
            except Exception as e:
                self._log.warning(f"Bulk upsert to {self.mapping.table} failed, saved locally: {e}")

    def _entity_id(self, entity: Entity) -> str:
        entity_id = entity.get("id") if isinstance(entity, dict) else None
        if not isinstance(entity_id, str) or not entity_id:
            raise ValidationError("id", "entities must carry a non-empty string id")
        return entity_id

    def _save_local(self, entities: list[Entity]) -> None:
        try:
            self._local.set(self.local_key, entities)
        except SyncStoreError as e:
            self._log.error(f"Local cache write failed for {self.local_key}: {e}")

    async def _call_remote(self, awaitable: Any) -> Any:
        if self._remote_timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, self._remote_timeout)
