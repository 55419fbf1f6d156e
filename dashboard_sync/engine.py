"""
Sync engine: wires the local cache, remote store, and owner identity.

The engine is the one object an application holds. It hands out one
``SyncedStore`` per key, so a key never has two coordinators (and never two
debounce timers), plus collections and history stacks bound to the same
backends.

Usage:

    >>> config = SyncConfig.from_environment()
    >>> async with await SyncEngine.from_config(config, identity=provider) as engine:
    ...     notes = engine.use_persistent_state("notes", [])
    ...     notes.set(lambda items: items + ["buy milk"])
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, TypeVar

from .config import DEFAULT_DEBOUNCE_MS, DEFAULT_UNDO_LIMIT, SyncConfig
from .exceptions import AuthenticationRequiredError
from .identity.provider import IdentityProvider
from .local.cache import FileLocalCache, LocalCache
from .remote.base import RemoteStore
from .schema import EntitySchema
from .state import PersistentState
from .sync.collection import SyncedCollection
from .sync.history import HistoryStack
from .sync.rows import RowMapping
from .sync.store import SyncedStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SyncEngine:
    """Factory and owner of all stores for one signed-in (or anonymous) user.

    Args:
        local: Durable local cache
        remote: Remote store, or None for local-only operation
        owner_id: Signed-in owner, or None when signed out
        debounce_ms: Quiet period before a store's remote write fires
        undo_limit: Default undo depth for history stacks
        remote_timeout: Optional per-call remote timeout in seconds
    """

    def __init__(
        self,
        local: LocalCache,
        remote: RemoteStore | None = None,
        owner_id: str | None = None,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        undo_limit: int = DEFAULT_UNDO_LIMIT,
        remote_timeout: float | None = None,
    ) -> None:
        self.local = local
        self.remote = remote
        self.owner_id = owner_id
        self.debounce_ms = debounce_ms
        self.undo_limit = undo_limit
        self.remote_timeout = remote_timeout

        self._stores: dict[str, SyncedStore[Any]] = {}
        self._collections: dict[str, SyncedCollection] = {}
        self._closed = False

    @classmethod
    async def from_config(
        cls,
        config: SyncConfig,
        identity: IdentityProvider | None = None,
    ) -> SyncEngine:
        """Build an engine from configuration.

        The remote store is only created when remote sync is configured. The
        owner is resolved once; an unauthenticated user gets a local-only
        engine.
        """
        local = FileLocalCache(config.cache_dir)

        remote: RemoteStore | None = None
        if config.is_remote_configured():
            from .remote.cosmos import CosmosRemoteStore

            remote = CosmosRemoteStore(config)

        owner_id: str | None = None
        if identity is not None:
            try:
                owner_id = (await identity.get_current_identity()).user_id
            except AuthenticationRequiredError:
                logger.debug("No signed-in user, remote sync disabled for this engine")

        return cls(
            local,
            remote=remote,
            owner_id=owner_id,
            debounce_ms=config.debounce_ms,
            undo_limit=config.undo_limit,
            remote_timeout=config.remote_timeout,
        )

    @property
    def remote_available(self) -> bool:
        if self.remote is None or self._closed:
            return False
        return self.remote.is_available(self.owner_id)

    def store(
        self,
        key: str,
        default: T,
        *,
        mapping: RowMapping | None = None,
        schema: EntitySchema | None = None,
    ) -> SyncedStore[T]:
        """Get the store for a key, creating it on first use.

        Later calls for the same key return the existing store; their
        ``default``, ``mapping`` and ``schema`` are ignored.
        """
        existing = self._stores.get(key)
        if existing is not None:
            return existing

        store: SyncedStore[T] = SyncedStore(
            key,
            default,
            local=self.local,
            remote=self.remote,
            owner_id=self.owner_id,
            mapping=mapping,
            schema=schema,
            debounce_ms=self.debounce_ms,
            remote_timeout=self.remote_timeout,
        )
        self._stores[key] = store
        return store

    def use_persistent_state(
        self,
        key: str,
        default: T,
        *,
        schema: EntitySchema | None = None,
    ) -> PersistentState[T]:
        """Persistent state for a key, returned immediately.

        The value starts at ``default`` (or the value already loaded) and the
        one-time load runs in the background. Must be called from a running
        event loop.
        """
        store = self.store(key, default, schema=schema)
        store.start()
        return PersistentState(store)

    async def open_state(
        self,
        key: str,
        default: T,
        *,
        schema: EntitySchema | None = None,
    ) -> PersistentState[T]:
        """Persistent state for a key, after its load has finished."""
        store = self.store(key, default, schema=schema)
        await store.init()
        return PersistentState(store)

    def collection(self, local_key: str, mapping: RowMapping, touch: bool = False) -> SyncedCollection:
        """Get the collection stored under ``local_key``, creating it on first use."""
        existing = self._collections.get(local_key)
        if existing is not None:
            return existing

        collection = SyncedCollection(
            local_key,
            mapping,
            local=self.local,
            remote=self.remote,
            owner_id=self.owner_id,
            touch=touch,
            remote_timeout=self.remote_timeout,
        )
        self._collections[local_key] = collection
        return collection

    def history(
        self,
        store: SyncedStore[T],
        revisions_key: str | None = None,
        summarize: Any = None,
    ) -> HistoryStack[T]:
        """Create an undo/redo history over a store.

        With ``revisions_key``, named revisions are persisted in their own
        store under that key. Snapshots taken before that store has loaded
        are merged into the saved revisions.
        """
        revisions = None
        if revisions_key is not None:
            revisions = self.store(revisions_key, [])
            revisions.start()
        return HistoryStack(store, limit=self.undo_limit, revisions=revisions, summarize=summarize)

    async def flush(self) -> None:
        """Fire all pending remote writes and wait for them."""
        await asyncio.gather(*(store.flush() for store in list(self._stores.values())))

    async def close(self) -> None:
        """Flush and dispose every store, then close the remote store."""
        if self._closed:
            return
        await asyncio.gather(*(store.dispose() for store in list(self._stores.values())))
        self._closed = True
        if self.remote is not None:
            await self.remote.close()
        logger.debug(f"Sync engine closed ({len(self._stores)} stores)")

    async def __aenter__(self) -> SyncEngine:
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
