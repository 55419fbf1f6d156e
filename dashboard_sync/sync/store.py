"""
Synced store: local-first, debounced remote persistence for one key.

Each ``SyncedStore`` owns one logical entity and walks a three-state
lifecycle:

    UNINITIALIZED --start()--> LOADING --> READY

Load (once):
1. Remote row, if the remote store is available for the owner
2. Otherwise, or on remote absence/failure, the local cache entry
3. Otherwise the caller's default (not "loaded": the first edit is saved)

A loaded value arms a one-shot echo flag. The write-observation that
follows the load consumes it, so adopting a loaded value is never
mistaken for an edit and written back out.

Write (every observed change):
1. Local cache, synchronously, always
2. Stop here if the remote store is unavailable (local-only is success)
3. Re-arm the debounce timer; when it fires, upsert the latest value

Failures never reach the consumer. A failed remote write is logged and
leaves the local cache authoritative; nothing is retried.

Known limitation: conflicts resolve last-writer-wins. Two devices editing
the same key each upsert unconditionally, and whichever upsert lands last
replaces the row. Upserts from one store are not sequenced either, so a
slow earlier request can complete after a faster later one.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any, Generic, TypeVar

from ..config import DEFAULT_DEBOUNCE_MS
from ..exceptions import SchemaMigrationError, SyncStoreError, ValidationError
from ..local.cache import LocalCache
from ..logging_utils import SyncLoggerAdapter
from ..remote.base import RemoteStore
from ..schema import EntitySchema
from .rows import ModuleRowMapping, RowMapping

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[Any], None]


class LoadState(Enum):
    """Lifecycle of a store's one-time load."""

    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


class SyncStatus(Enum):
    """Remote sync status of a store."""

    OFFLINE = "offline"  # Remote unavailable, local cache only
    PENDING = "pending"  # Debounce timer armed
    SYNCING = "syncing"  # Upsert in flight
    SYNCED = "synced"  # Last upsert succeeded (or nothing to send)
    ERROR = "error"  # Last upsert failed


class SyncedStore(Generic[T]):
    """Sync coordinator for a single key.

    Args:
        key: Local cache key and remote module key. Must be non-empty.
        default: Value used until (or unless) a load finds one
        local: Durable local cache
        remote: Remote store, or None for local-only operation
        owner_id: Signed-in owner, or None when signed out
        mapping: Row mapping (default: per-module ``dashboard_data`` rows)
        schema: Optional schema for stamping and upgrading payloads
        debounce_ms: Quiet period before a remote write fires
        remote_timeout: Optional per-call remote timeout in seconds
    """

    def __init__(
        self,
        key: str,
        default: T,
        *,
        local: LocalCache,
        remote: RemoteStore | None = None,
        owner_id: str | None = None,
        mapping: RowMapping | None = None,
        schema: EntitySchema | None = None,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        remote_timeout: float | None = None,
    ) -> None:
        if not isinstance(key, str) or not key:
            raise ValidationError("key", "must be a non-empty string")

        self.key = key
        self.owner_id = owner_id
        self.mapping = mapping or ModuleRowMapping()
        self.schema = schema
        self._default = default
        self._value: T = default
        self._local = local
        self._remote = remote
        self._debounce = max(0, debounce_ms) / 1000.0
        self._remote_timeout = remote_timeout

        self._load_state = LoadState.UNINITIALIZED
        self._load_task: asyncio.Task[T] | None = None
        self._echo_suppressed = False
        self._edited_during_load = False

        # At most one scheduled (not yet fired) remote write per key
        self._pending: asyncio.Task[None] | None = None
        self._pending_payload: Any = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._pushing = 0
        self._last_push_failed = False

        self._listeners: list[Listener] = []
        self._disposed = False
        self._log = SyncLoggerAdapter.for_store(logger, key, owner_id)

    # Read-side properties

    @property
    def value(self) -> T:
        """Current in-memory value."""
        return self._value

    @property
    def default(self) -> T:
        return self._default

    @property
    def load_state(self) -> LoadState:
        return self._load_state

    @property
    def remote_available(self) -> bool:
        """Whether remote operations may be attempted right now."""
        if self._remote is None or self._disposed:
            return False
        return self._remote.is_available(self.owner_id)

    @property
    def pending_remote_writes(self) -> int:
        """Number of scheduled remote writes that have not fired yet (0 or 1)."""
        return 1 if self._pending is not None else 0

    @property
    def status(self) -> SyncStatus:
        """Derived sync status, for consumers that want an indicator."""
        if not self.remote_available:
            return SyncStatus.OFFLINE
        if self._pending is not None:
            return SyncStatus.PENDING
        if self._pushing:
            return SyncStatus.SYNCING
        if self._last_push_failed:
            return SyncStatus.ERROR
        return SyncStatus.SYNCED

    # Lifecycle

    def start(self) -> asyncio.Task[T]:
        """Begin the one-time load in the background.

        Idempotent: later calls return the same task and never re-enter
        loading. Requires a running event loop.
        """
        if self._load_task is None:
            loop = asyncio.get_running_loop()
            self._load_state = LoadState.LOADING
            self._load_task = loop.create_task(self._run_load())
        return self._load_task

    async def init(self) -> T:
        """Load the value (once) and return it."""
        return await self.start()

    async def settle(self) -> None:
        """Wait for the pending timer and in-flight upserts, without forcing them."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def flush(self) -> None:
        """Fire a pending remote write now and wait for in-flight ones."""
        pending = self._pending
        if pending is not None:
            pending.cancel()
            self._pending = None
            await self._push(self._pending_payload)
        await self.settle()

    async def dispose(self) -> None:
        """Finish a running load, flush outstanding writes and stop all remote activity.

        A load still in progress is awaited (bounded by ``remote_timeout``
        when set) so writes waiting on it are flushed too.
        """
        if self._disposed:
            return
        if self._load_task is not None:
            await asyncio.gather(self._load_task, return_exceptions=True)
        await self.flush()
        self._disposed = True
        self._listeners.clear()

    # Write side

    def set(self, value: T | Callable[[T], T]) -> T:
        """Replace the value, or apply an updater function to it.

        The change is persisted, then listeners are notified. A listener
        that sets a new value in response is persisted after this one.
        """
        new_value = value(self._value) if callable(value) else value
        self.on_change(new_value)
        self._notify(new_value)
        return new_value

    def on_change(self, value: T) -> None:
        """Observe that ``value`` is now current and persist it.

        The first observation after a load is the load itself and is
        skipped. Edits made before the load finishes win over the loaded
        value.
        """
        self._value = value
        if self._echo_suppressed:
            self._echo_suppressed = False
            return

        if self._load_state is not LoadState.READY:
            self._edited_during_load = True

        self._write_local(value)

        if not self.remote_available:
            return
        self._schedule_remote_write(value)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Private load methods

    async def _run_load(self) -> T:
        found, value = await self._load_from_sources()
        self._load_state = LoadState.READY
        if self._edited_during_load:
            self._log.debug(f"Discarding loaded value for {self.key}: edited while loading")
        elif found:
            self._adopt_loaded(value)
        return self._value

    async def _load_from_sources(self) -> tuple[bool, Any]:
        if self.remote_available:
            assert self._remote is not None and self.owner_id is not None
            row_id = self.mapping.row_id(self.owner_id, self.key)
            try:
                row = await self._call_remote(
                    self._remote.get_row(self.mapping.table, self.owner_id, row_id)
                )
            except Exception as e:
                self._log.warning(f"Remote load failed for {self.key}, using local cache: {e}")
            else:
                value = self.mapping.from_row(row) if row is not None else None
                if value is not None:
                    ok, upgraded = self._upgrade(value, "remote")
                    if ok:
                        return True, upgraded
        else:
            self._log.debug(f"Remote unavailable for {self.key}, loading from local cache")

        cached = self._local.get(self.key)
        if cached is not None:
            ok, upgraded = self._upgrade(cached, "local cache")
            if ok:
                return True, upgraded

        return False, None

    def _upgrade(self, payload: Any, source: str) -> tuple[bool, Any]:
        if self.schema is None:
            return True, payload
        try:
            return True, self.schema.upgrade(payload)
        except SchemaMigrationError as e:
            self._log.warning(f"Ignoring {source} value for {self.key}: {e}")
            return False, None

    def _adopt_loaded(self, value: T) -> None:
        self._echo_suppressed = True
        self.on_change(value)
        # Listeners run after the echo is consumed so their own edits are saved
        self._notify(value)

    # Private write methods

    def _encode(self, value: Any) -> Any:
        return self.schema.stamp(value) if self.schema is not None else value

    def _write_local(self, value: T) -> None:
        try:
            self._local.set(self.key, self._encode(value))
        except SyncStoreError as e:
            self._log.error(f"Local cache write failed for {self.key}: {e}")

    def _schedule_remote_write(self, value: T) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._log.warning(f"No running event loop, remote write for {self.key} skipped")
            return

        if self._pending is not None:
            self._pending.cancel()

        payload = copy.deepcopy(self._encode(value))
        self._pending_payload = payload
        task = loop.create_task(self._debounced_upsert(payload))
        self._pending = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _debounced_upsert(self, payload: Any) -> None:
        await asyncio.sleep(self._debounce)
        # Fired: from here on the write is in flight and no longer cancellable
        if self._pending is asyncio.current_task():
            self._pending = None
        await self._push(payload)

    async def _push(self, payload: Any) -> None:
        if not self.remote_available:
            return
        assert self._remote is not None and self.owner_id is not None

        self._pushing += 1
        try:
            row = self.mapping.to_row(self.owner_id, self.key, payload)
            await self._call_remote(self._remote.upsert_rows(self.mapping.table, [row]))
        except Exception as e:
            self._last_push_failed = True
            self._log.warning(
                f"Remote save failed for {self.key}, local cache remains authoritative: {e}"
            )
        else:
            self._last_push_failed = False
        finally:
            self._pushing -= 1

    async def _call_remote(self, awaitable: Any) -> Any:
        if self._remote_timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, self._remote_timeout)

    def _notify(self, value: T) -> None:
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception as e:
                self._log.warning(f"Error in change listener for {self.key}: {e}")
