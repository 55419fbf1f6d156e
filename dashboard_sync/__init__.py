"""
Dashboard Sync

Local-first state persistence with debounced, optimistic cloud sync.

Provides:
- Durable local cache (atomic JSON files) that is always written first
- Debounced remote upserts to Cosmos DB, scoped by signed-in owner
- Silent fallback to local-only operation when offline or signed out
- Undo/redo history and named revisions
- Versioned entity schemas with on-load migration

Usage:

    >>> from dashboard_sync import SyncConfig, SyncEngine
    >>> from dashboard_sync.identity import ConfigFileIdentityProvider
    >>> config = SyncConfig.from_environment()
    >>> async with await SyncEngine.from_config(config, ConfigFileIdentityProvider()) as engine:
    ...     settings, set_settings = engine.use_persistent_state("settings", {"theme": "dark"})
    ...     set_settings(lambda s: {**s, "theme": "light"})

Local-only:

    from dashboard_sync import FileLocalCache, SyncEngine

    engine = SyncEngine(FileLocalCache("~/.dashboard-sync/cache"))
"""

# Configuration
from .config import RemoteAuthMethod, SyncConfig

# Engine and consumer API
from .engine import SyncEngine

# Exceptions
from .exceptions import (
    AuthenticationError,
    AuthenticationRequiredError,
    RemoteStoreError,
    SchemaMigrationError,
    StorageConnectionError,
    StorageIOError,
    SyncStoreError,
    ValidationError,
)

# Identity
from .identity import IdentityProvider, OwnerIdentity, StaticIdentityProvider

# Local cache
from .local import FileLocalCache, LocalCache, MemoryLocalCache

# Remote stores
from .remote import MODULE_TABLE, MemoryRemoteStore, RemoteStore
from .schema import EntitySchema
from .state import PersistentState

# Sync coordination
from .sync import (
    EntityRowMapping,
    HistorySnapshot,
    HistoryStack,
    LoadState,
    ModuleRowMapping,
    RowMapping,
    SyncedCollection,
    SyncedStore,
    SyncStatus,
)

__version__ = "0.1.0"

__all__ = [
    # Engine
    "SyncEngine",
    "PersistentState",
    # Configuration
    "SyncConfig",
    "RemoteAuthMethod",
    # Sync
    "SyncedStore",
    "SyncedCollection",
    "LoadState",
    "SyncStatus",
    "RowMapping",
    "ModuleRowMapping",
    "EntityRowMapping",
    "HistoryStack",
    "HistorySnapshot",
    "EntitySchema",
    # Backends
    "LocalCache",
    "FileLocalCache",
    "MemoryLocalCache",
    "RemoteStore",
    "MemoryRemoteStore",
    "MODULE_TABLE",
    # Identity
    "IdentityProvider",
    "OwnerIdentity",
    "StaticIdentityProvider",
    # Exceptions
    "SyncStoreError",
    "StorageIOError",
    "RemoteStoreError",
    "StorageConnectionError",
    "AuthenticationError",
    "AuthenticationRequiredError",
    "ValidationError",
    "SchemaMigrationError",
]
