"""
Sync coordination: single-key stores, entity collections, and history.
"""

from .collection import SyncedCollection
from .history import HistorySnapshot, HistoryStack
from .rows import EntityRowMapping, ModuleRowMapping, RowMapping
from .store import LoadState, SyncedStore, SyncStatus

__all__ = [
    # Stores
    "SyncedStore",
    "SyncedCollection",
    "LoadState",
    "SyncStatus",
    # Row mappings
    "RowMapping",
    "ModuleRowMapping",
    "EntityRowMapping",
    # History
    "HistoryStack",
    "HistorySnapshot",
]
