"""
Remote store adapters.

The Cosmos DB store is imported lazily so that local-only installs and
tests never load the Azure SDK.
"""

from .base import MODULE_TABLE, RemoteStore, module_row, module_row_id, utc_now_iso
from .memory import MemoryRemoteStore

__all__ = [
    "RemoteStore",
    "MemoryRemoteStore",
    "MODULE_TABLE",
    "module_row",
    "module_row_id",
    "utc_now_iso",
]
