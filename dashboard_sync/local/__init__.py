"""
Durable local cache implementations.
"""

from .cache import FileLocalCache, LocalCache, MemoryLocalCache

__all__ = [
    "LocalCache",
    "FileLocalCache",
    "MemoryLocalCache",
]
