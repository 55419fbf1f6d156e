"""
Consumer-facing persistent state.

A ``PersistentState`` looks like a plain value holder. It exposes no sync
machinery: no load state, no pending writes, no errors.

    value, set_value = engine.use_persistent_state("notes", [])
    set_value(lambda notes: notes + ["buy milk"])
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any, Generic, TypeVar

from .sync.store import SyncedStore

T = TypeVar("T")


class PersistentState(Generic[T]):
    """Value plus setter over a synced store."""

    def __init__(self, store: SyncedStore[T]) -> None:
        self._store = store

    @property
    def key(self) -> str:
        return self._store.key

    @property
    def value(self) -> T:
        return self._store.value

    def set(self, value: T | Callable[[T], T]) -> T:
        """Replace the value, or apply an updater to the current one."""
        return self._store.set(value)

    def subscribe(self, listener: Callable[[T], None]) -> Callable[[], None]:
        """Call ``listener`` with every new value. Returns an unsubscribe function."""
        return self._store.subscribe(listener)

    def __iter__(self) -> Iterator[Any]:
        yield self._store.value
        yield self.set

    def __repr__(self) -> str:
        return f"PersistentState(key={self._store.key!r}, value={self._store.value!r})"
