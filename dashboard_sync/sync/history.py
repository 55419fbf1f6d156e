"""
Undo/redo history and named revisions on top of a synced store.

Two independent histories:

- The undo stack holds deep copies of the entity taken before each edit.
  It is bounded (oldest entries evicted) and any fresh edit clears the
  redo stack.
- Revisions are named, user-triggered snapshots. They are append-only and
  never evicted.

Every history navigation (undo, redo) writes the restored value through the
store's normal path, so it is persisted like any edit. Writes made while a
navigation is being applied never push new undo entries.
"""

from __future__ import annotations

import asyncio
import copy
import uuid
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from ..config import DEFAULT_UNDO_LIMIT
from .store import LoadState, SyncedStore

T = TypeVar("T")


@dataclass(frozen=True)
class HistorySnapshot:
    """A named, immutable copy of an entity's state."""

    id: str
    label: str
    timestamp: datetime
    payload: Any
    summary: str = ""

    def restore_payload(self) -> Any:
        """Deep copy of the payload, safe to hand to the store."""
        return copy.deepcopy(self.payload)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "label": self.label,
            "timestamp": self.timestamp.isoformat(),
            "payload": copy.deepcopy(self.payload),
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistorySnapshot:
        """Deserialize from dictionary."""
        return cls(
            id=data["id"],
            label=data.get("label", ""),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            payload=copy.deepcopy(data.get("payload")),
            summary=data.get("summary", ""),
        )


@dataclass
class _Stacks:
    undo: deque[Any]
    redo: list[Any] = field(default_factory=list)


class HistoryStack(Generic[T]):
    """Bounded undo/redo plus append-only revisions for one store.

    Args:
        store: The store whose value is being edited
        limit: Maximum undo entries kept
        revisions: Optional store persisting revisions as a list of dicts
        summarize: Optional function producing a revision summary from a value
    """

    def __init__(
        self,
        store: SyncedStore[T],
        *,
        limit: int = DEFAULT_UNDO_LIMIT,
        revisions: SyncedStore[list[dict[str, Any]]] | None = None,
        summarize: Callable[[T], str] | None = None,
    ) -> None:
        if limit < 1:
            raise ValueError("History limit must be at least 1")
        self._store = store
        self.limit = limit
        self._stacks = _Stacks(undo=deque(maxlen=limit))
        self._navigating = False
        self._summarize = summarize
        self._revisions_store = revisions
        self._revisions: list[HistorySnapshot] = []
        self._save_deferred = False
        if revisions is not None:
            self._revisions = self._read_revisions(revisions.value)
            revisions.subscribe(self._on_revisions_loaded)

    @property
    def value(self) -> T:
        return self._store.value

    @property
    def undo_depth(self) -> int:
        return len(self._stacks.undo)

    @property
    def redo_depth(self) -> int:
        return len(self._stacks.redo)

    @property
    def can_undo(self) -> bool:
        return bool(self._stacks.undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._stacks.redo)

    @property
    def revisions(self) -> tuple[HistorySnapshot, ...]:
        """Named revisions, oldest first."""
        return tuple(self._revisions)

    def mutate(self, updater: Callable[[T], T]) -> T:
        """Apply an edit, recording the previous state for undo.

        The updater receives a deep copy of the current value. Called while
        an undo/redo is being applied, the edit is written without touching
        the undo or redo stacks.
        """
        current = self._store.value
        if not self._navigating:
            self._stacks.undo.append(copy.deepcopy(current))
            self._stacks.redo.clear()
        return self._store.set(updater(copy.deepcopy(current)))

    def undo(self) -> bool:
        """Step back one edit. Returns False if there is nothing to undo."""
        if not self._stacks.undo:
            return False
        self._stacks.redo.append(copy.deepcopy(self._store.value))
        self._apply_navigation(self._stacks.undo.pop())
        return True

    def redo(self) -> bool:
        """Re-apply the last undone edit. Returns False if there is nothing to redo."""
        if not self._stacks.redo:
            return False
        self._stacks.undo.append(copy.deepcopy(self._store.value))
        self._apply_navigation(self._stacks.redo.pop())
        return True

    def clear(self) -> None:
        """Drop undo and redo history. Revisions are kept."""
        self._stacks.undo.clear()
        self._stacks.redo.clear()

    def snapshot(self, label: str, summary: str | None = None) -> HistorySnapshot:
        """Record a named revision of the current value."""
        payload = copy.deepcopy(self._store.value)
        if summary is None:
            summary = self._summarize(payload) if self._summarize is not None else ""
        snap = HistorySnapshot(
            id=str(uuid.uuid4()),
            label=label,
            timestamp=datetime.now(UTC),
            payload=payload,
            summary=summary,
        )
        self._revisions.append(snap)
        if self._revisions_store is not None:
            self._save_revisions(self._revisions_store)
        return snap

    def restore(self, snapshot_id: str) -> T:
        """Adopt a revision's payload as a new, undoable edit.

        Raises:
            KeyError: If no revision has this id
        """
        for snap in self._revisions:
            if snap.id == snapshot_id:
                return self.mutate(lambda _: snap.restore_payload())
        raise KeyError(snapshot_id)

    def _apply_navigation(self, value: T) -> None:
        with self._navigation():
            self._store.set(value)

    @contextmanager
    def _navigation(self) -> Iterator[None]:
        previous = self._navigating
        self._navigating = True
        try:
            yield
        finally:
            self._navigating = previous

    def _save_revisions(self, store: SyncedStore[list[dict[str, Any]]]) -> None:
        # Saving before the load finishes would discard the persisted list,
        # so wait for it and save the merged result instead.
        if store.load_state is LoadState.READY:
            store.set([r.to_dict() for r in self._revisions])
            return
        if self._save_deferred:
            return
        try:
            load = store.start()
        except RuntimeError:
            store.set([r.to_dict() for r in self._revisions])
            return
        self._save_deferred = True
        load.add_done_callback(self._save_after_load)

    def _save_after_load(self, load: asyncio.Task[Any]) -> None:
        self._save_deferred = False
        if load.cancelled() or self._revisions_store is None:
            return
        self._revisions_store.set([r.to_dict() for r in self._revisions])

    def _on_revisions_loaded(self, value: list[dict[str, Any]]) -> None:
        loaded = self._read_revisions(value)
        known = {r.id for r in loaded}
        self._revisions = loaded + [r for r in self._revisions if r.id not in known]

    @staticmethod
    def _read_revisions(value: Any) -> list[HistorySnapshot]:
        if not isinstance(value, list):
            return []
        revisions = []
        for item in value:
            try:
                revisions.append(HistorySnapshot.from_dict(item))
            except (KeyError, TypeError, ValueError):
                continue
        return revisions
