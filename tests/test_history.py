"""Tests for undo/redo history and named revisions."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from dashboard_sync.local import MemoryLocalCache
from dashboard_sync.sync import HistorySnapshot, HistoryStack, SyncedStore


def make_history(local=None, default=None, **kwargs) -> tuple[SyncedStore, HistoryStack]:
    store = SyncedStore("project", default if default is not None else {"count": 0}, local=local or MemoryLocalCache())
    return store, HistoryStack(store, **kwargs)


def increment(project: dict) -> dict:
    project["count"] += 1
    return project


class TestHistorySnapshot:
    """Tests for HistorySnapshot dataclass."""

    def test_to_dict(self):
        """Test serialization to dictionary."""
        now = datetime.now(UTC)
        snap = HistorySnapshot(id="rev-1", label="Before mixdown", timestamp=now, payload={"a": 1}, summary="1 track")

        data = snap.to_dict()

        assert data == {
            "id": "rev-1",
            "label": "Before mixdown",
            "timestamp": now.isoformat(),
            "payload": {"a": 1},
            "summary": "1 track",
        }

    def test_from_dict(self):
        """Test deserialization from dictionary."""
        now = datetime.now(UTC)
        snap = HistorySnapshot.from_dict(
            {"id": "rev-2", "label": "v2", "timestamp": now.isoformat(), "payload": [1, 2]}
        )

        assert snap.id == "rev-2"
        assert snap.timestamp == now
        assert snap.payload == [1, 2]
        assert snap.summary == ""

    def test_restore_payload_is_a_copy(self):
        """Mutating a restored payload never changes the snapshot."""
        snap = HistorySnapshot(id="r", label="l", timestamp=datetime.now(UTC), payload={"tags": ["a"]})

        restored = snap.restore_payload()
        restored["tags"].append("b")

        assert snap.payload == {"tags": ["a"]}


class TestUndoRedo:
    """Tests for the bounded undo/redo stacks."""

    @pytest.mark.asyncio
    async def test_undo_restores_previous_value(self):
        """Undo steps back one edit."""
        store, history = make_history()

        history.mutate(increment)
        history.mutate(increment)
        assert store.value == {"count": 2}

        assert history.undo() is True
        assert store.value == {"count": 1}

    @pytest.mark.asyncio
    async def test_redo_reapplies(self):
        """Redo re-applies an undone edit."""
        store, history = make_history()
        history.mutate(increment)
        history.undo()

        assert history.redo() is True
        assert store.value == {"count": 1}
        assert history.can_redo is False

    @pytest.mark.asyncio
    async def test_empty_stacks_are_noops(self):
        """Undo and redo with nothing to do return False and change nothing."""
        store, history = make_history()

        assert history.undo() is False
        assert history.redo() is False
        assert store.value == {"count": 0}

    @pytest.mark.asyncio
    async def test_undo_is_bounded(self):
        """Only the most recent edits (up to the limit) can be undone."""
        store, history = make_history(limit=20)

        for _ in range(25):
            history.mutate(increment)

        assert history.undo_depth == 20
        undone = 0
        while history.undo():
            undone += 1
        assert undone == 20
        assert store.value == {"count": 5}

    @pytest.mark.asyncio
    async def test_new_edit_clears_redo(self):
        """A fresh edit after undo discards the redo stack."""
        _, history = make_history()
        history.mutate(increment)
        history.mutate(increment)
        history.undo()
        assert history.redo_depth == 1

        history.mutate(increment)

        assert history.redo_depth == 0
        assert history.redo() is False

    @pytest.mark.asyncio
    async def test_undo_does_not_push_history(self):
        """Navigation writes never create new undo entries."""
        _, history = make_history()
        history.mutate(increment)
        history.mutate(increment)

        history.undo()

        assert history.undo_depth == 1
        assert history.redo_depth == 1

    @pytest.mark.asyncio
    async def test_navigation_is_persisted(self):
        """Undo writes through the store like any edit."""
        local = MemoryLocalCache()
        _, history = make_history(local=local)
        history.mutate(increment)

        history.undo()

        assert local.get("project") == {"count": 0}

    @pytest.mark.asyncio
    async def test_listener_edit_during_undo(self):
        """An edit made by a listener while undo is applied is saved without new history."""
        local = MemoryLocalCache()
        store, history = make_history(local=local)
        history.mutate(increment)
        history.mutate(increment)

        def mark_seen(project):
            if "seen" not in project:
                history.mutate(lambda p: {**p, "seen": True})

        store.subscribe(mark_seen)
        history.undo()

        assert history.undo_depth == 1
        assert history.redo_depth == 1
        assert store.value == {"count": 1, "seen": True}
        assert local.get("project") == {"count": 1, "seen": True}

    @pytest.mark.asyncio
    async def test_updater_gets_a_copy(self):
        """History entries are deep copies, unaffected by in-place updaters."""
        store, history = make_history(default={"items": []})

        def add(project):
            project["items"].append("x")
            return project

        history.mutate(add)
        history.undo()

        assert store.value == {"items": []}

    @pytest.mark.asyncio
    async def test_clear(self):
        """Clear drops undo and redo history."""
        _, history = make_history()
        history.mutate(increment)
        history.mutate(increment)
        history.undo()

        history.clear()

        assert history.can_undo is False
        assert history.can_redo is False

    def test_invalid_limit(self):
        """A limit below one is rejected."""
        with pytest.raises(ValueError):
            make_history(limit=0)


class TestRevisions:
    """Tests for named revisions."""

    @pytest.mark.asyncio
    async def test_snapshot_records_current_value(self):
        """A snapshot captures the value at that moment."""
        _, history = make_history()
        history.mutate(increment)

        snap = history.snapshot("First pass")
        history.mutate(increment)

        assert snap.label == "First pass"
        assert snap.payload == {"count": 1}
        assert history.revisions == (snap,)

    @pytest.mark.asyncio
    async def test_summarize(self):
        """Summaries come from the summarize function unless given."""
        _, history = make_history(summarize=lambda p: f"count={p['count']}")

        assert history.snapshot("auto").summary == "count=0"
        assert history.snapshot("manual", summary="hand written").summary == "hand written"

    @pytest.mark.asyncio
    async def test_revisions_are_never_evicted(self):
        """Revisions are not bounded by the undo limit."""
        _, history = make_history(limit=2)

        for i in range(5):
            history.snapshot(f"rev {i}")

        assert [r.label for r in history.revisions] == [f"rev {i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_restore_is_undoable(self):
        """Restoring a revision is a normal edit."""
        store, history = make_history()
        snap = history.snapshot("start")
        history.mutate(increment)
        history.mutate(increment)

        history.restore(snap.id)
        assert store.value == {"count": 0}

        history.undo()
        assert store.value == {"count": 2}

    @pytest.mark.asyncio
    async def test_restore_unknown_revision(self):
        """An unknown revision id raises KeyError."""
        _, history = make_history()

        with pytest.raises(KeyError):
            history.restore("missing")

    @pytest.mark.asyncio
    async def test_revisions_persist(self):
        """Revisions stored in a revisions store are read back on load."""
        local = MemoryLocalCache()
        store = SyncedStore("project", {"count": 3}, local=local)
        revisions = SyncedStore("project_revisions", [], local=local)
        history = HistoryStack(store, revisions=revisions)
        history.snapshot("checkpoint")
        await revisions.init()

        reloaded = SyncedStore("project_revisions", [], local=local)
        later = HistoryStack(SyncedStore("project", {}, local=local), revisions=reloaded)
        assert later.revisions == ()
        await reloaded.init()

        assert [r.label for r in later.revisions] == ["checkpoint"]
        assert later.revisions[0].payload == {"count": 3}

    @pytest.mark.asyncio
    async def test_snapshot_while_revisions_load(self):
        """A snapshot taken before saved revisions are loaded is added to them."""
        local = MemoryLocalCache()
        earlier = SyncedStore("project_revisions", [], local=local)
        await earlier.init()
        HistoryStack(SyncedStore("project", {"count": 1}, local=local), revisions=earlier).snapshot("first")

        revisions = SyncedStore("project_revisions", [], local=local)
        history = HistoryStack(SyncedStore("project", {"count": 2}, local=local), revisions=revisions)
        revisions.start()
        history.snapshot("second")
        await revisions.init()

        assert [r["label"] for r in local.get("project_revisions")] == ["first", "second"]
        assert [r.label for r in history.revisions] == ["first", "second"]
        assert [r.payload for r in history.revisions] == [{"count": 1}, {"count": 2}]
