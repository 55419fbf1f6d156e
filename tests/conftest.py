"""
Shared test configuration and fixtures.

Provides local caches, an in-memory remote store, and remote doubles that
fail or stall on demand so sync behaviour can be tested without a network.
"""

from __future__ import annotations

import asyncio
import tempfile
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from dashboard_sync.exceptions import RemoteStoreError
from dashboard_sync.local import FileLocalCache, MemoryLocalCache
from dashboard_sync.remote import MemoryRemoteStore


class CountingLocalCache(MemoryLocalCache):
    """Memory cache that records every write."""

    def __init__(self) -> None:
        super().__init__()
        self.set_calls: list[tuple[str, Any]] = []

    def set(self, key: str, value: Any) -> None:
        self.set_calls.append((key, value))
        super().set(key, value)


class FailingRemoteStore(MemoryRemoteStore):
    """Remote store that is available but rejects every operation."""

    def __init__(self) -> None:
        super().__init__(available=True)
        self.attempts = 0

    def _fail(self, operation: str, table: str) -> None:
        self.attempts += 1
        raise RemoteStoreError(operation, table, ConnectionError("network unreachable"))

    async def get_row(self, table: str, owner_id: str, row_id: str) -> dict[str, Any] | None:
        self._fail("read", table)
        return None

    async def select_rows(self, table: str, owner_id: str) -> list[dict[str, Any]]:
        self._fail("select", table)
        return []

    async def upsert_rows(self, table: str, rows: list[dict[str, Any]]) -> None:
        self._fail("upsert", table)

    async def delete_row(self, table: str, owner_id: str, row_id: str) -> None:
        self._fail("delete", table)


class SlowRemoteStore(MemoryRemoteStore):
    """Remote store whose reads and writes block until released.

    ``read_started``/``upsert_started`` are set when a call begins;
    ``release()`` lets all blocked calls through.
    """

    def __init__(self) -> None:
        super().__init__(available=True)
        self.read_started = asyncio.Event()
        self.upsert_started = asyncio.Event()
        self._gate = asyncio.Event()
        self.completed_upserts: list[list[dict[str, Any]]] = []

    def release(self) -> None:
        self._gate.set()

    async def get_row(self, table: str, owner_id: str, row_id: str) -> dict[str, Any] | None:
        self.read_started.set()
        await self._gate.wait()
        return await super().get_row(table, owner_id, row_id)

    async def upsert_rows(self, table: str, rows: list[dict[str, Any]]) -> None:
        self.upsert_started.set()
        await self._gate.wait()
        await super().upsert_rows(table, rows)
        self.completed_upserts.append(rows)


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def file_cache(temp_dir: Path) -> FileLocalCache:
    return FileLocalCache(temp_dir / "cache")


@pytest.fixture
def local() -> CountingLocalCache:
    return CountingLocalCache()


@pytest.fixture
def remote() -> MemoryRemoteStore:
    return MemoryRemoteStore()


@pytest.fixture
def failing_remote() -> FailingRemoteStore:
    return FailingRemoteStore()


@pytest.fixture
def slow_remote() -> SlowRemoteStore:
    return SlowRemoteStore()
