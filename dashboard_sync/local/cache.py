"""
Durable local cache.

Synchronous key -> JSON blob storage that survives restarts. This is the
ground truth whenever the remote store is unconfigured, signed out or
unreachable.

Reads are total: a missing key, an unreadable file or a malformed JSON
document all read back as absent. Writes are atomic (temp file + rename)
so a crash never leaves a half-written entry behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any
from urllib.parse import quote

from ..exceptions import StorageIOError, ValidationError

logger = logging.getLogger(__name__)


def _encode(key: str, value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError) as e:
        raise ValidationError("value", f"not JSON serializable for key {key!r}: {e}") from e


def _decode(key: str, raw: str | None) -> Any | None:
    if raw is None or not raw.strip():
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.debug(f"Malformed cache entry for {key!r}, treating as absent")
        return None


class LocalCache(ABC):
    """Synchronous key-value storage for JSON-serializable values.

    No namespacing is applied: callers pick collision-free keys.
    """

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the stored value, or None if absent or unreadable."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a value.

        Raises:
            ValidationError: If the value is not JSON serializable
            StorageIOError: If the value cannot be written
        """
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. Removing a missing key is a no-op."""
        ...


class MemoryLocalCache(LocalCache):
    """In-process cache holding serialized JSON text.

    Values are stored as text so reads hand out fresh copies, exactly like
    the file-backed cache. Survives nothing; intended for tests.
    """

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def get(self, key: str) -> Any | None:
        return _decode(key, self._entries.get(key))

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = _encode(key, value)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def set_raw(self, key: str, raw: str) -> None:
        """Store raw text without validation (used to simulate corruption)."""
        self._entries[key] = raw


class FileLocalCache(LocalCache):
    """File-backed cache with one JSON file per key.

    Directory structure:
    {base_path}/
      {url-quoted key}.json
    """

    def __init__(self, base_path: Path | str) -> None:
        self.base_path = Path(base_path).expanduser()

    def path_for(self, key: str) -> Path:
        """Get the file path for a key."""
        return self.base_path / f"{quote(key, safe='')}.json"

    def get(self, key: str) -> Any | None:
        path = self.path_for(key)
        try:
            if not path.exists():
                return None
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.debug(f"Could not read cache entry {path}: {e}")
            return None
        return _decode(key, raw)

    def set(self, key: str, value: Any) -> None:
        content = _encode(key, value)
        path = self.path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError("create_directory", str(path.parent), e) from e

        fd, temp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=".tmp_",
            suffix=".json",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, path)
        except OSError as e:
            try:
                os.remove(temp_path)
            except OSError:
                pass
            raise StorageIOError("write_json", str(path), e) from e

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageIOError("delete_json", str(path), e) from e
