"""
Versioned entity schemas.

Payloads are opaque JSON. Attaching an ``EntitySchema`` to a store stamps a
``schemaVersion`` on every write and upgrades older cached or remote
payloads on load, one migration step at a time.

Example:
    >>> schema = EntitySchema(
    ...     version=2,
    ...     migrations={
    ...         0: lambda p: {**p, "tags": []},
    ...         1: lambda p: {"title": p.get("name", ""), "tags": p["tags"]},
    ...     },
    ... )
    >>> schema.upgrade({"name": "Draft"})
    {'title': 'Draft', 'tags': [], 'schemaVersion': 2}
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from .exceptions import SchemaMigrationError

SCHEMA_VERSION_FIELD = "schemaVersion"

Migration = Callable[[dict[str, Any]], dict[str, Any]]


@dataclass(frozen=True)
class EntitySchema:
    """Current schema version plus the steps that reach it.

    Attributes:
        version: Current schema version
        migrations: Maps a version N to a function upgrading an N payload to N+1
    """

    version: int
    migrations: dict[int, Migration] = field(default_factory=dict)

    def stamp(self, payload: Any) -> Any:
        """Return a copy of the payload tagged with the current version."""
        if not isinstance(payload, dict):
            return payload
        stamped = dict(payload)
        stamped[SCHEMA_VERSION_FIELD] = self.version
        return stamped

    def upgrade(self, payload: Any) -> Any:
        """Upgrade a stored payload to the current version.

        Payloads without a version are treated as version 0. Non-dict
        payloads pass through untouched.

        Raises:
            SchemaMigrationError: If the payload is newer than this schema,
                a migration step is missing, or a step fails
        """
        if not isinstance(payload, dict):
            return payload

        found = payload.get(SCHEMA_VERSION_FIELD, 0)
        if not isinstance(found, int) or found < 0:
            raise SchemaMigrationError(0, self.version, f"invalid schema version {found!r}")
        if found > self.version:
            raise SchemaMigrationError(found, self.version, "payload is newer than this schema")

        upgraded = copy.deepcopy(payload)
        for step in range(found, self.version):
            migrate = self.migrations.get(step)
            if migrate is None:
                raise SchemaMigrationError(step, self.version, f"no migration from v{step}")
            try:
                upgraded = migrate(upgraded)
            except Exception as e:
                raise SchemaMigrationError(step, step + 1, str(e)) from e
            if not isinstance(upgraded, dict):
                raise SchemaMigrationError(step, step + 1, "migration did not return an object")
        upgraded[SCHEMA_VERSION_FIELD] = self.version
        return upgraded
