"""Tests for versioned entity schemas."""

import pytest

from dashboard_sync.exceptions import SchemaMigrationError
from dashboard_sync.schema import SCHEMA_VERSION_FIELD, EntitySchema


@pytest.fixture
def schema() -> EntitySchema:
    return EntitySchema(
        version=2,
        migrations={
            0: lambda p: {**p, "tags": []},
            1: lambda p: {"title": p.get("name", ""), "tags": p["tags"]},
        },
    )


class TestEntitySchema:
    """Tests for EntitySchema."""

    def test_stamp(self, schema):
        """Stamping adds the version without changing the input."""
        payload = {"title": "Draft"}

        stamped = schema.stamp(payload)

        assert stamped == {"title": "Draft", SCHEMA_VERSION_FIELD: 2}
        assert payload == {"title": "Draft"}

    def test_upgrade_unversioned(self, schema):
        """Payloads without a version start at version 0."""
        assert schema.upgrade({"name": "Draft"}) == {"title": "Draft", "tags": [], SCHEMA_VERSION_FIELD: 2}

    def test_upgrade_partial(self, schema):
        """Only the missing steps are applied."""
        upgraded = schema.upgrade({"name": "Draft", "tags": ["x"], SCHEMA_VERSION_FIELD: 1})
        assert upgraded == {"title": "Draft", "tags": ["x"], SCHEMA_VERSION_FIELD: 2}

    def test_current_version_unchanged(self, schema):
        """A current payload passes through."""
        payload = {"title": "Draft", "tags": [], SCHEMA_VERSION_FIELD: 2}
        assert schema.upgrade(payload) == payload

    def test_non_dict_passes_through(self, schema):
        """Lists and scalars are not versioned."""
        assert schema.upgrade([1, 2]) == [1, 2]
        assert schema.stamp("x") == "x"

    def test_newer_payload(self, schema):
        """A payload from the future cannot be read."""
        with pytest.raises(SchemaMigrationError):
            schema.upgrade({SCHEMA_VERSION_FIELD: 3})

    def test_missing_step(self):
        """A gap in the migration chain is an error."""
        schema = EntitySchema(version=2, migrations={0: lambda p: p})

        with pytest.raises(SchemaMigrationError) as exc_info:
            schema.upgrade({})

        assert exc_info.value.from_version == 1

    def test_failing_step(self):
        """An exception inside a migration is wrapped."""
        schema = EntitySchema(version=1, migrations={0: lambda p: p["missing"]})

        with pytest.raises(SchemaMigrationError):
            schema.upgrade({})

    def test_invalid_version(self, schema):
        """A non-integer version is rejected."""
        with pytest.raises(SchemaMigrationError):
            schema.upgrade({SCHEMA_VERSION_FIELD: "two"})
