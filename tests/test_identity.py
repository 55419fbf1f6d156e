"""Tests for identity module."""

from __future__ import annotations

import tempfile
from collections.abc import Iterator
from pathlib import Path

import pytest
import yaml

from dashboard_sync.identity import (
    AuthenticationRequiredError,
    ConfigFileIdentityProvider,
    OwnerIdentity,
    StaticIdentityProvider,
)


class TestOwnerIdentity:
    """Tests for OwnerIdentity dataclass."""

    def test_to_dict(self) -> None:
        """Test serialization to dictionary."""
        identity = OwnerIdentity(user_id="user-1", display_name="Alice", email="alice@example.com")

        assert identity.to_dict() == {
            "user_id": "user-1",
            "display_name": "Alice",
            "email": "alice@example.com",
        }

    def test_from_dict(self) -> None:
        """Test deserialization with optional fields missing."""
        identity = OwnerIdentity.from_dict({"user_id": "user-2"})

        assert identity.user_id == "user-2"
        assert identity.display_name is None
        assert identity.email is None


class TestStaticIdentityProvider:
    """Tests for StaticIdentityProvider."""

    @pytest.mark.asyncio
    async def test_signed_in(self) -> None:
        provider = StaticIdentityProvider("user-1", display_name="Alice")

        identity = await provider.get_current_identity()

        assert identity.user_id == "user-1"
        assert identity.display_name == "Alice"

    @pytest.mark.asyncio
    async def test_signed_out(self) -> None:
        with pytest.raises(AuthenticationRequiredError):
            await StaticIdentityProvider().get_current_identity()

    @pytest.mark.asyncio
    async def test_sign_out(self) -> None:
        provider = StaticIdentityProvider("user-1")

        await provider.sign_out()

        with pytest.raises(AuthenticationRequiredError):
            await provider.get_current_identity()


class TestConfigFileIdentityProvider:
    """Tests for ConfigFileIdentityProvider."""

    @pytest.fixture
    def temp_config_dir(self) -> Iterator[Path]:
        """Create a temporary config directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    @pytest.mark.asyncio
    async def test_reads_identity(self, temp_config_dir: Path) -> None:
        """Test reading identity from config file."""
        config_path = temp_config_dir / "settings.yaml"
        config_path.write_text(
            yaml.dump({"identity": {"user_id": "user-abc", "display_name": "Alice", "email": "a@example.com"}})
        )

        provider = ConfigFileIdentityProvider(config_path)
        identity = await provider.get_current_identity()

        assert identity.user_id == "user-abc"
        assert identity.email == "a@example.com"

    @pytest.mark.asyncio
    async def test_missing_file(self, temp_config_dir: Path) -> None:
        """A missing settings file means nobody is signed in."""
        provider = ConfigFileIdentityProvider(temp_config_dir / "missing.yaml")

        with pytest.raises(AuthenticationRequiredError):
            await provider.get_current_identity()

    @pytest.mark.asyncio
    async def test_missing_user_id(self, temp_config_dir: Path) -> None:
        """An identity section without user_id means nobody is signed in."""
        config_path = temp_config_dir / "settings.yaml"
        config_path.write_text(yaml.dump({"identity": {"display_name": "Alice"}}))

        with pytest.raises(AuthenticationRequiredError):
            await ConfigFileIdentityProvider(config_path).get_current_identity()

    @pytest.mark.asyncio
    async def test_sign_out(self, temp_config_dir: Path) -> None:
        """After sign out the provider stops returning the identity."""
        config_path = temp_config_dir / "settings.yaml"
        config_path.write_text(yaml.dump({"identity": {"user_id": "user-abc"}}))
        provider = ConfigFileIdentityProvider(config_path)
        await provider.get_current_identity()

        await provider.sign_out()

        with pytest.raises(AuthenticationRequiredError):
            await provider.get_current_identity()
