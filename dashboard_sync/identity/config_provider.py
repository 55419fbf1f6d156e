"""
Config file identity provider.

Reads the signed-in owner from the local settings file.
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from ..exceptions import AuthenticationRequiredError
from .provider import IdentityProvider
from .types import OwnerIdentity

logger = logging.getLogger(__name__)


class ConfigFileIdentityProvider(IdentityProvider):
    """Identity provider that reads from local config.

    Configuration in ~/.dashboard-sync/settings.yaml:

    ```yaml
    identity:
      user_id: "user-abc123"
      display_name: "Alice"
      email: "alice@example.com"
    ```

    Without a user_id the user is treated as signed out, and the engine
    keeps everything in the local cache.
    """

    def __init__(self, config_path: Path | None = None):
        """Initialize the config file provider.

        Args:
            config_path: Path to settings.yaml. Defaults to ~/.dashboard-sync/settings.yaml
        """
        self.config_path = config_path or Path.home() / ".dashboard-sync" / "settings.yaml"
        self._identity: OwnerIdentity | None = None
        self._signed_out = False

    async def get_current_identity(self) -> OwnerIdentity:
        """Get the current owner from config.

        Returns cached identity if available, otherwise loads from config.
        """
        if self._signed_out:
            raise AuthenticationRequiredError()
        if self._identity is not None:
            return self._identity

        identity_config = self._load_config().get("identity") or {}
        user_id = identity_config.get("user_id") if isinstance(identity_config, dict) else None
        if not user_id:
            raise AuthenticationRequiredError(f"No identity configured in {self.config_path}")

        self._identity = OwnerIdentity(
            user_id=str(user_id),
            display_name=identity_config.get("display_name"),
            email=identity_config.get("email"),
        )
        return self._identity

    async def sign_out(self) -> None:
        """Clear cached identity.

        The config file is not modified; a new provider instance reads it again.
        """
        self._identity = None
        self._signed_out = True

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            return {}

        try:
            content = self.config_path.read_text()
            loaded = yaml.safe_load(content) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not read identity from {self.config_path}: {e}")
            return {}
        return loaded if isinstance(loaded, dict) else {}
