"""
Sync engine configuration.

Settings come from keyword arguments, environment variables or the
``sync:`` section of a YAML settings file. ``is_remote_configured()`` is the
process-wide availability flag: when it is False the engine runs as a pure
local cache and never touches the network.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 800
DEFAULT_UNDO_LIMIT = 20
DEFAULT_DATABASE = "dashboard-sync"

# Values shipped in sample .env files that must never be mistaken for real settings.
# Prefixes match the start of the value, or of the host when it is a URL.
_PLACEHOLDER_PREFIXES = ("your-", "your_", "<", "placeholder", "changeme")
_URL_SCHEMES = ("https://", "http://")


class RemoteAuthMethod(Enum):
    """Authentication method for the Cosmos DB remote store.

    KEY: Use the account key (development, or where org policy allows)
    DEFAULT_CREDENTIAL: Use Azure DefaultAzureCredential
        - Works with Azure CLI, Managed Identity, Environment variables, etc.
    MANAGED_IDENTITY: Use Azure Managed Identity explicitly
    SERVICE_PRINCIPAL: Use Service Principal with client_id/client_secret
    """

    KEY = "key"
    DEFAULT_CREDENTIAL = "default_credential"
    MANAGED_IDENTITY = "managed_identity"
    SERVICE_PRINCIPAL = "service_principal"


def is_placeholder(value: str | None) -> bool:
    """Check whether a setting is missing or still a template placeholder."""
    if value is None or not value.strip():
        return True
    lowered = value.strip().lower()
    for scheme in _URL_SCHEMES:
        if lowered.startswith(scheme):
            lowered = lowered[len(scheme):]
            break
    if len(lowered) >= 3 and set(lowered) == {"x"}:
        return True
    return lowered.startswith(_PLACEHOLDER_PREFIXES)


@dataclass
class SyncConfig:
    """Configuration for the sync engine.

    Environment Variables:
        DASHBOARD_SYNC_ENABLE: "false" turns remote sync off entirely
        DASHBOARD_SYNC_COSMOS_ENDPOINT: Cosmos DB endpoint URL
        DASHBOARD_SYNC_COSMOS_KEY: Cosmos DB key (if using key auth)
        DASHBOARD_SYNC_COSMOS_DATABASE: Database name (default: dashboard-sync)
        DASHBOARD_SYNC_COSMOS_AUTH_METHOD: Auth method (default: key)
        DASHBOARD_SYNC_LOCAL_PATH: Directory for the durable local cache
        DASHBOARD_SYNC_DEBOUNCE_MS: Remote write debounce window (default: 800)
        DASHBOARD_SYNC_UNDO_LIMIT: Undo stack depth (default: 20)
        DASHBOARD_SYNC_REMOTE_TIMEOUT: Seconds before a remote call is abandoned
        AZURE_TENANT_ID: Azure tenant ID (for service principal)
        AZURE_CLIENT_ID: Azure client ID (for service principal/managed identity)
        AZURE_CLIENT_SECRET: Azure client secret (for service principal)

    Attributes:
        enable_sync: Whether remote sync may be used at all
        remote_endpoint: Cosmos DB endpoint URL
        remote_auth_method: Authentication method (default: KEY)
        remote_key: Cosmos DB key (only for KEY auth method)
        remote_database: Cosmos DB database name
        azure_tenant_id: Azure tenant ID (for SERVICE_PRINCIPAL)
        azure_client_id: Azure client/app ID (for SERVICE_PRINCIPAL/MANAGED_IDENTITY)
        azure_client_secret: Azure client secret (for SERVICE_PRINCIPAL)
        local_path: Directory for the durable local cache
        debounce_ms: Quiet period before a remote write fires
        undo_limit: Maximum undo entries kept per history stack
        remote_timeout: Optional per-call timeout in seconds (None = wait forever)
    """

    enable_sync: bool = True

    remote_endpoint: str | None = None
    remote_auth_method: RemoteAuthMethod = RemoteAuthMethod.KEY
    remote_key: str | None = None
    remote_database: str = DEFAULT_DATABASE

    azure_tenant_id: str | None = None
    azure_client_id: str | None = None
    azure_client_secret: str | None = None

    local_path: str | None = None

    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    undo_limit: int = DEFAULT_UNDO_LIMIT
    remote_timeout: float | None = None

    options: dict[str, Any] = field(default_factory=dict)

    @property
    def cache_dir(self) -> Path:
        """Directory used by the file-backed local cache."""
        if self.local_path:
            return Path(self.local_path).expanduser()
        return Path.home() / ".dashboard-sync" / "cache"

    def is_remote_configured(self) -> bool:
        """Check whether remote sync has usable configuration.

        Returns False when sync is disabled, the endpoint is missing or a
        placeholder, or key auth is selected without a real key.
        """
        if not self.enable_sync:
            logger.debug("Remote sync disabled by configuration")
            return False
        if is_placeholder(self.remote_endpoint):
            logger.debug("No remote endpoint configured, running local-only")
            return False
        if self.remote_auth_method == RemoteAuthMethod.KEY and is_placeholder(self.remote_key):
            logger.debug("Key auth selected but no remote key configured, running local-only")
            return False
        return True

    @classmethod
    def from_environment(cls) -> SyncConfig:
        """Create configuration from environment variables."""
        env = os.environ
        return cls._from_mapping(
            {
                "enable_sync": env.get("DASHBOARD_SYNC_ENABLE"),
                "remote_endpoint": env.get("DASHBOARD_SYNC_COSMOS_ENDPOINT"),
                "remote_auth_method": env.get("DASHBOARD_SYNC_COSMOS_AUTH_METHOD"),
                "remote_key": env.get("DASHBOARD_SYNC_COSMOS_KEY"),
                "remote_database": env.get("DASHBOARD_SYNC_COSMOS_DATABASE"),
                "azure_tenant_id": env.get("AZURE_TENANT_ID"),
                "azure_client_id": env.get("AZURE_CLIENT_ID"),
                "azure_client_secret": env.get("AZURE_CLIENT_SECRET"),
                "local_path": env.get("DASHBOARD_SYNC_LOCAL_PATH"),
                "debounce_ms": env.get("DASHBOARD_SYNC_DEBOUNCE_MS"),
                "undo_limit": env.get("DASHBOARD_SYNC_UNDO_LIMIT"),
                "remote_timeout": env.get("DASHBOARD_SYNC_REMOTE_TIMEOUT"),
            }
        )

    @classmethod
    def from_file(cls, config_path: Path) -> SyncConfig:
        """Create configuration from the ``sync:`` section of a YAML file.

        ```yaml
        sync:
          remote_endpoint: "https://acct.documents.azure.com:443/"
          remote_auth_method: default_credential
          local_path: "~/.dashboard-sync/cache"
          debounce_ms: 800
        ```

        A missing or unreadable file yields the defaults.
        """
        if not config_path.exists():
            return cls()
        try:
            content = yaml.safe_load(config_path.read_text()) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not read sync settings from {config_path}: {e}")
            return cls()
        section = content.get("sync") if isinstance(content, dict) else None
        if not isinstance(section, dict):
            return cls()
        return cls._from_mapping(section)

    @classmethod
    def _from_mapping(cls, values: dict[str, Any]) -> SyncConfig:
        """Build a config from loosely-typed values, ignoring unusable ones."""
        config = cls()

        enable = values.get("enable_sync")
        if isinstance(enable, bool):
            config.enable_sync = enable
        elif isinstance(enable, str) and enable.strip():
            config.enable_sync = enable.strip().lower() not in ("0", "false", "no", "off")

        auth = values.get("remote_auth_method")
        if auth:
            try:
                config.remote_auth_method = RemoteAuthMethod(str(auth).lower())
            except ValueError:
                logger.warning(f"Unknown remote auth method {auth!r}, using {config.remote_auth_method.value}")

        for name in (
            "remote_endpoint",
            "remote_key",
            "azure_tenant_id",
            "azure_client_id",
            "azure_client_secret",
            "local_path",
        ):
            value = values.get(name)
            if value:
                setattr(config, name, str(value))

        if values.get("remote_database"):
            config.remote_database = str(values["remote_database"])

        config.debounce_ms = _as_int(values.get("debounce_ms"), DEFAULT_DEBOUNCE_MS, minimum=0)
        config.undo_limit = _as_int(values.get("undo_limit"), DEFAULT_UNDO_LIMIT, minimum=1)

        timeout = values.get("remote_timeout")
        if timeout not in (None, ""):
            try:
                config.remote_timeout = float(timeout) if float(timeout) > 0 else None
            except (TypeError, ValueError):
                logger.warning(f"Ignoring invalid remote timeout {timeout!r}")

        return config


def _as_int(value: Any, default: int, minimum: int) -> int:
    if value in (None, ""):
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring invalid integer setting {value!r}, using {default}")
        return default
    return parsed if parsed >= minimum else default
