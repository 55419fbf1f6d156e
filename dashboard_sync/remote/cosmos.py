"""
Cosmos DB remote store.

Stores each table in its own container, partitioned by ``/owner_id`` so
that every owner's rows live in one logical partition and owner-scoped
selects never fan out across partitions.

Supports multiple authentication methods:
- Key-based authentication (if org policy allows)
- Azure AD via DefaultAzureCredential
- Azure Managed Identity
- Service Principal

Authentication failures latch: after the first 401/403 the store reports
itself unavailable for the rest of the process, so the sync layer falls
back to the local cache instead of hammering the backend. A fresh store
instance retries.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from azure.cosmos import PartitionKey
from azure.cosmos.aio import ContainerProxy, CosmosClient, DatabaseProxy
from azure.cosmos.exceptions import CosmosHttpResponseError, CosmosResourceNotFoundError

from ..config import RemoteAuthMethod, SyncConfig
from ..exceptions import AuthenticationError, RemoteStoreError, StorageConnectionError
from .base import RemoteStore

logger = logging.getLogger(__name__)

PARTITION_KEY_PATH = "/owner_id"


def _get_credential(config: SyncConfig) -> Any:
    """Get the appropriate credential based on auth method.

    Args:
        config: Sync configuration with auth settings

    Returns:
        Credential object for Cosmos DB authentication

    Raises:
        AuthenticationError: If credential cannot be created
    """
    endpoint = config.remote_endpoint or "<unset>"
    auth_method = config.remote_auth_method

    if auth_method == RemoteAuthMethod.KEY:
        if not config.remote_key:
            raise AuthenticationError(endpoint, "remote_key required for KEY authentication")
        return config.remote_key

    if auth_method == RemoteAuthMethod.DEFAULT_CREDENTIAL:
        from azure.identity.aio import DefaultAzureCredential

        return DefaultAzureCredential()

    if auth_method == RemoteAuthMethod.MANAGED_IDENTITY:
        from azure.identity.aio import ManagedIdentityCredential

        # If client_id is provided, use user-assigned managed identity
        if config.azure_client_id:
            return ManagedIdentityCredential(client_id=config.azure_client_id)
        return ManagedIdentityCredential()

    if auth_method == RemoteAuthMethod.SERVICE_PRINCIPAL:
        if not all([config.azure_tenant_id, config.azure_client_id, config.azure_client_secret]):
            raise AuthenticationError(
                endpoint,
                "azure_tenant_id, azure_client_id, and azure_client_secret "
                "required for SERVICE_PRINCIPAL authentication",
            )
        from azure.identity.aio import ClientSecretCredential

        return ClientSecretCredential(
            tenant_id=config.azure_tenant_id,
            client_id=config.azure_client_id,
            client_secret=config.azure_client_secret,
        )

    raise AuthenticationError(endpoint, f"Unsupported auth method: {auth_method}")


def _strip_system_properties(doc: dict[str, Any]) -> dict[str, Any]:
    """Drop Cosmos bookkeeping fields (_rid, _etag, _ts, ...)."""
    return {k: v for k, v in doc.items() if not k.startswith("_")}


class CosmosRemoteStore(RemoteStore):
    """Cosmos DB remote store.

    Container per table, created on first use:
    {
        "id": "{row id}",
        "owner_id": "{owner}",          // partition key
        "key_or_title": "...",
        "data": {...},
        "created_at": "{iso timestamp}",
        "updated_at": "{iso timestamp}",
    }

    Indexing excludes /data/* since rows are only ever queried by owner.
    """

    def __init__(self, config: SyncConfig) -> None:
        """Initialize Cosmos DB store.

        Args:
            config: Sync configuration with Cosmos connection info
        """
        self.config = config
        self._configured = config.is_remote_configured()

        self._credential: Any = None
        self._client: CosmosClient | None = None
        self._database: DatabaseProxy | None = None
        self._containers: dict[str, ContainerProxy] = {}
        self._init_lock = asyncio.Lock()

        self._auth_failed = False
        self._auth_error_message: str | None = None

    @property
    def configured(self) -> bool:
        return self._configured and not self._auth_failed

    @property
    def auth_failed(self) -> bool:
        """True once authentication has failed; the store stays unavailable."""
        return self._auth_failed

    @property
    def auth_error_message(self) -> str | None:
        """The authentication error message, or None if auth hasn't failed."""
        return self._auth_error_message

    async def _ensure_client(self) -> DatabaseProxy:
        """Ensure client and database are initialized."""
        if self._database is not None:
            return self._database

        async with self._init_lock:
            if self._database is not None:
                return self._database

            endpoint = self.config.remote_endpoint or "<unset>"
            self._credential = _get_credential(self.config)
            try:
                self._client = CosmosClient(endpoint, credential=self._credential)
                self._database = await self._client.create_database_if_not_exists(
                    id=self.config.remote_database
                )
            except CosmosHttpResponseError as e:
                if e.status_code in (401, 403):
                    raise self._handle_auth_failure(AuthenticationError(endpoint, str(e))) from e
                raise StorageConnectionError(endpoint, e) from e
            except Exception as e:
                raise StorageConnectionError(endpoint, e) from e

            logger.info(
                f"Connected to Cosmos DB: {endpoint} "
                f"(database={self.config.remote_database}, "
                f"auth={self.config.remote_auth_method.value})"
            )
            return self._database

    async def _container(self, table: str) -> ContainerProxy:
        """Get or create the container backing a table."""
        container = self._containers.get(table)
        if container is not None:
            return container

        database = await self._ensure_client()
        try:
            container = await database.create_container_if_not_exists(
                id=table,
                partition_key=PartitionKey(path=PARTITION_KEY_PATH),
                indexing_policy=self._get_indexing_policy(),
            )
        except CosmosHttpResponseError as e:
            raise self._translate("create_container", table, e) from e
        self._containers[table] = container
        logger.info("Container created/verified", extra={"container": table, "status": "ready"})
        return container

    def _get_indexing_policy(self) -> dict[str, Any]:
        """Get the indexing policy for row containers."""
        return {
            "indexingMode": "consistent",
            "automatic": True,
            "includedPaths": [{"path": "/*"}],
            "excludedPaths": [
                {"path": "/data/*"},  # Don't index data payload
                {"path": '/"_etag"/?'},
            ],
            "compositeIndexes": [
                [
                    {"path": "/owner_id", "order": "ascending"},
                    {"path": "/updated_at", "order": "descending"},
                ],
            ],
        }

    def _translate(self, operation: str, table: str, error: CosmosHttpResponseError) -> Exception:
        """Map a Cosmos HTTP error onto the sync exception hierarchy."""
        if error.status_code in (401, 403):
            return self._handle_auth_failure(
                AuthenticationError(self.config.remote_endpoint or "<unset>", str(error))
            )
        return RemoteStoreError(operation, table, error)

    def _handle_auth_failure(self, error: AuthenticationError) -> AuthenticationError:
        """Latch the store unavailable after an authentication failure."""
        if not self._auth_failed:
            self._auth_failed = True
            self._auth_error_message = str(error)
            logger.warning(
                f"Cosmos DB authentication failed - remote sync disabled. "
                f"Data stays in the local cache. Error: {error}"
            )
        return error

    async def get_row(self, table: str, owner_id: str, row_id: str) -> dict[str, Any] | None:
        container = await self._container(table)
        try:
            doc = await container.read_item(item=row_id, partition_key=owner_id)
        except CosmosResourceNotFoundError:
            return None
        except CosmosHttpResponseError as e:
            raise self._translate("read", table, e) from e
        return _strip_system_properties(doc)

    async def select_rows(self, table: str, owner_id: str) -> list[dict[str, Any]]:
        container = await self._container(table)
        query = "SELECT * FROM c WHERE c.owner_id = @owner_id ORDER BY c.updated_at DESC"
        params: list[dict[str, Any]] = [{"name": "@owner_id", "value": owner_id}]

        rows: list[dict[str, Any]] = []
        try:
            async for doc in container.query_items(
                query=query,
                parameters=params,
                partition_key=owner_id,
            ):
                rows.append(_strip_system_properties(doc))
        except CosmosHttpResponseError as e:
            raise self._translate("select", table, e) from e
        return rows

    async def upsert_rows(self, table: str, rows: list[dict[str, Any]]) -> None:
        if not rows:
            return
        container = await self._container(table)

        docs = []
        for row in rows:
            doc = dict(row)
            doc.setdefault("created_at", doc.get("updated_at"))
            docs.append(doc)

        try:
            await asyncio.gather(*(container.upsert_item(body=doc) for doc in docs))
        except CosmosHttpResponseError as e:
            raise self._translate("upsert", table, e) from e

    async def delete_row(self, table: str, owner_id: str, row_id: str) -> None:
        container = await self._container(table)
        try:
            await container.delete_item(item=row_id, partition_key=owner_id)
        except CosmosResourceNotFoundError:
            pass  # Already deleted
        except CosmosHttpResponseError as e:
            raise self._translate("delete", table, e) from e

    async def close(self) -> None:
        """Close Cosmos connections."""
        if self._client:
            await self._client.close()
            self._client = None

        if self._credential is not None and not isinstance(self._credential, str):
            await self._credential.close()
        self._credential = None

        self._database = None
        self._containers.clear()
