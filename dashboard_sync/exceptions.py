"""
Custom exceptions for the sync engine.

Leaf adapters (local cache, remote stores, schema migrations) raise these.
The sync layer catches them, logs them and falls back; only programming
errors such as an empty key ever reach a consumer.
"""


class SyncStoreError(Exception):
    """Base exception for all sync engine errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StorageIOError(SyncStoreError):
    """Raised when a local cache I/O operation fails."""

    def __init__(self, operation: str, path: str | None = None, cause: Exception | None = None):
        details = {"operation": operation}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
        message = f"Storage I/O error during {operation}"
        if path:
            message += f": {path}"
        super().__init__(message, details)
        self.operation = operation
        self.path = path
        self.cause = cause


class RemoteStoreError(SyncStoreError):
    """Raised when a remote store operation fails."""

    def __init__(self, operation: str, table: str | None = None, cause: Exception | None = None):
        details = {"operation": operation}
        if table:
            details["table"] = table
        if cause:
            details["cause"] = str(cause)
        message = f"Remote store error during {operation}"
        if table:
            message += f" on {table}"
        if cause:
            message += f": {cause}"
        super().__init__(message, details)
        self.operation = operation
        self.table = table
        self.cause = cause


class StorageConnectionError(RemoteStoreError):
    """Raised when connection to the remote store fails.

    Note: Named StorageConnectionError to avoid shadowing the builtin ConnectionError.
    """

    def __init__(self, endpoint: str, cause: Exception | None = None):
        details = {"operation": "connect", "endpoint": endpoint}
        if cause:
            details["cause"] = str(cause)
        SyncStoreError.__init__(self, f"Connection failed to {endpoint}", details)
        self.operation = "connect"
        self.table = None
        self.cause = cause
        self.endpoint = endpoint


class AuthenticationError(RemoteStoreError):
    """Raised when authentication to the remote store fails."""

    def __init__(self, endpoint: str, reason: str | None = None):
        details = {"operation": "authenticate", "endpoint": endpoint}
        message = f"Authentication failed for {endpoint}"
        if reason:
            details["reason"] = reason
            message += f": {reason}"
        SyncStoreError.__init__(self, message, details)
        self.operation = "authenticate"
        self.table = None
        self.cause = None
        self.endpoint = endpoint
        self.reason = reason


class AuthenticationRequiredError(SyncStoreError):
    """Raised when an owner identity is required but nobody is signed in."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ValidationError(SyncStoreError):
    """Raised when data validation fails."""

    def __init__(self, field: str, reason: str, value: str | None = None):
        details = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = value
        super().__init__(f"Validation failed for {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value


class SchemaMigrationError(SyncStoreError):
    """Raised when a stored payload cannot be upgraded to the current schema."""

    def __init__(self, from_version: int, to_version: int, reason: str):
        details = {"from_version": from_version, "to_version": to_version, "reason": reason}
        super().__init__(
            f"Cannot migrate payload from schema v{from_version} to v{to_version}: {reason}",
            details,
        )
        self.from_version = from_version
        self.to_version = to_version
        self.reason = reason
