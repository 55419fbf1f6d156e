"""
Identity provider abstract interface.

Defines the contract that all identity providers must implement.
"""

from abc import ABC, abstractmethod

from ..exceptions import AuthenticationRequiredError
from .types import OwnerIdentity


class IdentityProvider(ABC):
    """Abstract identity provider.

    The sync engine asks the provider once, at construction, who owns the
    records. A provider that cannot name a user puts the engine in
    local-only mode.
    """

    @abstractmethod
    async def get_current_identity(self) -> OwnerIdentity:
        """Get the current authenticated owner.

        Raises:
            AuthenticationRequiredError: If nobody is signed in
        """
        ...

    @abstractmethod
    async def sign_out(self) -> None:
        """Sign out and clear cached identity.

        After sign out, get_current_identity() raises
        AuthenticationRequiredError until re-authenticated.
        """
        ...


class StaticIdentityProvider(IdentityProvider):
    """Provider with a fixed owner, or none at all.

    Useful when the host application already knows who is signed in.
    """

    def __init__(self, user_id: str | None = None, display_name: str | None = None):
        self._identity = OwnerIdentity(user_id=user_id, display_name=display_name) if user_id else None

    async def get_current_identity(self) -> OwnerIdentity:
        if self._identity is None:
            raise AuthenticationRequiredError()
        return self._identity

    async def sign_out(self) -> None:
        self._identity = None
