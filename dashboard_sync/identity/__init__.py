"""
Owner identity for the sync engine.

Remote records are scoped by the owner's user id; without a signed-in owner
the engine stays local-only.
"""

from ..exceptions import AuthenticationRequiredError
from .config_provider import ConfigFileIdentityProvider
from .provider import IdentityProvider, StaticIdentityProvider
from .types import OwnerIdentity

__all__ = [
    # Types
    "OwnerIdentity",
    # Errors
    "AuthenticationRequiredError",
    # Providers
    "IdentityProvider",
    "ConfigFileIdentityProvider",
    "StaticIdentityProvider",
]
