"""
Identity types.

The owner identity scopes every persisted record: remote rows are keyed by
``owner_id``. No identity means no remote sync.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class OwnerIdentity:
    """Identity of the signed-in user who owns the synced records."""

    user_id: str
    display_name: str | None = None
    email: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "user_id": self.user_id,
            "display_name": self.display_name,
            "email": self.email,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OwnerIdentity":
        """Deserialize from dictionary."""
        return cls(
            user_id=data["user_id"],
            display_name=data.get("display_name"),
            email=data.get("email"),
        )
