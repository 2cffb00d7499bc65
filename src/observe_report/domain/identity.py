"""Domain models for identities and login sessions."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Identity:
    """An authenticatable principal."""

    id: str
    username: str
    credential_hash: str
    is_default_account: bool = False

    def public_view(self) -> dict[str, object]:
        """Return the identity without its credential."""
        return {
            "id": self.id,
            "username": self.username,
            "isDefaultAccount": self.is_default_account,
        }


@dataclass(frozen=True)
class Session:
    """Time-bounded proof that a caller authenticated as an identity."""

    token: str
    identity_id: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """Return True once the session has passed its expiry."""
        return now >= self.expires_at
