"""Supabase-backed identity and session repositories."""

from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from observe_report.domain.identity import Identity, Session
from observe_report.services.auth import IdentityRepository, SessionRepository

_IDENTITY_COLUMNS = "id, username, credential_hash, is_default_account"


@dataclass
class SupabaseIdentityRepository(IdentityRepository):
    """Supabase implementation for identity persistence."""

    client: Client

    def get_by_username(self, username: str) -> Identity | None:
        """Return the identity for an exact username, if present."""
        response = (
            self.client.table("identities")
            .select(_IDENTITY_COLUMNS)
            .eq("username", username)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_identity(response.data[0])

    def get_by_id(self, identity_id: str) -> Identity | None:
        """Return the identity with this id, if present."""
        response = (
            self.client.table("identities")
            .select(_IDENTITY_COLUMNS)
            .eq("id", identity_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_identity(response.data[0])

    def create_identity(
        self, username: str, credential_hash: str, is_default_account: bool
    ) -> Identity:
        """Insert an identity row and return it."""
        if self.get_by_username(username) is not None:
            raise ValueError(f"Username {username} already exists")
        response = (
            self.client.table("identities")
            .insert(
                {
                    "username": username,
                    "credential_hash": credential_hash,
                    "is_default_account": is_default_account,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create identity")
        return _parse_identity(response.data[0])

    def count(self) -> int:
        """Return the number of identities."""
        response = self.client.table("identities").select("id").execute()
        return len(response.data or [])

    def clear_default_flags(self) -> None:
        """Clear the default-account flag on every identity."""
        self.client.table("identities").update({"is_default_account": False}).eq(
            "is_default_account", True
        ).execute()


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for login sessions."""

    client: Client

    def save(self, session: Session) -> None:
        """Insert a session row."""
        self.client.table("login_sessions").insert(
            {
                "token": session.token,
                "identity_id": session.identity_id,
                "created_at": session.created_at.isoformat(),
                "expires_at": session.expires_at.isoformat(),
            }
        ).execute()

    def get(self, token: str) -> Session | None:
        """Return a session by token, if present."""
        response = (
            self.client.table("login_sessions")
            .select("token, identity_id, created_at, expires_at")
            .eq("token", token)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return Session(
            token=row["token"],
            identity_id=str(row["identity_id"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            expires_at=datetime.fromisoformat(row["expires_at"]),
        )

    def delete(self, token: str) -> None:
        """Delete a session row."""
        self.client.table("login_sessions").delete().eq("token", token).execute()

    def delete_expired(self, now: datetime) -> int:
        """Delete sessions that expired at or before ``now``."""
        response = (
            self.client.table("login_sessions")
            .delete()
            .lte("expires_at", now.isoformat())
            .execute()
        )
        return len(response.data or [])


def _parse_identity(row: dict[str, object]) -> Identity:
    return Identity(
        id=str(row["id"]),
        username=str(row["username"]),
        credential_hash=str(row["credential_hash"]),
        is_default_account=bool(row.get("is_default_account", False)),
    )
