"""Session store and access guard."""

import hashlib
import hmac
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol

from observe_report.domain.identity import Identity, Session
from observe_report.errors import (
    AccountError,
    AccountErrorReason,
    AuthError,
    SessionError,
    SessionErrorReason,
    Unauthorized,
)

_HASH_ALGORITHM = "pbkdf2_sha256"
_HASH_ITERATIONS = 260_000

_logger = logging.getLogger(__name__)


class IdentityRepository(Protocol):
    """Persistence interface for identities."""

    def get_by_username(self, username: str) -> Identity | None:
        """Return the identity with this exact username, if present."""

    def get_by_id(self, identity_id: str) -> Identity | None:
        """Return the identity with this id, if present."""

    def create_identity(
        self, username: str, credential_hash: str, is_default_account: bool
    ) -> Identity:
        """Create and return an identity; raise ValueError on duplicate username."""

    def count(self) -> int:
        """Return the number of identities."""

    def clear_default_flags(self) -> None:
        """Clear the default-account flag on every identity."""


class SessionRepository(Protocol):
    """Persistence interface for login sessions."""

    def save(self, session: Session) -> None:
        """Store a new session."""

    def get(self, token: str) -> Session | None:
        """Return the session for a token, if present."""

    def delete(self, token: str) -> None:
        """Remove a session; unknown tokens are ignored."""

    def delete_expired(self, now: datetime) -> int:
        """Remove every session expired at ``now`` and return how many."""


def hash_password(password: str, salt: str | None = None) -> str:
    """Return an encoded PBKDF2 hash for a password."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), _HASH_ITERATIONS
    )
    return f"{_HASH_ALGORITHM}${_HASH_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    """Check a password against an encoded hash in constant time."""
    try:
        algorithm, iterations, salt, expected = encoded.split("$", 3)
    except ValueError:
        return False
    if algorithm != _HASH_ALGORITHM:
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), int(iterations)
    )
    return hmac.compare_digest(digest.hex(), expected)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SessionStore:
    """Holds identities and issues, resolves and destroys session tokens."""

    identity_repository: IdentityRepository
    session_repository: SessionRepository
    session_ttl: timedelta = timedelta(hours=24)
    min_password_length: int = 6
    clock: Callable[[], datetime] = _utc_now
    _dummy_hash: str | None = field(default=None, init=False, repr=False)

    def bootstrap_default_identity(self, username: str, password: str) -> None:
        """Create the default account when no identity exists yet."""
        if self.identity_repository.count() > 0:
            return
        self.identity_repository.create_identity(
            username, hash_password(password), is_default_account=True
        )
        _logger.info("Created default account %s", username)

    def authenticate(self, username: str, password: str) -> Session:
        """Validate credentials and open a new session."""
        identity = self.identity_repository.get_by_username(username or "")
        if identity is None:
            if self._dummy_hash is None:
                self._dummy_hash = hash_password(secrets.token_hex(8))
            verify_password(password or "", self._dummy_hash)
            _logger.info("Login failed")
            raise AuthError
        if not verify_password(password or "", identity.credential_hash):
            _logger.info("Login failed")
            raise AuthError
        now = self.clock()
        self.session_repository.delete_expired(now)
        session = Session(
            token=secrets.token_urlsafe(32),
            identity_id=identity.id,
            created_at=now,
            expires_at=now + self.session_ttl,
        )
        self.session_repository.save(session)
        if not identity.is_default_account:
            self.identity_repository.clear_default_flags()
        _logger.info("Login succeeded for %s", identity.username)
        return session

    def destroy(self, token: str | None) -> None:
        """Remove a session; unknown tokens are a no-op."""
        if token:
            self.session_repository.delete(token)

    def resolve(self, token: str | None) -> Identity:
        """Return the identity behind a token."""
        if not token:
            raise SessionError(SessionErrorReason.MISSING)
        session = self.session_repository.get(token)
        if session is None:
            raise SessionError(SessionErrorReason.MISSING)
        if session.is_expired(self.clock()):
            self.session_repository.delete(token)
            raise SessionError(SessionErrorReason.EXPIRED)
        identity = self.identity_repository.get_by_id(session.identity_id)
        if identity is None:
            self.session_repository.delete(token)
            raise SessionError(SessionErrorReason.MISSING)
        return identity

    def purge_expired(self) -> int:
        """Drop every expired session."""
        return self.session_repository.delete_expired(self.clock())

    def create_identity(self, username: str | None, password: str | None) -> Identity:
        """Create a new non-default identity."""
        username = (username or "").strip()
        if not username or not password:
            raise AccountError(
                AccountErrorReason.MISSING_FIELDS,
                "Username and password are required",
            )
        if len(password) < self.min_password_length:
            raise AccountError(
                AccountErrorReason.WEAK_PASSWORD,
                f"Password must be at least {self.min_password_length} characters",
            )
        if self.identity_repository.get_by_username(username) is not None:
            raise AccountError(
                AccountErrorReason.DUPLICATE_USERNAME, "Username already exists"
            )
        try:
            identity = self.identity_repository.create_identity(
                username, hash_password(password), is_default_account=False
            )
        except ValueError as exc:
            raise AccountError(
                AccountErrorReason.DUPLICATE_USERNAME, "Username already exists"
            ) from exc
        _logger.info("Created account %s", username)
        return identity


@dataclass
class AccessGuard:
    """Gates operations behind a valid session."""

    session_store: SessionStore

    def authorize(self, token: str | None) -> Identity:
        """Return the caller identity or raise Unauthorized."""
        try:
            return self.session_store.resolve(token)
        except SessionError as exc:
            raise Unauthorized(exc.reason) from exc
