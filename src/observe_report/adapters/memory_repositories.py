"""Process-local repositories used when no database is configured."""

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from uuid import uuid4

from observe_report.domain.identity import Identity, Session
from observe_report.domain.observations import ObservationFields, ObservationRecord
from observe_report.services.audit import AuditRepository
from observe_report.services.auth import IdentityRepository, SessionRepository
from observe_report.services.observations import ObservationRepository


@dataclass
class InMemoryIdentityRepository(IdentityRepository):
    """Identity store keyed by username."""

    identities: dict[str, Identity] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def get_by_username(self, username: str) -> Identity | None:
        """Return the identity for an exact username."""
        return self.identities.get(username)

    def get_by_id(self, identity_id: str) -> Identity | None:
        """Return the identity with this id."""
        for identity in list(self.identities.values()):
            if identity.id == identity_id:
                return identity
        return None

    def create_identity(
        self, username: str, credential_hash: str, is_default_account: bool
    ) -> Identity:
        """Create an identity; usernames are unique."""
        with self._lock:
            if username in self.identities:
                raise ValueError(f"Username {username} already exists")
            identity = Identity(
                id=str(uuid4()),
                username=username,
                credential_hash=credential_hash,
                is_default_account=is_default_account,
            )
            self.identities[username] = identity
            return identity

    def count(self) -> int:
        """Return the number of identities."""
        return len(self.identities)

    def clear_default_flags(self) -> None:
        """Clear the default-account flag everywhere."""
        with self._lock:
            for username, identity in list(self.identities.items()):
                if identity.is_default_account:
                    self.identities[username] = replace(
                        identity, is_default_account=False
                    )


@dataclass
class InMemorySessionRepository(SessionRepository):
    """Session store keyed by token."""

    sessions: dict[str, Session] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def save(self, session: Session) -> None:
        """Store a session."""
        with self._lock:
            self.sessions[session.token] = session

    def get(self, token: str) -> Session | None:
        """Return the session for a token."""
        return self.sessions.get(token)

    def delete(self, token: str) -> None:
        """Remove a session if present."""
        with self._lock:
            self.sessions.pop(token, None)

    def delete_expired(self, now: datetime) -> int:
        """Remove expired sessions."""
        with self._lock:
            expired = [
                token
                for token, session in self.sessions.items()
                if session.is_expired(now)
            ]
            for token in expired:
                del self.sessions[token]
            return len(expired)


@dataclass
class InMemoryObservationRepository(ObservationRepository):
    """Observation store keyed by id.

    Id assignment and insert share one lock; reads do not take it. The
    high-water mark keeps ids from being reused if a record ever disappears.
    Records go in and come out as deep copies so callers cannot mutate
    stored state.
    """

    records: dict[int, ObservationRecord] = field(default_factory=dict)
    _high_water: int = field(default=0, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def insert(
        self, fields: ObservationFields, created_at: datetime
    ) -> ObservationRecord:
        """Assign ``max(id) + 1`` and store the record."""
        with self._lock:
            next_id = max(max(self.records, default=0), self._high_water) + 1
            record = ObservationRecord(
                id=next_id, created_at=created_at, **dict(fields.model_copy(deep=True))
            )
            self.records[next_id] = record
            self._high_water = next_id
            return record.model_copy(deep=True)

    def get(self, observation_id: int) -> ObservationRecord | None:
        """Return a copy of a record by id."""
        record = self.records.get(observation_id)
        return record.model_copy(deep=True) if record is not None else None

    def replace(self, record: ObservationRecord) -> None:
        """Overwrite an existing record."""
        if record.id not in self.records:
            raise KeyError(record.id)
        self.records[record.id] = record.model_copy(deep=True)

    def list_all(self) -> list[ObservationRecord]:
        """Return records ordered by id."""
        return [
            self.records[key].model_copy(deep=True) for key in sorted(self.records)
        ]


@dataclass
class InMemoryAuditRepository(AuditRepository):
    """Append-only audit log."""

    events: list[dict[str, object]] = field(default_factory=list)

    def create_event(  # noqa: PLR0913
        self,
        actor_id: str | None,
        entity_type: str,
        entity_id: int,
        event_type: str,
        before: dict[str, object] | None,
        after: dict[str, object] | None,
    ) -> None:
        """Append an audit event."""
        self.events.append(
            {
                "actor_id": actor_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "event_type": event_type,
                "before": before,
                "after": after,
            }
        )

    def list_events(
        self, entity_type: str, entity_id: int, limit: int
    ) -> list[dict[str, object]]:
        """Return events for an entity, oldest first."""
        matching = [
            event
            for event in self.events
            if event["entity_type"] == entity_type and event["entity_id"] == entity_id
        ]
        return matching[-limit:]
