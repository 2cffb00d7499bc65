"""Audit trail for observation changes."""

from dataclasses import dataclass
from typing import Protocol


class AuditRepository(Protocol):
    """Persistence interface for audit events."""

    def create_event(  # noqa: PLR0913
        self,
        actor_id: str | None,
        entity_type: str,
        entity_id: int,
        event_type: str,
        before: dict[str, object] | None,
        after: dict[str, object] | None,
    ) -> None:
        """Create an audit event row."""

    def list_events(
        self, entity_type: str, entity_id: int, limit: int
    ) -> list[dict[str, object]]:
        """Return recent events for an entity, oldest first."""


@dataclass
class AuditService:
    """Service for recording who changed which record."""

    repository: AuditRepository

    def record_event(  # noqa: PLR0913
        self,
        actor_id: str | None,
        entity_id: int,
        event_type: str,
        before: dict[str, object] | None = None,
        after: dict[str, object] | None = None,
        entity_type: str = "observation",
    ) -> None:
        """Persist an audit event."""
        self.repository.create_event(
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=entity_id,
            event_type=event_type,
            before=before,
            after=after,
        )

    def history(self, entity_id: int, limit: int = 50) -> list[dict[str, object]]:
        """Return the audit history of an observation."""
        return self.repository.list_events("observation", entity_id, limit)
