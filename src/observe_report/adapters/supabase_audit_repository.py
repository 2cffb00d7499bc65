"""Supabase-backed audit repository."""

from dataclasses import dataclass

from supabase import Client

from observe_report.services.audit import AuditRepository


@dataclass
class SupabaseAuditRepository(AuditRepository):
    """Supabase implementation for audit events."""

    client: Client

    def create_event(  # noqa: PLR0913
        self,
        actor_id: str | None,
        entity_type: str,
        entity_id: int,
        event_type: str,
        before: dict[str, object] | None,
        after: dict[str, object] | None,
    ) -> None:
        """Insert an audit event row."""
        self.client.table("audit_events").insert(
            {
                "actor_id": actor_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "event_type": event_type,
                "before_json": before,
                "after_json": after,
            }
        ).execute()

    def list_events(
        self, entity_type: str, entity_id: int, limit: int
    ) -> list[dict[str, object]]:
        """Return recent events for an entity, oldest first."""
        response = (
            self.client.table("audit_events")
            .select("actor_id, event_type, before_json, after_json, created_at")
            .eq("entity_type", entity_type)
            .eq("entity_id", entity_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return list(reversed(response.data or []))
