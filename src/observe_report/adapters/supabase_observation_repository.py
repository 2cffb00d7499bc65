"""Supabase-backed observation repository."""

import threading
from dataclasses import dataclass, field
from datetime import datetime

from supabase import Client

from observe_report.domain.observations import ObservationFields, ObservationRecord
from observe_report.services.observations import ObservationRepository

_COLUMNS = (
    "id, date, time, person, vehicle, location, notes, additional_notes, images, "
    "created_at"
)


@dataclass
class SupabaseObservationRepository(ObservationRepository):
    """Supabase implementation for observation records.

    Ids are assigned here rather than by a database sequence so they follow
    ``max(id) + 1``; the lock serializes assignment within this process.
    """

    client: Client
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def insert(
        self, fields: ObservationFields, created_at: datetime
    ) -> ObservationRecord:
        """Assign the next id and insert the row."""
        with self._lock:
            response = (
                self.client.table("observations")
                .select("id")
                .order("id", desc=True)
                .limit(1)
                .execute()
            )
            next_id = int(response.data[0]["id"]) + 1 if response.data else 1
            record = ObservationRecord(
                id=next_id, created_at=created_at, **dict(fields)
            )
            inserted = (
                self.client.table("observations").insert(_to_row(record)).execute()
            )
            if not inserted.data:
                raise RuntimeError("Failed to create observation")
            return record

    def get(self, observation_id: int) -> ObservationRecord | None:
        """Return a record by id, if present."""
        response = (
            self.client.table("observations")
            .select(_COLUMNS)
            .eq("id", observation_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_row(response.data[0])

    def replace(self, record: ObservationRecord) -> None:
        """Overwrite the stored row."""
        row = _to_row(record)
        row.pop("id")
        row.pop("created_at")
        self.client.table("observations").update(row).eq("id", record.id).execute()

    def list_all(self) -> list[ObservationRecord]:
        """Return every record ordered by id."""
        response = (
            self.client.table("observations")
            .select(_COLUMNS)
            .order("id", desc=False)
            .execute()
        )
        return [_parse_row(row) for row in response.data or []]


def _to_row(record: ObservationRecord) -> dict[str, object]:
    data = record.model_dump(mode="json", by_alias=True, exclude_none=True)
    return {
        "id": record.id,
        "date": record.date,
        "time": record.time,
        "person": data.get("person", {}),
        "vehicle": data.get("vehicle", {}),
        "location": data.get("location"),
        "notes": record.notes,
        "additional_notes": data.get("additionalNotes", []),
        "images": data.get("images", []),
        "created_at": record.created_at.isoformat(),
    }


def _parse_row(row: dict[str, object]) -> ObservationRecord:
    return ObservationRecord.model_validate(
        {
            "id": row["id"],
            "date": row["date"],
            "time": row["time"],
            "person": row.get("person") or {},
            "vehicle": row.get("vehicle") or {},
            "location": row.get("location"),
            "notes": row.get("notes"),
            "additional_notes": row.get("additional_notes") or [],
            "images": row.get("images") or [],
            "created_at": row["created_at"],
        }
    )
