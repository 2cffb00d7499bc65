"""Record repository operations for observations."""

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

import pydantic

from observe_report.domain.exchange import BulkInsertResult
from observe_report.domain.observations import (
    AdditionalNote,
    ImageRef,
    ObservationFields,
    ObservationPatch,
    ObservationRecord,
    with_derived_address,
)
from observe_report.errors import NotFound, ValidationError
from observe_report.services.audit import AuditService

_logger = logging.getLogger(__name__)


class ObservationRepository(Protocol):
    """Persistence interface for observation records."""

    def insert(
        self, fields: ObservationFields, created_at: datetime
    ) -> ObservationRecord:
        """Assign the next id and store the record atomically."""

    def get(self, observation_id: int) -> ObservationRecord | None:
        """Return a record by id, if present."""

    def replace(self, record: ObservationRecord) -> None:
        """Overwrite an existing record."""

    def list_all(self) -> list[ObservationRecord]:
        """Return every record ordered by ascending id."""


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _snapshot(record: ObservationRecord) -> dict[str, object]:
    return record.model_dump(mode="json", by_alias=True, exclude_none=True)


def parse_fields(data: ObservationFields | Mapping[str, object]) -> ObservationFields:
    """Validate caller input into record fields."""
    if isinstance(data, ObservationFields):
        return data
    try:
        return ObservationFields.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc


@dataclass
class ObservationService:
    """Single source of truth for observation records."""

    repository: ObservationRepository
    audit_service: AuditService | None = None
    clock: Callable[[], datetime] = _utc_now

    def create(
        self,
        fields: ObservationFields | Mapping[str, object],
        actor_id: str | None = None,
    ) -> ObservationRecord:
        """Store a new record under the next unused id."""
        record = self.repository.insert(_normalize(parse_fields(fields)), self.clock())
        _logger.info("Created observation %s", record.id)
        self._audit(actor_id, record.id, "create", None, _snapshot(record))
        return record

    def get(self, observation_id: int) -> ObservationRecord:
        """Return a record or raise NotFound."""
        record = self.repository.get(observation_id)
        if record is None:
            raise NotFound(f"Observation {observation_id} not found")
        return record

    def update(
        self,
        observation_id: int,
        partial: ObservationPatch | Mapping[str, object],
        actor_id: str | None = None,
    ) -> ObservationRecord:
        """Replace the supplied top-level keys and return the merged record."""
        record = self.get(observation_id)
        patch = _parse_patch(partial)
        merged = record.model_copy(update=patch.changes())
        merged = merged.model_copy(
            update={"location": with_derived_address(merged.location)}
        )
        self.repository.replace(merged)
        self._audit(
            actor_id, observation_id, "update", _snapshot(record), _snapshot(merged)
        )
        return merged

    def list_all(self) -> list[ObservationRecord]:
        """Return every record in ascending id order."""
        return sorted(self.repository.list_all(), key=lambda record: record.id)

    def list_by_ids(self, ids: set[int]) -> list[ObservationRecord]:
        """Return the records whose ids are in ``ids``; unknown ids are skipped."""
        return [record for record in self.list_all() if record.id in ids]

    def bulk_insert(
        self,
        records: Sequence[tuple[int | str, ObservationFields]],
        actor_id: str | None = None,
    ) -> list[BulkInsertResult]:
        """Insert records under fresh ids, ignoring any ids they carried."""
        results = []
        for original_ref, fields in records:
            record = self.repository.insert(_normalize(fields), self.clock())
            self._audit(
                actor_id,
                record.id,
                "import",
                None,
                {"originalRef": original_ref, **_snapshot(record)},
            )
            results.append(BulkInsertResult(original_ref=original_ref, new_id=record.id))
        return results

    def add_image(
        self, observation_id: int, image: ImageRef, actor_id: str | None = None
    ) -> ObservationRecord:
        """Append an image to a record."""
        record = self.get(observation_id)
        return self.update(
            observation_id,
            ObservationPatch(images=[*record.images, image]),
            actor_id=actor_id,
        )

    def remove_image(
        self, observation_id: int, url: str, actor_id: str | None = None
    ) -> ObservationRecord:
        """Remove every image with the given url from a record."""
        record = self.get(observation_id)
        remaining = [image for image in record.images if image.url != url]
        if len(remaining) == len(record.images):
            raise NotFound(f"Image {url} not found on observation {observation_id}")
        return self.update(
            observation_id, ObservationPatch(images=remaining), actor_id=actor_id
        )

    def add_note(
        self, observation_id: int, note: AdditionalNote, actor_id: str | None = None
    ) -> ObservationRecord:
        """Append a follow-up note, stamping its creation time when missing."""
        record = self.get(observation_id)
        if not note.created_at:
            note = note.model_copy(update={"created_at": self.clock().isoformat()})
        return self.update(
            observation_id,
            ObservationPatch(additional_notes=[*record.additional_notes, note]),
            actor_id=actor_id,
        )

    def _audit(
        self,
        actor_id: str | None,
        observation_id: int,
        event_type: str,
        before: dict[str, object] | None,
        after: dict[str, object] | None,
    ) -> None:
        if self.audit_service is None:
            return
        self.audit_service.record_event(
            actor_id, observation_id, event_type, before=before, after=after
        )


def _normalize(fields: ObservationFields) -> ObservationFields:
    return fields.model_copy(update={"location": with_derived_address(fields.location)})


def _parse_patch(partial: ObservationPatch | Mapping[str, object]) -> ObservationPatch:
    if isinstance(partial, ObservationPatch):
        return partial
    try:
        return ObservationPatch.model_validate(partial)
    except pydantic.ValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc
