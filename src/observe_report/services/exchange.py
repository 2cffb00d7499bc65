"""Export and import of observation records."""

import asyncio
import json
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime

import pydantic

from observe_report.domain.exchange import ExportDocument, ImportResult
from observe_report.domain.observations import ObservationFields
from observe_report.errors import describe_validation_error
from observe_report.services.observations import ObservationService

_IGNORED_KEYS = {"id", "createdAt", "created_at"}
_RECORD_KEYS = ("records", "observations")

_logger = logging.getLogger(__name__)


class DocumentFormatError(ValueError):
    """The import payload is not a readable document."""


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class ExchangeService:
    """Moves observation records across a JSON document boundary."""

    observation_service: ObservationService
    clock: Callable[[], datetime] = _utc_now

    def export(self, ids: Iterable[int] | None = None) -> ExportDocument:
        """Build a document with the selected records, or all of them."""
        if ids is None:
            records = self.observation_service.list_all()
        else:
            records = self.observation_service.list_by_ids(set(ids))
        return ExportDocument(exported_at=self.clock(), records=records)

    def export_json(self, ids: Iterable[int] | None = None) -> str:
        """Serialize an export document to JSON text."""
        return self.export(ids).model_dump_json(by_alias=True, exclude_none=True)

    async def import_document(
        self, raw: str | bytes | Mapping[str, object], actor_id: str | None = None
    ) -> ImportResult:
        """Insert every valid record under a fresh id, collecting per-record errors."""
        try:
            candidates = _read_candidates(raw)
        except DocumentFormatError as exc:
            _logger.warning("Rejected import document: %s", exc)
            return ImportResult(errors=[f"Invalid import document: {exc}"])

        result = ImportResult()
        for index, candidate in enumerate(candidates):
            try:
                original_ref, fields = _prepare_candidate(index, candidate)
            except ValueError as exc:
                result.errors.append(f"Record {index + 1}: {exc}")
            else:
                self.observation_service.bulk_insert(
                    [(original_ref, fields)], actor_id=actor_id
                )
                result.imported_count += 1
            await asyncio.sleep(0)
        _logger.info(
            "Imported %s records with %s errors",
            result.imported_count,
            len(result.errors),
        )
        return result


def _read_candidates(raw: str | bytes | Mapping[str, object]) -> list[object]:
    document = raw
    if isinstance(raw, bytes | str):
        try:
            document = json.loads(raw)
        except ValueError as exc:
            raise DocumentFormatError("malformed JSON") from exc
    if not isinstance(document, Mapping):
        raise DocumentFormatError("expected a JSON object")
    for key in _RECORD_KEYS:
        records = document.get(key)
        if isinstance(records, list):
            return records
    raise DocumentFormatError("missing records list")


def _prepare_candidate(
    index: int, candidate: object
) -> tuple[int | str, ObservationFields]:
    if not isinstance(candidate, Mapping):
        raise ValueError("record must be a JSON object")
    if not candidate.get("date") or not candidate.get("time"):
        raise ValueError("missing required date/time")
    original_ref = candidate.get("id")
    if not isinstance(original_ref, int | str) or isinstance(original_ref, bool):
        original_ref = index
    payload = {key: value for key, value in candidate.items() if key not in _IGNORED_KEYS}
    try:
        fields = ObservationFields.model_validate(payload)
    except pydantic.ValidationError as exc:
        raise ValueError(describe_validation_error(exc)) from exc
    return original_ref, fields
