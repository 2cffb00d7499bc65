"""Models for the export/import document format."""

from dataclasses import dataclass
from datetime import datetime

from pydantic import Field

from observe_report.domain.observations import ObservationRecord, WireModel

FORMAT_VERSION = "1.0"


class ExportDocument(WireModel):
    """Versioned container produced by export and consumed by import."""

    format_version: str = FORMAT_VERSION
    exported_at: datetime
    records: list[ObservationRecord] = Field(default_factory=list)


class ImportResult(WireModel):
    """Outcome of an import; partial success is normal."""

    imported_count: int = 0
    errors: list[str] = Field(default_factory=list)


@dataclass(frozen=True)
class BulkInsertResult:
    """Maps an incoming record reference to the id it was stored under."""

    original_ref: int | str
    new_id: int
