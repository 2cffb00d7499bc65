"""Structured search over observation records."""

import math
from collections.abc import Mapping
from dataclasses import dataclass

import pydantic
from pydantic import BaseModel

from observe_report.domain.observations import (
    ObservationRecord,
    PersonInfo,
    VehicleInfo,
    parse_record_date,
)
from observe_report.domain.search import (
    LocationRadius,
    PersonFilter,
    SearchFilter,
    VehicleFilter,
    height_inches,
    height_range,
    year_range,
)
from observe_report.errors import ValidationError
from observe_report.services.observations import ObservationService

EARTH_RADIUS_METERS = 6_371_008.8
MAX_AGE = 120
MAX_HEIGHT_INCHES = 1000
MAX_YEAR = 3000

_PERSON_RANGE_FIELDS = frozenset(
    {"age_range_min", "age_range_max", "height_min", "height_max"}
)
_VEHICLE_RANGE_FIELDS = frozenset({"year_min", "year_max"})


def parse_filter(data: SearchFilter | Mapping[str, object] | None) -> SearchFilter:
    """Validate a caller-supplied filter."""
    if isinstance(data, SearchFilter):
        return data
    try:
        return SearchFilter.model_validate(data or {})
    except pydantic.ValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in meters."""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def record_coordinates(record: ObservationRecord) -> tuple[float, float] | None:
    """Return the record's coordinates, falling back to image metadata."""
    if record.location is not None:
        coordinates = record.location.coordinates()
        if coordinates is not None:
            return coordinates
    for image in record.images:
        if image.metadata is not None:
            coordinates = image.metadata.coordinates()
            if coordinates is not None:
                return coordinates
    return None


@dataclass
class SearchService:
    """Evaluates a sparse filter against the record repository."""

    observation_service: ObservationService

    def search(
        self, search_filter: SearchFilter | Mapping[str, object] | None
    ) -> list[ObservationRecord]:
        """Return matching records in ascending id order."""
        criteria = parse_filter(search_filter)
        return [
            record
            for record in self.observation_service.list_all()
            if _matches(record, criteria)
        ]


def _matches(record: ObservationRecord, criteria: SearchFilter) -> bool:
    if criteria.date_from or criteria.date_to:
        if not _in_date_range(record.date, criteria.date_from, criteria.date_to):
            return False
    if criteria.person_fields is not None:
        if not _person_matches(record.person, criteria.person_fields):
            return False
    if criteria.vehicle_fields is not None:
        if not _vehicle_matches(record.vehicle, criteria.vehicle_fields):
            return False
    if criteria.location_radius is not None:
        if not _within_radius(record, criteria.location_radius):
            return False
    if criteria.license_plate and any(criteria.license_plate):
        if not _plate_matches(record, criteria.license_plate):
            return False
    if criteria.query and criteria.query.strip():
        if not _text_matches(record, criteria.query.strip().lower()):
            return False
    return True


def _in_date_range(value: str, date_from: str | None, date_to: str | None) -> bool:
    try:
        day = parse_record_date(value)
    except ValueError:
        return False
    if date_from and day < parse_record_date(date_from):
        return False
    return not (date_to and day > parse_record_date(date_to))


def _person_matches(person: PersonInfo, wanted: PersonFilter) -> bool:
    if not _fields_match(person, wanted, exclude=_PERSON_RANGE_FIELDS):
        return False
    if wanted.age_range_min is not None or wanted.age_range_max is not None:
        bounds = (
            wanted.age_range_min if wanted.age_range_min is not None else 0,
            wanted.age_range_max if wanted.age_range_max is not None else MAX_AGE,
        )
        if not _overlaps(_age_range(person), bounds):
            return False
    if wanted.height_min or wanted.height_max:
        bounds = (
            height_inches(wanted.height_min) or 0,
            height_inches(wanted.height_max) or MAX_HEIGHT_INCHES,
        )
        if not _overlaps(_height_range(person), bounds):
            return False
    return True


def _vehicle_matches(vehicle: VehicleInfo, wanted: VehicleFilter) -> bool:
    if not _fields_match(vehicle, wanted, exclude=_VEHICLE_RANGE_FIELDS):
        return False
    if wanted.year_min is not None or wanted.year_max is not None:
        bounds = (
            wanted.year_min if wanted.year_min is not None else 0,
            wanted.year_max if wanted.year_max is not None else MAX_YEAR,
        )
        if not _overlaps(_year_range(vehicle), bounds):
            return False
    return True


def _fields_match(
    actual: BaseModel, wanted: BaseModel, exclude: frozenset[str] = frozenset()
) -> bool:
    """AND across every sub-field supplied in ``wanted``."""
    supplied = wanted.model_dump(exclude_none=True, exclude=set(exclude))
    for name, expected in supplied.items():
        if expected == "" or expected == []:
            continue
        value = getattr(actual, name, None)
        if value is None or value == "":
            return False
        if isinstance(expected, str):
            if expected.lower() not in str(value).lower():
                return False
        elif isinstance(expected, list):
            joined = "".join(char for char in value if char).lower()
            needle = "".join(char for char in expected if char).lower()
            if needle not in joined:
                return False
        elif value != expected:
            return False
    return True


def _overlaps(actual: tuple[int, int] | None, wanted: tuple[int, int]) -> bool:
    """Inclusive range overlap; a record with no range does not match."""
    if actual is None:
        return False
    low, high = actual
    return not (high < wanted[0] or low > wanted[1])


def _span(low: int | None, high: int | None) -> tuple[int, int] | None:
    if low is None and high is None:
        return None
    if low is None:
        return 0, high
    return low, high if high is not None else low


def _age_range(person: PersonInfo) -> tuple[int, int] | None:
    return _span(person.age_range_min, person.age_range_max)


def _height_range(person: PersonInfo) -> tuple[int, int] | None:
    if person.height:
        return height_range(person.height)
    return _span(height_inches(person.height_min), height_inches(person.height_max))


def _year_range(vehicle: VehicleInfo) -> tuple[int, int] | None:
    if vehicle.year:
        return year_range(vehicle.year)
    low = year_range(vehicle.year_min)
    high = year_range(vehicle.year_max)
    return _span(low[0] if low else None, high[1] if high else None)


def _within_radius(record: ObservationRecord, radius: LocationRadius) -> bool:
    coordinates = record_coordinates(record)
    if coordinates is None:
        return False
    distance = haversine_meters(radius.lat, radius.lon, *coordinates)
    return distance <= radius.radius_meters


def _plate_matches(record: ObservationRecord, pattern: list[str | None]) -> bool:
    plate = record.vehicle.license_plate
    if not plate:
        return False
    for index, wanted in enumerate(pattern):
        if not wanted:
            continue
        if index >= len(plate) or not plate[index]:
            return False
        if plate[index].lower() != wanted.lower():
            return False
    return True


def _text_matches(record: ObservationRecord, needle: str) -> bool:
    return any(needle in text.lower() for text in _searchable_text(record))


def _searchable_text(record: ObservationRecord) -> list[str]:
    texts = [
        value
        for value in record.person.model_dump(exclude_none=True).values()
        if isinstance(value, str)
    ]
    texts.extend(
        value
        for value in record.vehicle.model_dump(exclude_none=True).values()
        if isinstance(value, str)
    )
    texts.append(record.vehicle.plate_text())
    if record.notes:
        texts.append(record.notes)
    texts.extend(note.content for note in record.additional_notes)
    if record.location is not None:
        texts.extend(
            value
            for value in record.location.model_dump(exclude_none=True).values()
            if isinstance(value, str)
        )
    for image in record.images:
        texts.extend(text for text in (image.name, image.description) if text)
    return texts
