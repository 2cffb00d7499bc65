"""Search filter models."""

import re

from pydantic import AliasChoices, Field, field_validator, model_validator

from observe_report.domain.observations import (
    PersonInfo,
    WireModel,
    parse_record_date,
)

UNDER_MIN_HEIGHT_INCHES = 58
OVER_MAX_HEIGHT_INCHES = 80
_HEIGHT_PATTERN = re.compile(r"(\d+)ft(\d+)")
_HEIGHT_RANGE_PATTERN = re.compile(r"(\d+)ft(\d+)-(\d+)ft(\d+)")
_YEAR_RANGE_PATTERN = re.compile(r"(\d+)-(\d+)")


def height_inches(value: str | None) -> int | None:
    """Convert a height like ``5ft10`` to inches; ranges yield their lower end."""
    if not value:
        return None
    if value == "under4ft10":
        return UNDER_MIN_HEIGHT_INCHES
    if value == "over6ft8":
        return OVER_MAX_HEIGHT_INCHES
    match = _HEIGHT_PATTERN.search(value)
    if match is None:
        return None
    return int(match.group(1)) * 12 + int(match.group(2))


def height_range(value: str | None) -> tuple[int, int] | None:
    """Parse ``4ft10-5ft2`` or a single height into an inclusive inch range."""
    if not value:
        return None
    match = _HEIGHT_RANGE_PATTERN.search(value)
    if match is not None:
        feet_min, inches_min, feet_max, inches_max = map(int, match.groups())
        return feet_min * 12 + inches_min, feet_max * 12 + inches_max
    inches = height_inches(value)
    return None if inches is None else (inches, inches)


def year_range(value: str | None) -> tuple[int, int] | None:
    """Parse ``2010-2015`` or a single year into an inclusive range."""
    if not value:
        return None
    match = _YEAR_RANGE_PATTERN.search(value)
    if match is not None:
        return int(match.group(1)), int(match.group(2))
    try:
        year = int(value)
    except ValueError:
        return None
    return year, year


class PersonFilter(PersonInfo):
    """Person criteria; age and height bounds match by range overlap."""

    @field_validator("height_min", "height_max")
    @classmethod
    def _check_height(cls, value: str | None) -> str | None:
        if value and height_inches(value) is None:
            raise ValueError(f"unrecognised height {value!r}, expected e.g. 5ft10")
        return value or None


class VehicleFilter(WireModel):
    """Vehicle criteria; a partial plate is allowed and year bounds are numeric."""

    make: str | None = None
    model: str | None = None
    year: str | None = None
    year_min: int | None = None
    year_max: int | None = None
    color: str | None = None
    description: str | None = None
    license_plate: list[str | None] | None = None

    @field_validator("license_plate")
    @classmethod
    def _blank_positions(
        cls, value: list[str | None] | None
    ) -> list[str | None] | None:
        if value is None:
            return None
        return [char or None for char in value]


class LocationRadius(WireModel):
    """Circle around a point, in meters."""

    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)
    radius_meters: float = Field(ge=0)


class SearchFilter(WireModel):
    """Sparse filter; absent keys impose no constraint."""

    date_from: str | None = None
    date_to: str | None = None
    person_fields: PersonFilter | None = Field(
        default=None,
        validation_alias=AliasChoices("personFields", "person_fields", "person"),
    )
    vehicle_fields: VehicleFilter | None = Field(
        default=None,
        validation_alias=AliasChoices("vehicleFields", "vehicle_fields", "vehicle"),
    )
    location_radius: LocationRadius | None = None
    query: str | None = None
    license_plate: list[str | None] | None = None

    @field_validator("date_from", "date_to")
    @classmethod
    def _check_bound(cls, value: str | None) -> str | None:
        if not value:
            return None
        parse_record_date(value)
        return value

    @model_validator(mode="after")
    def _check_range(self) -> "SearchFilter":
        if self.date_from and self.date_to:
            if parse_record_date(self.date_from) > parse_record_date(self.date_to):
                raise ValueError("dateFrom must not be after dateTo")
        return self
