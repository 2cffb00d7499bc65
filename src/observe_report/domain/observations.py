"""Domain models for observation records.

Wire payloads use camelCase keys; the models accept either camelCase or
snake_case on input and dump camelCase when ``by_alias=True``.
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

ADDRESS_COMPONENTS = ("street_number", "street_name", "city", "state", "zip_code")
LICENSE_PLATE_LENGTH = 7


class WireModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class PersonInfo(WireModel):
    """Observed person attributes; any subset may be present."""

    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    name: str | None = None
    description: str | None = None
    age_range_min: int | None = Field(default=None, ge=0, le=120)
    age_range_max: int | None = Field(default=None, ge=0, le=120)
    dob_month: int | None = Field(default=None, ge=1, le=12)
    dob_day: int | None = Field(default=None, ge=1, le=31)
    dob_year: int | None = Field(default=None, ge=1900)
    height: str | None = None
    height_min: str | None = None
    height_max: str | None = None
    build: str | None = None
    build_primary: str | None = None
    build_secondary: str | None = None
    hair_color: str | None = None
    eye_color: str | None = None
    skin_tone: str | None = None
    tattoos: str | None = None
    phone_number: str | None = None
    email: str | None = None
    occupation: str | None = None
    work_phone: str | None = None
    address: str | None = None
    work_address: str | None = None
    street_number: str | None = None
    street_name: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None


class VehicleInfo(WireModel):
    """Observed vehicle attributes; any subset may be present."""

    make: str | None = None
    model: str | None = None
    year: str | None = None
    year_min: str | None = None
    year_max: str | None = None
    color: str | None = None
    description: str | None = None
    license_plate: list[str | None] | None = None

    @field_validator("license_plate")
    @classmethod
    def _check_plate(cls, value: list[str | None] | None) -> list[str | None] | None:
        if value is None:
            return None
        if len(value) != LICENSE_PLATE_LENGTH:
            raise ValueError(
                f"license plate must have {LICENSE_PLATE_LENGTH} positions"
            )
        return [char or None for char in value]

    def plate_text(self) -> str:
        """Return the known plate characters joined together."""
        return "".join(char for char in self.license_plate or [] if char)


class IncidentLocation(WireModel):
    """Where an observation happened."""

    street_number: str | None = None
    street_name: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    notes: str | None = None
    formatted_address: str | None = None

    def coordinates(self) -> tuple[float, float] | None:
        """Return (lat, lon) when both are known."""
        if self.latitude is None or self.longitude is None:
            return None
        return self.latitude, self.longitude

    def has_address(self) -> bool:
        """Return True when any structured address component is set."""
        return any(getattr(self, name) for name in ADDRESS_COMPONENTS)


class ImageMetadata(WireModel):
    """Metadata captured alongside an image."""

    date_taken: str | None = None
    gps_coordinates: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    altitude: float | None = None
    direction: str | None = None
    speed: str | None = None
    edit_history: str | None = None
    device_info: str | None = None
    location: IncidentLocation | None = None

    def coordinates(self) -> tuple[float, float] | None:
        """Return coordinates from the metadata or its location block."""
        if self.latitude is not None and self.longitude is not None:
            return self.latitude, self.longitude
        if self.location is not None:
            return self.location.coordinates()
        return None


class ImageRef(WireModel):
    """An image attached to a record."""

    url: str = Field(min_length=1)
    name: str | None = None
    description: str | None = None
    date_added: str | None = None
    metadata: ImageMetadata | None = None


class AdditionalNote(WireModel):
    """A dated follow-up note on a record."""

    date: str = Field(min_length=1)
    time: str | None = None
    content: str = Field(min_length=1)
    created_at: str | None = None


class ObservationFields(WireModel):
    """Caller-supplied content of an observation record."""

    date: str = Field(min_length=1)
    time: str = Field(min_length=1)
    person: PersonInfo = Field(default_factory=PersonInfo)
    vehicle: VehicleInfo = Field(default_factory=VehicleInfo)
    location: IncidentLocation | None = None
    notes: str | None = None
    additional_notes: list[AdditionalNote] = Field(default_factory=list)
    images: list[ImageRef] = Field(default_factory=list)

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        parse_record_date(value)
        return value


class ObservationRecord(ObservationFields):
    """A stored observation."""

    id: int
    created_at: datetime

    def content(self) -> ObservationFields:
        """Return the record without its identity fields."""
        return ObservationFields.model_validate(
            self.model_dump(exclude={"id", "created_at"})
        )


class ObservationPatch(WireModel):
    """Partial update; only keys that were sent replace stored values."""

    date: str | None = None
    time: str | None = None
    person: PersonInfo | None = None
    vehicle: VehicleInfo | None = None
    location: IncidentLocation | None = None
    notes: str | None = None
    additional_notes: list[AdditionalNote] | None = None
    images: list[ImageRef] | None = None

    @model_validator(mode="after")
    def _check_required(self) -> "ObservationPatch":
        for name in ("date", "time", "person", "vehicle"):
            if name in self.model_fields_set and not getattr(self, name):
                raise ValueError(f"{name} cannot be cleared")
        if "date" in self.model_fields_set:
            parse_record_date(self.date or "")
        for name in ("additional_notes", "images"):
            if name in self.model_fields_set and getattr(self, name) is None:
                setattr(self, name, [])
        return self

    def changes(self) -> dict[str, object]:
        """Return only the top-level keys present in the patch."""
        return {name: getattr(self, name) for name in self.model_fields_set}


def parse_record_date(value: str) -> date:
    """Parse a YYYY-MM-DD record date."""
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError as exc:
        raise ValueError(f"invalid date {value!r}, expected YYYY-MM-DD") from exc


def format_address(location: IncidentLocation) -> str | None:
    """Build the display address from structured components."""
    street = " ".join(
        part for part in (location.street_number, location.street_name) if part
    )
    region = " ".join(part for part in (location.state, location.zip_code) if part)
    parts = [part for part in (street, location.city, region) if part]
    return ", ".join(parts) or None


def with_derived_address(
    location: IncidentLocation | None,
) -> IncidentLocation | None:
    """Recompute the cached formatted address from structured components."""
    if location is None:
        return None
    return location.model_copy(update={"formatted_address": format_address(location)})
