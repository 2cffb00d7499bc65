"""Image upload: EXIF extraction and attaching stored files to records."""

import io
import logging
import math
import mimetypes
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from uuid import uuid4

from PIL import ExifTags, Image

from observe_report.domain.observations import (
    ImageMetadata,
    ImageRef,
    IncidentLocation,
    ObservationRecord,
)
from observe_report.errors import GeocodingError, ImageError, ImageTooLarge
from observe_report.services.geocoding import GeocodingService
from observe_report.services.observations import ObservationService

UPLOAD_URL_PREFIX = "/uploads"
_EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"
_SPEED_UNITS = {"K": "km/h", "M": "mph", "N": "knots"}
_SUFFIX_PATTERN = re.compile(r"\.[a-z0-9]{1,5}")

_logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def extract_image_metadata(data: bytes) -> ImageMetadata:
    """Read capture time, GPS position and device details from EXIF."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            exif = image.getexif()
    except OSError as exc:
        raise ImageError("Uploaded file is not a readable image") from exc

    details = exif.get_ifd(ExifTags.IFD.Exif)
    gps = exif.get_ifd(ExifTags.IFD.GPSInfo)
    latitude = _degrees(
        gps.get(ExifTags.GPS.GPSLatitude), gps.get(ExifTags.GPS.GPSLatitudeRef), 90
    )
    longitude = _degrees(
        gps.get(ExifTags.GPS.GPSLongitude), gps.get(ExifTags.GPS.GPSLongitudeRef), 180
    )
    has_position = latitude is not None and longitude is not None
    if not has_position:
        latitude = longitude = None

    return ImageMetadata(
        date_taken=_date_taken(
            details.get(ExifTags.Base.DateTimeOriginal)
            or exif.get(ExifTags.Base.DateTime)
        ),
        gps_coordinates=f"{latitude:.6f}, {longitude:.6f}" if has_position else None,
        latitude=latitude,
        longitude=longitude,
        altitude=_altitude(gps),
        direction=_direction(gps),
        speed=_speed(gps),
        edit_history=_text(exif.get(ExifTags.Base.Software)),
        device_info=_device(exif),
        location=(
            IncidentLocation(latitude=latitude, longitude=longitude)
            if has_position
            else None
        ),
    )


def _text(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    text = str(value).strip("\x00 ")
    return text or None


def _device(exif: Image.Exif) -> str | None:
    parts = (_text(exif.get(ExifTags.Base.Make)), _text(exif.get(ExifTags.Base.Model)))
    return " ".join(part for part in parts if part) or None


def _number(value: object) -> float | None:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    return None if math.isnan(number) or math.isinf(number) else number


def _date_taken(value: object) -> str | None:
    text = _text(value)
    if text is None:
        return None
    try:
        return datetime.strptime(text, _EXIF_DATE_FORMAT).isoformat()
    except ValueError:
        _logger.debug("Unrecognised EXIF timestamp %r", text)
        return None


def _degrees(value: object, ref: object, limit: float) -> float | None:
    """Convert an EXIF (degrees, minutes, seconds) triple to signed degrees."""
    hemisphere = (_text(ref) or "").upper()
    if hemisphere not in ("N", "S", "E", "W"):
        return None
    if not isinstance(value, tuple | list) or len(value) != 3:
        return None
    parts = [_number(part) for part in value]
    if any(part is None for part in parts):
        return None
    degrees, minutes, seconds = parts
    result = degrees + minutes / 60 + seconds / 3600
    if hemisphere in ("S", "W"):
        result = -result
    return result if -limit <= result <= limit else None


def _altitude(gps: dict[int, object]) -> float | None:
    altitude = _number(gps.get(ExifTags.GPS.GPSAltitude))
    if altitude is None:
        return None
    below_sea_level = gps.get(ExifTags.GPS.GPSAltitudeRef) in (1, b"\x01")
    return -altitude if below_sea_level else altitude


def _direction(gps: dict[int, object]) -> str | None:
    direction = _number(gps.get(ExifTags.GPS.GPSImgDirection))
    if direction is None:
        return None
    magnetic = _text(gps.get(ExifTags.GPS.GPSImgDirectionRef)) == "M"
    reference = "magnetic" if magnetic else "true"
    return f"{direction:.1f}° {reference}"


def _speed(gps: dict[int, object]) -> str | None:
    speed = _number(gps.get(ExifTags.GPS.GPSSpeed))
    if speed is None:
        return None
    unit = _SPEED_UNITS.get(_text(gps.get(ExifTags.GPS.GPSSpeedRef)) or "K", "km/h")
    return f"{speed:.1f} {unit}"


def _file_suffix(filename: str | None, content_type: str) -> str:
    suffix = Path(filename).suffix.lower() if filename else ""
    if _SUFFIX_PATTERN.fullmatch(suffix):
        return suffix
    return mimetypes.guess_extension(content_type) or ""


@dataclass
class ImageUploadService:
    """Stores uploaded images and attaches them, with EXIF metadata, to records."""

    observation_service: ObservationService
    upload_dir: Path
    geocoding_service: GeocodingService | None = None
    max_bytes: int = 10 * 1024 * 1024
    clock: Callable[[], datetime] = _utc_now

    async def upload(  # noqa: PLR0913
        self,
        observation_id: int,
        data: bytes,
        content_type: str | None,
        filename: str | None = None,
        description: str | None = None,
        actor_id: str | None = None,
        geocode: bool = True,
    ) -> tuple[ImageRef, ObservationRecord]:
        """Save the file, read its metadata and append it to the record."""
        media_type = (content_type or "").split(";")[0].strip().lower()
        if not media_type.startswith("image/"):
            raise ImageError("Only image files are allowed")
        if not data:
            raise ImageError("No image data uploaded")
        if len(data) > self.max_bytes:
            raise ImageTooLarge(f"Image exceeds {self.max_bytes} bytes")
        self.observation_service.get(observation_id)

        metadata = extract_image_metadata(data)
        if geocode and self.geocoding_service is not None:
            metadata = await self._with_address(metadata)

        stored_name = f"{uuid4().hex}{_file_suffix(filename, media_type)}"
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        path = self.upload_dir / stored_name
        path.write_bytes(data)
        image = ImageRef(
            url=f"{UPLOAD_URL_PREFIX}/{stored_name}",
            name=filename or stored_name,
            description=description or None,
            date_added=self.clock().date().isoformat(),
            metadata=metadata,
        )
        try:
            record = self.observation_service.add_image(
                observation_id, image, actor_id=actor_id
            )
        except Exception:
            path.unlink(missing_ok=True)
            raise
        _logger.info("Stored image %s for observation %s", stored_name, observation_id)
        return image, record

    def resolve(self, stored_name: str) -> Path | None:
        """Return the path of a stored upload, or None for unknown names."""
        if Path(stored_name).name != stored_name or stored_name.startswith("."):
            return None
        path = self.upload_dir / stored_name
        return path if path.is_file() else None

    async def _with_address(self, metadata: ImageMetadata) -> ImageMetadata:
        coordinates = metadata.coordinates()
        if coordinates is None or self.geocoding_service is None:
            return metadata
        try:
            location = await self.geocoding_service.reverse(*coordinates)
        except GeocodingError:
            _logger.warning("Keeping image without an address for %s", coordinates)
            return metadata
        return metadata.model_copy(update={"location": location})
