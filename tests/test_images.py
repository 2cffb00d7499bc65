"""Tests for image upload and EXIF extraction."""

import asyncio
import io
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from PIL import ExifTags, Image

from observe_report.errors import ImageError, ImageTooLarge, NotFound
from observe_report.services.cache import InMemoryCache
from observe_report.services.geocoding import GeocodingService
from observe_report.services.images import ImageUploadService, extract_image_metadata
from observe_report.services.observations import ObservationService
from tests.conftest import FakeGeocodingClient, sample_observation


def _camera_exif() -> Image.Exif:
    exif = Image.Exif()
    exif[ExifTags.Base.Make] = "Canon"
    exif[ExifTags.Base.Model] = "EOS 80D"
    exif[ExifTags.Base.Software] = "Darktable 4.6"
    exif[ExifTags.Base.DateTime] = "2024:01:15 15:00:00"
    exif[ExifTags.IFD.Exif] = {ExifTags.Base.DateTimeOriginal: "2024:01:15 14:29:58"}
    exif[ExifTags.IFD.GPSInfo] = {
        ExifTags.GPS.GPSLatitudeRef: "N",
        ExifTags.GPS.GPSLatitude: (51.0, 30.0, 25.2),
        ExifTags.GPS.GPSLongitudeRef: "W",
        ExifTags.GPS.GPSLongitude: (0.0, 7.0, 39.6),
        ExifTags.GPS.GPSAltitude: 35.0,
        ExifTags.GPS.GPSSpeedRef: "K",
        ExifTags.GPS.GPSSpeed: 12.5,
        ExifTags.GPS.GPSImgDirectionRef: "T",
        ExifTags.GPS.GPSImgDirection: 90.0,
    }
    return exif


def _jpeg(with_exif: bool = True) -> bytes:
    buffer = io.BytesIO()
    image = Image.new("RGB", (8, 8), "white")
    if with_exif:
        image.save(buffer, format="JPEG", exif=_camera_exif())
    else:
        image.save(buffer, format="JPEG")
    return buffer.getvalue()


@pytest.fixture
def image_service(
    observation_service: ObservationService,
    geocoding_client: FakeGeocodingClient,
    tmp_path: Path,
    clock,
) -> ImageUploadService:
    observation_service.create(sample_observation())
    return ImageUploadService(
        observation_service=observation_service,
        upload_dir=tmp_path,
        geocoding_service=GeocodingService(
            client=geocoding_client, cache=InMemoryCache()
        ),
        max_bytes=64 * 1024,
        clock=clock,
    )


def test_extract_metadata_reads_gps_and_capture_time() -> None:
    metadata = extract_image_metadata(_jpeg())

    assert metadata.latitude == pytest.approx(51.507, abs=1e-6)
    assert metadata.longitude == pytest.approx(-0.127667, abs=1e-6)
    assert metadata.gps_coordinates == "51.507000, -0.127667"
    assert metadata.date_taken == "2024-01-15T14:29:58"
    assert metadata.altitude == pytest.approx(35.0)
    assert metadata.speed == "12.5 km/h"
    assert metadata.direction == "90.0° true"
    assert metadata.device_info == "Canon EOS 80D"
    assert metadata.edit_history == "Darktable 4.6"
    assert metadata.location is not None
    assert metadata.location.coordinates() == (metadata.latitude, metadata.longitude)


def test_extract_metadata_without_exif() -> None:
    metadata = extract_image_metadata(_jpeg(with_exif=False))

    assert metadata.coordinates() is None
    assert metadata.gps_coordinates is None
    assert metadata.date_taken is None
    assert metadata.location is None


def test_extract_metadata_rejects_non_images() -> None:
    with pytest.raises(ImageError):
        extract_image_metadata(b"plain text, not a picture")


def test_upload_attaches_geocoded_image(
    image_service: ImageUploadService,
    geocoding_client: FakeGeocodingClient,
    tmp_path: Path,
) -> None:
    image, record = asyncio.run(
        image_service.upload(
            1, _jpeg(), "image/jpeg", filename="scene.JPG", description="north side"
        )
    )

    stored_name = image.url.removeprefix("/uploads/")
    assert stored_name.endswith(".jpg")
    assert (tmp_path / stored_name).read_bytes() == _jpeg()
    assert image.name == "scene.JPG"
    assert image.description == "north side"
    assert image.date_added == "2024-03-01"
    assert record.images == [image]
    assert image.metadata is not None
    assert image.metadata.location is not None
    assert image.metadata.location.city == "London"
    assert image.metadata.location.formatted_address.startswith("221 Baker Street")
    assert len(geocoding_client.calls) == 1


def test_upload_keeps_position_when_geocoding_fails(
    image_service: ImageUploadService, geocoding_client: FakeGeocodingClient
) -> None:
    geocoding_client.fail = True

    image, _ = asyncio.run(image_service.upload(1, _jpeg(), "image/jpeg"))

    assert image.metadata is not None
    assert image.metadata.latitude == pytest.approx(51.507, abs=1e-6)
    assert image.metadata.location is not None
    assert image.metadata.location.city is None


def test_upload_can_skip_geocoding(
    image_service: ImageUploadService, geocoding_client: FakeGeocodingClient
) -> None:
    asyncio.run(image_service.upload(1, _jpeg(), "image/jpeg", geocode=False))

    assert geocoding_client.calls == []


def test_upload_rejections_leave_no_files(
    image_service: ImageUploadService, tmp_path: Path
) -> None:
    with pytest.raises(ImageError):
        asyncio.run(image_service.upload(1, b"notes", "text/plain"))
    with pytest.raises(ImageError):
        asyncio.run(image_service.upload(1, b"", "image/jpeg"))
    with pytest.raises(ImageTooLarge):
        asyncio.run(image_service.upload(1, b"0" * (64 * 1024 + 1), "image/png"))
    with pytest.raises(NotFound):
        asyncio.run(image_service.upload(99, _jpeg(), "image/jpeg"))

    assert list(tmp_path.iterdir()) == []


def test_resolve_refuses_paths_outside_the_upload_dir(
    image_service: ImageUploadService,
) -> None:
    assert image_service.resolve("../secrets.txt") is None
    assert image_service.resolve("missing.jpg") is None


def test_upload_endpoint(auth_client: TestClient) -> None:
    auth_client.post("/api/observations", json=sample_observation())

    response = auth_client.post(
        "/api/observations/1/images/upload",
        params={"name": "scene.jpg", "description": "from the corner"},
        content=_jpeg(),
        headers={"Content-Type": "image/jpeg"},
    )

    assert response.status_code == 201
    body = response.json()
    image = body["image"]
    assert image["metadata"]["gpsCoordinates"] == "51.507000, -0.127667"
    assert image["metadata"]["location"]["city"] == "London"
    assert body["observation"]["images"][0]["url"] == image["url"]
    served = auth_client.get(image["url"])
    assert served.status_code == 200
    assert served.content == _jpeg()


def test_upload_endpoint_errors(auth_client: TestClient, client: TestClient) -> None:
    auth_client.post("/api/observations", json=sample_observation())

    wrong_type = auth_client.post(
        "/api/observations/1/images/upload",
        content=b"hello",
        headers={"Content-Type": "text/plain"},
    )
    unknown = auth_client.post(
        "/api/observations/7/images/upload",
        content=_jpeg(),
        headers={"Content-Type": "image/jpeg"},
    )
    missing = auth_client.get("/uploads/nothing-here.jpg")
    auth_client.post("/api/logout")
    anonymous = client.get("/uploads/nothing-here.jpg")

    assert wrong_type.status_code == 400
    assert unknown.status_code == 404
    assert missing.status_code == 404
    assert anonymous.status_code == 401
