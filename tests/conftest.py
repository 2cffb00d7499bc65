"""Shared test fixtures."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from observe_report.adapters.encrypted_observation_repository import (
    EncryptedObservationRepository,
)
from observe_report.adapters.memory_repositories import (
    InMemoryAuditRepository,
    InMemoryIdentityRepository,
    InMemoryObservationRepository,
    InMemorySessionRepository,
)
from observe_report.adapters.nominatim_client import GeocodingClient
from observe_report.api.app import create_app
from observe_report.config import Settings
from observe_report.containers import AppContainer
from observe_report.services.audit import AuditService
from observe_report.services.auth import AccessGuard, SessionStore
from observe_report.services.cache import InMemoryCache
from observe_report.services.encryption import FieldCipher, generate_key
from observe_report.services.exchange import ExchangeService
from observe_report.services.geocoding import GeocodingService
from observe_report.services.images import ImageUploadService
from observe_report.services.observations import ObservationService
from observe_report.services.search import SearchService


@dataclass
class FakeClock:
    """Manually advanced clock."""

    now: datetime = field(
        default_factory=lambda: datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
    )

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


@dataclass
class FakeGeocodingClient(GeocodingClient):
    """Fake geocoding client returning a fixed Nominatim payload."""

    payload: dict[str, object] = field(
        default_factory=lambda: {
            "display_name": "221, Baker Street, London, NW1 6XE",
            "address": {
                "house_number": "221",
                "road": "Baker Street",
                "city": "London",
                "state": "England",
                "postcode": "NW1 6XE",
            },
        }
    )
    calls: list[tuple[float, float]] = field(default_factory=list)
    fail: bool = False

    async def reverse(self, latitude: float, longitude: float) -> dict[str, object]:
        self.calls.append((latitude, longitude))
        if self.fail:
            raise httpx.ConnectError("upstream unavailable")
        return self.payload


@pytest.fixture
def settings() -> Settings:
    return Settings(
        storage_backend="memory",
        default_username="admin",
        default_password="password123",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def audit_repository() -> InMemoryAuditRepository:
    return InMemoryAuditRepository()


@pytest.fixture
def geocoding_client() -> FakeGeocodingClient:
    return FakeGeocodingClient()


@pytest.fixture
def session_store(settings: Settings, clock: FakeClock) -> SessionStore:
    store = SessionStore(
        identity_repository=InMemoryIdentityRepository(),
        session_repository=InMemorySessionRepository(),
        session_ttl=timedelta(hours=settings.session_ttl_hours),
        min_password_length=settings.min_password_length,
        clock=clock,
    )
    store.bootstrap_default_identity(
        settings.default_username, settings.default_password
    )
    return store


@pytest.fixture
def observation_repository() -> InMemoryObservationRepository:
    return InMemoryObservationRepository()


@pytest.fixture
def field_cipher() -> FieldCipher:
    return FieldCipher.from_hex(generate_key())


@pytest.fixture
def observation_service(
    clock: FakeClock,
    audit_repository: InMemoryAuditRepository,
    observation_repository: InMemoryObservationRepository,
    field_cipher: FieldCipher,
) -> ObservationService:
    """Service over an in-memory store holding encrypted sensitive fields."""
    return ObservationService(
        repository=EncryptedObservationRepository(
            inner=observation_repository, cipher=field_cipher
        ),
        audit_service=AuditService(audit_repository),
        clock=clock,
    )


@pytest.fixture
def container(
    settings: Settings,
    session_store: SessionStore,
    observation_service: ObservationService,
    geocoding_client: FakeGeocodingClient,
    clock: FakeClock,
    tmp_path: Path,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    geocoding_service = GeocodingService(
        client=geocoding_client, cache=InMemoryCache(clock=clock)
    )
    return AppContainer(
        settings=settings,
        session_store=session_store,
        access_guard=AccessGuard(session_store),
        observation_service=observation_service,
        search_service=SearchService(observation_service),
        exchange_service=ExchangeService(observation_service, clock=clock),
        geocoding_service=geocoding_service,
        audit_service=observation_service.audit_service,
        image_service=ImageUploadService(
            observation_service=observation_service,
            upload_dir=tmp_path / "uploads",
            geocoding_service=geocoding_service,
            clock=clock,
        ),
        close_resources=close_resources,
    )


@pytest.fixture
def client(container: AppContainer) -> Iterator[TestClient]:
    with TestClient(create_app(container)) as test_client:
        yield test_client


@pytest.fixture
def auth_client(client: TestClient) -> TestClient:
    """Client holding a session cookie for the default account."""
    response = client.post(
        "/api/login", json={"username": "admin", "password": "password123"}
    )
    assert response.status_code == 200
    return client


def sample_observation(**overrides: object) -> dict[str, object]:
    """Return a valid observation payload."""
    payload: dict[str, object] = {
        "date": "2024-01-15",
        "time": "14:30",
        "person": {"firstName": "John", "lastName": "Doe", "hairColor": "brown"},
        "vehicle": {
            "make": "Toyota",
            "model": "Camry",
            "color": "Blue",
            "licensePlate": ["A", "B", "C", "1", "2", "3", None],
        },
        "location": {
            "streetNumber": "100",
            "streetName": "Main St",
            "city": "Springfield",
            "state": "IL",
            "zipCode": "62701",
            "latitude": 39.7817,
            "longitude": -89.6501,
        },
        "notes": "Parked near the library",
    }
    payload.update(overrides)
    return payload
