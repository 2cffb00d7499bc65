"""Dependency container wiring for the application."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from supabase import create_client

from observe_report.adapters.encrypted_observation_repository import (
    EncryptedObservationRepository,
)
from observe_report.adapters.memory_repositories import (
    InMemoryAuditRepository,
    InMemoryIdentityRepository,
    InMemoryObservationRepository,
    InMemorySessionRepository,
)
from observe_report.adapters.nominatim_client import HttpxNominatimClient
from observe_report.adapters.supabase_audit_repository import SupabaseAuditRepository
from observe_report.adapters.supabase_identity_repository import (
    SupabaseIdentityRepository,
    SupabaseSessionRepository,
)
from observe_report.adapters.supabase_observation_repository import (
    SupabaseObservationRepository,
)
from observe_report.config import Settings, uses_supabase
from observe_report.services.audit import AuditService
from observe_report.services.auth import AccessGuard, SessionStore
from observe_report.services.cache import InMemoryCache
from observe_report.services.encryption import FieldCipher, generate_key
from observe_report.services.exchange import ExchangeService
from observe_report.services.geocoding import GeocodingService
from observe_report.services.images import ImageUploadService
from observe_report.services.observations import ObservationService
from observe_report.services.search import SearchService

_logger = logging.getLogger(__name__)


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session_store: SessionStore
    access_guard: AccessGuard
    observation_service: ObservationService
    search_service: SearchService
    exchange_service: ExchangeService
    geocoding_service: GeocodingService
    audit_service: AuditService
    image_service: ImageUploadService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    persistent = uses_supabase(resolved_settings)
    if persistent:
        supabase_client = create_client(
            resolved_settings.supabase_url, resolved_settings.supabase_service_key
        )
        identity_repository = SupabaseIdentityRepository(supabase_client)
        session_repository = SupabaseSessionRepository(supabase_client)
        observation_repository = SupabaseObservationRepository(supabase_client)
        audit_repository = SupabaseAuditRepository(supabase_client)
    else:
        identity_repository = InMemoryIdentityRepository()
        session_repository = InMemorySessionRepository()
        observation_repository = InMemoryObservationRepository()
        audit_repository = InMemoryAuditRepository()

    session_store = SessionStore(
        identity_repository=identity_repository,
        session_repository=session_repository,
        session_ttl=timedelta(hours=resolved_settings.session_ttl_hours),
        min_password_length=resolved_settings.min_password_length,
    )
    session_store.bootstrap_default_identity(
        resolved_settings.default_username, resolved_settings.default_password
    )
    audit_service = AuditService(audit_repository)
    observation_service = ObservationService(
        repository=EncryptedObservationRepository(
            inner=observation_repository,
            cipher=_field_cipher(resolved_settings, persistent),
        ),
        audit_service=audit_service,
    )
    geocoding_client = HttpxNominatimClient.create(
        base_url=resolved_settings.nominatim_base_url,
        user_agent=resolved_settings.nominatim_user_agent,
    )
    geocoding_service = GeocodingService(
        client=geocoding_client,
        cache=InMemoryCache(),
        ttl_seconds=resolved_settings.geocode_cache_ttl_seconds,
    )

    async def close_resources() -> None:
        await geocoding_client.close()

    return AppContainer(
        settings=resolved_settings,
        session_store=session_store,
        access_guard=AccessGuard(session_store),
        observation_service=observation_service,
        search_service=SearchService(observation_service),
        exchange_service=ExchangeService(observation_service),
        geocoding_service=geocoding_service,
        audit_service=audit_service,
        image_service=ImageUploadService(
            observation_service=observation_service,
            upload_dir=Path(resolved_settings.upload_dir),
            geocoding_service=geocoding_service,
            max_bytes=resolved_settings.max_upload_bytes,
        ),
        close_resources=close_resources,
    )


def _field_cipher(settings: Settings, persistent: bool) -> FieldCipher:
    if settings.field_encryption_key:
        return FieldCipher.from_hex(settings.field_encryption_key)
    if persistent:
        raise ValueError("Supabase backend requires FIELD_ENCRYPTION_KEY")
    _logger.warning("FIELD_ENCRYPTION_KEY not set; using a process-local key")
    return FieldCipher.from_hex(generate_key())
