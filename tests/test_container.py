"""Tests for container wiring and configuration."""

import asyncio

import pytest

from observe_report.adapters.encrypted_observation_repository import (
    EncryptedObservationRepository,
)
from observe_report.config import Settings, uses_supabase
from observe_report.containers import build_container
from observe_report.errors import FieldCipherError
from observe_report.services.encryption import generate_key


def test_build_container_creates_services(settings: Settings) -> None:
    container = build_container(settings)

    assert container.observation_service is not None
    assert container.search_service.observation_service is container.observation_service
    admin = container.session_store.identity_repository.get_by_username("admin")
    assert admin is not None
    assert admin.is_default_account
    asyncio.run(container.close_resources())


def test_uses_supabase() -> None:
    assert not uses_supabase(Settings(storage_backend="memory"))
    assert uses_supabase(
        Settings(
            storage_backend="supabase",
            supabase_url="https://example.supabase.co",
            supabase_service_key="service-key",
        )
    )
    with pytest.raises(ValueError):
        uses_supabase(Settings(storage_backend="supabase"))
    with pytest.raises(ValueError):
        uses_supabase(Settings(storage_backend="sqlite"))


def test_build_container_encrypts_with_configured_key(tmp_path) -> None:
    key = generate_key()
    container = build_container(
        Settings(field_encryption_key=key, upload_dir=str(tmp_path))
    )

    repository = container.observation_service.repository
    assert isinstance(repository, EncryptedObservationRepository)
    assert repository.cipher.key == bytes.fromhex(key)
    assert container.image_service.upload_dir == tmp_path
    asyncio.run(container.close_resources())

    with pytest.raises(FieldCipherError):
        build_container(Settings(field_encryption_key="short"))
