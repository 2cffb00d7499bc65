"""Tests for field-level encryption at rest."""

import asyncio
import json
from datetime import UTC, datetime

import pytest

from observe_report.adapters.encrypted_observation_repository import (
    EncryptedObservationRepository,
)
from observe_report.adapters.memory_repositories import InMemoryObservationRepository
from observe_report.adapters.supabase_observation_repository import (
    SupabaseObservationRepository,
)
from observe_report.domain.observations import ObservationFields
from observe_report.errors import FieldCipherError
from observe_report.services.encryption import (
    ENCRYPTED_PREFIX,
    FieldCipher,
    generate_key,
    is_encrypted,
)
from observe_report.services.exchange import ExchangeService
from observe_report.services.observations import ObservationService
from observe_report.services.search import SearchService
from tests.conftest import sample_observation
from tests.test_supabase_adapters import FakeSupabaseClient


def _sensitive_observation() -> dict[str, object]:
    return sample_observation(
        person={
            "firstName": "John",
            "name": "John Doe",
            "description": "scar on left cheek",
        },
        additionalNotes=[{"date": "2024-01-16", "content": "seen again at noon"}],
    )


def test_cipher_uses_fresh_nonces() -> None:
    cipher = FieldCipher.from_hex(generate_key())

    first = cipher.encrypt("secret")
    second = cipher.encrypt("secret")

    assert first != second
    assert first.startswith(ENCRYPTED_PREFIX)
    assert cipher.decrypt(first) == cipher.decrypt(second) == "secret"
    assert cipher.decrypt("legacy plaintext") == "legacy plaintext"


def test_cipher_rejects_wrong_key_and_bad_keys() -> None:
    stored = FieldCipher.from_hex(generate_key()).encrypt("secret")

    with pytest.raises(FieldCipherError):
        FieldCipher.from_hex(generate_key()).decrypt(stored)
    with pytest.raises(FieldCipherError):
        FieldCipher.from_hex("not hex")
    with pytest.raises(FieldCipherError):
        FieldCipher.from_hex("00ff")


def test_stored_records_hold_ciphertext(
    observation_service: ObservationService,
    observation_repository: InMemoryObservationRepository,
) -> None:
    created = observation_service.create(_sensitive_observation())

    stored = observation_repository.records[created.id]

    assert is_encrypted(stored.person.name)
    assert is_encrypted(stored.person.description)
    assert is_encrypted(stored.notes)
    assert is_encrypted(stored.additional_notes[0].content)
    assert "John Doe" not in stored.model_dump_json()
    assert stored.person.first_name == "John"
    assert created.person.name == "John Doe"
    assert created.additional_notes[0].content == "seen again at noon"


def test_updates_are_encrypted_again(
    observation_service: ObservationService,
    observation_repository: InMemoryObservationRepository,
) -> None:
    observation_service.create(_sensitive_observation())

    updated = observation_service.update(1, {"notes": "moved to the east lot"})

    assert updated.notes == "moved to the east lot"
    assert is_encrypted(observation_repository.records[1].notes)
    assert is_encrypted(observation_repository.records[1].person.name)
    assert observation_service.get(1).person.name == "John Doe"


def test_search_and_export_see_plaintext(
    observation_service: ObservationService,
) -> None:
    observation_service.create(_sensitive_observation())
    search = SearchService(observation_service)
    exchange = ExchangeService(observation_service)

    by_query = search.search({"query": "left cheek"})
    by_name = search.search({"personFields": {"name": "john"}})
    document = json.loads(exchange.export_json())

    assert [record.id for record in by_query] == [1]
    assert [record.id for record in by_name] == [1]
    exported = document["records"][0]
    assert exported["person"]["name"] == "John Doe"
    assert exported["notes"] == "Parked near the library"
    assert exported["additionalNotes"][0]["content"] == "seen again at noon"


def test_import_stores_ciphertext(
    observation_service: ObservationService,
    observation_repository: InMemoryObservationRepository,
) -> None:
    exchange = ExchangeService(observation_service)

    result = asyncio.run(
        exchange.import_document({"records": [_sensitive_observation()]})
    )

    assert result.imported_count == 1
    assert is_encrypted(observation_repository.records[1].person.description)
    assert observation_service.get(1).person.description == "scar on left cheek"


def test_supabase_rows_hold_ciphertext() -> None:
    client = FakeSupabaseClient()
    observations = client.table("observations")
    observations.queue("insert", [{"id": 1}])
    cipher = FieldCipher.from_hex(generate_key())
    repository = EncryptedObservationRepository(
        inner=SupabaseObservationRepository(client), cipher=cipher
    )

    record = repository.insert(
        ObservationFields.model_validate(_sensitive_observation()),
        datetime(2024, 3, 1, tzinfo=UTC),
    )

    row = observations.last_payload
    assert isinstance(row, dict)
    assert is_encrypted(row["notes"])
    assert is_encrypted(row["person"]["name"])
    assert is_encrypted(row["additional_notes"][0]["content"])
    assert row["person"]["firstName"] == "John"
    assert record.notes == "Parked near the library"

    observations.queue("select", [row])
    fetched = repository.get(1)

    assert fetched is not None
    assert fetched.person.description == "scar on left cheek"
