"""Observation repository decorator that keeps sensitive fields encrypted."""

from dataclasses import dataclass
from datetime import datetime

from observe_report.domain.observations import ObservationFields, ObservationRecord
from observe_report.services.encryption import (
    FieldCipher,
    decrypt_sensitive_fields,
    encrypt_sensitive_fields,
)
from observe_report.services.observations import ObservationRepository


@dataclass
class EncryptedObservationRepository(ObservationRepository):
    """Encrypts on the way into ``inner`` and decrypts on the way out.

    Callers above this layer only ever see plaintext; ``inner`` only ever
    stores ciphertext for the sensitive fields.
    """

    inner: ObservationRepository
    cipher: FieldCipher

    def insert(
        self, fields: ObservationFields, created_at: datetime
    ) -> ObservationRecord:
        record = self.inner.insert(
            encrypt_sensitive_fields(fields, self.cipher), created_at
        )
        return decrypt_sensitive_fields(record, self.cipher)

    def get(self, observation_id: int) -> ObservationRecord | None:
        record = self.inner.get(observation_id)
        if record is None:
            return None
        return decrypt_sensitive_fields(record, self.cipher)

    def replace(self, record: ObservationRecord) -> None:
        self.inner.replace(encrypt_sensitive_fields(record, self.cipher))

    def list_all(self) -> list[ObservationRecord]:
        return [
            decrypt_sensitive_fields(record, self.cipher)
            for record in self.inner.list_all()
        ]
