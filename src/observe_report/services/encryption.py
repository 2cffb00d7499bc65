"""Field-level encryption for sensitive observation content.

Person name and description, the record notes and every additional note are
stored as AES-256-GCM ciphertext. Encrypted values carry the ``enc1:`` prefix
followed by hex of ``nonce || ciphertext``; values without the prefix are
treated as legacy plaintext and returned unchanged on decrypt.
"""

import secrets
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from observe_report.domain.observations import ObservationFields
from observe_report.errors import FieldCipherError

ENCRYPTED_PREFIX = "enc1:"
_NONCE_BYTES = 12
_KEY_BYTES = 32
_SENSITIVE_PERSON_FIELDS = ("name", "description")

FieldsT = TypeVar("FieldsT", bound=ObservationFields)


def generate_key() -> str:
    """Return a fresh hex-encoded 256-bit key."""
    return secrets.token_hex(_KEY_BYTES)


def _parse_key(key_hex: str) -> bytes:
    text = key_hex.strip()
    if text.startswith(("0x", "0X")):
        text = text[2:]
    try:
        key = bytes.fromhex(text)
    except ValueError as exc:
        raise FieldCipherError("Encryption key must be hex-encoded") from exc
    if len(key) not in (16, 24, 32):
        raise FieldCipherError(
            f"Encryption key must be 16, 24 or 32 bytes (got {len(key)})"
        )
    return key


@dataclass(frozen=True)
class FieldCipher:
    """AES-GCM cipher for individual string fields."""

    key: bytes

    @classmethod
    def from_hex(cls, key_hex: str) -> "FieldCipher":
        """Build a cipher from a hex key."""
        return cls(_parse_key(key_hex))

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string; each call uses a fresh nonce."""
        nonce = secrets.token_bytes(_NONCE_BYTES)
        ciphertext = AESGCM(self.key).encrypt(nonce, plaintext.encode("utf-8"), None)
        return ENCRYPTED_PREFIX + (nonce + ciphertext).hex()

    def decrypt(self, value: str) -> str:
        """Decrypt a value produced by :meth:`encrypt`."""
        if not is_encrypted(value):
            return value
        try:
            data = bytes.fromhex(value[len(ENCRYPTED_PREFIX) :])
            plaintext = AESGCM(self.key).decrypt(
                data[:_NONCE_BYTES], data[_NONCE_BYTES:], None
            )
            return plaintext.decode("utf-8")
        except (InvalidTag, ValueError) as exc:
            raise FieldCipherError("Stored field could not be decrypted") from exc


def is_encrypted(value: str | None) -> bool:
    """Return True when a stored value carries the ciphertext prefix."""
    return bool(value) and value.startswith(ENCRYPTED_PREFIX)


def encrypt_sensitive_fields(fields: FieldsT, cipher: FieldCipher) -> FieldsT:
    """Return a copy of ``fields`` with its sensitive values encrypted."""
    return _convert(fields, cipher.encrypt)


def decrypt_sensitive_fields(fields: FieldsT, cipher: FieldCipher) -> FieldsT:
    """Return a copy of ``fields`` with its sensitive values decrypted."""
    return _convert(fields, cipher.decrypt)


def _convert(fields: FieldsT, convert: Callable[[str], str]) -> FieldsT:
    person_updates = {}
    for name in _SENSITIVE_PERSON_FIELDS:
        value = getattr(fields.person, name)
        if value:
            person_updates[name] = convert(value)
    notes = [
        note.model_copy(update={"content": convert(note.content)})
        for note in fields.additional_notes
    ]
    return fields.model_copy(
        update={
            "person": fields.person.model_copy(update=person_updates),
            "notes": convert(fields.notes) if fields.notes else fields.notes,
            "additional_notes": notes,
        }
    )
