"""Note encryption at rest.

Only the free-text note a user attaches to a reading is sensitive enough to
encrypt; glucose values and timestamps stay in the clear so window queries
can use the (user_id, reading_time) index.

Keys can be rotated: the current key encrypts, and any retired keys passed
as ``previous_keys`` are still accepted for decryption.
"""

from __future__ import annotations

import logging
from typing import Iterable

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when a note cannot be encrypted or decrypted."""


def _load_key(key: str) -> Fernet:
    if not key or not key.strip():
        raise EncryptionError("Encryption key must not be empty")
    try:
        return Fernet(key.strip().encode("ascii"))
    except ValueError as exc:
        raise EncryptionError(f"Invalid encryption key: {exc}") from exc


class FieldEncryptor:
    """Fernet cipher for reading notes.

    Usage::

        encryptor = FieldEncryptor(key, previous_keys=[old_key])
        token = encryptor.encrypt("felt shaky after run")
        encryptor.decrypt(token)  # "felt shaky after run"
    """

    def __init__(self, key: str, previous_keys: Iterable[str] = ()) -> None:
        retired = [_load_key(k) for k in previous_keys if k and k.strip()]
        self._fernet = MultiFernet([_load_key(key), *retired])
        if retired:
            logger.info("Note encryption accepts %d retired key(s)", len(retired))

    def encrypt(self, note: str | None) -> str | None:
        """Return a token for ``note``; absent or empty notes stay ``None``."""
        if not note:
            return None
        if not isinstance(note, str):
            raise EncryptionError(f"Notes must be text, got {type(note).__name__}")
        return self._fernet.encrypt(note.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str | None) -> str | None:
        if not token:
            return None
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc
        except (UnicodeError, ValueError) as exc:
            raise EncryptionError(f"Decryption failed: {exc}") from exc

    def rotate(self, token: str) -> str:
        """Re-encrypt ``token`` under the current key."""
        try:
            return self._fernet.rotate(token.encode("ascii")).decode("ascii")
        except (InvalidToken, UnicodeError) as exc:
            raise EncryptionError("Rotation failed: invalid token or wrong key") from exc

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode("ascii")
