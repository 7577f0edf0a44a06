"""Fernet field encryption for self-reported and wearable payloads at rest.

Onboarding answers, raw wearable payloads and intraday event details are
encrypted before they reach SQLite. Computed scores (0-100 floats) stay in
plain columns so history queries can filter and order on them.

Retired keys can be supplied for key rotation: new tokens are always written
with the primary key, old tokens still decrypt.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when encryption/decryption fails."""


def _load_key(key: str) -> Fernet:
    if not key or not key.strip():
        raise EncryptionError("Encryption key must not be empty")
    try:
        return Fernet(key.strip().encode("utf-8"))
    except (ValueError, TypeError) as exc:
        raise EncryptionError(f"Invalid encryption key: {exc}") from exc


class FieldEncryptor:
    """Encrypts JSON-serializable values into Fernet tokens and back.

    Usage::

        encryptor = FieldEncryptor(key="...")
        token = encryptor.encrypt({"sleep_hours": "7-8h"})
        encryptor.decrypt(token)  # {"sleep_hours": "7-8h"}
    """

    def __init__(self, key: str, previous_keys: Iterable[str] = ()) -> None:
        """Initialize with a primary Fernet key and optional retired keys.

        Raises:
            EncryptionError: If any key is empty or malformed.
        """
        keys = [_load_key(key)] + [_load_key(k) for k in previous_keys]
        self._fernet = MultiFernet(keys)
        if len(keys) > 1:
            logger.info("Field encryption configured with %d retired key(s)", len(keys) - 1)

    def encrypt(self, data: Any) -> str:
        """Serialize ``data`` to compact JSON and encrypt it.

        ``None`` is stored as an empty string so nullable columns stay cheap.
        """
        if data is None:
            return ""
        try:
            plaintext = json.dumps(data, separators=(",", ":"), sort_keys=True)
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Payload is not JSON-serializable: {exc}") from exc
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, token: str | None) -> Any:
        """Decrypt a token produced by :meth:`encrypt` (or a retired key).

        Raises:
            EncryptionError: If the token is corrupt or no configured key matches.
        """
        if not token:
            return None
        try:
            plaintext = self._fernet.decrypt(token.encode("utf-8"))
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc
        return json.loads(plaintext)

    def rotate(self, token: str) -> str:
        """Re-encrypt a token under the primary key."""
        if not token:
            return token
        try:
            return self._fernet.rotate(token.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise EncryptionError("Rotation failed: invalid token or wrong key") from exc

    @staticmethod
    def generate_key() -> str:
        """Generate a new URL-safe base64 Fernet key."""
        return Fernet.generate_key().decode("utf-8")
