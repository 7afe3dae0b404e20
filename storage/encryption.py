"""
Storage-level encryption helpers.

Wraps :mod:`core.crypto` to turn vault values into text blobs that sit in a
SQLite ``TEXT`` column. Keys are never written to disk through this module.
"""

import base64

from core import crypto


class FieldEncryptor:
    """Encrypt / decrypt individual vault values using AES-256-GCM."""

    def __init__(self, key: bytes) -> None:
        """
        Args:
            key: 32-byte AES key derived with :func:`core.crypto.derive_key`.
        """
        if len(key) != crypto.KEY_SIZE:
            raise ValueError("Key must be 32 bytes.")
        self._key = key

    def encrypt_bytes(self, data: bytes, context: str = "") -> str:
        """
        Encrypt ``data`` and return a URL-safe base64 blob.

        ``context`` (typically the row key) is bound to the ciphertext so a
        blob copied onto another row fails to decrypt.
        """
        blob = crypto.encrypt(data, self._key, context.encode("utf-8"))
        return base64.urlsafe_b64encode(blob).decode("ascii")

    def decrypt_bytes(self, encoded: str, context: str = "") -> bytes:
        """
        Decrypt a blob produced by :meth:`encrypt_bytes`.

        Raises:
            cryptography.exceptions.InvalidTag: On integrity/auth failure.
        """
        blob = base64.urlsafe_b64decode(encoded.encode("ascii"))
        return crypto.decrypt(blob, self._key, context.encode("utf-8"))

    def wipe_key(self) -> None:
        """Overwrite the in-memory key with zeros (best-effort)."""
        self._key = b"\x00" * len(self._key)
