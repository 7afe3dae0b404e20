"""
Cryptographic primitives backing the secret vault.

Key derivation  : PBKDF2-HMAC-SHA256
Encryption      : AES-256-GCM (authenticated encryption)
"""

import secrets

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

# ── Constants ────────────────────────────────────────────────────────────────

SALT_SIZE = 32          # 256-bit salt
NONCE_SIZE = 12         # 96-bit nonce (GCM recommendation)
KEY_SIZE = 32           # 256-bit AES key
PBKDF2_ITERATIONS = 480_000  # OWASP 2023 recommendation for PBKDF2-SHA256


def derive_key(password: str, salt: bytes, iterations: int = PBKDF2_ITERATIONS) -> bytes:
    """
    Derive a 256-bit key from ``password`` using PBKDF2-HMAC-SHA256.

    Args:
        password:   Master password (unicode string).
        salt:       Random salt, see :func:`generate_salt`.
        iterations: KDF work factor.

    Returns:
        32-byte derived key.
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password.encode("utf-8"))


def generate_salt() -> bytes:
    """Return a cryptographically random 32-byte salt."""
    return secrets.token_bytes(SALT_SIZE)


def encrypt(plaintext: bytes, key: bytes, associated_data: bytes = b"") -> bytes:
    """
    Encrypt *plaintext* with AES-256-GCM.

    Layout of returned blob::

        [ nonce (12 bytes) | ciphertext+tag ]

    ``associated_data`` is authenticated but not stored; the same value must
    be passed to :func:`decrypt`.

    Raises:
        ValueError: If key length is not 32 bytes.
    """
    if len(key) != KEY_SIZE:
        raise ValueError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")
    nonce = secrets.token_bytes(NONCE_SIZE)
    return nonce + AESGCM(key).encrypt(nonce, plaintext, associated_data or None)


def decrypt(blob: bytes, key: bytes, associated_data: bytes = b"") -> bytes:
    """
    Decrypt a blob produced by :func:`encrypt`.

    Raises:
        ValueError: If key length is not 32 bytes.
        cryptography.exceptions.InvalidTag: If authentication fails (wrong key,
            wrong associated data or tampered blob).
    """
    if len(key) != KEY_SIZE:
        raise ValueError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")
    nonce, ciphertext = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
    return AESGCM(key).decrypt(nonce, ciphertext, associated_data or None)
