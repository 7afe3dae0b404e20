"""
Encrypted secret vault keyed by account id.

Secrets are raw bytes encrypted per row with AES-256-GCM (row id bound as
associated data). The key comes from the master password; only the salt and
an encrypted check value are stored in the clear.

Schema
------
secrets
  account_id TEXT PRIMARY KEY
  value      TEXT NOT NULL      -- base64(nonce | ciphertext | tag)

vault_meta
  key        TEXT PRIMARY KEY   -- 'salt' (hex) / 'iterations' / 'check' (encrypted)
  value      TEXT NOT NULL
"""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Optional

from cryptography.exceptions import InvalidTag

from core.crypto import PBKDF2_ITERATIONS, derive_key, generate_salt
from storage.database import default_db_path
from storage.encryption import FieldEncryptor

logger = logging.getLogger(__name__)

_CHECK_PLAINTEXT = b"otpdeck-vault"
_CHECK_CONTEXT = "vault-check"


class SecretVault:
    """Thread-safe encrypted key/value store for OTP secrets."""

    def __init__(
        self,
        db_path: Optional[Path] = None,
        encryptor: Optional[FieldEncryptor] = None,
        iterations: int = PBKDF2_ITERATIONS,
    ) -> None:
        """
        Args:
            db_path:    Path to the SQLite file (may be shared with
                        :class:`storage.database.AccountDatabase`).
            encryptor:  Ready encryptor; normally set later by :meth:`unlock`.
            iterations: KDF work factor used when a new master password is
                        set up. Existing vaults keep the stored value.
        """
        self._iterations = iterations
        self._path = db_path or default_db_path()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._encryptor = encryptor
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(self._path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._bootstrap()

    def _bootstrap(self) -> None:
        with self._lock, self._conn:
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS secrets (
                    account_id TEXT PRIMARY KEY,
                    value      TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS vault_meta (
                    key   TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
                """
            )

    # ── Master password ──────────────────────────────────────────────────

    def _meta(self, key: str) -> Optional[str]:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM vault_meta WHERE key=?", (key,)
            ).fetchone()
        return row["value"] if row else None

    def _set_meta(self, key: str, value: str) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO vault_meta (key, value) VALUES (?, ?)",
                (key, value),
            )

    def has_master_password(self) -> bool:
        """Return True once a master password has been set up."""
        return self._meta("check") is not None

    def unlock(self, password: str) -> bool:
        """
        Derive the key from ``password`` and attach it.

        On a fresh vault the password becomes the master password. On an
        existing vault the password is checked first; a wrong password
        leaves the vault locked and returns False.
        """
        salt_hex = self._meta("salt")
        if salt_hex is None:
            salt = generate_salt()
            self._set_meta("salt", salt.hex())
            self._set_meta("iterations", str(self._iterations))
        else:
            salt = bytes.fromhex(salt_hex)
        iterations = int(self._meta("iterations") or PBKDF2_ITERATIONS)
        encryptor = FieldEncryptor(derive_key(password, salt, iterations))

        check = self._meta("check")
        if check is None:
            self._set_meta("check", encryptor.encrypt_bytes(_CHECK_PLAINTEXT, _CHECK_CONTEXT))
            logger.info("Vault initialised with new master password.")
        else:
            try:
                encryptor.decrypt_bytes(check, _CHECK_CONTEXT)
            except InvalidTag:
                logger.warning("Vault unlock failed: wrong master password.")
                return False
            logger.info("Vault unlocked.")
        self.set_encryptor(encryptor)
        return True

    def set_encryptor(self, encryptor: Optional[FieldEncryptor]) -> None:
        """Attach, replace or (with None) drop the encryptor."""
        if self._encryptor is not None and encryptor is None:
            self._encryptor.wipe_key()
        self._encryptor = encryptor

    @property
    def is_locked(self) -> bool:
        return self._encryptor is None

    def lock(self) -> None:
        self.set_encryptor(None)

    def _require_encryptor(self) -> FieldEncryptor:
        if self._encryptor is None:
            raise RuntimeError("Vault is locked – no encryptor set.")
        return self._encryptor

    # ── Vault contract ───────────────────────────────────────────────────

    def get(self, account_id: str) -> Optional[bytes]:
        """Return the decrypted secret for ``account_id`` or None if absent."""
        encryptor = self._require_encryptor()
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM secrets WHERE account_id=?", (account_id,)
            ).fetchone()
        if row is None:
            return None
        return encryptor.decrypt_bytes(row["value"], account_id)

    def put(self, account_id: str, secret: bytes) -> bool:
        """Encrypt and store ``secret``; returns False if the write failed."""
        value = self._require_encryptor().encrypt_bytes(secret, account_id)
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    "INSERT OR REPLACE INTO secrets (account_id, value) VALUES (?, ?)",
                    (account_id, value),
                )
        except sqlite3.Error:
            logger.exception("Failed to store secret for account %s", account_id)
            return False
        return True

    def delete(self, account_id: str) -> bool:
        """Remove the secret for ``account_id``; returns False if the write failed."""
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    "DELETE FROM secrets WHERE account_id=?", (account_id,)
                )
        except sqlite3.Error:
            logger.exception("Failed to delete secret for account %s", account_id)
            return False
        return True

    def exists(self, account_id: str) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM secrets WHERE account_id=?", (account_id,)
            ).fetchone()
        return row is not None

    def clear(self) -> None:
        """Remove every stored secret."""
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM secrets")

    def close(self) -> None:
        self.set_encryptor(None)
        with self._lock:
            self._conn.close()
