"""
SQLite-backed account store and user preferences.

Schema
------
accounts
  id         TEXT     PRIMARY KEY   -- UUID assigned at creation
  name       TEXT     NOT NULL
  issuer     TEXT     NOT NULL DEFAULT ''
  algorithm  TEXT     NOT NULL      -- SHA1/SHA256/SHA512
  digits     INTEGER  NOT NULL
  period     INTEGER  NOT NULL
  created_at REAL     NOT NULL      -- epoch seconds, newest listed first

preferences
  key        TEXT PRIMARY KEY
  value      TEXT                   -- JSON-encoded scalar

Secrets are not stored here; see :mod:`storage.vault`.
"""

import json
import logging
import os
import sqlite3
import threading
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Callable, List, Optional

from core.models import Account, UserPreferences

logger = logging.getLogger(__name__)

AccountListener = Callable[[List[Account]], None]

DB_FILENAME = "otpdeck.db"


def default_data_dir() -> Path:
    """
    Directory holding the OTPDeck database.

    ``$OTPDECK_HOME`` if set, else ``%APPDATA%/otpdeck`` (Windows) or
    ``~/.local/share/otpdeck``.
    """
    override = os.environ.get("OTPDECK_HOME")
    if override:
        return Path(override)
    return Path(os.environ.get("APPDATA", Path.home() / ".local" / "share")) / "otpdeck"


def default_db_path() -> Path:
    return default_data_dir() / DB_FILENAME


class AccountDatabase:
    """
    Account store with a "live" list: every mutation pushes the fresh,
    recency-ordered account list to subscribed listeners.
    """

    def __init__(self, db_path: Optional[Path] = None) -> None:
        """
        Args:
            db_path: Path to the SQLite file. Defaults to
                     :func:`default_db_path`.
        """
        self._path = db_path or default_db_path()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._listeners: List[AccountListener] = []
        self._bootstrap()

    # ── Schema ───────────────────────────────────────────────────────────

    def _bootstrap(self) -> None:
        with self._lock, self._conn:
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS accounts (
                    id         TEXT    PRIMARY KEY,
                    name       TEXT    NOT NULL,
                    issuer     TEXT    NOT NULL DEFAULT '',
                    algorithm  TEXT    NOT NULL DEFAULT 'SHA1',
                    digits     INTEGER NOT NULL DEFAULT 6,
                    period     INTEGER NOT NULL DEFAULT 30,
                    created_at REAL    NOT NULL
                );
                CREATE TABLE IF NOT EXISTS preferences (
                    key   TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
                """
            )

    # ── Live list ────────────────────────────────────────────────────────

    def subscribe(self, listener: AccountListener) -> None:
        """Register ``listener`` and immediately call it with the current list."""
        with self._lock:
            self._listeners.append(listener)
            accounts = self.list_accounts()
        listener(accounts)

    def unsubscribe(self, listener: AccountListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
            accounts = self.list_accounts() if listeners else []
        for listener in listeners:
            try:
                listener(accounts)
            except Exception:
                logger.exception("Account listener raised an exception")

    # ── CRUD ─────────────────────────────────────────────────────────────

    def list_accounts(self) -> List[Account]:
        """Return all accounts, most recently created first."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM accounts ORDER BY created_at DESC, rowid DESC"
            ).fetchall()
        return [self._row_to_account(r) for r in rows]

    def get_account(self, account_id: str) -> Optional[Account]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM accounts WHERE id=?", (account_id,)
            ).fetchone()
        return self._row_to_account(row) if row else None

    def insert_account(self, account: Account) -> None:
        """Insert ``account``, replacing any existing row with the same id."""
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT OR REPLACE INTO accounts
                    (id, name, issuer, algorithm, digits, period, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    account.id,
                    account.name,
                    account.issuer,
                    account.algorithm,
                    account.digits,
                    account.period,
                    account.created_at,
                ),
            )
        logger.info("Stored account %s", account.id)
        self._notify()

    def update_account(self, account: Account) -> None:
        """Update an existing account; ``created_at`` is left unchanged."""
        with self._lock, self._conn:
            cursor = self._conn.execute(
                """
                UPDATE accounts SET
                    name=?, issuer=?, algorithm=?, digits=?, period=?
                WHERE id=?
                """,
                (
                    account.name,
                    account.issuer,
                    account.algorithm,
                    account.digits,
                    account.period,
                    account.id,
                ),
            )
        if cursor.rowcount == 0:
            raise ValueError(f"Account {account.id} not found.")
        self._notify()

    def delete_account(self, account_id: str) -> None:
        """Delete an account by id (no-op if absent)."""
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM accounts WHERE id=?", (account_id,))
        logger.info("Deleted account %s", account_id)
        self._notify()

    def count_accounts(self) -> int:
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) AS n FROM accounts").fetchone()
        return int(row["n"])

    # ── Preferences ──────────────────────────────────────────────────────

    def get_preferences(self) -> UserPreferences:
        """Return stored preferences, with defaults for anything unset."""
        with self._lock:
            rows = self._conn.execute("SELECT key, value FROM preferences").fetchall()
        stored = {r["key"]: json.loads(r["value"]) for r in rows}
        known = {f.name for f in fields(UserPreferences)}
        return UserPreferences(**{k: v for k, v in stored.items() if k in known})

    def save_preferences(self, prefs: UserPreferences) -> None:
        with self._lock, self._conn:
            self._conn.executemany(
                "INSERT OR REPLACE INTO preferences (key, value) VALUES (?, ?)",
                [(k, json.dumps(v)) for k, v in asdict(prefs).items()],
            )

    def update_preference(self, name: str, value: Any) -> UserPreferences:
        """Set a single preference field and return the updated record."""
        if name not in {f.name for f in fields(UserPreferences)}:
            raise ValueError(f"Unknown preference '{name}'.")
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO preferences (key, value) VALUES (?, ?)",
                (name, json.dumps(value)),
            )
        return self.get_preferences()

    # ── Internals ────────────────────────────────────────────────────────

    @staticmethod
    def _row_to_account(row: sqlite3.Row) -> Account:
        return Account(
            id=row["id"],
            name=row["name"],
            issuer=row["issuer"],
            algorithm=row["algorithm"],
            digits=int(row["digits"]),
            period=int(row["period"]),
            created_at=float(row["created_at"]),
        )

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()
