"""Tests for storage.vault."""

import sqlite3
from pathlib import Path

import pytest

from storage.vault import SecretVault

FAST = 1_000


@pytest.fixture()
def vault_path(tmp_path: Path) -> Path:
    return tmp_path / "vault.db"


@pytest.fixture()
def vault(vault_path: Path):
    v = SecretVault(vault_path, iterations=FAST)
    assert v.unlock("correct horse")
    yield v
    v.close()


# ── Master password ───────────────────────────────────────────────────────────

def test_fresh_vault_has_no_password(vault_path: Path) -> None:
    v = SecretVault(vault_path, iterations=FAST)
    assert not v.has_master_password()
    assert v.is_locked
    v.close()


def test_unlock_existing_vault(vault: SecretVault, vault_path: Path) -> None:
    vault.put("acc", b"secret")
    other = SecretVault(vault_path)
    assert other.has_master_password()
    assert other.unlock("correct horse")
    assert other.get("acc") == b"secret"
    other.close()


def test_wrong_password_keeps_vault_locked(vault: SecretVault, vault_path: Path) -> None:
    other = SecretVault(vault_path)
    assert not other.unlock("wrong password")
    assert other.is_locked
    with pytest.raises(RuntimeError):
        other.get("acc")
    other.close()


def test_lock_drops_key(vault: SecretVault) -> None:
    vault.lock()
    with pytest.raises(RuntimeError):
        vault.put("acc", b"x")


# ── Vault contract ────────────────────────────────────────────────────────────

def test_put_get_exists_delete(vault: SecretVault) -> None:
    assert vault.get("acc") is None
    assert not vault.exists("acc")

    assert vault.put("acc", b"\x00\xffsecret")
    assert vault.exists("acc")
    assert vault.get("acc") == b"\x00\xffsecret"

    assert vault.delete("acc")
    assert vault.get("acc") is None
    assert vault.delete("acc")


def test_put_replaces(vault: SecretVault) -> None:
    vault.put("acc", b"one")
    vault.put("acc", b"two")
    assert vault.get("acc") == b"two"


def test_clear(vault: SecretVault) -> None:
    vault.put("a", b"1")
    vault.put("b", b"2")
    vault.clear()
    assert not vault.exists("a") and not vault.exists("b")


def test_secrets_are_encrypted_at_rest(vault: SecretVault, vault_path: Path) -> None:
    vault.put("acc", b"PLAINTEXT-SECRET")
    conn = sqlite3.connect(str(vault_path))
    rows = conn.execute("SELECT value FROM secrets").fetchall()
    conn.close()
    assert rows and all("PLAINTEXT" not in row[0] for row in rows)


def test_swapped_rows_fail_to_decrypt(vault: SecretVault, vault_path: Path) -> None:
    from cryptography.exceptions import InvalidTag

    vault.put("a", b"alpha")
    vault.put("b", b"beta")
    conn = sqlite3.connect(str(vault_path))
    blob_a = conn.execute("SELECT value FROM secrets WHERE account_id='a'").fetchone()[0]
    with conn:
        conn.execute("UPDATE secrets SET value=? WHERE account_id='b'", (blob_a,))
    conn.close()
    with pytest.raises(InvalidTag):
        vault.get("b")
