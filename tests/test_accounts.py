"""Tests for core.accounts."""

import sqlite3
from pathlib import Path

import pytest

from core import base32
from core.accounts import AccountService
from core.models import Account
from core.scheduler import AccountCodeScheduler
from core.utils import generate_secret, is_valid_secret
from qr.parser import parse_otpauth_uri
from storage.database import AccountDatabase

URI = (
    "otpauth://totp/Example:alice@site.com?secret=JBSWY3DPEHPK3PXP"
    "&issuer=Example&algorithm=SHA256&digits=8&period=60"
)


@pytest.fixture()
def db(tmp_path: Path):
    database = AccountDatabase(db_path=tmp_path / "accounts.db")
    yield database
    database.close()


@pytest.fixture()
def service(db, memory_vault) -> AccountService:
    return AccountService(db, memory_vault)


# ── Secret generator ──────────────────────────────────────────────────────────

def test_generate_secret_default_length() -> None:
    secret = generate_secret()
    assert len(base32.decode(secret)) == 20
    assert is_valid_secret(secret)


def test_generate_secret_is_random() -> None:
    assert generate_secret() != generate_secret()


@pytest.mark.parametrize("length", [10, 16, 32])
def test_generate_secret_custom_length(length: int) -> None:
    assert len(base32.decode(generate_secret(length))) == length


@pytest.mark.parametrize(
    "text,valid",
    [("JBSWY3DPEHPK3PXP", True), ("jbsw y3dp", True), ("JBSW====", True), ("", True),
     ("JBSW1", False), ("hello!", False)],
)
def test_is_valid_secret(text: str, valid: bool) -> None:
    assert is_valid_secret(text) is valid


# ── Add from URI ──────────────────────────────────────────────────────────────

def test_add_from_uri_stores_config_and_secret(service, db, memory_vault) -> None:
    account = service.add_from_uri(URI)
    assert (account.name, account.issuer, account.algorithm, account.digits, account.period) == (
        "alice@site.com", "Example", "SHA256", 8, 60,
    )
    assert db.get_account(account.id) == account
    assert memory_vault.get(account.id) == base32.decode("JBSWY3DPEHPK3PXP")


def test_add_from_uri_rejects_malformed(service, db) -> None:
    with pytest.raises(ValueError):
        service.add_from_uri("otpauth://hotp/x?secret=JBSWY3DPEHPK3PXP")
    assert db.count_accounts() == 0


def test_add_from_uri_rejects_bad_secret(service, db) -> None:
    with pytest.raises(ValueError, match="secret"):
        service.add_from_uri("otpauth://totp/x?secret=NOT-BASE32")
    assert db.count_accounts() == 0


def test_add_from_uri_normalises_unknown_algorithm(service) -> None:
    account = service.add_from_uri("otpauth://totp/x?secret=JBSWY3DPEHPK3PXP&algorithm=MD5")
    assert account.algorithm == "SHA1"


# ── Manual entry ──────────────────────────────────────────────────────────────

def test_add_manual_sanitises_secret(service, memory_vault) -> None:
    account = service.add_manual("  bob  ", " Corp ", "jbsw y3dp ehpk 3pxp")
    assert account.name == "bob"
    assert account.issuer == "Corp"
    assert memory_vault.get(account.id) == base32.decode("JBSWY3DPEHPK3PXP")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"name": "   ", "issuer": "", "secret": "JBSWY3DPEHPK3PXP"},
        {"name": "bob", "issuer": "", "secret": "   "},
        {"name": "bob", "issuer": "", "secret": "JBSWY3DPEHPK3PXP", "digits": 5},
        {"name": "bob", "issuer": "", "secret": "JBSWY3DPEHPK3PXP", "digits": 9},
        {"name": "bob", "issuer": "", "secret": "JBSWY3DPEHPK3PXP", "period": 0},
    ],
)
def test_add_manual_validation(service, db, kwargs) -> None:
    with pytest.raises(ValueError):
        service.add_manual(**kwargs)
    assert db.count_accounts() == 0


def test_vault_failure_aborts_insert(service, db, memory_vault) -> None:
    memory_vault.fail_writes = True
    with pytest.raises(RuntimeError):
        service.add_manual("bob", "", "JBSWY3DPEHPK3PXP")
    assert db.count_accounts() == 0


class _BrokenStore:
    attempted = ""

    def insert_account(self, account: Account) -> None:
        self.attempted = account.id
        raise sqlite3.OperationalError("database is locked")


def test_store_failure_removes_stored_secret(memory_vault) -> None:
    store = _BrokenStore()
    service = AccountService(store, memory_vault)
    with pytest.raises(sqlite3.OperationalError):
        service.add_manual("bob", "", "JBSWY3DPEHPK3PXP")
    assert store.attempted
    assert not memory_vault.exists(store.attempted)


def test_account_record_has_no_secret(service) -> None:
    account = service.add_manual("bob", "", "JBSWY3DPEHPK3PXP")
    assert not any("secret" in name for name in vars(account))


# ── Delete ────────────────────────────────────────────────────────────────────

def test_delete_removes_everywhere(db, memory_vault) -> None:
    scheduler = AccountCodeScheduler(memory_vault, tick=0.01)
    service = AccountService(db, memory_vault, scheduler)
    try:
        account = service.add_manual("bob", "", "JBSWY3DPEHPK3PXP")
        scheduler.reconcile(db.list_accounts())
        service.delete(account.id)
        assert db.get_account(account.id) is None
        assert not memory_vault.exists(account.id)
        assert account.id not in scheduler.tracked_ids()
        assert account.id not in scheduler.codes
    finally:
        scheduler.stop(timeout=2.0)


def test_store_listener_drives_scheduler(db, memory_vault) -> None:
    scheduler = AccountCodeScheduler(memory_vault, tick=0.01)
    service = AccountService(db, memory_vault, scheduler)
    db.subscribe(scheduler.reconcile)
    try:
        first = service.add_manual("a", "", "JBSWY3DPEHPK3PXP")
        second = service.add_manual("b", "", "GEZDGNBVGY3TQOJQ")
        assert scheduler.tracked_ids() == {first.id, second.id}
        service.delete(first.id)
        assert scheduler.tracked_ids() == {second.id}
    finally:
        db.unsubscribe(scheduler.reconcile)
        scheduler.stop(timeout=2.0)


# ── Export ────────────────────────────────────────────────────────────────────

def test_export_uri_roundtrips(service) -> None:
    account = service.add_from_uri(URI)
    parsed = parse_otpauth_uri(service.export_uri(account.id))
    assert parsed is not None
    assert (parsed.name, parsed.issuer, parsed.secret, parsed.algorithm, parsed.digits, parsed.period) == (
        "alice@site.com", "Example", "JBSWY3DPEHPK3PXP", "SHA256", 8, 60,
    )


def test_export_uri_unknown_account(service) -> None:
    assert service.export_uri("missing") is None
