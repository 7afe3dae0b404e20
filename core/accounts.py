"""
Account creation and deletion workflow.

Ties together the account store, the secret vault and (optionally) the live
code scheduler. The store never sees secret material: the plaintext secret
goes to the vault under the new account's id and the stored record carries
configuration only.
"""

import logging
from typing import List, Optional, Protocol

from core import base32
from core.hotp import Algorithm
from core.models import Account
from core.scheduler import AccountCodeScheduler
from core.utils import (
    generate_secret,
    is_valid_secret,
    sanitise_label,
    sanitize_secret,
    validate_digits,
    validate_name,
    validate_period,
)
from qr.parser import build_otpauth_uri, parse_otpauth_uri

logger = logging.getLogger(__name__)


class AccountStore(Protocol):
    def list_accounts(self) -> List[Account]: ...
    def get_account(self, account_id: str) -> Optional[Account]: ...
    def insert_account(self, account: Account) -> None: ...
    def delete_account(self, account_id: str) -> None: ...


class Vault(Protocol):
    def get(self, account_id: str) -> Optional[bytes]: ...
    def put(self, account_id: str, secret: bytes) -> bool: ...
    def delete(self, account_id: str) -> bool: ...


class AccountService:
    """Validated add / delete operations over a store and a vault."""

    def __init__(
        self,
        store: AccountStore,
        vault: Vault,
        scheduler: Optional[AccountCodeScheduler] = None,
    ) -> None:
        self._store = store
        self._vault = vault
        self._scheduler = scheduler

    # ── Creation ─────────────────────────────────────────────────────────

    def add_from_uri(self, uri: str) -> Account:
        """
        Create an account from scanned or pasted ``otpauth://totp`` text.

        Raises:
            ValueError: If the URI is malformed or any field is invalid.
        """
        parsed = parse_otpauth_uri(uri)
        if parsed is None:
            raise ValueError("Invalid QR code format.")
        return self.add_manual(
            name=parsed.name,
            issuer=parsed.issuer,
            secret=parsed.secret,
            algorithm=parsed.algorithm,
            digits=parsed.digits,
            period=parsed.period,
        )

    def add_manual(
        self,
        name: str,
        issuer: str,
        secret: str,
        algorithm: str = Algorithm.SHA1.value,
        digits: int = 6,
        period: int = 30,
    ) -> Account:
        """
        Validate the fields, store the secret and insert the account.

        Raises:
            ValueError: On a blank name or secret, an undecodable secret,
                or digits / period out of range.
            RuntimeError: If the vault refused the secret.
        """
        name = sanitise_label(name)
        validate_name(name)
        clean_secret = sanitize_secret(secret)
        if not clean_secret:
            raise ValueError("Secret key is required.")
        if not is_valid_secret(clean_secret):
            raise ValueError("Invalid secret key format.")
        validate_digits(digits)
        validate_period(period)

        account = Account(
            name=name,
            issuer=sanitise_label(issuer),
            algorithm=Algorithm.normalize(algorithm).value,
            digits=digits,
            period=period,
        )
        if not self._vault.put(account.id, base32.decode(clean_secret)):
            raise RuntimeError(f"Could not store secret for '{account.name}'.")
        try:
            self._store.insert_account(account)
        except Exception:
            # No orphaned secrets: the vault only holds ids the store knows.
            self._vault.delete(account.id)
            raise
        logger.info("Added account %s", account.id)
        return account

    @staticmethod
    def generate_secret() -> str:
        return generate_secret()

    # ── Removal ──────────────────────────────────────────────────────────

    def delete(self, account_id: str) -> None:
        """Remove the account everywhere: scheduler, store and vault."""
        if self._scheduler is not None:
            self._scheduler.remove(account_id)
        self._store.delete_account(account_id)
        if not self._vault.delete(account_id):
            logger.warning("Secret for deleted account %s was not removed", account_id)

    # ── Export ───────────────────────────────────────────────────────────

    def export_uri(self, account_id: str) -> Optional[str]:
        """Build the ``otpauth://`` URI for a stored account, for QR display."""
        account = self._store.get_account(account_id)
        if account is None:
            return None
        secret = self._vault.get(account_id)
        if secret is None:
            return None
        return build_otpauth_uri(
            account.name,
            account.issuer,
            base32.encode(secret),
            account.algorithm,
            account.digits,
            account.period,
        )
