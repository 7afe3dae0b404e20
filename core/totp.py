"""
TOTP (Time-based One-Time Password) implementation following RFC 6238.

Produces codes identical to Google Authenticator.
"""

import time
from typing import Optional, Protocol, Union

from core.exceptions import SecretNotFound
from core.hotp import Algorithm, generate_hotp
from core.models import Account, GeneratedCode

__all__ = [
    "Algorithm",
    "SecretSource",
    "code_for_account",
    "current_code",
    "generate_totp",
    "remaining_seconds",
    "time_counter",
]


class SecretSource(Protocol):
    """The part of the vault contract the engine needs."""

    def get(self, account_id: str) -> Optional[bytes]:
        ...


def _now(timestamp: Optional[float]) -> int:
    return int(timestamp if timestamp is not None else time.time())


def time_counter(period: int = 30, timestamp: Optional[float] = None) -> int:
    """Return the RFC 6238 counter for ``timestamp`` (``floor(t / period)``)."""
    return _now(timestamp) // period


def remaining_seconds(period: int = 30, timestamp: Optional[float] = None) -> int:
    """
    Return seconds until the current TOTP window expires.

    A window that has just renewed reports ``period``, never ``0``.
    """
    return period - (_now(timestamp) % period)


def generate_totp(
    secret_bytes: bytes,
    digits: int = 6,
    period: int = 30,
    algorithm: Union[Algorithm, str] = Algorithm.SHA1,
    timestamp: Optional[float] = None,
) -> str:
    """
    Generate a TOTP code.

    Args:
        secret_bytes: Raw (already base32-decoded) secret bytes.
        digits:       Number of digits in the OTP (default 6).
        period:       Time step in seconds (default 30).
        algorithm:    HMAC algorithm (default SHA1 for GA compatibility).
        timestamp:    Override Unix timestamp (uses time.time() if None).

    Returns:
        OTP string, zero-padded to ``digits`` characters.
    """
    return generate_hotp(
        secret_bytes, time_counter(period, timestamp), algorithm, digits
    )


def current_code(
    secret_bytes: bytes,
    timestamp: Optional[float] = None,
    period: int = 30,
    algorithm: Union[Algorithm, str] = Algorithm.SHA1,
    digits: int = 6,
) -> GeneratedCode:
    """
    Compute the code for ``timestamp`` along with its countdown state.

    ``progress`` is the elapsed fraction of the window, in ``[0, 1)``.
    """
    now = _now(timestamp)
    remaining = remaining_seconds(period, now)
    return GeneratedCode(
        code=generate_totp(secret_bytes, digits, period, algorithm, now),
        remaining_seconds=remaining,
        progress=(period - remaining) / period,
    )


def code_for_account(
    account: Account,
    vault: SecretSource,
    timestamp: Optional[float] = None,
) -> GeneratedCode:
    """
    Look up the secret for ``account`` and compute its current code.

    Raises:
        SecretNotFound: If the vault has no entry for ``account.id``.
    """
    secret_bytes = vault.get(account.id)
    if secret_bytes is None:
        raise SecretNotFound(account.id)
    return current_code(
        secret_bytes,
        timestamp,
        period=account.period,
        algorithm=account.algorithm,
        digits=account.digits,
    )
