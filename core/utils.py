"""
Utility helpers for OTPDeck.
"""

import secrets
import unicodedata

from core import base32

DEFAULT_SECRET_LENGTH = 20  # 160 bits, the RFC 4226 recommendation


# ── Secrets ───────────────────────────────────────────────────────────────────

def generate_secret(length: int = DEFAULT_SECRET_LENGTH) -> str:
    """
    Return a fresh random secret rendered as unpadded Base32.

    Args:
        length: Number of random bytes to draw.
    """
    return base32.encode(secrets.token_bytes(length))


def is_valid_secret(text: str) -> bool:
    """True if ``text`` decodes as Base32 (case, ``=`` and spaces ignored)."""
    try:
        base32.decode(text)
    except ValueError:
        return False
    return True


def sanitize_secret(text: str) -> str:
    """Strip whitespace and uppercase a user-supplied secret."""
    return "".join(text.split()).upper()


# ── Labels ────────────────────────────────────────────────────────────────────

def sanitise_label(text: str) -> str:
    """Remove control characters and limit label length."""
    text = unicodedata.normalize("NFC", text)
    text = "".join(ch for ch in text if unicodedata.category(ch)[0] != "C")
    return text[:128].strip()


def format_otp(code: str, group: int = 3) -> str:
    """
    Format an OTP code with spaces for readability.

    Example::

        >>> format_otp("123456")
        "123 456"
    """
    return " ".join(code[i : i + group] for i in range(0, len(code), group))


# ── Validation ────────────────────────────────────────────────────────────────

def validate_name(name: str) -> None:
    if not name or not name.strip():
        raise ValueError("Account name is required.")


def validate_digits(digits: int) -> None:
    if digits < 6 or digits > 8:
        raise ValueError("Digits must be between 6 and 8.")


def validate_period(period: int) -> None:
    if period < 1 or period > 300:
        raise ValueError("Period must be between 1 and 300 seconds.")
