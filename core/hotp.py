"""
HOTP (HMAC-based One-Time Password) implementation following RFC 4226.

The truncation is generalised over the HMAC hash and the number of digits.
"""

import hmac
import struct
from enum import Enum
from typing import Optional, Union


class Algorithm(str, Enum):
    """Supported HMAC algorithms."""

    SHA1 = "SHA1"
    SHA256 = "SHA256"
    SHA512 = "SHA512"

    @classmethod
    def normalize(cls, value: Union["Algorithm", str, None]) -> "Algorithm":
        """Map ``value`` onto a supported algorithm, falling back to SHA1."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.SHA1

    @property
    def digest_name(self) -> str:
        return _ALG_MAP[self]


_ALG_MAP: dict[str, str] = {
    Algorithm.SHA1: "sha1",
    Algorithm.SHA256: "sha256",
    Algorithm.SHA512: "sha512",
}


def generate_hotp(
    secret_bytes: bytes,
    counter: int,
    algorithm: Optional[Union[Algorithm, str]] = Algorithm.SHA1,
    digits: int = 6,
) -> str:
    """
    Generate an HOTP code.

    Args:
        secret_bytes: Raw decoded secret bytes.
        counter:      Unsigned 64-bit counter value.
        algorithm:    HMAC algorithm; unknown values fall back to SHA1.
        digits:       Number of OTP digits.

    Returns:
        Zero-padded OTP string of exactly ``digits`` characters.
    """
    alg = Algorithm.normalize(algorithm)
    msg = struct.pack(">Q", counter)
    digest = hmac.new(secret_bytes, msg, alg.digest_name).digest()

    # Dynamic truncation
    offset = digest[-1] & 0x0F
    code = (
        (digest[offset] & 0x7F) << 24
        | (digest[offset + 1] & 0xFF) << 16
        | (digest[offset + 2] & 0xFF) << 8
        | (digest[offset + 3] & 0xFF)
    )
    otp = code % (10**digits)
    return str(otp).zfill(digits)
