"""
Parse and build ``otpauth://totp`` URIs (Google Authenticator Key URI Format).

Reference: https://github.com/google/google-authenticator/wiki/Key-Uri-Format

Parsing is lenient about optional parameters and strict about the envelope:
anything that is not ``otpauth://totp/...`` with a ``secret`` yields ``None``.
"""

import logging
import re
import urllib.parse
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)

SCHEME = "otpauth"
HOST = "totp"

DEFAULT_ALGORITHM = "SHA1"
DEFAULT_DIGITS = 6
DEFAULT_PERIOD = 30

_INT_RE = re.compile(r"[+-]?\d+")
_INT_MIN, _INT_MAX = -(2 ** 31), 2 ** 31 - 1


@dataclass
class OTPAuthURI:
    """Parsed representation of an otpauth://totp URI."""

    name: str           # account name extracted from the label
    issuer: str         # issuer parameter, else label prefix, else ""
    secret: str         # base32 text exactly as found, not validated
    algorithm: str = DEFAULT_ALGORITHM
    digits: int = DEFAULT_DIGITS
    period: int = DEFAULT_PERIOD


def _int_param(params: Dict[str, str], key: str, default: int) -> int:
    value = params.get(key)
    if value is None or not _INT_RE.fullmatch(value):
        return default
    number = int(value)
    if not _INT_MIN <= number <= _INT_MAX:
        return default
    return number


def _split_label(label: str) -> tuple[str, str]:
    """Return ``(issuer, name)``; only a label with exactly one ':' is split."""
    parts = label.split(":")
    if len(parts) == 2:
        return parts[0], parts[1]
    return "", label


def parse_otpauth_uri(uri: str) -> Optional[OTPAuthURI]:
    """
    Parse an ``otpauth://totp`` URI.

    The ``issuer`` query parameter wins over the issuer prefix of the label.
    Missing or non-numeric ``digits`` / ``period`` fall back to 6 / 30 and a
    missing ``algorithm`` to SHA1, without complaint.

    Args:
        uri: Full otpauth URI string.

    Returns:
        Populated :class:`OTPAuthURI`, or None if the scheme is not
        ``otpauth``, the host is not ``totp`` or ``secret`` is missing.
    """
    uri = uri.strip()
    if not uri.startswith(f"{SCHEME}://"):
        return None

    try:
        parsed = urllib.parse.urlsplit(uri)
    except ValueError:
        logger.debug("Unparseable otpauth URI")
        return None

    # host only: userinfo and port are ignored, case is not
    host = parsed.netloc.rpartition("@")[2].partition(":")[0]
    if host != HOST:
        return None

    path = parsed.path[1:] if parsed.path.startswith("/") else parsed.path
    label_issuer, name = _split_label(urllib.parse.unquote(path))

    params: Dict[str, str] = {}
    for key, value in urllib.parse.parse_qsl(parsed.query, keep_blank_values=True):
        params.setdefault(key, value)

    secret = params.get("secret")
    if secret is None:
        return None

    return OTPAuthURI(
        name=name,
        issuer=params.get("issuer", label_issuer),
        secret=secret,
        algorithm=params.get("algorithm", DEFAULT_ALGORITHM),
        digits=_int_param(params, "digits", DEFAULT_DIGITS),
        period=_int_param(params, "period", DEFAULT_PERIOD),
    )


def build_otpauth_uri(
    name: str,
    issuer: str,
    secret: str,
    algorithm: str = DEFAULT_ALGORITHM,
    digits: int = DEFAULT_DIGITS,
    period: int = DEFAULT_PERIOD,
) -> str:
    """
    Build an otpauth://totp URI from individual parameters.

    Values are emitted verbatim; no percent-encoding is applied, so the
    result only parses back losslessly for values free of reserved URI
    characters.
    """
    label = f"{issuer}:{name}" if issuer else name
    return (
        f"{SCHEME}://{HOST}/{label}?secret={secret}&issuer={issuer}"
        f"&algorithm={algorithm}&digits={digits}&period={period}"
    )
