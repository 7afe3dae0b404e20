"""
RFC 4648 Base32 codec (unpadded, uppercase).

``base64.b32decode`` insists on canonical padding and rejects the trimmed
secrets authenticator apps hand out, so the bit packing is done here.
"""

from core.exceptions import InvalidCharacter

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_INDEX = {ch: i for i, ch in enumerate(ALPHABET)}


def encode(data: bytes) -> str:
    """
    Encode ``data`` as Base32 text without ``=`` padding.

    Bits are consumed MSB-first in groups of five; a trailing partial group
    is filled with zero bits on the low end.
    """
    out = []
    buffer = 0
    bits = 0
    for byte in data:
        buffer = (buffer << 8) | byte
        bits += 8
        while bits >= 5:
            bits -= 5
            out.append(ALPHABET[(buffer >> bits) & 0x1F])
    if bits:
        out.append(ALPHABET[(buffer << (5 - bits)) & 0x1F])
    return "".join(out)


def decode(text: str) -> bytes:
    """
    Decode Base32 ``text`` into bytes.

    Lower case is accepted; ``=`` and spaces are ignored wherever they occur.
    Trailing bits that do not complete a byte are discarded.

    Raises:
        InvalidCharacter: On the first character outside ``A-Z2-7``.
    """
    clean = text.upper().replace("=", "").replace(" ", "")
    out = bytearray()
    buffer = 0
    bits = 0
    for ch in clean:
        value = _INDEX.get(ch)
        if value is None:
            raise InvalidCharacter(ch)
        buffer = ((buffer << 5) | value) & 0xFFFF
        bits += 5
        if bits >= 8:
            bits -= 8
            out.append((buffer >> bits) & 0xFF)
    return bytes(out)
