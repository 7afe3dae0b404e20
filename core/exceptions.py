"""
Error kinds raised by the OTP core.

Validation problems in user input are plain :class:`ValueError`; the classes
below carry the extra context callers need to report them.
"""


class OTPError(Exception):
    """Base class for OTPDeck core errors."""


class InvalidCharacter(OTPError, ValueError):
    """A character outside the Base32 alphabet was found while decoding."""

    def __init__(self, char: str) -> None:
        super().__init__(f"Invalid base32 character: {char!r}")
        self.char = char


class SecretNotFound(OTPError, LookupError):
    """The vault holds no secret for the requested account."""

    def __init__(self, account_id: str) -> None:
        super().__init__(f"Secret not found for account: {account_id}")
        self.account_id = account_id
