"""
Plain data records shared between the core, storage and UI layers.
"""

import time
import uuid
from dataclasses import dataclass, field

from core.hotp import Algorithm


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Account:
    """
    Identity and configuration of one TOTP account.

    The secret is deliberately absent: it lives in the vault under ``id``.
    """

    name: str
    issuer: str = ""
    algorithm: str = Algorithm.SHA1.value
    digits: int = 6
    period: int = 30
    id: str = field(default_factory=_new_id)
    created_at: float = field(default_factory=time.time)

    @property
    def label(self) -> str:
        return f"{self.issuer}:{self.name}" if self.issuer else self.name


@dataclass(frozen=True)
class GeneratedCode:
    """A code together with its position inside the current time window."""

    code: str
    remaining_seconds: int
    progress: float


@dataclass
class UserPreferences:
    dark_mode: bool = False
    refresh_interval: int = 30
    show_seconds: bool = True
    haptic_feedback: bool = True
