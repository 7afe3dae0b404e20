"""Shared fixtures for the OTPDeck test-suite."""

import threading
from typing import Dict, Optional

import pytest


class MemoryVault:
    """In-memory stand-in for :class:`storage.vault.SecretVault`."""

    def __init__(self) -> None:
        self._data: Dict[str, bytes] = {}
        self._lock = threading.Lock()
        self.fail_writes = False

    def get(self, account_id: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(account_id)

    def put(self, account_id: str, secret: bytes) -> bool:
        if self.fail_writes:
            return False
        with self._lock:
            self._data[account_id] = secret
        return True

    def delete(self, account_id: str) -> bool:
        with self._lock:
            self._data.pop(account_id, None)
        return True

    def exists(self, account_id: str) -> bool:
        with self._lock:
            return account_id in self._data


@pytest.fixture()
def memory_vault() -> MemoryVault:
    return MemoryVault()
