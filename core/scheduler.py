"""
Per-account live code refresh.

One daemon thread per tracked account recomputes that account's code once a
tick against the current wall-clock time and publishes it into a shared
``{account_id: GeneratedCode}`` map.

The published map is copy-on-write: writers build a new dict under
``_lock`` and swap the reference, so :attr:`AccountCodeScheduler.codes` can be
read from any thread without locking.
"""

import logging
import threading
import time
from typing import Callable, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from core.models import Account, GeneratedCode
from core.totp import SecretSource, code_for_account

logger = logging.getLogger(__name__)

DEFAULT_TICK = 1.0  # seconds; UI freshness only, codes are always recomputed

ErrorCallback = Callable[[str, Exception], None]
UpdateCallback = Callable[[str, GeneratedCode], None]


class _Slot:
    """Bookkeeping for one account's refresh thread."""

    def __init__(self, account: Account) -> None:
        self.account = account
        self.cancelled = threading.Event()
        self.thread: Optional[threading.Thread] = None

    def cancel(self) -> None:
        self.cancelled.set()


class AccountCodeScheduler:
    """
    Keeps one continuously-updating code stream per tracked account.

    Usage::

        scheduler = AccountCodeScheduler(vault, on_error=report)
        scheduler.reconcile(db.list_accounts())
        ...
        scheduler.codes["<account id>"].code
        scheduler.stop()
    """

    def __init__(
        self,
        vault: SecretSource,
        tick: float = DEFAULT_TICK,
        clock: Callable[[], float] = time.time,
        on_error: Optional[ErrorCallback] = None,
        on_update: Optional[UpdateCallback] = None,
    ) -> None:
        """
        Args:
            vault:     Secret lookup by account id.
            tick:      Seconds between recomputations.
            clock:     Wall-clock source, read afresh on every tick.
            on_error:  Called from the account's thread with
                       ``(account_id, exc)`` when a recompute fails.
            on_update: Called from the account's thread after each publish.
        """
        if tick <= 0:
            raise ValueError("tick must be positive.")
        self._vault = vault
        self._tick = tick
        self._clock = clock
        self._on_error = on_error
        self._on_update = on_update
        self._lock = threading.Lock()
        self._slots: Dict[str, _Slot] = {}
        self._codes: Dict[str, GeneratedCode] = {}

    # ── Public API ───────────────────────────────────────────────────────

    @property
    def codes(self) -> Mapping[str, GeneratedCode]:
        """Latest published code per account id (a stable snapshot)."""
        return self._codes

    def code_for(self, account_id: str) -> Optional[GeneratedCode]:
        return self._codes.get(account_id)

    def tracked_ids(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._slots)

    def task(self, account_id: str) -> Optional[threading.Thread]:
        """Return the refresh thread for ``account_id``, if tracked."""
        with self._lock:
            slot = self._slots.get(account_id)
            return slot.thread if slot else None

    def reconcile(self, accounts: Iterable[Account]) -> None:
        """
        Make the tracked set equal to the ids in ``accounts``.

        Threads of ids that disappear are cancelled and their codes
        unpublished; new ids get a fresh thread. Ids present on both sides
        keep their running thread and only pick up the new configuration.
        """
        desired = {account.id: account for account in accounts}
        with self._lock:
            for account_id in [i for i in self._slots if i not in desired]:
                self._drop_locked(account_id)
            for account_id, account in desired.items():
                slot = self._slots.get(account_id)
                if slot is not None:
                    slot.account = account
                else:
                    self._start_locked(account)
        logger.debug("Tracking %d account(s)", len(desired))

    def remove(self, account_id: str) -> None:
        """Stop refreshing ``account_id`` and unpublish its code (idempotent)."""
        with self._lock:
            self._drop_locked(account_id)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Cancel every thread, clear the published map and wait for exit."""
        with self._lock:
            slots = list(self._slots.values())
            for account_id in list(self._slots):
                self._drop_locked(account_id)
        for slot in slots:
            if slot.thread is not None and slot.thread is not threading.current_thread():
                slot.thread.join(timeout)

    def __enter__(self) -> "AccountCodeScheduler":
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    # ── Internal ─────────────────────────────────────────────────────────

    def _start_locked(self, account: Account) -> None:
        slot = _Slot(account)
        slot.thread = threading.Thread(
            target=self._run,
            args=(account.id, slot),
            name=f"otp-refresh-{account.id}",
            daemon=True,
        )
        self._slots[account.id] = slot
        slot.thread.start()

    def _drop_locked(self, account_id: str) -> None:
        slot = self._slots.pop(account_id, None)
        if slot is not None:
            slot.cancel()
        if account_id in self._codes:
            codes = dict(self._codes)
            del codes[account_id]
            self._codes = codes

    def _run(self, account_id: str, slot: _Slot) -> None:
        """
        Refresh loop for one account; runs in its own daemon thread.

        A failure is reported once; identical failures on later ticks are only
        logged at DEBUG until a code is produced or the failure changes.
        """
        last_error: Optional[Tuple[type, str]] = None
        while not slot.cancelled.is_set():
            try:
                code = code_for_account(slot.account, self._vault, self._clock())
            except Exception as exc:
                error = (type(exc), str(exc))
                if error == last_error:
                    logger.debug("Account %s still failing: %s", account_id, exc)
                else:
                    last_error = error
                    self._report(account_id, exc)
            else:
                last_error = None
                self._publish(account_id, slot, code)
            slot.cancelled.wait(self._tick)

    def _publish(self, account_id: str, slot: _Slot, code: GeneratedCode) -> None:
        with self._lock:
            # A cancelled slot must not resurrect an unpublished entry.
            if slot.cancelled.is_set():
                return
            codes = dict(self._codes)
            codes[account_id] = code
            self._codes = codes
        if self._on_update is not None:
            try:
                self._on_update(account_id, code)
            except Exception:
                logger.exception("on_update callback raised an exception")

    def _report(self, account_id: str, exc: Exception) -> None:
        logger.warning("Failed to generate code for account %s: %s", account_id, exc)
        if self._on_error is not None:
            try:
                self._on_error(account_id, exc)
            except Exception:
                logger.exception("on_error callback raised an exception")
