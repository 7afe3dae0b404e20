"""Tests for core.scheduler."""

import threading
import time
from typing import Callable, List, Tuple

import pytest

from core.exceptions import SecretNotFound
from core.models import Account
from core.scheduler import AccountCodeScheduler
from core.totp import current_code

TICK = 0.01
SECRET = b"12345678901234567890"


def _wait_for(predicate: Callable[[], bool], timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


def _account(name: str) -> Account:
    return Account(name=name, issuer="Test", digits=8, period=30)


class _Clock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture()
def accounts(memory_vault):
    a, b, c = _account("A"), _account("B"), _account("C")
    for acc in (a, b, c):
        memory_vault.put(acc.id, SECRET)
    return a, b, c


@pytest.fixture()
def scheduler(memory_vault):
    sched = AccountCodeScheduler(memory_vault, tick=TICK, clock=_Clock(59))
    yield sched
    sched.stop(timeout=2.0)


# ── Reconcile ─────────────────────────────────────────────────────────────────

def test_reconcile_starts_one_task_per_account(scheduler, accounts) -> None:
    a, b, _ = accounts
    scheduler.reconcile([a, b])
    assert scheduler.tracked_ids() == {a.id, b.id}
    assert _wait_for(lambda: set(scheduler.codes) == {a.id, b.id})


def test_reconcile_replaces_only_changed_ids(scheduler, accounts) -> None:
    a, b, c = accounts
    scheduler.reconcile([a, b])
    assert _wait_for(lambda: set(scheduler.codes) == {a.id, b.id})
    task_a = scheduler.task(a.id)
    task_b = scheduler.task(b.id)

    scheduler.reconcile([b, c])

    assert scheduler.tracked_ids() == {b.id, c.id}
    assert scheduler.task(b.id) is task_b
    assert task_b.is_alive()
    assert a.id not in scheduler.codes
    task_a.join(timeout=2.0)
    assert not task_a.is_alive()
    assert _wait_for(lambda: set(scheduler.codes) == {b.id, c.id})


def test_reconcile_with_same_set_keeps_tasks(scheduler, accounts) -> None:
    a, b, _ = accounts
    scheduler.reconcile([a, b])
    before = {i: scheduler.task(i) for i in (a.id, b.id)}
    scheduler.reconcile([b, a])
    assert {i: scheduler.task(i) for i in (a.id, b.id)} == before


def test_reconcile_picks_up_new_configuration(scheduler, accounts) -> None:
    a, _, _ = accounts
    scheduler.reconcile([a])
    assert _wait_for(lambda: a.id in scheduler.codes)
    task = scheduler.task(a.id)

    edited = Account(name=a.name, id=a.id, digits=6, period=30, created_at=a.created_at)
    scheduler.reconcile([edited])

    assert scheduler.task(a.id) is task
    assert _wait_for(lambda: len(scheduler.codes[a.id].code) == 6)


def test_reconcile_to_empty_clears_everything(scheduler, accounts) -> None:
    scheduler.reconcile(list(accounts))
    assert _wait_for(lambda: len(scheduler.codes) == 3)
    scheduler.reconcile([])
    assert scheduler.tracked_ids() == frozenset()
    assert dict(scheduler.codes) == {}


# ── Publication ───────────────────────────────────────────────────────────────

def test_published_code_tracks_current_clock(memory_vault, accounts) -> None:
    a, _, _ = accounts
    clock = _Clock(59)
    with AccountCodeScheduler(memory_vault, tick=TICK, clock=clock) as sched:
        sched.reconcile([a])
        assert _wait_for(lambda: sched.code_for(a.id) is not None)
        assert sched.code_for(a.id).code == "94287082"
        assert sched.code_for(a.id).remaining_seconds == 1

        clock.now = 1111111109
        assert _wait_for(lambda: sched.code_for(a.id).code == "07081804")
        assert sched.code_for(a.id) == current_code(SECRET, 1111111109, 30, "SHA1", 8)


def test_codes_snapshot_is_not_mutated(scheduler, accounts) -> None:
    a, b, _ = accounts
    scheduler.reconcile([a])
    assert _wait_for(lambda: a.id in scheduler.codes)
    snapshot = scheduler.codes
    scheduler.reconcile([a, b])
    assert _wait_for(lambda: b.id in scheduler.codes)
    assert b.id not in snapshot


def test_on_update_is_called_repeatedly(memory_vault, accounts) -> None:
    a, _, _ = accounts
    updates: List[str] = []
    with AccountCodeScheduler(
        memory_vault, tick=TICK, clock=_Clock(59), on_update=lambda i, _c: updates.append(i)
    ) as sched:
        sched.reconcile([a])
        assert _wait_for(lambda: updates.count(a.id) >= 3)


# ── Remove / stop ─────────────────────────────────────────────────────────────

def test_remove_cancels_and_unpublishes(scheduler, accounts) -> None:
    a, b, _ = accounts
    scheduler.reconcile([a, b])
    assert _wait_for(lambda: set(scheduler.codes) == {a.id, b.id})
    task_a = scheduler.task(a.id)

    scheduler.remove(a.id)

    assert a.id not in scheduler.codes
    assert scheduler.task(a.id) is None
    task_a.join(timeout=2.0)
    assert not task_a.is_alive()
    time.sleep(TICK * 5)
    assert a.id not in scheduler.codes
    assert b.id in scheduler.codes


def test_remove_is_idempotent(scheduler, accounts) -> None:
    a, _, _ = accounts
    scheduler.remove("missing")
    scheduler.reconcile([a])
    scheduler.remove(a.id)
    scheduler.remove(a.id)
    assert scheduler.tracked_ids() == frozenset()


def test_stop_joins_all_threads(memory_vault, accounts) -> None:
    sched = AccountCodeScheduler(memory_vault, tick=TICK, clock=_Clock(59))
    sched.reconcile(list(accounts))
    tasks = [sched.task(acc.id) for acc in accounts]
    sched.stop(timeout=2.0)
    assert all(not t.is_alive() for t in tasks)
    assert dict(sched.codes) == {}


def test_cancel_wakes_sleeping_task(memory_vault, accounts) -> None:
    a, _, _ = accounts
    sched = AccountCodeScheduler(memory_vault, tick=60.0, clock=_Clock(59))
    sched.reconcile([a])
    task = sched.task(a.id)
    assert _wait_for(lambda: a.id in sched.codes)
    started = time.monotonic()
    sched.stop(timeout=5.0)
    assert not task.is_alive()
    assert time.monotonic() - started < 5.0


def test_invalid_tick_rejected(memory_vault) -> None:
    with pytest.raises(ValueError):
        AccountCodeScheduler(memory_vault, tick=0)


# ── Errors ────────────────────────────────────────────────────────────────────

def test_missing_secret_is_isolated(memory_vault, accounts) -> None:
    a, b, _ = accounts
    memory_vault.delete(b.id)
    errors: List[Tuple[str, Exception]] = []
    lock = threading.Lock()

    def on_error(account_id: str, exc: Exception) -> None:
        with lock:
            errors.append((account_id, exc))

    with AccountCodeScheduler(
        memory_vault, tick=TICK, clock=_Clock(59), on_error=on_error
    ) as sched:
        sched.reconcile([a, b])
        assert _wait_for(lambda: len(errors) >= 1)
        with lock:
            assert {account_id for account_id, _ in errors} == {b.id}
            assert all(isinstance(exc, SecretNotFound) for _, exc in errors)
        assert _wait_for(lambda: a.id in sched.codes)
        assert b.id not in sched.codes
        # The failing task keeps looping and recovers once the secret appears.
        memory_vault.put(b.id, SECRET)
        assert _wait_for(lambda: b.id in sched.codes)


def test_raising_error_callback_does_not_kill_task(memory_vault, accounts) -> None:
    a, _, _ = accounts
    memory_vault.delete(a.id)
    calls: List[str] = []

    def on_error(account_id: str, exc: Exception) -> None:
        calls.append(account_id)
        raise RuntimeError("callback failure")

    with AccountCodeScheduler(
        memory_vault, tick=TICK, clock=_Clock(59), on_error=on_error
    ) as sched:
        sched.reconcile([a])
        assert _wait_for(lambda: len(calls) >= 1)
        assert sched.task(a.id).is_alive()
        memory_vault.put(a.id, SECRET)
        assert _wait_for(lambda: a.id in sched.codes)


def test_repeated_failure_is_reported_once(memory_vault, accounts) -> None:
    a, _, _ = accounts
    memory_vault.delete(a.id)
    calls: List[str] = []
    lock = threading.Lock()

    def on_error(account_id: str, exc: Exception) -> None:
        with lock:
            calls.append(account_id)

    with AccountCodeScheduler(
        memory_vault, tick=TICK, clock=_Clock(59), on_error=on_error
    ) as sched:
        sched.reconcile([a])
        assert _wait_for(lambda: len(calls) >= 1)
        time.sleep(TICK * 20)
        with lock:
            assert calls == [a.id]

        # Recovery resets the report; a later failure is reported again.
        memory_vault.put(a.id, SECRET)
        assert _wait_for(lambda: a.id in sched.codes)
        memory_vault.delete(a.id)
        assert _wait_for(lambda: len(calls) >= 2)
        time.sleep(TICK * 20)
        with lock:
            assert calls == [a.id, a.id]
