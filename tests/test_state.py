"""Tests for the check state machine and the overdue scanner."""

from __future__ import annotations

import asyncio
import threading

import pytest

from pingwatch.checks.models import Check, CheckStatus, PingMeta, Signal
from pingwatch.checks.scanner import OverdueScanner
from pingwatch.checks.state import CheckStateMachine, is_overdue, parse_exit_status
from pingwatch.checks.store import CheckStore
from pingwatch.errors import CheckNotFound
from pingwatch.notifications import AlertReason


@pytest.fixture
def scanner(machine: CheckStateMachine, notifier) -> OverdueScanner:
    return OverdueScanner(machine, notifier, interval=0.01)


# ── Pure helpers ─────────────────────────────────────────────────────────────


class TestIsOverdue:
    def test_boundary_exclusive(self) -> None:
        c = Check(period=60, grace=10, status=CheckStatus.UP, last_ping=0.0)
        assert not is_overdue(c, 69.0)
        assert not is_overdue(c, 70.0)
        assert is_overdue(c, 70.001)

    def test_grace_status_is_watched(self) -> None:
        c = Check(period=60, grace=10, status=CheckStatus.GRACE, last_ping=0.0)
        assert is_overdue(c, 71.0)

    @pytest.mark.parametrize("status", [CheckStatus.NEW, CheckStatus.DOWN])
    def test_new_and_down_never_overdue(self, status: CheckStatus) -> None:
        c = Check(period=60, grace=10, status=status, last_ping=0.0)
        assert not is_overdue(c, 10_000.0)


class TestParseExitStatus:
    def test_reads_report_header(self) -> None:
        assert parse_exit_status("Command:   x\nExit code: 2\nHost: h\n") == 2

    def test_missing(self) -> None:
        assert parse_exit_status("something broke") is None


# ── State machine ────────────────────────────────────────────────────────────


class TestCheckStateMachine:
    def test_success_ping_sets_up(self, store: CheckStore, machine: CheckStateMachine) -> None:
        check = store.create_check("job", 60, 10)
        after = machine.record_ping(check.uuid, Signal.SUCCESS, PingMeta(body="done"), now=5.0)
        assert after.status == CheckStatus.UP
        assert after.last_ping == 5.0
        ping = store.list_pings(check.uuid)[0]
        assert ping.exit_status == 0
        assert ping.body == "done"

    def test_start_ping_sets_grace(self, store: CheckStore, machine: CheckStateMachine) -> None:
        check = store.create_check("job", 60, 10)
        after = machine.record_ping(check.uuid, Signal.START, PingMeta(body="ignored"), now=5.0)
        assert after.status == CheckStatus.GRACE
        ping = store.list_pings(check.uuid)[0]
        assert ping.body == "Job started"
        assert ping.exit_status is None

    def test_fail_ping_sets_down(self, store: CheckStore, machine: CheckStateMachine) -> None:
        check = store.create_check("job", 60, 10)
        after = machine.record_ping(check.uuid, Signal.FAIL, PingMeta(body="Exit code: 3\n"), now=5.0)
        assert after.status == CheckStatus.DOWN
        assert after.failure_count == 1
        assert store.list_pings(check.uuid)[0].exit_status == 3

    def test_fail_ping_without_report_logs_exit_1(self, store: CheckStore, machine: CheckStateMachine) -> None:
        check = store.create_check("job", 60, 10)
        machine.record_ping(check.uuid, Signal.FAIL, now=5.0)
        assert store.list_pings(check.uuid)[0].exit_status == 1

    @pytest.mark.parametrize("prior", [Signal.SUCCESS, Signal.START, Signal.FAIL])
    def test_success_always_wins(self, store: CheckStore, machine: CheckStateMachine, prior: Signal) -> None:
        check = store.create_check("job", 60, 10)
        machine.record_ping(check.uuid, prior, now=1.0)
        after = machine.record_ping(check.uuid, Signal.SUCCESS, now=2.0)
        assert after.status == CheckStatus.UP
        assert after.last_ping == 2.0

    def test_success_after_overdue(self, store: CheckStore, machine: CheckStateMachine) -> None:
        check = store.create_check("job", 60, 10)
        machine.record_ping(check.uuid, Signal.SUCCESS, now=0.0)
        assert machine.mark_overdue(store.get_check(check.uuid), now=100.0)
        after = machine.record_ping(check.uuid, Signal.SUCCESS, now=101.0)
        assert after.status == CheckStatus.UP
        assert after.failure_count == 1

    def test_unknown_uuid(self, machine: CheckStateMachine) -> None:
        with pytest.raises(CheckNotFound):
            machine.record_ping("nope", Signal.SUCCESS)

    def test_every_ping_is_logged(self, store: CheckStore, machine: CheckStateMachine) -> None:
        check = store.create_check("job", 60, 10)
        for i, signal in enumerate([Signal.START, Signal.SUCCESS, Signal.START, Signal.FAIL]):
            machine.record_ping(check.uuid, signal, now=float(i))
        statuses = [p.status for p in reversed(store.list_pings(check.uuid))]
        assert statuses == [CheckStatus.GRACE, CheckStatus.UP, CheckStatus.GRACE, CheckStatus.DOWN]

    def test_concurrent_pings_on_one_check(self, store: CheckStore, machine: CheckStateMachine) -> None:
        check = store.create_check("job", 60, 10)
        n = 32
        errors: list[Exception] = []
        barrier = threading.Barrier(n)

        def ping(i: int) -> None:
            barrier.wait()
            try:
                machine.record_ping(check.uuid, Signal.SUCCESS, PingMeta(body=str(i)), now=float(i))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=ping, args=(i,)) for i in range(n)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        pings = store.list_pings(check.uuid, limit=n)
        assert len(pings) == n
        assert sorted(p.body for p in pings) == sorted(str(i) for i in range(n))
        ids = [p.id for p in reversed(pings)]
        assert ids == sorted(set(ids))

        after = store.get_check(check.uuid)
        assert after.status == CheckStatus.UP
        assert after.last_ping in {float(i) for i in range(n)}
        # Insert and status update share a transaction, so the newest row wins
        assert after.last_ping == pings[0].created_at

    def test_mark_overdue_rejects_not_yet_due(self, store: CheckStore, machine: CheckStateMachine) -> None:
        check = store.create_check("job", 60, 10)
        machine.record_ping(check.uuid, Signal.SUCCESS, now=0.0)
        assert machine.mark_overdue(store.get_check(check.uuid), now=70.0) is False
        assert store.get_check(check.uuid).status == CheckStatus.UP


# ── Overdue scanner ──────────────────────────────────────────────────────────


class TestOverdueScanner:
    def test_end_to_end(self, store: CheckStore, machine: CheckStateMachine, scanner: OverdueScanner, notifier) -> None:
        check = store.create_check("nightly", period=60, grace=10)
        assert machine.record_ping(check.uuid, Signal.SUCCESS, now=0.0).status == CheckStatus.UP

        moved = scanner.scan_once(now=71.0)
        assert [c.uuid for c in moved] == [check.uuid]
        after = store.get_check(check.uuid)
        assert after.status == CheckStatus.DOWN
        assert after.failure_count == 1
        assert len(notifier.sent) == 1
        assert notifier.sent[0][1] is AlertReason.OVERDUE

        assert scanner.scan_once(now=72.0) == []
        assert store.get_check(check.uuid).failure_count == 1
        assert len(notifier.sent) == 1

    def test_not_due_at_boundary(self, store: CheckStore, machine: CheckStateMachine, scanner: OverdueScanner, notifier) -> None:
        check = store.create_check("job", 60, 10)
        machine.record_ping(check.uuid, Signal.SUCCESS, now=0.0)
        assert scanner.scan_once(now=70.0) == []
        assert notifier.sent == []

    def test_empty_scan_writes_nothing(self, store: CheckStore, machine: CheckStateMachine, scanner: OverdueScanner, notifier) -> None:
        check = store.create_check("job", 60, 10)
        machine.record_ping(check.uuid, Signal.SUCCESS, now=0.0)
        before = store.get_check(check.uuid)
        assert scanner.scan_once(now=30.0) == []
        assert store.get_check(check.uuid) == before
        assert notifier.sent == []

    def test_grace_status_goes_down(self, store: CheckStore, machine: CheckStateMachine, scanner: OverdueScanner) -> None:
        check = store.create_check("job", 60, 10)
        machine.record_ping(check.uuid, Signal.START, now=0.0)
        assert len(scanner.scan_once(now=71.0)) == 1

    def test_stale_read_does_not_double_alert(self, store: CheckStore, machine: CheckStateMachine, scanner: OverdueScanner, notifier) -> None:
        check = store.create_check("job", 60, 10)
        machine.record_ping(check.uuid, Signal.SUCCESS, now=0.0)
        stale = store.find_overdue(71.0)

        scanner.scan_once(now=71.0)
        # A second scan working from the same stale read
        assert not any(machine.mark_overdue(c, now=72.0) for c in stale)
        assert len(notifier.sent) == 1

    def test_ping_between_read_and_transition_wins(self, store: CheckStore, machine: CheckStateMachine) -> None:
        check = store.create_check("job", 60, 10)
        machine.record_ping(check.uuid, Signal.SUCCESS, now=0.0)
        stale = store.find_overdue(71.0)
        machine.record_ping(check.uuid, Signal.SUCCESS, now=71.5)
        assert machine.mark_overdue(stale[0], now=72.0) is False
        assert store.get_check(check.uuid).status == CheckStatus.UP

    def test_notifier_error_keeps_transition(self, store: CheckStore, machine: CheckStateMachine, notifier) -> None:
        def boom(*args, **kwargs):
            raise RuntimeError("smtp down")

        notifier.notify_down = boom
        scanner = OverdueScanner(machine, notifier)
        check = store.create_check("job", 60, 10)
        machine.record_ping(check.uuid, Signal.SUCCESS, now=0.0)

        assert len(scanner.scan_once(now=100.0)) == 1
        assert store.get_check(check.uuid).status == CheckStatus.DOWN

    def test_background_loop(self, store: CheckStore, machine: CheckStateMachine, scanner: OverdueScanner, notifier) -> None:
        check = store.create_check("job", 1, 0)
        machine.record_ping(check.uuid, Signal.SUCCESS, now=0.0)

        async def run() -> None:
            await scanner.start()
            assert scanner.running
            for _ in range(200):
                if notifier.sent:
                    break
                await asyncio.sleep(0.01)
            await scanner.stop()

        asyncio.run(run())
        assert not scanner.running
        assert store.get_check(check.uuid).status == CheckStatus.DOWN
        assert len(notifier.sent) == 1
