"""Overdue scanner — periodic sweep that marks silent checks as down.

Each tick reads the overdue candidates, re-verifies every one through a
compare-and-set transition, and alerts only for the transitions it made.
Two scans racing each other, or a scan racing a live ping, therefore
produce at most one alert per down transition.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace

from pingwatch.checks.models import Check, CheckStatus
from pingwatch.checks.state import CheckStateMachine
from pingwatch.notifications import AlertNotifier, AlertReason

logger = logging.getLogger(__name__)


class OverdueScanner:
    """Runs the overdue sweep on a fixed interval."""

    def __init__(
        self,
        machine: CheckStateMachine,
        notifier: AlertNotifier,
        interval: float = 60.0,
    ) -> None:
        self.machine = machine
        self.notifier = notifier
        self.interval = interval
        self.last_scan: float | None = None
        self._task: asyncio.Task[None] | None = None
        self._running = False

    def scan_once(self, now: float | None = None) -> list[Check]:
        """Transition every overdue check to down. Returns the checks moved."""
        now = time.time() if now is None else now
        self.last_scan = now
        moved: list[Check] = []

        for check in self.machine.store.find_overdue(now):
            if not self.machine.mark_overdue(check, now):
                continue
            down = replace(
                check,
                status=CheckStatus.DOWN,
                failure_count=check.failure_count + 1,
                updated_at=now,
            )
            moved.append(down)
            try:
                self.notifier.notify_down(down, AlertReason.OVERDUE, now=now)
            except Exception:
                logger.exception("Alert for %s failed", check.uuid)

        if moved:
            logger.info("Overdue scan: %d check(s) marked down", len(moved))
        return moved

    async def start(self) -> None:
        """Start the background scan loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._scan_loop(), name="overdue-scanner")
        logger.info("Overdue scanner started (interval=%ss)", self.interval)

    async def stop(self) -> None:
        """Stop the loop. A scan already running in its worker thread finishes on its own."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Overdue scanner stopped")

    @property
    def running(self) -> bool:
        return self._running

    async def _scan_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while self._running:
            try:
                await loop.run_in_executor(None, self.scan_once)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Overdue scan failed")
            await asyncio.sleep(self.interval)
