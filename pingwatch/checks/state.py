"""Check lifecycle — applies ping events and overdue transitions.

    success ping   any status   → up
    start ping     any status   → grace
    fail ping      any status   → down   (caller notifies)
    overdue        up / grace   → down   (scanner notifies)

Every ping overwrites ``status`` and ``last_ping`` whatever the previous
status was. Only the overdue path is conditional.
"""

from __future__ import annotations

import logging
import re
import time

from pingwatch.checks.models import (
    WATCHED_STATUSES,
    Check,
    CheckStatus,
    Ping,
    PingMeta,
    Signal,
)
from pingwatch.checks.store import CheckStore

logger = logging.getLogger(__name__)

START_BODY = "Job started"

_SIGNAL_STATUS = {
    Signal.SUCCESS: CheckStatus.UP,
    Signal.START: CheckStatus.GRACE,
    Signal.FAIL: CheckStatus.DOWN,
}

# Matches the header line written by the job wrapper's report
_EXIT_CODE_RE = re.compile(r"^Exit code:\s*(-?\d+)\s*$", re.MULTILINE)


def parse_exit_status(body: str) -> int | None:
    """Pull the exit code out of a wrapper report, if there is one."""
    match = _EXIT_CODE_RE.search(body)
    return int(match.group(1)) if match else None


def is_overdue(check: Check, now: float) -> bool:
    """True when the check's grace window closed strictly before ``now``."""
    if check.status not in WATCHED_STATUSES or check.deadline is None:
        return False
    return now > check.deadline


class CheckStateMachine:
    """Applies transitions to checks and persists them through the store."""

    def __init__(self, store: CheckStore) -> None:
        self.store = store

    def update(
        self,
        uuid: str,
        new_status: CheckStatus,
        ping_meta: PingMeta,
        exit_status: int | None = None,
        now: float | None = None,
    ) -> Check:
        """Set ``status``/``last_ping`` and log the ping in one step.

        Raises CheckNotFound when the uuid is unknown.
        """
        now = time.time() if now is None else now
        ping = Ping(
            check_uuid=uuid,
            status=CheckStatus(new_status),
            created_at=now,
            method=ping_meta.method,
            user_agent=ping_meta.user_agent,
            body=ping_meta.body,
            exit_status=exit_status,
        )
        return self.store.update(uuid, ping.status, ping, now=now)

    def record_ping(
        self,
        uuid: str,
        signal: Signal,
        meta: PingMeta | None = None,
        now: float | None = None,
    ) -> Check:
        """Apply a success, start or fail ping to a check."""
        meta = meta or PingMeta()
        signal = Signal(signal)

        if signal is Signal.START:
            meta = PingMeta(method=meta.method, user_agent=meta.user_agent, body=START_BODY)
            exit_status = None
        elif signal is Signal.FAIL:
            # A fail ping always logs a nonzero exit status
            exit_status = parse_exit_status(meta.body) or 1
        else:
            exit_status = 0

        check = self.update(uuid, _SIGNAL_STATUS[signal], meta, exit_status=exit_status, now=now)
        logger.info("Ping %s for %s (%s) → %s", signal.value, check.uuid, check.name, check.status.value)
        return check

    def mark_overdue(self, check: Check, now: float | None = None) -> bool:
        """Move an overdue check to ``down``.

        Returns False when the check is not overdue any more, or another
        scan or a ping got to it first.
        """
        now = time.time() if now is None else now
        if not is_overdue(check, now):
            return False
        changed = self.store.mark_down(check.uuid, check.last_ping, now)
        if changed:
            logger.warning(
                "Check %s (%s) is overdue: last ping %.0fs ago (period=%ds grace=%ds)",
                check.uuid, check.name, now - (check.last_ping or now), check.period, check.grace,
            )
        else:
            logger.debug("Check %s changed since it was read, skipping", check.uuid)
        return changed
