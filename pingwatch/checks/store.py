"""Check storage — SQLite-backed table of checks plus the append-only ping log.

Connections are opened per call so request handlers and the background
scanner never share one. Every write that touches both tables happens in
a single transaction.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path
from typing import Any

from pingwatch.checks.models import WATCHED_STATUSES, Check, CheckStatus, Ping
from pingwatch.errors import CheckNotFound

logger = logging.getLogger(__name__)

_WATCHED = tuple(s.value for s in WATCHED_STATUSES)


class CheckStore:
    """SQLite-backed storage for checks and pings."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS checks (
                    id            INTEGER PRIMARY KEY AUTOINCREMENT,
                    uuid          TEXT NOT NULL UNIQUE,
                    name          TEXT NOT NULL,
                    period        INTEGER NOT NULL CHECK (period > 0),
                    grace         INTEGER NOT NULL CHECK (grace >= 0),
                    status        TEXT NOT NULL DEFAULT 'new'
                                  CHECK (status IN ('new', 'up', 'grace', 'down')),
                    last_ping     REAL,
                    failure_count INTEGER NOT NULL DEFAULT 0,
                    created_at    REAL NOT NULL,
                    updated_at    REAL NOT NULL
                );

                CREATE TABLE IF NOT EXISTS pings (
                    id          INTEGER PRIMARY KEY AUTOINCREMENT,
                    check_uuid  TEXT NOT NULL REFERENCES checks (uuid),
                    created_at  REAL NOT NULL,
                    method      TEXT NOT NULL DEFAULT '',
                    status      TEXT NOT NULL,
                    user_agent  TEXT NOT NULL DEFAULT '',
                    body        TEXT NOT NULL DEFAULT '',
                    exit_status INTEGER
                );

                CREATE INDEX IF NOT EXISTS idx_pings_check
                    ON pings (check_uuid, id DESC);

                CREATE INDEX IF NOT EXISTS idx_checks_status
                    ON checks (status);
            """)

    # ── Checks ────────────────────────────────────────────────────────────

    def create_check(self, name: str, period: int, grace: int) -> Check:
        """Insert a new check in status ``new``."""
        check = Check(name=name, period=period, grace=grace)
        with self._conn() as conn:
            cursor = conn.execute(
                "INSERT INTO checks (uuid, name, period, grace, status, last_ping, "
                "failure_count, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, NULL, 0, ?, ?)",
                (check.uuid, check.name, check.period, check.grace,
                 check.status.value, check.created_at, check.updated_at),
            )
            check.id = cursor.lastrowid
        logger.info("Created check %s (%s) period=%ds grace=%ds",
                    check.uuid, check.name, period, grace)
        return check

    def get_check(self, uuid: str) -> Check:
        """Get a single check by uuid. Raises CheckNotFound."""
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM checks WHERE uuid = ?", (uuid,)).fetchone()
        if row is None:
            raise CheckNotFound(uuid)
        return Check.from_row(dict(row))

    def list_checks(self) -> list[Check]:
        with self._conn() as conn:
            rows = conn.execute("SELECT * FROM checks ORDER BY id").fetchall()
        return [Check.from_row(dict(r)) for r in rows]

    # ── Pings ─────────────────────────────────────────────────────────────

    def list_pings(self, uuid: str, limit: int = 20) -> list[Ping]:
        """Most recent pings for a check, newest first."""
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT * FROM pings WHERE check_uuid = ? ORDER BY id DESC LIMIT ?",
                (uuid, limit),
            ).fetchall()
        return [Ping.from_row(dict(r)) for r in rows]

    def get_ping(self, uuid: str, ping_id: int) -> Ping:
        """Get one ping of a check. Raises CheckNotFound if either is missing."""
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM pings WHERE check_uuid = ? AND id = ?",
                (uuid, ping_id),
            ).fetchone()
        if row is None:
            raise CheckNotFound(uuid, f"Ping {ping_id} not found for check {uuid}")
        return Ping.from_row(dict(row))

    # ── Transitions ───────────────────────────────────────────────────────

    def update(self, uuid: str, status: CheckStatus, ping: Ping, now: float | None = None) -> Check:
        """Overwrite status/last_ping and append the ping row atomically.

        Entering ``down`` from any other status counts as a failure.
        Raises CheckNotFound and writes nothing when the uuid is unknown.
        """
        now = time.time() if now is None else now
        status = CheckStatus(status)
        with self._conn() as conn:
            cursor = conn.execute(
                "UPDATE checks SET "
                "failure_count = failure_count + "
                "  CASE WHEN :status = 'down' AND status != 'down' THEN 1 ELSE 0 END, "
                "status = :status, last_ping = :last_ping, updated_at = :now "
                "WHERE uuid = :uuid",
                {"status": status.value, "last_ping": ping.created_at, "now": now, "uuid": uuid},
            )
            if cursor.rowcount == 0:
                raise CheckNotFound(uuid)
            conn.execute(
                "INSERT INTO pings (check_uuid, created_at, method, status, "
                "user_agent, body, exit_status) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (uuid, ping.created_at, ping.method, status.value,
                 ping.user_agent, ping.body, ping.exit_status),
            )
            row = conn.execute("SELECT * FROM checks WHERE uuid = ?", (uuid,)).fetchone()
        return Check.from_row(dict(row))

    def find_overdue(self, now: float) -> list[Check]:
        """Checks in up/grace whose grace window closed strictly before ``now``."""
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT * FROM checks "
                "WHERE status IN (?, ?) AND last_ping IS NOT NULL "
                "AND last_ping + period + grace < ? "
                "ORDER BY id",
                (*_WATCHED, now),
            ).fetchall()
        return [Check.from_row(dict(r)) for r in rows]

    def mark_down(self, uuid: str, expected_last_ping: float | None, now: float) -> bool:
        """Move a check to ``down`` only if nobody touched it since it was read.

        Returns True when this call made the transition.
        """
        with self._conn() as conn:
            cursor = conn.execute(
                "UPDATE checks SET status = 'down', "
                "failure_count = failure_count + 1, updated_at = ? "
                "WHERE uuid = ? AND status IN (?, ?) AND last_ping IS ?",
                (now, uuid, *_WATCHED, expected_last_ping),
            )
        return cursor.rowcount == 1

    def stats(self) -> dict[str, Any]:
        """Count of checks per status."""
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT status, COUNT(*) AS n FROM checks GROUP BY status"
            ).fetchall()
        by_status = {s.value: 0 for s in CheckStatus}
        for r in rows:
            by_status[r["status"]] = r["n"]
        return {"total": sum(by_status.values()), "by_status": by_status}
