"""Check and Ping records."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

DEFAULT_NAME = "unnamed"


class CheckStatus(str, Enum):
    NEW = "new"
    UP = "up"
    GRACE = "grace"
    DOWN = "down"


class Signal(str, Enum):
    """Kind of ping a job sends."""

    SUCCESS = "success"
    START = "start"
    FAIL = "fail"


# Statuses the overdue scan is allowed to move to DOWN
WATCHED_STATUSES = (CheckStatus.UP, CheckStatus.GRACE)


def iso(ts: float | None) -> str | None:
    """Render an epoch timestamp as ISO-8601 UTC."""
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


@dataclass
class Check:
    """A monitored job identity with an expected ping cadence."""

    id: int | None = None
    uuid: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = DEFAULT_NAME
    period: int = 86400
    grace: int = 3600
    status: CheckStatus = CheckStatus.NEW
    last_ping: float | None = None
    failure_count: int = 0
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if not self.name:
            self.name = DEFAULT_NAME
        self.status = CheckStatus(self.status)

    @property
    def deadline(self) -> float | None:
        """Moment after which the check counts as overdue."""
        if self.last_ping is None:
            return None
        return self.last_ping + self.period + self.grace

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "uuid": self.uuid,
            "name": self.name,
            "period": self.period,
            "grace": self.grace,
            "status": self.status.value,
            "last_ping": iso(self.last_ping),
            "failure_count": self.failure_count,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Check":
        return cls(
            id=row["id"],
            uuid=row["uuid"],
            name=row.get("name", DEFAULT_NAME),
            period=row["period"],
            grace=row["grace"],
            status=CheckStatus(row["status"]),
            last_ping=row.get("last_ping"),
            failure_count=row.get("failure_count", 0),
            created_at=row.get("created_at", 0.0),
            updated_at=row.get("updated_at", 0.0),
        )


@dataclass(frozen=True)
class PingMeta:
    """What the HTTP layer knows about an incoming ping."""

    method: str = "POST"
    user_agent: str = ""
    body: str = ""


@dataclass(frozen=True)
class Ping:
    """One logged liveness, failure or start signal. Never modified."""

    check_uuid: str
    status: CheckStatus
    created_at: float
    method: str = "POST"
    user_agent: str = ""
    body: str = ""
    exit_status: int | None = None
    id: int | None = None

    def to_dict(self, body_limit: int | None = None) -> dict[str, Any]:
        body = self.body
        truncated = body_limit is not None and len(body) > body_limit
        if truncated:
            body = body[:body_limit]
        return {
            "id": self.id,
            "check_uuid": self.check_uuid,
            "created_at": iso(self.created_at),
            "method": self.method,
            "status": self.status.value,
            "user_agent": self.user_agent,
            "body": body,
            "body_truncated": truncated,
            "exit_status": self.exit_status,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Ping":
        return cls(
            id=row["id"],
            check_uuid=row["check_uuid"],
            status=CheckStatus(row["status"]),
            created_at=row["created_at"],
            method=row.get("method", "POST"),
            user_agent=row.get("user_agent", ""),
            body=row.get("body", ""),
            exit_status=row.get("exit_status"),
        )
