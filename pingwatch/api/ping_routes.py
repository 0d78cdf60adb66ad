"""Ping endpoints — the URLs jobs call to report liveness.

  ANY /ping/{uuid}         — success, check goes up
  ANY /ping/{uuid}/start   — job started, check goes to grace
  ANY /ping/{uuid}/fail    — job failed, check goes down and alerts now
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.concurrency import run_in_threadpool

from pingwatch.api.auth import require_token
from pingwatch.checks.models import Check, PingMeta, Signal
from pingwatch.checks.state import CheckStateMachine
from pingwatch.notifications import AlertNotifier, AlertReason

logger = logging.getLogger(__name__)

PING_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

ping_router = APIRouter(prefix="/ping", dependencies=[Depends(require_token)], tags=["ping"])


def _notify_failed(notifier: AlertNotifier, check: Check) -> None:
    """Background task — the ping is already stored whatever happens here."""
    try:
        notifier.notify_down(check, AlertReason.FAILED)
    except Exception:
        logger.exception("Failure alert for %s failed", check.uuid)


async def _record(request: Request, uuid: str, signal: Signal) -> Check:
    machine: CheckStateMachine = request.app.state.machine
    raw = await request.body()
    meta = PingMeta(
        method=request.method,
        user_agent=request.headers.get("user-agent", ""),
        body=raw.decode("utf-8", errors="replace"),
    )
    return await run_in_threadpool(machine.record_ping, uuid, signal, meta)


def _ack(check: Check) -> dict[str, Any]:
    return {"ok": True, "uuid": check.uuid, "status": check.status.value}


@ping_router.api_route("/{uuid}", methods=PING_METHODS)
async def ping_success(uuid: str, request: Request) -> dict[str, Any]:
    return _ack(await _record(request, uuid, Signal.SUCCESS))


@ping_router.api_route("/{uuid}/start", methods=PING_METHODS)
async def ping_start(uuid: str, request: Request) -> dict[str, Any]:
    return _ack(await _record(request, uuid, Signal.START))


@ping_router.api_route("/{uuid}/fail", methods=PING_METHODS)
async def ping_fail(uuid: str, request: Request, background: BackgroundTasks) -> dict[str, Any]:
    check = await _record(request, uuid, Signal.FAIL)
    background.add_task(_notify_failed, request.app.state.notifier, check)
    return _ack(check)
