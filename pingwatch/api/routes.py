"""Dashboard and API routes.

Endpoints:
  GET  /                               — list checks (dashboard auth)
  POST /checks                         — create a check (dashboard auth)
  GET  /checks/{uuid}                  — check detail + last 20 pings
  GET  /checks/{uuid}/{ping_id}/body   — raw ping body as text/plain
  GET  /api/checks                     — JSON list of all checks (bearer)
  GET  /health                         — service liveness (no auth)
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from pingwatch import __version__
from pingwatch.api.auth import require_dashboard, require_token
from pingwatch.checks.models import iso
from pingwatch.checks.store import CheckStore

logger = logging.getLogger(__name__)

RECENT_PINGS = 20

dashboard_router = APIRouter(dependencies=[Depends(require_dashboard)], tags=["dashboard"])
api_router = APIRouter(prefix="/api", dependencies=[Depends(require_token)], tags=["api"])
health_router = APIRouter(tags=["health"])


# ── Request models ───────────────────────────────────────────────────────

class CreateCheckBody(BaseModel):
    name: str = ""
    period: int = Field(default=86400, gt=0)
    grace: int = Field(default=3600, ge=0)


# ── Helper ───────────────────────────────────────────────────────────────

def _get_store(request: Request) -> CheckStore:
    return request.app.state.store  # type: ignore[no-any-return]


# ── Dashboard ────────────────────────────────────────────────────────────

@dashboard_router.get("/")
async def list_checks(request: Request) -> dict[str, Any]:
    """All checks with a per-status summary."""
    store = _get_store(request)
    checks = await run_in_threadpool(store.list_checks)
    stats = await run_in_threadpool(store.stats)
    return {"checks": [c.to_dict() for c in checks], "stats": stats}


@dashboard_router.post("/checks", status_code=201)
async def create_check(body: CreateCheckBody, request: Request) -> dict[str, Any]:
    """Create a check; the uuid is generated server-side."""
    store = _get_store(request)
    check = await run_in_threadpool(store.create_check, body.name, body.period, body.grace)
    return check.to_dict()


@dashboard_router.get("/checks/{uuid}")
async def check_detail(uuid: str, request: Request) -> dict[str, Any]:
    """Check detail plus the most recent pings, bodies clipped for display."""
    store = _get_store(request)
    preview = request.app.state.settings.ping_body_preview
    check = await run_in_threadpool(store.get_check, uuid)
    pings = await run_in_threadpool(store.list_pings, uuid, RECENT_PINGS)
    detail = check.to_dict()
    detail["deadline"] = iso(check.deadline)
    detail["pings"] = [p.to_dict(body_limit=preview) for p in pings]
    return detail


@dashboard_router.get("/checks/{uuid}/{ping_id}/body", response_class=PlainTextResponse)
async def ping_body(uuid: str, ping_id: int, request: Request) -> PlainTextResponse:
    """Full, unclipped body of one ping."""
    store = _get_store(request)
    ping = await run_in_threadpool(store.get_ping, uuid, ping_id)
    return PlainTextResponse(ping.body, media_type="text/plain")


# ── API ──────────────────────────────────────────────────────────────────

@api_router.get("/checks")
async def api_list_checks(request: Request) -> dict[str, Any]:
    store = _get_store(request)
    checks = await run_in_threadpool(store.list_checks)
    return {"checks": [c.to_dict() for c in checks], "count": len(checks)}


# ── Health ───────────────────────────────────────────────────────────────

@health_router.get("/health")
def health(request: Request) -> dict[str, Any]:
    """Service liveness and scanner state."""
    scanner = request.app.state.scanner
    return {
        "ok": True,
        "name": "pingwatch",
        "version": __version__,
        "platform": sys.platform,
        "scanner_running": scanner.running,
        "last_scan": iso(scanner.last_scan),
        "notifications": request.app.state.notifier.status(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
