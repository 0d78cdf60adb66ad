"""FastAPI server for the monitoring service."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pingwatch import __version__
from pingwatch.api.auth import Authenticator
from pingwatch.api.ping_routes import ping_router
from pingwatch.api.routes import api_router, dashboard_router, health_router
from pingwatch.checks.scanner import OverdueScanner
from pingwatch.checks.state import CheckStateMachine
from pingwatch.checks.store import CheckStore
from pingwatch.config import Settings
from pingwatch.errors import CheckNotFound, Forbidden, Unauthorized
from pingwatch.notifications import AlertNotifier

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the overdue scanner for as long as the app serves requests."""
    scanner: OverdueScanner = app.state.scanner
    try:
        await scanner.start()
    except Exception:
        logger.exception("Overdue scanner failed to start")

    yield

    # Shutdown
    await scanner.stop()


# ── Error mapping ────────────────────────────────────────────────────────────


async def _not_found(request: Request, exc: CheckNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def _unauthorized(request: Request, exc: Unauthorized) -> JSONResponse:
    headers = {"WWW-Authenticate": exc.challenge} if exc.challenge else None
    return JSONResponse(status_code=401, content={"detail": str(exc)}, headers=headers)


async def _forbidden(request: Request, exc: Forbidden) -> JSONResponse:
    return JSONResponse(status_code=403, content={"detail": str(exc)})


# ── App factory ──────────────────────────────────────────────────────────────


def create_app(
    settings: Settings | None = None,
    store: CheckStore | None = None,
    notifier: AlertNotifier | None = None,
) -> FastAPI:
    """Wire store, state machine, notifier and scanner into a FastAPI app."""
    settings = settings or Settings()
    store = store or CheckStore(settings.db_path)
    notifier = notifier or AlertNotifier(settings)
    machine = CheckStateMachine(store)

    app = FastAPI(
        title="pingwatch — dead-man's-switch monitoring",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.machine = machine
    app.state.notifier = notifier
    app.state.authenticator = Authenticator(settings)
    app.state.scanner = OverdueScanner(machine, notifier, interval=settings.scan_interval)

    app.add_exception_handler(CheckNotFound, _not_found)
    app.add_exception_handler(Unauthorized, _unauthorized)
    app.add_exception_handler(Forbidden, _forbidden)

    app.include_router(health_router)
    app.include_router(ping_router)
    app.include_router(api_router)
    app.include_router(dashboard_router)

    return app
