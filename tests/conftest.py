"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from pingwatch.api.server import create_app
from pingwatch.checks.models import Check
from pingwatch.checks.state import CheckStateMachine
from pingwatch.checks.store import CheckStore
from pingwatch.config import Settings
from pingwatch.notifications import AlertNotifier, AlertReason

API_KEY = "test-api-key"
ADMIN_USER = "admin"
ADMIN_PASS = "s3cret"


class RecordingNotifier(AlertNotifier):
    """Notifier that remembers alerts instead of delivering them."""

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self.sent: list[tuple[Check, AlertReason]] = []

    def notify_down(self, check: Check, reason: AlertReason, now: float | None = None) -> bool:
        self.sent.append((check, AlertReason(reason)))
        return True


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        api_key=API_KEY,
        admin_user=ADMIN_USER,
        admin_pass=ADMIN_PASS,
        base_url="http://monitor.test",
        db_path=str(tmp_path / "pingwatch.db"),
        scan_interval=0.05,
        ping_body_preview=50,
    )


@pytest.fixture
def store(tmp_path: Path) -> CheckStore:
    """CheckStore backed by a temp SQLite file."""
    return CheckStore(db_path=tmp_path / "test_checks.db")


@pytest.fixture
def machine(store: CheckStore) -> CheckStateMachine:
    return CheckStateMachine(store)


@pytest.fixture
def notifier(settings: Settings) -> RecordingNotifier:
    return RecordingNotifier(settings)


@pytest.fixture
def app(settings: Settings, notifier: RecordingNotifier) -> Any:
    return create_app(settings, notifier=notifier)


@pytest.fixture
def client(app: Any) -> TestClient:
    return TestClient(app)


@pytest.fixture
def bearer() -> dict[str, str]:
    return {"Authorization": f"Bearer {API_KEY}"}


@pytest.fixture
def admin() -> tuple[str, str]:
    return (ADMIN_USER, ADMIN_PASS)
