"""Configuration loaded from environment / .env file.

Settings objects are built once at startup and handed to the components
that need them.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings

PLACEHOLDER_API_KEY = "00000000-0000-0000-0000-000000000000"


class Settings(BaseSettings):
    """Service configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Alert email
    smtp_host: str = ""
    smtp_port: int = 25
    from_email: str = ""
    alert_email: str = ""

    # Optional Slack-style incoming webhook
    slack_webhook_url: str = ""

    # Links in alerts point here
    base_url: str = "http://localhost:8000"

    # Auth
    api_key: str = ""
    admin_user: str = ""
    admin_pass: str = ""

    # Storage
    db_path: str = "data/pingwatch.db"

    # Overdue scan
    scan_interval: float = 60.0

    # Dashboard shows at most this many characters of each ping body
    ping_body_preview: int = 1000

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"


class WrapperSettings(BaseSettings):
    """Job wrapper configuration."""

    model_config = {"extra": "ignore"}

    # The all-zero default is a visible misconfiguration signal
    api_key: str = PLACEHOLDER_API_KEY

    ping_timeout: float = 30.0
    max_report_size: int = 100_000

    # Unset means the wrapped command may run forever
    command_timeout: float | None = None

    log_level: str = "WARNING"
