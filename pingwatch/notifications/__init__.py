"""Alert notifications — email via SMTP, optional Slack-style webhook.

Fires when a check goes down:
- a job reported failure through ``/ping/{uuid}/fail``
- the overdue scan found a check whose grace window elapsed

Delivery failures are logged and swallowed. They never undo the state
transition that triggered the alert.
"""

from __future__ import annotations

import logging
import smtplib
import time
from email.message import EmailMessage
from enum import Enum
from typing import Any

import httpx

from pingwatch.checks.models import Check, iso
from pingwatch.config import Settings

logger = logging.getLogger(__name__)


class AlertReason(str, Enum):
    FAILED = "failed"
    OVERDUE = "overdue"


def _ago(ts: float | None, now: float) -> str:
    if ts is None:
        return "never"
    seconds = int(now - ts)
    if seconds < 120:
        return f"{seconds}s ago"
    if seconds < 7200:
        return f"{seconds // 60}m ago"
    return f"{seconds // 3600}h ago"


class AlertNotifier:
    """Delivers down alerts to every configured channel."""

    def __init__(self, settings: Settings) -> None:
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.from_email = settings.from_email
        self.alert_email = settings.alert_email
        self.slack_webhook = settings.slack_webhook_url
        self.base_url = settings.base_url.rstrip("/")

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_host and self.from_email and self.alert_email)

    @property
    def is_enabled(self) -> bool:
        return self.email_enabled or bool(self.slack_webhook)

    def status(self) -> dict[str, Any]:
        return {
            "enabled": self.is_enabled,
            "email_configured": self.email_enabled,
            "slack_configured": bool(self.slack_webhook),
        }

    def check_url(self, check: Check) -> str:
        return f"{self.base_url}/checks/{check.uuid}"

    def format_alert(
        self, check: Check, reason: AlertReason, now: float | None = None,
    ) -> tuple[str, str]:
        """Return (subject, body) for a down alert."""
        now = time.time() if now is None else now
        reason = AlertReason(reason)
        if reason is AlertReason.FAILED:
            subject = f"[pingwatch] {check.name} reported failure"
            headline = f"Check \"{check.name}\" reported a failure."
        else:
            subject = f"[pingwatch] {check.name} is down"
            headline = f"Check \"{check.name}\" has not pinged within its period and grace time."

        body = (
            f"{headline}\n\n"
            f"Last ping: {iso(check.last_ping) or 'never'} ({_ago(check.last_ping, now)})\n"
            f"Period:    {check.period}s\n"
            f"Grace:     {check.grace}s\n"
            f"Failures:  {check.failure_count}\n\n"
            f"Details: {self.check_url(check)}\n"
        )
        return subject, body

    def notify_down(self, check: Check, reason: AlertReason, now: float | None = None) -> bool:
        """Send a down alert. Returns True if at least one channel accepted it."""
        if not self.is_enabled:
            logger.warning("No alert channel configured, dropping alert for %s", check.uuid)
            return False

        subject, body = self.format_alert(check, reason, now=now)
        delivered = False
        if self.email_enabled:
            delivered = self._send_email(subject, body) or delivered
        if self.slack_webhook:
            delivered = self._send_slack(f"*{subject}*\n{body}") or delivered
        return delivered

    # -- Low-level dispatch -------------------------------------------------

    def _send_email(self, subject: str, body: str) -> bool:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = self.alert_email
        msg.set_content(body)
        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as smtp:
                smtp.send_message(msg)
            logger.info("Alert email sent to %s: %s", self.alert_email, subject)
            return True
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("Alert email failed: %s", exc)
            return False

    def _send_slack(self, text: str) -> bool:
        try:
            with httpx.Client(timeout=10) as client:
                resp = client.post(self.slack_webhook, json={"text": text, "mrkdwn": True})
            if resp.status_code != 200:
                logger.warning("Slack webhook returned %d: %s", resp.status_code, resp.text[:200])
                return False
            return True
        except httpx.HTTPError as exc:
            logger.warning("Slack notification failed: %s", exc)
            return False
