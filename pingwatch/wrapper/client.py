"""Ping client — builds ping URLs and delivers reports over HTTP.

A ping URL is ``<base>/ping/<uuid>`` with an optional ``/start`` or
``/fail`` suffix. Delivery is best-effort: one attempt, failures logged.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import httpx

from pingwatch import __version__
from pingwatch.checks.models import Signal
from pingwatch.config import PLACEHOLDER_API_KEY

logger = logging.getLogger(__name__)

_PING_URL_RE = re.compile(r"^(?P<prefix>.*/ping)/(?P<uuid>[^/?#]+)(?:/(?P<suffix>start|fail))?/?$")

_SUFFIX = {
    Signal.SUCCESS: "",
    Signal.START: "/start",
    Signal.FAIL: "/fail",
}


@dataclass(frozen=True)
class PingUrl:
    """A check's ping endpoint, split into base URL and uuid."""

    prefix: str
    uuid: str | None = None

    @classmethod
    def parse(cls, url: str) -> "PingUrl":
        """Split ``url``; anything without a ``/ping/<uuid>`` tail is used as-is."""
        match = _PING_URL_RE.match(url)
        if match is None:
            return cls(prefix=url.rstrip("/"))
        return cls(prefix=match.group("prefix"), uuid=match.group("uuid"))

    @property
    def base(self) -> str:
        if self.uuid is None:
            return self.prefix
        return f"{self.prefix}/{self.uuid}"

    def for_signal(self, signal: Signal) -> str:
        return self.base + _SUFFIX[Signal(signal)]


def derive_ping_url(url: str, exit_code: int) -> str:
    """URL to report a finished run to.

    A nonzero exit goes to ``.../ping/<uuid>/fail`` whether ``url`` ended in
    ``/ping/<uuid>`` or ``/ping/<uuid>/start``. Success keeps ``url``.
    """
    if exit_code == 0:
        return url
    return PingUrl.parse(url).for_signal(Signal.FAIL)


def start_ping_url(url: str) -> str:
    return PingUrl.parse(url).for_signal(Signal.START)


class PingClient:
    """Synchronous httpx client that posts reports to ping URLs."""

    def __init__(self, api_key: str = PLACEHOLDER_API_KEY, timeout: float = 30.0) -> None:
        self._api_key = api_key
        self._timeout = timeout
        if api_key == PLACEHOLDER_API_KEY:
            logger.warning("API_KEY not set, using the all-zero placeholder token")

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "text/plain; charset=utf-8",
            "User-Agent": f"pingwatch-wrap/{__version__}",
        }

    def send(self, url: str, body: str = "") -> bool:
        """POST ``body`` to ``url``. Returns False on any delivery failure."""
        try:
            with httpx.Client(timeout=self._timeout) as client:
                resp = client.post(url, content=body.encode("utf-8"), headers=self._headers)
        except httpx.HTTPError as e:
            logger.warning("Ping to %s failed: %s", url, e)
            return False

        if resp.status_code >= 400:
            logger.warning("Ping to %s returned %d: %s", url, resp.status_code, resp.text[:200])
            return False
        logger.debug("Ping to %s accepted (%d)", url, resp.status_code)
        return True
