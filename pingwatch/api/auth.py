"""Request authentication — bearer token for jobs and API, Basic for people.

Dashboard routes accept either the configured bearer token or the admin
Basic credentials. Ping and API routes accept the bearer token only.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBasic, HTTPBasicCredentials, HTTPBearer

from pingwatch.config import Settings
from pingwatch.errors import Forbidden, Unauthorized

logger = logging.getLogger(__name__)

REALM = "pingwatch"

_bearer = HTTPBearer(auto_error=False)
_basic = HTTPBasic(auto_error=False, realm=REALM)


def _same(given: str, expected: str) -> bool:
    # An unset secret never matches
    if not expected:
        return False
    return secrets.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


class Authenticator:
    """Validates credentials against the configured secrets."""

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.api_key
        self._admin_user = settings.admin_user
        self._admin_pass = settings.admin_pass
        if not self._api_key:
            logger.warning("API_KEY is not set — every ping and API request will be refused")

    def token_ok(self, token: str) -> bool:
        return _same(token, self._api_key)

    def basic_ok(self, username: str, password: str) -> bool:
        # Evaluate both so timing does not reveal which half was wrong
        user_ok = _same(username, self._admin_user)
        pass_ok = _same(password, self._admin_pass)
        return user_ok and pass_ok


def _authenticator(request: Request) -> Authenticator:
    return request.app.state.authenticator  # type: ignore[no-any-return]


def require_token(
    request: Request,
    bearer: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> None:
    """Bearer-only auth: 401 when absent, 403 when wrong."""
    if bearer is None:
        raise Unauthorized("Bearer token required", challenge=f'Bearer realm="{REALM}"')
    if not _authenticator(request).token_ok(bearer.credentials):
        raise Forbidden("Invalid bearer token")


def require_dashboard(
    request: Request,
    bearer: HTTPAuthorizationCredentials | None = Depends(_bearer),
    basic: HTTPBasicCredentials | None = Depends(_basic),
) -> None:
    """Bearer token or Basic credentials: 401 with a challenge when absent, 403 when wrong."""
    auth = _authenticator(request)
    if bearer is not None:
        if auth.token_ok(bearer.credentials):
            return
        raise Forbidden("Invalid bearer token")
    if basic is not None:
        if auth.basic_ok(basic.username, basic.password):
            return
        raise Forbidden("Invalid username or password")
    raise Unauthorized("Authentication required", challenge=f'Basic realm="{REALM}"')
