"""Admin bearer-token check and caller identity for rate limiting."""

from __future__ import annotations

import hashlib
import hmac
import logging

from fastapi import Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from alma.config import settings
from alma.errors import ConfigurationMissing, Unauthorized
from alma.services.metrics import metrics

logger = logging.getLogger("alma.auth")

_bearer = HTTPBearer(auto_error=False)

# Session cookie set by the web front end
SESSION_COOKIE = "alma-session"


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> None:
    """Reject the request unless it carries the configured admin secret.

    Fails closed: without a configured secret the route is unavailable.
    """
    if not settings.admin_secret:
        raise ConfigurationMissing("Admin secret is not configured")

    if credentials is None or credentials.scheme.lower() != "bearer":
        metrics.inc_admin_auth_failure()
        raise Unauthorized("Missing bearer token")

    if not hmac.compare_digest(
        credentials.credentials.encode(), settings.admin_secret.encode()
    ):
        metrics.inc_admin_auth_failure()
        logger.warning("Rejected admin request with invalid token")
        raise Unauthorized("Invalid admin token")


def _hash(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()


def client_identity(request: Request) -> str:
    """Rate-limit key: the session if present, else the client IP.

    Session values are hashed so raw tokens never reach the limiter backend.
    """
    session = request.cookies.get(SESSION_COOKIE)
    if session:
        return f"session:{_hash(session)}"

    forwarded = request.headers.get("x-forwarded-for", "")
    ip = forwarded.split(",")[0].strip() if forwarded else ""
    if not ip and request.client is not None:
        ip = request.client.host
    return f"ip:{ip or 'unknown'}"
