from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from alma.api.auth import client_identity
from alma.db.session import get_session_factory
from alma.errors import ConfigurationMissing
from alma.services.rate_limiter import RateLimitResult, rate_limiter


async def get_db() -> AsyncIterator[AsyncSession]:
    """Yield one session per request; raises ConfigurationMissing if unset."""
    async with get_session_factory()() as session:
        yield session


async def get_optional_db() -> AsyncIterator[AsyncSession | None]:
    """Like :func:`get_db` but yields ``None`` when no database is configured."""
    try:
        factory = get_session_factory()
    except ConfigurationMissing:
        yield None
        return
    async with factory() as session:
        yield session


async def enforce_rate_limit(request: Request, response: Response) -> RateLimitResult:
    """Attach ``X-RateLimit-*`` headers and raise 429 once the window is full.

    Handlers call this after their own input checks, so requests rejected
    with 400 or 422 never reach the limiter backend or spend quota.
    """
    result = await rate_limiter.check(client_identity(request))
    headers = result.headers()
    if result.enforced:
        for hdr, val in headers.items():
            response.headers[hdr] = val
    if not result.allowed:
        raise HTTPException(status_code=429, detail="Rate limit exceeded", headers=headers)
    return result
