from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from alma.api.main import app
from alma.config import settings
from alma.db import session as db_session
from alma.services.metrics import metrics
from alma.services.rate_limiter import rate_limiter
from tests.fakes import FakeRedis


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture(autouse=True)
def _isolate_backends(monkeypatch):
    """No real database, Redis or admin secret unless a test opts in."""
    monkeypatch.setattr(settings, "database_url", "")
    monkeypatch.setattr(settings, "redis_url", "")
    monkeypatch.setattr(settings, "admin_secret", "")
    monkeypatch.setattr(db_session, "_engine", None)
    monkeypatch.setattr(db_session, "_session_factory", None)
    rate_limiter.reset()
    metrics.reset()
    yield
    rate_limiter.reset()
    app.dependency_overrides.clear()


@pytest.fixture
def fake_redis():
    fake = FakeRedis()
    rate_limiter.reset(fake)
    yield fake
    rate_limiter.reset()
