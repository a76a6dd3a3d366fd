"""Tests for /health, /metrics and the access-log middleware."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from alma.api.dependencies import get_db, get_optional_db
from alma.api.main import app
from alma.services.metrics import metrics


@pytest.fixture
def db():
    session = AsyncMock()
    app.dependency_overrides[get_db] = lambda: session
    app.dependency_overrides[get_optional_db] = lambda: session
    yield session
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_health_ok(client, db):
    resp = await client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["database"] == "connected"
    assert body["rate_limiter"] == {"configured": False}
    assert body["search_cache_hit_rate"] == 0.0


@pytest.mark.asyncio
async def test_health_reports_limiter(client, db, fake_redis):
    resp = await client.get("/health")
    assert resp.json()["rate_limiter"]["configured"] is True


@pytest.mark.asyncio
async def test_health_degraded(client, db):
    db.execute.side_effect = ConnectionRefusedError("connection refused")
    resp = await client.get("/health")
    assert resp.status_code == 503
    assert resp.json()["status"] == "degraded"
    assert resp.json()["database"] == "unreachable"


@pytest.mark.asyncio
async def test_health_unconfigured_database(client):
    resp = await client.get("/health")
    assert resp.status_code == 503
    assert resp.json() == {
        "status": "degraded",
        "database": "not_configured",
        "detail": "Database is not configured",
    }


@pytest.mark.asyncio
async def test_metrics_snapshot(client, db):
    await client.get("/health")
    metrics.inc_cache_hit()
    metrics.inc_cache_miss()

    resp = await client.get("/metrics")
    assert resp.status_code == 200
    body = resp.json()
    assert body["total_requests"] >= 1
    assert body["search_cache"]["hit_rate"] == 0.5
    assert body["rate_limiter"]["configured"] is False
    assert set(body["latency_ms"]) == {"p50", "p90", "p95", "p99"}


def test_metrics_latency_cap():
    metrics.reset()
    for i in range(metrics._MAX_LATENCY_SAMPLES + 1):
        metrics.record_latency(float(i))
    assert len(metrics._latencies) == metrics._MAX_LATENCY_SAMPLES // 2


def test_maintenance_counters():
    metrics.reset()
    metrics.inc_maintenance(True)
    metrics.inc_maintenance(False)
    snap = metrics.snapshot()["admin"]
    assert snap["maintenance_runs"] == 2
    assert snap["maintenance_failures"] == 1


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_correlation_headers(client, db):
    resp = await client.get("/health")
    assert len(resp.headers["X-Request-ID"]) == 32
    float(resp.headers["X-Response-Time-Ms"])


@pytest.mark.asyncio
async def test_headers_on_error(client):
    resp = await client.get("/nonexistent")
    assert resp.status_code == 404
    assert "X-Request-ID" in resp.headers
    assert "X-Response-Time-Ms" in resp.headers


@pytest.mark.asyncio
async def test_incoming_request_id_reused(client, db):
    resp = await client.get("/health", headers={"X-Request-ID": "trace-42"})
    assert resp.headers["X-Request-ID"] == "trace-42"


@pytest.mark.asyncio
async def test_oversized_request_id_replaced(client, db):
    resp = await client.get("/health", headers={"X-Request-ID": "x" * 200})
    assert resp.headers["X-Request-ID"] != "x" * 200
    assert len(resp.headers["X-Request-ID"]) == 32


@pytest.mark.asyncio
async def test_requests_counted_by_status(client):
    await client.get("/nonexistent")
    assert metrics.status_codes.get(404) == 1


@pytest.mark.asyncio
async def test_access_log_omits_query_string(client, db, caplog):
    with caplog.at_level("INFO", logger="alma.access"):
        await client.get("/health", params={"lat": -34.6037, "lon": -58.3816})
    lines = [r.getMessage() for r in caplog.records if r.name == "alma.access"]
    assert lines
    assert all("-34.6037" not in line for line in lines)
