"""Tests for GET /products/catalog and GET /products/search."""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import ProgrammingError

from alma.api.dependencies import get_db
from alma.api.main import app
from alma.services.nearby_search import NearbySearchResult
from alma.services.rate_limiter import rate_limiter
from alma.services.store_lookup import StoreResult


def _product(pid, store_id="s1", name="Leche descremada", price=1200.0, created=None):
    return SimpleNamespace(
        id=pid,
        store_id=store_id,
        product_name=name,
        brand="La Serenísima",
        price_current=price,
        price_regular=None,
        unit="1 L",
        quantity=1.0,
        nutritional_claims=["light"],
        nutrition_info={"calories": 35},
        image_url=None,
        product_url="https://example.com/p/1",
        created_at=created or datetime(2025, 3, 1, tzinfo=timezone.utc),
    )


def _session(all_rows=None, scalars=None, error=None):
    result = MagicMock()
    result.all.return_value = all_rows or []
    result.scalars.return_value.all.return_value = scalars or []
    session = AsyncMock()
    if error is not None:
        session.execute.side_effect = error
    else:
        session.execute.return_value = result
    return session


@pytest.fixture
def override_db():
    def _install(session):
        app.dependency_overrides[get_db] = lambda: session
        return session

    yield _install
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# /products/catalog
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_catalog_joins_store(client, override_db):
    session = override_db(_session(all_rows=[
        (_product(2), "Coto Abasto", "COTO"),
        (_product(1, store_id="s9"), None, None),
    ]))
    resp = await client.get("/products/catalog")

    assert resp.status_code == 200
    products = resp.json()["products"]
    assert [p["id"] for p in products] == [2, 1]
    assert products[0]["nearby_stores"] == {"name": "Coto Abasto", "brand": "COTO"}
    assert products[1]["nearby_stores"] is None
    assert products[0]["nutrition_info"] == {"calories": 35}

    stmt = session.execute.call_args[0][0]
    sql = str(stmt.compile(dialect=postgresql.dialect(), compile_kwargs={"literal_binds": True}))
    assert "ORDER BY scraped_products.created_at DESC" in sql
    assert "LIMIT 50" in sql
    assert "LEFT OUTER JOIN nearby_stores" in sql


@pytest.mark.asyncio
async def test_catalog_empty(client, override_db):
    override_db(_session())
    resp = await client.get("/products/catalog")
    assert resp.status_code == 200
    assert resp.json() == {"products": []}


@pytest.mark.asyncio
async def test_catalog_query_failure(client, override_db):
    override_db(_session(error=ProgrammingError("SELECT", {}, Exception("relation missing"))))
    resp = await client.get("/products/catalog")

    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == "Catalog query failed"
    assert "relation missing" not in resp.text


@pytest.mark.asyncio
async def test_catalog_unconfigured_database(client):
    resp = await client.get("/products/catalog")
    assert resp.status_code == 503


# ---------------------------------------------------------------------------
# /products/search
# ---------------------------------------------------------------------------

_STORES = [
    StoreResult("s1", "Coto Abasto", "COTO", -34.604, -58.411, 250.0, "supermarket"),
    StoreResult("s2", "Jumbo Palermo", "JUMBO", -34.580, -58.420, 900.0, "supermarket"),
]


def _found(stores=_STORES, cache_hit=False):
    return NearbySearchResult("69y7pk", "sig", list(stores), cache_hit, 1.0)


@pytest.mark.asyncio
async def test_search_orders_by_distance_then_price(client, override_db):
    override_db(_session(scalars=[
        _product(1, store_id="s2", price=900.0),
        _product(2, store_id="s1", price=1500.0),
        _product(3, store_id="s1", price=1100.0),
        _product(4, store_id="s1", price=None),
    ]))
    with patch(
        "alma.api.routes.products.search_nearby_stores",
        new_callable=AsyncMock,
        return_value=_found(),
    ):
        resp = await client.get(
            "/products/search",
            params={"lat": -34.6, "lon": -58.41, "query": "  Leche "},
        )

    assert resp.status_code == 200
    body = resp.json()
    assert body["query"] == "leche"
    assert body["stores_searched"] == 2
    assert [p["id"] for p in body["products"]] == [3, 2, 4, 1]
    assert body["products"][0]["store_name"] == "Coto Abasto"
    assert body["products"][0]["distance_m"] == 250.0


@pytest.mark.asyncio
async def test_search_no_nearby_stores(client, override_db):
    session = override_db(_session())
    with patch(
        "alma.api.routes.products.search_nearby_stores",
        new_callable=AsyncMock,
        return_value=_found(stores=[], cache_hit=True),
    ):
        resp = await client.get(
            "/products/search", params={"lat": -34.6, "lon": -58.41, "query": "yerba"}
        )

    assert resp.status_code == 200
    assert resp.json()["count"] == 0
    assert resp.json()["cache_hit"] is True
    session.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_search_short_query_rejected_before_lookup(client, override_db):
    override_db(_session())
    with patch(
        "alma.api.routes.products.search_nearby_stores", new_callable=AsyncMock
    ) as mock_search:
        resp = await client.get(
            "/products/search", params={"lat": -34.6, "lon": -58.41, "query": " a "}
        )

    assert resp.status_code == 400
    assert resp.json()["error"] == "Query must be at least 2 characters"
    mock_search.assert_not_awaited()


@pytest.mark.asyncio
async def test_search_missing_query(client, override_db):
    override_db(_session())
    resp = await client.get("/products/search", params={"lat": -34.6, "lon": -58.41})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_rejected_query_does_not_spend_quota(client, override_db, fake_redis):
    override_db(_session())
    short = await client.get("/products/search", params={"lat": -34.6, "lon": -58.41, "query": "a"})
    out_of_range = await client.get(
        "/products/search", params={"lat": -34.6, "lon": 200, "query": "leche"}
    )

    assert short.status_code == 400
    assert out_of_range.status_code == 422
    assert fake_redis.sets == {}


@pytest.mark.asyncio
async def test_valid_search_is_rate_limited(client, override_db, fake_redis):
    override_db(_session())
    with patch(
        "alma.api.routes.products.search_nearby_stores",
        new_callable=AsyncMock,
        return_value=_found(stores=[]),
    ):
        resp = await client.get(
            "/products/search", params={"lat": -34.6, "lon": -58.41, "query": "leche"}
        )

    assert resp.status_code == 200
    assert int(resp.headers["X-RateLimit-Remaining"]) == rate_limiter._max_requests - 1
    assert sum(len(members) for members in fake_redis.sets.values()) == 1
