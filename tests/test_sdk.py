"""Tests for alma.sdk: async and sync clients, error mapping, rate-limit parsing."""

from __future__ import annotations

import httpx
import pytest

from alma.api.schemas import (
    CatalogResponse,
    ClearCacheResponse,
    HealthResponse,
    NearbyStoresResponse,
    ProductSearchResponse,
)
from alma.sdk import (
    AlmaAPIError,
    AlmaClient,
    AsyncAlmaClient,
    AuthenticationError,
    Location,
    LocationStore,
    NoStoredLocationError,
    NotFoundError,
    RateLimitError,
    RateLimitInfo,
    ServiceUnavailableError,
    ValidationError,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_RATE_HEADERS = {
    "x-ratelimit-limit": "60",
    "x-ratelimit-remaining": "59",
    "x-ratelimit-reset": "42",
}

_HEALTH_BODY = {"status": "ok", "database": "connected", "detail": None}

_NEARBY_BODY = {
    "center": {"lat": -34.6037, "lon": -58.3816},
    "radius_m": 2000.0,
    "geohash": "69y7pm",
    "cache_hit": False,
    "count": 1,
    "stores": [
        {
            "id": "7d1c",
            "name": "Coto Abasto",
            "brand": "COTO",
            "store_type": "supermarket",
            "lat": -34.604,
            "lon": -58.411,
            "distance_m": 2690.3,
        }
    ],
}

_PRODUCT = {
    "id": 11,
    "store_id": "7d1c",
    "product_name": "Yerba mate suave",
    "brand": "Playadito",
    "price_current": 3200.0,
    "created_at": "2025-03-01T12:00:00Z",
}

_CATALOG_BODY = {"products": [{**_PRODUCT, "nearby_stores": {"name": "Coto Abasto", "brand": "COTO"}}]}

_SEARCH_BODY = {
    "query": "yerba",
    "cache_hit": True,
    "stores_searched": 1,
    "count": 1,
    "products": [{**_PRODUCT, "store_name": "Coto Abasto", "store_brand": "COTO", "distance_m": 2690.3}],
}


def _json_response(body: dict, status_code: int = 200, headers: dict[str, str] | None = None) -> httpx.Response:
    hdrs = dict(_RATE_HEADERS)
    if headers:
        hdrs.update(headers)
    return httpx.Response(status_code, json=body, headers=hdrs)


def _error_response(status_code: int, error: str = "error") -> httpx.Response:
    body = {"error": error, "status_code": status_code, "detail": error}
    return httpx.Response(status_code, json=body, headers=_RATE_HEADERS)


# ---------------------------------------------------------------------------
# RateLimitInfo
# ---------------------------------------------------------------------------


class TestRateLimitInfo:
    def test_from_headers_present(self):
        info = RateLimitInfo.from_headers(_RATE_HEADERS)
        assert info == RateLimitInfo(limit=60, remaining=59, reset=42)

    def test_from_headers_absent(self):
        assert RateLimitInfo.from_headers({}) is None

    def test_from_headers_partial(self):
        assert RateLimitInfo.from_headers({"x-ratelimit-limit": "60"}) is None

    def test_from_headers_garbage(self):
        headers = {**_RATE_HEADERS, "x-ratelimit-reset": "soon"}
        assert RateLimitInfo.from_headers(headers) is None


# ---------------------------------------------------------------------------
# Async client
# ---------------------------------------------------------------------------


class TestAsyncClient:
    async def test_health(self):
        transport = httpx.MockTransport(lambda req: _json_response(_HEALTH_BODY))
        async with AsyncAlmaClient("http://test", _transport=transport) as c:
            result = await c.health()
        assert isinstance(result, HealthResponse)
        assert result.status == "ok"

    async def test_nearby_stores_params(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/stores/nearby"
            assert request.url.params["lat"] == "-34.6037"
            assert request.url.params["brand"] == "COTO"
            assert request.url.params["refresh"] == "true"
            assert "store_type" not in request.url.params
            return _json_response(_NEARBY_BODY)

        transport = httpx.MockTransport(handler)
        async with AsyncAlmaClient("http://test", _transport=transport) as c:
            result = await c.nearby_stores(lat=-34.6037, lon=-58.3816, brand="COTO", refresh=True)
        assert isinstance(result, NearbyStoresResponse)
        assert result.stores[0].distance_m == 2690.3
        assert c.last_rate_limit == RateLimitInfo(60, 59, 42)

    async def test_search_products(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/products/search"
            assert request.url.params["query"] == "yerba"
            assert request.url.params["max_stores"] == "3"
            return _json_response(_SEARCH_BODY)

        transport = httpx.MockTransport(handler)
        async with AsyncAlmaClient("http://test", _transport=transport) as c:
            result = await c.search_products(lat=-34.6, lon=-58.4, query="yerba", max_stores=3)
        assert isinstance(result, ProductSearchResponse)
        assert result.products[0].store_name == "Coto Abasto"

    async def test_catalog(self):
        transport = httpx.MockTransport(lambda req: _json_response(_CATALOG_BODY))
        async with AsyncAlmaClient("http://test", _transport=transport) as c:
            result = await c.catalog()
        assert isinstance(result, CatalogResponse)
        assert result.products[0].nearby_stores.brand == "COTO"

    async def test_clear_cache_sends_bearer(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["authorization"] == "Bearer s3cret"
            return _json_response({"success": True, "message": "Cache cleared (0 entries removed)"})

        transport = httpx.MockTransport(handler)
        async with AsyncAlmaClient("http://test", admin_secret="s3cret", _transport=transport) as c:
            result = await c.clear_cache()
        assert isinstance(result, ClearCacheResponse)
        assert result.success is True

    async def test_no_auth_header_without_secret(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert "authorization" not in request.headers
            return _json_response(_HEALTH_BODY)

        transport = httpx.MockTransport(handler)
        async with AsyncAlmaClient("http://test", _transport=transport) as c:
            await c.health()

    async def test_nearby_from_last_location(self, tmp_path):
        store = LocationStore(tmp_path / "loc.json")
        store.save(Location(lat=-32.9583, lon=-60.6750, source="manual"))

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["lat"] == "-32.9583"
            assert request.url.params["limit"] == "5"
            return _json_response(_NEARBY_BODY)

        transport = httpx.MockTransport(handler)
        async with AsyncAlmaClient("http://test", location_store=store, _transport=transport) as c:
            result = await c.nearby_from_last_location(limit=5)
        assert result.count == 1

    async def test_nearby_from_last_location_missing(self, tmp_path):
        store = LocationStore(tmp_path / "nothing.json")
        transport = httpx.MockTransport(lambda req: pytest.fail("no request expected"))
        async with AsyncAlmaClient("http://test", location_store=store, _transport=transport) as c:
            with pytest.raises(NoStoredLocationError):
                await c.nearby_from_last_location()


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "status,exc_cls",
    [
        (400, ValidationError),
        (401, AuthenticationError),
        (404, NotFoundError),
        (422, ValidationError),
        (429, RateLimitError),
        (500, AlmaAPIError),
        (503, ServiceUnavailableError),
    ],
)
async def test_async_error_mapping(status, exc_cls):
    transport = httpx.MockTransport(lambda req: _error_response(status, "nope"))
    async with AsyncAlmaClient("http://test", _transport=transport) as c:
        with pytest.raises(exc_cls) as excinfo:
            await c.catalog()
    assert excinfo.value.status_code == status
    assert excinfo.value.detail == "nope"


async def test_rate_limit_error_carries_info():
    transport = httpx.MockTransport(lambda req: _error_response(429, "Rate limit exceeded"))
    async with AsyncAlmaClient("http://test", _transport=transport) as c:
        with pytest.raises(RateLimitError) as excinfo:
            await c.nearby_stores(lat=0, lon=0)
    assert excinfo.value.rate_limit_info.reset == 42


async def test_non_json_error_body():
    transport = httpx.MockTransport(lambda req: httpx.Response(502, text="Bad Gateway"))
    async with AsyncAlmaClient("http://test", _transport=transport) as c:
        with pytest.raises(AlmaAPIError) as excinfo:
            await c.health()
    assert excinfo.value.detail == "Bad Gateway"
    assert c.last_rate_limit is None


# ---------------------------------------------------------------------------
# Sync client
# ---------------------------------------------------------------------------


class TestSyncClient:
    def test_health(self):
        transport = httpx.MockTransport(lambda req: _json_response(_HEALTH_BODY))
        with AlmaClient("http://test", _transport=transport) as c:
            assert c.health().database == "connected"

    def test_nearby_stores(self):
        transport = httpx.MockTransport(lambda req: _json_response(_NEARBY_BODY))
        with AlmaClient("http://test", _transport=transport) as c:
            result = c.nearby_stores(lat=-34.6037, lon=-58.3816, radius=2000)
        assert result.geohash == "69y7pm"

    def test_clear_cache_unauthorized(self):
        transport = httpx.MockTransport(lambda req: _error_response(401, "Invalid admin token"))
        with AlmaClient("http://test", admin_secret="wrong", _transport=transport) as c:
            with pytest.raises(AuthenticationError, match="Invalid admin token"):
                c.clear_cache()

    def test_nearby_from_last_location_missing(self, tmp_path):
        store = LocationStore(tmp_path / "nothing.json")
        transport = httpx.MockTransport(lambda req: _json_response(_NEARBY_BODY))
        with AlmaClient("http://test", location_store=store, _transport=transport) as c:
            with pytest.raises(NoStoredLocationError):
                c.nearby_from_last_location()
