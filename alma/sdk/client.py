"""Async and sync HTTP clients for the Alma API."""

from __future__ import annotations

from typing import Any

import httpx

from alma.api.schemas import (
    CatalogResponse,
    ClearCacheResponse,
    HealthResponse,
    NearbyStoresResponse,
    ProductSearchResponse,
)
from alma.sdk.exceptions import (
    AlmaAPIError,
    AuthenticationError,
    NotFoundError,
    RateLimitError,
    ServiceUnavailableError,
    ValidationError,
)
from alma.sdk.location import LocationStore
from alma.sdk.models import RateLimitInfo

_STATUS_MAP: dict[int, type[AlmaAPIError]] = {
    400: ValidationError,
    401: AuthenticationError,
    403: AuthenticationError,
    404: NotFoundError,
    422: ValidationError,
    429: RateLimitError,
    503: ServiceUnavailableError,
}


class NoStoredLocationError(LookupError):
    """Raised when a location-based call finds no cached position."""


def _build_exception(
    status_code: int,
    detail: str,
    rate_limit_info: RateLimitInfo | None,
) -> AlmaAPIError:
    exc_cls = _STATUS_MAP.get(status_code, AlmaAPIError)
    if exc_cls is RateLimitError:
        return RateLimitError(status_code, detail, rate_limit_info)
    return exc_cls(status_code, detail)


def _parse_detail(response: httpx.Response) -> str:
    """Pull ``detail`` from a JSON error body, falling back to raw text."""
    try:
        body = response.json()
    except ValueError:
        return response.text
    if not isinstance(body, dict):
        return response.text
    detail = body.get("detail", body.get("error", response.text))
    return detail if isinstance(detail, str) else str(detail)


def _nearby_params(
    lat: float,
    lon: float,
    radius: float | None,
    brand: str | None,
    store_type: str | None,
    limit: int | None,
    refresh: bool,
) -> dict[str, Any]:
    params: dict[str, Any] = {"lat": lat, "lon": lon}
    if radius is not None:
        params["radius"] = radius
    if brand is not None:
        params["brand"] = brand
    if store_type is not None:
        params["store_type"] = store_type
    if limit is not None:
        params["limit"] = limit
    if refresh:
        params["refresh"] = "true"
    return params


def _client_kwargs(base_url, admin_secret, timeout, transport) -> dict[str, Any]:
    headers: dict[str, str] = {}
    if admin_secret is not None:
        headers["Authorization"] = f"Bearer {admin_secret}"
    kwargs: dict[str, Any] = {"base_url": base_url, "headers": headers, "timeout": timeout}
    if transport is not None:
        kwargs["transport"] = transport
    return kwargs


# ---------------------------------------------------------------------------
# Async client
# ---------------------------------------------------------------------------


class AsyncAlmaClient:
    """Async client for the Alma API (backed by ``httpx.AsyncClient``)."""

    def __init__(
        self,
        base_url: str,
        admin_secret: str | None = None,
        timeout: float = 30.0,
        *,
        location_store: LocationStore | None = None,
        _transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            **_client_kwargs(base_url, admin_secret, timeout, _transport)
        )
        self.locations = location_store or LocationStore()
        self.last_rate_limit: RateLimitInfo | None = None

    async def __aenter__(self) -> AsyncAlmaClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    def _handle_response(self, response: httpx.Response) -> None:
        self.last_rate_limit = RateLimitInfo.from_headers(response.headers)
        if response.status_code >= 400:
            raise _build_exception(
                response.status_code, _parse_detail(response), self.last_rate_limit,
            )

    async def health(self) -> HealthResponse:
        resp = await self._client.get("/health")
        self._handle_response(resp)
        return HealthResponse.model_validate(resp.json())

    async def nearby_stores(
        self,
        *,
        lat: float,
        lon: float,
        radius: float | None = None,
        brand: str | None = None,
        store_type: str | None = None,
        limit: int | None = None,
        refresh: bool = False,
    ) -> NearbyStoresResponse:
        params = _nearby_params(lat, lon, radius, brand, store_type, limit, refresh)
        resp = await self._client.get("/stores/nearby", params=params)
        self._handle_response(resp)
        return NearbyStoresResponse.model_validate(resp.json())

    async def nearby_from_last_location(self, **kwargs: Any) -> NearbyStoresResponse:
        location = self.locations.load()
        if location is None:
            raise NoStoredLocationError("No stored location; save one first")
        return await self.nearby_stores(lat=location.lat, lon=location.lon, **kwargs)

    async def search_products(
        self,
        *,
        lat: float,
        lon: float,
        query: str,
        radius: float | None = None,
        max_stores: int | None = None,
    ) -> ProductSearchResponse:
        params: dict[str, Any] = {"lat": lat, "lon": lon, "query": query}
        if radius is not None:
            params["radius"] = radius
        if max_stores is not None:
            params["max_stores"] = max_stores
        resp = await self._client.get("/products/search", params=params)
        self._handle_response(resp)
        return ProductSearchResponse.model_validate(resp.json())

    async def catalog(self) -> CatalogResponse:
        resp = await self._client.get("/products/catalog")
        self._handle_response(resp)
        return CatalogResponse.model_validate(resp.json())

    async def clear_cache(self) -> ClearCacheResponse:
        resp = await self._client.get("/admin/clear-cache")
        self._handle_response(resp)
        return ClearCacheResponse.model_validate(resp.json())


# ---------------------------------------------------------------------------
# Sync client
# ---------------------------------------------------------------------------


class AlmaClient:
    """Synchronous client for the Alma API (backed by ``httpx.Client``)."""

    def __init__(
        self,
        base_url: str,
        admin_secret: str | None = None,
        timeout: float = 30.0,
        *,
        location_store: LocationStore | None = None,
        _transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            **_client_kwargs(base_url, admin_secret, timeout, _transport)
        )
        self.locations = location_store or LocationStore()
        self.last_rate_limit: RateLimitInfo | None = None

    def __enter__(self) -> AlmaClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _handle_response(self, response: httpx.Response) -> None:
        self.last_rate_limit = RateLimitInfo.from_headers(response.headers)
        if response.status_code >= 400:
            raise _build_exception(
                response.status_code, _parse_detail(response), self.last_rate_limit,
            )

    def health(self) -> HealthResponse:
        resp = self._client.get("/health")
        self._handle_response(resp)
        return HealthResponse.model_validate(resp.json())

    def nearby_stores(
        self,
        *,
        lat: float,
        lon: float,
        radius: float | None = None,
        brand: str | None = None,
        store_type: str | None = None,
        limit: int | None = None,
        refresh: bool = False,
    ) -> NearbyStoresResponse:
        params = _nearby_params(lat, lon, radius, brand, store_type, limit, refresh)
        resp = self._client.get("/stores/nearby", params=params)
        self._handle_response(resp)
        return NearbyStoresResponse.model_validate(resp.json())

    def nearby_from_last_location(self, **kwargs: Any) -> NearbyStoresResponse:
        location = self.locations.load()
        if location is None:
            raise NoStoredLocationError("No stored location; save one first")
        return self.nearby_stores(lat=location.lat, lon=location.lon, **kwargs)

    def search_products(
        self,
        *,
        lat: float,
        lon: float,
        query: str,
        radius: float | None = None,
        max_stores: int | None = None,
    ) -> ProductSearchResponse:
        params: dict[str, Any] = {"lat": lat, "lon": lon, "query": query}
        if radius is not None:
            params["radius"] = radius
        if max_stores is not None:
            params["max_stores"] = max_stores
        resp = self._client.get("/products/search", params=params)
        self._handle_response(resp)
        return ProductSearchResponse.model_validate(resp.json())

    def catalog(self) -> CatalogResponse:
        resp = self._client.get("/products/catalog")
        self._handle_response(resp)
        return CatalogResponse.model_validate(resp.json())

    def clear_cache(self) -> ClearCacheResponse:
        resp = self._client.get("/admin/clear-cache")
        self._handle_response(resp)
        return ClearCacheResponse.model_validate(resp.json())
