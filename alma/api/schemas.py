"""Pydantic response models for OpenAPI documentation."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Structured error returned by all non-2xx responses."""

    error: str = Field(..., description="Short error message")
    status_code: int = Field(..., description="HTTP status code")
    detail: Any = Field(..., description="Human-readable detail, or validation errors")


class CenterModel(BaseModel):
    lat: float
    lon: float


# ---------------------------------------------------------------------------
# /health
# ---------------------------------------------------------------------------


class RateLimiterHealth(BaseModel):
    configured: bool = Field(..., description="Whether a Redis backend is configured")


class HealthResponse(BaseModel):
    """Health-check result indicating API and database status."""

    status: str = Field(..., description="Overall status: 'ok' or 'degraded'")
    database: str = Field(
        ...,
        description="Database connectivity: 'connected', 'unreachable' or "
        "'not_configured'",
    )
    detail: str | None = Field(None, description="Error detail when degraded")
    search_cache_hit_rate: float | None = Field(
        None, description="Search cache hit rate since start (0.0-1.0)"
    )
    rate_limiter: RateLimiterHealth | None = None
    uptime_seconds: float | None = None


# ---------------------------------------------------------------------------
# /stores/nearby
# ---------------------------------------------------------------------------


class StoreResultModel(BaseModel):
    """A store within the search radius, with its computed distance."""

    id: str
    name: str
    brand: str | None = None
    store_type: str | None = None
    lat: float
    lon: float
    distance_m: float = Field(..., description="Great-circle distance from the center")


class NearbyStoresResponse(BaseModel):
    center: CenterModel
    radius_m: float
    geohash: str = Field(..., description="Cache bucket the request fell into")
    bucket_center: CenterModel | None = Field(
        None, description="Center of the cache bucket; cached results are shared across it"
    )
    cache_hit: bool
    count: int
    stores: list[StoreResultModel]


# ---------------------------------------------------------------------------
# /products/*
# ---------------------------------------------------------------------------


class StoreRef(BaseModel):
    name: str | None = None
    brand: str | None = None


class ProductModel(BaseModel):
    id: int
    store_id: str
    product_name: str
    brand: str | None = None
    price_current: float | None = None
    price_regular: float | None = None
    unit: str | None = None
    quantity: float | None = None
    nutritional_claims: list[str] | None = None
    nutrition_info: dict[str, Any] | None = None
    image_url: str | None = None
    product_url: str | None = None
    created_at: datetime | None = None


class CatalogProductModel(ProductModel):
    nearby_stores: StoreRef | None = Field(
        None, description="Name and brand of the store the product was scraped from"
    )


class CatalogResponse(BaseModel):
    products: list[CatalogProductModel]


class SearchProductModel(ProductModel):
    store_name: str
    store_brand: str | None = None
    distance_m: float


class ProductSearchResponse(BaseModel):
    query: str
    cache_hit: bool
    stores_searched: int
    count: int
    products: list[SearchProductModel]


# ---------------------------------------------------------------------------
# /admin/clear-cache
# ---------------------------------------------------------------------------


class ClearCacheResponse(BaseModel):
    success: bool
    message: str
