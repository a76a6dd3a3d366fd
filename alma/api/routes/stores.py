"""GET /stores/nearby: cached radius search over known stores."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from alma.api.dependencies import enforce_rate_limit, get_db
from alma.api.schemas import ErrorResponse, NearbyStoresResponse
from alma.config import settings
from alma.errors import UpstreamFailure
from alma.services.geohash import bucket_center
from alma.services.nearby_search import search_nearby_stores
from alma.services.store_lookup import StoreFilters

router = APIRouter(tags=["stores"])


@router.get(
    "/stores/nearby",
    summary="Find nearby stores",
    description=(
        "Return stores within `radius` meters of a point, nearest first "
        "(ties broken by store id).\n\n"
        "Results are cached per geohash bucket and parameter set; "
        "`cache_hit` tells whether this response came from the cache. "
        "Pass `refresh=true` to recompute and overwrite the cached entry."
    ),
    response_model=NearbyStoresResponse,
    responses={
        422: {"model": ErrorResponse, "description": "Validation error"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Database error"},
        503: {"model": ErrorResponse, "description": "Database not configured"},
    },
)
async def get_nearby_stores(
    request: Request,
    response: Response,
    lat: float = Query(..., ge=-90, le=90, description="Latitude of center point"),
    lon: float = Query(..., ge=-180, le=180, description="Longitude of center point"),
    radius: float = Query(
        settings.nearby_default_radius,
        gt=0,
        le=settings.nearby_max_radius,
        description="Radius in meters",
    ),
    brand: str | None = Query(None, description="Only stores of this chain, e.g. COTO"),
    store_type: str | None = Query(None, description="Only stores of this type, e.g. supermarket"),
    scrapable_only: bool = Query(False, description="Only stores with scraping enabled"),
    limit: int = Query(settings.nearby_result_limit, gt=0, le=100, description="Max results"),
    refresh: bool = Query(False, description="Bypass the cache and recompute"),
    session: AsyncSession = Depends(get_db),
):
    """Return stores within *radius* meters of (*lat*, *lon*), sorted by distance."""
    await enforce_rate_limit(request, response)
    filters = StoreFilters(brand=brand, store_type=store_type, scrapable_only=scrapable_only)
    try:
        found = await search_nearby_stores(
            session, lat, lon, radius, filters, limit, force_refresh=refresh
        )
    except SQLAlchemyError as exc:
        raise UpstreamFailure("Nearby store lookup failed", str(exc)) from exc

    return {
        "center": {"lat": lat, "lon": lon},
        "radius_m": radius,
        "geohash": found.geohash,
        "bucket_center": dict(zip(("lat", "lon"), bucket_center(found.geohash))),
        "cache_hit": found.cache_hit,
        "count": len(found.stores),
        "stores": [s.to_dict() for s in found.stores],
    }
