"""Cached nearby-store flow: bucket, look up, compute on miss, write back.

The lookup-then-populate sequence is not atomic. Two concurrent misses for the
same key both run the query and both upsert, and the last write wins.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from alma.config import settings
from alma.services.geohash import bucket, validate_coordinates
from alma.services.search_cache import SearchCacheStore, make_query_signature
from alma.services.store_lookup import StoreFilters, StoreResult, find_nearby_stores

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NearbySearchResult:
    geohash: str
    query_signature: str
    stores: list[StoreResult]
    cache_hit: bool
    latency_ms: float


async def search_nearby_stores(
    session: AsyncSession,
    lat: float,
    lon: float,
    radius_m: float,
    filters: StoreFilters | None = None,
    limit: int | None = None,
    *,
    force_refresh: bool = False,
    cache: SearchCacheStore | None = None,
) -> NearbySearchResult:
    """Return nearby stores for (*lat*, *lon*), served from cache when fresh.

    Results are computed from the request's own coordinates and shared by
    every request that lands in the same bucket with the same signature
    until the entry goes stale.
    """
    start = time.perf_counter()
    validate_coordinates(lat, lon)
    filters = filters or StoreFilters()
    limit = limit or settings.nearby_result_limit
    cache = cache or SearchCacheStore(session)

    geohash = bucket(lat, lon)
    signature = make_query_signature(radius_m, filters, limit)

    if not force_refresh:
        entry = await cache.get(geohash, signature)
        if entry is not None:
            logger.debug("Search cache hit %s %s", geohash, signature)
            return NearbySearchResult(
                geohash=geohash,
                query_signature=signature,
                stores=entry.results,
                cache_hit=True,
                latency_ms=round((time.perf_counter() - start) * 1000, 2),
            )

    stores = await find_nearby_stores(session, lat, lon, radius_m, filters, limit)
    await cache.put(geohash, signature, stores)
    logger.info(
        "Search cache %s for %s: %d stores",
        "refresh" if force_refresh else "miss",
        geohash,
        len(stores),
    )

    return NearbySearchResult(
        geohash=geohash,
        query_signature=signature,
        stores=stores,
        cache_hit=False,
        latency_ms=round((time.perf_counter() - start) * 1000, 2),
    )
