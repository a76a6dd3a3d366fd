"""Radius search over ``nearby_stores``.

The database only applies a bounding-box prefilter on plain latitude/longitude
columns (btree-indexed). Great-circle distance, the exact radius cut, ordering
and the result cap are applied here on the candidate rows.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from alma.db.models import NearbyStore

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6_371_008.8

# Above this latitude the longitude span of the box degenerates; scan all longitudes
_POLAR_LAT_LIMIT = 89.9


@dataclass(frozen=True)
class StoreFilters:
    brand: str | None = None
    store_type: str | None = None
    scrapable_only: bool = False


@dataclass(frozen=True)
class StoreResult:
    id: str
    name: str
    brand: str | None
    lat: float
    lon: float
    distance_m: float
    store_type: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> StoreResult:
        return cls(
            id=str(data["id"]),
            name=data["name"],
            brand=data.get("brand"),
            lat=float(data["lat"]),
            lon=float(data["lon"]),
            distance_m=float(data["distance_m"]),
            store_type=data.get("store_type"),
        )


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    # One (min, max) pair normally, two when the box wraps the antimeridian
    lon_ranges: tuple[tuple[float, float], ...]


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(a)))


def bounding_box(lat: float, lon: float, radius_m: float) -> BoundingBox:
    """Smallest lat/lon box guaranteed to contain the *radius_m* circle."""
    dlat = math.degrees(radius_m / EARTH_RADIUS_M)
    min_lat = max(-90.0, lat - dlat)
    max_lat = min(90.0, lat + dlat)

    if max(abs(min_lat), abs(max_lat)) >= _POLAR_LAT_LIMIT:
        return BoundingBox(min_lat, max_lat, ((-180.0, 180.0),))

    # Widest longitude span occurs at the box edge closest to the pole
    widest_lat = max(abs(min_lat), abs(max_lat))
    dlon = math.degrees(radius_m / (EARTH_RADIUS_M * math.cos(math.radians(widest_lat))))
    if dlon >= 180.0:
        return BoundingBox(min_lat, max_lat, ((-180.0, 180.0),))

    min_lon = lon - dlon
    max_lon = lon + dlon
    if min_lon < -180.0:
        ranges = ((min_lon + 360.0, 180.0), (-180.0, max_lon))
    elif max_lon > 180.0:
        ranges = ((min_lon, 180.0), (-180.0, max_lon - 360.0))
    else:
        ranges = ((min_lon, max_lon),)
    return BoundingBox(min_lat, max_lat, ranges)


def _candidate_stmt(box: BoundingBox, filters: StoreFilters):
    lon_clauses = [
        NearbyStore.longitude.between(lo, hi) for lo, hi in box.lon_ranges
    ]
    stmt = select(NearbyStore).where(
        and_(
            NearbyStore.latitude.between(box.min_lat, box.max_lat),
            or_(*lon_clauses),
        )
    )
    if filters.brand:
        stmt = stmt.where(func.upper(NearbyStore.brand) == filters.brand.strip().upper())
    if filters.store_type:
        stmt = stmt.where(NearbyStore.store_type == filters.store_type.strip().lower())
    if filters.scrapable_only:
        stmt = stmt.where(NearbyStore.scraping_enabled.is_(True))
    return stmt


def rank_candidates(
    lat: float,
    lon: float,
    radius_m: float,
    stores,
    limit: int,
) -> list[StoreResult]:
    """Distance-filter, sort by (distance, id) and cap candidate rows."""
    ranked: list[StoreResult] = []
    for store in stores:
        distance = haversine_m(lat, lon, store.latitude, store.longitude)
        if distance > radius_m:
            continue
        ranked.append(
            StoreResult(
                id=str(store.id),
                name=store.name,
                brand=store.brand,
                lat=store.latitude,
                lon=store.longitude,
                distance_m=distance,
                store_type=store.store_type,
            )
        )
    ranked.sort(key=lambda r: (r.distance_m, r.id))
    return ranked[:limit]


async def find_nearby_stores(
    session: AsyncSession,
    lat: float,
    lon: float,
    radius_m: float,
    filters: StoreFilters | None = None,
    limit: int = 20,
) -> list[StoreResult]:
    """Stores within *radius_m* meters of (*lat*, *lon*), nearest first.

    Returns an empty list for a non-positive radius or limit without
    querying the database.
    """
    if radius_m <= 0 or limit <= 0:
        return []
    filters = filters or StoreFilters()

    box = bounding_box(lat, lon, radius_m)
    result = await session.execute(_candidate_stmt(box, filters))
    candidates = result.scalars().all()

    ranked = rank_candidates(lat, lon, radius_m, candidates, limit)
    logger.debug(
        "Nearby query (%.5f, %.5f) r=%dm: %d candidates, %d within radius",
        lat, lon, radius_m, len(candidates), len(ranked),
    )
    return ranked
