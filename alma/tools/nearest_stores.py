"""Print the stores closest to a point, as the API would rank them.

Usage:
    python -m alma.tools.nearest_stores -32.9583 -60.6750
    python -m alma.tools.nearest_stores -34.6037 -58.3816 --radius 5000 --limit 10
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from alma.db.session import dispose_engine, get_session_factory
from alma.services.geohash import bucket, validate_coordinates
from alma.services.store_lookup import StoreFilters, StoreResult, find_nearby_stores

logger = logging.getLogger(__name__)


async def run(lat: float, lon: float, radius: float, limit: int, brand: str | None) -> list[StoreResult]:
    try:
        async with get_session_factory()() as session:
            return await find_nearby_stores(
                session, lat, lon, radius, StoreFilters(brand=brand), limit
            )
    finally:
        await dispose_engine()


def format_table(stores: list[StoreResult]) -> str:
    lines = [f"{'distance_m':>10}  {'brand':<12} {'type':<12} name"]
    for s in stores:
        lines.append(
            f"{s.distance_m:>10.1f}  {(s.brand or '-'):<12} {(s.store_type or '-'):<12} {s.name}"
        )
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="List nearest stores to a point")
    parser.add_argument("lat", type=float)
    parser.add_argument("lon", type=float)
    parser.add_argument("--radius", type=float, default=2000, help="Radius in meters")
    parser.add_argument("--limit", type=int, default=20)
    parser.add_argument("--brand", type=str, default=None)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    validate_coordinates(args.lat, args.lon)

    stores = asyncio.run(run(args.lat, args.lon, args.radius, args.limit, args.brand))
    logger.info("Bucket %s: %d stores within %.0fm", bucket(args.lat, args.lon), len(stores), args.radius)
    print(format_table(stores))
    return 0


if __name__ == "__main__":
    sys.exit(main())
