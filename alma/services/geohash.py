"""Geohash bucketing for the search cache.

A bucket groups nearby query points so they share one cache entry. The
bucket is only a shard key; distances are always recomputed from the real
coordinates.

Approximate cell sizes by precision:

- 5: ~4.9km x 4.9km
- 6: ~1.2km x 0.6km (default)
- 7: ~150m x 150m
"""

from __future__ import annotations

import pygeohash as pgh

from alma.config import settings
from alma.errors import ValidationFailure

MIN_PRECISION = 1
MAX_PRECISION = 12


def validate_coordinates(lat: float, lon: float) -> None:
    """Reject coordinates outside [-90, 90] / [-180, 180] (and NaN)."""
    if not -90.0 <= lat <= 90.0:
        raise ValidationFailure(f"Latitude {lat} out of range [-90, 90]")
    if not -180.0 <= lon <= 180.0:
        raise ValidationFailure(f"Longitude {lon} out of range [-180, 180]")


def bucket(lat: float, lon: float, precision: int | None = None) -> str:
    """Return the geohash cell containing (*lat*, *lon*).

    Coordinates must already be validated.
    """
    if precision is None:
        precision = settings.geohash_precision
    precision = max(MIN_PRECISION, min(MAX_PRECISION, precision))
    return pgh.encode(lat, lon, precision=precision)


def bucket_center(geohash: str) -> tuple[float, float]:
    """Center (lat, lon) of a bucket."""
    lat, lon = pgh.decode(geohash)
    return float(lat), float(lon)
