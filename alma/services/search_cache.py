"""Geohash-sharded search cache persisted in ``product_search_cache``.

There is no in-process layer: every operation is a database round trip, so
all API workers share the same view. Writes are upserts and the last writer
wins; entries are derived data and can always be recomputed.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func

from alma.config import settings
from alma.db.models import ProductSearchCache
from alma.services.metrics import metrics
from alma.services.store_lookup import StoreFilters, StoreResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchCacheEntry:
    geohash: str
    query_signature: str
    results: list[StoreResult]
    result_count: int
    created_at: datetime | None


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip().lower()
    return value or None


def make_query_signature(
    radius_m: float,
    filters: StoreFilters | None = None,
    limit: int | None = None,
) -> str:
    """Normalized, order-independent representation of the search parameters.

    Two requests that would produce the same nearby result set for the same
    bucket always map to the same signature.
    """
    filters = filters or StoreFilters()
    payload = {
        "radius_m": int(round(radius_m)),
        "brand": _clean(filters.brand),
        "store_type": _clean(filters.store_type),
        "scrapable_only": bool(filters.scrapable_only),
        "limit": limit,
    }
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


class SearchCacheStore:
    """CRUD over ``product_search_cache`` for one request-scoped session."""

    def __init__(self, session: AsyncSession, ttl_seconds: int | None = None):
        self._session = session
        self._ttl = settings.search_cache_ttl if ttl_seconds is None else ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def _cutoff(self, now: datetime | None = None) -> datetime:
        now = now or datetime.now(timezone.utc)
        return now - timedelta(seconds=self._ttl)

    async def get(self, geohash: str, query_signature: str) -> SearchCacheEntry | None:
        """Return the fresh entry for the exact key pair, or ``None`` on a miss."""
        stmt = (
            select(ProductSearchCache)
            .where(ProductSearchCache.geohash == geohash)
            .where(ProductSearchCache.query_signature == query_signature)
            .where(ProductSearchCache.created_at > self._cutoff())
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            metrics.inc_cache_miss()
            return None

        metrics.inc_cache_hit()
        return SearchCacheEntry(
            geohash=row.geohash,
            query_signature=row.query_signature,
            results=[StoreResult.from_dict(r) for r in (row.results or [])],
            result_count=row.result_count,
            created_at=row.created_at,
        )

    async def put(
        self,
        geohash: str,
        query_signature: str,
        results: list[StoreResult],
    ) -> SearchCacheEntry:
        """Insert or wholesale-replace the entry for (geohash, signature)."""
        payload = [r.to_dict() for r in results]
        stmt = pg_insert(ProductSearchCache).values(
            geohash=geohash,
            query_signature=query_signature,
            results=payload,
            result_count=len(payload),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[ProductSearchCache.geohash, ProductSearchCache.query_signature],
            set_={
                "results": stmt.excluded.results,
                "result_count": stmt.excluded.result_count,
                "created_at": func.now(),
            },
        )
        await self._session.execute(stmt)
        await self._session.commit()
        metrics.inc_cache_write()

        return SearchCacheEntry(
            geohash=geohash,
            query_signature=query_signature,
            results=list(results),
            result_count=len(payload),
            created_at=datetime.now(timezone.utc),
        )

    async def _delete(self, stmt, label: str, commit: bool) -> int:
        result = await self._session.execute(stmt)
        if commit:
            await self._session.commit()
        deleted = result.rowcount or 0
        logger.info("Search cache purge (%s): %d rows", label, deleted)
        return deleted

    async def invalidate_empty(self, *, commit: bool = True) -> int:
        """Delete entries whose result set was empty."""
        stmt = delete(ProductSearchCache).where(ProductSearchCache.result_count == 0)
        return await self._delete(stmt, "empty", commit)

    async def invalidate_stale(
        self, now: datetime | None = None, *, commit: bool = True
    ) -> int:
        """Delete entries older than the TTL."""
        stmt = delete(ProductSearchCache).where(
            ProductSearchCache.created_at <= self._cutoff(now)
        )
        return await self._delete(stmt, "stale", commit)

    async def invalidate_all(self, *, commit: bool = True) -> int:
        """Delete every entry.

        With ``commit=False`` the delete joins the caller's open transaction.
        """
        stmt = delete(ProductSearchCache)
        return await self._delete(stmt, "all", commit)
