from __future__ import annotations

import logging

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from alma.db.models import NearbyStore, ScrapedProduct
from alma.errors import ValidationFailure
from alma.services.store_lookup import StoreResult

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2


def _product_dict(product: ScrapedProduct) -> dict:
    return {
        "id": product.id,
        "store_id": product.store_id,
        "product_name": product.product_name,
        "brand": product.brand,
        "price_current": product.price_current,
        "price_regular": product.price_regular,
        "unit": product.unit,
        "quantity": product.quantity,
        "nutritional_claims": product.nutritional_claims,
        "nutrition_info": product.nutrition_info,
        "image_url": product.image_url,
        "product_url": product.product_url,
        "created_at": product.created_at,
    }


def normalize_query(query: str | None) -> str:
    """Strip and lowercase a search term, rejecting ones that are too short."""
    cleaned = (query or "").strip().lower()
    if len(cleaned) < MIN_QUERY_LENGTH:
        raise ValidationFailure(
            f"Query must be at least {MIN_QUERY_LENGTH} characters"
        )
    return cleaned


async def list_catalog(session: AsyncSession, limit: int) -> list[dict]:
    """Newest scraped products with their store's name and brand."""
    stmt = (
        select(ScrapedProduct, NearbyStore.name, NearbyStore.brand)
        .outerjoin(NearbyStore, ScrapedProduct.store_id == NearbyStore.id)
        .order_by(ScrapedProduct.created_at.desc(), ScrapedProduct.id.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)

    products = []
    for product, store_name, store_brand in result.all():
        item = _product_dict(product)
        item["nearby_stores"] = (
            {"name": store_name, "brand": store_brand}
            if store_name is not None
            else None
        )
        products.append(item)
    return products


async def search_products(
    session: AsyncSession,
    stores: list[StoreResult],
    query: str,
    limit: int,
) -> list[dict]:
    """Products from *stores* whose name or brand contains *query*.

    Ordered by store distance, then current price (unpriced last).
    """
    if not stores:
        return []
    term = normalize_query(query)
    by_id = {s.id: s for s in stores}

    stmt = (
        select(ScrapedProduct)
        .where(ScrapedProduct.store_id.in_(list(by_id)))
        .where(
            or_(
                func.lower(ScrapedProduct.product_name).contains(term, autoescape=True),
                func.lower(ScrapedProduct.brand).contains(term, autoescape=True),
            )
        )
    )
    result = await session.execute(stmt)
    rows = result.scalars().all()

    def _sort_key(p: ScrapedProduct):
        store = by_id[p.store_id]
        price = p.price_current if p.price_current is not None else float("inf")
        return (store.distance_m, price, p.id)

    matched = []
    for product in sorted(rows, key=_sort_key)[:limit]:
        store = by_id[product.store_id]
        item = _product_dict(product)
        item.update(
            store_name=store.name,
            store_brand=store.brand,
            distance_m=store.distance_m,
        )
        matched.append(item)
    logger.debug("Product search %r over %d stores: %d matches", term, len(stores), len(matched))
    return matched
