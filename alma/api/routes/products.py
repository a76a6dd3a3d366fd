from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from alma.api.dependencies import enforce_rate_limit, get_db
from alma.api.schemas import CatalogResponse, ErrorResponse, ProductSearchResponse
from alma.config import settings
from alma.errors import UpstreamFailure
from alma.services.nearby_search import search_nearby_stores
from alma.services.product_catalog import list_catalog, normalize_query, search_products

router = APIRouter(prefix="/products", tags=["products"])


@router.get(
    "/catalog",
    summary="Latest scraped products",
    description=(
        "Return the most recently scraped products, newest first, each with "
        "the name and brand of the store it came from."
    ),
    response_model=CatalogResponse,
    responses={
        500: {"model": ErrorResponse, "description": "Database error"},
        503: {"model": ErrorResponse, "description": "Database not configured"},
    },
)
async def get_catalog(session: AsyncSession = Depends(get_db)):
    try:
        products = await list_catalog(session, settings.catalog_limit)
    except SQLAlchemyError as exc:
        raise UpstreamFailure("Catalog query failed", str(exc)) from exc
    return {"products": products}


@router.get(
    "/search",
    summary="Search products in nearby stores",
    description=(
        "Find stores around a point (through the nearby-store cache) and "
        "return their products whose name or brand contains `query`, "
        "ordered by store distance and then price."
    ),
    response_model=ProductSearchResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Query too short"},
        422: {"model": ErrorResponse, "description": "Validation error"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Database error"},
    },
)
async def get_product_search(
    request: Request,
    response: Response,
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    query: str = Query(..., description="Search term, at least 2 characters"),
    radius: float = Query(
        settings.nearby_default_radius, gt=0, le=settings.nearby_max_radius
    ),
    max_stores: int = Query(5, gt=0, le=50, description="Nearest stores to search"),
    limit: int = Query(settings.search_product_limit, gt=0, le=500),
    session: AsyncSession = Depends(get_db),
):
    term = normalize_query(query)
    await enforce_rate_limit(request, response)
    try:
        found = await search_nearby_stores(session, lat, lon, radius, limit=max_stores)
        products = await search_products(session, found.stores, term, limit)
    except SQLAlchemyError as exc:
        raise UpstreamFailure("Product search failed", str(exc)) from exc

    return {
        "query": term,
        "cache_hit": found.cache_hit,
        "stores_searched": len(found.stores),
        "count": len(products),
        "products": products,
    }
