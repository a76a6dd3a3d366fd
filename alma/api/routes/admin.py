"""GET /admin/clear-cache: purge the search cache (bearer-token protected)."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from alma.api.auth import require_admin
from alma.api.dependencies import get_db
from alma.api.schemas import ClearCacheResponse, ErrorResponse
from alma.errors import UpstreamFailure
from alma.services.cache_maintenance import clear_search_cache

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/clear-cache",
    summary="Clear the product search cache",
    description=(
        "Runs two independent purges: every cache entry, then entries with "
        "no results or past their TTL. Succeeds when at least one purge "
        "completes. Requires `Authorization: Bearer <admin secret>`."
    ),
    response_model=ClearCacheResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Missing or invalid token"},
        500: {"model": ErrorResponse, "description": "Both purges failed"},
        503: {"model": ErrorResponse, "description": "Admin secret not configured"},
    },
    dependencies=[Depends(require_admin)],
)
async def clear_cache(session: AsyncSession = Depends(get_db)):
    result = await clear_search_cache(session)
    if not result.success:
        raise UpstreamFailure(
            result.message, "; ".join(f"{k}: {v}" for k, v in result.errors.items())
        )
    return {"success": True, "message": result.message}
