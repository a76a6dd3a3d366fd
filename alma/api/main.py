from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from alma.api.dependencies import get_optional_db
from alma.api.exception_handlers import (
    alma_error_handler,
    http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from alma.api.middleware import RequestLoggingMiddleware
from alma.api.routes.admin import router as admin_router
from alma.api.routes.products import router as products_router
from alma.api.routes.stores import router as stores_router
from alma.api.schemas import ErrorResponse, HealthResponse
from alma.config import settings
from alma.db.session import dispose_engine
from alma.errors import AlmaError
from alma.logging_config import setup_logging
from alma.services.metrics import metrics
from alma.services.rate_limiter import rate_limiter

logger = logging.getLogger("alma")

_DESCRIPTION = """\
Store and product lookup API for the Alma nutrition app.

### Nearby stores

Stores are searched within a radius of the user's position. Results are
cached per **geohash bucket** (precision 6, roughly 1.2 km x 0.6 km) and
parameter set, so users in the same neighborhood share one computation.

### Rate limiting

Search endpoints are rate-limited per session or client IP using a sliding
window. When the limiter backend is configured, responses include
`X-RateLimit-Limit`, `X-RateLimit-Remaining` and `X-RateLimit-Reset`.

### Administration

`/admin/clear-cache` purges the search cache and requires
`Authorization: Bearer <admin secret>`.
"""

_OPENAPI_TAGS = [
    {"name": "system", "description": "Health checks and operational endpoints."},
    {
        "name": "stores",
        "description": "Radius search over known stores, sorted by distance.",
    },
    {
        "name": "products",
        "description": "Scraped product catalog and nearby product search.",
    },
    {"name": "admin", "description": "Cache maintenance (admin token required)."},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level, settings.log_format)

    if not settings.database_url:
        logger.warning("DATABASE_URL is not set; data endpoints will return 503")
    if not settings.redis_url:
        logger.warning("REDIS_URL is not set; rate limiting is disabled")
    if not settings.admin_secret:
        logger.warning("ADMIN_SECRET is not set; admin endpoints will return 503")

    if settings.run_migrations:
        from alembic import command
        from alembic.config import Config

        command.upgrade(Config("alembic.ini"), "head")
    yield
    await rate_limiter.aclose()
    await dispose_engine()


app = FastAPI(
    title="Alma API",
    version="0.1.0",
    summary="Nearby stores and product search for Alma",
    description=_DESCRIPTION,
    openapi_tags=_OPENAPI_TAGS,
    lifespan=lifespan,
)

app.add_exception_handler(AlmaError, alma_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

origins = [o.strip() for o in settings.cors_origins.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(stores_router)
app.include_router(products_router)
app.include_router(admin_router)


@app.get(
    "/health",
    tags=["system"],
    summary="Health check",
    description="Check API and database connectivity. Returns 200 when "
    "healthy, 503 when the database is unreachable or unconfigured.",
    response_model=HealthResponse,
    responses={503: {"model": ErrorResponse, "description": "Database unavailable"}},
)
async def health(session: AsyncSession | None = Depends(get_optional_db)):
    if session is None:
        return JSONResponse(
            status_code=503,
            content={
                "status": "degraded",
                "database": "not_configured",
                "detail": "Database is not configured",
            },
        )
    try:
        await session.execute(text("SELECT 1"))
    except Exception as exc:
        logger.warning("Health check failed: %s", exc)
        return JSONResponse(
            status_code=503,
            content={
                "status": "degraded",
                "database": "unreachable",
                "detail": str(exc),
            },
        )
    return {
        "status": "ok",
        "database": "connected",
        "search_cache_hit_rate": metrics.cache_hit_rate(),
        "rate_limiter": {"configured": rate_limiter.configured},
        "uptime_seconds": metrics.uptime_seconds(),
    }


@app.get(
    "/metrics",
    tags=["system"],
    summary="Application metrics",
    description="Request counters, latency percentiles, search cache and "
    "rate limiter statistics.",
)
async def get_metrics():
    snap = metrics.snapshot()
    snap["rate_limiter"]["configured"] = rate_limiter.configured
    return snap
