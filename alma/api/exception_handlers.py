"""Global exception handlers: every error leaves as the same JSON shape.

``{"error": <short message>, "status_code": <int>, "detail": <str | list>}``
"""

from __future__ import annotations

import logging
import traceback
from http import HTTPStatus

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from alma.errors import AlmaError, UpstreamFailure

logger = logging.getLogger("alma.errors")


def _phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def error_body(status_code: int, error: str, detail) -> dict:
    return {"error": error, "status_code": status_code, "detail": detail}


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Structured JSON for HTTP exceptions; keeps ``X-RateLimit-*`` on 429s."""
    headers = {}
    if exc.headers:
        headers = {
            k: v for k, v in exc.headers.items() if k.startswith("X-RateLimit-")
        }
    detail = exc.detail
    error = detail if isinstance(detail, str) else _phrase(exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, error, detail),
        headers=headers,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=error_body(422, "Validation error", jsonable_errors(exc)),
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors minus the ``ctx``/``input`` payloads that may not serialize."""
    return [
        {k: v for k, v in err.items() if k not in ("ctx", "input", "url")}
        for err in exc.errors()
    ]


async def alma_error_handler(request: Request, exc: AlmaError) -> JSONResponse:
    """Map the domain taxonomy onto status codes.

    Upstream messages are logged, never returned to the caller.
    """
    if isinstance(exc, UpstreamFailure):
        logger.error(
            "Upstream failure on %s %s: %s",
            request.method,
            request.url.path,
            exc.upstream_message or exc.detail,
        )
    elif exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.detail)

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, exc.detail, exc.detail),
    )


async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Log the traceback; return a generic 500 with no internals."""
    logger.error(
        "Unhandled exception on %s %s:\n%s",
        request.method,
        request.url.path,
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    )
    return JSONResponse(
        status_code=500,
        content=error_body(500, "Internal server error", "Internal server error"),
    )
