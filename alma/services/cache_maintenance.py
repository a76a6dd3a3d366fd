"""Out-of-band purge of the search cache.

Two passes run independently: an unconditional purge and a content-based
purge of empty and stale entries. Each pass is one transaction that commits
once at its end. A failure anywhere in a pass rolls the whole pass back and
is recorded, and the other pass still runs. The overall run succeeds when at
least one pass succeeds.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from alma.services.metrics import metrics
from alma.services.search_cache import SearchCacheStore

logger = logging.getLogger(__name__)

PASS_ALL = "all"
PASS_STALE = "stale"
MODES = {
    "both": (PASS_ALL, PASS_STALE),
    "all": (PASS_ALL,),
    "stale": (PASS_STALE,),
}


@dataclass
class MaintenanceResult:
    success: bool
    message: str
    deleted: dict[str, int] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)


async def _purge_content(store: SearchCacheStore) -> int:
    empty = await store.invalidate_empty(commit=False)
    return empty + await store.invalidate_stale(commit=False)


async def _run_pass(
    session: AsyncSession,
    name: str,
    action: Callable[[], Awaitable[int]],
    result: MaintenanceResult,
) -> None:
    try:
        deleted = await action()
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        result.errors[name] = str(exc)
        logger.error("Cache purge pass %r failed: %s", name, exc)
    else:
        result.deleted[name] = deleted


async def clear_search_cache(
    session: AsyncSession,
    mode: str = "both",
    store: SearchCacheStore | None = None,
) -> MaintenanceResult:
    """Purge the search cache; see module docstring for the success rule."""
    if mode not in MODES:
        raise ValueError(f"Unknown maintenance mode {mode!r}")

    store = store or SearchCacheStore(session)
    passes = {
        PASS_ALL: lambda: store.invalidate_all(commit=False),
        PASS_STALE: lambda: _purge_content(store),
    }

    result = MaintenanceResult(success=False, message="")
    for name in MODES[mode]:
        await _run_pass(session, name, passes[name], result)

    result.success = bool(result.deleted)
    if not result.success:
        result.message = "All cache purge passes failed"
    elif PASS_ALL in result.deleted:
        result.message = f"Cache cleared ({result.deleted[PASS_ALL]} entries removed)"
    else:
        result.message = (
            f"Cache cleared for empty and stale results "
            f"({result.deleted[PASS_STALE]} entries removed)"
        )

    metrics.inc_maintenance(result.success)
    logger.info(
        "Cache maintenance mode=%s success=%s deleted=%s failed=%s",
        mode, result.success, result.deleted, sorted(result.errors),
    )
    return result
