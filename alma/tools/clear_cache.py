"""Purge the product search cache without going through the HTTP API.

Usage:
    python -m alma.tools.clear_cache
    python -m alma.tools.clear_cache --mode stale
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from alma.db.session import dispose_engine, get_session_factory
from alma.services.cache_maintenance import MODES, MaintenanceResult, clear_search_cache

logger = logging.getLogger(__name__)


async def run(mode: str) -> MaintenanceResult:
    try:
        async with get_session_factory()() as session:
            return await clear_search_cache(session, mode=mode)
    finally:
        await dispose_engine()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Clear the product search cache")
    parser.add_argument(
        "--mode",
        choices=sorted(MODES),
        default="both",
        help="'all' deletes every entry, 'stale' only empty/expired ones",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    result = asyncio.run(run(args.mode))
    if not result.success:
        for name, error in result.errors.items():
            logger.error("Pass %s failed: %s", name, error)
        return 1
    logger.info(result.message)
    return 0


if __name__ == "__main__":
    sys.exit(main())
