"""
questboard.worker.refresh — Periodic Score Refresh
===================================================

Recomputes every score on a fixed cadence so leaderboard reads stay on
the cheap store path.  A failed pass is logged and retried at the next
tick; the previous store contents keep being served meanwhile.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from questboard.database.engine import run_db
from questboard.services.leaderboard_service import ScorePassError

if TYPE_CHECKING:
    from questboard.engine.cache import ConfigCache
    from questboard.services.leaderboard_service import LeaderboardCoordinator

logger = logging.getLogger(__name__)


async def refresh_once(
    coordinator: LeaderboardCoordinator,
    cache: ConfigCache | None = None,
) -> int | None:
    """Run one pass; returns the ranked count, or None if the pass failed."""
    if cache is not None:
        try:
            await run_db(cache.reload)
        except Exception:
            logger.exception("Settings reload failed; scoring with cached values")

    try:
        records = await coordinator.recompute_all_scores()
    except ScorePassError:
        logger.exception("Score refresh failed", extra={"task": "score_refresh"})
        return None

    logger.info("Score refresh complete: %d profiles ranked", len(records))
    return len(records)


async def run_refresh_loop(
    coordinator: LeaderboardCoordinator,
    cache: ConfigCache | None = None,
    *,
    interval_seconds: float,
    stop: asyncio.Event | None = None,
) -> None:
    """Refresh immediately, then every *interval_seconds* until *stop* is set."""
    stop = stop or asyncio.Event()
    while not stop.is_set():
        await refresh_once(coordinator, cache)
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval_seconds)
        except TimeoutError:
            continue
