"""
questboard.api.routes.leaderboard — Leaderboard & score refresh endpoints
==========================================================================
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status

from questboard.api.deps import get_coordinator, require_cron_secret
from questboard.constants import parse_year
from questboard.services.leaderboard_service import (
    LeaderboardCoordinator,
    LeaderboardFilters,
    ScorePassError,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["leaderboard"])


# ---------------------------------------------------------------------------
# GET /leaderboard
# ---------------------------------------------------------------------------
@router.get("/leaderboard")
async def get_leaderboard(
    branch: str | None = Query(None),
    year: str | None = Query(None),
    section: str | None = Query(None),
    prefer_cache: bool = Query(True),
    coordinator: LeaderboardCoordinator = Depends(get_coordinator),
):
    """Ranked members, optionally filtered by branch / year / section.

    Out-of-range years are ignored rather than rejected.
    """
    filters = LeaderboardFilters(
        branch=(branch or "").strip() or None,
        year=parse_year((year or "").strip()),
        section=(section or "").strip() or None,
    )
    try:
        page = await coordinator.get_ranked_leaderboard(filters, prefer_cache=prefer_cache)
    except ScorePassError as exc:
        logger.error("Leaderboard unavailable: %s", exc)
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Leaderboard unavailable")

    return {
        "entries": [e.to_dict() for e in page.entries],
        "total": page.total,
        "served_from": page.served_from,
        "filters": page.filters.to_dict(),
    }


# ---------------------------------------------------------------------------
# GET|POST /cron/update-scores
# ---------------------------------------------------------------------------
@router.api_route(
    "/cron/update-scores",
    methods=["GET", "POST"],
    dependencies=[Depends(require_cron_secret)],
)
async def update_scores(
    coordinator: LeaderboardCoordinator = Depends(get_coordinator),
):
    """Recompute every score and refresh the store (scheduler hook)."""
    logger.info("Starting user scores computation…")
    try:
        records = await coordinator.recompute_all_scores()
    except ScorePassError as exc:
        logger.error("Score refresh failed: %s", exc)
        raise HTTPException(
            status.HTTP_503_SERVICE_UNAVAILABLE, f"Failed to compute scores: {exc}",
        )

    return {
        "success": True,
        "entries_updated": len(records),
        "timestamp": datetime.now(UTC).isoformat(),
        "message": f"Computed scores for {len(records)} users",
    }
