"""
questboard.api.deps — FastAPI dependency injection
===================================================
"""

from __future__ import annotations

import hmac
import os
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import Engine

from questboard.config import QuestboardConfig, load_config
from questboard.database.engine import create_db_engine
from questboard.engine.cache import ConfigCache
from questboard.services.leaderboard_service import LeaderboardCoordinator


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine(fetch_concurrency=get_config().fetch_concurrency)


@lru_cache(maxsize=1)
def get_config() -> QuestboardConfig:
    return load_config()


@lru_cache(maxsize=1)
def get_cache() -> ConfigCache:
    cache = ConfigCache(get_engine())
    cache.load_all()
    return cache


def get_coordinator(
    engine: Annotated[Engine, Depends(get_engine)],
    cfg: Annotated[QuestboardConfig, Depends(get_config)],
    cache: Annotated[ConfigCache, Depends(get_cache)],
) -> LeaderboardCoordinator:
    return LeaderboardCoordinator.from_engine(engine, cfg, cache)


def get_actor_id(
    x_profile_id: Annotated[int | None, Header()] = None,
) -> int:
    """Acting profile id, set by the upstream auth proxy."""
    if x_profile_id is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing X-Profile-Id")
    return x_profile_id


def require_cron_secret(
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Guard the refresh endpoint when ``CRON_SECRET`` is configured."""
    secret = os.getenv("CRON_SECRET", "")
    if not secret:
        return
    expected = f"Bearer {secret}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(
            status.HTTP_401_UNAUTHORIZED,
            "Unauthorized. Provide Authorization: Bearer <CRON_SECRET> header.",
        )
