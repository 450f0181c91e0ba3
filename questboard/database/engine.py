"""
questboard.database.engine — Database Connection & Async Helper
================================================================

The API and the refresh worker run on an ``asyncio`` event loop while
SQLAlchemy + psycopg2 are **synchronous**.  A score pass fans out many
per-profile reads; issuing them directly from a coroutine would block
the loop for the whole pass.

Every synchronous DB function is therefore shipped to a worker thread
with :func:`run_db`, which wraps :func:`asyncio.to_thread`.  The code
stays plain synchronous SQLAlchemy while the loop stays free.

Usage::

    from questboard.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    goals = await run_db(source.fetch_goals, [profile_id])
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from typing import Any, ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

from questboard.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# Connections beyond the score pass fan-out: the store write-back and
# one in-flight API mutation.
_RESERVED_CONNECTIONS = 2


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def pool_settings(fetch_concurrency: int) -> dict[str, Any]:
    """Pool arguments sized for a score pass of *fetch_concurrency* readers.

    Every concurrent per-profile load holds one connection, so the steady
    pool covers the fan-out plus the reserved connections.  Overflow lets
    a recompute triggered by a leaderboard read overlap a scheduled pass.
    """
    readers = max(int(fetch_concurrency), 1)
    return {
        "pool_size": readers + _RESERVED_CONNECTIONS,
        "max_overflow": readers,
        "pool_timeout": 10,
        "pool_recycle": 3600,
        "pool_pre_ping": True,
    }


def create_db_engine(url: str | None = None, *, fetch_concurrency: int = 8) -> Engine:
    """Engine for *url* (default ``$DATABASE_URL``) with a fan-out sized pool.

    Raises
    ------
    RuntimeError
        If no URL is given and ``DATABASE_URL`` is not set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and point it at the Questboard database."
        )

    settings = pool_settings(fetch_concurrency)
    engine = create_engine(url, echo=False, **settings)
    logger.info(
        "Database engine ready → %s (pool %d + %d overflow)",
        engine.url.host or engine.url.database,
        settings["pool_size"], settings["max_overflow"],
    )
    return engine


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Ensure the schema exists and the ``scoring.*`` settings are seeded.

    Deployed databases are migrated with ``alembic upgrade head`` first;
    ``create_all`` then only fills gaps in dev and test databases.
    """
    from questboard.database.seed import seed_default_settings

    Base.metadata.create_all(engine)
    seed_default_settings(engine)
    logger.info("Schema checked and scoring settings seeded")


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine, **kwargs):
    """Unit of work: commit when the block exits cleanly, else roll back.

    Usage::

        with get_session(engine) as session:
            session.add(Profile(username="asha"))
    """
    session = Session(engine, **kwargs)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Await a blocking SQLAlchemy call without stalling the event loop."""
    return await asyncio.to_thread(func, *args, **kwargs)
