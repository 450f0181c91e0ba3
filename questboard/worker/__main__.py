"""
questboard.worker.__main__ — Entry point for ``python -m questboard.worker``
============================================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (infrastructure settings).
3. Create the SQLAlchemy engine, ensure tables exist, seed settings.
4. Build and warm the ConfigCache.
5. Run the periodic score refresh until interrupted.

Run with::

    python -m questboard.worker
"""

from __future__ import annotations

import asyncio
import logging

from dotenv import load_dotenv

from questboard.config import load_config
from questboard.database.engine import create_db_engine, init_db
from questboard.engine.cache import ConfigCache
from questboard.services.leaderboard_service import LeaderboardCoordinator
from questboard.worker.refresh import run_refresh_loop

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("questboard")


def main() -> None:
    """Bootstrap and run the score refresh worker."""
    load_dotenv()

    cfg = load_config()
    logger.info("Config loaded — %s", cfg.app_name)

    engine = create_db_engine(fetch_concurrency=cfg.fetch_concurrency)
    init_db(engine)

    cache = ConfigCache(engine)
    cache.load_all()

    coordinator = LeaderboardCoordinator.from_engine(engine, cfg, cache)

    logger.info(
        "Starting score refresh worker (every %d min)…", cfg.score_refresh_minutes,
    )
    try:
        asyncio.run(run_refresh_loop(
            coordinator, cache, interval_seconds=cfg.score_refresh_minutes * 60,
        ))
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
