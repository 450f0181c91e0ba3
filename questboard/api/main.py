"""
questboard.api.main — HTTP application
=======================================

Mounts the leaderboard, goal and social routers under ``/api``.

Run with::

    uvicorn questboard.api.main:app --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from questboard import __version__  # noqa: E402
from questboard.api.deps import get_cache, get_config, get_engine  # noqa: E402
from questboard.api.routes.goals import router as goals_router  # noqa: E402
from questboard.api.routes.leaderboard import router as leaderboard_router  # noqa: E402
from questboard.api.routes.social import router as social_router  # noqa: E402

logger = logging.getLogger(__name__)


def _allowed_origins() -> list[str]:
    """Origins from ``CORS_ALLOW_ORIGINS`` (comma-separated), else ``FRONTEND_URL``."""
    configured = os.getenv("CORS_ALLOW_ORIGINS") or os.getenv("FRONTEND_URL") or ""
    return [o.strip().rstrip("/") for o in configured.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Fail fast on missing config or database, and warm the settings cache."""
    cfg = get_config()
    engine = get_engine()
    get_cache()
    logger.info(
        "%s API up: db=%s, leaderboard_limit=%d",
        cfg.app_name, engine.url.database, cfg.leaderboard_limit,
    )
    yield
    engine.dispose()
    logger.info("%s API stopped", cfg.app_name)


app = FastAPI(title="Questboard API", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH"],
    allow_headers=["*"],
)

for router in (leaderboard_router, goals_router, social_router):
    app.include_router(router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
