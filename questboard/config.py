"""
questboard.config — YAML Configuration Loader
==============================================

Reads ``config.yaml`` for **infrastructure-only** settings (leaderboard
page size, score pass timeout, refresh cadence).  Scoring point values
live in the ``settings`` database table and are read through
:class:`~questboard.engine.cache.ConfigCache`.

Usage::

    from questboard.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.leaderboard_limit)     # 100
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object: infrastructure only.
# Scoring tuning lives in the DB ``settings`` table.
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class QuestboardConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    app_name: str

    # API
    api_port: int

    # Leaderboard
    leaderboard_limit: int = 100
    score_pass_timeout_seconds: float = 30.0
    fetch_concurrency: int = 8
    score_refresh_minutes: int = 1440
    stale_after_seconds: int = 86400  # 0 → cached scores never go stale


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def default_config_path() -> Path:
    """``$CONFIG_PATH`` if set, else ``config.yaml`` in the working directory."""
    return Path(os.getenv("CONFIG_PATH", "config.yaml"))


def load_config(path: str | Path | None = None) -> QuestboardConfig:
    """Read *path* and return a :class:`QuestboardConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to :func:`default_config_path`.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path) if path is not None else default_config_path()
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return QuestboardConfig(
        app_name=raw["app_name"],
        api_port=int(raw["api_port"]),
        leaderboard_limit=int(raw.get("leaderboard_limit", 100)),
        score_pass_timeout_seconds=float(raw.get("score_pass_timeout_seconds", 30)),
        fetch_concurrency=max(int(raw.get("fetch_concurrency", 8)), 1),
        score_refresh_minutes=int(raw.get("score_refresh_minutes", 1440)),
        stale_after_seconds=int(raw.get("stale_after_seconds", 86400)),
    )
