"""
questboard.engine.cache — Scoring Settings Cache
=================================================

Point values for the score calculator live in the ``settings`` table so
operators can retune the leaderboard without a deploy.  A score pass
reads a dozen of them; :class:`ConfigCache` keeps the whole table in
memory and swaps in a fresh snapshot whenever :meth:`ConfigCache.reload`
runs (the refresh worker does so before every pass).
"""

from __future__ import annotations

import json
import logging
import threading
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from questboard.database.models import Setting

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def _decode(raw: str | None) -> Any:
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return raw


class ConfigCache:
    """Snapshot of the ``settings`` table, safe to read from any thread.

    Usage::

        cache = ConfigCache(engine)
        cache.load_all()
        weights = ScoringWeights.from_cache(cache)
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._lock = threading.Lock()
        self._snapshot: dict[str, Any] = {}

    def load_all(self) -> None:
        """Initial load; call once the schema exists."""
        count = self._refresh()
        logger.info("Settings cache warmed with %d keys", count)

    def reload(self) -> None:
        """Replace the snapshot with the current table contents."""
        count = self._refresh()
        logger.debug("Settings cache reloaded (%d keys)", count)

    def _refresh(self) -> int:
        with Session(self._engine) as session:
            snapshot = {
                row.key: _decode(row.value_json)
                for row in session.scalars(select(Setting))
            }
        with self._lock:
            self._snapshot = snapshot
        return len(snapshot)

    # -------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------
    def get_setting(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._snapshot.get(key, default)

    def get_float(self, key: str, default: float = 0.0) -> float:
        """Numeric setting; missing or non-numeric values yield *default*."""
        raw = self.get_setting(key)
        if raw is None or isinstance(raw, bool):
            return default
        try:
            return float(raw)
        except (TypeError, ValueError):
            logger.warning("Setting %s=%r is not numeric; using %s", key, raw, default)
            return default
