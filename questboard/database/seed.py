"""
questboard.database.seed — Default Settings Seeder
===================================================

Baseline scoring settings seeded on first startup so a fresh deployment
ranks members with the standard point values.

Idempotent — only inserts keys that don't already exist.  Values edited
by operators are never overwritten.
"""

from __future__ import annotations

import json
import logging

from sqlalchemy import Engine
from sqlalchemy.orm import Session

from questboard.database.models import Setting

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Default settings catalogue
# ---------------------------------------------------------------------------
DEFAULT_SETTINGS: dict[str, tuple[object, str, str]] = {
    "scoring.goal_completed_points": (50, "scoring", "Points per completed goal"),
    "scoring.goal_active_points": (10, "scoring", "Points per active goal"),
    "scoring.goal_paused_points": (5, "scoring", "Points per paused goal"),
    "scoring.goal_cancelled_points": (0, "scoring", "Points per cancelled goal"),
    "scoring.goal_archived_points": (0, "scoring", "Points per archived goal"),
    "scoring.published_post_points": (5, "scoring", "Points per published post"),
    "scoring.post_like_points": (2, "scoring", "Points per like received on a post"),
    "scoring.metric_target_met_points": (10, "scoring", "Points per metric at or above target"),
    "scoring.metric_near_target_points": (5, "scoring", "Points per metric near its target"),
    "scoring.metric_near_target_ratio": (
        0.8, "scoring", "value/target ratio counted as near target",
    ),
    "scoring.metric_started_points": (1, "scoring", "Points per metric with any progress"),
    "scoring.profile_like_points": (3, "scoring", "Points per like received on the profile"),
    "scoring.follower_points": (5, "scoring", "Points per follower"),
}
"""Each entry maps ``key`` → ``(default_value, category, description)``."""


# ---------------------------------------------------------------------------
# Seeder
# ---------------------------------------------------------------------------
def seed_default_settings(engine: Engine) -> None:
    """Insert default settings that don't yet exist."""
    session = Session(engine)
    inserted = 0
    try:
        for key, (value, category, desc) in DEFAULT_SETTINGS.items():
            existing = session.get(Setting, key)
            if existing is None:
                session.add(Setting(
                    key=key,
                    value_json=json.dumps(value),
                    category=category,
                    description=desc,
                ))
                inserted += 1
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if inserted:
        logger.info("Seeded %d default settings.", inserted)
