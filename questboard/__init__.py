"""
Questboard — Scoring & Progress Engine for a Student Goal Network
==================================================================
Turns raw member activity (goals, metrics, posts, likes, follows) into
comparable leaderboard rankings, and rolls metric values up into a goal
completion percentage that drives automatic status transitions.

Package layout::

    questboard/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Branches, sections, year bounds
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # All ORM models
    │   └── seed.py        # Default scoring settings
    ├── engine/
    │   ├── progress.py    # Metric → goal progress + status rule
    │   ├── scoring.py     # Per-user sub-scores
    │   ├── ranking.py     # Min-max normalization + ranking
    │   └── cache.py       # In-memory settings cache
    ├── services/
    │   ├── sources.py             # SQL-backed activity source + score store
    │   ├── leaderboard_service.py # Cache-or-recompute coordinator
    │   ├── goal_service.py        # Locked metric mutations
    │   └── social_service.py      # Like / follow toggles
    ├── api/
    │   ├── main.py        # FastAPI app
    │   └── routes/        # Leaderboard, goals, social endpoints
    └── worker/            # Scheduled score refresh
"""

__version__ = "0.1.0"
