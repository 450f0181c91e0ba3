"""
questboard.constants — Shared Constants
========================================

Bounds for the leaderboard's year filter and page size.
"""

from __future__ import annotations

MIN_YEAR = 1
MAX_YEAR = 4

# Hard ceiling on a single leaderboard page regardless of config.
MAX_LEADERBOARD_LIMIT = 500


def parse_year(raw: str | int | None) -> int | None:
    """Return *raw* as a study year, or None if missing or out of range."""
    if raw is None or raw == "":
        return None
    try:
        year = int(raw)
    except (TypeError, ValueError):
        return None
    if MIN_YEAR <= year <= MAX_YEAR:
        return year
    return None
