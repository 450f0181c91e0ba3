"""
questboard.engine.ranking — Normalization & Ranking
====================================================

Pure function over a complete score population.  Normalizing a partial
population is meaningless, so callers pass every eligible member of the
pass, zero scores included.

* ``normalized = (total - min) / (max - min) * 100``; when every total is
  equal (single member, all zeros) every normalized score is 0.
* Ranking sorts by total descending, then by profile id ascending.  The
  rank is the 1-based position in that order, so ties in total still get
  distinct ranks and the lower profile id wins the tie.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from questboard.engine.scoring import SubScores

__all__ = ["RankedScore", "ScoredProfile", "normalize_and_rank"]


@dataclass(frozen=True, slots=True)
class ScoredProfile:
    profile_id: int
    scores: SubScores

    @property
    def total(self) -> float:
        return self.scores.total


@dataclass(frozen=True, slots=True)
class RankedScore:
    profile_id: int
    scores: SubScores
    total: float
    normalized_score: float
    rank: int


def _sort_key(entry: ScoredProfile) -> tuple[float, int]:
    return (-entry.total, entry.profile_id)


def normalize_and_rank(entries: Iterable[ScoredProfile]) -> list[RankedScore]:
    """Normalize totals to 0–100 and assign strict 1-based ranks.

    Output is ordered by rank.  The result depends only on the set of
    entries, never on their input order.

    Raises
    ------
    ValueError
        If a profile id appears twice.
    """
    population = sorted(entries, key=_sort_key)
    ids = [e.profile_id for e in population]
    if len(set(ids)) != len(ids):
        raise ValueError("Duplicate profile ids in score population")
    if not population:
        return []

    totals = [e.total for e in population]
    lo, hi = min(totals), max(totals)
    spread = hi - lo

    ranked: list[RankedScore] = []
    for position, entry in enumerate(population, start=1):
        normalized = (entry.total - lo) / spread * 100.0 if spread > 0 else 0.0
        ranked.append(RankedScore(
            profile_id=entry.profile_id,
            scores=entry.scores,
            total=entry.total,
            normalized_score=normalized,
            rank=position,
        ))
    return ranked
