"""
tests/test_ranking.py — Normalization & Ranking Tests
======================================================
"""

from __future__ import annotations

import random

import pytest

from questboard.engine.ranking import ScoredProfile, normalize_and_rank
from questboard.engine.scoring import SubScores


def _entry(pid: int, total: float) -> ScoredProfile:
    return ScoredProfile(profile_id=pid, scores=SubScores(goal_score=total))


def test_empty_population():
    assert normalize_and_rank([]) == []


def test_single_member_normalizes_to_zero():
    (only,) = normalize_and_rank([_entry(5, 40)])
    assert only.normalized_score == 0
    assert only.rank == 1


def test_all_equal_totals_normalize_to_zero():
    ranked = normalize_and_rank([_entry(i, 12) for i in range(1, 5)])
    assert all(r.normalized_score == 0 for r in ranked)


def test_min_max_scaling():
    ranked = normalize_and_rank([_entry(1, 10), _entry(2, 60), _entry(3, 110)])
    by_id = {r.profile_id: r for r in ranked}
    assert by_id[3].normalized_score == 100
    assert by_id[1].normalized_score == 0
    assert by_id[2].normalized_score == pytest.approx(50)
    assert all(0 <= r.normalized_score <= 100 for r in ranked)


def test_ranks_are_strict_and_ties_break_by_lower_id():
    ranked = normalize_and_rank([_entry(9, 30), _entry(4, 30), _entry(7, 50)])
    assert [(r.profile_id, r.rank) for r in ranked] == [(7, 1), (4, 2), (9, 3)]


def test_ranks_are_a_permutation():
    ranked = normalize_and_rank([_entry(i, i % 3) for i in range(1, 21)])
    assert sorted(r.rank for r in ranked) == list(range(1, 21))


def test_higher_total_never_ranks_below_lower_total():
    ranked = normalize_and_rank([_entry(i, (i * 37) % 11) for i in range(1, 30)])
    for a in ranked:
        for b in ranked:
            if a.total > b.total:
                assert a.rank < b.rank


def test_independent_of_input_order():
    entries = [_entry(i, (i * 7) % 5) for i in range(1, 15)]
    expected = normalize_and_rank(entries)
    shuffled = entries[:]
    random.Random(3).shuffle(shuffled)
    assert normalize_and_rank(shuffled) == expected


def test_total_is_sum_of_subscores():
    scores = SubScores(goal_score=10, post_score=5, metric_score=1, engagement_score=3)
    (r,) = normalize_and_rank([ScoredProfile(1, scores)])
    assert r.total == 19


def test_duplicate_ids_rejected():
    with pytest.raises(ValueError):
        normalize_and_rank([_entry(1, 1), _entry(1, 2)])
