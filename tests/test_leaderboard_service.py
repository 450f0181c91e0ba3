"""
tests/test_leaderboard_service.py — Leaderboard Coordinator Tests
==================================================================

Exercises both serving paths against an in-memory activity source and
score store, plus one pass over the real SQL implementations.
"""

from __future__ import annotations

import asyncio
import threading
import time
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.orm import Session

from questboard.database.models import LikeTarget
from questboard.services.leaderboard_service import (
    LeaderboardCoordinator,
    LeaderboardFilters,
    ScorePassError,
    ScorePassTimeout,
)
from questboard.services.sources import (
    FetchError,
    GoalRow,
    MetricRow,
    PostRow,
    ProfileRow,
    SqlActivitySource,
    SqlScoreStore,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


# Helper to run async tests without pytest-asyncio
def run_async(coro):
    return asyncio.new_event_loop().run_until_complete(coro)


# ---------------------------------------------------------------------------
# In-memory doubles
# ---------------------------------------------------------------------------
class FakeSource:
    """Activity source backed by plain lists."""

    def __init__(self):
        self.profiles: list[ProfileRow] = []
        self.goals: list[GoalRow] = []
        self.metrics: list[MetricRow] = []
        self.posts: list[PostRow] = []
        self.post_likes: dict[int, int] = {}
        self.profile_likes: dict[int, int] = {}
        self.followers: dict[int, int] = {}
        self.fail_profiles = False
        self.fail_goals_for: set[int] = set()
        self.delay = 0.0
        self.calls = 0
        self._lock = threading.Lock()

    def add(self, pid, *, branch="CSE", year=2, section="1", statuses=(),
            metrics=(), posts=(), profile_likes=0, followers=0):
        self.profiles.append(ProfileRow(
            id=pid, username=f"user{pid}", branch=branch, year=year, section=section,
        ))
        for status in statuses:
            gid = len(self.goals) + 1
            self.goals.append(GoalRow(id=gid, profile_id=pid, status=status))
            for value, target in metrics:
                self.metrics.append(MetricRow(
                    id=len(self.metrics) + 1, goal_id=gid, value=value, target=target,
                ))
        for published, likes in posts:
            post_id = len(self.posts) + 1
            self.posts.append(PostRow(id=post_id, profile_id=pid, is_published=published))
            self.post_likes[post_id] = likes
        self.profile_likes[pid] = profile_likes
        self.followers[pid] = followers

    def fetch_eligible_profiles(self):
        with self._lock:
            self.calls += 1
        if self.fail_profiles:
            raise FetchError("profiles unavailable")
        return list(self.profiles)

    def fetch_goals(self, profile_ids):
        if self.delay:
            time.sleep(self.delay)
        if self.fail_goals_for.intersection(profile_ids):
            raise FetchError("goals unavailable")
        return [g for g in self.goals if g.profile_id in profile_ids]

    def fetch_metrics(self, goal_ids):
        return [m for m in self.metrics if m.goal_id in goal_ids]

    def fetch_posts(self, profile_ids):
        return [p for p in self.posts if p.profile_id in profile_ids]

    def fetch_like_counts(self, target_type, target_ids):
        counts = self.post_likes if target_type == LikeTarget.POST else self.profile_likes
        return {i: counts[i] for i in target_ids if i in counts}

    def fetch_follower_counts(self, profile_ids):
        return {i: self.followers[i] for i in profile_ids if i in self.followers}


class FakeStore:
    def __init__(self):
        self.records = []
        self.fail_read = False
        self.fail_write = False
        self.writes = 0

    def read_score_store(self):
        if self.fail_read:
            raise FetchError("store down")
        return list(self.records)

    def upsert_score_store(self, records):
        if self.fail_write:
            raise FetchError("store read-only")
        self.writes += 1
        self.records = list(records)


@pytest.fixture
def source():
    src = FakeSource()
    # 92 points
    src.add(1, statuses=("completed",), posts=((True, 3), (True, 0)),
            profile_likes=2, followers=4)
    # 15 points
    src.add(2, branch="ECE", year=3, section="2", statuses=("active",),
            metrics=((9, 10),))
    # 0 points
    src.add(3, branch="CSE", year=2, section="2")
    return src


@pytest.fixture
def store():
    return FakeStore()


def _coordinator(source, store, **kw):
    kw.setdefault("clock", lambda: NOW)
    return LeaderboardCoordinator(source, store, **kw)


# ---------------------------------------------------------------------------
# Recompute path
# ---------------------------------------------------------------------------
class TestRecompute:
    def test_ranks_whole_population(self, source, store):
        records = run_async(_coordinator(source, store).recompute_all_scores())

        assert [(r.profile_id, r.total_score, r.rank) for r in records] == [
            (1, 92, 1), (2, 15, 2), (3, 0, 3),
        ]
        assert records[0].normalized_score == 100
        assert records[-1].normalized_score == 0
        assert records[1].normalized_score == pytest.approx(15 / 92 * 100)

    def test_sub_scores_and_counts(self, source, store):
        records = run_async(_coordinator(source, store).recompute_all_scores())
        top = records[0]
        assert (top.goal_score, top.post_score, top.metric_score, top.engagement_score) == (
            50, 16, 0, 26,
        )
        assert top.goal_count == 1
        assert top.post_count == 2
        assert top.follower_count == 4
        assert top.profile_like_count == 2
        assert records[1].metric_count == 1

    def test_single_stamp_and_write_back(self, source, store):
        records = run_async(_coordinator(source, store).recompute_all_scores())
        assert {r.computed_at for r in records} == {NOW}
        assert store.writes == 1
        assert store.records == records

    def test_persist_false_leaves_store_alone(self, source, store):
        run_async(_coordinator(source, store).recompute_all_scores(persist=False))
        assert store.writes == 0

    def test_deterministic_across_passes(self, source, store):
        coord = _coordinator(source, store, concurrency=3)
        first = run_async(coord.recompute_all_scores())
        second = run_async(coord.recompute_all_scores())
        assert first == second

    def test_empty_population(self, store):
        records = run_async(_coordinator(FakeSource(), store).recompute_all_scores())
        assert records == []

    def test_profile_fetch_failure_fails_pass(self, source, store):
        source.fail_profiles = True
        with pytest.raises(ScorePassError):
            run_async(_coordinator(source, store).recompute_all_scores())
        assert store.writes == 0

    def test_failing_profile_is_excluded(self, source, store):
        source.fail_goals_for = {1}
        records = run_async(_coordinator(source, store).recompute_all_scores())

        assert [r.profile_id for r in records] == [2, 3]
        assert [r.rank for r in records] == [1, 2]
        # normalization covers only the profiles that loaded
        assert records[0].normalized_score == 100

    def test_every_profile_failing_fails_pass(self, source, store):
        source.fail_goals_for = {1, 2, 3}
        with pytest.raises(ScorePassError):
            run_async(_coordinator(source, store).recompute_all_scores())

    def test_timeout(self, source, store):
        source.delay = 0.3
        coord = _coordinator(source, store, timeout=0.05, concurrency=1)
        with pytest.raises(ScorePassTimeout):
            run_async(coord.recompute_all_scores())
        assert store.writes == 0

    def test_write_back_failure_still_returns(self, source, store):
        store.fail_write = True
        records = run_async(_coordinator(source, store).recompute_all_scores())
        assert len(records) == 3

    def test_weights_callable_is_read_per_pass(self, source, store):
        from questboard.engine.scoring import ScoringWeights

        weights = {"w": ScoringWeights()}
        coord = _coordinator(source, store, weights=lambda: weights["w"])
        assert run_async(coord.recompute_all_scores())[0].total_score == 92

        weights["w"] = ScoringWeights(follower=0)
        assert run_async(coord.recompute_all_scores())[0].total_score == 72


# ---------------------------------------------------------------------------
# Store path
# ---------------------------------------------------------------------------
class TestGetRankedLeaderboard:
    def _warm(self, source, store, **kw):
        coord = _coordinator(source, store, **kw)
        run_async(coord.recompute_all_scores())
        return coord

    def test_empty_store_recomputes(self, source, store):
        page = run_async(_coordinator(source, store).get_ranked_leaderboard())
        assert page.served_from == "recompute"
        assert page.total == 3
        assert store.writes == 1

    def test_fresh_store_is_served(self, source, store):
        coord = self._warm(source, store)
        calls = source.calls
        page = run_async(coord.get_ranked_leaderboard())
        assert page.served_from == "store"
        assert source.calls == calls
        assert [e.profile_id for e in page.entries] == [1, 2, 3]

    def test_store_and_recompute_agree(self, source, store):
        coord = self._warm(source, store)
        cached = run_async(coord.get_ranked_leaderboard())
        fresh = run_async(coord.get_ranked_leaderboard(prefer_cache=False))
        assert fresh.served_from == "recompute"
        assert cached.entries == fresh.entries

    def test_store_error_falls_back(self, source, store):
        coord = self._warm(source, store)
        store.fail_read = True
        page = run_async(coord.get_ranked_leaderboard())
        assert page.served_from == "recompute"
        assert page.total == 3

    def test_stale_store_falls_back(self, source, store):
        self._warm(source, store)
        later = _coordinator(
            source, store, clock=lambda: NOW + timedelta(hours=2), stale_after=3600,
        )
        assert run_async(later.get_ranked_leaderboard()).served_from == "recompute"

    def test_staleness_disabled(self, source, store):
        self._warm(source, store)
        later = _coordinator(
            source, store, clock=lambda: NOW + timedelta(days=30), stale_after=0,
        )
        assert run_async(later.get_ranked_leaderboard()).served_from == "store"

    def test_mixed_stamps_fall_back(self, source, store):
        from dataclasses import replace

        coord = self._warm(source, store)
        store.records[0] = replace(store.records[0], computed_at=NOW - timedelta(minutes=5))
        assert run_async(coord.get_ranked_leaderboard()).served_from == "recompute"

    def test_filters(self, source, store):
        coord = self._warm(source, store)

        page = run_async(coord.get_ranked_leaderboard(LeaderboardFilters(branch="CSE")))
        assert [e.profile_id for e in page.entries] == [1, 3]
        assert page.total == 2

        page = run_async(coord.get_ranked_leaderboard(LeaderboardFilters(year=3)))
        assert [e.profile_id for e in page.entries] == [2]

        page = run_async(coord.get_ranked_leaderboard(
            LeaderboardFilters(branch="CSE", section="2"),
        ))
        assert [e.profile_id for e in page.entries] == [3]

    def test_filtered_entries_keep_global_rank(self, source, store):
        coord = self._warm(source, store)
        page = run_async(coord.get_ranked_leaderboard(LeaderboardFilters(section="2")))
        assert [(e.profile_id, e.rank) for e in page.entries] == [(2, 2), (3, 3)]

    def test_limit_caps_entries_not_total(self, source, store):
        coord = self._warm(source, store, limit=2)
        page = run_async(coord.get_ranked_leaderboard())
        assert len(page.entries) == 2
        assert page.total == 3

    def test_recompute_failure_propagates(self, source, store):
        source.fail_profiles = True
        with pytest.raises(ScorePassError):
            run_async(_coordinator(source, store).get_ranked_leaderboard())


# ---------------------------------------------------------------------------
# SQL integration
# ---------------------------------------------------------------------------
class TestSqlIntegration:
    def test_pass_over_database(self, db_engine):
        from conftest import (
            add_followers,
            add_goal,
            add_post,
            add_profile,
            add_profile_likes,
        )

        with Session(db_engine) as s:
            asha = add_profile(s, "asha", branch="CSE", year=2, section="1")
            ravi = add_profile(s, "ravi", branch="ECE", year=3, section="2")
            fans = [add_profile(s, f"fan{i}", visibility="private") for i in range(4)]
            add_goal(s, asha, status="completed")
            add_post(s, asha, likers=fans[:3])
            add_post(s, asha)
            add_followers(s, asha, fans)
            add_profile_likes(s, asha, fans[:2])
            add_goal(s, ravi, metrics=((9, 10),))
            s.commit()
            asha_id, ravi_id = asha.id, ravi.id

        coord = LeaderboardCoordinator(
            SqlActivitySource(db_engine), SqlScoreStore(db_engine),
            concurrency=1, clock=lambda: NOW,
        )
        page = run_async(coord.get_ranked_leaderboard())
        assert page.served_from == "recompute"
        assert [(e.profile_id, e.total_score) for e in page.entries] == [
            (asha_id, 92), (ravi_id, 15),
        ]

        again = run_async(coord.get_ranked_leaderboard())
        assert again.served_from == "store"
        assert [(e.profile_id, e.rank, e.total_score) for e in again.entries] == [
            (asha_id, 1, 92), (ravi_id, 2, 15),
        ]
