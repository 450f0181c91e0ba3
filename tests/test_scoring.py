"""
tests/test_scoring.py — Unit Tests for the Score Calculator
============================================================

Tests the pure calculation pipeline (no I/O, no database).
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from questboard.engine.scoring import (
    MetricValue,
    PostActivity,
    ScoringWeights,
    UserActivity,
    metric_score,
    score_user,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def mock_cache():
    """A ConfigCache double that returns the fallback for every key."""
    cache = MagicMock()
    cache.get_float.side_effect = lambda k, d=0.0: d
    cache.get_setting.side_effect = lambda k, d=None: d
    return cache


# ---------------------------------------------------------------------------
# End-to-end member scenarios
# ---------------------------------------------------------------------------
class TestScoreUser:
    def test_completed_goal_posts_and_engagement(self):
        activity = UserActivity(
            profile_id=1,
            goal_statuses=("completed",),
            posts=(PostActivity(True, 3), PostActivity(True, 0)),
            profile_likes_received=2,
            follower_count=4,
        )
        s = score_user(activity)
        assert s.goal_score == 50
        assert s.post_score == 16
        assert s.metric_score == 0
        assert s.engagement_score == 26
        assert s.total == 92

    def test_single_near_target_metric(self):
        activity = UserActivity(
            profile_id=1,
            goal_statuses=("active",),
            metrics_by_goal={10: [MetricValue(9, 10)]},
        )
        s = score_user(activity)
        assert s.goal_score == 10
        assert s.metric_score == 5
        assert s.total == 15

    def test_no_activity_scores_zero(self):
        s = score_user(UserActivity(profile_id=7))
        assert (s.goal_score, s.post_score, s.metric_score, s.engagement_score) == (0, 0, 0, 0)
        assert s.total == 0

    def test_goal_points_by_status(self):
        activity = UserActivity(
            profile_id=1,
            goal_statuses=("completed", "active", "paused", "cancelled", "archived"),
        )
        assert score_user(activity).goal_score == 50 + 10 + 5

    def test_unknown_status_scores_zero(self):
        activity = UserActivity(profile_id=1, goal_statuses=("bogus", "active"))
        assert score_user(activity).goal_score == 10

    def test_likes_on_unpublished_posts_still_count(self):
        activity = UserActivity(
            profile_id=1,
            posts=(PostActivity(False, 4), PostActivity(True, 1)),
        )
        s = score_user(activity)
        assert s.post_score == 5 + 5 * 2

    def test_metrics_across_goals_sum(self):
        activity = UserActivity(
            profile_id=1,
            metrics_by_goal={
                1: [MetricValue(10, 10), MetricValue(0, 10)],
                2: [MetricValue(3, None)],
            },
        )
        assert score_user(activity).metric_score == 10 + 0 + 1

    def test_activity_counts(self):
        activity = UserActivity(
            profile_id=1,
            posts=(PostActivity(True, 2), PostActivity(False, 1)),
            metrics_by_goal={1: [MetricValue()], 2: [MetricValue(), MetricValue()]},
        )
        assert activity.published_post_count == 1
        assert activity.post_likes_received == 3
        assert activity.metric_count == 3


# ---------------------------------------------------------------------------
# Metric tiers
# ---------------------------------------------------------------------------
class TestMetricScore:
    @pytest.mark.parametrize(
        "value,target,expected",
        [
            (10, 10, 10),
            (15, 10, 10),
            (8, 10, 5),
            (7.9, 10, 1),
            (0.5, 10, 1),
            (0, 10, 0),
            (3, None, 1),
            (0, None, 0),
            (4, 0, 1),
        ],
    )
    def test_tiers(self, value, target, expected):
        assert metric_score(value, target) == expected

    def test_tier_is_not_the_progress_percentage(self):
        # 80% progress but only the "near target" tier
        assert metric_score(8, 10) == 5


# ---------------------------------------------------------------------------
# Weights from settings
# ---------------------------------------------------------------------------
class TestScoringWeights:
    def test_defaults_when_cache_missing(self):
        assert ScoringWeights.from_cache(None) == ScoringWeights()

    def test_defaults_when_cache_empty(self, mock_cache):
        assert ScoringWeights.from_cache(mock_cache) == ScoringWeights()

    def test_overrides_from_cache(self, mock_cache):
        overrides = {"scoring.follower_points": 1.0, "scoring.goal_completed_points": 100.0}
        mock_cache.get_float.side_effect = lambda k, d=0.0: overrides.get(k, d)

        w = ScoringWeights.from_cache(mock_cache)
        assert w.follower == 1.0
        assert w.goal_completed == 100.0
        assert w.goal_active == 10

        s = score_user(
            UserActivity(profile_id=1, goal_statuses=("completed",), follower_count=3), w,
        )
        assert s.total == 103
