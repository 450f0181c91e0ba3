"""
questboard.engine.scoring — Per-User Score Calculation
=======================================================

Pure calculation, no DB I/O.  A member's activity snapshot is turned into
four sub-scores and their sum:

  goal score        — points per goal by status
  post score        — points per published post + per like on any post
  metric score      — 10 / 5 / 1 tier per metric
  engagement score  — points per profile like + per follower

The metric tier here is intentionally independent of the 0–100
percentage in :mod:`questboard.engine.progress`; one drives competitive
scoring, the other the completion bar.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from questboard.database.models import GoalStatus

if TYPE_CHECKING:
    from questboard.engine.cache import ConfigCache

logger = logging.getLogger(__name__)

__all__ = [
    "MetricValue",
    "PostActivity",
    "ScoringWeights",
    "SubScores",
    "UserActivity",
    "metric_score",
    "score_user",
]


# ---------------------------------------------------------------------------
# Point values
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ScoringWeights:
    """Point values used by :func:`score_user`.

    Defaults are the canonical leaderboard values; operators may override
    any of them through the ``scoring.*`` keys of the settings table.
    """

    goal_completed: float = 50
    goal_active: float = 10
    goal_paused: float = 5
    goal_cancelled: float = 0
    goal_archived: float = 0
    published_post: float = 5
    post_like: float = 2
    metric_target_met: float = 10
    metric_near_target: float = 5
    metric_near_target_ratio: float = 0.8
    metric_started: float = 1
    profile_like: float = 3
    follower: float = 5

    @classmethod
    def from_cache(cls, cache: ConfigCache | None) -> ScoringWeights:
        """Build weights from the settings cache, falling back to defaults."""
        if cache is None:
            return cls()
        d = cls()
        return cls(
            goal_completed=cache.get_float("scoring.goal_completed_points", d.goal_completed),
            goal_active=cache.get_float("scoring.goal_active_points", d.goal_active),
            goal_paused=cache.get_float("scoring.goal_paused_points", d.goal_paused),
            goal_cancelled=cache.get_float("scoring.goal_cancelled_points", d.goal_cancelled),
            goal_archived=cache.get_float("scoring.goal_archived_points", d.goal_archived),
            published_post=cache.get_float("scoring.published_post_points", d.published_post),
            post_like=cache.get_float("scoring.post_like_points", d.post_like),
            metric_target_met=cache.get_float(
                "scoring.metric_target_met_points", d.metric_target_met,
            ),
            metric_near_target=cache.get_float(
                "scoring.metric_near_target_points", d.metric_near_target,
            ),
            metric_near_target_ratio=cache.get_float(
                "scoring.metric_near_target_ratio", d.metric_near_target_ratio,
            ),
            metric_started=cache.get_float("scoring.metric_started_points", d.metric_started),
            profile_like=cache.get_float("scoring.profile_like_points", d.profile_like),
            follower=cache.get_float("scoring.follower_points", d.follower),
        )

    def goal_points(self, status: str) -> float:
        try:
            s = GoalStatus(status)
        except ValueError:
            logger.warning("Unknown goal status %r scored as 0", status)
            return 0
        return {
            GoalStatus.COMPLETED: self.goal_completed,
            GoalStatus.ACTIVE: self.goal_active,
            GoalStatus.PAUSED: self.goal_paused,
            GoalStatus.CANCELLED: self.goal_cancelled,
            GoalStatus.ARCHIVED: self.goal_archived,
        }[s]


DEFAULT_WEIGHTS = ScoringWeights()


# ---------------------------------------------------------------------------
# Input snapshot
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class MetricValue:
    value: float = 0.0
    target: float | None = None


@dataclass(frozen=True, slots=True)
class PostActivity:
    is_published: bool
    like_count: int = 0


@dataclass(frozen=True, slots=True)
class UserActivity:
    """Everything needed to score one member, already fetched.

    ``metrics_by_goal`` maps goal id → that goal's metrics.
    """

    profile_id: int
    goal_statuses: Sequence[str] = ()
    posts: Sequence[PostActivity] = ()
    metrics_by_goal: Mapping[int, Sequence[MetricValue]] = field(default_factory=dict)
    profile_likes_received: int = 0
    follower_count: int = 0

    @property
    def post_likes_received(self) -> int:
        return sum(p.like_count for p in self.posts)

    @property
    def published_post_count(self) -> int:
        return sum(1 for p in self.posts if p.is_published)

    @property
    def metric_count(self) -> int:
        return sum(len(ms) for ms in self.metrics_by_goal.values())


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class SubScores:
    goal_score: float = 0
    post_score: float = 0
    metric_score: float = 0
    engagement_score: float = 0

    @property
    def total(self) -> float:
        return self.goal_score + self.post_score + self.metric_score + self.engagement_score


# ---------------------------------------------------------------------------
# Stage functions
# ---------------------------------------------------------------------------
def metric_score(
    value: float | None,
    target: float | None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> float:
    """Competitive tier of a single metric: target met, near target, started, or 0."""
    v = float(value or 0.0)
    if target is not None and target > 0:
        if v >= target:
            return weights.metric_target_met
        if v / target >= weights.metric_near_target_ratio:
            return weights.metric_near_target
    if v > 0:
        return weights.metric_started
    return 0


def score_user(activity: UserActivity, weights: ScoringWeights = DEFAULT_WEIGHTS) -> SubScores:
    """Compute the four sub-scores for one member.

    A member with no activity scores 0 everywhere.
    """
    goal = sum(weights.goal_points(s) for s in activity.goal_statuses)

    post = (
        activity.published_post_count * weights.published_post
        + activity.post_likes_received * weights.post_like
    )

    metric = sum(
        metric_score(m.value, m.target, weights)
        for goal_id in sorted(activity.metrics_by_goal)
        for m in activity.metrics_by_goal[goal_id]
    )

    engagement = (
        activity.profile_likes_received * weights.profile_like
        + activity.follower_count * weights.follower
    )

    return SubScores(
        goal_score=goal,
        post_score=post,
        metric_score=metric,
        engagement_score=engagement,
    )
