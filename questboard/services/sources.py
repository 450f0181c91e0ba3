"""
questboard.services.sources — Activity Source & Score Store
============================================================

The scoring engine never queries the database itself.  It is handed
already-fetched records through two narrow interfaces:

* :class:`ActivitySource` — eligible profiles and their goals, metrics,
  posts, like counts and follower counts.
* :class:`ScoreStore` — the precomputed ``score_records`` cache.

:class:`SqlActivitySource` and :class:`SqlScoreStore` are the SQLAlchemy
implementations.  Any read failure is raised as :class:`FetchError`; an
empty result is only ever returned when the data really is empty.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from questboard.database.engine import get_session
from questboard.database.models import (
    Follow,
    Goal,
    LikeTarget,
    Metric,
    Post,
    PostLike,
    Profile,
    ProfileLike,
    ScoreRecord,
    Visibility,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


class FetchError(RuntimeError):
    """A required input collection could not be read."""


# ---------------------------------------------------------------------------
# Record shapes exchanged with the engine
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ProfileRow:
    id: int
    username: str
    display_name: str | None = None
    avatar_url: str | None = None
    branch: str | None = None
    year: int | None = None
    section: str | None = None


@dataclass(frozen=True, slots=True)
class GoalRow:
    id: int
    profile_id: int
    status: str


@dataclass(frozen=True, slots=True)
class MetricRow:
    id: int
    goal_id: int
    value: float
    target: float | None


@dataclass(frozen=True, slots=True)
class PostRow:
    id: int
    profile_id: int
    is_published: bool


@dataclass(frozen=True, slots=True)
class ScoreRecordView:
    """A ranked leaderboard entry, as stored and as served."""

    profile_id: int
    username: str
    display_name: str | None
    avatar_url: str | None
    branch: str | None
    year: int | None
    section: str | None
    goal_score: float
    post_score: float
    metric_score: float
    engagement_score: float
    total_score: float
    normalized_score: float
    rank: int
    goal_count: int
    post_count: int
    metric_count: int
    follower_count: int
    profile_like_count: int
    computed_at: datetime

    def to_dict(self) -> dict:
        return {
            "profile_id": self.profile_id,
            "username": self.username,
            "display_name": self.display_name,
            "avatar_url": self.avatar_url,
            "branch": self.branch,
            "year": self.year,
            "section": self.section,
            "goal_score": self.goal_score,
            "post_score": self.post_score,
            "metric_score": self.metric_score,
            "engagement_score": self.engagement_score,
            "total_score": self.total_score,
            "normalized_score": self.normalized_score,
            "rank": self.rank,
            "goal_count": self.goal_count,
            "post_count": self.post_count,
            "metric_count": self.metric_count,
            "follower_count": self.follower_count,
            "profile_like_count": self.profile_like_count,
            "computed_at": self.computed_at.isoformat(),
        }


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------
class ActivitySource(Protocol):
    def fetch_eligible_profiles(self) -> list[ProfileRow]: ...

    def fetch_goals(self, profile_ids: Sequence[int]) -> list[GoalRow]: ...

    def fetch_metrics(self, goal_ids: Sequence[int]) -> list[MetricRow]: ...

    def fetch_posts(self, profile_ids: Sequence[int]) -> list[PostRow]: ...

    def fetch_like_counts(
        self, target_type: LikeTarget, target_ids: Sequence[int]
    ) -> dict[int, int]: ...

    def fetch_follower_counts(self, profile_ids: Sequence[int]) -> dict[int, int]: ...


class ScoreStore(Protocol):
    def read_score_store(self) -> list[ScoreRecordView]: ...

    def upsert_score_store(self, records: Sequence[ScoreRecordView]) -> None: ...


# ---------------------------------------------------------------------------
# SQLAlchemy implementations
# ---------------------------------------------------------------------------
class SqlActivitySource:
    """Reads activity records with short-lived sessions (thread-safe)."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def _read(self, what: str, fn):
        try:
            with Session(self._engine) as session:
                return fn(session)
        except SQLAlchemyError as exc:
            raise FetchError(f"Failed to fetch {what}: {exc}") from exc

    def fetch_eligible_profiles(self) -> list[ProfileRow]:
        def q(session: Session) -> list[ProfileRow]:
            rows = session.scalars(
                select(Profile)
                .where(Profile.visibility == Visibility.PUBLIC.value)
                .order_by(Profile.id)
            ).all()
            return [
                ProfileRow(
                    id=p.id,
                    username=p.username,
                    display_name=p.display_name,
                    avatar_url=p.avatar_url,
                    branch=p.branch,
                    year=p.year,
                    section=p.section,
                )
                for p in rows
            ]
        return self._read("profiles", q)

    def fetch_goals(self, profile_ids: Sequence[int]) -> list[GoalRow]:
        if not profile_ids:
            return []

        def q(session: Session) -> list[GoalRow]:
            rows = session.execute(
                select(Goal.id, Goal.profile_id, Goal.status)
                .where(Goal.profile_id.in_(list(profile_ids)))
                .order_by(Goal.id)
            ).all()
            return [GoalRow(id=r.id, profile_id=r.profile_id, status=r.status) for r in rows]
        return self._read("goals", q)

    def fetch_metrics(self, goal_ids: Sequence[int]) -> list[MetricRow]:
        if not goal_ids:
            return []

        def q(session: Session) -> list[MetricRow]:
            rows = session.execute(
                select(Metric.id, Metric.goal_id, Metric.value, Metric.target)
                .where(Metric.goal_id.in_(list(goal_ids)))
                .order_by(Metric.id)
            ).all()
            return [
                MetricRow(id=r.id, goal_id=r.goal_id, value=r.value, target=r.target)
                for r in rows
            ]
        return self._read("metrics", q)

    def fetch_posts(self, profile_ids: Sequence[int]) -> list[PostRow]:
        if not profile_ids:
            return []

        def q(session: Session) -> list[PostRow]:
            rows = session.execute(
                select(Post.id, Post.profile_id, Post.is_published)
                .where(Post.profile_id.in_(list(profile_ids)))
                .order_by(Post.id)
            ).all()
            return [
                PostRow(id=r.id, profile_id=r.profile_id, is_published=r.is_published)
                for r in rows
            ]
        return self._read("posts", q)

    def fetch_like_counts(
        self, target_type: LikeTarget, target_ids: Sequence[int]
    ) -> dict[int, int]:
        if not target_ids:
            return {}
        target_type = LikeTarget(target_type)
        col = PostLike.post_id if target_type == LikeTarget.POST else ProfileLike.profile_id

        def q(session: Session) -> dict[int, int]:
            rows = session.execute(
                select(col.label("target_id"), func.count().label("cnt"))
                .where(col.in_(list(target_ids)))
                .group_by(col)
            ).all()
            return {row.target_id: row.cnt for row in rows}
        return self._read(f"{target_type.value} likes", q)

    def fetch_follower_counts(self, profile_ids: Sequence[int]) -> dict[int, int]:
        if not profile_ids:
            return {}

        def q(session: Session) -> dict[int, int]:
            rows = session.execute(
                select(Follow.following_id, func.count().label("cnt"))
                .where(Follow.following_id.in_(list(profile_ids)))
                .group_by(Follow.following_id)
            ).all()
            return {row.following_id: row.cnt for row in rows}
        return self._read("followers", q)


class SqlScoreStore:
    """``score_records`` table access.

    Reads join the owning profile and skip profiles that have since gone
    private.  Writes replace the whole ranked set in one transaction so the
    table never mixes ranks from two passes.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def read_score_store(self) -> list[ScoreRecordView]:
        with Session(self._engine) as session:
            rows = session.execute(
                select(ScoreRecord, Profile)
                .join(Profile, Profile.id == ScoreRecord.profile_id)
                .where(Profile.visibility == Visibility.PUBLIC.value)
                .order_by(ScoreRecord.rank)
            ).all()
            return [_record_view(rec, prof) for rec, prof in rows]

    def upsert_score_store(self, records: Sequence[ScoreRecordView]) -> None:
        keep = [r.profile_id for r in records]
        with get_session(self._engine) as session:
            stale = delete(ScoreRecord)
            if keep:
                stale = stale.where(ScoreRecord.profile_id.not_in(keep))
            session.execute(stale)
            for r in records:
                session.merge(ScoreRecord(
                    profile_id=r.profile_id,
                    goal_score=r.goal_score,
                    post_score=r.post_score,
                    metric_score=r.metric_score,
                    engagement_score=r.engagement_score,
                    total_score=r.total_score,
                    normalized_score=r.normalized_score,
                    rank=r.rank,
                    branch=r.branch,
                    year=r.year,
                    section=r.section,
                    goal_count=r.goal_count,
                    post_count=r.post_count,
                    metric_count=r.metric_count,
                    follower_count=r.follower_count,
                    profile_like_count=r.profile_like_count,
                    computed_at=r.computed_at,
                ))
        logger.info("Score store replaced with %d records", len(records))


def _record_view(rec: ScoreRecord, prof: Profile) -> ScoreRecordView:
    return ScoreRecordView(
        profile_id=rec.profile_id,
        username=prof.username,
        display_name=prof.display_name,
        avatar_url=prof.avatar_url,
        branch=rec.branch,
        year=rec.year,
        section=rec.section,
        goal_score=rec.goal_score,
        post_score=rec.post_score,
        metric_score=rec.metric_score,
        engagement_score=rec.engagement_score,
        total_score=rec.total_score,
        normalized_score=rec.normalized_score,
        rank=rec.rank,
        goal_count=rec.goal_count,
        post_count=rec.post_count,
        metric_count=rec.metric_count,
        follower_count=rec.follower_count,
        profile_like_count=rec.profile_like_count,
        computed_at=rec.computed_at,
    )
