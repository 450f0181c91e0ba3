"""
questboard.database.models — SQLAlchemy 2.0 Data Models
========================================================

Tables:
- profiles       — Member identity with branch / year / section / visibility
- goals          — Tracked units of work with lifecycle status + cached progress
- metrics        — Numeric measurements attached to a goal (optional target)
- posts          — Member posts (publish flag)
- post_likes     — Liker → post edges (at most one per pair)
- profile_likes  — Liker → profile edges (at most one per pair)
- follows        — Follower → followed edges (at most one per pair)
- score_records  — Derived leaderboard cache, one row per profile
- settings       — Key/value scoring tuning store
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Questboard ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class GoalStatus(enum.StrEnum):
    """Lifecycle states of a goal."""
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"


class Visibility(enum.StrEnum):
    PUBLIC = "public"
    PRIVATE = "private"


class LikeTarget(enum.StrEnum):
    """What a like edge points at."""
    POST = "post"
    PROFILE = "profile"


# ---------------------------------------------------------------------------
# Profiles: one row per member
# ---------------------------------------------------------------------------
class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    display_name: Mapped[str | None] = mapped_column(String(100), default=None)
    avatar_url: Mapped[str | None] = mapped_column(Text, default=None)
    branch: Mapped[str | None] = mapped_column(String(20), default=None)
    year: Mapped[int | None] = mapped_column(Integer, default=None)
    section: Mapped[str | None] = mapped_column(String(10), default=None)
    visibility: Mapped[str] = mapped_column(
        String(10), nullable=False, default=Visibility.PUBLIC.value,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    goals: Mapped[list[Goal]] = relationship(
        back_populates="profile", cascade="all, delete-orphan"
    )
    posts: Mapped[list[Post]] = relationship(
        back_populates="profile", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("year IS NULL OR (year BETWEEN 1 AND 4)", name="ck_profiles_year"),
        Index("ix_profiles_visibility", "visibility"),
    )

    def __repr__(self) -> str:
        return f"<Profile id={self.id} username={self.username!r}>"


# ---------------------------------------------------------------------------
# Goals: units of work; progress is a cache derived from metrics
# ---------------------------------------------------------------------------
class Goal(Base):
    __tablename__ = "goals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    profile_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=GoalStatus.ACTIVE.value,
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    profile: Mapped[Profile] = relationship(back_populates="goals")
    metrics: Mapped[list[Metric]] = relationship(
        back_populates="goal", cascade="all, delete-orphan", order_by="Metric.id"
    )

    __table_args__ = (
        Index("ix_goals_profile", "profile_id"),
    )

    def __repr__(self) -> str:
        return f"<Goal id={self.id} status={self.status} progress={self.progress}>"


# ---------------------------------------------------------------------------
# Metrics: measurements attached to a goal
# ---------------------------------------------------------------------------
class Metric(Base):
    __tablename__ = "metrics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    goal_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("goals.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    unit: Mapped[str | None] = mapped_column(String(30), default=None)
    value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    target: Mapped[float | None] = mapped_column(Float, default=None)  # None → untargeted

    goal: Mapped[Goal] = relationship(back_populates="metrics")

    __table_args__ = (
        CheckConstraint("value >= 0", name="ck_metrics_value_non_negative"),
        Index("ix_metrics_goal", "goal_id"),
    )

    def __repr__(self) -> str:
        return f"<Metric id={self.id} value={self.value} target={self.target}>"


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------
class Post(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    profile_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str | None] = mapped_column(Text, default=None)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    profile: Mapped[Profile] = relationship(back_populates="posts")

    __table_args__ = (
        Index("ix_posts_profile", "profile_id"),
    )

    def __repr__(self) -> str:
        return f"<Post id={self.id} published={self.is_published}>"


# ---------------------------------------------------------------------------
# Social edges: each pair may exist at most once
# ---------------------------------------------------------------------------
class PostLike(Base):
    __tablename__ = "post_likes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    liker_profile_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    post_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("liker_profile_id", "post_id", name="uq_post_likes_pair"),
        Index("ix_post_likes_post", "post_id"),
    )


class ProfileLike(Base):
    __tablename__ = "profile_likes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    liker_profile_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    profile_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("liker_profile_id", "profile_id", name="uq_profile_likes_pair"),
        Index("ix_profile_likes_profile", "profile_id"),
    )


class Follow(Base):
    __tablename__ = "follows"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    follower_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    following_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("follower_id", "following_id", name="uq_follows_pair"),
        Index("ix_follows_following", "following_id"),
    )


# ---------------------------------------------------------------------------
# ScoreRecord: derived leaderboard cache (never hand-edited)
# ---------------------------------------------------------------------------
class ScoreRecord(Base):
    """One row per ranked profile, written by a full score pass.

    Every row of a pass carries the same ``computed_at`` stamp; rows with
    differing stamps did not come from the same input snapshot.
    """
    __tablename__ = "score_records"

    profile_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True
    )
    goal_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    post_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    metric_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    engagement_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    normalized_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)

    # Denormalised filter columns
    branch: Mapped[str | None] = mapped_column(String(20), default=None)
    year: Mapped[int | None] = mapped_column(Integer, default=None)
    section: Mapped[str | None] = mapped_column(String(10), default=None)

    # Display counts
    goal_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    post_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    metric_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    follower_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    profile_like_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_score_records_normalized", "normalized_score"),
        Index("ix_score_records_branch_year", "branch", "year"),
    )

    def __repr__(self) -> str:
        return (
            f"<ScoreRecord profile={self.profile_id} total={self.total_score} "
            f"rank={self.rank}>"
        )


# ---------------------------------------------------------------------------
# Settings: key/value tuning store
# ---------------------------------------------------------------------------
class Setting(Base):
    """Key-value configuration store.

    Every scoring knob (goal points, metric tiers, engagement weights) lives
    here so operators can retune the leaderboard without redeploying.
    Values are stored as JSON strings; typed accessors live in
    :class:`~questboard.engine.cache.ConfigCache`.
    """
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    description: Mapped[str | None] = mapped_column(Text, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_settings_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<Setting key={self.key!r} category={self.category!r}>"
