"""Initial schema: profiles, goals, metrics, posts, social edges, score_records

Revision ID: 5c2e9a7d41b0
Revises:
Create Date: 2026-10-18 09:12:03.114920

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '5c2e9a7d41b0'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(),
    )


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(50), nullable=False, unique=True),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column("avatar_url", sa.Text, nullable=True),
        sa.Column("branch", sa.String(20), nullable=True),
        sa.Column("year", sa.Integer, nullable=True),
        sa.Column("section", sa.String(10), nullable=True),
        sa.Column("visibility", sa.String(10), nullable=False, server_default="public"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("year IS NULL OR (year BETWEEN 1 AND 4)", name="ck_profiles_year"),
    )
    op.create_index("ix_profiles_visibility", "profiles", ["visibility"])

    op.create_table(
        "goals",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "profile_id", sa.Integer,
            sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("progress", sa.Integer, nullable=False, server_default="0"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_goals_profile", "goals", ["profile_id"])

    op.create_table(
        "metrics",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "goal_id", sa.Integer,
            sa.ForeignKey("goals.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("unit", sa.String(30), nullable=True),
        sa.Column("value", sa.Float, nullable=False, server_default="0"),
        sa.Column("target", sa.Float, nullable=True),
        sa.CheckConstraint("value >= 0", name="ck_metrics_value_non_negative"),
    )
    op.create_index("ix_metrics_goal", "metrics", ["goal_id"])

    op.create_table(
        "posts",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "profile_id", sa.Integer,
            sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("body", sa.Text, nullable=True),
        sa.Column("is_published", sa.Boolean, nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
    )
    op.create_index("ix_posts_profile", "posts", ["profile_id"])

    op.create_table(
        "post_likes",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "liker_profile_id", sa.Integer,
            sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "post_id", sa.Integer,
            sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False,
        ),
        _timestamp("created_at"),
        sa.UniqueConstraint("liker_profile_id", "post_id", name="uq_post_likes_pair"),
    )
    op.create_index("ix_post_likes_post", "post_likes", ["post_id"])

    op.create_table(
        "profile_likes",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "liker_profile_id", sa.Integer,
            sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "profile_id", sa.Integer,
            sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False,
        ),
        _timestamp("created_at"),
        sa.UniqueConstraint("liker_profile_id", "profile_id", name="uq_profile_likes_pair"),
    )
    op.create_index("ix_profile_likes_profile", "profile_likes", ["profile_id"])

    op.create_table(
        "follows",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "follower_id", sa.Integer,
            sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "following_id", sa.Integer,
            sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False,
        ),
        _timestamp("created_at"),
        sa.UniqueConstraint("follower_id", "following_id", name="uq_follows_pair"),
    )
    op.create_index("ix_follows_following", "follows", ["following_id"])

    op.create_table(
        "score_records",
        sa.Column(
            "profile_id", sa.Integer,
            sa.ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("goal_score", sa.Float, nullable=False, server_default="0"),
        sa.Column("post_score", sa.Float, nullable=False, server_default="0"),
        sa.Column("metric_score", sa.Float, nullable=False, server_default="0"),
        sa.Column("engagement_score", sa.Float, nullable=False, server_default="0"),
        sa.Column("total_score", sa.Float, nullable=False, server_default="0"),
        sa.Column("normalized_score", sa.Float, nullable=False, server_default="0"),
        sa.Column("rank", sa.Integer, nullable=False),
        sa.Column("branch", sa.String(20), nullable=True),
        sa.Column("year", sa.Integer, nullable=True),
        sa.Column("section", sa.String(10), nullable=True),
        sa.Column("goal_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("post_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("metric_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("follower_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("profile_like_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_score_records_normalized", "score_records",
        [sa.text("normalized_score DESC")],
    )
    op.create_index("ix_score_records_branch_year", "score_records", ["branch", "year"])

    op.create_table(
        "settings",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value_json", sa.Text, nullable=False),
        sa.Column("category", sa.String(50), nullable=False, server_default="general"),
        sa.Column("description", sa.Text, nullable=True),
        _timestamp("updated_at"),
    )
    op.create_index("ix_settings_category", "settings", ["category"])


def downgrade() -> None:
    for table in (
        "settings", "score_records", "follows", "profile_likes",
        "post_likes", "posts", "metrics", "goals", "profiles",
    ):
        op.drop_table(table)
