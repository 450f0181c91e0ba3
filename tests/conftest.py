"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# The cron endpoint is open when CRON_SECRET is unset; tests set it
# explicitly where the guard is under test.
os.environ.pop("CRON_SECRET", None)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from questboard.database.models import (  # noqa: E402
    Base,
    Follow,
    Goal,
    Metric,
    Post,
    PostLike,
    Profile,
    ProfileLike,
)


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Questboard tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def file_engine(tmp_path) -> Engine:
    """SQLite file database with a real connection pool.

    Needed where several threads run their own transactions at once; a
    StaticPool would hand them all the same connection.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'questboard.db'}",
        echo=False,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a transactional session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


# ---------------------------------------------------------------------------
# Row factories
# ---------------------------------------------------------------------------
def add_profile(session: Session, username: str, **kw) -> Profile:
    profile = Profile(username=username, **kw)
    session.add(profile)
    session.flush()
    return profile


def add_goal(session: Session, profile: Profile, status: str = "active",
             metrics: tuple = (), title: str = "Goal") -> Goal:
    """Add a goal; *metrics* is a sequence of ``(value, target)`` pairs."""
    goal = Goal(profile_id=profile.id, title=title, status=status)
    session.add(goal)
    session.flush()
    for i, (value, target) in enumerate(metrics):
        session.add(Metric(goal_id=goal.id, name=f"m{i}", value=value, target=target))
    session.flush()
    return goal


def add_post(session: Session, profile: Profile, published: bool = True,
             likers: tuple = ()) -> Post:
    post = Post(profile_id=profile.id, title="Post", is_published=published)
    session.add(post)
    session.flush()
    for liker in likers:
        session.add(PostLike(liker_profile_id=liker.id, post_id=post.id))
    session.flush()
    return post


def add_followers(session: Session, profile: Profile, followers) -> None:
    for f in followers:
        session.add(Follow(follower_id=f.id, following_id=profile.id))
    session.flush()


def add_profile_likes(session: Session, profile: Profile, likers) -> None:
    for liker in likers:
        session.add(ProfileLike(liker_profile_id=liker.id, profile_id=profile.id))
    session.flush()
