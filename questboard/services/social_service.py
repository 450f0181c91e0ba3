"""
questboard.services.social_service — Like & Follow Toggles
===========================================================

Each (actor, target) pair holds at most one edge.  Toggling removes an
existing edge or inserts a new one; the unique constraints on
``post_likes``, ``profile_likes`` and ``follows`` back this up when two
requests race, in which case the loser sees the edge as already present.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from questboard.database.models import Follow, LikeTarget, Post, PostLike, Profile, ProfileLike
from questboard.services.goal_service import InvalidOperationError, NotFoundError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToggleResult:
    active: bool  # True → the edge now exists
    count: int    # edges now pointing at the target


def _toggle(session: Session, existing, new_edge) -> bool:
    """Delete *existing* or insert *new_edge*; returns the resulting state."""
    if existing is not None:
        session.delete(existing)
        session.flush()
        return False
    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(new_edge)
            session.flush()
    except IntegrityError:
        # A concurrent request inserted the same pair first.
        logger.info("Concurrent toggle lost the insert race; edge already exists")
    return True


def toggle_like(
    engine: Engine,
    liker_id: int,
    target_type: str,
    target_id: int,
) -> ToggleResult:
    """Like or unlike a post or profile on behalf of *liker_id*.

    Raises
    ------
    InvalidOperationError
        Unknown target type, or the liker owns the target.
    NotFoundError
        Liker or target does not exist.
    """
    try:
        kind = LikeTarget(target_type)
    except ValueError:
        raise InvalidOperationError("type must be 'post' or 'profile'")

    with Session(engine) as session:
        if session.get(Profile, liker_id) is None:
            raise NotFoundError(f"Profile {liker_id} not found")

        if kind == LikeTarget.POST:
            post = session.get(Post, target_id)
            if post is None:
                raise NotFoundError(f"Post {target_id} not found")
            if post.profile_id == liker_id:
                raise InvalidOperationError("Cannot like your own post")
            existing = session.scalar(
                select(PostLike).where(
                    PostLike.liker_profile_id == liker_id,
                    PostLike.post_id == target_id,
                )
            )
            active = _toggle(
                session, existing, PostLike(liker_profile_id=liker_id, post_id=target_id),
            )
            count = session.scalar(
                select(func.count()).select_from(PostLike)
                .where(PostLike.post_id == target_id)
            ) or 0
        else:
            if target_id == liker_id:
                raise InvalidOperationError("Cannot like your own profile")
            if session.get(Profile, target_id) is None:
                raise NotFoundError(f"Profile {target_id} not found")
            existing = session.scalar(
                select(ProfileLike).where(
                    ProfileLike.liker_profile_id == liker_id,
                    ProfileLike.profile_id == target_id,
                )
            )
            active = _toggle(
                session, existing,
                ProfileLike(liker_profile_id=liker_id, profile_id=target_id),
            )
            count = session.scalar(
                select(func.count()).select_from(ProfileLike)
                .where(ProfileLike.profile_id == target_id)
            ) or 0

        session.commit()
        return ToggleResult(active=active, count=count)


def toggle_follow(engine: Engine, follower_id: int, following_id: int) -> ToggleResult:
    """Follow or unfollow *following_id*; returns the new follower count."""
    if follower_id == following_id:
        raise InvalidOperationError("Cannot follow yourself")

    with Session(engine) as session:
        for pid in (follower_id, following_id):
            if session.get(Profile, pid) is None:
                raise NotFoundError(f"Profile {pid} not found")

        existing = session.scalar(
            select(Follow).where(
                Follow.follower_id == follower_id,
                Follow.following_id == following_id,
            )
        )
        active = _toggle(
            session, existing, Follow(follower_id=follower_id, following_id=following_id),
        )
        count = session.scalar(
            select(func.count()).select_from(Follow)
            .where(Follow.following_id == following_id)
        ) or 0

        session.commit()
        return ToggleResult(active=active, count=count)
