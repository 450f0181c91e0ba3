"""
questboard.api.routes.social — Like / follow toggles
=====================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import Engine

from questboard.api.deps import get_actor_id, get_engine
from questboard.services.goal_service import InvalidOperationError, NotFoundError
from questboard.services.social_service import toggle_follow, toggle_like

router = APIRouter(tags=["social"])


class LikeToggleIn(BaseModel):
    type: str  # "post" | "profile"
    target_id: int


class FollowToggleIn(BaseModel):
    target_id: int


@router.post("/likes/toggle")
def like_toggle(
    body: LikeToggleIn,
    actor_id: int = Depends(get_actor_id),
    engine: Engine = Depends(get_engine),
):
    try:
        result = toggle_like(engine, actor_id, body.type, body.target_id)
    except NotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, str(exc))
    except InvalidOperationError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc))
    return {
        "liked": result.active,
        "like_count": result.count,
        "action": "liked" if result.active else "unliked",
    }


@router.post("/follows/toggle")
def follow_toggle(
    body: FollowToggleIn,
    actor_id: int = Depends(get_actor_id),
    engine: Engine = Depends(get_engine),
):
    try:
        result = toggle_follow(engine, actor_id, body.target_id)
    except NotFoundError as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, str(exc))
    except InvalidOperationError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc))
    return {
        "following": result.active,
        "follower_count": result.count,
        "action": "followed" if result.active else "unfollowed",
    }
