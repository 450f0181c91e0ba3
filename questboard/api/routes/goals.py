"""
questboard.api.routes.goals — Goal & metric endpoints
======================================================

Handlers are plain ``def`` so FastAPI runs the blocking, lock-holding
service calls on its threadpool.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from questboard.api.deps import get_actor_id, get_engine
from questboard.services import goal_service
from questboard.services.goal_service import (
    GoalProgress,
    InvalidOperationError,
    MetricUpdate,
    NotFoundError,
)

router = APIRouter(tags=["goals"])


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------
class MetricIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    value: float = Field(0.0, ge=0, allow_inf_nan=False)
    target: float | None = Field(None, ge=0, allow_inf_nan=False)
    unit: str | None = None


class GoalCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    status: str = "active"
    metrics: list[MetricIn] = Field(default_factory=list)


class MetricUpdateIn(BaseModel):
    operation: str
    value: float | None = Field(None, allow_inf_nan=False)


class StatusUpdateIn(BaseModel):
    status: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _goal_dict(g: GoalProgress) -> dict:
    return {
        "goal_id": g.goal_id,
        "progress": g.progress,
        "status": g.status,
        "auto_completed": g.auto_completed,
    }


def _metric_dict(m: MetricUpdate) -> dict:
    return {
        "metric_id": m.metric_id,
        "name": m.name,
        "value": m.value,
        "target": m.target,
        "unit": m.unit,
        "goal": _goal_dict(m.goal),
    }


def _raise_http(exc: Exception):
    if isinstance(exc, NotFoundError):
        raise HTTPException(status.HTTP_404_NOT_FOUND, str(exc))
    raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc))


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@router.post("/goals", status_code=status.HTTP_201_CREATED)
def create_goal(
    body: GoalCreate,
    actor_id: int = Depends(get_actor_id),
    engine: Engine = Depends(get_engine),
):
    try:
        result = goal_service.create_goal(
            engine,
            actor_id,
            body.title,
            description=body.description,
            status=body.status,
            metrics=[m.model_dump() for m in body.metrics],
        )
    except (NotFoundError, InvalidOperationError) as exc:
        _raise_http(exc)
    return _goal_dict(result)


@router.post("/goals/{goal_id}/metrics", status_code=status.HTTP_201_CREATED)
def add_metric(
    goal_id: int,
    body: MetricIn,
    actor_id: int = Depends(get_actor_id),
    engine: Engine = Depends(get_engine),
):
    try:
        result = goal_service.add_metric(
            engine, goal_id, body.name,
            target=body.target, value=body.value, unit=body.unit, actor_id=actor_id,
        )
    except (NotFoundError, InvalidOperationError) as exc:
        _raise_http(exc)
    return _metric_dict(result)


@router.put("/metrics/{metric_id}")
def update_metric(
    metric_id: int,
    body: MetricUpdateIn,
    actor_id: int = Depends(get_actor_id),
    engine: Engine = Depends(get_engine),
):
    """Set / increment / decrement a metric; goal progress follows."""
    try:
        result = goal_service.update_metric(
            engine, metric_id, body.operation, body.value, actor_id=actor_id,
        )
    except (NotFoundError, InvalidOperationError) as exc:
        _raise_http(exc)
    return _metric_dict(result)


@router.post("/goals/{goal_id}/progress")
def recalculate_progress(
    goal_id: int,
    actor_id: int = Depends(get_actor_id),
    engine: Engine = Depends(get_engine),
):
    try:
        result = goal_service.recalculate_goal_progress(engine, goal_id, actor_id=actor_id)
    except (NotFoundError, InvalidOperationError) as exc:
        _raise_http(exc)
    return _goal_dict(result)


@router.patch("/goals/{goal_id}/status")
def update_status(
    goal_id: int,
    body: StatusUpdateIn,
    actor_id: int = Depends(get_actor_id),
    engine: Engine = Depends(get_engine),
):
    try:
        result = goal_service.set_goal_status(engine, goal_id, body.status, actor_id=actor_id)
    except (NotFoundError, InvalidOperationError) as exc:
        _raise_http(exc)
    return _goal_dict(result)
