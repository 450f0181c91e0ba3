"""
questboard.services.goal_service — Goal & Metric Mutations
===========================================================

Every metric write is a read-modify-write followed by a progress recompute
over all the goal's metrics.  Two concurrent increments on one goal must
not both read the same base value, so each mutation runs:

  1. under a per-goal process lock (:class:`GoalLockRegistry`), and
  2. inside one transaction that takes ``SELECT … FOR UPDATE`` on the goal
     row (serialises writers across processes on PostgreSQL),

and only then reads the metric, writes the new value, re-reads all the
goal's metrics, recomputes progress and applies the status rule before a
single commit.
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Iterable, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from questboard.database.engine import get_session
from questboard.database.models import Goal, GoalStatus, Metric, Profile
from questboard.engine.progress import (
    check_explicit_transition,
    compute_goal_progress,
    derive_status,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


class NotFoundError(LookupError):
    """The requested goal, metric, post or profile does not exist."""


class InvalidOperationError(ValueError):
    """The request is well-formed but not allowed."""


class MetricOperation(StrEnum):
    SET = "set"
    INCREMENT = "increment"
    DECREMENT = "decrement"


@dataclass(frozen=True, slots=True)
class GoalProgress:
    goal_id: int
    progress: int
    status: str
    auto_completed: bool = False


@dataclass(frozen=True, slots=True)
class MetricUpdate:
    metric_id: int
    name: str
    value: float
    target: float | None
    unit: str | None
    goal: GoalProgress


# ---------------------------------------------------------------------------
# Per-goal locking
# ---------------------------------------------------------------------------
class GoalLockRegistry:
    """Hands out one :class:`threading.Lock` per goal id.

    Thread-safe.  Locks are kept for the life of the process; a goal id
    costs one small lock object.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}

    def lock_for(self, goal_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(goal_id)
            if lock is None:
                lock = self._locks[goal_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, goal_id: int):
        lock = self.lock_for(goal_id)
        with lock:
            yield


_default_registry = GoalLockRegistry()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _lock_goal(session: Session, goal_id: int) -> Goal:
    goal = session.scalar(select(Goal).where(Goal.id == goal_id).with_for_update())
    if goal is None:
        raise NotFoundError(f"Goal {goal_id} not found")
    return goal


def _check_owner(goal: Goal, actor_id: int | None) -> None:
    if actor_id is not None and goal.profile_id != actor_id:
        raise InvalidOperationError("Goal does not belong to this profile")


def _refresh_progress(session: Session, goal: Goal) -> GoalProgress:
    """Recompute *goal* progress from a fresh read of its metrics."""
    session.flush()
    metrics = session.scalars(
        select(Metric).where(Metric.goal_id == goal.id).order_by(Metric.id)
    ).all()
    progress = compute_goal_progress(metrics)
    new_status = derive_status(goal.status, progress)
    auto_completed = new_status != goal.status and new_status == GoalStatus.COMPLETED

    goal.progress = progress
    goal.status = new_status.value
    if auto_completed:
        logger.info("Goal %d reached 100%% and was marked completed", goal.id)
    return GoalProgress(
        goal_id=goal.id,
        progress=progress,
        status=goal.status,
        auto_completed=auto_completed,
    )


def _clamp(value: float, target: float | None) -> float:
    value = max(0.0, value)
    if target is not None and target > 0:
        value = min(value, target)
    return value


def _parse_amount(raw: Any, *, default: float | None) -> float:
    if raw is None or raw == "":
        if default is None:
            raise InvalidOperationError("A numeric value is required")
        return default
    try:
        amount = float(raw)
    except (TypeError, ValueError):
        raise InvalidOperationError(f"Invalid value {raw!r}. Must be a number.")
    if not math.isfinite(amount):
        raise InvalidOperationError(f"Invalid value {raw!r}. Must be a finite number.")
    return amount


def _parse_target(raw: Any) -> float | None:
    if raw is None:
        return None
    target = _parse_amount(raw, default=None)
    if target < 0:
        raise InvalidOperationError("Target must be non-negative")
    return target


# ---------------------------------------------------------------------------
# Metric mutations
# ---------------------------------------------------------------------------
def update_metric(
    engine: Engine,
    metric_id: int,
    operation: str,
    value: Any = None,
    *,
    actor_id: int | None = None,
    registry: GoalLockRegistry | None = None,
) -> MetricUpdate:
    """Set, increment or decrement a metric and recompute its goal.

    Increment/decrement use a step of 1 when *value* is missing or zero.
    Non-finite inputs and results are rejected.  The stored value is
    clamped to ``[0, target]`` (or ``>= 0`` for untargeted metrics).

    Raises
    ------
    NotFoundError
        Unknown metric (or its goal vanished).
    InvalidOperationError
        Unknown operation, non-numeric value, or *actor_id* does not own
        the goal.
    """
    try:
        op = MetricOperation(operation)
    except ValueError:
        raise InvalidOperationError(
            "Invalid operation. Must be 'set', 'increment', or 'decrement'."
        )
    amount = _parse_amount(value, default=None if op == MetricOperation.SET else 1.0)
    if op != MetricOperation.SET and amount == 0:
        amount = 1.0

    with Session(engine) as session:
        goal_id = session.scalar(select(Metric.goal_id).where(Metric.id == metric_id))
    if goal_id is None:
        raise NotFoundError(f"Metric {metric_id} not found")

    registry = registry or _default_registry
    with registry.hold(goal_id), get_session(engine, expire_on_commit=False) as session:
        goal = _lock_goal(session, goal_id)
        _check_owner(goal, actor_id)

        metric = session.get(Metric, metric_id)
        if metric is None or metric.goal_id != goal_id:
            raise NotFoundError(f"Metric {metric_id} not found")

        current = float(metric.value or 0.0)
        if op == MetricOperation.SET:
            new_value = amount
        elif op == MetricOperation.INCREMENT:
            new_value = current + amount
        else:
            new_value = current - amount
        if not math.isfinite(new_value):
            raise InvalidOperationError("Resulting value is out of range")
        metric.value = _clamp(new_value, metric.target)

        goal_progress = _refresh_progress(session, goal)
        return MetricUpdate(
            metric_id=metric.id,
            name=metric.name,
            value=metric.value,
            target=metric.target,
            unit=metric.unit,
            goal=goal_progress,
        )


def add_metric(
    engine: Engine,
    goal_id: int,
    name: str,
    *,
    target: float | None = None,
    value: float = 0.0,
    unit: str | None = None,
    actor_id: int | None = None,
    registry: GoalLockRegistry | None = None,
) -> MetricUpdate:
    """Attach a new metric to a goal and recompute the goal's progress."""
    target = _parse_target(target)
    initial_value = _parse_amount(value, default=0.0)

    registry = registry or _default_registry
    with registry.hold(goal_id), get_session(engine, expire_on_commit=False) as session:
        goal = _lock_goal(session, goal_id)
        _check_owner(goal, actor_id)

        metric = Metric(goal_id=goal.id, name=name, unit=unit, target=target,
                        value=_clamp(initial_value, target))
        session.add(metric)
        goal_progress = _refresh_progress(session, goal)
        return MetricUpdate(
            metric_id=metric.id,
            name=metric.name,
            value=metric.value,
            target=metric.target,
            unit=metric.unit,
            goal=goal_progress,
        )


# ---------------------------------------------------------------------------
# Goal operations
# ---------------------------------------------------------------------------
def create_goal(
    engine: Engine,
    profile_id: int,
    title: str,
    *,
    metrics: Iterable[Mapping[str, Any]] = (),
    status: str = GoalStatus.ACTIVE.value,
    description: str | None = None,
) -> GoalProgress:
    """Create a goal with its initial metrics; progress/status are derived.

    Each metric mapping accepts ``name``, ``value``, ``target`` and ``unit``.
    """
    try:
        initial = check_explicit_transition(GoalStatus.ACTIVE.value, status)
    except ValueError as exc:
        raise InvalidOperationError(str(exc)) from exc

    with get_session(engine, expire_on_commit=False) as session:
        if session.get(Profile, profile_id) is None:
            raise NotFoundError(f"Profile {profile_id} not found")

        goal = Goal(
            profile_id=profile_id,
            title=title,
            description=description,
            status=initial.value,
        )
        session.add(goal)
        session.flush()
        for item in metrics:
            target = _parse_target(item.get("target"))
            session.add(Metric(
                goal_id=goal.id,
                name=item.get("name") or "Metric",
                unit=item.get("unit"),
                target=target,
                value=_clamp(_parse_amount(item.get("value"), default=0.0), target),
            ))
        return _refresh_progress(session, goal)


def recalculate_goal_progress(
    engine: Engine,
    goal_id: int,
    *,
    actor_id: int | None = None,
    registry: GoalLockRegistry | None = None,
) -> GoalProgress:
    """Re-derive a goal's cached progress and status from its metrics."""
    registry = registry or _default_registry
    with registry.hold(goal_id), get_session(engine, expire_on_commit=False) as session:
        goal = _lock_goal(session, goal_id)
        _check_owner(goal, actor_id)
        return _refresh_progress(session, goal)


def set_goal_status(
    engine: Engine,
    goal_id: int,
    status: str,
    *,
    actor_id: int | None = None,
    registry: GoalLockRegistry | None = None,
) -> GoalProgress:
    """Apply a member-initiated status change.

    ``completed`` cannot be chosen directly and a completed goal stays
    completed.
    """
    registry = registry or _default_registry
    with registry.hold(goal_id), get_session(engine, expire_on_commit=False) as session:
        goal = _lock_goal(session, goal_id)
        _check_owner(goal, actor_id)
        try:
            new_status = check_explicit_transition(goal.status, status)
        except ValueError as exc:
            raise InvalidOperationError(str(exc)) from exc
        goal.status = new_status.value
        return GoalProgress(goal_id=goal.id, progress=goal.progress, status=goal.status)
