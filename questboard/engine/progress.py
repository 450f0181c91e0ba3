"""
questboard.engine.progress — Goal Progress & Status Rule
=========================================================

Pure functions, no DB I/O.

* :func:`compute_goal_progress` rolls a goal's metrics up into a whole
  0–100 completion percentage.
* :func:`derive_status` applies the single automatic transition: a goal
  whose progress reaches 100 becomes ``completed``.

A goal's stored ``progress`` is only a cache of
``compute_goal_progress(goal.metrics)`` and must always be re-derivable
from the metrics alone.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any

from questboard.database.models import GoalStatus

__all__ = [
    "check_explicit_transition",
    "compute_goal_progress",
    "derive_status",
    "metric_ratio",
]

# Statuses a member may pick directly.  ``completed`` is reachable only
# through derive_status().
USER_SELECTABLE_STATUSES: frozenset[GoalStatus] = frozenset({
    GoalStatus.ACTIVE,
    GoalStatus.PAUSED,
    GoalStatus.CANCELLED,
    GoalStatus.ARCHIVED,
})


def _field(metric: Any, name: str) -> Any:
    if isinstance(metric, Mapping):
        return metric.get(name)
    return getattr(metric, name, None)


def metric_ratio(value: float | None, target: float | None) -> float:
    """Completion ratio (0.0–1.0) of a single metric.

    Untargeted metrics and non-positive targets count as 0: without a
    target there is nothing to be complete against.
    """
    if target is None or target <= 0:
        return 0.0
    v = max(float(value or 0.0), 0.0)
    return min(v, float(target)) / float(target)


def compute_goal_progress(metrics: Iterable[Any] | None) -> int:
    """Mean completion of *metrics* as a whole percentage in [0, 100].

    Every metric counts in the denominator, including untargeted ones.
    An empty collection yields 0.  Halves round up.
    """
    ratios = [metric_ratio(_field(m, "value"), _field(m, "target")) for m in (metrics or ())]
    if not ratios:
        return 0
    pct = sum(ratios) / len(ratios) * 100.0
    # Round half up on a value snapped to 9 decimals so 0.9 * 100 stays 90.
    return max(0, min(100, math.floor(round(pct, 9) + 0.5)))


def derive_status(current_status: str, progress: int | float | None) -> GoalStatus:
    """Status a goal should hold after its progress was recomputed.

    ``progress >= 100`` forces ``completed`` from any prior status;
    otherwise the status is left as is.  Idempotent.

    Raises
    ------
    ValueError
        If *progress* is None (progress could not be computed) or the
        current status is unknown.
    """
    if progress is None:
        raise ValueError("Cannot derive a goal status without a computed progress")
    status = GoalStatus(current_status)
    if progress >= 100:
        return GoalStatus.COMPLETED
    return status


def check_explicit_transition(current_status: str, requested: str) -> GoalStatus:
    """Validate a member-initiated status change and return the new status.

    Members move freely between active, paused, cancelled and archived.
    They can neither mark a goal completed nor reopen a completed goal.

    Raises
    ------
    ValueError
        On an unknown status or a forbidden transition.
    """
    current = GoalStatus(current_status)
    target = GoalStatus(requested)
    if target == current:
        return current
    if current == GoalStatus.COMPLETED:
        raise ValueError("A completed goal cannot change status")
    if target not in USER_SELECTABLE_STATUSES:
        raise ValueError(
            f"Status '{target.value}' is set automatically when progress reaches 100"
        )
    return target
