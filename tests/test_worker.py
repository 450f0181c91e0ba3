"""
tests/test_worker.py — Score Refresh Worker Tests
==================================================
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

from questboard.services.leaderboard_service import ScorePassError
from questboard.worker.refresh import refresh_once, run_refresh_loop


# Helper to run async tests without pytest-asyncio
def run_async(coro):
    return asyncio.new_event_loop().run_until_complete(coro)


def _coordinator(result=None, error=None):
    coord = MagicMock()
    coord.recompute_all_scores = AsyncMock(return_value=result or [], side_effect=error)
    return coord


def test_refresh_once_returns_ranked_count():
    coord = _coordinator(result=[object(), object()])
    cache = MagicMock()
    assert run_async(refresh_once(coord, cache)) == 2
    cache.reload.assert_called_once()


def test_refresh_once_survives_failed_pass():
    coord = _coordinator(error=ScorePassError("db down"))
    assert run_async(refresh_once(coord)) is None


def test_refresh_once_scores_with_stale_settings_when_reload_fails():
    coord = _coordinator(result=[object()])
    cache = MagicMock()
    cache.reload.side_effect = RuntimeError("settings table missing")
    assert run_async(refresh_once(coord, cache)) == 1
    coord.recompute_all_scores.assert_awaited_once()


def test_loop_runs_until_stopped():
    coord = _coordinator(result=[])

    async def _inner():
        stop = asyncio.Event()
        task = asyncio.create_task(
            run_refresh_loop(coord, interval_seconds=0.01, stop=stop),
        )
        while coord.recompute_all_scores.await_count < 3:
            await asyncio.sleep(0.01)
        stop.set()
        await asyncio.wait_for(task, timeout=1)

    run_async(_inner())
    assert coord.recompute_all_scores.await_count >= 3
