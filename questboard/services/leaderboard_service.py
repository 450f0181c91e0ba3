"""
questboard.services.leaderboard_service — Leaderboard Coordinator
==================================================================

Serves ranked leaderboards from one of two paths that must agree:

1. **Store path** — read the precomputed ``score_records`` cache, filter,
   sort by normalized score, cap to the page size.
2. **Recompute path** — load every eligible profile's activity, score each
   member (:mod:`questboard.engine.scoring`), normalize and rank the whole
   population (:mod:`questboard.engine.ranking`), then write the ranked set
   back to the store.

Both paths share the same scoring functions; only the data sourcing
differs.  The store path falls back to recomputation when the store is
unreachable, empty, stale, or holds rows from more than one pass.

Failure rules for a score pass:

* eligible-profile fetch fails → :class:`ScorePassError`
* one profile's data fails to load → that profile is logged and excluded
* every eligible profile fails → :class:`ScorePassError`
* the pass exceeds its timeout → :class:`ScorePassTimeout`
* write-back fails → logged; the in-memory ranking is still returned
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from questboard.constants import MAX_LEADERBOARD_LIMIT
from questboard.database.engine import run_db
from questboard.database.models import LikeTarget
from questboard.engine.ranking import ScoredProfile, normalize_and_rank
from questboard.engine.scoring import (
    MetricValue,
    PostActivity,
    ScoringWeights,
    SubScores,
    UserActivity,
    score_user,
)
from questboard.services.sources import (
    ActivitySource,
    ProfileRow,
    ScoreRecordView,
    ScoreStore,
    SqlActivitySource,
    SqlScoreStore,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from questboard.config import QuestboardConfig
    from questboard.engine.cache import ConfigCache

logger = logging.getLogger(__name__)


class ScorePassError(RuntimeError):
    """No ranking could be produced for the population."""


class ScorePassTimeout(ScorePassError):
    """The score pass did not finish within its time budget."""


# ---------------------------------------------------------------------------
# Request / response shapes
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class LeaderboardFilters:
    branch: str | None = None
    year: int | None = None
    section: str | None = None

    def matches(self, record: ScoreRecordView) -> bool:
        if self.branch and record.branch != self.branch:
            return False
        if self.year is not None and record.year != self.year:
            return False
        if self.section and record.section != self.section:
            return False
        return True

    def to_dict(self) -> dict:
        return {"branch": self.branch, "year": self.year, "section": self.section}


@dataclass(frozen=True, slots=True)
class LeaderboardPage:
    entries: list[ScoreRecordView]
    total: int
    served_from: str  # "store" | "recompute"
    filters: LeaderboardFilters


@dataclass(frozen=True, slots=True)
class _LoadedProfile:
    profile: ProfileRow
    activity: UserActivity
    goal_count: int


# ---------------------------------------------------------------------------
# Per-profile loading (synchronous, runs on a worker thread)
# ---------------------------------------------------------------------------
def load_profile_activity(source: ActivitySource, profile: ProfileRow) -> _LoadedProfile:
    """Fetch everything needed to score *profile*.

    Any fetch error propagates; a profile is never scored on partial data.
    """
    pid = profile.id
    goals = source.fetch_goals([pid])
    metrics = source.fetch_metrics([g.id for g in goals])
    posts = source.fetch_posts([pid])
    post_likes = source.fetch_like_counts(LikeTarget.POST, [p.id for p in posts])
    profile_likes = source.fetch_like_counts(LikeTarget.PROFILE, [pid])
    followers = source.fetch_follower_counts([pid])

    metrics_by_goal: dict[int, list[MetricValue]] = {g.id: [] for g in goals}
    for m in metrics:
        metrics_by_goal.setdefault(m.goal_id, []).append(
            MetricValue(value=m.value, target=m.target)
        )

    activity = UserActivity(
        profile_id=pid,
        goal_statuses=tuple(g.status for g in goals),
        posts=tuple(
            PostActivity(is_published=p.is_published, like_count=post_likes.get(p.id, 0))
            for p in posts
        ),
        metrics_by_goal=metrics_by_goal,
        profile_likes_received=profile_likes.get(pid, 0),
        follower_count=followers.get(pid, 0),
    )
    return _LoadedProfile(profile=profile, activity=activity, goal_count=len(goals))


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------
class LeaderboardCoordinator:
    """Cache-or-recompute leaderboard service.

    Usage::

        coordinator = LeaderboardCoordinator.from_engine(engine, cfg, cache)
        page = await coordinator.get_ranked_leaderboard(
            LeaderboardFilters(branch="CSE"), prefer_cache=True,
        )
        records = await coordinator.recompute_all_scores()
    """

    def __init__(
        self,
        source: ActivitySource,
        store: ScoreStore,
        *,
        weights: ScoringWeights | Callable[[], ScoringWeights] | None = None,
        limit: int = 100,
        timeout: float = 30.0,
        concurrency: int = 8,
        stale_after: float = 86400,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._source = source
        self._store = store
        self._weights = weights or ScoringWeights()
        self._limit = max(1, min(limit, MAX_LEADERBOARD_LIMIT))
        self._timeout = timeout
        self._concurrency = max(concurrency, 1)
        self._stale_after = stale_after
        self._clock = clock or (lambda: datetime.now(UTC))

    @classmethod
    def from_engine(
        cls,
        engine: Engine,
        cfg: QuestboardConfig,
        cache: ConfigCache | None = None,
    ) -> LeaderboardCoordinator:
        """Wire the SQL source/store with config values and cached weights."""
        return cls(
            SqlActivitySource(engine),
            SqlScoreStore(engine),
            weights=lambda: ScoringWeights.from_cache(cache),
            limit=cfg.leaderboard_limit,
            timeout=cfg.score_pass_timeout_seconds,
            concurrency=cfg.fetch_concurrency,
            stale_after=cfg.stale_after_seconds,
        )

    def _current_weights(self) -> ScoringWeights:
        if callable(self._weights):
            return self._weights()
        return self._weights

    # -------------------------------------------------------------------
    # Recompute path
    # -------------------------------------------------------------------
    async def recompute_all_scores(self, *, persist: bool = True) -> list[ScoreRecordView]:
        """Run a full score pass and return every ranked record, best first.

        When *persist* is set the result replaces the store contents; a
        failed write is logged and does not affect the return value.
        """
        try:
            records = await asyncio.wait_for(self._score_pass(), timeout=self._timeout)
        except TimeoutError as exc:
            logger.error("Score pass exceeded %.1fs timeout", self._timeout)
            raise ScorePassTimeout(
                f"Score pass did not finish within {self._timeout}s"
            ) from exc

        if persist:
            try:
                await run_db(self._store.upsert_score_store, records)
            except Exception:
                logger.exception(
                    "Score store write-back failed; serving %d in-memory records",
                    len(records),
                )
        return records

    async def _score_pass(self) -> list[ScoreRecordView]:
        try:
            profiles = await run_db(self._source.fetch_eligible_profiles)
        except Exception as exc:
            logger.exception("Score pass aborted: eligible profiles could not be read")
            raise ScorePassError("Eligible profiles could not be read") from exc

        if not profiles:
            logger.info("Score pass complete: no eligible profiles")
            return []

        semaphore = asyncio.Semaphore(self._concurrency)

        async def _load(profile: ProfileRow) -> _LoadedProfile:
            async with semaphore:
                return await run_db(load_profile_activity, self._source, profile)

        results = await asyncio.gather(
            *(_load(p) for p in profiles), return_exceptions=True,
        )

        loaded: list[_LoadedProfile] = []
        excluded: list[int] = []
        for profile, result in zip(profiles, results, strict=True):
            if isinstance(result, Exception):
                excluded.append(profile.id)
                logger.warning(
                    "Excluding profile %d from score pass: %s", profile.id, result,
                    exc_info=result,
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                loaded.append(result)

        if not loaded:
            raise ScorePassError(
                f"All {len(profiles)} eligible profiles failed to load"
            )

        weights = self._current_weights()
        scored = {
            item.profile.id: item for item in loaded
        }
        ranked = normalize_and_rank(
            ScoredProfile(profile_id=pid, scores=score_user(item.activity, weights))
            for pid, item in scored.items()
        )

        computed_at = self._clock()
        records = [
            _to_view(scored[r.profile_id], r.scores, r.total, r.normalized_score, r.rank,
                     computed_at)
            for r in ranked
        ]
        logger.info(
            "Score pass complete: %d ranked, %d excluded", len(records), len(excluded),
        )
        return records

    # -------------------------------------------------------------------
    # Store path
    # -------------------------------------------------------------------
    async def get_ranked_leaderboard(
        self,
        filters: LeaderboardFilters | None = None,
        *,
        prefer_cache: bool = True,
    ) -> LeaderboardPage:
        """Return the filtered, capped leaderboard.

        Reads the store when *prefer_cache* is set and the store is usable;
        otherwise recomputes (and refreshes the store).
        """
        filters = filters or LeaderboardFilters()
        records: list[ScoreRecordView] | None = None
        served_from = "store"

        if prefer_cache:
            records = await self._read_store()
        if records is None:
            records = await self.recompute_all_scores()
            served_from = "recompute"

        matching = [r for r in records if filters.matches(r)]
        matching.sort(key=lambda r: (-r.normalized_score, r.rank, r.profile_id))
        return LeaderboardPage(
            entries=matching[: self._limit],
            total=len(matching),
            served_from=served_from,
            filters=filters,
        )

    async def _read_store(self) -> list[ScoreRecordView] | None:
        """Store contents, or None when the recompute path must be used."""
        try:
            records = await run_db(self._store.read_score_store)
        except Exception:
            logger.warning("Score store unavailable, recomputing", exc_info=True)
            return None

        if not records:
            logger.info("Score store empty, recomputing")
            return None

        stamps = {r.computed_at for r in records}
        if len(stamps) > 1:
            logger.warning(
                "Score store holds %d different pass stamps, recomputing", len(stamps),
            )
            return None

        if self._stale_after > 0:
            age = self._clock() - _as_utc(stamps.pop())
            if age > timedelta(seconds=self._stale_after):
                logger.info("Score store is stale (%s old), recomputing", age)
                return None

        return records


def _as_utc(ts: datetime) -> datetime:
    # SQLite drops tzinfo on read; stamps are always written in UTC.
    return ts.replace(tzinfo=UTC) if ts.tzinfo is None else ts


def _to_view(
    item: _LoadedProfile,
    scores: SubScores,
    total: float,
    normalized: float,
    rank: int,
    computed_at: datetime,
) -> ScoreRecordView:
    p = item.profile
    a = item.activity
    return ScoreRecordView(
        profile_id=p.id,
        username=p.username,
        display_name=p.display_name,
        avatar_url=p.avatar_url,
        branch=p.branch,
        year=p.year,
        section=p.section,
        goal_score=scores.goal_score,
        post_score=scores.post_score,
        metric_score=scores.metric_score,
        engagement_score=scores.engagement_score,
        total_score=total,
        normalized_score=normalized,
        rank=rank,
        goal_count=item.goal_count,
        post_count=a.published_post_count,
        metric_count=a.metric_count,
        follower_count=a.follower_count,
        profile_like_count=a.profile_likes_received,
        computed_at=computed_at,
    )
