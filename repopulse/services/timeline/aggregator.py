"""
Time series aggregation over stored commits.

Builds gap-free per-repository and combined timelines, plus the scalar and
grouped aggregates the stats panel needs, from one date-filtered commit set.
"""

import logging
import uuid as uuid_pkg
from collections import Counter
from collections.abc import Iterable
from datetime import date, datetime, timedelta

from repopulse.config import AllowedRepository
from repopulse.config.periods import STATS_CACHE_TTL, Granularity, TimeRange, get_period
from repopulse.config.repositories import REPO_COLORS
from repopulse.core.database import SessionFactory, get_session
from repopulse.domain import CommitOperations, RepositoryOperations, commit_ops, repository_ops
from repopulse.services.cache import CacheKeys, CacheLayer
from repopulse.services.github import GitHubAPIError, GitHubCommitFetcher, WeeklyActivity
from repopulse.services.timeline.buckets import (
    bucket_key,
    generate_buckets,
    timeline_window,
    window_bounds,
)
from repopulse.services.timeline.labels import format_label, resolve_locale
from repopulse.services.timeline.types import (
    AuthorCommitCount,
    CodeTotals,
    CombinedTimelinePoint,
    RepoTimeline,
    TimelinePoint,
    TimelineResult,
)

logger = logging.getLogger(__name__)

RepoKey = tuple[str, str]


def count_by_bucket(timestamps: Iterable[datetime], granularity: Granularity) -> Counter[str]:
    """Number of timestamps per bucket key."""
    return Counter(bucket_key(moment, granularity) for moment in timestamps)


def activity_bucket_counts(
    weeks: list[WeeklyActivity],
    granularity: Granularity,
    first: date,
    last: date,
) -> Counter[str]:
    """
    Re-bucket GitHub's commit_activity series onto our buckets.

    GitHub weeks start on Sunday; expanding each week's per-day array and
    re-keying every day lets daily and Monday-aligned weekly buckets line up.
    """
    counts: Counter[str] = Counter()
    for week in weeks:
        week_day = week.week.date()
        for offset, commits in enumerate(week.days):
            day = week_day + timedelta(days=offset)
            if first <= day <= last and commits:
                counts[bucket_key(day, granularity)] += commits
    return counts


def build_timelines(
    repos: list[AllowedRepository],
    counts_by_repo: dict[RepoKey, Counter[str]],
    buckets: list[date],
    granularity: Granularity,
    locale: str | None = None,
) -> tuple[list[RepoTimeline], list[CombinedTimelinePoint]]:
    """
    Left-merge bucket counts onto the full bucket list.

    Every repository gets exactly one point per bucket (zero when empty);
    colors are assigned in request order. Counts are keyed by (owner, name)
    while the returned series are labelled by repository name.
    """
    labels = {day: format_label(day, granularity, locale) for day in buckets}
    keys = {day: day.isoformat() for day in buckets}

    timelines: list[RepoTimeline] = []
    for index, repo in enumerate(repos):
        counts = counts_by_repo.get(repo.key, Counter())
        points = [
            TimelinePoint(date=keys[day], label=labels[day], commits=counts.get(keys[day], 0))
            for day in buckets
        ]
        timelines.append(
            RepoTimeline(
                repo_name=repo.name,
                display_name=repo.display_name,
                color=REPO_COLORS[index % len(REPO_COLORS)],
                points=points,
                total_commits=sum(p.commits for p in points),
            )
        )

    combined = [
        CombinedTimelinePoint(
            date=keys[day],
            label=labels[day],
            counts={
                repo.name: counts_by_repo.get(repo.key, Counter()).get(keys[day], 0)
                for repo in repos
            },
        )
        for day in buckets
    ]
    return timelines, combined


class TimeSeriesAggregator:
    """Read-only aggregates over the commit store."""

    def __init__(
        self,
        session_factory: SessionFactory = get_session,
        *,
        repositories: RepositoryOperations = repository_ops,
        commits: CommitOperations = commit_ops,
        fetcher: GitHubCommitFetcher | None = None,
        cache: CacheLayer | None = None,
    ):
        self._session_factory = session_factory
        self.repositories = repositories
        self.commits = commits
        self.fetcher = fetcher
        self.cache = cache

    async def _repository_ids(self, repos: list[AllowedRepository]) -> dict[RepoKey, uuid_pkg.UUID]:
        """Stored repository ids keyed by (owner, name)."""
        async with self._session_factory() as db:
            stored = await self.repositories.get_many_by_keys(db, [r.key for r in repos])
        return {(repo.owner, repo.name): repo.id for repo in stored}

    async def timeline(
        self,
        repos: list[AllowedRepository],
        time_range: TimeRange,
        locale: str | None = None,
        now: datetime | None = None,
        merge_activity: bool = True,
    ) -> TimelineResult:
        """
        Gap-free timelines for the requested repositories.

        Repositories without stored commits are filled from GitHub's
        commit_activity series when a fetcher is configured.
        """
        period = get_period(time_range)
        first, last = timeline_window(time_range, now)
        buckets = generate_buckets(first, last, period.granularity)
        lower, upper = window_bounds(time_range, now)

        ids_by_key = await self._repository_ids(repos)
        counts_by_repo: dict[RepoKey, Counter[str]] = {}

        async with self._session_factory() as db:
            rows = await self.commits.get_timestamps(db, list(ids_by_key.values()), lower, upper)
            stored_counts = await self.commits.count_by_repository(db, list(ids_by_key.values()))

        key_by_id = {repo_id: key for key, repo_id in ids_by_key.items()}
        timestamps_by_repo: dict[RepoKey, list[datetime]] = {}
        for repo_id, committed_at in rows:
            timestamps_by_repo.setdefault(key_by_id[repo_id], []).append(committed_at)
        for key, timestamps in timestamps_by_repo.items():
            counts_by_repo[key] = count_by_bucket(timestamps, period.granularity)

        if merge_activity and self.fetcher is not None:
            for repo in repos:
                repo_id = ids_by_key.get(repo.key)
                if repo_id is not None and stored_counts.get(repo_id):
                    continue
                counts_by_repo[repo.key] = await self._activity_counts(
                    self.fetcher, repo, period.granularity, lower.date(), last
                )

        timelines, combined = build_timelines(
            repos, counts_by_repo, buckets, period.granularity, resolve_locale(locale)
        )
        return TimelineResult(
            range=time_range,
            granularity=period.granularity,
            timelines=timelines,
            combined=combined,
            min_data_points=period.min_data_points,
        )

    async def _activity_counts(
        self,
        fetcher: GitHubCommitFetcher,
        repo: AllowedRepository,
        granularity: Granularity,
        first: date,
        last: date,
    ) -> Counter[str]:
        async def produce() -> list[WeeklyActivity]:
            return await fetcher.fetch_commit_activity(repo.owner, repo.name)

        try:
            if self.cache is not None:
                result = await self.cache.with_cache(
                    CacheKeys.commit_activity(repo.owner, repo.name),
                    STATS_CACHE_TTL,
                    produce,
                    list[WeeklyActivity],
                )
                weeks = result.data
            else:
                weeks = await produce()
        except GitHubAPIError as e:
            logger.warning(f"No commit activity for {repo.full_name}: {e.message}")
            return Counter()

        return activity_bucket_counts(weeks, granularity, first, last)

    async def total_commits(
        self,
        repos: list[AllowedRepository],
        time_range: TimeRange,
        now: datetime | None = None,
    ) -> int:
        """Stored commits inside the timeline window."""
        ids_by_key = await self._repository_ids(repos)
        lower, upper = window_bounds(time_range, now)
        async with self._session_factory() as db:
            return await self.commits.count(db, list(ids_by_key.values()), lower, upper)

    async def code_totals(
        self,
        repos: list[AllowedRepository],
        time_range: TimeRange,
        now: datetime | None = None,
    ) -> CodeTotals:
        ids_by_key = await self._repository_ids(repos)
        lower, upper = window_bounds(time_range, now)
        async with self._session_factory() as db:
            additions, deletions = await self.commits.code_totals(
                db, list(ids_by_key.values()), lower, upper
            )
        return CodeTotals(additions=additions, deletions=deletions)

    async def author_commit_counts(
        self,
        repos: list[AllowedRepository],
        time_range: TimeRange,
        now: datetime | None = None,
    ) -> list[AuthorCommitCount]:
        """Commits per author login, most active first."""
        ids_by_key = await self._repository_ids(repos)
        lower, upper = window_bounds(time_range, now)
        async with self._session_factory() as db:
            counts = await self.commits.author_commit_counts(
                db, list(ids_by_key.values()), lower, upper
            )
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [AuthorCommitCount(login=login, commits=commits) for login, commits in ranked]
