"""
Read-side facade.

Combines the commit store, the cache and GitHub into the responses the
dashboard reads: commit lists, single commits, contributors, languages,
timelines and the multi-repository stats summary. Repositories that have
never been synced are served from GitHub so the dashboard is usable
before the first sync completes.
"""

import logging
import uuid as uuid_pkg
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, TypeVar

from repopulse.config import AllowedRepository, RepositoryAllowList, TimeRange, allow_list, get_period
from repopulse.config.periods import (
    CONTRIBUTORS_CACHE_TTL,
    DETAIL_CACHE_TTL,
    STATS_CACHE_TTL,
    get_ttl_for_range,
)
from repopulse.core.database import SessionFactory, get_session
from repopulse.core.exceptions import InvalidReposError, ServiceUnavailableError
from repopulse.domain import CommitOperations, RepositoryOperations, commit_ops, repository_ops
from repopulse.models import Commit
from repopulse.services.cache import CacheKeys, CacheLayer, get_cache_layer
from repopulse.services.github import (
    CodeFrequencyWeek,
    CommitDetail,
    CommitSummary,
    ContributorInfo,
    GitHubAPIError,
    GitHubCommitFetcher,
    LanguageStat,
    RepoInfo,
)
from repopulse.services.github.constants import DEFAULT_LANGUAGE_COLOR
from repopulse.services.query.types import (
    CommitItem,
    CommitsResponse,
    ContributorStat,
    RepoCommits,
    RepoStats,
    StatsResponse,
)
from repopulse.services.query.validator import normalize_search, validate_sha
from repopulse.services.timeline import (
    RepoKey,
    TimelineResult,
    TimeSeriesAggregator,
    resolve_locale,
    start_date,
    window_bounds,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_LISTED_COMMITS = 100
MAX_REMOTE_PAGES = 20
TOP_CONTRIBUTORS = 10


def commit_item(commit: Commit, repo: AllowedRepository) -> CommitItem:
    return CommitItem(
        sha=commit.sha,
        short_sha=commit.short_sha,
        message=commit.message,
        message_title=commit.message_title,
        committed_at=commit.committed_at,
        author=commit.author,
        author_login=commit.author_login,
        author_avatar=commit.author_avatar,
        additions=commit.additions,
        deletions=commit.deletions,
        files_changed=commit.files_changed,
        is_merge_commit=commit.is_merge_commit,
        html_url=commit.html_url,
        repo_owner=repo.owner,
        repo_name=repo.name,
        repo_display_name=repo.display_name,
    )


def remote_commit_item(commit: CommitSummary, repo: AllowedRepository) -> CommitItem:
    """List entry for a commit that only exists upstream (no line stats)."""
    return CommitItem(
        sha=commit.sha,
        short_sha=commit.short_sha,
        message=commit.message,
        message_title=commit.message_title,
        committed_at=commit.committed_at,
        author=commit.author,
        author_login=commit.author_login,
        author_avatar=commit.author_avatar,
        is_merge_commit=commit.parent_count > 1,
        html_url=commit.html_url,
        repo_owner=repo.owner,
        repo_name=repo.name,
        repo_display_name=repo.display_name,
    )


def merge_languages(per_repo: list[list[LanguageStat]]) -> list[LanguageStat]:
    """Sum bytes per language across repositories and recompute percentages."""
    totals: dict[str, int] = {}
    colors: dict[str, str] = {}
    for languages in per_repo:
        for language in languages:
            totals[language.name] = totals.get(language.name, 0) + language.bytes
            colors.setdefault(language.name, language.color or DEFAULT_LANGUAGE_COLOR)

    grand_total = sum(totals.values())
    merged = [
        LanguageStat(
            name=name,
            bytes=size,
            percentage=round(size / grand_total * 100, 1) if grand_total else 0.0,
            color=colors[name],
        )
        for name, size in totals.items()
    ]
    merged.sort(key=lambda x: x.bytes, reverse=True)
    return merged


def merge_repo_info(infos: list[RepoInfo]) -> RepoStats:
    """Sum counters; latest push wins; default branch of the first repository."""
    pushes = [info.pushed_at for info in infos if info.pushed_at is not None]
    return RepoStats(
        stars=sum(info.stars for info in infos),
        forks=sum(info.forks for info in infos),
        issues=sum(info.open_issues for info in infos),
        size=sum(info.size for info in infos),
        last_push=max(pushes) if pushes else None,
        default_branch=infos[0].default_branch if infos else None,
    )


def rank_contributors(
    counts: dict[str, int],
    upstream: dict[str, ContributorInfo],
    limit: int = TOP_CONTRIBUTORS,
) -> list[ContributorStat]:
    """Top contributors by commit count; zero counts are dropped."""
    ranked = sorted(
        ((login, n) for login, n in counts.items() if n > 0),
        key=lambda item: (-item[1], item[0]),
    )
    contributors: list[ContributorStat] = []
    for login, commits in ranked[:limit]:
        info = upstream.get(login)
        contributors.append(
            ContributorStat(
                login=login,
                avatar_url=(info and info.avatar_url) or f"https://github.com/{login}.png?size=100",
                profile_url=(info and info.profile_url) or f"https://github.com/{login}",
                commits=commits,
            )
        )
    return contributors


class QueryFacade:
    """Dashboard read operations over the store, the cache and GitHub."""

    def __init__(
        self,
        session_factory: SessionFactory = get_session,
        *,
        fetcher: GitHubCommitFetcher | None = None,
        cache: CacheLayer | None = None,
        aggregator: TimeSeriesAggregator | None = None,
        repositories: RepositoryOperations = repository_ops,
        commits: CommitOperations = commit_ops,
        allowed: RepositoryAllowList | None = None,
    ):
        self._session_factory = session_factory
        self.fetcher = fetcher or GitHubCommitFetcher()
        self.cache = cache if cache is not None else get_cache_layer()
        self.repositories = repositories
        self.commits = commits
        self.allowed = allowed if allowed is not None else allow_list
        self.aggregator = aggregator or TimeSeriesAggregator(
            session_factory,
            repositories=repositories,
            commits=commits,
            fetcher=self.fetcher,
            cache=self.cache,
        )

    async def _cached(
        self,
        key: str,
        ttl_seconds: int,
        producer: Callable[[], Awaitable[T]],
        type_: Any,
    ) -> T:
        result = await self.cache.with_cache(key, ttl_seconds, producer, type_)
        return result.data

    def _require_allowed(self, owner: str, name: str) -> AllowedRepository:
        repo = self.allowed.get(owner, name)
        if repo is None:
            raise InvalidReposError()
        return repo

    async def _stored_repositories(
        self, repos: list[AllowedRepository]
    ) -> tuple[dict[RepoKey, uuid_pkg.UUID], dict[RepoKey, int]]:
        """Stored ids and all-time commit counts, both keyed by (owner, name)."""
        async with self._session_factory() as db:
            stored = await self.repositories.get_many_by_keys(db, [r.key for r in repos])
            ids_by_key = {(repo.owner, repo.name): repo.id for repo in stored}
            counts = await self.commits.count_by_repository(db, list(ids_by_key.values()))
        return ids_by_key, {key: counts.get(repo_id, 0) for key, repo_id in ids_by_key.items()}

    # ─────────────────────────────────────────────────────────────────────────
    # Commits
    # ─────────────────────────────────────────────────────────────────────────

    async def commits_list(
        self,
        repos: list[AllowedRepository],
        time_range: TimeRange,
        search: str | None = None,
        now: datetime | None = None,
    ) -> CommitsResponse:
        """
        Commits of the selected repositories within the range, newest first.

        Each commit is tagged with its repository. With a search string only
        commits whose SHA starts with it are returned. Repositories that were
        never synced are listed from GitHub; if that fails too they are
        reported in `unavailable`.
        """
        since = start_date(time_range, now)
        prefix = normalize_search(search)
        ids_by_key, stored_counts = await self._stored_repositories(repos)

        async with self._session_factory() as db:
            rows = await self.commits.search(db, list(ids_by_key.values()), since, prefix)

        repo_by_id = {ids_by_key[r.key]: r for r in repos if r.key in ids_by_key}
        groups = {repo.key: RepoCommits(display_name=repo.display_name) for repo in repos}
        items: list[CommitItem] = []

        for commit in rows:
            repo = repo_by_id[commit.repository_id]
            items.append(commit_item(commit, repo))

        unavailable: list[str] = []
        for repo in repos:
            if stored_counts.get(repo.key):
                continue
            try:
                remote = await self._remote_commits(repo, time_range, since)
            except GitHubAPIError as e:
                logger.warning(f"Commits unavailable for {repo.full_name}: {e.message}")
                unavailable.append(repo.full_name)
                continue
            for summary in remote:
                if prefix and not summary.sha.lower().startswith(prefix):
                    continue
                items.append(remote_commit_item(summary, repo))

        items.sort(key=lambda item: item.committed_at, reverse=True)
        for item in items:
            group = groups[(item.repo_owner, item.repo_name)]
            group.commits.append(item)
            group.total += 1

        return CommitsResponse(
            commits_by_repo={repo.name: groups[repo.key] for repo in repos},
            all_commits=items[:MAX_LISTED_COMMITS],
            total=len(items),
            unavailable=unavailable,
        )

    async def _remote_commits(
        self, repo: AllowedRepository, time_range: TimeRange, since: datetime
    ) -> list[CommitSummary]:
        async def produce() -> list[CommitSummary]:
            return await self.fetcher.fetch_all_commits(
                repo.owner, repo.name, since=since, max_pages=MAX_REMOTE_PAGES
            )

        return await self._cached(
            CacheKeys.commit_list(repo.owner, repo.name, time_range.value),
            get_ttl_for_range(time_range),
            produce,
            list[CommitSummary],
        )

    async def commit_detail(self, owner: str, name: str, sha: str) -> CommitItem | None:
        """A stored commit of an allow-listed repository, or None."""
        repo = self._require_allowed(owner, name)
        sha = validate_sha(sha)

        async with self._session_factory() as db:
            found = await self.commits.get_with_repository(db, owner, name, sha)
        if found is None:
            return None
        commit, _ = found
        return commit_item(commit, repo)

    async def commit_detail_or_fetch(
        self, owner: str, name: str, sha: str
    ) -> CommitItem | CommitDetail:
        """
        A commit from the store, or from GitHub (with per-file changes) when
        it has not been synced yet.

        Raises:
            GitHubAPIError: the commit is neither stored nor fetchable
        """
        stored = await self.commit_detail(owner, name, sha)
        if stored is not None:
            return stored

        sha = validate_sha(sha)

        async def produce() -> CommitDetail:
            return await self.fetcher.fetch_commit_detail(owner, name, sha)

        return await self._cached(
            CacheKeys.commit_detail(owner, name, sha), DETAIL_CACHE_TTL, produce, CommitDetail
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Upstream metadata
    # ─────────────────────────────────────────────────────────────────────────

    async def _repo_info(self, repo: AllowedRepository) -> RepoInfo:
        async def produce() -> RepoInfo:
            return await self.fetcher.fetch_repo_info(repo.owner, repo.name)

        return await self._cached(
            CacheKeys.repo_info(repo.owner, repo.name), STATS_CACHE_TTL, produce, RepoInfo
        )

    async def _repo_languages(self, repo: AllowedRepository) -> list[LanguageStat]:
        async def produce() -> list[LanguageStat]:
            return await self.fetcher.fetch_languages(repo.owner, repo.name)

        return await self._cached(
            CacheKeys.languages(repo.owner, repo.name), STATS_CACHE_TTL, produce, list[LanguageStat]
        )

    async def _repo_contributors(self, repo: AllowedRepository) -> list[ContributorInfo]:
        async def produce() -> list[ContributorInfo]:
            return await self.fetcher.fetch_contributors(repo.owner, repo.name, TOP_CONTRIBUTORS)

        return await self._cached(
            CacheKeys.contributors(repo.owner, repo.name),
            CONTRIBUTORS_CACHE_TTL,
            produce,
            list[ContributorInfo],
        )

    async def _repo_code_frequency(self, repo: AllowedRepository) -> list[CodeFrequencyWeek]:
        async def produce() -> list[CodeFrequencyWeek]:
            return await self.fetcher.fetch_code_frequency(repo.owner, repo.name)

        return await self._cached(
            CacheKeys.code_frequency(repo.owner, repo.name),
            STATS_CACHE_TTL,
            produce,
            list[CodeFrequencyWeek],
        )

    async def languages(self, repos: list[AllowedRepository]) -> list[LanguageStat]:
        """Language breakdown merged across repositories; failures are skipped."""
        per_repo: list[list[LanguageStat]] = []
        for repo in repos:
            try:
                per_repo.append(await self._repo_languages(repo))
            except GitHubAPIError as e:
                logger.warning(f"Languages unavailable for {repo.full_name}: {e.message}")
        return merge_languages(per_repo)

    async def contributors(
        self,
        repos: list[AllowedRepository],
        time_range: TimeRange,
        now: datetime | None = None,
    ) -> list[ContributorStat]:
        """
        Top contributors across repositories.

        Commit counts come from the store for synced repositories and from
        GitHub's contributor ranking for the others. Avatars and profile URLs
        come from GitHub when known and are synthesized otherwise.
        """
        _, stored_counts = await self._stored_repositories(repos)

        upstream: dict[str, ContributorInfo] = {}
        counts: dict[str, int] = {
            entry.login: entry.commits
            for entry in await self.aggregator.author_commit_counts(repos, time_range, now)
        }

        for repo in repos:
            try:
                infos = await self._repo_contributors(repo)
            except GitHubAPIError as e:
                logger.warning(f"Contributors unavailable for {repo.full_name}: {e.message}")
                continue
            synced = bool(stored_counts.get(repo.key))
            for info in infos:
                upstream.setdefault(info.login, info)
                if not synced:
                    counts[info.login] = counts.get(info.login, 0) + info.contributions

        return rank_contributors(counts, upstream)

    # ─────────────────────────────────────────────────────────────────────────
    # Timelines and stats
    # ─────────────────────────────────────────────────────────────────────────

    async def timeline(
        self,
        repos: list[AllowedRepository],
        time_range: TimeRange,
        locale: str | None = None,
        now: datetime | None = None,
    ) -> TimelineResult:
        locale = resolve_locale(locale)

        async def produce() -> TimelineResult:
            return await self.aggregator.timeline(repos, time_range, locale, now)

        return await self._cached(
            CacheKeys.multi("timeline", [r.key for r in repos], time_range.value, locale),
            get_ttl_for_range(time_range),
            produce,
            TimelineResult,
        )

    async def stats(
        self,
        repos: list[AllowedRepository],
        time_range: TimeRange,
        locale: str | None = None,
        now: datetime | None = None,
    ) -> StatsResponse:
        """
        Multi-repository summary: repository counters, commit and line totals,
        languages, contributors and timelines.

        Raises:
            ServiceUnavailableError: neither GitHub nor the store has data
                for any of the repositories
        """
        locale = resolve_locale(locale)

        async def produce() -> StatsResponse:
            return await self._build_stats(repos, time_range, locale, now)

        return await self._cached(
            CacheKeys.multi("stats", [r.key for r in repos], time_range.value, locale),
            min(STATS_CACHE_TTL, get_ttl_for_range(time_range)),
            produce,
            StatsResponse,
        )

    async def _build_stats(
        self,
        repos: list[AllowedRepository],
        time_range: TimeRange,
        locale: str,
        now: datetime | None,
    ) -> StatsResponse:
        _, stored_counts = await self._stored_repositories(repos)

        infos: list[RepoInfo] = []
        for repo in repos:
            try:
                infos.append(await self._repo_info(repo))
            except GitHubAPIError as e:
                logger.warning(f"Repository info unavailable for {repo.full_name}: {e.message}")

        if not infos and not any(stored_counts.values()):
            raise ServiceUnavailableError("No data available for the selected repositories")

        timeline = await self.aggregator.timeline(repos, time_range, locale, now)
        code = await self.aggregator.code_totals(repos, time_range, now)

        stats = merge_repo_info(infos)
        stats.total_commits = await self.aggregator.total_commits(repos, time_range, now)
        stats.total_additions = code.additions
        stats.total_deletions = code.deletions

        lower, upper = window_bounds(time_range, now)
        for repo, repo_timeline in zip(repos, timeline.timelines, strict=True):
            if stored_counts.get(repo.key):
                continue
            # Never synced: totals come from GitHub's precomputed statistics
            stats.total_commits += repo_timeline.total_commits
            try:
                weeks = await self._repo_code_frequency(repo)
            except GitHubAPIError as e:
                logger.warning(f"Code frequency unavailable for {repo.full_name}: {e.message}")
                continue
            for week in weeks:
                if lower <= week.week < upper:
                    stats.total_additions += week.additions
                    stats.total_deletions += week.deletions

        return StatsResponse(
            range=time_range,
            granularity=get_period(time_range).granularity,
            stats=stats,
            languages=await self.languages(repos),
            contributors=await self.contributors(repos, time_range, now),
            timelines=timeline.timelines,
            combined=timeline.combined,
        )
