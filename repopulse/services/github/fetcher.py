"""
GitHub commit fetcher.

Read-only, allow-list-guarded access to the GitHub REST API:
- Paginated commit lists and single commit detail
- Asynchronously computed /stats/* series (202 polling with backoff)
- Repository metadata, languages and contributors

Every public method checks the allow-list before touching the network.
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import httpx

from repopulse.config import RepositoryAllowList, allow_list, settings
from repopulse.models.commit import message_title, short_sha
from repopulse.services.github.constants import (
    API_VERSION,
    CONTRIBUTOR_FALLBACK_SAMPLE,
    DEFAULT_LANGUAGE_COLOR,
    GITHUB_LANGUAGE_COLORS,
    MAX_PER_PAGE,
)
from repopulse.services.github.exceptions import (
    GitHubNetworkError,
    GitHubServiceUnavailable,
    GitHubUnauthorized,
    RepositoryForbidden,
)
from repopulse.services.github.helpers import (
    format_github_datetime,
    handle_error_response,
    parse_github_datetime,
)
from repopulse.services.github.http_client import get_github_client
from repopulse.services.github.types import (
    AggregateStat,
    BackoffPolicy,
    CodeFrequencyWeek,
    CommitDetail,
    CommitListPage,
    CommitSummary,
    ContributorInfo,
    FileChange,
    LanguageStat,
    PollState,
    RepoInfo,
    WeeklyActivity,
)

logger = logging.getLogger(__name__)

GITHUB_WEB_URL = "https://github.com"
GITHUB_USERNAME_RE = re.compile(r"^[a-zA-Z0-9](?:[a-zA-Z0-9]|-(?=[a-zA-Z0-9])){0,38}$")

Sleep = Callable[[float], Awaitable[Any]]


def default_backoff() -> BackoffPolicy:
    return BackoffPolicy(
        base_delay=settings.stat_poll_base_delay,
        multiplier=settings.stat_poll_multiplier,
        max_delay=settings.stat_poll_max_delay,
        max_attempts=settings.stat_poll_max_attempts,
    )


def parse_commit_summary(item: dict[str, Any]) -> CommitSummary:
    """Convert one item of the commit list endpoint to CommitSummary."""
    commit = item.get("commit") or {}
    git_author = commit.get("author") or {}
    committer = commit.get("committer") or {}
    account = item.get("author") or {}
    message = commit.get("message") or ""
    parents = item.get("parents")
    sha = item["sha"]

    committed_at = parse_github_datetime(git_author.get("date") or committer.get("date"))

    return CommitSummary(
        sha=sha,
        short_sha=short_sha(sha),
        message=message,
        message_title=message_title(message),
        committed_at=committed_at or datetime.now(UTC),
        author=git_author.get("name") or "Unknown",
        author_email=git_author.get("email") or "",
        author_login=account.get("login"),
        author_avatar=account.get("avatar_url"),
        html_url=item.get("html_url"),
        parent_count=len(parents) if parents is not None else 1,
    )


def contributors_from_commits(commits: list[CommitSummary], limit: int = 10) -> list[ContributorInfo]:
    """
    Derive a contributor ranking from a commit sample.

    Used when /contributors is empty (GitHub computes it lazily). Authors
    are keyed by login, or by email for commits without a GitHub account.
    """
    by_key: dict[str, ContributorInfo] = {}

    for commit in commits:
        key = commit.author_login or commit.author_email
        existing = by_key.get(key)
        if existing:
            existing.contributions += 1
            continue

        username = commit.author_login or commit.author
        if commit.author_login:
            profile_url = f"{GITHUB_WEB_URL}/{commit.author_login}"
        elif GITHUB_USERNAME_RE.match(username):
            profile_url = f"{GITHUB_WEB_URL}/{username}"
        else:
            profile_url = f"{GITHUB_WEB_URL}/search?q={quote(commit.author_email)}&type=users"

        by_key[key] = ContributorInfo(
            login=username,
            avatar_url=commit.author_avatar or f"{GITHUB_WEB_URL}/{username}.png?size=100",
            contributions=1,
            profile_url=profile_url,
        )

    ranked = sorted(by_key.values(), key=lambda c: c.contributions, reverse=True)
    return ranked[:limit]


class GitHubCommitFetcher:
    """
    Authenticated client for the commit-related GitHub endpoints.

    Uses the shared HTTP client singleton for connection pooling. The
    allow-list, backoff policy and sleep function are injectable so tests
    can run without waiting.
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str | None = None,
        repositories: RepositoryAllowList | None = None,
        backoff: BackoffPolicy | None = None,
        sleep: Sleep | None = None,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
    ):
        self.token = settings.github_token if token is None else token
        self.base_url = (base_url or settings.github_api_url).rstrip("/")
        self.repositories = repositories if repositories is not None else allow_list
        self.backoff = backoff or default_backoff()
        self._sleep: Sleep = sleep or asyncio.sleep
        self._client_factory = client_factory or get_github_client

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }

    def _ensure_allowed(self, owner: str, name: str) -> None:
        if not self.repositories.contains(owner, name):
            logger.warning(f"Refusing GitHub access to non-allow-listed repository {owner}/{name}")
            raise RepositoryForbidden(f"Repository not allowed: {owner}/{name}")

    async def _get(
        self,
        path: str,
        repo_name: str,
        params: dict[str, str | int] | None = None,
        timeout: float = 15.0,
    ) -> httpx.Response:
        """Issue a GET, mapping transport faults to GitHubNetworkError."""
        if not self.token:
            raise GitHubUnauthorized("GitHub token is not configured")

        client = self._client_factory()
        try:
            return await client.get(
                f"{self.base_url}{path}",
                headers=self._headers,
                params=params,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise GitHubNetworkError(f"Timed out contacting GitHub for {repo_name}") from e
        except httpx.RequestError as e:
            raise GitHubNetworkError(f"Network error contacting GitHub for {repo_name}: {e}") from e

    async def _get_json(
        self,
        path: str,
        repo_name: str,
        params: dict[str, str | int] | None = None,
        timeout: float = 15.0,
    ) -> Any:
        response = await self._get(path, repo_name, params=params, timeout=timeout)
        handle_error_response(response, repo_name)
        if response.status_code == 204:
            return None
        return response.json()

    async def fetch_commit_list(
        self,
        owner: str,
        name: str,
        page: int = 1,
        per_page: int = MAX_PER_PAGE,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> CommitListPage:
        """
        Fetch one page of commits, newest first.

        Args:
            owner: Repository owner
            name: Repository name
            page: Page number (1-indexed)
            per_page: Items per page (max 100)
            since: Only commits after this instant
            until: Only commits before this instant

        Returns:
            CommitListPage; has_more is True only when the page came back full
        """
        self._ensure_allowed(owner, name)

        per_page = min(per_page, MAX_PER_PAGE)
        params: dict[str, str | int] = {"page": page, "per_page": per_page}
        if since:
            params["since"] = format_github_datetime(since)
        if until:
            params["until"] = format_github_datetime(until)

        data = await self._get_json(f"/repos/{owner}/{name}/commits", f"{owner}/{name}", params=params)
        items: list[dict[str, Any]] = data or []

        return CommitListPage(
            commits=[parse_commit_summary(item) for item in items],
            has_more=len(items) == per_page,
        )

    async def fetch_all_commits(
        self,
        owner: str,
        name: str,
        since: datetime | None = None,
        until: datetime | None = None,
        max_pages: int | None = None,
        page_delay: float | None = None,
        per_page: int = MAX_PER_PAGE,
    ) -> list[CommitSummary]:
        """Walk commit pages sequentially until a short page (or max_pages)."""
        delay = settings.sync_page_delay if page_delay is None else page_delay
        commits: list[CommitSummary] = []
        page = 1

        while True:
            result = await self.fetch_commit_list(
                owner, name, page=page, per_page=per_page, since=since, until=until
            )
            commits.extend(result.commits)

            if not result.has_more:
                break
            if max_pages is not None and page >= max_pages:
                logger.info(f"Stopped commit walk for {owner}/{name} at page limit {max_pages}")
                break

            page += 1
            if delay > 0:
                await self._sleep(delay)

        logger.debug(f"Fetched {len(commits)} commits for {owner}/{name} over {page} page(s)")
        return commits

    async def fetch_commit_detail(self, owner: str, name: str, sha: str) -> CommitDetail:
        """Fetch a single commit with stats and per-file changes."""
        self._ensure_allowed(owner, name)

        data: dict[str, Any] = await self._get_json(
            f"/repos/{owner}/{name}/commits/{sha}", f"{owner}/{name}"
        )
        summary = parse_commit_summary(data)
        stats = data.get("stats") or {}
        files = data.get("files") or []

        return CommitDetail(
            sha=summary.sha,
            short_sha=summary.short_sha,
            message=summary.message,
            message_title=summary.message_title,
            committed_at=summary.committed_at,
            author=summary.author,
            author_email=summary.author_email,
            author_login=summary.author_login,
            author_avatar=summary.author_avatar,
            additions=stats.get("additions", 0),
            deletions=stats.get("deletions", 0),
            total=stats.get("total", 0),
            html_url=summary.html_url or f"{GITHUB_WEB_URL}/{owner}/{name}/commit/{summary.sha}",
            parent_count=summary.parent_count,
            files=[
                FileChange(
                    filename=f.get("filename", ""),
                    status=f.get("status", "modified"),
                    additions=f.get("additions", 0),
                    deletions=f.get("deletions", 0),
                )
                for f in files
            ],
        )

    async def fetch_aggregate_stat(
        self,
        owner: str,
        name: str,
        stat: AggregateStat,
    ) -> list[WeeklyActivity] | list[CodeFrequencyWeek]:
        """
        Fetch a /stats/* series, polling while GitHub answers 202.

        GitHub computes these series in the background and answers 202 until
        they are ready. Each 202 waits min(base * multiplier**attempt, cap).

        Raises:
            GitHubServiceUnavailable: still 202 after max_attempts polls
        """
        self._ensure_allowed(owner, name)

        repo_name = f"{owner}/{name}"
        path = f"/repos/{owner}/{name}/stats/{stat.value}"

        for attempt in range(self.backoff.max_attempts):
            response = await self._get(path, repo_name)
            state = self.backoff.next_state(response.status_code, attempt)

            if state is PollState.READY:
                handle_error_response(response, repo_name)
                data = response.json() if response.status_code != 204 else []
                return self._parse_stat(stat, data)

            if state is PollState.EXHAUSTED:
                break

            delay = self.backoff.delay(attempt)
            logger.debug(f"{stat.value} for {repo_name} still computing, retrying in {delay:.1f}s")
            await self._sleep(delay)

        logger.warning(f"{stat.value} for {repo_name} not ready after {self.backoff.max_attempts} attempts")
        raise GitHubServiceUnavailable(f"GitHub {stat.value} still being computed for {repo_name}")

    @staticmethod
    def _parse_stat(
        stat: AggregateStat,
        data: Any,
    ) -> list[WeeklyActivity] | list[CodeFrequencyWeek]:
        if not isinstance(data, list):
            return []
        if stat is AggregateStat.COMMIT_ACTIVITY:
            return [
                WeeklyActivity(
                    week=datetime.fromtimestamp(week["week"], UTC),
                    total=week.get("total", 0),
                    days=list(week.get("days") or []),
                )
                for week in data
            ]
        return [
            CodeFrequencyWeek(
                week=datetime.fromtimestamp(row[0], UTC),
                additions=row[1],
                deletions=abs(row[2]),
            )
            for row in data
        ]

    async def fetch_commit_activity(self, owner: str, name: str) -> list[WeeklyActivity]:
        return await self.fetch_aggregate_stat(owner, name, AggregateStat.COMMIT_ACTIVITY)  # type: ignore[return-value]

    async def fetch_code_frequency(self, owner: str, name: str) -> list[CodeFrequencyWeek]:
        return await self.fetch_aggregate_stat(owner, name, AggregateStat.CODE_FREQUENCY)  # type: ignore[return-value]

    async def fetch_repo_info(self, owner: str, name: str) -> RepoInfo:
        """Fetch repository metadata (stars, forks, size, last push...)."""
        self._ensure_allowed(owner, name)

        data: dict[str, Any] = await self._get_json(f"/repos/{owner}/{name}", f"{owner}/{name}")

        return RepoInfo(
            owner=owner,
            name=name,
            stars=data.get("stargazers_count", 0),
            forks=data.get("forks_count", 0),
            open_issues=data.get("open_issues_count", 0),
            size=data.get("size", 0),
            default_branch=data.get("default_branch", "main"),
            created_at=parse_github_datetime(data.get("created_at")),
            pushed_at=parse_github_datetime(data.get("pushed_at")),
        )

    async def fetch_languages(self, owner: str, name: str) -> list[LanguageStat]:
        """
        Fetch language breakdown for a repository.

        Returns:
            List of LanguageStat sorted by bytes (descending)
        """
        self._ensure_allowed(owner, name)

        data: dict[str, int] | None = await self._get_json(
            f"/repos/{owner}/{name}/languages", f"{owner}/{name}"
        )
        if not data:
            return []

        total_bytes = sum(data.values())
        if total_bytes == 0:
            return []

        languages = [
            LanguageStat(
                name=language,
                bytes=byte_count,
                percentage=round((byte_count / total_bytes) * 100, 1),
                color=GITHUB_LANGUAGE_COLORS.get(language, DEFAULT_LANGUAGE_COLOR),
            )
            for language, byte_count in data.items()
        ]

        languages.sort(key=lambda x: x.bytes, reverse=True)
        return languages

    async def fetch_contributors(
        self,
        owner: str,
        name: str,
        limit: int = 10,
    ) -> list[ContributorInfo]:
        """
        Fetch top contributors for a repository.

        GitHub returns an empty list (or 204) while it builds the contributor
        graph; in that case the ranking is derived from the latest commits.
        """
        self._ensure_allowed(owner, name)

        data: list[dict[str, Any]] | None = await self._get_json(
            f"/repos/{owner}/{name}/contributors",
            f"{owner}/{name}",
            params={"per_page": limit},
        )

        if data:
            return [
                ContributorInfo(
                    login=contrib["login"],
                    avatar_url=contrib.get("avatar_url"),
                    contributions=contrib.get("contributions", 0),
                    profile_url=contrib.get("html_url"),
                )
                for contrib in data[:limit]
            ]

        logger.debug(f"No contributor data for {owner}/{name}, deriving from latest commits")
        page = await self.fetch_commit_list(owner, name, per_page=CONTRIBUTOR_FALLBACK_SAMPLE)
        return contributors_from_commits(page.commits, limit)
