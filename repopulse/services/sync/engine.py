"""
Commit sync engine.

Ingests the commit history of allow-listed repositories into the store:

1. Open a `started` sync log (own transaction)
2. Upsert the repository row and attach it to the log
3. Walk every commit page (incremental runs start from last_sync_at - overlap)
4. Keep only SHAs the store does not have yet
5. Fetch details in bounded-parallel batches and bulk insert each batch
6. Backfill missing author login/avatar from the list just fetched
7. Stamp last_sync_at and finalize the log

The engine is the only writer to the store. A failing repository is
recorded in its own log row and reported in its SyncResult; it never
aborts other repositories.
"""

import asyncio
import logging
import uuid as uuid_pkg
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from repopulse.config import RepositoryAllowList, allow_list, settings
from repopulse.core.database import SessionFactory, get_session
from repopulse.domain import (
    CommitOperations,
    RepositoryOperations,
    SyncLogOperations,
    commit_ops,
    repository_ops,
    sync_log_ops,
)
from repopulse.models.commit import Commit, message_title, short_sha
from repopulse.models.sync_log import SyncType
from repopulse.services.cache import CacheKeys, CacheLayer, get_cache_layer
from repopulse.services.github import (
    CommitDetail,
    CommitSummary,
    GitHubAPIError,
    GitHubCommitFetcher,
    GitHubNetworkError,
    GitHubNotFound,
    GitHubServerError,
)
from repopulse.services.sync.types import (
    AuthorBackfill,
    RepositoryStatus,
    SyncResult,
    SyncStatusOverview,
    SyncSummary,
    WebhookCommit,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]

# Detail failures that only cost the stats of one commit
RECOVERABLE_DETAIL_ERRORS = (GitHubNotFound, GitHubServerError, GitHubNetworkError)


def select_new_commits(fetched: list[CommitSummary], existing_shas: set[str]) -> list[CommitSummary]:
    """Fetched commits not yet stored, duplicates collapsed (first occurrence wins)."""
    seen = set(existing_shas)
    new_commits: list[CommitSummary] = []
    for commit in fetched:
        if commit.sha in seen:
            continue
        seen.add(commit.sha)
        new_commits.append(commit)
    return new_commits


def build_commit_row(
    repository_id: uuid_pkg.UUID,
    commit: CommitSummary,
    detail: CommitDetail | None,
) -> dict[str, Any]:
    """Column values for a new commit; stats are zero when the detail is missing."""
    return {
        "repository_id": repository_id,
        "sha": commit.sha,
        "short_sha": commit.short_sha,
        "message": commit.message,
        "message_title": commit.message_title,
        "author": commit.author,
        "author_email": commit.author_email,
        "author_login": (detail.author_login if detail else None) or commit.author_login,
        "author_avatar": (detail.author_avatar if detail else None) or commit.author_avatar,
        "committed_at": commit.committed_at,
        "additions": detail.additions if detail else 0,
        "deletions": detail.deletions if detail else 0,
        "files_changed": detail.files_changed if detail else 0,
        "is_merge_commit": commit.parent_count > 1,
        "html_url": commit.html_url,
        "created_at": datetime.now(UTC),
    }


def compute_author_backfill(
    missing: list[Commit],
    fetched: list[CommitSummary],
) -> list[AuthorBackfill]:
    """
    Plan author updates for stored commits lacking login or avatar.

    Only identities visible in `fetched` are used. Each field is filled
    independently and only when the stored value is NULL.
    """
    identities: dict[str, tuple[str | None, str | None]] = {}
    for commit in fetched:
        if commit.sha in identities:
            continue
        if commit.author_login is not None or commit.author_avatar is not None:
            identities[commit.sha] = (commit.author_login, commit.author_avatar)

    patches: list[AuthorBackfill] = []
    for stored in missing:
        identity = identities.get(stored.sha)
        if identity is None:
            continue
        login, avatar = identity
        new_login = login if stored.author_login is None else None
        new_avatar = avatar if stored.author_avatar is None else None
        if new_login is None and new_avatar is None:
            continue
        patches.append(AuthorBackfill(stored.id, new_login, new_avatar))
    return patches


def _error_message(error: Exception) -> str:
    if isinstance(error, GitHubAPIError):
        return error.message
    return str(error) or type(error).__name__


class SyncEngine:
    """Full and incremental commit ingestion for allow-listed repositories."""

    def __init__(
        self,
        session_factory: SessionFactory = get_session,
        *,
        fetcher: GitHubCommitFetcher | None = None,
        cache: CacheLayer | None = None,
        repositories: RepositoryOperations = repository_ops,
        commits: CommitOperations = commit_ops,
        sync_logs: SyncLogOperations = sync_log_ops,
        allowed: RepositoryAllowList | None = None,
        sleep: Sleep | None = None,
        batch_size: int | None = None,
        detail_concurrency: int | None = None,
        page_size: int | None = None,
        page_delay: float | None = None,
        batch_delay: float | None = None,
        repo_delay: float | None = None,
        incremental_overlap: timedelta | None = None,
    ):
        self._session_factory = session_factory
        self.fetcher = fetcher or GitHubCommitFetcher()
        self.cache = cache or get_cache_layer()
        self.repositories = repositories
        self.commits = commits
        self.sync_logs = sync_logs
        self.allowed = allowed if allowed is not None else allow_list
        self._sleep: Sleep = sleep or asyncio.sleep
        self.batch_size = batch_size or settings.sync_batch_size
        self.detail_concurrency = detail_concurrency or settings.sync_detail_concurrency
        self.page_size = page_size or settings.sync_page_size
        self.page_delay = settings.sync_page_delay if page_delay is None else page_delay
        self.batch_delay = settings.sync_batch_delay if batch_delay is None else batch_delay
        self.repo_delay = settings.sync_repo_delay if repo_delay is None else repo_delay
        self.incremental_overlap = incremental_overlap or timedelta(
            hours=settings.sync_incremental_overlap_hours
        )

    async def sync_repository(
        self,
        owner: str,
        name: str,
        display_name: str | None = None,
        incremental: bool = False,
    ) -> SyncResult:
        """
        Sync one repository. Never raises; failures land in the result and the log.

        Args:
            owner: Repository owner
            name: Repository name
            display_name: Label to store (defaults to the allow-list entry)
            incremental: Only list commits since the previous sync (minus overlap)
        """
        repo_label = f"{owner}/{name}"

        if not self.allowed.contains(owner, name):
            logger.warning(f"Skipping sync of non-allow-listed repository {repo_label}")
            return SyncResult(repo=repo_label, success=False, error="Repository not allowed")

        display_name = display_name or self.allowed.display_name(owner, name)
        log_id: uuid_pkg.UUID | None = None
        sync_type = SyncType.FULL

        try:
            async with self._session_factory() as db:
                log = await self.sync_logs.start(db, SyncType.FULL)
                log_id = log.id

            async with self._session_factory() as db:
                repository = await self.repositories.upsert(db, owner, name, display_name)
                await self.sync_logs.attach_repository(db, log_id, repository.id)

                since: datetime | None = None
                if incremental and repository.last_sync_at is not None:
                    sync_type = SyncType.INCREMENTAL
                    since = repository.last_sync_at - self.incremental_overlap
                    await self.sync_logs.set_type(db, log_id, sync_type)

            logger.info(f"Starting {sync_type.value} sync of {repo_label}")
            fetched = await self.fetcher.fetch_all_commits(
                owner, name, since=since, page_delay=self.page_delay, per_page=self.page_size
            )
            logger.info(f"Found {len(fetched)} commits for {repo_label}")

            commits_added = await self._insert_new_commits(owner, name, repository.id, fetched)
            backfilled = await self._backfill_authors(repository.id, fetched)

            async with self._session_factory() as db:
                await self.repositories.mark_synced(db, repository.id)
                await self.sync_logs.complete(db, log_id, commits_added)

        except Exception as e:
            error = _error_message(e)
            logger.error(f"Sync failed for {repo_label}: {error}")
            if log_id is not None:
                await self._record_failure(log_id, error)
            return SyncResult(repo=repo_label, success=False, sync_type=sync_type, error=error)

        if commits_added or backfilled:
            await self.cache.invalidate_by_prefix(CacheKeys.repo_prefix(owner, name))
            await self.cache.invalidate_by_prefix(CacheKeys.multi_prefix())

        logger.info(f"Completed sync of {repo_label}: {commits_added} added, {backfilled} backfilled")
        return SyncResult(
            repo=repo_label,
            success=True,
            commits_added=commits_added,
            backfilled=backfilled,
            sync_type=sync_type,
        )

    async def _insert_new_commits(
        self,
        owner: str,
        name: str,
        repository_id: uuid_pkg.UUID,
        fetched: list[CommitSummary],
    ) -> int:
        async with self._session_factory() as db:
            existing = await self.commits.get_existing_shas(db, repository_id)

        new_commits = select_new_commits(fetched, existing)
        logger.info(f"{len(new_commits)} new commits to add for {owner}/{name}")

        commits_added = 0
        for start in range(0, len(new_commits), self.batch_size):
            batch = new_commits[start : start + self.batch_size]
            details = await self._fetch_details(owner, name, batch)
            rows = [
                build_commit_row(repository_id, commit, detail)
                for commit, detail in zip(batch, details, strict=True)
            ]

            async with self._session_factory() as db:
                commits_added += await self.commits.bulk_insert(db, rows)

            processed = min(start + self.batch_size, len(new_commits))
            logger.info(f"Processed {processed}/{len(new_commits)} commits for {owner}/{name}")

            if processed < len(new_commits) and self.batch_delay > 0:
                await self._sleep(self.batch_delay)

        return commits_added

    async def _fetch_details(
        self,
        owner: str,
        name: str,
        batch: list[CommitSummary],
    ) -> list[CommitDetail | None]:
        """Details for a batch with bounded parallelism.

        Rate limit and auth errors abort the run. Once one is seen, queued
        fetches are skipped, and the error is re-raised only after every
        fetch of the batch has settled.
        """
        semaphore = asyncio.Semaphore(self.detail_concurrency)
        aborted = asyncio.Event()

        async def fetch_one(commit: CommitSummary) -> CommitDetail | None:
            async with semaphore:
                if aborted.is_set():
                    return None
                try:
                    return await self.fetcher.fetch_commit_detail(owner, name, commit.sha)
                except RECOVERABLE_DETAIL_ERRORS as e:
                    logger.warning(
                        f"Detail unavailable for {owner}/{name}@{commit.short_sha}, storing zero stats: {e.message}"
                    )
                    return None
                except Exception:
                    aborted.set()
                    raise

        results = await asyncio.gather(
            *(fetch_one(commit) for commit in batch), return_exceptions=True
        )

        details: list[CommitDetail | None] = []
        for result in results:
            if isinstance(result, BaseException):
                raise result
            details.append(result)
        return details

    async def _backfill_authors(
        self,
        repository_id: uuid_pkg.UUID,
        fetched: list[CommitSummary],
    ) -> int:
        if not fetched:
            return 0

        backfilled = 0
        async with self._session_factory() as db:
            missing = await self.commits.get_missing_author(db, repository_id)
            for patch in compute_author_backfill(missing, fetched):
                if await self.commits.backfill_author(
                    db, patch.commit_id, patch.author_login, patch.author_avatar
                ):
                    backfilled += 1

        if backfilled:
            logger.info(f"Backfilled author identity on {backfilled} commits")
        return backfilled

    async def _record_failure(self, log_id: uuid_pkg.UUID, error: str) -> None:
        try:
            async with self._session_factory() as db:
                await self.sync_logs.fail(db, log_id, error)
        except SQLAlchemyError as e:
            logger.error(f"Could not record sync failure for log {log_id}: {e}")

    async def sync_all_repositories(self, incremental: bool = False) -> SyncSummary:
        """Sync every allow-listed repository in turn; failures do not stop the loop."""
        repos = list(self.allowed)
        logger.info(f"Starting sync for {len(repos)} repositories")

        results: list[SyncResult] = []
        for index, repo in enumerate(repos):
            result = await self.sync_repository(
                repo.owner, repo.name, repo.display_name, incremental=incremental
            )
            results.append(result)
            if index < len(repos) - 1 and self.repo_delay > 0:
                await self._sleep(self.repo_delay)

        succeeded = sum(1 for r in results if r.success)
        failed = len(results) - succeeded
        logger.info(f"Sync finished: {succeeded} succeeded, {failed} failed")
        return SyncSummary(total=len(results), succeeded=succeeded, failed=failed, results=results)

    async def add_commit_from_webhook(self, owner: str, name: str, commit: WebhookCommit) -> bool:
        """
        Upsert one pushed commit.

        Returns False without writing when the repository is not allow-listed
        or has never been synced. Re-delivery of the same commit is a no-op
        apart from filling author fields that are still NULL.
        """
        repo_label = f"{owner}/{name}"
        if not self.allowed.contains(owner, name):
            logger.warning(f"Ignoring webhook commit for non-allow-listed repository {repo_label}")
            return False

        try:
            async with self._session_factory() as db:
                repository = await self.repositories.get_by_owner_name(db, owner, name)
        except SQLAlchemyError as e:
            logger.error(f"Webhook lookup failed for {repo_label}: {e}")
            return False

        if repository is None:
            logger.warning(f"Repository {repo_label} not found in database, ignoring webhook commit")
            return False

        detail: CommitDetail | None = None
        try:
            detail = await self.fetcher.fetch_commit_detail(owner, name, commit.sha)
        except GitHubAPIError as e:
            logger.warning(f"Detail unavailable for webhook commit {short_sha(commit.sha)}: {e.message}")

        row = {
            "repository_id": repository.id,
            "sha": commit.sha,
            "short_sha": short_sha(commit.sha),
            "message": commit.message,
            "message_title": message_title(commit.message),
            "author": commit.author_name,
            "author_email": commit.author_email,
            "author_login": detail.author_login if detail else None,
            "author_avatar": detail.author_avatar if detail else None,
            "committed_at": commit.timestamp,
            "additions": detail.additions if detail else 0,
            "deletions": detail.deletions if detail else 0,
            "files_changed": detail.files_changed if detail else 0,
            "is_merge_commit": detail.is_merge_commit if detail else False,
            "html_url": commit.url,
            "created_at": datetime.now(UTC),
        }

        try:
            async with self._session_factory() as db:
                await self.commits.upsert_from_webhook(db, row)
        except SQLAlchemyError as e:
            logger.error(f"Failed to store webhook commit {short_sha(commit.sha)} for {repo_label}: {e}")
            return False

        await self.cache.invalidate_by_prefix(CacheKeys.repo_prefix(owner, name))
        await self.cache.invalidate_by_prefix(CacheKeys.multi_prefix())
        logger.info(f"Added commit {short_sha(commit.sha)} to {repo_label}")
        return True

    async def status_overview(self) -> SyncStatusOverview:
        """Stored repositories with commit counts, and the ten latest sync runs."""
        async with self._session_factory() as db:
            rows = await self.repositories.list_with_commit_counts(db)
            logs = await self.sync_logs.recent(db, limit=10)

        return SyncStatusOverview(
            repositories=[
                RepositoryStatus(
                    owner=repo.owner,
                    name=repo.name,
                    display_name=repo.display_name,
                    commit_count=count,
                    last_sync_at=repo.last_sync_at,
                )
                for repo, count in rows
            ],
            recent_logs=logs,
        )
