"""Domain operations for persisted commits."""

import uuid as uuid_pkg
from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from repopulse.models.commit import Commit
from repopulse.models.repository import Repository


def _in_window(
    repository_ids: list[uuid_pkg.UUID],
    since: datetime,
    until: datetime | None = None,
) -> list[Any]:
    """WHERE clauses for commits of the given repositories in [since, until)."""
    conditions: list[Any] = [
        Commit.repository_id.in_(repository_ids),  # type: ignore[attr-defined]
        Commit.committed_at >= since,
    ]
    if until is not None:
        conditions.append(Commit.committed_at < until)
    return conditions


class CommitOperations:
    """
    Operations for the commit table.

    Commits are written in bulk by the sync engine and never rewritten:
    inserts skip duplicates on (repository_id, sha) and the only UPDATE path
    fills author fields that are still NULL.
    """

    def __init__(self) -> None:
        self.model = Commit

    async def get_existing_shas(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
    ) -> set[str]:
        """All SHAs already stored for a repository."""
        statement = select(Commit.sha).where(Commit.repository_id == repository_id)
        result = await db.execute(statement)
        return set(result.scalars().all())

    async def bulk_insert(
        self,
        db: AsyncSession,
        rows: list[dict[str, Any]],
    ) -> int:
        """
        Insert commit rows, skipping any (repository_id, sha) already present.

        Args:
            db: Database session
            rows: Column dicts for new commits

        Returns:
            Count of rows actually inserted (duplicates are not counted).
        """
        if not rows:
            return 0

        stmt = (
            insert(Commit)
            .values([{"id": uuid_pkg.uuid4(), **row} for row in rows])
            .on_conflict_do_nothing(index_elements=["repository_id", "sha"])
            .returning(Commit.id)
        )

        result = await db.execute(stmt)
        inserted = len(result.scalars().all())
        await db.flush()
        return inserted

    async def upsert_from_webhook(
        self,
        db: AsyncSession,
        row: dict[str, Any],
    ) -> None:
        """Insert a single commit; on conflict only fill NULL author fields."""
        stmt = insert(Commit).values(id=uuid_pkg.uuid4(), **row)
        stmt = stmt.on_conflict_do_update(
            index_elements=["repository_id", "sha"],
            set_={
                "author_login": func.coalesce(Commit.author_login, stmt.excluded.author_login),
                "author_avatar": func.coalesce(Commit.author_avatar, stmt.excluded.author_avatar),
            },
        )
        await db.execute(stmt)
        await db.flush()

    async def get_missing_author(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
    ) -> list[Commit]:
        """Commits of a repository with no author login or no avatar yet."""
        statement = select(Commit).where(
            Commit.repository_id == repository_id,
            or_(Commit.author_login.is_(None), Commit.author_avatar.is_(None)),  # type: ignore[union-attr]
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def backfill_author(
        self,
        db: AsyncSession,
        commit_id: uuid_pkg.UUID,
        author_login: str | None,
        author_avatar: str | None,
    ) -> bool:
        """
        Fill author_login / author_avatar where they are still NULL.

        COALESCE keeps any value written in the meantime, so a concurrent
        sync can never overwrite a login that is already set.
        """
        values: dict[str, Any] = {}
        if author_login is not None:
            values["author_login"] = func.coalesce(Commit.author_login, author_login)
        if author_avatar is not None:
            values["author_avatar"] = func.coalesce(Commit.author_avatar, author_avatar)
        if not values:
            return False

        stmt = (
            update(Commit)
            .where(Commit.id == commit_id)  # type: ignore[arg-type]
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return bool(result.rowcount)

    async def search(
        self,
        db: AsyncSession,
        repository_ids: list[uuid_pkg.UUID],
        since: datetime,
        sha_prefix: str | None = None,
    ) -> list[Commit]:
        """Commits of the given repositories since a date, newest first.

        With sha_prefix, only commits whose SHA or short SHA starts with it.
        """
        if not repository_ids:
            return []

        statement = select(Commit).where(
            Commit.repository_id.in_(repository_ids),  # type: ignore[attr-defined]
            Commit.committed_at >= since,
        )
        if sha_prefix:
            statement = statement.where(
                or_(
                    Commit.sha.startswith(sha_prefix, autoescape=True),  # type: ignore[attr-defined]
                    Commit.short_sha.startswith(sha_prefix, autoescape=True),  # type: ignore[attr-defined]
                )
            )
        statement = statement.order_by(Commit.committed_at.desc())  # type: ignore[attr-defined]

        result = await db.execute(statement)
        return list(result.scalars().all())

    async def get_with_repository(
        self,
        db: AsyncSession,
        owner: str,
        name: str,
        sha: str,
    ) -> tuple[Commit, Repository] | None:
        """Single commit joined with its repository, or None if unknown."""
        statement = (
            select(Commit, Repository)
            .join(Repository, Commit.repository_id == Repository.id)
            .where(
                Repository.owner == owner,
                Repository.name == name,
                Commit.sha == sha,
            )
        )
        result = await db.execute(statement)
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def get_timestamps(
        self,
        db: AsyncSession,
        repository_ids: list[uuid_pkg.UUID],
        since: datetime,
        until: datetime | None = None,
    ) -> list[tuple[uuid_pkg.UUID, datetime]]:
        """(repository_id, committed_at) pairs for timeline bucketing, oldest first."""
        if not repository_ids:
            return []

        statement = (
            select(Commit.repository_id, Commit.committed_at)
            .where(*_in_window(repository_ids, since, until))
            .order_by(Commit.committed_at.asc())  # type: ignore[attr-defined]
        )
        result = await db.execute(statement)
        return [(repo_id, committed_at) for repo_id, committed_at in result.all()]

    async def count(
        self,
        db: AsyncSession,
        repository_ids: list[uuid_pkg.UUID],
        since: datetime,
        until: datetime | None = None,
    ) -> int:
        if not repository_ids:
            return 0

        statement = select(func.count(Commit.id)).where(*_in_window(repository_ids, since, until))
        result = await db.execute(statement)
        return result.scalar() or 0

    async def count_by_repository(
        self,
        db: AsyncSession,
        repository_ids: list[uuid_pkg.UUID],
    ) -> dict[uuid_pkg.UUID, int]:
        """Total stored commits per repository (all time). Repos without rows are omitted."""
        if not repository_ids:
            return {}

        statement = (
            select(Commit.repository_id, func.count(Commit.id))
            .where(Commit.repository_id.in_(repository_ids))  # type: ignore[attr-defined]
            .group_by(Commit.repository_id)
        )
        result = await db.execute(statement)
        return {repo_id: count for repo_id, count in result.all()}

    async def code_totals(
        self,
        db: AsyncSession,
        repository_ids: list[uuid_pkg.UUID],
        since: datetime,
        until: datetime | None = None,
    ) -> tuple[int, int]:
        """Sum of (additions, deletions) over commits in [since, until)."""
        if not repository_ids:
            return (0, 0)

        statement = select(
            func.coalesce(func.sum(Commit.additions), 0),
            func.coalesce(func.sum(Commit.deletions), 0),
        ).where(*_in_window(repository_ids, since, until))
        result = await db.execute(statement)
        row = result.one()
        return (int(row[0]), int(row[1]))

    async def author_commit_counts(
        self,
        db: AsyncSession,
        repository_ids: list[uuid_pkg.UUID],
        since: datetime,
        until: datetime | None = None,
    ) -> dict[str, int]:
        """Commit counts per GitHub login in [since, until) (commits without login are skipped)."""
        if not repository_ids:
            return {}

        statement = (
            select(Commit.author_login, func.count(Commit.id))
            .where(
                *_in_window(repository_ids, since, until),
                Commit.author_login.is_not(None),  # type: ignore[union-attr]
            )
            .group_by(Commit.author_login)
        )
        result = await db.execute(statement)
        return {login: count for login, count in result.all() if login is not None}


commit_ops = CommitOperations()
