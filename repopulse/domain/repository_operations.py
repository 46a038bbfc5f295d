"""Repository operations.

Repository rows are keyed by (owner, name). Only the sync engine creates
or mutates them; the read side only looks them up.
"""

import uuid as uuid_pkg
from datetime import UTC, datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from repopulse.models.commit import Commit
from repopulse.models.repository import Repository


class RepositoryOperations:
    """Queries and mutations for the Repository model."""

    def __init__(self) -> None:
        self.model = Repository

    async def get(self, db: AsyncSession, id: uuid_pkg.UUID) -> Repository | None:
        """Get a repository by ID."""
        statement = select(Repository).where(Repository.id == id)
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_owner_name(
        self,
        db: AsyncSession,
        owner: str,
        name: str,
    ) -> Repository | None:
        """Find a repository by its GitHub identity."""
        statement = select(Repository).where(
            Repository.owner == owner,
            Repository.name == name,
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_many_by_keys(
        self,
        db: AsyncSession,
        keys: list[tuple[str, str]],
    ) -> list[Repository]:
        """Fetch the stored repositories among the given (owner, name) pairs.

        Missing pairs (never synced) are simply absent from the result.
        """
        if not keys:
            return []

        conditions = [
            (Repository.owner == owner) & (Repository.name == name)  # type: ignore[arg-type]
            for owner, name in keys
        ]
        statement = select(Repository).where(or_(*conditions))
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def upsert(
        self,
        db: AsyncSession,
        owner: str,
        name: str,
        display_name: str | None = None,
    ) -> Repository:
        """Create the repository row, or refresh its display name if it exists.

        A None display name never erases a stored one.
        """
        now = datetime.now(UTC)
        stmt = insert(Repository).values(
            id=uuid_pkg.uuid4(),
            owner=owner,
            name=name,
            display_name=display_name,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["owner", "name"],
            set_={
                "display_name": func.coalesce(stmt.excluded.display_name, Repository.display_name),
                "updated_at": now,
            },
        ).returning(Repository)

        result = await db.execute(stmt, execution_options={"populate_existing": True})
        repository = result.scalar_one()
        await db.flush()
        return repository

    async def mark_synced(
        self,
        db: AsyncSession,
        repository_id: uuid_pkg.UUID,
        synced_at: datetime | None = None,
    ) -> None:
        """Record the completion time of a successful sync."""
        when = synced_at or datetime.now(UTC)
        stmt = (
            update(Repository)
            .where(Repository.id == repository_id)  # type: ignore[arg-type]
            .values(last_sync_at=when, updated_at=when)
        )
        await db.execute(stmt)
        await db.flush()

    async def list_with_commit_counts(
        self,
        db: AsyncSession,
    ) -> list[tuple[Repository, int]]:
        """All stored repositories with their commit counts, ordered by name."""
        statement = (
            select(Repository, func.count(Commit.id))
            .outerjoin(Commit, Commit.repository_id == Repository.id)
            .group_by(Repository.id)
            .order_by(Repository.name)
        )
        result = await db.execute(statement)
        return [(repo, count) for repo, count in result.all()]


repository_ops = RepositoryOperations()
