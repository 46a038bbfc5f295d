"""Domain operations for the sync audit log."""

import uuid as uuid_pkg
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from repopulse.models.sync_log import SyncLog, SyncStatus, SyncType


class SyncLogOperations:
    """
    Append-only sync log.

    A row is created as `started` and finalized exactly once. Finalizing
    updates are guarded on status == started, so a finished run can never
    be re-opened or flipped to the other outcome.
    """

    def __init__(self) -> None:
        self.model = SyncLog

    async def start(
        self,
        db: AsyncSession,
        sync_type: SyncType = SyncType.FULL,
        repository_id: uuid_pkg.UUID | None = None,
    ) -> SyncLog:
        """Create a `started` log row."""
        log = SyncLog(
            type=sync_type.value,
            status=SyncStatus.STARTED.value,
            repository_id=repository_id,
            started_at=datetime.now(UTC),
        )
        db.add(log)
        await db.flush()
        await db.refresh(log)
        return log

    async def attach_repository(
        self,
        db: AsyncSession,
        log_id: uuid_pkg.UUID,
        repository_id: uuid_pkg.UUID,
    ) -> None:
        stmt = (
            update(SyncLog)
            .where(SyncLog.id == log_id)  # type: ignore[arg-type]
            .values(repository_id=repository_id)
        )
        await db.execute(stmt)
        await db.flush()

    async def set_type(
        self,
        db: AsyncSession,
        log_id: uuid_pkg.UUID,
        sync_type: SyncType,
    ) -> None:
        stmt = (
            update(SyncLog)
            .where(SyncLog.id == log_id, SyncLog.status == SyncStatus.STARTED.value)  # type: ignore[arg-type]
            .values(type=sync_type.value)
        )
        await db.execute(stmt)
        await db.flush()

    async def complete(
        self,
        db: AsyncSession,
        log_id: uuid_pkg.UUID,
        commits_added: int,
    ) -> bool:
        """Mark a started run as completed. Returns False if it was already finalized."""
        return await self._finalize(
            db,
            log_id,
            status=SyncStatus.COMPLETED,
            commits_added=commits_added,
        )

    async def fail(
        self,
        db: AsyncSession,
        log_id: uuid_pkg.UUID,
        error: str,
    ) -> bool:
        """Mark a started run as failed. Returns False if it was already finalized."""
        return await self._finalize(db, log_id, status=SyncStatus.FAILED, error=error)

    async def _finalize(
        self,
        db: AsyncSession,
        log_id: uuid_pkg.UUID,
        status: SyncStatus,
        commits_added: int = 0,
        error: str | None = None,
    ) -> bool:
        stmt = (
            update(SyncLog)
            .where(SyncLog.id == log_id, SyncLog.status == SyncStatus.STARTED.value)  # type: ignore[arg-type]
            .values(
                status=status.value,
                commits_added=commits_added,
                error=error,
                completed_at=datetime.now(UTC),
            )
        )
        result = await db.execute(stmt)
        await db.flush()
        return bool(result.rowcount)

    async def recent(self, db: AsyncSession, limit: int = 10) -> list[SyncLog]:
        """Most recent runs, newest first."""
        statement = select(SyncLog).order_by(SyncLog.started_at.desc()).limit(limit)  # type: ignore[attr-defined]
        result = await db.execute(statement)
        return list(result.scalars().all())


sync_log_ops = SyncLogOperations()
