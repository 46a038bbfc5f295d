"""Sync audit log - one append-only row per sync run."""

import uuid as uuid_pkg
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Text
from sqlmodel import Field, SQLModel

from repopulse.models.base import UUIDMixin, utcnow


class SyncType(str, Enum):
    FULL = "full"
    INCREMENTAL = "incremental"


class SyncStatus(str, Enum):
    """started -> completed | failed. Both outcomes are terminal."""

    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncLog(UUIDMixin, SQLModel, table=True):
    __tablename__ = "sync_logs"

    type: str = Field(default=SyncType.FULL.value, max_length=20, nullable=False)
    status: str = Field(default=SyncStatus.STARTED.value, max_length=20, nullable=False, index=True)
    repository_id: uuid_pkg.UUID | None = Field(
        default=None,
        foreign_key="repositories.id",
        index=True,
    )
    commits_added: int = Field(default=0, nullable=False)
    error: str | None = Field(default=None, sa_type=Text)  # type: ignore[call-overload]

    started_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),
    )
    completed_at: datetime | None = Field(  # type: ignore[call-overload]
        default=None,
        sa_type=DateTime(timezone=True),
    )
