"""Commit model - one row per (repository, sha)."""

import uuid as uuid_pkg
from datetime import datetime

from sqlalchemy import DateTime, Index, Text, UniqueConstraint
from sqlmodel import Field, SQLModel

from repopulse.models.base import UUIDMixin, utcnow

SHORT_SHA_LENGTH = 7
MESSAGE_TITLE_MAX_LENGTH = 255


class Commit(UUIDMixin, SQLModel, table=True):
    """
    A commit as persisted by the sync engine.

    Core fields are immutable once written. Only author_login and
    author_avatar may change afterwards, and only from NULL to a value
    (GitHub often resolves the account behind an email later).
    """

    __tablename__ = "commits"
    __table_args__ = (
        UniqueConstraint("repository_id", "sha", name="uq_commits_repository_sha"),
        Index("ix_commits_repository_committed_at", "repository_id", "committed_at"),
    )

    repository_id: uuid_pkg.UUID = Field(
        foreign_key="repositories.id",
        nullable=False,
        index=True,
    )

    sha: str = Field(max_length=40, nullable=False)
    short_sha: str = Field(max_length=SHORT_SHA_LENGTH, nullable=False, index=True)
    message: str = Field(sa_type=Text, nullable=False)  # type: ignore[call-overload]
    message_title: str = Field(max_length=MESSAGE_TITLE_MAX_LENGTH, nullable=False)

    author: str = Field(max_length=255, nullable=False)
    author_email: str = Field(default="", max_length=255, nullable=False)
    author_login: str | None = Field(default=None, max_length=100, index=True)
    author_avatar: str | None = Field(default=None, max_length=500)

    committed_at: datetime = Field(  # type: ignore[call-overload]
        nullable=False,
        sa_type=DateTime(timezone=True),
    )

    additions: int = Field(default=0, nullable=False)
    deletions: int = Field(default=0, nullable=False)
    files_changed: int = Field(default=0, nullable=False)
    is_merge_commit: bool = Field(default=False, nullable=False)
    html_url: str | None = Field(default=None, max_length=500)

    created_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),
    )


def short_sha(sha: str) -> str:
    return sha[:SHORT_SHA_LENGTH]


def message_title(message: str) -> str:
    """First line of a commit message, truncated to the column size."""
    return message.split("\n", 1)[0][:MESSAGE_TITLE_MAX_LENGTH]
