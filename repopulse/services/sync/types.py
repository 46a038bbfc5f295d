"""Result types for the sync engine and webhook path."""

import uuid as uuid_pkg
from dataclasses import dataclass, field
from datetime import datetime

from repopulse.models.sync_log import SyncLog, SyncType


@dataclass
class SyncResult:
    repo: str  # "owner/name"
    success: bool
    commits_added: int = 0
    backfilled: int = 0
    sync_type: SyncType = SyncType.FULL
    error: str | None = None


@dataclass
class SyncSummary:
    total: int
    succeeded: int
    failed: int
    results: list[SyncResult] = field(default_factory=list)


@dataclass
class AuthorBackfill:
    """Author fields to fill on one stored commit; None means leave as is."""

    commit_id: uuid_pkg.UUID
    author_login: str | None
    author_avatar: str | None


@dataclass
class WebhookCommit:
    """A commit as described in a push event payload."""

    sha: str
    message: str
    author_name: str
    author_email: str
    timestamp: datetime
    url: str | None = None


@dataclass
class WebhookResult:
    message: str
    received: int = 0
    added: int = 0


@dataclass
class RepositoryStatus:
    owner: str
    name: str
    display_name: str | None
    commit_count: int
    last_sync_at: datetime | None


@dataclass
class SyncStatusOverview:
    repositories: list[RepositoryStatus]
    recent_logs: list[SyncLog]
