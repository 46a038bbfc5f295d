"""Commit ingestion: scheduled/triggered sync and the push webhook path."""

from repopulse.services.sync.engine import (
    SyncEngine,
    build_commit_row,
    compute_author_backfill,
    select_new_commits,
)
from repopulse.services.sync.types import (
    AuthorBackfill,
    RepositoryStatus,
    SyncResult,
    SyncStatusOverview,
    SyncSummary,
    WebhookCommit,
    WebhookResult,
)
from repopulse.services.sync.webhook import (
    handle_webhook,
    parse_push_commits,
    process_push_event,
    verify_signature,
)

__all__ = [
    "SyncEngine",
    "build_commit_row",
    "compute_author_backfill",
    "select_new_commits",
    "AuthorBackfill",
    "RepositoryStatus",
    "SyncResult",
    "SyncStatusOverview",
    "SyncSummary",
    "WebhookCommit",
    "WebhookResult",
    "handle_webhook",
    "parse_push_commits",
    "process_push_event",
    "verify_signature",
]
