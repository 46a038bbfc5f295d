from repopulse.domain.commit_operations import CommitOperations, commit_ops
from repopulse.domain.repository_operations import RepositoryOperations, repository_ops
from repopulse.domain.sync_log_operations import SyncLogOperations, sync_log_ops

__all__ = [
    "CommitOperations",
    "RepositoryOperations",
    "SyncLogOperations",
    "commit_ops",
    "repository_ops",
    "sync_log_ops",
]
