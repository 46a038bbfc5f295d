from repopulse.models.commit import Commit
from repopulse.models.repository import Repository, RepositoryBase
from repopulse.models.sync_log import SyncLog, SyncStatus, SyncType

__all__ = [
    "Commit",
    "Repository",
    "RepositoryBase",
    "SyncLog",
    "SyncStatus",
    "SyncType",
]
