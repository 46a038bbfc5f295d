"""Data types for GitHub API responses."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class AggregateStat(str, Enum):
    """/stats/* endpoints that GitHub computes asynchronously."""

    COMMIT_ACTIVITY = "commit_activity"
    CODE_FREQUENCY = "code_frequency"


class PollState(str, Enum):
    PENDING = "pending"
    READY = "ready"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff for polling 202 responses."""

    base_delay: float = 1.0
    multiplier: float = 1.7
    max_delay: float = 15.0
    max_attempts: int = 15

    def delay(self, attempt: int) -> float:
        """Delay before retrying after the given (0-based) attempt."""
        return min(self.base_delay * self.multiplier**attempt, self.max_delay)

    def next_state(self, status_code: int, attempt: int) -> PollState:
        """Poll state after `attempt` answered with `status_code`."""
        if status_code != 202:
            return PollState.READY
        if attempt + 1 >= self.max_attempts:
            return PollState.EXHAUSTED
        return PollState.PENDING


@dataclass
class CommitSummary:
    """One entry of the commit list endpoint."""

    sha: str
    short_sha: str
    message: str
    message_title: str
    committed_at: datetime
    author: str
    author_email: str
    author_login: str | None = None
    author_avatar: str | None = None
    html_url: str | None = None
    parent_count: int = 1


@dataclass
class CommitListPage:
    commits: list[CommitSummary]
    has_more: bool  # True only when the page was full


@dataclass
class FileChange:
    filename: str
    status: str  # "added", "modified", "removed", "renamed"
    additions: int
    deletions: int


@dataclass
class CommitDetail:
    """Single commit with line stats and per-file changes."""

    sha: str
    short_sha: str
    message: str
    message_title: str
    committed_at: datetime
    author: str
    author_email: str
    additions: int
    deletions: int
    total: int
    html_url: str
    author_login: str | None = None
    author_avatar: str | None = None
    parent_count: int = 1
    files: list[FileChange] = field(default_factory=list)

    @property
    def files_changed(self) -> int:
        return len(self.files)

    @property
    def is_merge_commit(self) -> bool:
        return self.parent_count > 1


@dataclass
class RepoInfo:
    """Repository metadata shown on the stats panel."""

    owner: str
    name: str
    stars: int
    forks: int
    open_issues: int
    size: int  # KB, as reported by GitHub
    default_branch: str
    created_at: datetime | None = None
    pushed_at: datetime | None = None


@dataclass
class LanguageStat:
    """Language statistics for a repository."""

    name: str
    bytes: int
    percentage: float
    color: str  # Hex color for display


@dataclass
class ContributorInfo:
    """Contributor information."""

    login: str
    avatar_url: str | None
    contributions: int  # Number of commits
    profile_url: str | None = None


@dataclass
class WeeklyActivity:
    """One week of /stats/commit_activity."""

    week: datetime  # Sunday 00:00 UTC that starts the week
    total: int
    days: list[int]  # Sunday-first per-day counts


@dataclass
class CodeFrequencyWeek:
    """One week of /stats/code_frequency."""

    week: datetime
    additions: int
    deletions: int  # Positive count (GitHub reports it negative)
