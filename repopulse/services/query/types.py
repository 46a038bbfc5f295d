"""Response shapes of the read operations."""

from dataclasses import dataclass, field
from datetime import datetime

from repopulse.config.periods import Granularity, TimeRange
from repopulse.services.github.types import LanguageStat
from repopulse.services.timeline.types import CombinedTimelinePoint, RepoTimeline


@dataclass
class CommitItem:
    """A commit tagged with the repository it belongs to."""

    sha: str
    short_sha: str
    message: str
    message_title: str
    committed_at: datetime
    author: str
    repo_owner: str
    repo_name: str
    repo_display_name: str
    author_login: str | None = None
    author_avatar: str | None = None
    additions: int = 0
    deletions: int = 0
    files_changed: int = 0
    is_merge_commit: bool = False
    html_url: str | None = None


@dataclass
class RepoCommits:
    display_name: str
    commits: list[CommitItem] = field(default_factory=list)
    total: int = 0


@dataclass
class CommitsResponse:
    commits_by_repo: dict[str, RepoCommits]
    all_commits: list[CommitItem]  # Newest first, capped
    total: int  # Uncapped count
    unavailable: list[str] = field(default_factory=list)  # "owner/name" with no data source


@dataclass
class ContributorStat:
    login: str
    avatar_url: str
    profile_url: str
    commits: int


@dataclass
class RepoStats:
    stars: int = 0
    forks: int = 0
    issues: int = 0
    size: int = 0
    last_push: datetime | None = None
    default_branch: str | None = None
    total_commits: int = 0
    total_additions: int = 0
    total_deletions: int = 0


@dataclass
class StatsResponse:
    range: TimeRange
    granularity: Granularity
    stats: RepoStats
    languages: list[LanguageStat]
    contributors: list[ContributorStat]
    timelines: list[RepoTimeline]
    combined: list[CombinedTimelinePoint]
