"""Result shapes for timelines and aggregates."""

from dataclasses import dataclass, field

from repopulse.config.periods import Granularity, TimeRange


@dataclass
class TimelinePoint:
    date: str  # ISO date of the bucket (Monday for weekly)
    label: str
    commits: int


@dataclass
class RepoTimeline:
    repo_name: str
    display_name: str
    color: str
    points: list[TimelinePoint]
    total_commits: int


@dataclass
class CombinedTimelinePoint:
    """One bucket with the count of every requested repository."""

    date: str
    label: str
    counts: dict[str, int] = field(default_factory=dict)


@dataclass
class TimelineResult:
    range: TimeRange
    granularity: Granularity
    timelines: list[RepoTimeline]
    combined: list[CombinedTimelinePoint]
    min_data_points: int

    @property
    def has_enough_data(self) -> bool:
        """Whether enough buckets carry commits to draw a meaningful chart."""
        active = sum(1 for point in self.combined if any(point.counts.values()))
        return active >= self.min_data_points


@dataclass
class CodeTotals:
    additions: int = 0
    deletions: int = 0

    @property
    def changes(self) -> int:
        return self.additions + self.deletions


@dataclass
class AuthorCommitCount:
    login: str
    commits: int
