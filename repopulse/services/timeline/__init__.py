"""Commit timelines and range aggregates."""

from repopulse.services.timeline.aggregator import (
    RepoKey,
    TimeSeriesAggregator,
    activity_bucket_counts,
    build_timelines,
    count_by_bucket,
)
from repopulse.services.timeline.buckets import (
    bucket_key,
    generate_buckets,
    start_date,
    timeline_window,
    week_start,
    window_bounds,
    window_lower_bound,
)
from repopulse.services.timeline.labels import SUPPORTED_LOCALES, format_label, resolve_locale
from repopulse.services.timeline.types import (
    AuthorCommitCount,
    CodeTotals,
    CombinedTimelinePoint,
    RepoTimeline,
    TimelinePoint,
    TimelineResult,
)

__all__ = [
    "RepoKey",
    "TimeSeriesAggregator",
    "activity_bucket_counts",
    "build_timelines",
    "count_by_bucket",
    "bucket_key",
    "generate_buckets",
    "start_date",
    "timeline_window",
    "week_start",
    "window_bounds",
    "window_lower_bound",
    "SUPPORTED_LOCALES",
    "format_label",
    "resolve_locale",
    "AuthorCommitCount",
    "CodeTotals",
    "CombinedTimelinePoint",
    "RepoTimeline",
    "TimelinePoint",
    "TimelineResult",
]
