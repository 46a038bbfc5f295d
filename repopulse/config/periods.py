"""Time range configuration - window length, bucket granularity and cache TTLs."""

from dataclasses import dataclass
from enum import Enum


class TimeRange(str, Enum):
    """Dashboard time windows."""

    DAYS_7 = "7d"
    DAYS_30 = "30d"
    MONTHS_6 = "6m"
    MONTHS_12 = "12m"


class Granularity(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


@dataclass(frozen=True)
class PeriodConfig:
    """How a time range is bucketed."""

    range: TimeRange
    days: int
    granularity: Granularity
    min_data_points: int  # Below this the UI shows an empty state


PERIOD_CONFIGS: dict[TimeRange, PeriodConfig] = {
    TimeRange.DAYS_7: PeriodConfig(TimeRange.DAYS_7, 7, Granularity.DAILY, 3),
    TimeRange.DAYS_30: PeriodConfig(TimeRange.DAYS_30, 30, Granularity.DAILY, 7),
    TimeRange.MONTHS_6: PeriodConfig(TimeRange.MONTHS_6, 180, Granularity.WEEKLY, 4),
    TimeRange.MONTHS_12: PeriodConfig(TimeRange.MONTHS_12, 365, Granularity.WEEKLY, 8),
}

VALID_TIME_RANGES: tuple[str, ...] = tuple(r.value for r in TimeRange)


def get_period(time_range: TimeRange) -> PeriodConfig:
    """Get the period configuration for a time range."""
    return PERIOD_CONFIGS[time_range]


# Cache TTLs in seconds. Short windows churn faster so they expire sooner;
# commit detail is immutable once a SHA exists and gets the longest TTL.
RANGE_CACHE_TTL: dict[TimeRange, int] = {
    TimeRange.DAYS_7: 60,
    TimeRange.DAYS_30: 3 * 60,
    TimeRange.MONTHS_6: 10 * 60,
    TimeRange.MONTHS_12: 30 * 60,
}
DETAIL_CACHE_TTL = 60 * 60
STATS_CACHE_TTL = 5 * 60
CONTRIBUTORS_CACHE_TTL = 60


def get_ttl_for_range(time_range: TimeRange) -> int:
    return RANGE_CACHE_TTL[time_range]
