"""Configuration package."""

from repopulse.config.periods import (
    PERIOD_CONFIGS,
    Granularity,
    PeriodConfig,
    TimeRange,
    get_period,
    get_ttl_for_range,
)
from repopulse.config.repositories import (
    ALLOWED_REPOSITORIES,
    AllowedRepository,
    RepositoryAllowList,
    allow_list,
)
from repopulse.config.settings import Settings, settings

__all__ = [
    "ALLOWED_REPOSITORIES",
    "AllowedRepository",
    "RepositoryAllowList",
    "allow_list",
    "Granularity",
    "PeriodConfig",
    "PERIOD_CONFIGS",
    "TimeRange",
    "get_period",
    "get_ttl_for_range",
    "Settings",
    "settings",
]
