"""Dashboard read operations and request validation."""

from repopulse.services.query.facade import (
    QueryFacade,
    commit_item,
    merge_languages,
    merge_repo_info,
    rank_contributors,
)
from repopulse.services.query.types import (
    CommitItem,
    CommitsResponse,
    ContributorStat,
    RepoCommits,
    RepoStats,
    StatsResponse,
)
from repopulse.services.query.validator import (
    QueryParams,
    RepoParam,
    normalize_search,
    parse_query_params,
    parse_range,
    parse_repos,
    validate_sha,
)

__all__ = [
    "QueryFacade",
    "commit_item",
    "merge_languages",
    "merge_repo_info",
    "rank_contributors",
    "CommitItem",
    "CommitsResponse",
    "ContributorStat",
    "RepoCommits",
    "RepoStats",
    "StatsResponse",
    "QueryParams",
    "RepoParam",
    "normalize_search",
    "parse_query_params",
    "parse_range",
    "parse_repos",
    "validate_sha",
]
