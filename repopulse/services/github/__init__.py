"""
GitHub service package.

Module structure:
- fetcher.py: GitHubCommitFetcher, the allow-list-guarded API client
- helpers.py: Rate limit handling and error utilities
- http_client.py: Shared httpx client
- types.py: Data types and response models
- exceptions.py: Typed error hierarchy
- constants.py: API constants and language palette
"""

from repopulse.services.github.constants import GITHUB_LANGUAGE_COLORS
from repopulse.services.github.exceptions import (
    GitHubAPIError,
    GitHubNetworkError,
    GitHubNotFound,
    GitHubRateLimited,
    GitHubServerError,
    GitHubServiceUnavailable,
    GitHubUnauthorized,
    RepositoryForbidden,
)
from repopulse.services.github.fetcher import (
    GitHubCommitFetcher,
    contributors_from_commits,
    parse_commit_summary,
)
from repopulse.services.github.helpers import RateLimitInfo, handle_error_response
from repopulse.services.github.http_client import close_github_client, get_github_client
from repopulse.services.github.types import (
    AggregateStat,
    BackoffPolicy,
    CodeFrequencyWeek,
    CommitDetail,
    CommitListPage,
    CommitSummary,
    ContributorInfo,
    FileChange,
    LanguageStat,
    PollState,
    RepoInfo,
    WeeklyActivity,
)

__all__ = [
    # Client
    "GitHubCommitFetcher",
    "contributors_from_commits",
    "parse_commit_summary",
    # HTTP client lifecycle
    "close_github_client",
    "get_github_client",
    # Utilities
    "handle_error_response",
    "RateLimitInfo",
    # Exceptions
    "GitHubAPIError",
    "GitHubNetworkError",
    "GitHubNotFound",
    "GitHubRateLimited",
    "GitHubServerError",
    "GitHubServiceUnavailable",
    "GitHubUnauthorized",
    "RepositoryForbidden",
    # Types
    "AggregateStat",
    "BackoffPolicy",
    "CodeFrequencyWeek",
    "CommitDetail",
    "CommitListPage",
    "CommitSummary",
    "ContributorInfo",
    "FileChange",
    "LanguageStat",
    "PollState",
    "RepoInfo",
    "WeeklyActivity",
    # Constants
    "GITHUB_LANGUAGE_COLORS",
]
