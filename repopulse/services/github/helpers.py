"""
GitHub API helper utilities.

Rate limit header parsing and mapping of error responses onto the
typed exception hierarchy.
"""

import logging
from datetime import UTC, datetime

import httpx

from repopulse.services.github.exceptions import (
    GitHubNotFound,
    GitHubRateLimited,
    GitHubServerError,
    GitHubUnauthorized,
    RepositoryForbidden,
)

logger = logging.getLogger(__name__)


class RateLimitInfo:
    """Rate limit information from GitHub API response."""

    def __init__(self, response: httpx.Response) -> None:
        self.remaining = response.headers.get("X-RateLimit-Remaining")
        self.reset = response.headers.get("X-RateLimit-Reset")

    @property
    def remaining_count(self) -> int | None:
        """Get remaining quota as integer, or None if not available."""
        return int(self.remaining) if self.remaining else None

    @property
    def reset_timestamp(self) -> int | None:
        """Get reset timestamp as integer, or None if not available."""
        return int(self.reset) if self.reset else None

    @property
    def is_exhausted(self) -> bool:
        """Check if rate limit is exhausted."""
        return self.remaining is not None and int(self.remaining) == 0


def parse_github_datetime(value: str | None) -> datetime | None:
    """Parse a GitHub ISO 8601 timestamp ('Z' suffix) into an aware datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_github_datetime(value: datetime) -> str:
    """Format an aware datetime the way GitHub query params expect it."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def handle_error_response(response: httpx.Response, repo_name: str) -> None:
    """
    Raise the typed error for a non-success GitHub response.

    Args:
        response: The HTTP response from GitHub API
        repo_name: Repository name for error context (format: "owner/repo")

    Raises:
        GitHubUnauthorized: 401
        GitHubNotFound: 404
        GitHubRateLimited: 429, or 403 with an exhausted quota
        RepositoryForbidden: any other 403
        GitHubServerError: every other non-2xx status
    """
    status = response.status_code
    if 200 <= status < 300:
        return

    rate_info = RateLimitInfo(response)

    if status == 401:
        raise GitHubUnauthorized()
    elif status == 404:
        raise GitHubNotFound(f"Repository or resource not found: {repo_name}")
    elif status == 429 or (status == 403 and rate_info.is_exhausted):
        logger.warning(f"GitHub rate limit reached while fetching {repo_name} (reset={rate_info.reset})")
        raise GitHubRateLimited(
            "GitHub API rate limit exceeded",
            status,
            rate_limit_remaining=rate_info.remaining_count,
            rate_limit_reset=rate_info.reset_timestamp,
        )
    elif status == 403:
        raise RepositoryForbidden(f"GitHub API forbidden for {repo_name}")
    raise GitHubServerError(
        f"GitHub API error: {status}",
        status,
        rate_limit_remaining=rate_info.remaining_count,
        rate_limit_reset=rate_info.reset_timestamp,
    )
