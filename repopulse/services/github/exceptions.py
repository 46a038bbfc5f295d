"""Exceptions for GitHub service."""


class GitHubAPIError(Exception):
    """Error from GitHub API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        rate_limit_remaining: int | None = None,
        rate_limit_reset: int | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.rate_limit_remaining = rate_limit_remaining
        self.rate_limit_reset = rate_limit_reset  # Unix timestamp when rate limit resets
        super().__init__(message)


class RepositoryForbidden(GitHubAPIError):
    """Repository is not allow-listed, or GitHub refused access (non-quota 403)."""

    def __init__(self, message: str = "Repository not allowed", status_code: int = 403):
        super().__init__(message, status_code)


class GitHubUnauthorized(GitHubAPIError):
    """Missing, invalid or expired token."""

    def __init__(self, message: str = "Invalid or expired GitHub token"):
        super().__init__(message, 401)


class GitHubNotFound(GitHubAPIError):
    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, 404)


class GitHubRateLimited(GitHubAPIError):
    """Quota exhausted (403 with zero remaining, or 429)."""


class GitHubServerError(GitHubAPIError):
    """5xx or any other unexpected status."""


class GitHubNetworkError(GitHubAPIError):
    """Transport fault or timeout; no HTTP status available."""

    def __init__(self, message: str):
        super().__init__(message, None)


class GitHubServiceUnavailable(GitHubAPIError):
    """A /stats endpoint was still computing after every poll attempt."""

    def __init__(self, message: str = "GitHub stats are still being computed"):
        super().__init__(message, 503)
