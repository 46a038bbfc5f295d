"""Outbound error taxonomy.

Every error the read side surfaces to its caller carries a stable `code`,
a human message, an HTTP status and, for rate limits, a retry hint. The
framework layer only has to call `to_payload()` and use `status`.
"""

import time
from enum import Enum
from typing import Any

from repopulse.services.github.exceptions import (
    GitHubAPIError,
    GitHubNetworkError,
    GitHubNotFound,
    GitHubRateLimited,
    GitHubServiceUnavailable,
    GitHubUnauthorized,
    RepositoryForbidden,
)


class ErrorCode(str, Enum):
    RATE_LIMIT = "RATE_LIMIT"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    SERVER_ERROR = "SERVER_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_RANGE = "INVALID_RANGE"
    INVALID_PARAMS = "INVALID_PARAMS"
    INVALID_REPOS = "INVALID_REPOS"
    INVALID_SHA = "INVALID_SHA"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


# Default message and HTTP status per code
ERROR_DEFAULTS: dict[ErrorCode, tuple[str, int]] = {
    ErrorCode.RATE_LIMIT: ("Too many requests", 429),
    ErrorCode.NOT_FOUND: ("Not found", 404),
    ErrorCode.UNAUTHORIZED: ("Unauthorized", 403),
    ErrorCode.SERVER_ERROR: ("Server error", 500),
    ErrorCode.NETWORK_ERROR: ("Network error", 502),
    ErrorCode.INVALID_RANGE: ("Invalid range", 400),
    ErrorCode.INVALID_PARAMS: ("Invalid params", 400),
    ErrorCode.INVALID_REPOS: ("No valid repos", 400),
    ErrorCode.INVALID_SHA: ("Invalid SHA", 400),
    ErrorCode.SERVICE_UNAVAILABLE: ("Service temporarily unavailable", 503),
}


class APIError(Exception):
    """Base class for errors returned to API consumers."""

    code: ErrorCode = ErrorCode.SERVER_ERROR

    def __init__(
        self,
        message: str | None = None,
        *,
        code: ErrorCode | None = None,
        status: int | None = None,
        retry_after: int | None = None,
    ):
        if code is not None:
            self.code = code
        default_message, default_status = ERROR_DEFAULTS[self.code]
        self.message = message or default_message
        self.status = status or default_status
        self.retry_after = retry_after
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message, "code": self.code.value}
        if self.retry_after is not None:
            payload["retryAfter"] = self.retry_after
        return payload


class InvalidRangeError(APIError):
    code = ErrorCode.INVALID_RANGE


class InvalidParamsError(APIError):
    code = ErrorCode.INVALID_PARAMS


class InvalidReposError(APIError):
    code = ErrorCode.INVALID_REPOS


class InvalidShaError(APIError):
    code = ErrorCode.INVALID_SHA


class ServiceUnavailableError(APIError):
    code = ErrorCode.SERVICE_UNAVAILABLE


def to_api_error(exc: Exception) -> APIError:
    """Map a fetcher (or any) exception onto the outbound taxonomy."""
    if isinstance(exc, APIError):
        return exc
    if isinstance(exc, GitHubRateLimited):
        retry_after = None
        if exc.rate_limit_reset:
            retry_after = max(0, exc.rate_limit_reset - int(time.time()))
        return APIError("GitHub rate limit reached", code=ErrorCode.RATE_LIMIT, retry_after=retry_after)
    if isinstance(exc, RepositoryForbidden):
        return APIError(exc.message, code=ErrorCode.UNAUTHORIZED)
    if isinstance(exc, GitHubUnauthorized):
        # A bad token is our misconfiguration, not the caller's
        return APIError("GitHub configuration error", code=ErrorCode.UNAUTHORIZED, status=401)
    if isinstance(exc, GitHubNotFound):
        return APIError(exc.message, code=ErrorCode.NOT_FOUND)
    if isinstance(exc, GitHubServiceUnavailable):
        return ServiceUnavailableError("GitHub stats temporarily unavailable")
    if isinstance(exc, GitHubNetworkError):
        return APIError(exc.message, code=ErrorCode.NETWORK_ERROR)
    if isinstance(exc, GitHubAPIError):
        return APIError(exc.message, code=ErrorCode.SERVER_ERROR)
    return APIError()
