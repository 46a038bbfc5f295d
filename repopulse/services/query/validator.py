"""Request parameter validation.

Everything here runs before any I/O and raises the typed APIError
subclasses from repopulse.core.exceptions.
"""

import re
from dataclasses import dataclass
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from repopulse.config import AllowedRepository, RepositoryAllowList, TimeRange, allow_list
from repopulse.core.exceptions import (
    InvalidParamsError,
    InvalidRangeError,
    InvalidReposError,
    InvalidShaError,
)
from repopulse.services.timeline.labels import resolve_locale

REPO_NAME_PATTERN = r"^[a-zA-Z0-9_.-]{1,100}$"
SHA_RE = re.compile(r"^[a-fA-F0-9]{7,40}$")

MAX_REPOS_PARAM_LENGTH = 4096
MAX_REPOS_COUNT = 20
MAX_SEARCH_LENGTH = 128
DEFAULT_RANGE = TimeRange.MONTHS_12


class RepoParam(BaseModel):
    """One {"owner", "name"} entry of the repos parameter."""

    model_config = ConfigDict(strict=True, extra="ignore")

    owner: str = Field(pattern=REPO_NAME_PATTERN)
    name: str = Field(pattern=REPO_NAME_PATTERN)


RepoParamList = TypeAdapter(Annotated[list[RepoParam], Field(max_length=MAX_REPOS_COUNT)])


@dataclass
class QueryParams:
    repos: list[AllowedRepository]
    range: TimeRange
    locale: str
    search: str | None = None


def parse_range(raw: str | None, default: TimeRange = DEFAULT_RANGE) -> TimeRange:
    if not raw:
        return default
    try:
        return TimeRange(raw)
    except ValueError:
        raise InvalidRangeError() from None


def parse_repos(
    raw: str | None,
    repositories: RepositoryAllowList = allow_list,
) -> list[AllowedRepository]:
    """
    Parse the JSON repos parameter into allow-list entries.

    An absent or empty parameter selects every allow-listed repository.

    Raises:
        InvalidParamsError: too long, not JSON, not an array of at most 20
            {"owner", "name"} objects with valid names
        InvalidReposError: an entry is not allow-listed, or the list is empty
    """
    if not raw:
        return list(repositories)

    if len(raw) > MAX_REPOS_PARAM_LENGTH:
        raise InvalidParamsError()

    try:
        params = RepoParamList.validate_json(raw)
    except ValidationError:
        raise InvalidParamsError() from None

    selected: list[AllowedRepository] = []
    for param in params:
        entry = repositories.get(param.owner, param.name)
        if entry is None:
            raise InvalidReposError()
        if entry not in selected:
            selected.append(entry)

    if not selected:
        raise InvalidReposError()
    return selected


def validate_sha(sha: str | None) -> str:
    """Lower-cased SHA (7 to 40 hex characters)."""
    if not sha or not SHA_RE.match(sha):
        raise InvalidShaError()
    return sha.lower()


def normalize_search(query: str | None) -> str | None:
    """Trimmed, lower-cased search capped at 128 characters; None when blank."""
    if query is None:
        return None
    query = query.strip()[:MAX_SEARCH_LENGTH].lower()
    return query or None


def parse_query_params(
    range: str | None = None,
    repos: str | None = None,
    locale: str | None = None,
    search: str | None = None,
    *,
    default_range: TimeRange = DEFAULT_RANGE,
    repositories: RepositoryAllowList = allow_list,
) -> QueryParams:
    """Validate raw query-string values for the read operations."""
    return QueryParams(
        repos=parse_repos(repos, repositories),
        range=parse_range(range, default_range),
        locale=resolve_locale(locale),
        search=normalize_search(search),
    )
