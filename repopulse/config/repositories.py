"""Repository allow-list - the only repositories this service may fetch, store or query."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class AllowedRepository:
    """A GitHub repository the dashboard is allowed to track."""

    owner: str
    name: str
    display_name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def key(self) -> tuple[str, str]:
        return (self.owner, self.name)


class RepositoryAllowList:
    """Lookup helper over a fixed set of allowed repositories.

    Matching is exact on (owner, name): GitHub treats names case-insensitively,
    but the allow-list is a security boundary so we do not normalize.
    """

    def __init__(self, repositories: Iterable[AllowedRepository]) -> None:
        self._repos: dict[tuple[str, str], AllowedRepository] = {
            repo.key: repo for repo in repositories
        }

    def __iter__(self) -> Iterator[AllowedRepository]:
        return iter(self._repos.values())

    def __len__(self) -> int:
        return len(self._repos)

    def contains(self, owner: str, name: str) -> bool:
        return (owner, name) in self._repos

    def get(self, owner: str, name: str) -> AllowedRepository | None:
        return self._repos.get((owner, name))

    def display_name(self, owner: str, name: str) -> str:
        """Configured display name, or the bare repository name."""
        repo = self._repos.get((owner, name))
        return repo.display_name if repo else name


ALLOWED_REPOSITORIES: tuple[AllowedRepository, ...] = (
    AllowedRepository(owner="5061756c2e56", name="portfolio", display_name="Portfolio"),
    AllowedRepository(owner="5061756c2e56", name="Web-Security", display_name="Web Security"),
)

allow_list = RepositoryAllowList(ALLOWED_REPOSITORIES)


# Series colors for multi-repository charts, assigned by request order
REPO_COLORS: list[str] = [
    "#3b82f6",
    "#8b5cf6",
    "#10b981",
    "#f59e0b",
    "#ef4444",
    "#06b6d4",
    "#ec4899",
    "#84cc16",
]
