from datetime import datetime

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from repopulse.models.base import TimestampMixin, UUIDMixin


class RepositoryBase(SQLModel):
    """Base fields for Repository."""

    owner: str = Field(max_length=100, nullable=False)
    name: str = Field(max_length=100, nullable=False, index=True)
    display_name: str | None = Field(default=None, max_length=255)


class Repository(RepositoryBase, UUIDMixin, TimestampMixin, table=True):
    """A tracked GitHub repository. Rows exist only for allow-listed repos."""

    __tablename__ = "repositories"
    __table_args__ = (UniqueConstraint("owner", "name", name="uq_repositories_owner_name"),)

    last_sync_at: datetime | None = Field(  # type: ignore[call-overload]
        default=None,
        sa_type=DateTime(timezone=True),
    )

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"
