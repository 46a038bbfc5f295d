"""create_commit_history_tables

Revision ID: 7c1e4a9b2d30
Revises:
Create Date: 2026-10-19 09:12:41.503117

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "7c1e4a9b2d30"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 1. Tracked repositories
    op.create_table(
        "repositories",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("owner", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("owner", "name", name="uq_repositories_owner_name"),
    )
    op.create_index(op.f("ix_repositories_id"), "repositories", ["id"], unique=False)
    op.create_index(op.f("ix_repositories_name"), "repositories", ["name"], unique=False)

    # 2. Commits, unique per (repository, sha)
    op.create_table(
        "commits",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("repository_id", sa.Uuid(), nullable=False),
        sa.Column("sha", sa.String(length=40), nullable=False),
        sa.Column("short_sha", sa.String(length=7), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("message_title", sa.String(length=255), nullable=False),
        sa.Column("author", sa.String(length=255), nullable=False),
        sa.Column("author_email", sa.String(length=255), nullable=False),
        sa.Column("author_login", sa.String(length=100), nullable=True),
        sa.Column("author_avatar", sa.String(length=500), nullable=True),
        sa.Column("committed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("additions", sa.Integer(), nullable=False),
        sa.Column("deletions", sa.Integer(), nullable=False),
        sa.Column("files_changed", sa.Integer(), nullable=False),
        sa.Column("is_merge_commit", sa.Boolean(), nullable=False),
        sa.Column("html_url", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["repository_id"], ["repositories.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("repository_id", "sha", name="uq_commits_repository_sha"),
    )
    op.create_index(op.f("ix_commits_id"), "commits", ["id"], unique=False)
    op.create_index(op.f("ix_commits_repository_id"), "commits", ["repository_id"], unique=False)
    op.create_index(op.f("ix_commits_short_sha"), "commits", ["short_sha"], unique=False)
    op.create_index(op.f("ix_commits_author_login"), "commits", ["author_login"], unique=False)
    op.create_index(
        "ix_commits_repository_committed_at",
        "commits",
        ["repository_id", "committed_at"],
        unique=False,
    )

    # 3. Sync audit log
    op.create_table(
        "sync_logs",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("repository_id", sa.Uuid(), nullable=True),
        sa.Column("commits_added", sa.Integer(), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["repository_id"], ["repositories.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_sync_logs_id"), "sync_logs", ["id"], unique=False)
    op.create_index(op.f("ix_sync_logs_status"), "sync_logs", ["status"], unique=False)
    op.create_index(op.f("ix_sync_logs_repository_id"), "sync_logs", ["repository_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_sync_logs_repository_id"), table_name="sync_logs")
    op.drop_index(op.f("ix_sync_logs_status"), table_name="sync_logs")
    op.drop_index(op.f("ix_sync_logs_id"), table_name="sync_logs")
    op.drop_table("sync_logs")
    op.drop_index("ix_commits_repository_committed_at", table_name="commits")
    op.drop_index(op.f("ix_commits_author_login"), table_name="commits")
    op.drop_index(op.f("ix_commits_short_sha"), table_name="commits")
    op.drop_index(op.f("ix_commits_repository_id"), table_name="commits")
    op.drop_index(op.f("ix_commits_id"), table_name="commits")
    op.drop_table("commits")
    op.drop_index(op.f("ix_repositories_name"), table_name="repositories")
    op.drop_index(op.f("ix_repositories_id"), table_name="repositories")
    op.drop_table("repositories")
