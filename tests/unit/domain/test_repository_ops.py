"""Unit tests for RepositoryOperations: all DB calls mocked."""

import uuid
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.dialects import postgresql

from repopulse.domain.repository_operations import RepositoryOperations

from tests.helpers.mock_factories import (
    make_repository,
    mock_rows_result,
    mock_scalar_result,
    mock_scalars_result,
)


def compiled(statement) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))


class TestRepositoryGet:
    """Tests for single repository retrieval."""

    def setup_method(self):
        self.ops = RepositoryOperations()
        self.db = AsyncMock()

    @pytest.mark.asyncio
    async def test_get_returns_repository(self):
        repo = make_repository()
        self.db.execute = AsyncMock(return_value=mock_scalar_result(repo))

        result = await self.ops.get(self.db, repo.id)
        assert result == repo

    @pytest.mark.asyncio
    async def test_get_by_owner_name_returns_none_when_not_found(self):
        self.db.execute = AsyncMock(return_value=mock_scalar_result(None))

        result = await self.ops.get_by_owner_name(self.db, "acme", "missing")
        assert result is None


class TestRepositoryGetManyByKeys:
    def setup_method(self):
        self.ops = RepositoryOperations()
        self.db = AsyncMock()

    @pytest.mark.asyncio
    async def test_empty_keys_skip_the_query(self):
        result = await self.ops.get_many_by_keys(self.db, [])

        assert result == []
        self.db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_returns_stored_repositories(self):
        repos = [make_repository(name="portfolio"), make_repository(name="web-security")]
        self.db.execute = AsyncMock(return_value=mock_scalars_result(repos))

        result = await self.ops.get_many_by_keys(
            self.db, [("acme", "portfolio"), ("acme", "web-security"), ("acme", "unsynced")]
        )

        assert result == repos


class TestRepositoryUpsert:
    def setup_method(self):
        self.ops = RepositoryOperations()
        self.db = AsyncMock()

    @pytest.mark.asyncio
    async def test_upsert_keys_on_owner_and_name(self):
        repo = make_repository()
        self.db.execute = AsyncMock(return_value=mock_scalar_result(repo))

        result = await self.ops.upsert(self.db, "acme", "portfolio", "Portfolio")

        assert result == repo
        sql = compiled(self.db.execute.await_args.args[0])
        assert "ON CONFLICT (owner, name) DO UPDATE" in sql
        assert "coalesce" in sql.lower()
        self.db.flush.assert_awaited_once()


class TestRepositoryMarkSynced:
    @pytest.mark.asyncio
    async def test_sets_last_sync_at(self):
        ops = RepositoryOperations()
        db = AsyncMock()
        when = datetime(2024, 3, 14, tzinfo=UTC)

        await ops.mark_synced(db, uuid.uuid4(), when)

        statement = db.execute.await_args.args[0]
        assert "last_sync_at" in compiled(statement)
        db.flush.assert_awaited_once()


class TestRepositoryListWithCommitCounts:
    @pytest.mark.asyncio
    async def test_returns_pairs(self):
        ops = RepositoryOperations()
        db = AsyncMock()
        portfolio = make_repository(name="portfolio")
        db.execute = AsyncMock(return_value=mock_rows_result([(portfolio, 12)]))

        result = await ops.list_with_commit_counts(db)

        assert result == [(portfolio, 12)]
