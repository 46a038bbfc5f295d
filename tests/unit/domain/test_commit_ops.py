"""Unit tests for CommitOperations: all DB calls mocked."""

import uuid
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from repopulse.domain.commit_operations import CommitOperations

from tests.helpers.mock_factories import (
    FIXED_NOW,
    make_commit,
    make_repository,
    make_sha,
    mock_rows_result,
    mock_scalar_result,
    mock_scalars_result,
)


def compiled(statement) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))


def commit_row(repository_id: uuid.UUID, seed: int) -> dict:
    sha = make_sha(seed)
    return {
        "repository_id": repository_id,
        "sha": sha,
        "short_sha": sha[:7],
        "message": "Fix",
        "message_title": "Fix",
        "author": "Alice",
        "author_email": "alice@example.com",
        "committed_at": FIXED_NOW,
        "additions": 1,
        "deletions": 0,
        "files_changed": 1,
        "is_merge_commit": False,
    }


class TestBulkInsert:
    def setup_method(self):
        self.ops = CommitOperations()
        self.db = AsyncMock()

    @pytest.mark.asyncio
    async def test_empty_rows_skip_the_query(self):
        assert await self.ops.bulk_insert(self.db, []) == 0
        self.db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_counts_only_returned_rows(self):
        repository_id = uuid.uuid4()
        rows = [commit_row(repository_id, i) for i in range(3)]
        # One of the three already existed
        self.db.execute = AsyncMock(return_value=mock_scalars_result([uuid.uuid4(), uuid.uuid4()]))

        inserted = await self.ops.bulk_insert(self.db, rows)

        assert inserted == 2
        sql = compiled(self.db.execute.await_args.args[0])
        assert "ON CONFLICT (repository_id, sha) DO NOTHING" in sql
        assert "RETURNING" in sql


class TestUpsertFromWebhook:
    @pytest.mark.asyncio
    async def test_conflict_only_fills_author_fields(self):
        ops = CommitOperations()
        db = AsyncMock()

        await ops.upsert_from_webhook(db, commit_row(uuid.uuid4(), 1))

        sql = compiled(db.execute.await_args.args[0])
        set_clause = sql.split("DO UPDATE SET", 1)[1]
        assert "author_login" in set_clause
        assert "author_avatar" in set_clause
        assert "message" not in set_clause
        assert "additions" not in set_clause


class TestBackfillAuthor:
    def setup_method(self):
        self.ops = CommitOperations()
        self.db = AsyncMock()

    @pytest.mark.asyncio
    async def test_nothing_to_fill(self):
        assert await self.ops.backfill_author(self.db, uuid.uuid4(), None, None) is False
        self.db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_coalesces_with_existing_value(self):
        self.db.execute = AsyncMock(return_value=MagicMock(rowcount=1))

        updated = await self.ops.backfill_author(self.db, uuid.uuid4(), "alice", None)

        assert updated is True
        sql = compiled(self.db.execute.await_args.args[0])
        assert "coalesce(commits.author_login" in sql
        assert "author_avatar" not in sql

    @pytest.mark.asyncio
    async def test_missing_row(self):
        self.db.execute = AsyncMock(return_value=MagicMock(rowcount=0))

        assert await self.ops.backfill_author(self.db, uuid.uuid4(), "alice", "https://a") is False


class TestReads:
    def setup_method(self):
        self.ops = CommitOperations()
        self.db = AsyncMock()
        self.since = datetime(2024, 3, 1, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_existing_shas(self):
        self.db.execute = AsyncMock(return_value=mock_scalars_result(["a", "b", "a"]))

        assert await self.ops.get_existing_shas(self.db, uuid.uuid4()) == {"a", "b"}

    @pytest.mark.asyncio
    async def test_no_repositories_short_circuit(self):
        assert await self.ops.search(self.db, [], self.since) == []
        assert await self.ops.get_timestamps(self.db, [], self.since) == []
        assert await self.ops.count(self.db, [], self.since) == 0
        assert await self.ops.count_by_repository(self.db, []) == {}
        assert await self.ops.code_totals(self.db, [], self.since) == (0, 0)
        assert await self.ops.author_commit_counts(self.db, [], self.since) == {}
        self.db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_search_with_prefix_filters_on_sha(self):
        repository_id = uuid.uuid4()
        commit = make_commit(repository_id)
        self.db.execute = AsyncMock(return_value=mock_scalars_result([commit]))

        result = await self.ops.search(self.db, [repository_id], self.since, "abc")

        assert result == [commit]
        sql = compiled(self.db.execute.await_args.args[0])
        assert "commits.sha LIKE" in sql
        assert "ORDER BY commits.committed_at DESC" in sql

    @pytest.mark.asyncio
    async def test_get_with_repository(self):
        repository = make_repository()
        commit = make_commit(repository.id)
        self.db.execute = AsyncMock(return_value=mock_rows_result([(commit, repository)]))

        assert await self.ops.get_with_repository(self.db, "acme", "portfolio", commit.sha) == (
            commit,
            repository,
        )

    @pytest.mark.asyncio
    async def test_get_with_repository_unknown(self):
        self.db.execute = AsyncMock(return_value=mock_rows_result([]))

        assert await self.ops.get_with_repository(self.db, "acme", "portfolio", make_sha(1)) is None

    @pytest.mark.asyncio
    async def test_count_null_is_zero(self):
        self.db.execute = AsyncMock(return_value=mock_scalar_result(None))

        assert await self.ops.count(self.db, [uuid.uuid4()], self.since) == 0

    @pytest.mark.asyncio
    async def test_count_with_upper_bound_is_half_open(self):
        self.db.execute = AsyncMock(return_value=mock_scalar_result(2))
        until = datetime(2024, 3, 15, tzinfo=UTC)

        assert await self.ops.count(self.db, [uuid.uuid4()], self.since, until) == 2
        sql = compiled(self.db.execute.await_args.args[0])
        assert "commits.committed_at >=" in sql
        assert "commits.committed_at <" in sql.replace("commits.committed_at >=", "")

    @pytest.mark.asyncio
    async def test_count_without_upper_bound_is_open_ended(self):
        self.db.execute = AsyncMock(return_value=mock_scalar_result(2))

        await self.ops.count(self.db, [uuid.uuid4()], self.since)

        sql = compiled(self.db.execute.await_args.args[0])
        assert "commits.committed_at <" not in sql.replace("commits.committed_at >=", "")

    @pytest.mark.asyncio
    async def test_code_totals(self):
        self.db.execute = AsyncMock(return_value=mock_rows_result([(15, 4)]))

        assert await self.ops.code_totals(self.db, [uuid.uuid4()], self.since) == (15, 4)

    @pytest.mark.asyncio
    async def test_author_counts_skip_null_logins(self):
        self.db.execute = AsyncMock(return_value=mock_rows_result([("alice", 3), (None, 2)]))

        assert await self.ops.author_commit_counts(self.db, [uuid.uuid4()], self.since) == {"alice": 3}
