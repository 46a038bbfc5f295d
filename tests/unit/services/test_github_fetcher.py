"""Unit tests for GitHubCommitFetcher.

HTTP is served by httpx.MockTransport; sleeps are recorded, never awaited.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
import pytest

from repopulse.services.github import (
    BackoffPolicy,
    GitHubCommitFetcher,
    GitHubNetworkError,
    GitHubNotFound,
    GitHubRateLimited,
    GitHubServerError,
    GitHubServiceUnavailable,
    GitHubUnauthorized,
    PollState,
    RepositoryForbidden,
    contributors_from_commits,
)

from tests.helpers.mock_factories import (
    TEST_ALLOW_LIST,
    github_commit_item,
    make_commit_summary,
    make_sha,
)

BASE_URL = "https://api.github.test"


class Recorder:
    """MockTransport handler that records requests and replays responses."""

    def __init__(self, responder):
        self.responder = responder
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)


def make_fetcher(responder, *, sleep=None, backoff=None, token="test-token"):
    recorder = Recorder(responder)
    client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    fetcher = GitHubCommitFetcher(
        token,
        base_url=BASE_URL,
        repositories=TEST_ALLOW_LIST,
        backoff=backoff,
        sleep=sleep or AsyncMock(),
        client_factory=lambda: client,
    )
    return fetcher, recorder


# ═══════════════════════════════════════════════════════════════════════════
# Allow-list guard
# ═══════════════════════════════════════════════════════════════════════════


class TestAllowListGuard:
    """Non-allow-listed repositories never reach the network."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "call",
        [
            lambda f: f.fetch_commit_list("evil", "repo"),
            lambda f: f.fetch_all_commits("evil", "repo"),
            lambda f: f.fetch_commit_detail("evil", "repo", make_sha(1)),
            lambda f: f.fetch_commit_activity("evil", "repo"),
            lambda f: f.fetch_code_frequency("evil", "repo"),
            lambda f: f.fetch_repo_info("evil", "repo"),
            lambda f: f.fetch_languages("evil", "repo"),
            lambda f: f.fetch_contributors("evil", "repo"),
        ],
    )
    async def test_raises_forbidden_without_request(self, call):
        fetcher, recorder = make_fetcher(lambda r: httpx.Response(200, json=[]))

        with pytest.raises(RepositoryForbidden):
            await call(fetcher)

        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_owner_match_is_case_sensitive(self):
        fetcher, recorder = make_fetcher(lambda r: httpx.Response(200, json=[]))

        with pytest.raises(RepositoryForbidden):
            await fetcher.fetch_commit_list("ACME", "portfolio")

        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_missing_token_is_unauthorized(self):
        fetcher, recorder = make_fetcher(lambda r: httpx.Response(200, json=[]), token="")

        with pytest.raises(GitHubUnauthorized):
            await fetcher.fetch_commit_list("acme", "portfolio")

        assert recorder.requests == []


# ═══════════════════════════════════════════════════════════════════════════
# Commit list and pagination
# ═══════════════════════════════════════════════════════════════════════════


class TestFetchCommitList:
    @pytest.mark.asyncio
    async def test_parses_items_and_sends_auth_headers(self):
        sha = make_sha("a")
        fetcher, recorder = make_fetcher(
            lambda r: httpx.Response(200, json=[github_commit_item(sha, login="alice", parents=2)])
        )

        page = await fetcher.fetch_commit_list("acme", "portfolio", per_page=30)

        assert page.has_more is False
        commit = page.commits[0]
        assert commit.sha == sha
        assert commit.short_sha == sha[:7]
        assert commit.message_title == "Fix things"
        assert commit.author_login == "alice"
        assert commit.parent_count == 2
        assert commit.committed_at.tzinfo is not None

        request = recorder.requests[0]
        assert request.url.path == "/repos/acme/portfolio/commits"
        assert request.url.params["per_page"] == "30"
        assert request.headers["Authorization"] == "Bearer test-token"
        assert request.headers["X-GitHub-Api-Version"] == "2022-11-28"

    @pytest.mark.asyncio
    async def test_has_more_only_on_full_page(self):
        fetcher, _ = make_fetcher(
            lambda r: httpx.Response(200, json=[github_commit_item(make_sha(i)) for i in range(2)])
        )

        page = await fetcher.fetch_commit_list("acme", "portfolio", per_page=2)

        assert page.has_more is True

    @pytest.mark.asyncio
    async def test_since_is_formatted_in_utc(self):
        from datetime import UTC, datetime

        fetcher, recorder = make_fetcher(lambda r: httpx.Response(200, json=[]))

        await fetcher.fetch_commit_list(
            "acme", "portfolio", since=datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)
        )

        assert recorder.requests[0].url.params["since"] == "2024-01-02T03:04:05Z"


class TestFetchAllCommits:
    @pytest.mark.asyncio
    async def test_walks_pages_until_short_page(self, sleep):
        pages = {
            "1": [github_commit_item(make_sha(i)) for i in range(2)],
            "2": [github_commit_item(make_sha(i)) for i in range(2, 4)],
            "3": [github_commit_item(make_sha(4))],
        }
        fetcher, recorder = make_fetcher(
            lambda r: httpx.Response(200, json=pages[r.url.params["page"]]), sleep=sleep
        )

        commits = await fetcher.fetch_all_commits("acme", "portfolio", per_page=2, page_delay=0.1)

        assert len(commits) == 5
        assert len(recorder.requests) == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_exact_multiple_stops_after_empty_page(self):
        pages = {"1": [github_commit_item(make_sha(i)) for i in range(2)], "2": []}
        fetcher, recorder = make_fetcher(lambda r: httpx.Response(200, json=pages[r.url.params["page"]]))

        commits = await fetcher.fetch_all_commits("acme", "portfolio", per_page=2, page_delay=0)

        assert len(commits) == 2
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_respects_max_pages(self):
        fetcher, recorder = make_fetcher(
            lambda r: httpx.Response(200, json=[github_commit_item(make_sha(i)) for i in range(2)])
        )

        commits = await fetcher.fetch_all_commits(
            "acme", "portfolio", per_page=2, max_pages=3, page_delay=0
        )

        assert len(commits) == 6
        assert len(recorder.requests) == 3

    @pytest.mark.asyncio
    async def test_error_on_later_page_propagates(self):
        def respond(request):
            if request.url.params["page"] == "1":
                return httpx.Response(200, json=[github_commit_item(make_sha(i)) for i in range(2)])
            return httpx.Response(502)

        fetcher, _ = make_fetcher(respond)

        with pytest.raises(GitHubServerError):
            await fetcher.fetch_all_commits("acme", "portfolio", per_page=2, page_delay=0)


# ═══════════════════════════════════════════════════════════════════════════
# Error mapping
# ═══════════════════════════════════════════════════════════════════════════


class TestErrorMapping:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "headers", "expected"),
        [
            (401, {}, GitHubUnauthorized),
            (404, {}, GitHubNotFound),
            (403, {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"}, GitHubRateLimited),
            (429, {}, GitHubRateLimited),
            (403, {"X-RateLimit-Remaining": "12"}, RepositoryForbidden),
            (500, {}, GitHubServerError),
            (422, {}, GitHubServerError),
        ],
    )
    async def test_status_maps_to_typed_error(self, status, headers, expected):
        fetcher, _ = make_fetcher(lambda r: httpx.Response(status, headers=headers))

        with pytest.raises(expected):
            await fetcher.fetch_repo_info("acme", "portfolio")

    @pytest.mark.asyncio
    async def test_rate_limit_carries_reset(self):
        fetcher, _ = make_fetcher(
            lambda r: httpx.Response(
                403, headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"}
            )
        )

        with pytest.raises(GitHubRateLimited) as exc_info:
            await fetcher.fetch_commit_list("acme", "portfolio")

        assert exc_info.value.rate_limit_reset == 1700000000
        assert exc_info.value.rate_limit_remaining == 0

    @pytest.mark.asyncio
    async def test_transport_failure_is_network_error(self):
        def respond(request):
            raise httpx.ConnectError("connection refused", request=request)

        fetcher, _ = make_fetcher(respond)

        with pytest.raises(GitHubNetworkError):
            await fetcher.fetch_commit_list("acme", "portfolio")

    @pytest.mark.asyncio
    async def test_timeout_is_network_error(self):
        def respond(request):
            raise httpx.ReadTimeout("too slow", request=request)

        fetcher, _ = make_fetcher(respond)

        with pytest.raises(GitHubNetworkError) as exc_info:
            await fetcher.fetch_commit_detail("acme", "portfolio", make_sha(1))

        assert exc_info.value.status_code is None


# ═══════════════════════════════════════════════════════════════════════════
# Commit detail
# ═══════════════════════════════════════════════════════════════════════════


class TestFetchCommitDetail:
    @pytest.mark.asyncio
    async def test_parses_stats_and_files(self):
        sha = make_sha("detail")
        item = github_commit_item(sha, login="bob")
        item["stats"] = {"additions": 7, "deletions": 3, "total": 10}
        item["files"] = [
            {"filename": "a.py", "status": "modified", "additions": 5, "deletions": 1},
            {"filename": "b.py", "status": "added", "additions": 2, "deletions": 2},
        ]
        del item["html_url"]
        fetcher, recorder = make_fetcher(lambda r: httpx.Response(200, json=item))

        detail = await fetcher.fetch_commit_detail("acme", "portfolio", sha)

        assert recorder.requests[0].url.path == f"/repos/acme/portfolio/commits/{sha}"
        assert (detail.additions, detail.deletions, detail.total) == (7, 3, 10)
        assert detail.files_changed == 2
        assert detail.author_login == "bob"
        assert detail.is_merge_commit is False
        assert detail.html_url == f"https://github.com/acme/portfolio/commit/{sha}"


# ═══════════════════════════════════════════════════════════════════════════
# /stats polling
# ═══════════════════════════════════════════════════════════════════════════


class TestBackoffPolicy:
    def test_delay_grows_and_caps(self):
        policy = BackoffPolicy(base_delay=1.0, multiplier=2.0, max_delay=5.0, max_attempts=6)

        assert [policy.delay(n) for n in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_state_machine(self):
        policy = BackoffPolicy(max_attempts=3)

        assert policy.next_state(200, 0) is PollState.READY
        assert policy.next_state(404, 1) is PollState.READY
        assert policy.next_state(202, 0) is PollState.PENDING
        assert policy.next_state(202, 1) is PollState.PENDING
        assert policy.next_state(202, 2) is PollState.EXHAUSTED


class TestAggregateStats:
    @pytest.mark.asyncio
    async def test_polls_through_202_then_parses(self, sleep):
        responses = iter(
            [
                httpx.Response(202, json={}),
                httpx.Response(202, json={}),
                httpx.Response(200, json=[{"week": 1709424000, "total": 3, "days": [0, 1, 2, 0, 0, 0, 0]}]),
            ]
        )
        policy = BackoffPolicy(base_delay=1.0, multiplier=2.0, max_delay=10.0, max_attempts=5)
        fetcher, recorder = make_fetcher(lambda r: next(responses), sleep=sleep, backoff=policy)

        weeks = await fetcher.fetch_commit_activity("acme", "portfolio")

        assert len(recorder.requests) == 3
        assert recorder.requests[0].url.path == "/repos/acme/portfolio/stats/commit_activity"
        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0]
        assert weeks[0].total == 3
        assert weeks[0].days == [0, 1, 2, 0, 0, 0, 0]
        assert weeks[0].week.year == 2024

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, sleep):
        policy = BackoffPolicy(base_delay=1.0, multiplier=2.0, max_delay=10.0, max_attempts=3)
        fetcher, recorder = make_fetcher(lambda r: httpx.Response(202, json={}), sleep=sleep, backoff=policy)

        with pytest.raises(GitHubServiceUnavailable):
            await fetcher.fetch_code_frequency("acme", "portfolio")

        assert len(recorder.requests) == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_code_frequency_deletions_are_positive(self):
        fetcher, _ = make_fetcher(lambda r: httpx.Response(200, json=[[1709424000, 120, -45]]))

        weeks = await fetcher.fetch_code_frequency("acme", "portfolio")

        assert weeks[0].additions == 120
        assert weeks[0].deletions == 45

    @pytest.mark.asyncio
    async def test_error_while_polling_propagates(self, sleep):
        responses = iter([httpx.Response(202, json={}), httpx.Response(404)])
        fetcher, _ = make_fetcher(lambda r: next(responses), sleep=sleep)

        with pytest.raises(GitHubNotFound):
            await fetcher.fetch_commit_activity("acme", "portfolio")


# ═══════════════════════════════════════════════════════════════════════════
# Repository metadata
# ═══════════════════════════════════════════════════════════════════════════


class TestMetadata:
    @pytest.mark.asyncio
    async def test_repo_info(self):
        fetcher, _ = make_fetcher(
            lambda r: httpx.Response(
                200,
                json={
                    "stargazers_count": 12,
                    "forks_count": 3,
                    "open_issues_count": 4,
                    "size": 2048,
                    "default_branch": "main",
                    "pushed_at": "2024-03-10T08:00:00Z",
                },
            )
        )

        info = await fetcher.fetch_repo_info("acme", "portfolio")

        assert (info.stars, info.forks, info.open_issues, info.size) == (12, 3, 4, 2048)
        assert info.pushed_at is not None and info.pushed_at.day == 10

    @pytest.mark.asyncio
    async def test_languages_sorted_with_percentages(self):
        fetcher, _ = make_fetcher(
            lambda r: httpx.Response(200, json={"CSS": 250, "TypeScript": 750, "Brainfuck": 0})
        )

        languages = await fetcher.fetch_languages("acme", "portfolio")

        assert [lang.name for lang in languages] == ["TypeScript", "CSS", "Brainfuck"]
        assert languages[0].percentage == 75.0
        assert languages[1].percentage == 25.0
        assert languages[0].color.startswith("#")

    @pytest.mark.asyncio
    async def test_contributors_from_endpoint(self):
        fetcher, _ = make_fetcher(
            lambda r: httpx.Response(
                200,
                json=[
                    {
                        "login": "alice",
                        "avatar_url": "https://avatars.example/alice",
                        "contributions": 42,
                        "html_url": "https://github.com/alice",
                    }
                ],
            )
        )

        contributors = await fetcher.fetch_contributors("acme", "portfolio")

        assert contributors[0].login == "alice"
        assert contributors[0].contributions == 42

    @pytest.mark.asyncio
    async def test_contributors_fall_back_to_commit_sample(self):
        def respond(request):
            if request.url.path.endswith("/contributors"):
                return httpx.Response(204)
            return httpx.Response(
                200,
                json=[
                    github_commit_item(make_sha(1), login="alice"),
                    github_commit_item(make_sha(2), login="alice"),
                    github_commit_item(make_sha(3), author="Bob", email="bob@example.com"),
                ],
            )

        fetcher, recorder = make_fetcher(respond)

        contributors = await fetcher.fetch_contributors("acme", "portfolio")

        assert recorder.requests[1].url.params["per_page"] == "100"
        assert [(c.login, c.contributions) for c in contributors] == [("alice", 2), ("Bob", 1)]


class TestContributorsFromCommits:
    def test_synthesizes_profile_urls(self):
        commits = [
            make_commit_summary(make_sha(1), author_login="alice", author_avatar="https://a/alice"),
            make_commit_summary(make_sha(2), author="bob-dev", author_email="bob@example.com"),
            make_commit_summary(make_sha(3), author="Jane Doe", author_email="jane@example.com"),
        ]

        contributors = {c.login: c for c in contributors_from_commits(commits)}

        assert contributors["alice"].profile_url == "https://github.com/alice"
        assert contributors["alice"].avatar_url == "https://a/alice"
        assert contributors["bob-dev"].profile_url == "https://github.com/bob-dev"
        assert contributors["bob-dev"].avatar_url == "https://github.com/bob-dev.png?size=100"
        assert contributors["Jane Doe"].profile_url == (
            "https://github.com/search?q=jane%40example.com&type=users"
        )

    def test_respects_limit(self):
        commits = [
            make_commit_summary(make_sha(i), author_login=f"user{i}", author_email=f"u{i}@x.io")
            for i in range(5)
        ]

        assert len(contributors_from_commits(commits, limit=3)) == 3
