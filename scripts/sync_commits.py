"""Sync commit history of allow-listed repositories into the database.

Usage:
    python -m scripts.sync_commits                       # full sync, every repository
    python -m scripts.sync_commits --incremental         # only recent commits
    python -m scripts.sync_commits --owner acme --repo api
    python -m scripts.sync_commits --status              # print stored counts and recent runs

Exits with status 1 when any repository failed to sync.
"""

import argparse
import asyncio
import logging
import sys

from repopulse.config import allow_list
from repopulse.core.database import close_db
from repopulse.core.log_config import setup_logging
from repopulse.services.cache import close_cache_layer
from repopulse.services.github import close_github_client
from repopulse.services.sync import SyncEngine, SyncSummary

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--owner", help="Owner of a single repository to sync")
    parser.add_argument("--repo", help="Name of a single repository to sync")
    parser.add_argument(
        "--incremental",
        action="store_true",
        help="Only fetch commits since the last sync (minus a safety overlap)",
    )
    parser.add_argument("--status", action="store_true", help="Show sync status and exit")
    return parser


async def print_status(engine: SyncEngine) -> None:
    overview = await engine.status_overview()
    print("Repositories:")
    for repo in overview.repositories:
        last_sync = repo.last_sync_at.isoformat() if repo.last_sync_at else "never"
        print(f"  {repo.owner}/{repo.name}: {repo.commit_count} commits (last sync: {last_sync})")
    print("Recent sync runs:")
    for log in overview.recent_logs:
        print(f"  {log.started_at.isoformat()} {log.type:<11} {log.status:<9} +{log.commits_added}")


def report(summary: SyncSummary) -> None:
    for result in summary.results:
        if result.success:
            logger.info(f"{result.repo}: {result.commits_added} added, {result.backfilled} backfilled")
        else:
            logger.error(f"{result.repo}: {result.error}")
    logger.info(f"{summary.succeeded}/{summary.total} repositories synced")


async def run(args: argparse.Namespace) -> int:
    engine = SyncEngine()
    try:
        if args.status:
            await print_status(engine)
            return 0

        if args.owner or args.repo:
            if not (args.owner and args.repo):
                logger.error("--owner and --repo must be given together")
                return 2
            if not allow_list.contains(args.owner, args.repo):
                logger.error(f"{args.owner}/{args.repo} is not in the allow-list")
                return 1
            result = await engine.sync_repository(args.owner, args.repo, incremental=args.incremental)
            summary = SyncSummary(
                total=1,
                succeeded=int(result.success),
                failed=int(not result.success),
                results=[result],
            )
        else:
            summary = await engine.sync_all_repositories(incremental=args.incremental)

        report(summary)
        return 1 if summary.failed else 0
    finally:
        await close_cache_layer()
        await close_github_client()
        await close_db()


def main(argv: list[str] | None = None) -> int:
    setup_logging()
    args = build_parser().parse_args(argv)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
