"""
GitHub push webhook handling.

Verifies the X-Hub-Signature-256 HMAC, answers pings and feeds pushed
commits of allow-listed repositories through the engine's idempotent
single-commit upsert.
"""

import hashlib
import hmac
import json
import logging
from datetime import UTC, datetime
from typing import Any

from repopulse.config import settings
from repopulse.core.exceptions import APIError, ErrorCode, InvalidParamsError
from repopulse.services.github.helpers import parse_github_datetime
from repopulse.services.sync.engine import SyncEngine
from repopulse.services.sync.types import WebhookCommit, WebhookResult

logger = logging.getLogger(__name__)

MAX_WEBHOOK_BODY = 1024 * 1024
SIGNATURE_PREFIX = "sha256="


def verify_signature(body: bytes, signature: str | None, secret: str) -> bool:
    """Check a `sha256=<hex>` signature against the body in constant time."""
    if not signature or not secret:
        return False
    digest = SIGNATURE_PREFIX + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature.encode(), digest.encode())


def parse_push_commits(payload: dict[str, Any]) -> list[WebhookCommit]:
    """Commits of a push payload; falls back to head_commit when `commits` is absent."""
    raw_commits = payload.get("commits")
    if raw_commits is None:
        head = payload.get("head_commit")
        raw_commits = [head] if head else []

    if not isinstance(raw_commits, list):
        raise InvalidParamsError("Push payload commits must be a list")

    commits: list[WebhookCommit] = []
    for raw in raw_commits:
        if not isinstance(raw, dict):
            raise InvalidParamsError(f"Push payload commit must be an object, got {type(raw).__name__}")
        author = raw.get("author")
        if not isinstance(author, dict):
            author = {}
        commits.append(
            WebhookCommit(
                sha=raw["id"],
                message=raw.get("message") or "",
                author_name=author.get("name") or "Unknown",
                author_email=author.get("email") or "",
                timestamp=parse_github_datetime(raw.get("timestamp")) or datetime.now(UTC),
                url=raw.get("url"),
            )
        )
    return commits


async def process_push_event(
    event: str | None,
    payload: dict[str, Any],
    engine: SyncEngine | None = None,
) -> WebhookResult:
    """
    Apply a verified webhook delivery.

    ping -> "pong"; other non-push events and pushes to repositories outside
    the allow-list are acknowledged and ignored.
    """
    if event == "ping":
        return WebhookResult(message="pong")
    if event != "push":
        logger.debug(f"Ignoring webhook event {event!r}")
        return WebhookResult(message="Event ignored")

    repository = payload.get("repository") or {}
    owner_info = repository.get("owner") or {}
    owner = owner_info.get("login") or owner_info.get("name")
    name = repository.get("name")
    if not owner or not name:
        raise InvalidParamsError("Push payload has no repository")

    engine = engine or SyncEngine()
    if not engine.allowed.contains(owner, name):
        logger.warning(f"Ignoring push for non-allow-listed repository {owner}/{name}")
        return WebhookResult(message="Repository not allowed")

    try:
        commits = parse_push_commits(payload)
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidParamsError(f"Malformed push payload: {e}") from e

    added = 0
    for commit in commits:
        if await engine.add_commit_from_webhook(owner, name, commit):
            added += 1

    logger.info(f"Push for {owner}/{name}: {added}/{len(commits)} commits added")
    return WebhookResult(message="Push processed", received=len(commits), added=added)


async def handle_webhook(
    body: bytes,
    signature: str | None,
    event: str | None,
    secret: str | None = None,
    engine: SyncEngine | None = None,
) -> WebhookResult:
    """
    Verify and process a raw webhook delivery.

    Raises:
        APIError: SERVER_ERROR (500) when no secret is configured,
            413 for oversized bodies, UNAUTHORIZED (401) for a bad signature
        InvalidParamsError: body is not a JSON object
    """
    secret = settings.github_webhook_secret if secret is None else secret
    if not secret:
        logger.error("GITHUB_WEBHOOK_SECRET not configured")
        raise APIError("Webhook not configured", code=ErrorCode.SERVER_ERROR)

    if len(body) > MAX_WEBHOOK_BODY:
        raise InvalidParamsError("Payload too large", status=413)

    if not verify_signature(body, signature, secret):
        logger.warning("Rejected webhook delivery with invalid signature")
        raise APIError("Invalid signature", code=ErrorCode.UNAUTHORIZED, status=401)

    try:
        payload = json.loads(body)
    except ValueError as e:
        raise InvalidParamsError("Invalid JSON payload") from e
    if not isinstance(payload, dict):
        raise InvalidParamsError("Invalid JSON payload")

    return await process_push_event(event, payload, engine)
