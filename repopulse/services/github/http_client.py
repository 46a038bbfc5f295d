"""
Process-wide httpx client for the GitHub REST API.

One pooled HTTP/2 connection set is shared by the fetcher, the sync engine
and the query facade. The bearer token is attached per request by the
fetcher so the client itself holds no credentials.
"""

import logging

import httpx

from repopulse.services.github.constants import API_VERSION

logger = logging.getLogger(__name__)

USER_AGENT = "RepoPulse-GitHub-Stats/1.0"

# Detail fetches run concurrently during a sync batch
POOL_LIMITS = httpx.Limits(max_connections=20, max_keepalive_connections=10)
REQUEST_TIMEOUT = httpx.Timeout(30.0, connect=5.0)

_client: httpx.AsyncClient | None = None


def get_github_client() -> httpx.AsyncClient:
    """Return the shared client, creating it on first use or after close."""
    global _client
    if _client is None or _client.is_closed:
        _client = httpx.AsyncClient(
            timeout=REQUEST_TIMEOUT,
            limits=POOL_LIMITS,
            headers={
                "User-Agent": USER_AGENT,
                "X-GitHub-Api-Version": API_VERSION,
            },
            http2=True,
        )
        logger.debug("Opened GitHub HTTP client")
    return _client


async def close_github_client() -> None:
    """Close the shared client; the next get_github_client() opens a new one."""
    global _client
    if _client is None:
        return
    if not _client.is_closed:
        await _client.aclose()
        logger.debug("Closed GitHub HTTP client")
    _client = None
