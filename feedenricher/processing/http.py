"""
Shared HTTP Transport
=====================

One aiohttp session per pipeline run, shared read-only by the feed fetcher
and every enrichment task.
"""

import ssl
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import aiohttp
import certifi

from ..config.settings import FeedEnricherSettings, get_settings


DEFAULT_ACCEPT = (
    "text/html, application/xhtml+xml, application/rss+xml, "
    "application/atom+xml, application/xml;q=0.9, */*;q=0.8"
)


def build_ssl_context() -> ssl.SSLContext:
    """SSL context backed by the certifi CA bundle."""
    return ssl.create_default_context(cafile=certifi.where())


@asynccontextmanager
async def create_session(
    settings: Optional[FeedEnricherSettings] = None,
) -> AsyncIterator[aiohttp.ClientSession]:
    """Get a configured aiohttp session.

    Connection pool size follows the fan-out limit so that concurrent
    article fetches never queue on the connector. Idle pooled connections
    are closed after ``limits.idle_connection_timeout`` seconds.

    Args:
        settings: Settings to use (default: global settings)

    Yields:
        Open client session, closed on exit
    """
    settings = settings or get_settings()

    connector = aiohttp.TCPConnector(
        ssl=build_ssl_context(),
        limit=settings.processing.max_concurrent_fetches * 2,
        limit_per_host=settings.processing.max_concurrent_fetches,
        keepalive_timeout=settings.limits.idle_connection_timeout,
        enable_cleanup_closed=True,
    )

    timeout = aiohttp.ClientTimeout(total=settings.limits.request_timeout)

    headers = {
        "User-Agent": settings.get_user_agent(),
        "Accept": DEFAULT_ACCEPT,
        "Accept-Encoding": "gzip, deflate",
    }

    async with aiohttp.ClientSession(
        connector=connector, timeout=timeout, headers=headers
    ) as session:
        yield session


async def read_limited(response: aiohttp.ClientResponse, max_bytes: int) -> str:
    """Read a response body as text, truncated to ``max_bytes``.

    Args:
        response: Open response
        max_bytes: Maximum number of bytes to read

    Returns:
        Decoded body (undecodable bytes replaced)
    """
    body = await response.content.read(max_bytes)
    encoding = response.charset or "utf-8"
    try:
        return body.decode(encoding, errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")
