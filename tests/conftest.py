"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for FeedEnricher tests.

The pipeline is exercised against an in-memory transport: ``FakeSession``
answers ``session.get(url)`` from a routing table, so no test touches the
network.
"""

import pytest
import asyncio
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, Dict, Optional, Union
from unittest.mock import MagicMock

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
os.environ["FEEDENRICHER_LOGGING__FILE_PATH"] = ""
os.environ["FEEDENRICHER_PROCESSING__PACING_DELAY_SECONDS"] = "0"
os.environ["FEEDENRICHER_LOGGING__CONSOLE_LOGGING"] = "false"

import aiohttp

from feedenricher.config.settings import (
    FeedEnricherSettings,
    LimitsSettings,
    LoggingSettings,
    ProcessingSettings,
)
from feedenricher.models import ArticleContent, FeedItem, ParsedFeed


SAMPLE_RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
    <channel>
        <title>Test RSS Feed</title>
        <link>http://example.com</link>
        <description>Test feed for validation</description>
        <item>
            <title>First Article</title>
            <link>http://example.com/article1</link>
            <description>&lt;p&gt;First &lt;b&gt;summary&lt;/b&gt;&lt;/p&gt;</description>
            <pubDate>Thu, 05 Sep 2024 12:00:00 GMT</pubDate>
            <guid>article-1-guid</guid>
        </item>
        <item>
            <title>Second Article</title>
            <link>http://example.com/article2</link>
            <description>Second summary</description>
            <pubDate>Fri, 06 Sep 2024 12:00:00 GMT</pubDate>
        </item>
        <item>
            <title>Linkless Note</title>
            <description>Just a note</description>
        </item>
    </channel>
</rss>"""


SAMPLE_ATOM = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
    <title>Test Atom Feed</title>
    <id>urn:uuid:60a76c80-d399-11d9-b93C-0003939e0af6</id>
    <updated>2024-09-05T18:30:02Z</updated>
    <entry>
        <title>Atom Entry</title>
        <link href="http://example.org/2024/09/05/atom"/>
        <id>urn:uuid:1225c695-cfb8-4ebb-aaaa-80da344efa6a</id>
        <updated>2024-09-05T18:30:02Z</updated>
        <content type="html">&lt;p&gt;Full atom content&lt;/p&gt;</content>
    </entry>
</feed>"""


# ============================================================================
# In-memory transport
# ============================================================================


class FakeStreamReader:
    """Stands in for ``aiohttp.StreamReader``."""

    def __init__(self, body: bytes):
        self._body = body

    async def read(self, n: int = -1) -> bytes:
        if n is None or n < 0:
            return self._body
        return self._body[:n]


class FakeResponse:
    """Minimal ``aiohttp.ClientResponse`` replacement."""

    def __init__(
        self,
        body: Union[str, bytes] = "",
        status: int = 200,
        url: Optional[str] = None,
        charset: Optional[str] = "utf-8",
        reason: str = "OK",
    ):
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.status = status
        self.url = url
        self.charset = charset
        self.reason = reason
        self.content = FakeStreamReader(body)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Routes ``get`` calls to canned responses by URL.

    A route value may be a ``FakeResponse`` or an exception instance, which
    is raised when the request is made. Unknown URLs get a 404.
    """

    def __init__(self, routes: Optional[Dict[str, Union[FakeResponse, Exception]]] = None):
        self.routes = dict(routes or {})
        self.requested = []

    def get(self, url: str, **kwargs):
        self.requested.append(url)
        route = self.routes.get(url)
        if isinstance(route, Exception):
            raise route
        if route is None:
            return FakeResponse(status=404, url=url, reason="Not Found")
        if route.url is None:
            route.url = url
        return route


def session_factory_for(session) -> Callable:
    """Session factory yielding ``session`` for every pipeline run."""

    @asynccontextmanager
    async def factory(settings):
        yield session

    return factory


# ============================================================================
# Pipeline collaborators
# ============================================================================


class StubFetcher:
    """Feed source returning a prepared ``ParsedFeed``."""

    def __init__(self, feed: Optional[ParsedFeed] = None, error: Optional[Exception] = None):
        self.feed = feed
        self.error = error
        self.calls = 0

    async def fetch(self, feed_url: str, session) -> ParsedFeed:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.feed


class StubExtractor:
    """Article enricher with per-URL canned results.

    Tracks how many ``enrich`` calls are in flight at once.
    """

    def __init__(
        self,
        results: Optional[Dict[str, Union[ArticleContent, Exception]]] = None,
        delay: float = 0.0,
    ):
        self.results = dict(results or {})
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def enrich(self, url: str, session) -> ArticleContent:
        self.calls.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            result = self.results.get(url)
            if isinstance(result, Exception):
                raise result
            if result is None:
                return ArticleContent(
                    main_text=f"<p>Full text of {url}</p>",
                    top_image=f"{url}/image.png",
                )
            return result
        finally:
            self.in_flight -= 1


def make_feed(item_count: int, url: str = "https://example.com/feed.xml") -> ParsedFeed:
    """Feed of ``item_count`` linked items with distinct guids."""
    return ParsedFeed(
        url=url,
        title="Generated Feed",
        items=[
            FeedItem(
                link=f"https://example.com/articles/{i}",
                title=f"Article {i}",
                description=f"<p>Summary {i}</p>",
                published="Thu, 05 Sep 2024 12:00:00 GMT",
                guid=f"guid-{i}",
            )
            for i in range(item_count)
        ],
    )


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def settings():
    """Settings with no pacing, no file logging and short deadlines."""
    return FeedEnricherSettings(
        processing=ProcessingSettings(
            max_concurrent_fetches=5,
            pacing_delay_seconds=0.0,
            requests_per_second=0.0,
        ),
        limits=LimitsSettings(
            request_timeout=5,
            article_timeout=5.0,
            pipeline_timeout=30.0,
        ),
        logging=LoggingSettings(file_path=None, console_logging=False),
    )


@pytest.fixture
def mock_session():
    """Opaque session object for collaborators that never use it."""
    return MagicMock(spec=aiohttp.ClientSession)


@pytest.fixture
def sample_feed():
    """Small mixed feed: guid, description-only and linkless items."""
    return ParsedFeed(
        url="https://example.com/feed.xml",
        title="Example",
        items=[
            FeedItem(
                link="https://example.com/a",
                title="With guid",
                description="<p>Alpha</p>",
                guid="G1",
            ),
            FeedItem(
                link="https://example.com/b",
                title="Hash only",
                description="Hello world",
            ),
            FeedItem(
                link="",
                title="No link",
                description="<b>hi</b>",
                guid="abc",
            ),
        ],
    )
