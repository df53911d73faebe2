#!/usr/bin/env python3
"""
End-to-End Pipeline Integration Test
====================================

Tests the complete workflow: Feed fetch → Identity → Article fetch →
Extraction → Sanitization, with real components over an in-memory
transport. Only trafilatura's extraction call is replaced, so the test does
not depend on its heuristics.
"""

import pytest
import asyncio
import hashlib
import json
from unittest.mock import patch

from bs4 import BeautifulSoup

from conftest import FakeResponse, FakeSession, session_factory_for

from feedenricher.ingestion.content_cleaner import ContentCleaner
from feedenricher.processing.article_extractor import ArticleExtractor
from feedenricher.processing.feed_fetcher import FeedFetcher
from feedenricher.processing.pipeline import EnrichmentPipeline, ItemOutcome
from feedenricher.utils.exceptions import FeedParseError


pytestmark = pytest.mark.integration

FEED_URL = "https://blog.example.com/feed.xml"

FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
    <channel>
        <title>Example Blog</title>
        <item>
            <title>Working article</title>
            <link>https://blog.example.com/posts/1</link>
            <description>&lt;p onclick="x()"&gt;Teaser one&lt;/p&gt;</description>
            <guid isPermaLink="false">post-1</guid>
            <pubDate>Thu, 05 Sep 2024 12:00:00 GMT</pubDate>
        </item>
        <item>
            <title>Missing article</title>
            <link>https://blog.example.com/posts/2</link>
            <description>Teaser two</description>
        </item>
        <item>
            <title>Slow article</title>
            <link>https://blog.example.com/posts/3</link>
            <description>Teaser three</description>
            <guid isPermaLink="false">post-3</guid>
        </item>
        <item>
            <title>Announcement</title>
            <description>No page for this one</description>
            <guid isPermaLink="false">post-4</guid>
        </item>
    </channel>
</rss>"""

PAGE = """<html><head><meta property="og:image" content="/media/cover.jpg"></head>
<body><nav>menu</nav><article><h1>Post one</h1><p>Body of post one.</p>
<script>steal()</script></article></body></html>"""


def fake_bare_extraction(html, url=None, **kwargs):
    """Main text is the article body; image comes from og:image."""
    soup = BeautifulSoup(html, "html.parser")
    article = soup.find("article")
    image = soup.find("meta", attrs={"property": "og:image"})
    return {
        "text": article.decode_contents() if article else "",
        "image": image["content"] if image else None,
    }


class SlowResponse(FakeResponse):
    """Response whose headers arrive after ``delay`` seconds."""

    def __init__(self, delay: float, **kwargs):
        super().__init__(**kwargs)
        self.delay = delay

    async def __aenter__(self):
        await asyncio.sleep(self.delay)
        return self


@pytest.fixture
def session():
    return FakeSession({
        FEED_URL: FakeResponse(FEED),
        "https://blog.example.com/posts/1": FakeResponse(PAGE),
        "https://blog.example.com/posts/2": FakeResponse("gone", status=404, reason="Not Found"),
        "https://blog.example.com/posts/3": SlowResponse(10.0, body=PAGE),
    })


@pytest.fixture
def pipeline(settings, session):
    settings = settings.model_copy(update={
        "limits": settings.limits.model_copy(update={"article_timeout": 1.0}),
    })
    cleaner = ContentCleaner()
    return EnrichmentPipeline(
        settings=settings,
        fetcher=FeedFetcher(settings),
        extractor=ArticleExtractor(settings, cleaner),
        cleaner=cleaner,
        session_factory=session_factory_for(session),
    )


@pytest.mark.asyncio
async def test_end_to_end_with_mock_transport(pipeline, session):
    with patch(
        "feedenricher.processing.article_extractor.bare_extraction",
        side_effect=fake_bare_extraction,
    ):
        result = await pipeline.run_detailed(FEED_URL)

    records = result.records
    assert [r.item_title for r in records] == [
        "Working article",
        "Missing article",
        "Slow article",
        "Announcement",
    ]

    working, missing, slow, announcement = records

    assert working.id == "post-1"
    assert working.feed_url == FEED_URL
    assert working.feed_title == "Example Blog"
    assert working.item_body == "<p>Teaser one</p>"
    assert working.item_extended_body == "<h1>Post one</h1><p>Body of post one.</p>"
    assert working.item_image == "https://blog.example.com/media/cover.jpg"
    assert working.published == "Thu, 05 Sep 2024 12:00:00 GMT"

    assert missing.id == hashlib.sha1(b"Teaser two").hexdigest()
    assert missing.item_extended_body == ""
    assert missing.item_image == ""

    assert slow.id == "post-3"
    assert slow.item_extended_body == ""

    assert announcement.id == "post-4"
    assert announcement.item_url == ""

    assert result.outcomes == [
        ItemOutcome.ENRICHED,
        ItemOutcome.FAILED,
        ItemOutcome.FAILED,
        ItemOutcome.NO_LINK,
    ]
    assert result.identity_failures == 0
    assert "https://blog.example.com/posts/3" in session.requested

    payload = json.dumps([r.to_dict() for r in records])
    assert "steal()" not in payload
    assert "onclick" not in payload


@pytest.mark.asyncio
async def test_not_a_feed_aborts_run(settings):
    session = FakeSession({FEED_URL: FakeResponse("<html><body>Not a feed</body></html>")})
    pipeline = EnrichmentPipeline(
        settings=settings,
        fetcher=FeedFetcher(settings),
        session_factory=session_factory_for(session),
    )

    with pytest.raises(FeedParseError):
        await pipeline.run(FEED_URL)

    assert session.requested == [FEED_URL]
