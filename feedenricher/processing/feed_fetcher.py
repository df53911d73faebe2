"""
RSS Feed Fetcher
================

Downloads a syndication feed over the shared session and turns it into an
ordered list of feed items. Any failure here is fatal to the pipeline run.
"""

import asyncio
from datetime import datetime, timezone
from typing import List, Any, Optional

import aiohttp
import feedparser

from ..models import FeedItem, ParsedFeed
from ..config.settings import FeedEnricherSettings, get_settings
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import FeedFetchError, FeedParseError, ErrorCode
from ..utils.validators import URLValidator
from .http import read_limited


FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml, */*"


class FeedFetcher:
    """Feed source: feed URL in, ``ParsedFeed`` out."""

    def __init__(self, settings: Optional[FeedEnricherSettings] = None):
        """Initialize feed fetcher.

        Args:
            settings: Settings to use (default: global settings)
        """
        self.settings = settings or get_settings()
        self.timeout = self.settings.limits.request_timeout
        self.logger = get_logger_for_component("feed_fetcher")

    async def fetch(self, feed_url: str, session: aiohttp.ClientSession) -> ParsedFeed:
        """Fetch and parse a single feed.

        Args:
            feed_url: URL of the feed
            session: aiohttp session for requests

        Returns:
            ParsedFeed with the feed title and items in document order

        Raises:
            ValidationError: If the URL is not an http(s) URL
            FeedFetchError: On network failure, timeout or non-2xx response
            FeedParseError: If the document is not a usable feed
        """
        start_time = datetime.now(timezone.utc)
        validated_url = URLValidator.validate_feed_url(feed_url)

        self.logger.info(f"Received feed url: {feed_url}")

        try:
            async with session.get(
                validated_url, headers={"Accept": FEED_ACCEPT}
            ) as response:
                if not 200 <= response.status < 300:
                    error_code = (
                        ErrorCode.FEED_NOT_FOUND if response.status == 404
                        else ErrorCode.FEED_ACCESS_DENIED if response.status in (401, 403)
                        else ErrorCode.FEED_NETWORK_ERROR
                    )
                    raise FeedFetchError(
                        f"HTTP {response.status}: {response.reason}",
                        feed_url=feed_url,
                        error_code=error_code,
                        context={"status": response.status},
                    )

                content = await read_limited(
                    response, self.settings.limits.max_content_length
                )

        except asyncio.TimeoutError:
            raise FeedFetchError(
                f"Request timeout after {self.timeout}s",
                feed_url=feed_url,
                error_code=ErrorCode.FEED_FETCH_TIMEOUT,
                recoverable=True,
            )
        except aiohttp.ClientError as e:
            raise FeedFetchError(
                f"Fetch error: {e}",
                feed_url=feed_url,
                error_code=ErrorCode.FEED_NETWORK_ERROR,
                recoverable=True,
            ) from e

        parsed = self.parse_document(content, feed_url)

        self.logger.info(
            f"Parsing {parsed.title!r}: found {len(parsed.items)} items in feed "
            f"in {(datetime.now(timezone.utc) - start_time).total_seconds():.2f}s"
        )
        return parsed

    def parse_document(self, content: str, feed_url: str) -> ParsedFeed:
        """Parse a feed document that has already been downloaded.

        Args:
            content: Feed document (RSS, Atom or RDF)
            feed_url: URL the document came from

        Returns:
            ParsedFeed

        Raises:
            FeedParseError: If the document has no entries and is not a feed
        """
        feed_data = feedparser.parse(content)

        if not feed_data.entries:
            if getattr(feed_data, "bozo", False):
                error = getattr(feed_data, "bozo_exception", None)
                raise FeedParseError(
                    f"Feed parse error: {error or 'Invalid XML structure'}",
                    feed_url=feed_url,
                )
            if not feed_data.get("version"):
                raise FeedParseError(
                    "Document is not a recognised RSS, Atom or RDF feed",
                    feed_url=feed_url,
                )
        elif getattr(feed_data, "bozo", False):
            self.logger.info(
                f"Feed has parse warnings but contains entries: {feed_url}"
            )

        title = feed_data.feed.get("title", "") if feed_data.get("feed") else ""

        return ParsedFeed(
            url=feed_url,
            title=title or "",
            items=self._parse_entries(feed_data.entries),
        )

    def _parse_entries(self, entries: List[Any]) -> List[FeedItem]:
        """Convert feedparser entries to FeedItem models, keeping order.

        Every entry becomes an item; nothing is filtered here so that the
        pipeline can emit one record per entry.
        """
        items = []

        for entry in entries:
            guid = entry.get("id")
            items.append(FeedItem(
                link=entry.get("link", ""),
                title=entry.get("title", ""),
                description=self._extract_description(entry),
                published=entry.get("published") or entry.get("updated") or "",
                # Kept as written; blank ids count as missing
                guid=guid if isinstance(guid, str) and guid.strip() else None,
            ))

        return items

    def _extract_description(self, entry: Any) -> str:
        """Short description of an entry.

        RSS ``description`` and Atom ``summary`` share one key in feedparser;
        Atom entries carrying only ``content`` fall back to its first value.
        """
        summary = entry.get("summary")
        if summary:
            return summary

        content = entry.get("content")
        if isinstance(content, list) and content:
            first = content[0]
            if isinstance(first, dict):
                return first.get("value", "") or ""

        return ""
