"""
Enrichment Pipeline Orchestrator
================================

Turns a feed URL into one enriched record per feed item.

Every item gets its own task. Tasks share the HTTP session, the sanitizer
and the rate limiter, all of which are safe for concurrent use. The only
mutable shared state is the result list: it is pre-sized to the number of
items and each task writes exactly one slot, the one at its item's index.
Records are therefore returned in feed order.

Failures of the feed itself abort the run. Failures of a single item
(article fetch, extraction, timeout, identifier generation) are logged and
the item is still emitted.
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncContextManager, Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass, field

import aiohttp

from ..models import ArticleContent, EnrichedRecord, FeedItem, ParsedFeed
from ..config.settings import FeedEnricherSettings, get_settings
from ..ingestion.content_cleaner import ContentCleaner, get_content_cleaner
from ..utils.logging import PerformanceLogger, get_logger_for_component, log_context
from ..utils.exceptions import (
    IdentityError,
    PipelineTimeoutError,
    is_item_level_error,
)

from .article_extractor import ArticleExtractor
from .feed_fetcher import FeedFetcher
from .http import create_session
from .identity import IdentityResolver
from .rate_limiter import TokenBucket


class ItemOutcome(str, Enum):
    """How the extended body of an item was obtained."""
    ENRICHED = "enriched"
    NO_LINK = "no_link"
    DISABLED = "disabled"
    FAILED = "failed"


@dataclass
class PipelineResult:
    """Records of one pipeline run together with run metrics."""
    feed_url: str
    feed_title: str
    records: List[EnrichedRecord]
    outcomes: List[ItemOutcome] = field(default_factory=list)
    identity_failures: int = 0
    processing_time_seconds: float = 0.0

    @property
    def total_items(self) -> int:
        return len(self.records)

    @property
    def outcome_counts(self) -> Dict[str, int]:
        counts = {outcome.value: 0 for outcome in ItemOutcome}
        for outcome in self.outcomes:
            counts[outcome.value] += 1
        return counts

    @property
    def efficiency_metrics(self) -> Dict[str, float]:
        counts = self.outcome_counts
        attempted = counts[ItemOutcome.ENRICHED.value] + counts[ItemOutcome.FAILED.value]
        return {
            'enrichment_success_rate': (counts[ItemOutcome.ENRICHED.value] / attempted) * 100 if attempted > 0 else 0.0,
            'items_per_second': self.total_items / self.processing_time_seconds if self.processing_time_seconds > 0 else 0.0,
        }


SessionFactory = Callable[[FeedEnricherSettings], AsyncContextManager[aiohttp.ClientSession]]


class EnrichmentPipeline:
    """Concurrent feed enrichment orchestrator."""

    def __init__(
        self,
        settings: Optional[FeedEnricherSettings] = None,
        fetcher: Optional[FeedFetcher] = None,
        extractor: Optional[ArticleExtractor] = None,
        resolver: Optional[IdentityResolver] = None,
        cleaner: Optional[ContentCleaner] = None,
        session_factory: Optional[SessionFactory] = None,
    ):
        """Initialize the pipeline.

        Args:
            settings: Settings to use (default: global settings)
            fetcher: Feed source
            extractor: Article enricher
            resolver: Identity resolver
            cleaner: Sanitizer shared by all tasks
            session_factory: Async context manager factory yielding the
                shared HTTP session
        """
        self.settings = settings or get_settings()
        self.cleaner = cleaner or get_content_cleaner()
        self.fetcher = fetcher or FeedFetcher(self.settings)
        self.extractor = extractor or ArticleExtractor(self.settings, self.cleaner)
        self.resolver = resolver or IdentityResolver()
        self.session_factory = session_factory or create_session
        self.logger = get_logger_for_component("pipeline")

    async def run(self, feed_url: str) -> List[EnrichedRecord]:
        """Enrich every item of ``feed_url``.

        Returns:
            One record per feed item, in feed order

        Raises:
            ValidationError: If the feed URL is not an http(s) URL
            FeedFetchError: If the feed cannot be downloaded
            FeedParseError: If the document is not a feed
            PipelineTimeoutError: If the run exceeds ``limits.pipeline_timeout``
        """
        result = await self.run_detailed(feed_url)
        return result.records

    async def run_detailed(self, feed_url: str) -> PipelineResult:
        """Like ``run`` but also returns per-item outcomes and timing."""
        timeout = self.settings.limits.pipeline_timeout

        # Item tasks are created inside this block and inherit the feed context
        with log_context(feed_url=feed_url), PerformanceLogger(self.logger, "feed enrichment") as perf:
            async with self.session_factory(self.settings) as session:
                try:
                    if timeout:
                        result = await asyncio.wait_for(
                            self._run(feed_url, session), timeout=timeout
                        )
                    else:
                        result = await self._run(feed_url, session)
                except asyncio.TimeoutError:
                    raise PipelineTimeoutError(
                        f"Enrichment did not complete within {timeout}s",
                        feed_url=feed_url,
                        timeout=timeout,
                    )

        result.processing_time_seconds = perf.duration or 0.0
        return result

    async def _run(self, feed_url: str, session: aiohttp.ClientSession) -> PipelineResult:
        feed = await self.fetcher.fetch(feed_url, session)
        item_count = len(feed.items)

        self.logger.info(f"Parsing {feed.title!r}: enriching {item_count} items")

        # One slot per item, written only by the task that owns the index
        slots: List[Optional[Tuple[EnrichedRecord, ItemOutcome]]] = [None] * item_count

        semaphore = asyncio.Semaphore(self.settings.processing.max_concurrent_fetches)
        limiter = TokenBucket(self.settings.processing.requests_per_second)

        async def enrich_into_slot(index: int, item: FeedItem) -> None:
            slots[index] = await self._enrich_item(
                index, item, feed, session, semaphore, limiter
            )

        await asyncio.gather(
            *(enrich_into_slot(index, item) for index, item in enumerate(feed.items))
        )

        records = [slot[0] for slot in slots]
        outcomes = [slot[1] for slot in slots]
        identity_failures = sum(1 for record in records if record.error)

        self.logger.info(
            f"Parsed {len(records)} items in {feed_url} "
            f"({outcomes.count(ItemOutcome.FAILED)} article fetches failed, "
            f"{identity_failures} identity failures)"
        )

        return PipelineResult(
            feed_url=feed_url,
            feed_title=feed.title,
            records=records,
            outcomes=outcomes,
            identity_failures=identity_failures,
        )

    async def _enrich_item(
        self,
        index: int,
        item: FeedItem,
        feed: ParsedFeed,
        session: aiohttp.ClientSession,
        semaphore: asyncio.Semaphore,
        limiter: TokenBucket,
    ) -> Tuple[EnrichedRecord, ItemOutcome]:
        """Build the record for one item. Never raises for item-level errors."""
        error = None
        try:
            item_id = self.resolver.resolve(item)
        except IdentityError as e:
            item_id = self.resolver.degraded_id(feed.url, index)
            error = str(e)
            self.logger.warning(
                f"Failed to generate ID for item {index + 1}/{len(feed.items)}, "
                f"using positional id {item_id}",
                extra=e.to_dict(),
            )

        with log_context(item_id=item_id):
            content = ArticleContent()
            if not item.link:
                outcome = ItemOutcome.NO_LINK
                self.logger.info(f"Item has no link, skip fetching extended (title '{item.title}')")
            elif not self.settings.processing.fetch_extended:
                outcome = ItemOutcome.DISABLED
            else:
                content, outcome = await self._fetch_article(item, session, semaphore, limiter)

            record = self._build_record(item, feed, content, item_id, error)
            self.logger.debug(
                f"Extended (char count)={len(record.item_extended_body)} "
                f"Item no: {index + 1}/{len(feed.items)}"
            )

        return record, outcome

    def _build_record(
        self,
        item: FeedItem,
        feed: ParsedFeed,
        content: ArticleContent,
        item_id: str,
        error: Optional[str],
    ) -> EnrichedRecord:
        return EnrichedRecord(
            id=item_id,
            feed_url=feed.url,
            feed_title=self.cleaner.sanitize(feed.title),
            item_image=self.cleaner.clean_image_url(content.top_image),
            item_title=self.cleaner.sanitize(item.title),
            item_body=self.cleaner.sanitize(item.description),
            item_url=self.cleaner.clean_link_url(item.link),
            item_extended_body=self.cleaner.sanitize(content.main_text),
            published=self.cleaner.sanitize_text(item.published),
            created=datetime.now(timezone.utc),
            error=error,
        )

    async def _fetch_article(
        self,
        item: FeedItem,
        session: aiohttp.ClientSession,
        semaphore: asyncio.Semaphore,
        limiter: TokenBucket,
    ) -> Tuple[ArticleContent, ItemOutcome]:
        """Fetch the linked page within the concurrency and rate limits.

        The pacing delay runs after the semaphore slot is released so that
        it only delays this task's completion, not other fetches.
        """
        content = ArticleContent()
        outcome = ItemOutcome.FAILED
        article_timeout = self.settings.limits.article_timeout

        async with semaphore:
            await limiter.acquire()
            self.logger.info(f"Fetching extended article for '{item.link}'")
            try:
                content = await asyncio.wait_for(
                    self.extractor.enrich(item.link, session), timeout=article_timeout
                )
                outcome = ItemOutcome.ENRICHED
            except asyncio.TimeoutError:
                self.logger.warning(
                    f"Article fetch for '{item.link}' timed out after {article_timeout}s"
                )
            except Exception as e:
                if is_item_level_error(e):
                    self.logger.warning(
                        f"Article fetch for '{item.link}' failed: {e}", extra=e.to_dict()
                    )
                else:
                    self.logger.error(
                        f"Unexpected error enriching '{item.link}': {e}", exc_info=True
                    )

        pacing = self.settings.processing.pacing_delay_seconds
        if pacing > 0:
            await asyncio.sleep(pacing)

        return content, outcome


async def parse(
    feed_url: str, settings: Optional[FeedEnricherSettings] = None
) -> List[EnrichedRecord]:
    """Enrich every item of a feed.

    Args:
        feed_url: Feed to process
        settings: Settings to use (default: global settings)

    Returns:
        One record per feed item, in feed order
    """
    return await EnrichmentPipeline(settings).run(feed_url)


def parse_sync(
    feed_url: str, settings: Optional[FeedEnricherSettings] = None
) -> List[EnrichedRecord]:
    """Blocking variant of ``parse`` for callers without an event loop."""
    return asyncio.run(parse(feed_url, settings))
