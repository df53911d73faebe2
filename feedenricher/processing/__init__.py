"""
FeedEnricher Processing Module
==============================

Feed fetching, identity resolution, article extraction and the
concurrent enrichment orchestrator.
"""

from .feed_fetcher import FeedFetcher
from .identity import IdentityResolver
from .article_extractor import ArticleExtractor
from .pipeline import EnrichmentPipeline

__all__ = [
    'FeedFetcher',
    'IdentityResolver',
    'ArticleExtractor',
    'EnrichmentPipeline'
]
