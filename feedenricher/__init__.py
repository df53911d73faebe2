"""
FeedEnricher - Concurrent Feed Enrichment
=========================================

Turns a syndication feed into enriched records: a stable identity per item,
the sanitized short description and, for items that link to a web page,
the page's main article text and representative image.

Main Components:
- Configuration: environment variables with Pydantic validation
- Ingestion: HTML sanitization to a safe markup subset
- Processing: feed fetching, identity resolution, article extraction and
  the bounded fan-out orchestrator
"""

__version__ = "1.0.0"
__author__ = "FeedEnricher Development Team"
__description__ = "Concurrent syndication feed enrichment"

# Core imports for easy access
from .config.settings import get_settings
from .models import FeedItem, ParsedFeed, ArticleContent, EnrichedRecord
from .processing.pipeline import EnrichmentPipeline, PipelineResult, parse, parse_sync
from .utils.logging import configure_application_logging, get_logger_for_component, log_context
from .utils.exceptions import FeedEnricherError

__all__ = [
    "get_settings",
    "FeedItem",
    "ParsedFeed",
    "ArticleContent",
    "EnrichedRecord",
    "EnrichmentPipeline",
    "PipelineResult",
    "parse",
    "parse_sync",
    "configure_application_logging",
    "get_logger_for_component",
    "log_context",
    "FeedEnricherError",
]
