"""
FeedEnricher Data Models
========================

Pydantic models passed between the feed source, the enrichment tasks and
the caller. All models are frozen: a record is built once by the task that
owns its item and never mutated afterwards.
"""

from datetime import datetime, timezone
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class FeedItem(BaseModel):
    """One entry of a syndication feed, as supplied by the feed source."""
    model_config = ConfigDict(frozen=True)

    link: str = Field(default="", description="Item link, may be empty")
    title: str = Field(default="", description="Item title")
    description: str = Field(default="", description="Raw HTML or plain text description")
    published: str = Field(default="", description="Publication timestamp as found in the feed")
    guid: Optional[str] = Field(default=None, description="Provider-supplied unique identifier")

    @field_validator('link', 'title', 'description', 'published', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        """Feed parsers report missing fields as None."""
        return "" if v is None else v

    def __str__(self) -> str:
        return f"FeedItem({self.title[:50]!r})"


class ParsedFeed(BaseModel):
    """Feed title and its items in document order."""
    model_config = ConfigDict(frozen=True)

    url: str = Field(..., description="Feed URL as requested")
    title: str = Field(default="", description="Feed title")
    items: List[FeedItem] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)


class ArticleContent(BaseModel):
    """Main text and representative image extracted from an article page."""
    model_config = ConfigDict(frozen=True)

    main_text: str = ""
    top_image: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.main_text and not self.top_image


class EnrichedRecord(BaseModel):
    """Enriched output record, exactly one per input feed item.

    Text fields hold sanitized markup only. ``error`` is set when the
    record was degraded because the item could not be given an identifier.
    """
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., min_length=1, description="Stable item identifier")
    feed_url: str = Field(..., description="Source feed URL")
    feed_title: str = Field(default="", description="Source feed title")
    item_image: str = Field(default="", description="Representative image URL")
    item_title: str = Field(default="", description="Sanitized item title")
    item_body: str = Field(default="", description="Sanitized short description")
    item_url: str = Field(default="", description="Original item link")
    item_extended_body: str = Field(default="", description="Sanitized main article text")
    published: str = Field(default="", description="Publication timestamp from the feed")
    created: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    error: Optional[str] = Field(default=None, description="Per-item failure that degraded this record")

    @property
    def has_extended_body(self) -> bool:
        return bool(self.item_extended_body)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with camelCase keys and an ISO-8601 ``created``."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def __str__(self) -> str:
        return f"EnrichedRecord({self.id}:{self.item_title[:40]!r})"
