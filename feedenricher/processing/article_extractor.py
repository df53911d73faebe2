"""
Article Extraction
==================

Fetches the page an item links to and separates the main article from
navigation, ads and other page furniture.

Two independent paths are offered:
- ``enrich``: boilerplate removal with trafilatura, returning the main text
  and the page's representative image
- ``extract_from_markup``: re-derives the article straight from the markup
  by keeping the largest sanitized ``<article>`` element. It is exposed for
  callers that want a second opinion and is never chained automatically.
"""

import asyncio
from typing import Any, Optional, Tuple
from urllib.parse import urljoin

import aiohttp
from bs4 import BeautifulSoup
from trafilatura import bare_extraction

from ..models import ArticleContent
from ..config.settings import FeedEnricherSettings, get_settings
from ..ingestion.content_cleaner import ContentCleaner, get_content_cleaner
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ContentExtractionError, ErrorCode, ValidationError
from ..utils.validators import URLValidator
from .http import read_limited


class ArticleExtractor:
    """Article enricher: page URL in, main text and top image out."""

    def __init__(
        self,
        settings: Optional[FeedEnricherSettings] = None,
        cleaner: Optional[ContentCleaner] = None,
    ):
        self.settings = settings or get_settings()
        self.cleaner = cleaner or get_content_cleaner()
        self.logger = get_logger_for_component("article_extractor")

    async def enrich(self, url: str, session: aiohttp.ClientSession) -> ArticleContent:
        """Fetch ``url`` and extract its main text and representative image.

        An empty URL is not an error: nothing is fetched and an empty
        ``ArticleContent`` is returned.

        Raises:
            ContentExtractionError: On fetch failure, non-2xx response or
                extraction failure
        """
        if not url:
            return ArticleContent()

        page_url, html_content = await self._download(url, session)
        if not html_content.strip():
            return ArticleContent()

        return await asyncio.to_thread(self._extract, html_content, page_url)

    async def extract_from_markup(self, url: str, session: aiohttp.ClientSession) -> str:
        """Fetch ``url`` and return its largest sanitized ``<article>`` element.

        Returns:
            Sanitized inner HTML of the largest article, or an empty string
            if the page has none

        Raises:
            ContentExtractionError: On fetch failure or non-2xx response
        """
        page_url, html_content = await self._download(url, session)
        article = self.largest_article(html_content, base_url=page_url)

        self.logger.info(f"{url} responded with a 2xx status. Body is {len(article)} chars long")
        return article

    def largest_article(self, html_content: str, base_url: Optional[str] = None) -> str:
        """Pick the largest ``<article>`` element after sanitization."""
        if not html_content:
            return ""

        soup = BeautifulSoup(html_content, "html.parser")

        article = ""
        for element in soup.find_all("article"):
            sanitized = self.cleaner.sanitize(element.decode_contents(), base_url)
            if len(sanitized) > len(article):
                article = sanitized

        return article

    async def _download(self, url: str, session: aiohttp.ClientSession) -> Tuple[str, str]:
        """GET an article page.

        Returns:
            Tuple of (final URL after redirects, page body)
        """
        try:
            validated_url = URLValidator.validate_article_url(url)
        except ValidationError as e:
            raise ContentExtractionError(
                f"Invalid article URL: {e}",
                item_url=url,
                error_code=ErrorCode.CONTENT_FETCH_FAILED,
            ) from e

        self.logger.debug(f"Fetching extended article for '{url}'")

        try:
            async with session.get(validated_url) as response:
                if not 200 <= response.status < 300:
                    raise ContentExtractionError(
                        f"Expected 2XX status code but received '{response.status}'",
                        item_url=url,
                        status=response.status,
                        error_code=ErrorCode.CONTENT_FETCH_FAILED,
                    )

                body = await read_limited(
                    response, self.settings.limits.max_content_length
                )
                return str(response.url), body

        except asyncio.TimeoutError as e:
            raise ContentExtractionError(
                f"Request timeout after {self.settings.limits.request_timeout}s",
                item_url=url,
                error_code=ErrorCode.CONTENT_TIMEOUT,
            ) from e
        except aiohttp.ClientError as e:
            raise ContentExtractionError(
                f"Fetch error: {e}",
                item_url=url,
                error_code=ErrorCode.CONTENT_FETCH_FAILED,
            ) from e

    def _extract(self, html_content: str, page_url: str) -> ArticleContent:
        """Run boilerplate removal on a downloaded page."""
        try:
            result = bare_extraction(
                html_content,
                url=page_url,
                include_comments=False,
                with_metadata=True,
            )
        except Exception as e:
            raise ContentExtractionError(
                f"Article extraction failed: {e}",
                item_url=page_url,
            ) from e

        if result is None:
            self.logger.debug(f"No main content found in {page_url}")
            return ArticleContent()

        text = _result_field(result, "text")
        image = _result_field(result, "image")

        return ArticleContent(
            main_text=text.strip(),
            top_image=urljoin(page_url, image) if image else "",
        )


def _result_field(result: Any, name: str) -> str:
    """Read a field from a trafilatura result (``Document`` or dict)."""
    if isinstance(result, dict):
        value = result.get(name)
    else:
        value = getattr(result, name, None)
    return value if isinstance(value, str) else ""
