"""
Content Cleaner
===============

HTML sanitization for feed descriptions and extracted article bodies.

The policy is aimed at user-generated content: formatting, lists, tables,
quotes, links and images survive; scripts, embedded objects, forms, event
handlers, styles and unknown attributes do not. Unknown elements are
unwrapped so their text is kept.

Guarantees:
- ``sanitize`` never raises; the worst case is an empty string
- ``sanitize(sanitize(x)) == sanitize(x)``
- the policy is immutable, so one cleaner may be shared by concurrent tasks
"""

import re
from typing import Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Comment
from bs4.element import CData, Declaration, Doctype, ProcessingInstruction

from feedenricher.utils.logging import get_logger_for_component


class ContentCleaner:
    """
    HTML sanitizer that keeps a safe subset of markup.

    Features:
    - Removes dangerous elements together with their content
    - Unwraps unknown elements, keeping their text
    - Filters attributes per element and rejects unsafe URL schemes
    - Adds rel="nofollow" to links
    - Optional resolution of relative URLs against a base URL
    """

    # Elements removed together with everything inside them
    DANGEROUS_ELEMENTS = frozenset({
        "script",
        "style",
        "iframe",
        "frame",
        "frameset",
        "embed",
        "object",
        "applet",
        "param",
        "form",
        "input",
        "button",
        "select",
        "option",
        "textarea",
        "meta",
        "link",
        "base",
        "head",
        "title",
        "noscript",
        "noembed",
        "noframes",
        "template",
        "canvas",
        "svg",
        "math",
        "xmp",
        "plaintext",
        "audio",
        "video",
        "source",
        "track",
    })

    SAFE_ELEMENTS = frozenset({
        "a", "abbr", "acronym", "address", "article", "aside",
        "b", "bdi", "bdo", "big", "blockquote", "br",
        "caption", "center", "cite", "code", "col", "colgroup",
        "dd", "del", "details", "dfn", "div", "dl", "dt",
        "em", "figcaption", "figure", "footer",
        "h1", "h2", "h3", "h4", "h5", "h6", "header", "hgroup", "hr",
        "i", "img", "ins", "kbd", "li", "mark",
        "ol", "p", "pre", "q", "rp", "rt", "ruby",
        "s", "samp", "section", "small", "span", "strike", "strong",
        "sub", "summary", "sup",
        "table", "tbody", "td", "tfoot", "th", "thead", "time", "tr", "tt",
        "u", "ul", "var", "wbr",
    })

    GLOBAL_ATTRIBUTES = frozenset({"title", "lang", "dir"})

    SAFE_ATTRIBUTES = {
        "a": frozenset({"href"}),
        "img": frozenset({"src", "alt", "width", "height"}),
        "blockquote": frozenset({"cite"}),
        "q": frozenset({"cite"}),
        "del": frozenset({"cite", "datetime"}),
        "ins": frozenset({"cite", "datetime"}),
        "time": frozenset({"datetime"}),
        "td": frozenset({"colspan", "rowspan", "headers"}),
        "th": frozenset({"colspan", "rowspan", "headers", "scope"}),
        "col": frozenset({"span"}),
        "colgroup": frozenset({"span"}),
        "ol": frozenset({"start", "reversed", "type"}),
        "li": frozenset({"value"}),
    }

    NUMERIC_ATTRIBUTES = frozenset({"width", "height", "colspan", "rowspan", "span", "start", "value"})
    URL_ATTRIBUTES = frozenset({"href", "src", "cite"})

    # Schemes allowed per URL attribute; relative URLs are always allowed
    ALLOWED_SCHEMES = {
        "href": frozenset({"http", "https", "mailto"}),
        "src": frozenset({"http", "https"}),
        "cite": frozenset({"http", "https"}),
    }

    # Browsers ignore control characters and whitespace inside schemes
    URL_NOISE_PATTERN = re.compile(r"[\x00-\x20\x7f]+")
    SCHEME_PATTERN = re.compile(r"^([a-z][a-z0-9+.\-]*):")
    NUMBER_PATTERN = re.compile(r"^\d{1,5}%?$")
    WHITESPACE_PATTERN = re.compile(r"\s+", re.MULTILINE)

    NON_CONTENT_STRINGS = (Comment, CData, ProcessingInstruction, Declaration, Doctype)

    def __init__(self):
        self.logger = get_logger_for_component("content_cleaner")

        # Built-in parser, no external deps
        self.parser = "html.parser"
        self._dangerous_names = sorted(self.DANGEROUS_ELEMENTS)

    def sanitize(self, html_content: Optional[str], base_url: Optional[str] = None) -> str:
        """
        Reduce HTML to the safe subset.

        Args:
            html_content: Raw HTML or plain text
            base_url: Base URL for resolving relative links and images

        Returns:
            Sanitized HTML, empty string for empty input or on failure
        """
        if not html_content or not html_content.strip():
            return ""

        try:
            soup = BeautifulSoup(html_content, self.parser)

            self._remove_non_content_strings(soup)
            self._remove_dangerous_elements(soup)

            for element in soup.find_all(True):
                if element.name not in self.SAFE_ELEMENTS:
                    element.unwrap()
                    continue
                self._clean_attributes(element, base_url)

            return soup.decode(formatter="minimal").strip()

        except Exception as e:
            self.logger.error(f"Failed to sanitize HTML content: {e}")
            return ""

    def sanitize_text(self, html_content: Optional[str]) -> str:
        """
        Sanitize and then drop all markup, returning normalized plain text.

        Args:
            html_content: HTML content to process

        Returns:
            Plain text with entities decoded and whitespace collapsed
        """
        safe_html = self.sanitize(html_content)
        if not safe_html:
            return ""

        text = BeautifulSoup(safe_html, self.parser).get_text(separator=" ", strip=True)
        return self.WHITESPACE_PATTERN.sub(" ", text).strip()

    def clean_image_url(self, url: Optional[str]) -> str:
        """Return ``url`` if it is safe as an image source, else an empty string."""
        if not url:
            return ""
        return self._clean_url("src", url, None) or ""

    def clean_link_url(self, url: Optional[str]) -> str:
        """Return ``url`` if it is safe as a link target, else an empty string."""
        if not url:
            return ""
        return self._clean_url("href", url, None) or ""

    def _remove_non_content_strings(self, soup: BeautifulSoup) -> None:
        """Remove comments, CDATA, doctypes and processing instructions."""
        for element in soup.find_all(
            string=lambda text: isinstance(text, self.NON_CONTENT_STRINGS)
        ):
            element.extract()

    def _remove_dangerous_elements(self, soup: BeautifulSoup) -> None:
        """Remove dangerous HTML elements completely."""
        element = soup.find(self._dangerous_names)
        while element is not None:
            element.decompose()
            element = soup.find(self._dangerous_names)

    def _clean_attributes(self, element, base_url: Optional[str]) -> None:
        """Keep only allowed attributes with safe values."""
        allowed = self.GLOBAL_ATTRIBUTES | self.SAFE_ATTRIBUTES.get(element.name, frozenset())

        for attr_name in list(element.attrs):
            if attr_name not in allowed:
                del element[attr_name]
                continue

            value = element[attr_name]
            if isinstance(value, list):
                value = " ".join(value)

            if attr_name in self.NUMERIC_ATTRIBUTES:
                if not self.NUMBER_PATTERN.match(value.strip()):
                    del element[attr_name]
                continue

            if attr_name in self.URL_ATTRIBUTES:
                safe_url = self._clean_url(attr_name, value, base_url)
                if safe_url is None:
                    del element[attr_name]
                else:
                    element[attr_name] = safe_url

        if element.name == "img" and not element.get("src"):
            element.decompose()
        elif element.name == "a" and element.get("href"):
            element["rel"] = "nofollow"

    def _clean_url(self, attr_name: str, value: str, base_url: Optional[str]) -> Optional[str]:
        """Return a safe URL for the attribute, or None if it must be dropped."""
        url = value.strip()
        if not url:
            return None

        match = self.SCHEME_PATTERN.match(self.URL_NOISE_PATTERN.sub("", url).lower())
        if match:
            if match.group(1) not in self.ALLOWED_SCHEMES[attr_name]:
                return None
            return url

        if base_url:
            return urljoin(base_url, url)
        return url


_default_cleaner: Optional[ContentCleaner] = None


def get_content_cleaner() -> ContentCleaner:
    """Shared cleaner instance."""
    global _default_cleaner
    if _default_cleaner is None:
        _default_cleaner = ContentCleaner()
    return _default_cleaner


# Convenience functions for common operations
def sanitize_html(html_content: Optional[str], base_url: Optional[str] = None) -> str:
    """Quick function to sanitize HTML with the shared policy."""
    return get_content_cleaner().sanitize(html_content, base_url)


def extract_plain_text(html_content: Optional[str]) -> str:
    """Quick function to extract plain text from HTML."""
    return get_content_cleaner().sanitize_text(html_content)
