"""
FeedEnricher Input Validators
=============================

Checks applied to every URL before it is requested: the feed URL given by
the caller and each item link followed by the article enricher. Only
absolute http(s) URLs with a host pass; ``javascript:``, ``data:`` and
``file:`` links found in feeds are rejected by the scheme check.
"""

import re
from urllib.parse import urlsplit, urlunsplit

from .exceptions import ValidationError, ErrorCode


class URLValidator:
    """URL validation and normalization utilities."""

    ALLOWED_SCHEMES = ("http", "https")

    # Whitespace or control characters left inside a URL after stripping
    _INNER_CONTROL_CHARS = re.compile(r"[\x00-\x20\x7f]")

    @classmethod
    def normalize(cls, url: str, field_name: str = "url") -> str:
        """Validate ``url`` and return its canonical form.

        The scheme and host are lower-cased, an empty path becomes ``/``
        and the fragment is dropped; query strings are kept as they are.

        Raises:
            ValidationError: If the URL is missing, malformed, not http(s)
                or has no host
        """
        if not isinstance(url, str) or not url.strip():
            raise ValidationError(
                "URL is required",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name=field_name,
            )

        url = url.strip()
        if cls._INNER_CONTROL_CHARS.search(url):
            raise ValidationError("URL contains whitespace or control characters", field_name=field_name)

        try:
            parts = urlsplit(url)
            hostname = parts.hostname
        except ValueError as e:
            raise ValidationError(f"Invalid URL format: {e}", field_name=field_name) from e

        scheme = parts.scheme.lower()
        if scheme not in cls.ALLOWED_SCHEMES:
            raise ValidationError(
                f"URL scheme must be {' or '.join(cls.ALLOWED_SCHEMES)}, got {scheme or 'none'!r}",
                field_name=field_name,
            )

        if not hostname:
            raise ValidationError("URL must include a hostname", field_name=field_name)

        return urlunsplit((scheme, parts.netloc.lower(), parts.path or "/", parts.query, ""))

    @classmethod
    def validate_feed_url(cls, url: str) -> str:
        """Normalized feed URL; raises ValidationError if unusable."""
        return cls.normalize(url, field_name="url")

    @classmethod
    def validate_article_url(cls, url: str) -> str:
        """Normalized item link; raises ValidationError if unusable."""
        return cls.normalize(url, field_name="link")

