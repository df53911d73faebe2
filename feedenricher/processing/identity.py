"""
Item Identity Resolution
========================

Assigns every feed item a stable identifier. First match wins:

1. the provider-supplied guid, verbatim
2. the SHA-1 hex digest of the raw description
3. a time-and-randomness based UUID

Items without a guid but with identical descriptions get the same
identifier. This is deliberate: syndication feeds often repeat an entry
under a new link, and the content hash folds such repeats together.
"""

import hashlib
import uuid

from ..models import FeedItem
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import IdentityError


logger = get_logger_for_component("identity")


def hash_content(content: str) -> str:
    """Hex-encoded SHA-1 digest of ``content`` (40 characters)."""
    return hashlib.sha1(content.encode("utf-8")).hexdigest()


def generate_uuid() -> str:
    """Time-and-randomness based UUID, not derived from content.

    Raises:
        IdentityError: If the clock or node source is unavailable
    """
    try:
        return str(uuid.uuid1())
    except (OSError, ValueError) as e:
        raise IdentityError(f"Failed to generate UUID: {e}") from e


class IdentityResolver:
    """Resolves the identifier of a feed item."""

    def resolve(self, item: FeedItem) -> str:
        """Return a non-empty identifier for ``item``.

        Raises:
            IdentityError: Only when the UUID fallback is reached and fails
        """
        if item.guid and item.guid.strip():
            logger.debug("Using provided GUID as id")
            return item.guid

        if item.description:
            logger.debug("Using hashed content as id")
            return hash_content(item.description)

        logger.debug("Falling back to generated UUID id")
        return generate_uuid()

    @staticmethod
    def degraded_id(feed_url: str, position: int) -> str:
        """Deterministic identifier for an item whose resolution failed.

        Derived from the feed URL and the item's position in the feed, so it
        is unique within one feed document.
        """
        return hash_content(f"{feed_url}#{position}")
