"""Domain exceptions raised across the indexing pipeline."""

from __future__ import annotations


class ReelIndexError(Exception):
    """Base class for pipeline errors."""


class PublishFailure(ReelIndexError):
    """A change event could not be handed to the broker."""


class SearchUnavailableError(ReelIndexError):
    """The search engine rejected or failed a request."""


class CacheUnavailableError(ReelIndexError):
    """The cache backend could not complete an invalidation."""


class ContentNotFoundError(ReelIndexError):
    """Raised when a content item does not exist in the store."""

    def __init__(self, content_id: object) -> None:
        super().__init__(f"Content item not found: {content_id}")
        self.content_id = content_id


class UnsupportedPlatformError(ReelIndexError):
    """No registered provider recognises the media URL."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Unsupported video URL: {url}")
        self.url = url


class PlatformFetchError(ReelIndexError):
    """A provider failed to fetch metadata for a media id."""
