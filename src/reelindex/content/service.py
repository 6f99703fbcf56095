"""Content writer: store mutations followed by change events.

The writer is the only path that mutates content. Each operation commits
the store transaction first and publishes the matching change event after
the commit, so consumers never observe a change that was rolled back.

Example:
    writer = ContentWriter(get_session_factory(), ChangePublisher(get_event_bus()))
    item = await writer.create(draft)
"""

from __future__ import annotations

import logging
from uuid import UUID

from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reelindex.content.model import (
    CatalogModel,
    ContentDraft,
    ContentItem,
    ContentLanguage,
    ContentPatch,
    ContentType,
    normalize_tags,
)
from reelindex.errors import ContentNotFoundError
from reelindex.events.publisher import ChangePublisher
from reelindex.persistence.db import session_context
from reelindex.persistence.repositories import ContentRepository
from reelindex.platforms.registry import ProviderRegistry, default_registry

logger = logging.getLogger(__name__)


class ContentImport(CatalogModel):
    """Request to create a content item from a platform video URL.

    Optional fields override the fetched metadata; tags are merged.
    """

    url: str = Field(..., min_length=1, max_length=2048)
    category: str = Field(..., min_length=1, max_length=100)
    type: ContentType
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, min_length=1)
    language: ContentLanguage = ContentLanguage.ARABIC
    tags: list[str] = Field(default_factory=list)
    popularity_score: int = Field(default=0, ge=0, alias="popularityScore")


class ContentWriter:
    """Creates, updates, deletes and imports content items."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        publisher: ChangePublisher,
        registry: ProviderRegistry | None = None,
    ):
        self.session_factory = session_factory
        self.publisher = publisher
        self.registry = registry or default_registry()

    async def create(self, draft: ContentDraft) -> ContentItem:
        async with session_context(self.session_factory) as session:
            item = await ContentRepository(session).create(draft)

        logger.info(f"Created content item {item.id}")
        await self.publisher.publish_created(item)
        return item

    async def update(self, item_id: UUID, patch: ContentPatch) -> ContentItem:
        """Apply a partial update to an active item.

        Raises:
            ContentNotFoundError: no active item with this id
        """
        async with session_context(self.session_factory) as session:
            item = await ContentRepository(session).update(item_id, patch)
        if item is None:
            raise ContentNotFoundError(item_id)

        logger.info(f"Updated content item {item_id}")
        await self.publisher.publish_updated(item)
        return item

    async def soft_delete(self, item_id: UUID) -> ContentItem:
        """Mark an item deleted; it stays in the store until purged.

        Raises:
            ContentNotFoundError: no active item with this id
        """
        async with session_context(self.session_factory) as session:
            item = await ContentRepository(session).soft_delete(item_id)
        if item is None:
            raise ContentNotFoundError(item_id)

        logger.info(f"Soft-deleted content item {item_id}")
        await self.publisher.publish_deleted(item_id)
        return item

    async def import_from_url(self, request: ContentImport) -> ContentItem:
        """Create an item from a platform URL.

        Raises:
            UnsupportedPlatformError: no provider recognises the URL
            PlatformFetchError: the platform could not supply metadata
        """
        match = self.registry.detect(request.url)
        metadata = await match.provider.fetch_metadata(match.video_id)

        title = request.title or metadata.title
        draft = ContentDraft(
            title=title[:255],
            description=request.description or metadata.description or title,
            category=request.category,
            type=request.type,
            language=request.language,
            tags=normalize_tags([*request.tags, *metadata.tags]),
            duration=max(metadata.duration_seconds, 1),
            publication_date=metadata.published_at.date(),
            popularity_score=request.popularity_score,
            video_url=metadata.original_url,
            thumbnail_url=metadata.thumbnail_url,
            platform=metadata.platform,
            platform_video_id=metadata.platform_video_id,
            embed_url=metadata.embed_url,
        )
        logger.info(f"Importing {metadata.platform.value} video {metadata.platform_video_id}")
        return await self.create(draft)
