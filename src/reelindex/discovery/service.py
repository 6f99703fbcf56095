"""Discovery query surface with read-through caching.

Search pages and active-entity lookups are served from the cache when
present and populated on miss. Degraded pages (search engine failures) are
returned to the caller but never cached. Lookups that include soft-deleted
items always read the store.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reelindex.cache.keys import CacheKeys
from reelindex.cache.redis import RedisCache
from reelindex.content.model import ContentItem, ContentType
from reelindex.persistence.db import session_context
from reelindex.persistence.repositories import ContentRepository
from reelindex.search.index import SearchIndex
from reelindex.search.query import SearchPage, SearchQuery, SortOrder

logger = logging.getLogger(__name__)


class DiscoveryService:
    """Read-only queries over the content catalog."""

    def __init__(
        self,
        search_index: SearchIndex,
        cache: RedisCache,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self.search_index = search_index
        self.cache = cache
        self.session_factory = session_factory

    async def search(self, query: SearchQuery) -> SearchPage:
        key = CacheKeys.search(query)
        cached = await self.cache.get(key)
        if cached is not None:
            return SearchPage.model_validate(cached)

        page = await self.search_index.search(query)
        if page.degraded:
            logger.warning("Search engine unavailable; serving uncached empty page")
            return page

        await self.cache.set(key, page.to_response())
        return page

    async def get_by_id(self, item_id: UUID, include_deleted: bool = False) -> ContentItem | None:
        """Fetch one item from the authoritative store.

        Args:
            item_id: Content item id
            include_deleted: Also return soft-deleted items (bypasses the cache)
        """
        if include_deleted:
            return await self._load(item_id, include_deleted=True)

        key = CacheKeys.entity(item_id)
        cached = await self.cache.get(key)
        if cached is not None:
            return ContentItem.model_validate(cached)

        item = await self._load(item_id, include_deleted=False)
        if item is not None:
            await self.cache.set(key, item.model_dump(mode="json", by_alias=True))
        return item

    async def by_category(self, category: str, page: int = 1, limit: int | None = None) -> SearchPage:
        """Newest items in one category."""
        return await self.search(self._browse(page, limit, category=category))

    async def by_type(self, content_type: ContentType, page: int = 1, limit: int | None = None) -> SearchPage:
        """Newest items of one content type."""
        return await self.search(self._browse(page, limit, type=content_type))

    async def _load(self, item_id: UUID, include_deleted: bool) -> ContentItem | None:
        async with session_context(self.session_factory) as session:
            return await ContentRepository(session).get(item_id, include_deleted=include_deleted)

    @staticmethod
    def _browse(page: int, limit: int | None, **filters: object) -> SearchQuery:
        params: dict[str, object] = {"page": page, "sort": SortOrder.RECENCY, **filters}
        if limit is not None:
            params["limit"] = limit
        return SearchQuery.model_validate(params)
