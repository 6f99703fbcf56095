"""Meilisearch-backed content index.

Writes wait for the engine task to finish, so a document is queryable as
soon as ``upsert`` returns. Query failures never propagate: ``search``
logs them and answers with an empty page flagged as degraded.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from meilisearch_python_sdk import AsyncClient
from meilisearch_python_sdk.errors import MeilisearchError
from meilisearch_python_sdk.index import AsyncIndex
from meilisearch_python_sdk.models.settings import (
    MinWordSizeForTypos,
    Pagination,
    TypoTolerance,
)

from reelindex.config import settings
from reelindex.errors import SearchUnavailableError
from reelindex.observability.metrics import record_search_failure
from reelindex.search.documents import SearchDocument
from reelindex.search.query import SearchPage, SearchQuery

logger = logging.getLogger(__name__)

# Order matters: earlier attributes rank higher
SEARCHABLE_ATTRIBUTES = ["title", "description", "tags"]
FILTERABLE_ATTRIBUTES = [
    "category",
    "type",
    "language",
    "tags",
    "publicationTimestamp",
    "deletedAt",
]
SORTABLE_ATTRIBUTES = ["publicationTimestamp", "popularityScore"]
# "sort" ranks first so a requested order applies to every hit.
# Relevance queries send no sort parameter.
RANKING_RULES = ["sort", "words", "typo", "proximity", "attribute", "exactness"]
TYPO_TOLERANCE = TypoTolerance(
    enabled=True,
    min_word_size_for_typos=MinWordSizeForTypos(one_typo=4, two_typos=8),
)

# Error codes meaning "nothing to remove"
_ABSENT_CODES = {"document_not_found", "index_not_found"}

_client: AsyncClient | None = None
_search_index: SearchIndex | None = None


def get_search_client() -> AsyncClient:
    """Get or create the shared Meilisearch client."""
    global _client
    if _client is None:
        if not settings.meilisearch_api_key:
            logger.warning("MEILISEARCH_API_KEY is empty; Meilisearch is unauthenticated")
        _client = AsyncClient(
            url=settings.meilisearch_url,
            api_key=settings.meilisearch_api_key,
            timeout=settings.meilisearch_timeout,
        )
    return _client


def get_search_index() -> SearchIndex:
    global _search_index
    if _search_index is None:
        _search_index = SearchIndex(get_search_client(), settings.search_index_name)
    return _search_index


async def close_search() -> None:
    global _client, _search_index
    if _client is not None:
        await _client.aclose()
    _client = None
    _search_index = None


def _error_code(error: Any) -> str | None:
    if isinstance(error, dict):
        return error.get("code")
    return getattr(error, "code", None)


class SearchIndex:
    """Content index operations on one Meilisearch index."""

    def __init__(
        self,
        client: AsyncClient,
        index_name: str,
        task_timeout_ms: int = 10000,
        max_total_hits: int | None = None,
    ):
        self.client = client
        self.index_name = index_name
        self.task_timeout_ms = task_timeout_ms
        self.max_total_hits = max_total_hits or settings.search_max_total_hits
        self._index: AsyncIndex | None = None

    @property
    def index(self) -> AsyncIndex:
        if self._index is None:
            self._index = self.client.index(self.index_name)
        return self._index

    async def ensure_index(self) -> None:
        """Create the index if missing and apply attribute settings."""
        try:
            self._index = await self.client.get_index(self.index_name)
        except MeilisearchError:
            self._index = await self.client.create_index(self.index_name, primary_key="id")
            logger.info(f"Created search index {self.index_name}")

        index = self.index
        await self._wait(await index.update_searchable_attributes(SEARCHABLE_ATTRIBUTES))
        await self._wait(await index.update_filterable_attributes(FILTERABLE_ATTRIBUTES))
        await self._wait(await index.update_sortable_attributes(SORTABLE_ATTRIBUTES))
        await self._wait(await index.update_ranking_rules(RANKING_RULES))
        await self._wait(await index.update_typo_tolerance(TYPO_TOLERANCE))
        await self._wait(
            await index.update_pagination(Pagination(max_total_hits=self.max_total_hits))
        )
        logger.info(f"Search index ready: {self.index_name}")

    async def _wait(self, task_info: Any) -> Any:
        """Block until the engine finished the task; raise if it failed."""
        task = await self.client.wait_for_task(
            task_info.task_uid, timeout_in_ms=self.task_timeout_ms
        )
        if task.status == "failed":
            raise SearchUnavailableError(
                f"Search task {task_info.task_uid} failed: {task.error}"
            )
        return task

    async def upsert(self, document: SearchDocument) -> None:
        """Insert or fully replace the document with the same id."""
        try:
            task_info = await self.index.add_documents([document.to_index()], primary_key="id")
            await self._wait(task_info)
        except MeilisearchError as e:
            raise SearchUnavailableError(f"Failed to index {document.id}: {e}") from e
        logger.debug(f"Indexed document {document.id}")

    async def remove(self, entity_id: UUID | str) -> bool:
        """Delete a document. An already-absent document counts as removed.

        Returns:
            False when the document or index did not exist
        """
        try:
            task_info = await self.index.delete_document(str(entity_id))
            task = await self.client.wait_for_task(
                task_info.task_uid, timeout_in_ms=self.task_timeout_ms
            )
        except MeilisearchError as e:
            if _error_code(e) in _ABSENT_CODES:
                return False
            raise SearchUnavailableError(f"Failed to remove {entity_id}: {e}") from e

        if task.status == "failed":
            if _error_code(task.error) in _ABSENT_CODES:
                return False
            raise SearchUnavailableError(f"Failed to remove {entity_id}: {task.error}")

        logger.debug(f"Removed document {entity_id}")
        return True

    async def search(self, query: SearchQuery) -> SearchPage:
        """Run a query; engine failures yield an empty degraded page."""
        try:
            results = await self.index.search(
                query.q or "",
                filter=query.filters(),
                sort=query.sort_rules() or None,
                page=query.page,
                hits_per_page=query.limit,
            )
        except Exception as e:
            logger.error(f"Search failed for {query.model_dump(exclude_none=True)}: {e}")
            record_search_failure()
            return SearchPage.empty(query, degraded=True)

        total = results.total_hits
        if total is None:
            total = results.estimated_total_hits or 0
        items = [SearchDocument.model_validate(hit) for hit in results.hits]
        return SearchPage.build(items, total, query)

    async def health_check(self) -> bool:
        try:
            await self.client.health()
            return True
        except Exception:
            return False
