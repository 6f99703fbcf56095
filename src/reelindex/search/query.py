"""Search query and result page models.

``SearchQuery`` is the single description of a discovery search: the
engine translates it into filters and sort rules, and the cache derives
its key from it.
"""

from __future__ import annotations

import math
from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from reelindex.config import settings
from reelindex.content.model import ContentLanguage, ContentType, normalize_tags
from reelindex.search.documents import SearchDocument, date_timestamp


class SortOrder(str, Enum):
    RELEVANCE = "relevance"
    RECENCY = "recency"
    POPULARITY = "popularity"


_SORT_RULES: dict[SortOrder, list[str]] = {
    SortOrder.RELEVANCE: [],
    SortOrder.RECENCY: ["publicationTimestamp:desc"],
    SortOrder.POPULARITY: ["popularityScore:desc"],
}


class SearchQuery(BaseModel):
    """Filters, pagination and sort for one search request.

    ``limit`` is capped at the configured maximum page size rather than
    rejected, so callers asking for too much get the largest page allowed.
    """

    model_config = {"populate_by_name": True}

    q: str | None = None
    category: str | None = None
    type: ContentType | None = None
    language: ContentLanguage | None = None
    tags: list[str] = Field(default_factory=list)
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=settings.search_default_limit, ge=1)
    sort: SortOrder = SortOrder.RELEVANCE
    start_date: date | None = Field(default=None, alias="startDate")
    end_date: date | None = Field(default=None, alias="endDate")

    @field_validator("q", "category", mode="before")
    @classmethod
    def _strip(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: list[str] | str | None) -> list[str]:
        if isinstance(value, str):
            value = value.split(",")
        return normalize_tags(value)

    @field_validator("limit")
    @classmethod
    def _cap_limit(cls, value: int) -> int:
        return min(value, settings.search_max_limit)

    @model_validator(mode="after")
    def _check_range(self) -> SearchQuery:
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def filters(self) -> list[str]:
        """Engine filter clauses; all of them must match.

        Soft-deleted documents are always excluded, and a tags filter
        requires every requested tag to be present.
        """
        clauses = ["deletedAt IS NULL"]
        if self.category:
            clauses.append(f"category = {quote(self.category)}")
        if self.type:
            clauses.append(f"type = {quote(self.type.value)}")
        if self.language:
            clauses.append(f"language = {quote(self.language.value)}")
        clauses.extend(f"tags = {quote(tag)}" for tag in self.tags)
        if self.start_date:
            clauses.append(f"publicationTimestamp >= {date_timestamp(self.start_date)}")
        if self.end_date:
            clauses.append(f"publicationTimestamp <= {date_timestamp(self.end_date)}")
        return clauses

    def sort_rules(self) -> list[str]:
        return list(_SORT_RULES[self.sort])


def quote(value: str) -> str:
    """Quote a filter value, escaping backslashes and double quotes."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def page_count(total: int, limit: int) -> int:
    """Number of pages for ``total`` hits; an empty result still has one page."""
    return max(1, math.ceil(total / limit))


class SearchPage(BaseModel):
    """One page of search results."""

    model_config = {"populate_by_name": True}

    items: list[SearchDocument] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = settings.search_default_limit
    total_pages: int = Field(default=1, alias="totalPages")
    has_next: bool = Field(default=False, alias="hasNext")
    has_prev: bool = Field(default=False, alias="hasPrev")
    # Set when the engine failed and this page is a stand-in; never cached
    degraded: bool = False

    @classmethod
    def build(cls, items: list[SearchDocument], total: int, query: SearchQuery) -> SearchPage:
        pages = page_count(total, query.limit)
        return cls(
            items=items,
            total=total,
            page=query.page,
            limit=query.limit,
            total_pages=pages,
            has_next=query.page < pages,
            has_prev=query.page > 1,
        )

    @classmethod
    def empty(cls, query: SearchQuery, degraded: bool = False) -> SearchPage:
        page = cls.build([], 0, query)
        page.degraded = degraded
        return page

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude={"degraded"})
