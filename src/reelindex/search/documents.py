"""Search document projection of content items.

Documents are flat and camelCase. Dates are kept as ISO-8601 strings for
display and mirrored as epoch seconds, which the engine needs for range
filters and sorting.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any

from pydantic import BaseModel, Field

from reelindex.content.model import ContentItem


def date_timestamp(value: date) -> int:
    """Epoch seconds of midnight UTC on ``value``."""
    return int(datetime.combine(value, time.min, tzinfo=timezone.utc).timestamp())


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class SearchDocument(BaseModel):
    """A content item as stored in the search index."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    id: str
    title: str
    description: str
    category: str
    type: str
    language: str
    tags: list[str] = Field(default_factory=list)
    duration: int
    publication_date: str = Field(..., alias="publicationDate")
    publication_timestamp: int = Field(..., alias="publicationTimestamp")
    popularity_score: int = Field(default=0, alias="popularityScore")
    video_url: str | None = Field(default=None, alias="videoUrl")
    thumbnail_url: str | None = Field(default=None, alias="thumbnailUrl")
    platform: str = "native"
    platform_video_id: str | None = Field(default=None, alias="platformVideoId")
    embed_url: str | None = Field(default=None, alias="embedUrl")
    created_at: str | None = Field(default=None, alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")
    deleted_at: str | None = Field(default=None, alias="deletedAt")

    @classmethod
    def from_item(cls, item: ContentItem) -> SearchDocument:
        return cls(
            id=str(item.id),
            title=item.title,
            description=item.description,
            category=item.category,
            type=item.type.value,
            language=item.language.value,
            tags=list(item.tags),
            duration=item.duration,
            publication_date=item.publication_date.isoformat(),
            publication_timestamp=date_timestamp(item.publication_date),
            popularity_score=item.popularity_score,
            video_url=item.video_url,
            thumbnail_url=item.thumbnail_url,
            platform=item.platform.value,
            platform_video_id=item.platform_video_id,
            embed_url=item.embed_url,
            created_at=_iso(item.created_at),
            updated_at=_iso(item.updated_at),
            deleted_at=_iso(item.deleted_at),
        )

    def to_index(self) -> dict[str, Any]:
        """Wire form sent to the engine."""
        return self.model_dump(by_alias=True)
