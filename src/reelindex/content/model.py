"""Content catalog domain models.

A content item is a video-like program (podcast episode or documentary)
stored in the relational store. Models use Pydantic v2 with camelCase
aliases so the same shapes serve the API, the cache and change payloads.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


class ContentType(str, Enum):
    VIDEO_PODCAST = "video_podcast"
    DOCUMENTARY = "documentary"


class ContentLanguage(str, Enum):
    ARABIC = "ar"
    ENGLISH = "en"


class MediaPlatform(str, Enum):
    NATIVE = "native"
    YOUTUBE = "youtube"


def normalize_tags(tags: Iterable[str] | None) -> list[str]:
    """Trim tags, drop blanks and duplicates while keeping first-seen order."""
    if not tags:
        return []
    seen: dict[str, None] = {}
    for tag in tags:
        cleaned = tag.strip()
        if cleaned and cleaned not in seen:
            seen[cleaned] = None
    return list(seen)


class CatalogModel(BaseModel):
    """Base model for catalog shapes."""

    model_config = {
        "populate_by_name": True,
        "validate_default": True,
    }


class MediaFields(CatalogModel):
    """Media location fields shared by drafts and stored items."""

    video_url: str | None = Field(default=None, alias="videoUrl", max_length=2048)
    thumbnail_url: str | None = Field(default=None, alias="thumbnailUrl", max_length=2048)
    platform: MediaPlatform = MediaPlatform.NATIVE
    platform_video_id: str | None = Field(default=None, alias="platformVideoId", max_length=255)
    embed_url: str | None = Field(default=None, alias="embedUrl", max_length=2048)


class ContentDraft(MediaFields):
    """Fields accepted when creating a content item."""

    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, max_length=100)
    type: ContentType
    language: ContentLanguage = ContentLanguage.ARABIC
    tags: list[str] = Field(default_factory=list)
    duration: int = Field(..., ge=1, description="Duration in seconds")
    publication_date: date = Field(..., alias="publicationDate")
    popularity_score: int = Field(default=0, ge=0, alias="popularityScore")

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: Iterable[str] | None) -> list[str]:
        return normalize_tags(value)


NON_NULLABLE_PATCH_FIELDS = (
    "title",
    "description",
    "category",
    "type",
    "language",
    "tags",
    "duration",
    "publication_date",
    "popularity_score",
    "platform",
)


class ContentPatch(CatalogModel):
    """Partial update; only fields explicitly set are applied."""

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, min_length=1)
    category: str | None = Field(default=None, min_length=1, max_length=100)
    type: ContentType | None = None
    language: ContentLanguage | None = None
    tags: list[str] | None = None
    duration: int | None = Field(default=None, ge=1)
    publication_date: date | None = Field(default=None, alias="publicationDate")
    popularity_score: int | None = Field(default=None, ge=0, alias="popularityScore")
    video_url: str | None = Field(default=None, alias="videoUrl", max_length=2048)
    thumbnail_url: str | None = Field(default=None, alias="thumbnailUrl", max_length=2048)
    platform: MediaPlatform | None = None
    platform_video_id: str | None = Field(default=None, alias="platformVideoId", max_length=255)
    embed_url: str | None = Field(default=None, alias="embedUrl", max_length=2048)

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: Iterable[str] | None) -> list[str] | None:
        return None if value is None else normalize_tags(value)

    @model_validator(mode="after")
    def _reject_cleared_required(self) -> ContentPatch:
        """Columns that are NOT NULL in the store can be changed, never cleared."""
        cleared = [
            name
            for name in NON_NULLABLE_PATCH_FIELDS
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if cleared:
            raise ValueError(f"Fields cannot be null: {', '.join(cleared)}")
        return self


class ContentItem(ContentDraft):
    """A persisted content item.

    ``deleted_at`` marks a soft delete: the row stays in the store but the
    item is excluded from every query surface until it is purged.
    """

    id: UUID = Field(default_factory=uuid4)
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")
    deleted_at: datetime | None = Field(default=None, alias="deletedAt")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
