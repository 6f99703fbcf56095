"""Content catalog models and write service."""

from reelindex.content.model import (
    ContentDraft,
    ContentItem,
    ContentLanguage,
    ContentPatch,
    ContentType,
    MediaPlatform,
    normalize_tags,
)

__all__ = [
    "ContentDraft",
    "ContentItem",
    "ContentLanguage",
    "ContentPatch",
    "ContentType",
    "MediaPlatform",
    "normalize_tags",
]
