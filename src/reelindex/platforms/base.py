"""Platform provider interface and shared metadata type."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from reelindex.content.model import MediaPlatform


@dataclass
class VideoMetadata:
    """Metadata normalized across platforms."""

    platform: MediaPlatform
    platform_video_id: str
    title: str
    description: str | None
    duration_seconds: int
    thumbnail_url: str
    embed_url: str
    original_url: str
    published_at: datetime
    channel_name: str | None = None
    channel_id: str | None = None
    tags: list[str] = field(default_factory=list)
    view_count: int | None = None
    like_count: int | None = None


class PlatformProvider(ABC):
    """A video platform that content can be imported from."""

    platform: MediaPlatform

    def can_handle(self, url: str) -> bool:
        return self.extract_id(url) is not None

    @abstractmethod
    def extract_id(self, url: str) -> str | None:
        """Platform video id in ``url``, or None if the URL isn't ours."""

    @abstractmethod
    async def fetch_metadata(self, video_id: str) -> VideoMetadata:
        """Fetch metadata from the platform API.

        Raises:
            PlatformFetchError: the platform could not be queried or the
                video does not exist
        """

    @abstractmethod
    def embed_url(self, video_id: str) -> str:
        pass

    @abstractmethod
    def thumbnail_url(self, video_id: str) -> str:
        pass
