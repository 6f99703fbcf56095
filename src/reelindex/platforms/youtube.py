"""YouTube Data API v3 provider."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any

import httpx

from reelindex.config import settings
from reelindex.content.model import MediaPlatform
from reelindex.errors import PlatformFetchError
from reelindex.platforms.base import PlatformProvider, VideoMetadata
from reelindex.platforms.duration import parse_iso8601_duration

logger = logging.getLogger(__name__)

_VIDEO_ID = r"([a-zA-Z0-9_-]{11})"
_URL_PATTERNS = [
    re.compile(rf"(?:youtube\.com/watch\?.*v=){_VIDEO_ID}"),
    re.compile(rf"(?:youtu\.be/){_VIDEO_ID}"),
    re.compile(rf"(?:youtube\.com/embed/){_VIDEO_ID}"),
    re.compile(rf"(?:youtube\.com/v/){_VIDEO_ID}"),
    re.compile(rf"(?:youtube\.com/shorts/){_VIDEO_ID}"),
    re.compile(rf"^{_VIDEO_ID}$"),
]
_THUMBNAIL_PREFERENCE = ("maxres", "standard", "high", "medium", "default")


def _to_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class YouTubeProvider(PlatformProvider):
    """Resolves YouTube URLs and fetches video metadata.

    Args:
        api_key: Data API key; fetches fail without one
        client: HTTP client to use (one is created per fetch otherwise)
        api_url: Base URL of the Data API
    """

    platform = MediaPlatform.YOUTUBE

    def __init__(
        self,
        api_key: str | None = settings.youtube_api_key,
        client: httpx.AsyncClient | None = None,
        api_url: str = settings.youtube_api_url,
    ):
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self._client = client
        if not api_key:
            logger.warning("YOUTUBE_API_KEY not configured; YouTube imports will fail")

    def extract_id(self, url: str) -> str | None:
        if not url or not isinstance(url, str):
            return None
        candidate = url.strip()
        for pattern in _URL_PATTERNS:
            match = pattern.search(candidate)
            if match:
                return match.group(1)
        return None

    def embed_url(self, video_id: str) -> str:
        return f"https://www.youtube.com/embed/{video_id}"

    def thumbnail_url(self, video_id: str) -> str:
        # maxresdefault is missing for many videos; hqdefault always exists
        return f"https://img.youtube.com/vi/{video_id}/hqdefault.jpg"

    async def fetch_metadata(self, video_id: str) -> VideoMetadata:
        if not self.api_key:
            raise PlatformFetchError("YouTube API key not configured (set YOUTUBE_API_KEY)")

        data = await self._fetch(video_id)
        items = data.get("items") or []
        if not items:
            raise PlatformFetchError(f"Video not found on YouTube: {video_id}")
        return self._build_metadata(video_id, items[0])

    async def _fetch(self, video_id: str) -> dict[str, Any]:
        params = {"id": video_id, "part": "snippet,contentDetails,statistics", "key": self.api_key}
        url = f"{self.api_url}/videos"
        try:
            if self._client is not None:
                response = await self._client.get(url, params=params)
            else:
                async with httpx.AsyncClient(timeout=settings.platform_http_timeout) as client:
                    response = await client.get(url, params=params)
        except httpx.HTTPError as e:
            raise PlatformFetchError(f"Failed to reach YouTube: {e}") from e

        if response.status_code != 200:
            logger.error(f"YouTube API error: {response.status_code} - {response.text[:500]}")
            raise PlatformFetchError(f"Failed to fetch video from YouTube: {response.status_code}")
        return response.json()

    def _build_metadata(self, video_id: str, video: dict[str, Any]) -> VideoMetadata:
        snippet = video.get("snippet") or {}
        details = video.get("contentDetails") or {}
        statistics = video.get("statistics") or {}

        published = snippet.get("publishedAt")
        if not published:
            raise PlatformFetchError(f"YouTube video {video_id} has no publication date")

        return VideoMetadata(
            platform=MediaPlatform.YOUTUBE,
            platform_video_id=video_id,
            title=snippet.get("title") or video_id,
            description=snippet.get("description") or None,
            duration_seconds=parse_iso8601_duration(details.get("duration")),
            thumbnail_url=self._best_thumbnail(snippet.get("thumbnails") or {}, video_id),
            embed_url=self.embed_url(video_id),
            original_url=f"https://www.youtube.com/watch?v={video_id}",
            published_at=datetime.fromisoformat(published.replace("Z", "+00:00")),
            channel_name=snippet.get("channelTitle"),
            channel_id=snippet.get("channelId"),
            tags=list(snippet.get("tags") or []),
            view_count=_to_int(statistics.get("viewCount")),
            like_count=_to_int(statistics.get("likeCount")),
        )

    def _best_thumbnail(self, thumbnails: dict[str, Any], video_id: str) -> str:
        for size in _THUMBNAIL_PREFERENCE:
            url = (thumbnails.get(size) or {}).get("url")
            if url:
                return url
        return self.thumbnail_url(video_id)
