"""Tests for the YouTube provider and the provider registry."""

from datetime import date

import httpx
import pytest

from reelindex.content.model import MediaPlatform
from reelindex.errors import PlatformFetchError, UnsupportedPlatformError
from reelindex.platforms.duration import parse_iso8601_duration
from reelindex.platforms.registry import ProviderRegistry
from reelindex.platforms.youtube import YouTubeProvider

VIDEO_ID = "dQw4w9WgXcQ"

VIDEO_RESPONSE = {
    "items": [
        {
            "id": VIDEO_ID,
            "snippet": {
                "title": "Voyage to Mars",
                "description": "Full documentary",
                "publishedAt": "2023-11-02T14:00:00Z",
                "channelTitle": "Space Channel",
                "channelId": "UC123",
                "tags": ["space", "mars"],
                "thumbnails": {
                    "high": {"url": "https://i.ytimg.com/vi/x/hq.jpg"},
                    "standard": {"url": "https://i.ytimg.com/vi/x/sd.jpg"},
                },
            },
            "contentDetails": {"duration": "PT1H2M30S"},
            "statistics": {"viewCount": "1200", "likeCount": "90"},
        }
    ]
}


def provider_for(handler: httpx.MockTransport, api_key: str | None = "key") -> YouTubeProvider:
    client = httpx.AsyncClient(transport=handler)
    return YouTubeProvider(api_key=api_key, client=client, api_url="https://yt.test/v3")


class TestParseDuration:
    @pytest.mark.parametrize(
        ("value", "seconds"),
        [("PT1H2M30S", 3750), ("PT45S", 45), ("PT10M", 600), ("P1D", 0), ("", 0), (None, 0)],
    )
    def test_parse(self, value: str | None, seconds: int) -> None:
        assert parse_iso8601_duration(value) == seconds


class TestExtractId:
    """URL shapes the provider recognises."""

    @pytest.mark.parametrize(
        "url",
        [
            f"https://www.youtube.com/watch?v={VIDEO_ID}",
            f"https://www.youtube.com/watch?feature=share&v={VIDEO_ID}",
            f"https://youtu.be/{VIDEO_ID}",
            f"https://www.youtube.com/embed/{VIDEO_ID}",
            f"https://www.youtube.com/v/{VIDEO_ID}",
            f"https://www.youtube.com/shorts/{VIDEO_ID}",
            f"  {VIDEO_ID}  ",
        ],
    )
    def test_recognised(self, url: str) -> None:
        assert YouTubeProvider(api_key="key").extract_id(url) == VIDEO_ID

    def test_foreign_url(self) -> None:
        provider = YouTubeProvider(api_key="key")

        assert provider.extract_id("https://vimeo.com/12345") is None
        assert provider.can_handle("https://vimeo.com/12345") is False


class TestFetchMetadata:
    """Tests for the Data API call."""

    async def test_builds_metadata(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=VIDEO_RESPONSE)

        metadata = await provider_for(httpx.MockTransport(handler)).fetch_metadata(VIDEO_ID)

        assert requests[0].url.path == "/v3/videos"
        assert requests[0].url.params["part"] == "snippet,contentDetails,statistics"
        assert metadata.platform == MediaPlatform.YOUTUBE
        assert metadata.title == "Voyage to Mars"
        assert metadata.duration_seconds == 3750
        assert metadata.thumbnail_url == "https://i.ytimg.com/vi/x/sd.jpg"
        assert metadata.embed_url == f"https://www.youtube.com/embed/{VIDEO_ID}"
        assert metadata.original_url == f"https://www.youtube.com/watch?v={VIDEO_ID}"
        assert metadata.published_at.date() == date(2023, 11, 2)
        assert metadata.view_count == 1200
        assert metadata.tags == ["space", "mars"]

    async def test_thumbnail_fallback(self) -> None:
        """Without thumbnails the hqdefault image is used."""
        body = {"items": [{**VIDEO_RESPONSE["items"][0], "snippet": {"publishedAt": "2023-11-02T14:00:00Z"}}]}
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))

        metadata = await provider_for(transport).fetch_metadata(VIDEO_ID)

        assert metadata.thumbnail_url == f"https://img.youtube.com/vi/{VIDEO_ID}/hqdefault.jpg"

    async def test_video_not_found(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"items": []}))

        with pytest.raises(PlatformFetchError, match="not found"):
            await provider_for(transport).fetch_metadata(VIDEO_ID)

    async def test_api_error(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(403, text="quota"))

        with pytest.raises(PlatformFetchError, match="403"):
            await provider_for(transport).fetch_metadata(VIDEO_ID)

    async def test_missing_api_key(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=VIDEO_RESPONSE))

        with pytest.raises(PlatformFetchError, match="API key"):
            await provider_for(transport, api_key=None).fetch_metadata(VIDEO_ID)


class TestProviderRegistry:
    def test_detect(self) -> None:
        registry = ProviderRegistry([YouTubeProvider(api_key="key")])

        match = registry.detect(f"https://youtu.be/{VIDEO_ID}")

        assert match.platform == MediaPlatform.YOUTUBE
        assert match.video_id == VIDEO_ID

    def test_unsupported_url(self) -> None:
        registry = ProviderRegistry([YouTubeProvider(api_key="key")])

        with pytest.raises(UnsupportedPlatformError):
            registry.detect("https://vimeo.com/12345")

    def test_lookup_by_platform(self) -> None:
        provider = YouTubeProvider(api_key="key")
        registry = ProviderRegistry()
        registry.register(provider)

        assert registry.get(MediaPlatform.YOUTUBE) is provider
        assert registry.get(MediaPlatform.NATIVE) is None
        assert registry.platforms == [MediaPlatform.YOUTUBE]
