"""Provider registry: picks the platform provider for a media URL."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from reelindex.content.model import MediaPlatform
from reelindex.errors import UnsupportedPlatformError
from reelindex.platforms.base import PlatformProvider, VideoMetadata
from reelindex.platforms.youtube import YouTubeProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlatformMatch:
    provider: PlatformProvider
    video_id: str

    @property
    def platform(self) -> MediaPlatform:
        return self.provider.platform


class ProviderRegistry:
    """Ordered set of providers; the first one that accepts a URL wins."""

    def __init__(self, providers: list[PlatformProvider] | None = None):
        self._providers: list[PlatformProvider] = list(providers or [])

    def register(self, provider: PlatformProvider) -> None:
        self._providers.append(provider)
        logger.info(f"Registered platform provider: {provider.platform.value}")

    @property
    def platforms(self) -> list[MediaPlatform]:
        return [provider.platform for provider in self._providers]

    def get(self, platform: MediaPlatform) -> PlatformProvider | None:
        for provider in self._providers:
            if provider.platform == platform:
                return provider
        return None

    def detect(self, url: str) -> PlatformMatch:
        """Resolve ``url`` to a provider and platform video id.

        Raises:
            UnsupportedPlatformError: no provider recognises the URL
        """
        for provider in self._providers:
            video_id = provider.extract_id(url)
            if video_id is not None:
                return PlatformMatch(provider=provider, video_id=video_id)
        raise UnsupportedPlatformError(url)

    async def fetch_metadata(self, url: str) -> VideoMetadata:
        match = self.detect(url)
        return await match.provider.fetch_metadata(match.video_id)


def default_registry() -> ProviderRegistry:
    return ProviderRegistry([YouTubeProvider()])
