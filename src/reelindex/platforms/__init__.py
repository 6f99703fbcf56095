"""Video platform providers used to import content from external URLs."""

from reelindex.platforms.base import PlatformProvider, VideoMetadata
from reelindex.platforms.duration import parse_iso8601_duration
from reelindex.platforms.registry import PlatformMatch, ProviderRegistry, default_registry
from reelindex.platforms.youtube import YouTubeProvider

__all__ = [
    "PlatformMatch",
    "PlatformProvider",
    "ProviderRegistry",
    "VideoMetadata",
    "YouTubeProvider",
    "default_registry",
    "parse_iso8601_duration",
]
