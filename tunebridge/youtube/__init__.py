"""
YouTube Music integration for tunebridge.

Components:
    - YouTubeCredentials: Explicit ytmusicapi auth holder
    - YouTubeMusicCatalog: CatalogClient backed by ytmusicapi
    - track_from_ytmusic: ytmusicapi result -> Track

Usage:
    from tunebridge.youtube import YouTubeMusicCatalog, YouTubeCredentials

    youtube = YouTubeMusicCatalog(YouTubeCredentials(auth_file=path))
"""

from tunebridge.youtube.client import YouTubeCredentials, YouTubeMusicCatalog
from tunebridge.youtube.models import track_from_ytmusic

__all__ = [
    "YouTubeCredentials",
    "YouTubeMusicCatalog",
    "track_from_ytmusic",
]
