"""
Build catalog clients from configuration.

Each call returns a fresh client holding its own credentials object, so
two clients for the same platform never share auth state.
"""

from tunebridge.catalog.base import CatalogClient
from tunebridge.core.config import Config
from tunebridge.core.models import PLATFORMS, SPOTIFY, YOUTUBE


def build_catalog(platform: str, config: Config) -> CatalogClient:
    """
    Create the catalog client for a platform.

    Args:
        platform: "spotify" or "youtube".
        config: Loaded application configuration.

    Raises:
        ValueError: If the platform is unknown.
        AuthInvalidError: If the YouTube Music auth file is unusable.
    """
    if platform == SPOTIFY:
        from tunebridge.spotify.client import SpotifyCatalog, SpotifyCredentials

        return SpotifyCatalog(SpotifyCredentials(access_token=config.spotify.access_token))

    if platform == YOUTUBE:
        from tunebridge.youtube.client import YouTubeCredentials, YouTubeMusicCatalog

        return YouTubeMusicCatalog(YouTubeCredentials(
            auth_file=config.youtube.auth_file,
            client_id=config.youtube.client_id,
            client_secret=config.youtube.client_secret,
        ))

    raise ValueError(f"Unknown platform {platform!r}, expected one of {', '.join(PLATFORMS)}")
