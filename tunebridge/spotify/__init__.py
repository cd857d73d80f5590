"""
Spotify integration for tunebridge.

Components:
    - SpotifyCredentials: Explicit access-token holder
    - SpotifyCatalog: CatalogClient backed by spotipy
    - track_from_api: Spotify JSON -> Track

Usage:
    from tunebridge.spotify import SpotifyCatalog, SpotifyCredentials

    spotify = SpotifyCatalog(SpotifyCredentials(access_token=token))
"""

from tunebridge.spotify.client import SpotifyCatalog, SpotifyCredentials
from tunebridge.spotify.models import track_from_api

__all__ = [
    "SpotifyCredentials",
    "SpotifyCatalog",
    "track_from_api",
]
