"""
Utility functions for tunebridge.

This module provides small helpers used by the CLI and the conversion layer:
    - Playlist ID extraction from Spotify and YouTube Music URLs
    - Duration formatting
    - Timezone-aware timestamps
    - Output directory creation

Usage:
    from tunebridge.utils import ensure_directory, extract_playlist_id, format_duration, utc_now
"""

from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import parse_qs, urlparse

from tunebridge.core.models import SPOTIFY, YOUTUBE


def extract_spotify_id(url_or_id: str) -> str:
    """
    Extract Spotify ID from a URL or return ID as-is.

    Handles various Spotify URL formats:
        - https://open.spotify.com/playlist/ID
        - https://open.spotify.com/playlist/ID?si=xxx
        - spotify:playlist:ID
        - Just the ID

    Examples:
        extract_spotify_id("https://open.spotify.com/playlist/abc123?si=xyz")
        # Returns: "abc123"

        extract_spotify_id("spotify:playlist:abc123")
        # Returns: "abc123"
    """
    url_or_id = url_or_id.strip()

    # Handle spotify: URI format
    if url_or_id.startswith("spotify:"):
        return url_or_id.split(":")[-1]

    # Handle URL format
    if "spotify.com" in url_or_id:
        url_or_id = url_or_id.split("?")[0]
        return url_or_id.rstrip("/").split("/")[-1]

    return url_or_id


def extract_youtube_playlist_id(url_or_id: str) -> str:
    """
    Extract a YouTube Music playlist ID from the `list=` query parameter.

    Examples:
        extract_youtube_playlist_id("https://music.youtube.com/playlist?list=PLabc")
        # Returns: "PLabc"

        extract_youtube_playlist_id("PLabc")
        # Returns: "PLabc"
    """
    url_or_id = url_or_id.strip()
    if "youtube.com" not in url_or_id and "youtu.be" not in url_or_id:
        return url_or_id

    values = parse_qs(urlparse(url_or_id).query).get("list")
    if not values or not values[0]:
        raise ValueError(f"Not a playlist URL: {url_or_id}")
    return values[0]


def extract_playlist_id(platform: str, url_or_id: str) -> str:
    """
    Extract a playlist ID for the given platform.

    Args:
        platform: "spotify" or "youtube".
        url_or_id: Playlist URL, URI or bare ID.

    Returns:
        The bare playlist ID.

    Raises:
        ValueError: If the input is empty, points at something other than
                    a playlist, or the platform is unknown.
    """
    if not url_or_id or not url_or_id.strip():
        raise ValueError("Playlist URL or ID is empty")

    if platform == SPOTIFY:
        if ("spotify.com" in url_or_id or url_or_id.startswith("spotify:")) \
                and "playlist" not in url_or_id:
            raise ValueError(f"Not a playlist URL: {url_or_id}")
        return extract_spotify_id(url_or_id)

    if platform == YOUTUBE:
        return extract_youtube_playlist_id(url_or_id)

    raise ValueError(f"Unknown platform: {platform}")


def format_duration(seconds: int | None) -> str:
    """
    Format duration in seconds to human-readable string.

    Examples:
        format_duration(225)   # "3:45"
        format_duration(3750)  # "1:02:30"
        format_duration(None)  # "?:??"
    """
    if seconds is None:
        return "?:??"
    seconds = max(0, int(seconds))
    if seconds < 3600:
        return f"{seconds // 60}:{seconds % 60:02d}"
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    return f"{hours}:{minutes:02d}:{seconds % 60:02d}"


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_directory(path: Path) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Returns:
        The same path (for chaining).

    Raises:
        OSError: If the directory cannot be created.
    """
    path.mkdir(parents=True, exist_ok=True)
    return path
