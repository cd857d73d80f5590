"""
Mapping from ytmusicapi result dictionaries to Track.

Search results and playlist entries share the same basic shape:

    {
        "videoId": "Vk5-c_v4gMU",
        "title": "Midnight City",
        "artists": [{"name": "M83", "id": "UC..."}],
        "album": {"name": "Hurry Up, We're Dreaming", "id": "MPRE..."},
        "duration": "4:04",
        "duration_seconds": 244,
        "setVideoId": "56B44F6D10557CC6",   # playlist entries only
    }
"""

from typing import Any

from tunebridge.core.models import YOUTUBE, Track


YOUTUBE_MUSIC_TRACK_URL = "https://music.youtube.com/watch?v={}"
YOUTUBE_MUSIC_PLAYLIST_URL = "https://music.youtube.com/playlist?list={}"


def _parse_duration(duration_str: str | None) -> int | None:
    """
    Parse duration string to seconds.

    Examples:
        "3:33" -> 213
        "1:02:15" -> 3735
        None -> None
    """
    if not duration_str:
        return None

    try:
        parts = [int(p) for p in duration_str.split(":")]
    except (ValueError, TypeError):
        return None

    if len(parts) == 2:
        return parts[0] * 60 + parts[1]
    if len(parts) == 3:
        return parts[0] * 3600 + parts[1] * 60 + parts[2]
    return None


def track_from_ytmusic(result: dict[str, Any] | None) -> Track | None:
    """
    Create a Track from a ytmusicapi search result or playlist entry.

    Returns:
        The Track, or None for entries without a videoId or marked
        unavailable (deleted/region-blocked uploads still listed in a playlist).
    """
    if not result:
        return None

    video_id = result.get("videoId")
    if not video_id or result.get("isAvailable") is False:
        return None

    artists_data = result.get("artists") or []
    artists = tuple(
        a.get("name", "") for a in artists_data
        if isinstance(a, dict) and a.get("name")
    )

    album_data = result.get("album")
    album = None
    if isinstance(album_data, dict):
        album = album_data.get("name")
    elif isinstance(album_data, str):
        album = album_data

    # Some results carry duration_seconds directly
    duration_seconds = result.get("duration_seconds")
    if not isinstance(duration_seconds, int) or duration_seconds <= 0:
        duration_seconds = _parse_duration(result.get("duration"))

    return Track(
        platform=YOUTUBE,
        track_id=video_id,
        title=result.get("title") or "",
        artist=artists[0] if artists else "",
        artists=artists,
        album=album or None,
        duration_seconds=duration_seconds,
        url=YOUTUBE_MUSIC_TRACK_URL.format(video_id),
    )
