"""
Mapping from Spotify Web API JSON to Track.

Spotify responses are mapped into the platform-neutral Track at the
client boundary. Nothing outside tunebridge.spotify looks at raw
Spotify dictionaries.
"""

from typing import Any

from tunebridge.core.models import SPOTIFY, Track


SPOTIFY_TRACK_URL = "https://open.spotify.com/track/{}"
SPOTIFY_PLAYLIST_URL = "https://open.spotify.com/playlist/{}"


def track_from_api(track_data: dict[str, Any] | None) -> Track | None:
    """
    Create a Track from a Spotify track object.

    Args:
        track_data: A track object from search results or the 'track'
                    field of a playlist item.

    Returns:
        The Track, or None for entries that cannot be matched or added
        elsewhere: removed tracks (null), local files (no ID) and
        podcast episodes.

    Example:
        item = sp.playlist_items(playlist_id)["items"][0]
        track = track_from_api(item["track"])
    """
    if not track_data:
        return None
    if track_data.get("is_local") or track_data.get("type", "track") != "track":
        return None

    track_id = track_data.get("id")
    if not track_id:
        return None

    artists = tuple(a["name"] for a in track_data.get("artists") or [] if a.get("name"))
    album = (track_data.get("album") or {}).get("name") or None

    duration_ms = track_data.get("duration_ms")
    duration_seconds = round(duration_ms / 1000) if duration_ms else None

    url = (track_data.get("external_urls") or {}).get("spotify") or SPOTIFY_TRACK_URL.format(track_id)

    return Track(
        platform=SPOTIFY,
        track_id=track_id,
        title=track_data.get("name") or "",
        artist=artists[0] if artists else "",
        artists=artists,
        album=album,
        duration_seconds=duration_seconds,
        url=url,
    )
