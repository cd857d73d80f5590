"""
YouTube Music catalog client for tunebridge.

Wraps ytmusicapi behind the CatalogClient interface. Credentials are an
explicit YouTubeCredentials object handed to each client instance.

Authentication:
    ytmusicapi needs an auth file, either browser request headers or an
    OAuth token file. OAuth token files also need the Google client ID
    and secret they were issued for. Producing the file is outside
    tunebridge (see `ytmusicapi browser` / `ytmusicapi oauth`).

Error mapping:
    ytmusicapi raises YTMusicServerError carrying the HTTP status in its
    message, YTMusicUserError for misuse (including missing auth), and
    lets requests exceptions through. All are translated into
    TransientNetworkError / AuthInvalidError / NotFoundError here.

Usage:
    credentials = YouTubeCredentials(auth_file=Path("oauth.json"))
    youtube = YouTubeMusicCatalog(credentials)

    results = youtube.search_track("midnight city m83", max_results=5)
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, NoReturn

import requests
from ytmusicapi import OAuthCredentials, YTMusic
from ytmusicapi.exceptions import YTMusicError, YTMusicServerError, YTMusicUserError

from tunebridge.catalog.base import CatalogClient, is_transient_message
from tunebridge.core.exceptions import (
    AuthInvalidError,
    CatalogError,
    NotFoundError,
    TransientNetworkError,
)
from tunebridge.core.logger import get_logger
from tunebridge.core.models import YOUTUBE, Track
from tunebridge.youtube.models import YOUTUBE_MUSIC_PLAYLIST_URL, track_from_ytmusic


logger = get_logger(__name__)

_HTTP_STATUS_RE = re.compile(r"HTTP (\d{3})")

# Phrases ytmusicapi uses when a call needs (valid) authentication
_AUTH_PATTERNS = ("authenticat", "unauthorized", "login", "sign in", "oauth")


@dataclass(frozen=True)
class YouTubeCredentials:
    """
    ytmusicapi authentication material.

    Attributes:
        auth_file: Browser-headers JSON or OAuth token JSON.
        client_id: Google OAuth client ID (OAuth token files only).
        client_secret: Google OAuth client secret (OAuth token files only).
    """
    auth_file: Path
    client_id: str | None = None
    client_secret: str | None = None

    def __repr__(self) -> str:
        return f"YouTubeCredentials(auth_file={str(self.auth_file)!r}, client_id=***)"


def _http_status(error: Exception) -> int | None:
    match = _HTTP_STATUS_RE.search(str(error))
    return int(match.group(1)) if match else None


def _raise_catalog_error(error: Exception, action: str, details: dict[str, Any]) -> NoReturn:
    """Translate a ytmusicapi/requests exception into the catalog taxonomy."""
    details = {**details, "original_error": str(error)}
    message = str(error).lower()

    if isinstance(error, YTMusicServerError):
        status = _http_status(error)
        details["http_status"] = status
        if status in (401, 403):
            raise AuthInvalidError(
                f"YouTube Music rejected the credentials while trying to {action}",
                details=details, platform=YOUTUBE
            ) from error
        if status == 404:
            raise NotFoundError(
                f"YouTube Music could not find the resource while trying to {action}",
                details=details, platform=YOUTUBE
            ) from error
        if status == 429 or (status is not None and status >= 500):
            raise TransientNetworkError(
                f"YouTube Music is unavailable or rate limiting (HTTP {status}) "
                f"while trying to {action}",
                details=details, platform=YOUTUBE
            ) from error

    if isinstance(error, YTMusicUserError) and any(p in message for p in _AUTH_PATTERNS):
        raise AuthInvalidError(
            f"YouTube Music authentication failed while trying to {action}: {error}",
            details=details, platform=YOUTUBE
        ) from error

    if isinstance(error, requests.exceptions.RequestException) or is_transient_message(message):
        raise TransientNetworkError(
            f"Network error while trying to {action}: {error}",
            details=details, platform=YOUTUBE
        ) from error

    raise CatalogError(
        f"YouTube Music request failed while trying to {action}: {error}",
        details=details, platform=YOUTUBE
    ) from error


def _status_succeeded(response: Any) -> bool:
    """ytmusicapi edit calls return a status string or a response dict."""
    if isinstance(response, str):
        return "SUCCEEDED" in response
    if isinstance(response, dict):
        return "SUCCEEDED" in str(response.get("status", ""))
    return False


class YouTubeMusicCatalog(CatalogClient):
    """
    CatalogClient backed by YouTube Music (ytmusicapi).

    Attributes:
        platform: "youtube"
        max_concurrency: Kept lower than Spotify's: the unofficial API
                         throttles bursts aggressively.
    """

    platform = YOUTUBE
    max_concurrency = 3

    def __init__(self, credentials: YouTubeCredentials, ytmusic: YTMusic | None = None) -> None:
        """
        Args:
            credentials: Auth file (and OAuth client) for this client.
            ytmusic: Pre-built YTMusic client (tests). Built from the
                     credentials when None.

        Raises:
            AuthInvalidError: If ytmusicapi cannot use the auth file.
        """
        self._credentials = credentials
        if ytmusic is not None:
            self._ytmusic = ytmusic
            return

        oauth = None
        if credentials.client_id and credentials.client_secret:
            oauth = OAuthCredentials(
                client_id=credentials.client_id,
                client_secret=credentials.client_secret
            )
        try:
            self._ytmusic = YTMusic(auth=str(credentials.auth_file), oauth_credentials=oauth)
        except (YTMusicError, ValueError, OSError) as e:
            raise AuthInvalidError(
                f"Cannot use YouTube Music auth file {credentials.auth_file}: {e}",
                details={"auth_file": str(credentials.auth_file), "original_error": str(e)},
                platform=YOUTUBE
            ) from e

    def _call(self, action: str, details: dict[str, Any], func, *args, **kwargs) -> Any:
        try:
            return func(*args, **kwargs)
        except (YTMusicError, requests.exceptions.RequestException, KeyError, ValueError) as e:
            _raise_catalog_error(e, action, details)

    def _playlist(self, playlist_id: str) -> dict[str, Any]:
        response = self._call(
            "read playlist", {"playlist_id": playlist_id},
            self._ytmusic.get_playlist, playlist_id, limit=None
        )
        if not response:
            raise NotFoundError(
                f"Playlist not found: {playlist_id}",
                details={"playlist_id": playlist_id}, platform=YOUTUBE
            )
        return response

    # =========================================================================
    # CatalogClient operations
    # =========================================================================

    def search_track(self, query: str, max_results: int) -> list[Track]:
        results = self._call(
            "search tracks", {"query": query},
            self._ytmusic.search, query, filter="songs", limit=max_results
        )
        tracks = [t for t in (track_from_ytmusic(r) for r in results or []) if t is not None]
        logger.debug(f"YouTube Music search '{query}': {len(tracks)} results")
        return tracks[:max_results]

    def list_playlist_tracks(self, playlist_id: str) -> list[Track]:
        entries = self._playlist(playlist_id).get("tracks") or []
        tracks = [t for t in (track_from_ytmusic(e) for e in entries) if t is not None]
        skipped = len(entries) - len(tracks)
        if skipped:
            logger.info(f"Skipped {skipped} unavailable items in YouTube Music playlist {playlist_id}")
        return tracks

    def get_playlist_name(self, playlist_id: str) -> str:
        return self._playlist(playlist_id).get("title") or playlist_id

    def create_playlist(self, name: str, description: str) -> str:
        response = self._call(
            "create playlist", {"name": name},
            self._ytmusic.create_playlist, name, description, privacy_status="PRIVATE"
        )
        # ytmusicapi returns the full response dict instead of an ID on failure
        if not isinstance(response, str) or not response:
            raise CatalogError(
                "YouTube Music did not return an ID for the created playlist",
                details={"name": name, "response": str(response)[:500]}, platform=YOUTUBE
            )
        logger.info(f"Created YouTube Music playlist '{name}' ({response})")
        return response

    def add_track(self, playlist_id: str, track_id: str) -> None:
        response = self._call(
            "add track", {"playlist_id": playlist_id, "track_id": track_id},
            self._ytmusic.add_playlist_items, playlist_id, [track_id], duplicates=False
        )
        if not _status_succeeded(response):
            raise CatalogError(
                f"YouTube Music refused to add {track_id} to {playlist_id}",
                details={"playlist_id": playlist_id, "track_id": track_id,
                         "response": str(response)[:500]},
                platform=YOUTUBE
            )

    def remove_track(self, playlist_id: str, track_id: str) -> None:
        """
        Remove every occurrence of a video.

        YouTube Music removes playlist entries by (videoId, setVideoId),
        so the playlist is read first to find them.

        Raises:
            NotFoundError: If the playlist does not contain the video.
        """
        entries = [
            {"videoId": e["videoId"], "setVideoId": e["setVideoId"]}
            for e in self._playlist(playlist_id).get("tracks") or []
            if e.get("videoId") == track_id and e.get("setVideoId")
        ]
        if not entries:
            raise NotFoundError(
                f"Track {track_id} is not in playlist {playlist_id}",
                details={"playlist_id": playlist_id, "track_id": track_id}, platform=YOUTUBE
            )

        response = self._call(
            "remove track", {"playlist_id": playlist_id, "track_id": track_id},
            self._ytmusic.remove_playlist_items, playlist_id, entries
        )
        if not _status_succeeded(response):
            raise CatalogError(
                f"YouTube Music refused to remove {track_id} from {playlist_id}",
                details={"playlist_id": playlist_id, "track_id": track_id,
                         "response": str(response)[:500]},
                platform=YOUTUBE
            )

    def playlist_url(self, playlist_id: str) -> str:
        return YOUTUBE_MUSIC_PLAYLIST_URL.format(playlist_id)
