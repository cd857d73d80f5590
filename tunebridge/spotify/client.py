"""
Spotify catalog client for tunebridge.

Wraps spotipy behind the CatalogClient interface. Credentials are an
explicit SpotifyCredentials object handed to each client instance; there
is no process-wide client or token state.

Authentication:
    The client takes an OAuth access token obtained elsewhere (scopes:
    playlist-read-private, playlist-modify-private, playlist-modify-public).
    An expired or under-scoped token surfaces as AuthInvalidError; refresh
    is the token owner's job.

Retries:
    spotipy's own retry loop is disabled (retries=0, status_retries=0).
    Retrying is done by the Resolution Pipeline and the orchestrator so
    that backoff honors cancellation and the configured delays.

Usage:
    credentials = SpotifyCredentials(access_token=config.spotify.access_token)
    spotify = SpotifyCatalog(credentials)

    tracks = spotify.list_playlist_tracks("37i9dQZF1DXcBWIGoYBM5M")
"""

import threading
from dataclasses import dataclass
from typing import Any, NoReturn

import requests
import spotipy

from tunebridge.catalog.base import CatalogClient, is_transient_message
from tunebridge.core.exceptions import (
    AuthInvalidError,
    CatalogError,
    NotFoundError,
    TransientNetworkError,
)
from tunebridge.core.logger import get_logger
from tunebridge.core.models import SPOTIFY, Track
from tunebridge.spotify.models import SPOTIFY_PLAYLIST_URL, track_from_api


logger = get_logger(__name__)

# Spotify Web API limits
SEARCH_LIMIT_MAX = 50
PLAYLIST_PAGE_SIZE = 100
REQUEST_TIMEOUT = 10


@dataclass(frozen=True)
class SpotifyCredentials:
    """Opaque OAuth access token for the Spotify Web API."""
    access_token: str

    def __repr__(self) -> str:
        return "SpotifyCredentials(access_token='***')"


def _raise_catalog_error(error: Exception, action: str, details: dict[str, Any]) -> NoReturn:
    """
    Translate a spotipy/requests exception into the catalog taxonomy.

    HTTP status mapping:
        401, 403     -> AuthInvalidError
        404          -> NotFoundError
        429, 5xx     -> TransientNetworkError
        other        -> TransientNetworkError if the message looks
                        transient, CatalogError otherwise
    """
    details = {**details, "original_error": str(error)}

    if isinstance(error, spotipy.SpotifyException):
        status = error.http_status
        details["http_status"] = status
        if status in (401, 403):
            raise AuthInvalidError(
                f"Spotify rejected the access token while trying to {action}",
                details=details, platform=SPOTIFY
            ) from error
        if status == 404:
            raise NotFoundError(
                f"Spotify could not find the resource while trying to {action}",
                details=details, platform=SPOTIFY
            ) from error
        if status == 429 or (isinstance(status, int) and status >= 500):
            raise TransientNetworkError(
                f"Spotify is unavailable or rate limiting (HTTP {status}) while trying to {action}",
                details=details, platform=SPOTIFY
            ) from error

    if isinstance(error, requests.exceptions.RequestException) or is_transient_message(str(error)):
        raise TransientNetworkError(
            f"Network error while trying to {action}: {error}",
            details=details, platform=SPOTIFY
        ) from error

    raise CatalogError(
        f"Spotify request failed while trying to {action}: {error}",
        details=details, platform=SPOTIFY
    ) from error


class SpotifyCatalog(CatalogClient):
    """
    CatalogClient backed by the Spotify Web API.

    Attributes:
        platform: "spotify"
        max_concurrency: Simultaneous requests allowed by this client.

    Thread Safety:
        search_track() may run on several pipeline threads at once.
        The cached user ID is guarded by a lock.
    """

    platform = SPOTIFY
    max_concurrency = 5

    def __init__(
        self,
        credentials: SpotifyCredentials,
        spotify: spotipy.Spotify | None = None
    ) -> None:
        """
        Args:
            credentials: Access token for this client.
            spotify: Pre-built spotipy client (tests). Built from the
                     credentials when None.
        """
        self._credentials = credentials
        self._spotify = spotify or spotipy.Spotify(
            auth=credentials.access_token,
            requests_timeout=REQUEST_TIMEOUT,
            retries=0,
            status_retries=0,
        )
        self._user_id: str | None = None
        self._user_lock = threading.Lock()

    def _call(self, action: str, details: dict[str, Any], func, *args, **kwargs) -> Any:
        try:
            return func(*args, **kwargs)
        except (spotipy.SpotifyException, requests.exceptions.RequestException, ValueError) as e:
            _raise_catalog_error(e, action, details)

    def _current_user_id(self) -> str:
        with self._user_lock:
            if self._user_id is None:
                me = self._call("read the current user", {}, self._spotify.me)
                self._user_id = me["id"]
            return self._user_id

    # =========================================================================
    # CatalogClient operations
    # =========================================================================

    def search_track(self, query: str, max_results: int) -> list[Track]:
        limit = max(1, min(max_results, SEARCH_LIMIT_MAX))
        response = self._call(
            "search tracks", {"query": query},
            self._spotify.search, q=query, type="track", limit=limit
        )
        if not response:
            raise TransientNetworkError(
                "Empty search response from Spotify",
                details={"query": query}, platform=SPOTIFY
            )

        items = (response.get("tracks") or {}).get("items") or []
        tracks = [t for t in (track_from_api(item) for item in items) if t is not None]
        logger.debug(f"Spotify search '{query}': {len(tracks)} results")
        return tracks[:max_results]

    def list_playlist_tracks(self, playlist_id: str) -> list[Track]:
        """
        All tracks of a playlist in playlist order.

        Local files, podcast episodes and removed tracks are skipped.
        Pagination is handled here (100 items per request).
        """
        tracks: list[Track] = []
        offset = 0
        skipped = 0

        while True:
            response = self._call(
                "list playlist tracks", {"playlist_id": playlist_id},
                self._spotify.playlist_items,
                playlist_id, limit=PLAYLIST_PAGE_SIZE, offset=offset,
                additional_types=("track",)
            )
            items = (response or {}).get("items") or []
            for item in items:
                track = track_from_api((item or {}).get("track"))
                if track is None:
                    skipped += 1
                    continue
                tracks.append(track)

            if not response or response.get("next") is None:
                break
            offset += PLAYLIST_PAGE_SIZE

        if skipped:
            logger.info(f"Skipped {skipped} local/unavailable items in Spotify playlist {playlist_id}")
        return tracks

    def get_playlist_name(self, playlist_id: str) -> str:
        response = self._call(
            "read playlist", {"playlist_id": playlist_id},
            self._spotify.playlist, playlist_id, fields="name"
        )
        if not response:
            raise NotFoundError(
                f"Playlist not found: {playlist_id}",
                details={"playlist_id": playlist_id}, platform=SPOTIFY
            )
        return response.get("name") or playlist_id

    def create_playlist(self, name: str, description: str) -> str:
        user_id = self._current_user_id()
        response = self._call(
            "create playlist", {"name": name},
            self._spotify.user_playlist_create,
            user_id, name, public=False, description=description
        )
        playlist_id = (response or {}).get("id")
        if not playlist_id:
            raise CatalogError(
                "Spotify did not return an ID for the created playlist",
                details={"name": name}, platform=SPOTIFY
            )
        logger.info(f"Created Spotify playlist '{name}' ({playlist_id})")
        return playlist_id

    def add_track(self, playlist_id: str, track_id: str) -> None:
        self._call(
            "add track", {"playlist_id": playlist_id, "track_id": track_id},
            self._spotify.playlist_add_items, playlist_id, [track_id]
        )

    def remove_track(self, playlist_id: str, track_id: str) -> None:
        """Remove every occurrence. Spotify treats absent tracks as a no-op."""
        self._call(
            "remove track", {"playlist_id": playlist_id, "track_id": track_id},
            self._spotify.playlist_remove_all_occurrences_of_items, playlist_id, [track_id]
        )

    def playlist_url(self, playlist_id: str) -> str:
        return SPOTIFY_PLAYLIST_URL.format(playlist_id)
