"""
Platform catalog client interface.

A CatalogClient wraps one platform's API behind the operations the
conversion engine needs. Implementations map raw API JSON into Track at
this boundary so nothing downstream branches on platform field layouts.

Operations raise CatalogError or one of its subclasses:
    TransientNetworkError - retry may succeed (rate limit, 5xx, timeout)
    AuthInvalidError      - credentials rejected, fatal to the run
    NotFoundError         - playlist or track does not exist
    CatalogError          - any other refusal (bad request, unexpected reply)

Any other exception escaping a client is a bug in that client.
"""

from abc import ABC, abstractmethod

from tunebridge.core.models import Track


# Substrings of error messages that indicate a temporary API/network
# problem rather than a permanent one. Used when a library surfaces
# failures only as text.
TRANSIENT_ERROR_PATTERNS = (
    # JSON/parsing errors (empty or malformed response)
    "expecting value",
    "json",
    "decode",

    # Rate limiting
    "429",
    "rate",
    "too many",
    "quota",
    "throttl",

    # Connection errors
    "connection",
    "timeout",
    "timed out",
    "reset",
    "refused",
    "ssl",

    # Server errors
    "500",
    "502",
    "503",
    "504",
    "temporarily",
    "unavailable",
    "server error",
    "internal error",

    # Network errors
    "network",
    "unreachable",
    "dns",
)


def is_transient_message(message: str) -> bool:
    """Check if an error message indicates a transient (temporary) error."""
    message = message.lower()
    return any(pattern in message for pattern in TRANSIENT_ERROR_PATTERNS)


class CatalogClient(ABC):
    """
    Capability interface implemented once per platform.

    Attributes:
        platform: Platform identifier ("spotify" or "youtube").
        max_concurrency: Maximum simultaneous requests this client accepts.
                         The Resolution Pipeline never exceeds it.

    Thread Safety:
        search_track may be called from several pipeline worker threads
        at once. Implementations must be safe for concurrent searches.
    """

    platform: str = ""
    max_concurrency: int = 5

    @abstractmethod
    def search_track(self, query: str, max_results: int) -> list[Track]:
        """
        Free-text track search.

        Args:
            query: Normalized "title artist" string.
            max_results: Upper bound on returned candidates.

        Returns:
            Up to max_results tracks in platform relevance order.
        """

    @abstractmethod
    def list_playlist_tracks(self, playlist_id: str) -> list[Track]:
        """All playable tracks of a playlist, in platform-native order."""

    @abstractmethod
    def get_playlist_name(self, playlist_id: str) -> str:
        """Display name of a playlist."""

    @abstractmethod
    def create_playlist(self, name: str, description: str) -> str:
        """
        Create a private playlist owned by the authenticated user.

        Returns:
            The new playlist's ID.
        """

    @abstractmethod
    def add_track(self, playlist_id: str, track_id: str) -> None:
        """
        Append a track to the end of a playlist.

        Not idempotent on every platform (Spotify keeps duplicates).
        PlaylistWriter re-reads the playlist before retrying a failed add.
        """

    @abstractmethod
    def remove_track(self, playlist_id: str, track_id: str) -> None:
        """
        Remove every occurrence of a track from a playlist.

        Raises:
            NotFoundError: If the playlist does not contain the track.
                           Platforms that treat this as a no-op (Spotify)
                           may return normally instead.
        """

    def playlist_url(self, playlist_id: str) -> str:
        """Public URL of a playlist. Empty if the platform has none."""
        return ""
