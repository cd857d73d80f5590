"""
Exception classes for tunebridge.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus an optional details
dictionary, and the class itself tells callers how severe the failure is.

Exception Hierarchy:
    TuneBridgeError (base)
        ConfigError - Configuration file issues
        DatabaseError - Mapping store issues
        CatalogError - Platform API issues
            TransientNetworkError - Timeouts, 5xx, rate limits (retry)
            AuthInvalidError - Expired/invalid credentials (fatal to the run)
            NotFoundError - Playlist or track does not exist
        MappingExistsError - Convert requested for an already-mapped playlist
        MappingNotFoundError - Sync requested for an unknown playlist
        PlaylistBusyError - Another convert/sync holds the playlist lock
        OperationCancelled - Caller cancelled or the run timed out

Ambiguous and low-confidence matches are NOT exceptions: they are recorded
as NoMatch outcomes on the track's Resolution.
"""


class TuneBridgeError(Exception):
    """
    Base exception for all tunebridge errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch all tunebridge errors with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g., playlist id, status code).

    Example:
        try:
            orchestrator.convert(playlist_id, spotify, youtube)
        except TuneBridgeError as e:
            logger.error(f"Conversion failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description that will be shown to the user.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'playlist_id': Playlist involved in the error
                     - 'track_id': Platform track ID involved in the error
                     - 'http_status': Status code returned by the platform
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(TuneBridgeError):
    """
    Raised when there's an issue with the configuration file.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - config.yaml not found
        - config.yaml has invalid YAML syntax
        - Required sections missing (spotify, youtube, output)
        - Invalid field values (e.g., accept_threshold outside [0, 1])

    Example:
        raise ConfigError(
            "'matching.accept_threshold' must be a number between 0 and 1",
            details={'field': 'matching.accept_threshold', 'value': 1.4}
        )
    """
    pass


class DatabaseError(TuneBridgeError):
    """
    Raised when there's an issue with the SQLite mapping store.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - Parent directory of the database file does not exist
        - Permission denied when reading/writing
        - Schema version mismatch
        - Corrupted row (unreadable JSON track payload)
    """
    pass


class CatalogError(TuneBridgeError):
    """
    Raised when a platform catalog call fails.

    Catalog clients never raise this class directly. They raise one of
    the three subclasses so callers can decide between retry, abort, and
    treat-as-missing without inspecting messages.

    Attributes:
        platform: Platform whose API failed ("spotify" or "youtube").
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        platform: str | None = None
    ) -> None:
        """
        Initialize the catalog error.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context.
            platform: Platform identifier for display and logging.
        """
        super().__init__(message, details)
        self.platform = platform


class TransientNetworkError(CatalogError):
    """
    Raised for failures that may succeed on a later attempt.

    This is a NON-CRITICAL error. The Resolution Pipeline retries it with
    exponential backoff and, once retries are exhausted, records the
    track as Failed("transient") without aborting sibling tracks.

    Common causes:
        - Rate limiting (HTTP 429)
        - Server errors (HTTP 5xx)
        - Connection resets, DNS failures, timeouts
        - Empty or malformed JSON responses
    """
    pass


class AuthInvalidError(CatalogError):
    """
    Raised when the platform rejects the supplied credentials.

    This is a CRITICAL error for the current run: every subsequent call
    would fail identically, so the pipeline aborts and no partial mapping
    is persisted. It is never retried here. Token refresh belongs to
    whoever supplied the credentials.

    Common causes:
        - Expired access token (HTTP 401)
        - Missing OAuth scope (HTTP 403)
        - Malformed ytmusicapi auth file
    """
    pass


class NotFoundError(CatalogError):
    """
    Raised when a playlist or track does not exist on the platform.

    Fatal to convert when the source playlist is missing. During sync a
    NotFound on remove_track means the target track is already gone and
    is treated as a successful removal.
    """
    pass


class MappingExistsError(TuneBridgeError):
    """
    Raised when convert is requested for a source playlist that already
    has a stored mapping.

    Mappings are never replaced implicitly. Use sync to update the existing
    target playlist, or delete the mapping first.
    """
    pass


class MappingNotFoundError(TuneBridgeError):
    """Raised when sync or show is requested for a playlist with no stored mapping."""
    pass


class TrackNotInMappingError(TuneBridgeError):
    """Raised when a single-track re-resolve names a track the mapping does not hold."""
    pass


class PlaylistBusyError(TuneBridgeError):
    """
    Raised when the per-playlist lock cannot be acquired within the timeout.

    Concurrent convert/sync calls on the same mapping could double-add or
    double-remove target tracks, so only one may run at a time.
    """
    pass


class OperationCancelled(TuneBridgeError):
    """
    Raised when a convert/sync call is cancelled by its caller or times out.

    This is not a failure of the system. In-flight searches are abandoned,
    no target mutation is attempted for unresolved tracks, and nothing
    is persisted for the interrupted run.

    Attributes:
        timed_out: True if the deadline passed, False for an explicit cancel.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        timed_out: bool = False
    ) -> None:
        super().__init__(message, details)
        self.timed_out = timed_out
