"""
Core module for tunebridge.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - models: Track, Resolution, PlaylistMapping and result types
    - database: Thread-safe SQLite mapping store
    - logger: Logging system with multiple outputs
    - cancellation: Cancel/timeout token for convert and sync
    - locks: Per-playlist exclusive locks

Usage:
    from tunebridge.core import (
        Config, load_config,
        MappingStore,
        setup_logging, get_logger,
        TuneBridgeError, ConfigError, DatabaseError
    )
"""

from tunebridge.core.cancellation import CancellationToken
from tunebridge.core.config import (
    Config,
    MatchingConfig,
    OutputConfig,
    ResolutionConfig,
    SpotifyConfig,
    YouTubeConfig,
    load_config,
)
from tunebridge.core.database import MappingStore
from tunebridge.core.exceptions import (
    AuthInvalidError,
    CatalogError,
    ConfigError,
    DatabaseError,
    MappingExistsError,
    MappingNotFoundError,
    NotFoundError,
    OperationCancelled,
    PlaylistBusyError,
    TrackNotInMappingError,
    TransientNetworkError,
    TuneBridgeError,
)
from tunebridge.core.locks import PlaylistLocks
from tunebridge.core.logger import (
    get_logger,
    log_unmatched_track,
    setup_logging,
    shutdown_logging,
)
from tunebridge.core.models import (
    CandidateMatch,
    ConversionResult,
    ConversionStats,
    Failed,
    Matched,
    NoMatch,
    PlaylistMapping,
    Resolution,
    Track,
)

__all__ = [
    # Config
    "Config",
    "SpotifyConfig",
    "YouTubeConfig",
    "OutputConfig",
    "MatchingConfig",
    "ResolutionConfig",
    "load_config",
    # Database
    "MappingStore",
    # Models
    "Track",
    "CandidateMatch",
    "Matched",
    "NoMatch",
    "Failed",
    "Resolution",
    "PlaylistMapping",
    "ConversionResult",
    "ConversionStats",
    # Concurrency
    "CancellationToken",
    "PlaylistLocks",
    # Exceptions
    "TuneBridgeError",
    "ConfigError",
    "DatabaseError",
    "CatalogError",
    "TransientNetworkError",
    "AuthInvalidError",
    "NotFoundError",
    "MappingExistsError",
    "MappingNotFoundError",
    "PlaylistBusyError",
    "TrackNotInMappingError",
    "OperationCancelled",
    # Logger
    "setup_logging",
    "get_logger",
    "log_unmatched_track",
    "shutdown_logging",
]
