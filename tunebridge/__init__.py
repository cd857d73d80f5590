"""
tunebridge: Convert and sync playlists between Spotify and YouTube Music.

Every track of a source playlist is searched on the target platform, the
candidates are scored, and a match is accepted only when it is both good
enough and clearly better than the runner-up. The outcome of every track
is stored so later syncs only touch what changed.

Architecture:
    Resolution (matching/):
        - Normalize title/artist and build a search query
        - Search the target catalog concurrently, with retries
        - Score candidates (title, artist, duration) and apply the
          accept threshold and margin rule

    Conversion (conversion/):
        - convert: create the target playlist and add matched tracks
        - sync: resolve new and previously unmatched tracks, remove
          tracks that left the source, add what is missing

    Catalogs (spotify/, youtube/):
        - spotipy and ytmusicapi behind a common CatalogClient interface
        - API errors mapped to transient / auth / not-found

Modules:
    core/        - Configuration, models, mapping store, logging, exceptions
    catalog/     - CatalogClient interface and client factory
    spotify/     - Spotify catalog client
    youtube/     - YouTube Music catalog client
    matching/    - Normalizer, scorer and resolution pipeline
    conversion/  - Conversion orchestrator and sync reconciler
    utils/       - URL parsing and formatting helpers
    cli.py       - Command-line interface

Usage:
    Command Line:
        tunebridge convert "https://open.spotify.com/playlist/..." --from spotify --to youtube
        tunebridge sync "https://open.spotify.com/playlist/..."
        tunebridge sync --all

    Python API:
        from tunebridge.core import load_config, MappingStore, setup_logging
        from tunebridge.catalog import build_catalog
        from tunebridge.matching import ResolutionPipeline
        from tunebridge.conversion import ConversionOrchestrator

        config = load_config()
        setup_logging(config.output.directory)
        store = MappingStore(config.output.database_path)
        pipeline = ResolutionPipeline(config.matching, config.resolution)

        orchestrator = ConversionOrchestrator(store, pipeline)
        result = orchestrator.convert(
            playlist_id,
            build_catalog("spotify", config),
            build_catalog("youtube", config),
        )

Dependencies:
    - spotipy: Spotify Web API client
    - ytmusicapi: YouTube Music API client
    - rapidfuzz: Fuzzy string matching
    - click / rich-click: CLI framework and colors
    - rich, tqdm: Progress bars and console-safe logging
    - pyyaml: Configuration file parsing
    - requests: HTTP errors raised by both API clients
"""

__version__ = "0.1.0"
__author__ = "tunebridge"
__license__ = "MIT"

from tunebridge.core import (
    Config,
    ConfigError,
    ConversionResult,
    DatabaseError,
    MappingStore,
    PlaylistMapping,
    Resolution,
    Track,
    TuneBridgeError,
    get_logger,
    load_config,
    setup_logging,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "MappingStore",
    "setup_logging",
    "get_logger",
    # Exceptions
    "TuneBridgeError",
    "ConfigError",
    "DatabaseError",
    # Models
    "Track",
    "Resolution",
    "PlaylistMapping",
    "ConversionResult",
]
