"""
Conversion Orchestrator: source playlist -> new target playlist.

convert() workflow:
    1. Take the per-playlist lock; refuse if a mapping already exists
    2. Read the source playlist name and tracks (retried on transient errors)
    3. Resolve every track through the Resolution Pipeline
    4. Create "{source name} (from {source platform})" on the target
    5. Add matched tracks in source order, skipping repeats
    6. Persist the PlaylistMapping (every outcome, not only matches)
    7. Return a ConversionResult built from the mapping

The run is all-or-nothing only for run-level failures: unreadable source
playlist, rejected credentials, cancellation. Those propagate and no
mapping is saved. Unmatched tracks are reported outcomes, not failures,
and are retried by the next sync.

Usage:
    orchestrator = ConversionOrchestrator(store, pipeline)
    result = orchestrator.convert(playlist_id, spotify, youtube, cancel=token)
    print(result.message)
"""

from tunebridge.catalog.base import CatalogClient
from tunebridge.conversion.writer import PlaylistWriter
from tunebridge.core.cancellation import CancellationToken
from tunebridge.core.config import ResolutionConfig
from tunebridge.core.database import MappingStore
from tunebridge.core.exceptions import MappingExistsError, OperationCancelled
from tunebridge.core.locks import PlaylistLocks
from tunebridge.core.logger import format_summary_message, get_logger
from tunebridge.core.models import ConversionResult, PlaylistMapping
from tunebridge.core.retry import Sleeper, cancellable_sleep
from tunebridge.matching.pipeline import ResolutionPipeline, ResolvedCallback


logger = get_logger(__name__)

PLAYLIST_NAME_TEMPLATE = "{name} (from {platform})"
PLAYLIST_DESCRIPTION_TEMPLATE = "Converted from {platform} playlist {playlist_id} by tunebridge."


class ConversionOrchestrator:
    """
    Drives an end-to-end playlist conversion.

    Attributes:
        store: Where the resulting mapping is persisted.
        pipeline: Resolution Pipeline used for every track.
        locks: Per-playlist locks shared with the Sync Reconciler.
        lock_timeout: Seconds to wait for the playlist lock (None waits forever).
    """

    def __init__(
        self,
        store: MappingStore,
        pipeline: ResolutionPipeline,
        locks: PlaylistLocks | None = None,
        lock_timeout: float | None = None,
        sleep: Sleeper = cancellable_sleep
    ) -> None:
        self.store = store
        self.pipeline = pipeline
        self.locks = locks or PlaylistLocks()
        self.lock_timeout = lock_timeout
        self._sleep = sleep

    @property
    def resolution_config(self) -> ResolutionConfig:
        return self.pipeline.resolution

    def convert(
        self,
        source_playlist_id: str,
        source_client: CatalogClient,
        target_client: CatalogClient,
        cancel: CancellationToken | None = None,
        on_resolved: ResolvedCallback | None = None
    ) -> ConversionResult:
        """
        Convert a source playlist into a new playlist on the target platform.

        Args:
            source_playlist_id: Playlist ID on the source platform.
            source_client: Catalog client of the source platform.
            target_client: Catalog client of the target platform.
            cancel: Optional cancellation/timeout token.
            on_resolved: Optional per-track progress callback.

        Returns:
            ConversionResult with counts and every unmatched track.

        Raises:
            MappingExistsError: The playlist was already converted.
            PlaylistBusyError: Another convert/sync holds the playlist.
            NotFoundError: The source playlist does not exist.
            AuthInvalidError: Either platform rejected its credentials.
            TransientNetworkError: Source reads or playlist creation kept failing.
            OperationCancelled: Cancelled or timed out.
        """
        cancel = cancel or CancellationToken(timeout=self.resolution_config.timeout)
        source_platform = source_client.platform
        target_platform = target_client.platform

        with self.locks.hold(source_playlist_id, timeout=self.lock_timeout):
            if self.store.mapping_exists(source_playlist_id):
                raise MappingExistsError(
                    f"Playlist {source_playlist_id} was already converted. Use sync to update it.",
                    details={"playlist_id": source_playlist_id}
                )

            source_writer = PlaylistWriter(source_client, self.resolution_config, cancel, self._sleep)
            target_writer = PlaylistWriter(target_client, self.resolution_config, cancel, self._sleep)

            source_name = source_writer.call(
                lambda: source_client.get_playlist_name(source_playlist_id),
                f"Read name of {source_playlist_id}"
            )
            source_tracks = source_writer.call(
                lambda: source_client.list_playlist_tracks(source_playlist_id),
                f"List tracks of {source_playlist_id}"
            )
            logger.info(
                f"Converting '{source_name}' ({len(source_tracks)} tracks) "
                f"from {source_platform} to {target_platform}"
            )

            resolutions = self.pipeline.resolve(
                source_tracks, target_client, cancel=cancel, on_resolved=on_resolved
            )
            cancel.raise_if_cancelled()

            target_name = PLAYLIST_NAME_TEMPLATE.format(name=source_name, platform=source_platform)
            description = PLAYLIST_DESCRIPTION_TEMPLATE.format(
                platform=source_platform, playlist_id=source_playlist_id
            )
            # Not retried: a create that timed out may still have succeeded
            target_playlist_id = target_client.create_playlist(target_name, description)

            try:
                resolutions, added = target_writer.add_matched(target_playlist_id, resolutions)
            except OperationCancelled:
                logger.warning(
                    f"Conversion cancelled after creating {target_platform} playlist "
                    f"{target_playlist_id}; it may be partially filled"
                )
                raise

            mapping = PlaylistMapping(
                source_playlist_id=source_playlist_id,
                source_platform=source_platform,
                target_playlist_id=target_playlist_id,
                target_platform=target_platform,
                source_name=source_name,
                resolutions=resolutions,
            )
            self.store.save_mapping(mapping)

        logger.info(format_summary_message(mapping.matched_count, len(resolutions), added, 0))
        return ConversionResult.from_mapping(
            mapping,
            message=(
                f"Created '{target_name}' with {added} tracks "
                f"({mapping.matched_count}/{len(resolutions)} matched)"
            ),
            added_tracks=added,
        )
