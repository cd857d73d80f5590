"""
Sync Reconciler: bring a target playlist back in line with its source.

Diffing is by source platform track ID; position is ignored for the
diff and restored afterwards.

sync() workflow:
    1. Take the per-playlist lock and reload the stored mapping
    2. Re-read the source tracks and the target playlist contents
    3. Resolve new source tracks plus every stored non-Matched track
    4. Remove target tracks whose source track vanished, unless a kept
       resolution still maps to the same target track or the target
       playlist no longer contains it
    5. Add every matched target track missing from the target playlist,
       in source order
    6. Replace the mapping's resolutions in current source order, stamp
       last_synced_at and save

Removals run before adds. Any run-level failure (rejected credentials,
missing source playlist, a removal still failing after retries,
cancellation) propagates and leaves the stored mapping at its previous
state.

A second sync with no source change issues no add or remove calls and
stores set-equal resolutions.

resolve_track() re-runs a single stored track on demand, without
re-reading the source playlist.
"""

from dataclasses import replace

from tunebridge.catalog.base import CatalogClient
from tunebridge.conversion.writer import PlaylistWriter
from tunebridge.core.cancellation import CancellationToken
from tunebridge.core.config import ResolutionConfig
from tunebridge.core.database import MappingStore
from tunebridge.core.exceptions import MappingNotFoundError, TrackNotInMappingError
from tunebridge.core.locks import PlaylistLocks
from tunebridge.core.logger import format_summary_message, get_logger
from tunebridge.core.models import ConversionResult, PlaylistMapping, Resolution, Track
from tunebridge.core.retry import Sleeper, cancellable_sleep
from tunebridge.matching.pipeline import ResolutionPipeline, ResolvedCallback
from tunebridge.utils import utc_now


logger = get_logger(__name__)


class SyncReconciler:
    """
    Computes and applies the minimal target changes for a stored mapping.

    Attributes:
        store: Mapping store read and written by sync().
        pipeline: Resolution Pipeline used for new and retried tracks.
        locks: Per-playlist locks shared with the Conversion Orchestrator.
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

    def sync(
        self,
        mapping: PlaylistMapping,
        source_client: CatalogClient,
        target_client: CatalogClient,
        cancel: CancellationToken | None = None,
        on_resolved: ResolvedCallback | None = None
    ) -> ConversionResult:
        """
        Reconcile the mapping's target playlist with the current source.

        The stored copy of the mapping is reloaded under the lock, so a
        stale `mapping` argument cannot undo a sync that finished while
        this call waited.

        Args:
            mapping: Mapping to sync (identifies the source playlist).
            source_client: Catalog client of mapping.source_platform.
            target_client: Catalog client of mapping.target_platform.
            cancel: Optional cancellation/timeout token.
            on_resolved: Optional per-track progress callback.

        Returns:
            ConversionResult including added_tracks/removed_tracks.

        Raises:
            MappingNotFoundError: The mapping is no longer stored.
            ValueError: A client's platform does not match the mapping.
            PlaylistBusyError, NotFoundError, AuthInvalidError,
            TransientNetworkError, OperationCancelled: run-level failures.
        """
        if source_client.platform != mapping.source_platform:
            raise ValueError(
                f"Source client is {source_client.platform}, mapping expects {mapping.source_platform}"
            )
        if target_client.platform != mapping.target_platform:
            raise ValueError(
                f"Target client is {target_client.platform}, mapping expects {mapping.target_platform}"
            )

        cancel = cancel or CancellationToken(timeout=self.resolution_config.timeout)
        playlist_id = mapping.source_playlist_id

        with self.locks.hold(playlist_id, timeout=self.lock_timeout):
            stored = self._reload(playlist_id)

            source_writer = PlaylistWriter(source_client, self.resolution_config, cancel, self._sleep)
            target_writer = PlaylistWriter(target_client, self.resolution_config, cancel, self._sleep)
            target_playlist_id = stored.target_playlist_id

            source_tracks = source_writer.call(
                lambda: source_client.list_playlist_tracks(playlist_id),
                f"List tracks of {playlist_id}"
            )
            target_tracks = target_writer.call(
                lambda: target_client.list_playlist_tracks(target_playlist_id),
                f"List tracks of {target_playlist_id}"
            )
            target_contents = {t.track_id for t in target_tracks}

            resolutions = self._resolve_delta(stored, source_tracks, target_client, cancel, on_resolved)
            cancel.raise_if_cancelled()

            removed = self._remove_vanished(
                stored, resolutions, target_writer, target_playlist_id, target_contents
            )
            # Removed IDs are no longer present, so a re-added track is added again
            present = target_contents - removed
            resolutions, added = target_writer.add_matched(target_playlist_id, resolutions, present)

            updated = replace(stored, resolutions=resolutions, last_synced_at=utc_now())
            self.store.save_mapping(updated)

        logger.info(format_summary_message(updated.matched_count, len(resolutions), added, len(removed)))
        return ConversionResult.from_mapping(
            updated,
            message=f"Synced '{stored.source_name}': {added} added, {len(removed)} removed",
            added_tracks=added,
            removed_tracks=len(removed),
        )

    def resolve_track(
        self,
        mapping: PlaylistMapping,
        source_track_id: str,
        target_client: CatalogClient,
        cancel: CancellationToken | None = None,
        force: bool = False
    ) -> Resolution:
        """
        Re-resolve one stored source track and apply the result.

        The stored source track is searched again, a new match is added to
        the target playlist and the mapping is saved. The source playlist
        is not re-read and last_synced_at is left alone.

        A matched track is left untouched unless `force` is set. A forced
        re-resolve only replaces a match with another match: when it finds
        a different target track, the old one is removed from the target
        playlist unless another resolution still maps to it. When it finds
        no confident match, the stored match is kept.

        Args:
            mapping: Mapping holding the track (identifies the playlist).
            source_track_id: Source platform ID of the track.
            target_client: Catalog client of mapping.target_platform.
            cancel: Optional cancellation/timeout token.
            force: Re-resolve even if the track is already matched.

        Returns:
            The track's stored Resolution after the call.

        Raises:
            TrackNotInMappingError: The mapping has no such source track.
            MappingNotFoundError: The mapping is no longer stored.
            ValueError: target_client does not match the mapping.
            PlaylistBusyError, AuthInvalidError, TransientNetworkError,
            OperationCancelled: run-level failures.
        """
        if target_client.platform != mapping.target_platform:
            raise ValueError(
                f"Target client is {target_client.platform}, mapping expects {mapping.target_platform}"
            )

        cancel = cancel or CancellationToken(timeout=self.resolution_config.timeout)
        playlist_id = mapping.source_playlist_id

        with self.locks.hold(playlist_id, timeout=self.lock_timeout):
            stored = self._reload(playlist_id)
            current = next(
                (r for r in stored.resolutions if r.source_track.track_id == source_track_id), None
            )
            if current is None:
                raise TrackNotInMappingError(
                    f"Playlist {playlist_id} has no track {source_track_id}",
                    details={"playlist_id": playlist_id, "track_id": source_track_id}
                )
            if current.is_matched and not force:
                logger.info(f"{current.source_track.display()} is already matched, nothing to do")
                return current

            resolution = self.pipeline.resolve([current.source_track], target_client, cancel)[0]
            cancel.raise_if_cancelled()
            if current.is_matched and not resolution.is_matched:
                logger.warning(
                    f"No confident match for {current.source_track.display()} "
                    f"({resolution.reason}), keeping the stored match"
                )
                return current

            writer = PlaylistWriter(target_client, self.resolution_config, cancel, self._sleep)
            target_playlist_id = stored.target_playlist_id
            target_contents = writer.call(
                lambda: {t.track_id for t in target_client.list_playlist_tracks(target_playlist_id)},
                f"List tracks of {target_playlist_id}"
            )

            old_target = current.target_track_id
            kept_targets = {
                r.target_track_id for r in stored.resolutions
                if r.is_matched and r.source_track.track_id != source_track_id
            }
            replaced = (
                old_target is not None
                and old_target != resolution.target_track_id
                and old_target not in kept_targets
                and old_target in target_contents
            )
            if replaced:
                logger.info(f"Replacing {old_target} in {target_playlist_id}")
                if writer.remove(target_playlist_id, old_target):
                    target_contents.discard(old_target)

            (resolution,), _ = writer.add_matched(target_playlist_id, [resolution], target_contents)
            resolutions = [
                resolution if r.source_track.track_id == source_track_id else r
                for r in stored.resolutions
            ]
            self.store.save_mapping(replace(stored, resolutions=resolutions))

        logger.info(
            f"Re-resolved {resolution.source_track.display()} in {playlist_id}: "
            f"{resolution.outcome_name}"
        )
        return resolution

    def _reload(self, playlist_id: str) -> PlaylistMapping:
        stored = self.store.load_mapping(playlist_id)
        if stored is None:
            raise MappingNotFoundError(
                f"No stored mapping for playlist {playlist_id}",
                details={"playlist_id": playlist_id}
            )
        return stored

    def _resolve_delta(
        self,
        stored: PlaylistMapping,
        source_tracks: list[Track],
        target_client: CatalogClient,
        cancel: CancellationToken,
        on_resolved: ResolvedCallback | None
    ) -> list[Resolution]:
        """
        Full resolution list in current source order.

        Stored Matched resolutions are reused as-is (with refreshed source
        metadata). New tracks and stored non-Matched tracks go through
        the pipeline, each distinct track ID once.
        """
        previous: dict[str, Resolution] = {}
        for resolution in stored.resolutions:
            previous.setdefault(resolution.source_track.track_id, resolution)

        to_resolve: list[Track] = []
        queued: set[str] = set()
        for track in source_tracks:
            prior = previous.get(track.track_id)
            if (prior is None or not prior.is_matched) and track.track_id not in queued:
                to_resolve.append(track)
                queued.add(track.track_id)

        new_count = sum(1 for t in to_resolve if t.track_id not in previous)
        logger.info(
            f"Sync of {stored.source_playlist_id}: {len(source_tracks)} source tracks, "
            f"{new_count} new, {len(to_resolve) - new_count} retried"
        )

        fresh: dict[str, Resolution] = {}
        if to_resolve:
            for resolution in self.pipeline.resolve(to_resolve, target_client, cancel, on_resolved):
                fresh[resolution.source_track.track_id] = resolution

        resolutions = []
        for track in source_tracks:
            resolution = fresh.get(track.track_id) or previous[track.track_id]
            if resolution.source_track != track:
                resolution = replace(resolution, source_track=track)
            resolutions.append(resolution)
        return resolutions

    def _remove_vanished(
        self,
        stored: PlaylistMapping,
        resolutions: list[Resolution],
        writer: PlaylistWriter,
        target_playlist_id: str,
        target_contents: set[str]
    ) -> set[str]:
        """
        Remove target tracks of source tracks that left the playlist.

        Returns:
            Target IDs a remove call succeeded for.
        """
        current_ids = {r.source_track.track_id for r in resolutions}
        kept_targets = {r.target_track_id for r in resolutions if r.is_matched}

        removed: set[str] = set()
        for resolution in stored.resolutions:
            target_id = resolution.target_track_id
            if resolution.source_track.track_id in current_ids or target_id is None:
                continue
            if target_id in kept_targets or target_id in removed:
                continue
            if target_id not in target_contents:
                logger.debug(f"{target_id} already absent from {target_playlist_id}")
                continue

            logger.info(f"Removing {resolution.source_track.display()} from {target_playlist_id}")
            if writer.remove(target_playlist_id, target_id):
                removed.add(target_id)
        return removed
