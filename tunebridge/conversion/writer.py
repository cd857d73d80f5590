"""
Target playlist mutations shared by convert and sync.

PlaylistWriter applies adds and removals to a target playlist with the
same retry policy as searches. Every call checks the cancellation token
first, so no mutation is issued once cancellation has been observed.

A failed add may still have reached the platform (a timeout after the
server applied it). Before retrying an add, the writer re-reads the
playlist and skips the retry if the track is already there, so adds
never create duplicate entries.
"""

from dataclasses import replace

from tunebridge.catalog.base import CatalogClient
from tunebridge.core.cancellation import CancellationToken
from tunebridge.core.config import ResolutionConfig
from tunebridge.core.exceptions import (
    AuthInvalidError,
    CatalogError,
    NotFoundError,
    TransientNetworkError,
)
from tunebridge.core.logger import get_logger, log_unmatched_track
from tunebridge.core.models import (
    FAILED_ERROR,
    FAILED_NOT_FOUND,
    FAILED_TRANSIENT,
    Failed,
    Resolution,
)
from tunebridge.core.retry import Sleeper, call_with_retries, cancellable_sleep


logger = get_logger(__name__)


class PlaylistWriter:
    """Adds and removes target tracks with retries and cancellation checks."""

    def __init__(
        self,
        client: CatalogClient,
        config: ResolutionConfig,
        cancel: CancellationToken,
        sleep: Sleeper = cancellable_sleep
    ) -> None:
        self.client = client
        self.config = config
        self.cancel = cancel
        self._sleep = sleep

    def call(self, func, description: str):
        """Run one catalog call under the retry policy."""
        return call_with_retries(func, self.config, self.cancel, sleep=self._sleep, description=description)

    def add_matched(
        self,
        playlist_id: str,
        resolutions: list[Resolution],
        present: set[str] | None = None
    ) -> tuple[list[Resolution], int]:
        """
        Append every matched target track, in resolution order.

        Target IDs already in `present` (already on the playlist, or added
        earlier in this loop) are skipped, so duplicates in the source
        never become duplicate add calls.

        A per-track add failure does not stop the loop: the track's
        Resolution becomes Failed so the next sync retries it.

        Args:
            playlist_id: Target playlist.
            resolutions: Resolutions in source order.
            present: Target track IDs already on the playlist.

        Returns:
            (resolutions with failed adds replaced, number of tracks added)

        Raises:
            AuthInvalidError: Target credentials rejected.
            OperationCancelled: Cancellation observed before an add.
        """
        seen = set(present or ())
        updated: list[Resolution] = []
        added = 0

        for resolution in resolutions:
            target_id = resolution.target_track_id
            if target_id is None or target_id in seen:
                updated.append(resolution)
                continue

            try:
                self.add(playlist_id, target_id)
            except AuthInvalidError:
                raise
            except TransientNetworkError:
                updated.append(self._failed(resolution, FAILED_TRANSIENT))
                continue
            except NotFoundError:
                updated.append(self._failed(resolution, FAILED_NOT_FOUND))
                continue
            except CatalogError as e:
                logger.error(f"Could not add {resolution.source_track.display()}: {e}")
                updated.append(self._failed(resolution, FAILED_ERROR))
                continue

            seen.add(target_id)
            added += 1
            updated.append(resolution)

        return updated, added

    def add(self, playlist_id: str, target_id: str) -> None:
        """
        Add one target track with retries.

        Retries first check whether the failed attempt landed anyway.
        """
        attempted = False

        def attempt() -> None:
            nonlocal attempted
            if attempted and target_id in self._track_ids(playlist_id):
                logger.info(f"{target_id} reached {playlist_id} despite the error, not adding it again")
                return
            attempted = True
            self.client.add_track(playlist_id, target_id)

        self.call(attempt, f"Add {target_id} to {playlist_id}")

    def _track_ids(self, playlist_id: str) -> set[str]:
        return {t.track_id for t in self.client.list_playlist_tracks(playlist_id)}

    def remove(self, playlist_id: str, target_id: str) -> bool:
        """
        Remove a target track.

        Returns:
            True if a remove call succeeded, False if the platform reported
            the track as already gone (NotFound counts as removed).

        Raises:
            TransientNetworkError: Still failing after retries.
            AuthInvalidError, CatalogError: On first occurrence.
            OperationCancelled: Cancellation observed before the call.
        """
        try:
            self.call(
                lambda: self.client.remove_track(playlist_id, target_id),
                f"Remove {target_id} from {playlist_id}"
            )
        except NotFoundError:
            logger.debug(f"{target_id} already absent from {playlist_id}")
            return False
        return True

    @staticmethod
    def _failed(resolution: Resolution, kind: str) -> Resolution:
        failed = replace(resolution, outcome=Failed(kind))
        log_unmatched_track(logger, failed)
        return failed
