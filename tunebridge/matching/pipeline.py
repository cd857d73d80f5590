"""
Resolution Pipeline: bounded-concurrency search and scoring.

For each source track, independently:
    1. Build the search query from the normalized title and artist
    2. search_track() on the target catalog (retried on transient errors)
    3. Score and rank every candidate
    4. Apply the accept/margin rule
    5. Produce a Resolution

Tracks are resolved on a ThreadPoolExecutor sized to
min(config.max_concurrency, target_client.max_concurrency). Each result
is written into a preallocated slot by input index, so output order is
input order whatever the completion order.

Failure policy:
    TransientNetworkError after retries -> Failed("transient"), siblings continue
    NotFoundError                       -> Failed("not-found"), siblings continue
    Unexpected exception                -> Failed("error"), logged, siblings continue
    AuthInvalidError                    -> whole run aborts, results discarded
    Caller cancel / timeout             -> whole run aborts with OperationCancelled

Usage:
    pipeline = ResolutionPipeline(config.matching, config.resolution)
    resolutions = pipeline.resolve(source_tracks, youtube_client, cancel=token)
"""

from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

from tunebridge.catalog.base import CatalogClient
from tunebridge.core.cancellation import CancellationToken
from tunebridge.core.config import MatchingConfig, ResolutionConfig
from tunebridge.core.exceptions import (
    AuthInvalidError,
    NotFoundError,
    OperationCancelled,
    TransientNetworkError,
)
from tunebridge.core.logger import format_matched_message, get_logger, log_unmatched_track
from tunebridge.core.models import (
    FAILED_ERROR,
    FAILED_NOT_FOUND,
    FAILED_TRANSIENT,
    Failed,
    Matched,
    Resolution,
    Track,
)
from tunebridge.core.retry import Sleeper, call_with_retries, cancellable_sleep
from tunebridge.matching.normalizer import search_query
from tunebridge.matching.scorer import MatchScorer


logger = get_logger(__name__)

# How often the collecting thread re-checks the caller's token (seconds)
POLL_INTERVAL = 0.05

# on_resolved(index, resolution), called on the collecting thread
ResolvedCallback = Callable[[int, Resolution], None]


class ResolutionPipeline:
    """
    Resolves source tracks against a target catalog.

    Attributes:
        matching: Thresholds and max_results for each search.
        resolution: Concurrency and retry settings.
        scorer: Scores and ranks candidates. Injectable for tests.

    Thread Safety:
        resolve() may be called from several threads at once; each call
        owns its own executor and slot list.
    """

    def __init__(
        self,
        matching: MatchingConfig | None = None,
        resolution: ResolutionConfig | None = None,
        scorer: MatchScorer | None = None,
        sleep: Sleeper = cancellable_sleep
    ) -> None:
        """
        Args:
            matching: Match configuration. Defaults to MatchingConfig().
            resolution: Fan-out/retry configuration. Defaults to ResolutionConfig().
            scorer: Scorer to use. Defaults to MatchScorer(matching).
            sleep: Backoff wait, called as sleep(seconds, token).
        """
        self.matching = matching or MatchingConfig()
        self.resolution = resolution or ResolutionConfig()
        self.scorer = scorer or MatchScorer(self.matching)
        self._sleep = sleep

    def worker_count(self, target_client: CatalogClient) -> int:
        """Effective fan-out: never above the client's own limit."""
        return max(1, min(self.resolution.max_concurrency, target_client.max_concurrency))

    def resolve(
        self,
        source_tracks: list[Track],
        target_client: CatalogClient,
        cancel: CancellationToken | None = None,
        on_resolved: ResolvedCallback | None = None
    ) -> list[Resolution]:
        """
        Resolve every source track against the target catalog.

        Args:
            source_tracks: Tracks to resolve, in source playlist order.
            target_client: Catalog searched for candidates.
            cancel: Optional caller token (explicit cancel or deadline).
            on_resolved: Optional progress callback, called once per track
                         as results arrive (not in input order).

        Returns:
            One Resolution per input track, in input order.

        Raises:
            AuthInvalidError: Target credentials rejected. No results returned.
            OperationCancelled: Caller cancelled or the deadline passed.
        """
        tracks = list(source_tracks)
        caller = cancel or CancellationToken()
        caller.raise_if_cancelled()
        if not tracks:
            return []

        # Separate token so an abort here stops workers without
        # tripping the caller's token
        run_token = CancellationToken()
        slots: list[Resolution | None] = [None] * len(tracks)
        workers = self.worker_count(target_client)

        logger.info(
            f"Resolving {len(tracks)} tracks on {target_client.platform} "
            f"({workers} concurrent searches)"
        )

        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="resolve")
        try:
            future_to_index: dict[Future, int] = {
                executor.submit(self._resolve_one, track, target_client, run_token): index
                for index, track in enumerate(tracks)
            }
            pending = set(future_to_index)

            while pending:
                if caller.cancelled:
                    run_token.cancel(caller.reason or "deadline passed")
                    caller.raise_if_cancelled()

                done, pending = wait(pending, timeout=POLL_INTERVAL, return_when=FIRST_COMPLETED)
                for future in done:
                    index = future_to_index[future]
                    # AuthInvalidError and OperationCancelled propagate from here
                    resolution = future.result()
                    slots[index] = resolution
                    if on_resolved is not None:
                        on_resolved(index, resolution)
        except BaseException:
            run_token.cancel("resolution aborted")
            # In-flight searches are abandoned, queued ones never start
            executor.shutdown(wait=False, cancel_futures=True)
            raise

        executor.shutdown(wait=True)

        matched = sum(1 for r in slots if r is not None and r.is_matched)
        logger.info(f"Resolved {len(tracks)} tracks: {matched} matched, {len(tracks) - matched} unmatched")
        return [r for r in slots if r is not None]

    def _resolve_one(
        self,
        track: Track,
        target_client: CatalogClient,
        run_token: CancellationToken
    ) -> Resolution:
        """Search, score and decide for one track. Runs on a worker thread."""
        query = search_query(track.title, track.artist)
        max_results = self.matching.max_results

        try:
            candidates = call_with_retries(
                lambda: target_client.search_track(query, max_results),
                self.resolution,
                run_token,
                sleep=self._sleep,
                description=f"Search '{query}'"
            )
        except (AuthInvalidError, OperationCancelled):
            raise
        except TransientNetworkError:
            resolution = Resolution(source_track=track, outcome=Failed(FAILED_TRANSIENT))
        except NotFoundError:
            resolution = Resolution(source_track=track, outcome=Failed(FAILED_NOT_FOUND))
        except Exception as e:
            logger.exception(f"Unexpected error resolving {track.display()}: {e}")
            resolution = Resolution(source_track=track, outcome=Failed(FAILED_ERROR))
        else:
            ranked = self.scorer.rank(track, candidates[:max_results])
            resolution = Resolution(source_track=track, outcome=self.scorer.decide(ranked))

        outcome = resolution.outcome
        if isinstance(outcome, Matched):
            logger.debug(format_matched_message(
                track.artist, track.title, outcome.target_track.url, outcome.score
            ))
        else:
            log_unmatched_track(logger, resolution)

        return resolution
