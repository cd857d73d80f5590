"""Test the resolution pipeline"""

import threading
import time

import pytest

from conftest import FakeCatalog, make_track
from tunebridge.core.cancellation import CancellationToken
from tunebridge.core.config import MatchingConfig, ResolutionConfig
from tunebridge.core.exceptions import (
    AuthInvalidError,
    NotFoundError,
    OperationCancelled,
    TransientNetworkError,
)
from tunebridge.core.models import SPOTIFY, YOUTUBE, Failed, Matched, NoMatch
from tunebridge.matching.normalizer import search_query
from tunebridge.matching.pipeline import ResolutionPipeline
from tunebridge.matching.scorer import MatchScorer


class FixedScorer(MatchScorer):
    """Scorer returning preset scores per candidate track ID"""

    def __init__(self, scores, config=None):
        super().__init__(config)
        self.scores = scores
        self.ranked_sizes = []

    def score(self, source, candidate):
        return self.scores[candidate.track_id]

    def rank(self, source, candidates):
        self.ranked_sizes.append(len(candidates))
        return super().rank(source, candidates)


def query_of(track):
    return search_query(track.title, track.artist)


class TestResolutionOutcomes:
    """Test per-track outcomes"""

    def test_resolves_each_track(self, pipeline, spotify_tracks, target_catalog, youtube_matches):
        """Exact matches are accepted, unrelated results are rejected"""
        resolutions = pipeline.resolve(spotify_tracks, target_catalog)

        assert [r.source_track.track_id for r in resolutions] == ["sp1", "sp2", "sp3"]
        assert resolutions[0].outcome == Matched(youtube_matches["sp1"], pytest.approx(1.0))
        assert resolutions[1].outcome == NoMatch("low-confidence")
        assert resolutions[2].target_track_id == "yt3"

    def test_no_results(self, pipeline, spotify_tracks):
        """An empty search gives NoMatch('no-results')"""
        resolutions = pipeline.resolve(spotify_tracks[:1], FakeCatalog(YOUTUBE))

        assert resolutions[0].outcome == NoMatch("no-results")

    def test_close_runner_up_is_ambiguous(self, spotify_tracks):
        """Scores 0.80 and 0.78 are too close to pick either"""
        catalog = FakeCatalog(YOUTUBE)
        candidates = [
            make_track(YOUTUBE, "a", "Midnight City", "M83"),
            make_track(YOUTUBE, "b", "Midnight City", "M83"),
        ]
        catalog.on_search(spotify_tracks[0], candidates)
        pipeline = ResolutionPipeline(scorer=FixedScorer({"a": 0.80, "b": 0.78}))

        resolutions = pipeline.resolve(spotify_tracks[:1], catalog)

        assert resolutions[0].outcome == NoMatch("ambiguous")

    def test_clear_winner_is_matched(self, spotify_tracks):
        """A margin of exactly 0.05 is enough"""
        catalog = FakeCatalog(YOUTUBE)
        candidates = [
            make_track(YOUTUBE, "b", "Midnight City (Live)", "M83"),
            make_track(YOUTUBE, "a", "Midnight City", "M83"),
        ]
        catalog.on_search(spotify_tracks[0], candidates)
        pipeline = ResolutionPipeline(scorer=FixedScorer({"a": 0.85, "b": 0.80}))

        resolutions = pipeline.resolve(spotify_tracks[:1], catalog)

        assert resolutions[0].target_track_id == "a"
        assert resolutions[0].outcome.score == pytest.approx(0.85)

    def test_candidates_truncated_to_max_results(self, spotify_tracks):
        """Only the first max_results candidates are scored"""
        catalog = FakeCatalog(YOUTUBE)
        candidates = [make_track(YOUTUBE, f"v{i}", "Other", "Someone") for i in range(8)]
        catalog.search_handler = lambda query: candidates
        scorer = FixedScorer({f"v{i}": 0.1 for i in range(8)})
        pipeline = ResolutionPipeline(MatchingConfig(max_results=5), scorer=scorer)

        pipeline.resolve(spotify_tracks[:1], catalog)

        assert scorer.ranked_sizes == [5]

    def test_not_found_is_failed(self, pipeline, spotify_tracks):
        """NotFoundError from the catalog becomes Failed('not-found')"""
        catalog = FakeCatalog(YOUTUBE)

        def handler(query):
            raise NotFoundError("gone", platform=YOUTUBE)

        catalog.search_handler = handler
        resolutions = pipeline.resolve(spotify_tracks[:1], catalog)

        assert resolutions[0].outcome == Failed("not-found")
        assert len(catalog.search_calls) == 1

    def test_unexpected_error_is_failed(self, pipeline, spotify_tracks):
        """An unexpected exception is contained to its track"""
        catalog = FakeCatalog(YOUTUBE)

        def handler(query):
            if query == query_of(spotify_tracks[1]):
                raise RuntimeError("boom")
            return []

        catalog.search_handler = handler
        resolutions = pipeline.resolve(spotify_tracks, catalog)

        assert resolutions[1].outcome == Failed("error")
        assert resolutions[0].outcome == NoMatch("no-results")
        assert resolutions[2].outcome == NoMatch("no-results")

    def test_empty_input(self, pipeline):
        """Nothing to resolve returns an empty list without searching"""
        catalog = FakeCatalog(YOUTUBE)

        assert pipeline.resolve([], catalog) == []
        assert catalog.search_calls == []


class TestRetries:
    """Test transient failure handling"""

    def test_succeeds_on_third_attempt(self, pipeline, recording_sleep, spotify_tracks, youtube_matches):
        """Two transient failures, then success after exactly two backoff waits"""
        catalog = FakeCatalog(YOUTUBE)
        attempts = []

        def handler(query):
            attempts.append(query)
            if len(attempts) < 3:
                raise TransientNetworkError("HTTP 503", platform=YOUTUBE)
            return [youtube_matches["sp1"]]

        catalog.search_handler = handler
        resolutions = pipeline.resolve(spotify_tracks[:1], catalog)

        assert len(attempts) == 3
        assert recording_sleep.delays == [0.5, 1.0]
        assert resolutions[0].target_track_id == "yt1"

    def test_retries_exhausted(self, pipeline, recording_sleep, spotify_tracks):
        """After max_retries the track becomes Failed('transient')"""
        catalog = FakeCatalog(YOUTUBE)

        def handler(query):
            raise TransientNetworkError("timeout", platform=YOUTUBE)

        catalog.search_handler = handler
        resolutions = pipeline.resolve(spotify_tracks[:1], catalog)

        assert resolutions[0].outcome == Failed("transient")
        assert len(catalog.search_calls) == 4
        assert recording_sleep.delays == [0.5, 1.0, 2.0]

    def test_backoff_is_capped(self, recording_sleep, spotify_tracks):
        """Delays never exceed backoff_cap"""
        catalog = FakeCatalog(YOUTUBE)

        def handler(query):
            raise TransientNetworkError("timeout", platform=YOUTUBE)

        catalog.search_handler = handler
        pipeline = ResolutionPipeline(
            resolution=ResolutionConfig(max_retries=5), sleep=recording_sleep
        )
        pipeline.resolve(spotify_tracks[:1], catalog)

        assert recording_sleep.delays == [0.5, 1.0, 2.0, 4.0, 4.0]

    def test_auth_error_aborts_run(self, pipeline, spotify_tracks):
        """AuthInvalidError is not contained to one track"""
        catalog = FakeCatalog(YOUTUBE)

        def handler(query):
            if query == query_of(spotify_tracks[1]):
                raise AuthInvalidError("token expired", platform=YOUTUBE)
            return []

        catalog.search_handler = handler

        with pytest.raises(AuthInvalidError):
            pipeline.resolve(spotify_tracks, catalog)


class TestConcurrency:
    """Test fan-out, ordering and cancellation"""

    def test_output_order_matches_input(self, pipeline):
        """Later tracks finish first, results still come back in input order"""
        count = 8
        tracks = [make_track(SPOTIFY, f"s{i}", f"Song {i}", "Band") for i in range(count)]
        delays = {query_of(t): (count - i) * 0.02 for i, t in enumerate(tracks)}
        targets = {query_of(t): make_track(YOUTUBE, f"y{i}", f"Song {i}", "Band") for i, t in enumerate(tracks)}
        catalog = FakeCatalog(YOUTUBE)

        def handler(query):
            time.sleep(delays[query])
            return [targets[query]]

        catalog.search_handler = handler
        seen = []
        resolutions = pipeline.resolve(tracks, catalog, on_resolved=lambda i, r: seen.append(i))

        assert [r.source_track.track_id for r in resolutions] == [f"s{i}" for i in range(count)]
        assert [r.target_track_id for r in resolutions] == [f"y{i}" for i in range(count)]
        assert sorted(seen) == list(range(count))

    def test_concurrency_bounded_by_client(self, pipeline):
        """Never more searches in flight than the client allows"""
        tracks = [make_track(SPOTIFY, f"s{i}", f"Song {i}", "Band") for i in range(10)]
        catalog = FakeCatalog(YOUTUBE)
        catalog.max_concurrency = 2
        lock = threading.Lock()
        in_flight = [0]
        peak = [0]

        def handler(query):
            with lock:
                in_flight[0] += 1
                peak[0] = max(peak[0], in_flight[0])
            time.sleep(0.02)
            with lock:
                in_flight[0] -= 1
            return []

        catalog.search_handler = handler
        pipeline.resolve(tracks, catalog)

        assert peak[0] <= 2

    def test_worker_count(self):
        """Effective fan-out is the smaller of config and client limits"""
        catalog = FakeCatalog(YOUTUBE)
        catalog.max_concurrency = 3

        assert ResolutionPipeline(resolution=ResolutionConfig(max_concurrency=10)).worker_count(catalog) == 3
        assert ResolutionPipeline(resolution=ResolutionConfig(max_concurrency=1)).worker_count(catalog) == 1

    def test_cancelled_before_start(self, pipeline, spotify_tracks, target_catalog):
        """A cancelled token stops the run before any search"""
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelled):
            pipeline.resolve(spotify_tracks, target_catalog, cancel=token)
        assert target_catalog.search_calls == []

    def test_cancel_during_run(self, pipeline, spotify_tracks):
        """Cancelling mid-run raises instead of returning partial results"""
        token = CancellationToken()
        catalog = FakeCatalog(YOUTUBE)

        def handler(query):
            if query == query_of(spotify_tracks[0]):
                token.cancel("stop")
                return []
            time.sleep(0.5)
            return []

        catalog.search_handler = handler

        with pytest.raises(OperationCancelled) as exc_info:
            pipeline.resolve(spotify_tracks, catalog, cancel=token)
        assert exc_info.value.timed_out is False

    def test_timeout(self, pipeline, spotify_tracks, slow_search):
        """A deadline that passes mid-run raises a timed-out cancellation"""
        catalog = FakeCatalog(YOUTUBE)
        catalog.search_handler = slow_search(0.5)

        with pytest.raises(OperationCancelled) as exc_info:
            pipeline.resolve(spotify_tracks, catalog, cancel=CancellationToken(timeout=0.05))
        assert exc_info.value.timed_out is True
