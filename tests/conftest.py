"""Test configuration and fixtures"""

import tempfile
import threading
import time
from pathlib import Path
from typing import Callable

import pytest

from tunebridge.catalog.base import CatalogClient
from tunebridge.core.config import MatchingConfig, ResolutionConfig
from tunebridge.core.database import MappingStore
from tunebridge.core.exceptions import NotFoundError
from tunebridge.core.models import SPOTIFY, YOUTUBE, Track
from tunebridge.matching.normalizer import search_query
from tunebridge.matching.pipeline import ResolutionPipeline


def make_track(platform, track_id, title, artist, duration=None, album=None):
    """Build a Track the way the catalog clients would."""
    return Track(
        platform=platform,
        track_id=track_id,
        title=title,
        artist=artist,
        artists=(artist,) if artist else (),
        album=album,
        duration_seconds=duration,
        url=f"https://{platform}.example/{track_id}",
    )


class FakeCatalog(CatalogClient):
    """
    In-memory CatalogClient.

    Search results are registered per source track with on_search(), or
    produced by a custom search_handler(query). Playlist mutations are
    recorded in `added`, `removed` and `created` and applied to `playlists`.
    """

    max_concurrency = 5

    def __init__(self, platform: str = YOUTUBE) -> None:
        self.platform = platform
        self.results: dict[str, list[Track]] = {}
        self.search_handler: Callable[[str], list[Track]] | None = None
        self.playlists: dict[str, list[Track]] = {}
        self.names: dict[str, str] = {}

        self.search_calls: list[str] = []
        self.added: list[tuple[str, str]] = []
        self.removed: list[tuple[str, str]] = []
        self.created: list[tuple[str, str, str]] = []

        self.add_failures: dict[str, Exception] = {}
        self.remove_failures: dict[str, Exception] = {}
        self._lock = threading.Lock()

    # Test setup helpers

    def on_search(self, source: Track, results: list[Track]) -> None:
        self.results[search_query(source.title, source.artist)] = list(results)

    def add_playlist(self, playlist_id: str, name: str, tracks: list[Track]) -> None:
        self.playlists[playlist_id] = list(tracks)
        self.names[playlist_id] = name

    def track_ids(self, playlist_id: str) -> list[str]:
        return [t.track_id for t in self.playlists[playlist_id]]

    # CatalogClient

    def search_track(self, query: str, max_results: int) -> list[Track]:
        with self._lock:
            self.search_calls.append(query)
        if self.search_handler is not None:
            return self.search_handler(query)
        return list(self.results.get(query, []))[:max_results]

    def list_playlist_tracks(self, playlist_id: str) -> list[Track]:
        if playlist_id not in self.playlists:
            raise NotFoundError(f"Playlist not found: {playlist_id}", platform=self.platform)
        return list(self.playlists[playlist_id])

    def get_playlist_name(self, playlist_id: str) -> str:
        if playlist_id not in self.names:
            raise NotFoundError(f"Playlist not found: {playlist_id}", platform=self.platform)
        return self.names[playlist_id]

    def create_playlist(self, name: str, description: str) -> str:
        playlist_id = f"created-{len(self.created) + 1}"
        self.created.append((playlist_id, name, description))
        self.add_playlist(playlist_id, name, [])
        return playlist_id

    def add_track(self, playlist_id: str, track_id: str) -> None:
        if track_id in self.add_failures:
            raise self.add_failures[track_id]
        self.added.append((playlist_id, track_id))
        self.playlists[playlist_id].append(make_track(self.platform, track_id, track_id, ""))

    def remove_track(self, playlist_id: str, track_id: str) -> None:
        if track_id in self.remove_failures:
            raise self.remove_failures[track_id]
        if track_id not in self.track_ids(playlist_id):
            raise NotFoundError(f"{track_id} not in {playlist_id}", platform=self.platform)
        self.removed.append((playlist_id, track_id))
        self.playlists[playlist_id] = [
            t for t in self.playlists[playlist_id] if t.track_id != track_id
        ]


class RecordingSleep:
    """Sleeper that records backoff delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []
        self._lock = threading.Lock()

    def __call__(self, seconds, cancel) -> None:
        with self._lock:
            self.delays.append(seconds)


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def store(temp_dir):
    """MappingStore in a temporary directory"""
    mapping_store = MappingStore(temp_dir / "tunebridge.db")
    yield mapping_store
    mapping_store.close()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def pipeline(recording_sleep):
    """Pipeline with default thresholds and no real backoff waits"""
    return ResolutionPipeline(MatchingConfig(), ResolutionConfig(), sleep=recording_sleep)


@pytest.fixture
def spotify_tracks():
    """Three source tracks on Spotify"""
    return [
        make_track(SPOTIFY, "sp1", "Midnight City", "M83", 244, "Hurry Up, We're Dreaming"),
        make_track(SPOTIFY, "sp2", "Obscure Song", "Unknown Band", 200),
        make_track(SPOTIFY, "sp3", "Take On Me", "a-ha", 225, "Hunting High and Low"),
    ]


@pytest.fixture
def youtube_matches():
    """Exact YouTube Music counterparts of sp1 and sp3, plus an unrelated video"""
    return {
        "sp1": make_track(YOUTUBE, "yt1", "Midnight City", "M83", 244),
        "sp3": make_track(YOUTUBE, "yt3", "Take On Me", "a-ha", 225),
        "unrelated": make_track(YOUTUBE, "ytx", "Completely Different", "Other Artist", 400),
    }


@pytest.fixture
def source_catalog(spotify_tracks):
    """Spotify fake holding playlist 'pl1' with the three source tracks"""
    catalog = FakeCatalog(SPOTIFY)
    catalog.add_playlist("pl1", "My Mix", spotify_tracks)
    return catalog


@pytest.fixture
def target_catalog(spotify_tracks, youtube_matches):
    """YouTube fake: exact matches for sp1/sp3, only unrelated results for sp2"""
    catalog = FakeCatalog(YOUTUBE)
    sp1, sp2, sp3 = spotify_tracks
    catalog.on_search(sp1, [youtube_matches["sp1"]])
    catalog.on_search(sp2, [youtube_matches["unrelated"]])
    catalog.on_search(sp3, [youtube_matches["sp3"]])
    return catalog


@pytest.fixture
def slow_search():
    """Factory for a search handler that sleeps before returning nothing"""
    def factory(seconds):
        def handler(query):
            time.sleep(seconds)
            return []
        return handler
    return factory

