"""Test the Spotify catalog client"""

from unittest.mock import Mock

import pytest
import requests
from spotipy import SpotifyException

from conftest import make_track
from tunebridge.conversion.writer import PlaylistWriter
from tunebridge.core.cancellation import CancellationToken
from tunebridge.core.config import ResolutionConfig
from tunebridge.core.exceptions import (
    AuthInvalidError,
    CatalogError,
    NotFoundError,
    TransientNetworkError,
)
from tunebridge.core.models import YOUTUBE, Matched, Resolution
from tunebridge.spotify import SpotifyCatalog, SpotifyCredentials, track_from_api


@pytest.fixture
def sample_track_data():
    """Sample track data for testing"""
    return {
        "id": "4uLU6hMCjMI75M1A2tKUQC",
        "type": "track",
        "name": "Midnight City",
        "artists": [{"id": "artist_123", "name": "M83"}, {"id": "artist_456", "name": "Guest"}],
        "album": {"id": "album_123", "name": "Hurry Up, We're Dreaming"},
        "duration_ms": 243960,
        "is_local": False,
        "external_urls": {"spotify": "https://open.spotify.com/track/4uLU6hMCjMI75M1A2tKUQC"},
    }


@pytest.fixture
def spotipy_mock():
    return Mock()


@pytest.fixture
def catalog(spotipy_mock):
    return SpotifyCatalog(SpotifyCredentials(access_token="token"), spotify=spotipy_mock)


class TestTrackFromApi:
    """Test JSON to Track mapping"""

    def test_full_track(self, sample_track_data):
        track = track_from_api(sample_track_data)

        assert track.platform == "spotify"
        assert track.track_id == "4uLU6hMCjMI75M1A2tKUQC"
        assert track.title == "Midnight City"
        assert track.artist == "M83"
        assert track.artists == ("M83", "Guest")
        assert track.album == "Hurry Up, We're Dreaming"
        assert track.duration_seconds == 244
        assert track.url == "https://open.spotify.com/track/4uLU6hMCjMI75M1A2tKUQC"

    def test_skipped_items(self, sample_track_data):
        """Removed tracks, local files and episodes cannot be converted"""
        assert track_from_api(None) is None
        assert track_from_api({**sample_track_data, "is_local": True}) is None
        assert track_from_api({**sample_track_data, "type": "episode"}) is None
        assert track_from_api({**sample_track_data, "id": None}) is None

    def test_missing_optional_fields(self):
        track = track_from_api({"id": "abc", "name": "Song", "artists": []})

        assert track.artist == ""
        assert track.album is None
        assert track.duration_seconds is None
        assert track.url == "https://open.spotify.com/track/abc"

    def test_credentials_repr_hides_token(self):
        assert "secret" not in repr(SpotifyCredentials(access_token="secret"))


class TestSpotifyCatalog:
    """Test catalog operations against a mocked spotipy client"""

    def test_search(self, catalog, spotipy_mock, sample_track_data):
        spotipy_mock.search.return_value = {"tracks": {"items": [sample_track_data]}}

        results = catalog.search_track("midnight city m83", max_results=5)

        spotipy_mock.search.assert_called_once_with(q="midnight city m83", type="track", limit=5)
        assert [t.track_id for t in results] == ["4uLU6hMCjMI75M1A2tKUQC"]

    def test_empty_search_response_is_transient(self, catalog, spotipy_mock):
        spotipy_mock.search.return_value = None

        with pytest.raises(TransientNetworkError):
            catalog.search_track("anything", max_results=5)

    def test_list_playlist_paginates(self, catalog, spotipy_mock, sample_track_data):
        second = {**sample_track_data, "id": "second"}
        spotipy_mock.playlist_items.side_effect = [
            {"items": [{"track": sample_track_data}, {"track": None}], "next": "page2"},
            {"items": [{"track": second}], "next": None},
        ]

        tracks = catalog.list_playlist_tracks("pl1")

        assert [t.track_id for t in tracks] == ["4uLU6hMCjMI75M1A2tKUQC", "second"]
        assert spotipy_mock.playlist_items.call_args_list[1].kwargs["offset"] == 100

    def test_playlist_name(self, catalog, spotipy_mock):
        spotipy_mock.playlist.return_value = {"name": "My Mix"}
        assert catalog.get_playlist_name("pl1") == "My Mix"

    def test_create_playlist(self, catalog, spotipy_mock):
        spotipy_mock.me.return_value = {"id": "user1"}
        spotipy_mock.user_playlist_create.return_value = {"id": "new-pl"}

        assert catalog.create_playlist("My Mix (from youtube)", "desc") == "new-pl"
        assert catalog.create_playlist("Another", "desc") == "new-pl"

        spotipy_mock.me.assert_called_once()
        spotipy_mock.user_playlist_create.assert_called_with(
            "user1", "Another", public=False, description="desc"
        )

    def test_add_and_remove(self, catalog, spotipy_mock):
        catalog.add_track("pl1", "t1")
        catalog.remove_track("pl1", "t1")

        spotipy_mock.playlist_add_items.assert_called_once_with("pl1", ["t1"])
        spotipy_mock.playlist_remove_all_occurrences_of_items.assert_called_once_with("pl1", ["t1"])

    def test_playlist_url(self, catalog):
        assert catalog.playlist_url("pl1") == "https://open.spotify.com/playlist/pl1"


class TestSpotifyErrors:
    """Test error classification"""

    @pytest.mark.parametrize("status, expected", [
        (401, AuthInvalidError),
        (403, AuthInvalidError),
        (404, NotFoundError),
        (429, TransientNetworkError),
        (500, TransientNetworkError),
        (503, TransientNetworkError),
        (400, CatalogError),
    ])
    def test_http_status(self, catalog, spotipy_mock, status, expected):
        spotipy_mock.search.side_effect = SpotifyException(status, -1, "error")

        with pytest.raises(expected) as exc_info:
            catalog.search_track("q", max_results=5)

        assert exc_info.value.platform == "spotify"
        assert exc_info.value.details["http_status"] == status

    def test_bad_request_not_transient(self, catalog, spotipy_mock):
        spotipy_mock.search.side_effect = SpotifyException(400, -1, "invalid query")

        with pytest.raises(CatalogError) as exc_info:
            catalog.search_track("q", max_results=5)

        assert not isinstance(exc_info.value, TransientNetworkError)

    def test_connection_error(self, catalog, spotipy_mock):
        spotipy_mock.playlist_items.side_effect = requests.exceptions.ConnectionError("reset")

        with pytest.raises(TransientNetworkError):
            catalog.list_playlist_tracks("pl1")


class TestSpotifyRetriedAdd:
    """Test adds retried through PlaylistWriter"""

    def test_timed_out_add_not_duplicated(self, catalog, spotipy_mock, sample_track_data, recording_sleep):
        """Spotify keeps duplicates, so a retry after an applied add must not re-add"""
        playlist = []

        def add_items(playlist_id, items):
            playlist.extend(items)
            if len(playlist) == 1:
                raise requests.exceptions.ReadTimeout("read timed out")
            return {"snapshot_id": "s"}

        spotipy_mock.playlist_add_items.side_effect = add_items
        spotipy_mock.playlist_items.side_effect = lambda *args, **kwargs: {
            "items": [{"track": {**sample_track_data, "id": track_id}} for track_id in playlist],
            "next": None,
        }
        writer = PlaylistWriter(catalog, ResolutionConfig(), CancellationToken(), sleep=recording_sleep)
        source = make_track(YOUTUBE, "yt1", "Midnight City", "M83", 244)
        target = track_from_api(sample_track_data)

        resolutions, added = writer.add_matched("pl1", [Resolution(source, Matched(target, 1.0))])

        assert playlist == [target.track_id]
        assert added == 1
        assert resolutions[0].is_matched
        assert spotipy_mock.playlist_add_items.call_count == 1
