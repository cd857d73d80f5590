"""Test the YouTube Music catalog client"""

from unittest.mock import Mock

import pytest
import requests
from ytmusicapi.exceptions import YTMusicServerError, YTMusicUserError

from tunebridge.core.exceptions import (
    AuthInvalidError,
    CatalogError,
    NotFoundError,
    TransientNetworkError,
)
from tunebridge.youtube import YouTubeCredentials, YouTubeMusicCatalog, track_from_ytmusic


@pytest.fixture
def sample_result():
    """ytmusicapi search result / playlist entry"""
    return {
        "videoId": "Vk5-c_v4gMU",
        "title": "Midnight City",
        "artists": [{"name": "M83", "id": "UC1"}],
        "album": {"name": "Hurry Up, We're Dreaming", "id": "MPRE1"},
        "duration": "4:04",
        "duration_seconds": 244,
        "setVideoId": "56B44F6D10557CC6",
    }


@pytest.fixture
def ytmusic_mock():
    return Mock()


@pytest.fixture
def catalog(temp_dir, ytmusic_mock):
    credentials = YouTubeCredentials(auth_file=temp_dir / "oauth.json")
    return YouTubeMusicCatalog(credentials, ytmusic=ytmusic_mock)


class TestTrackFromYtmusic:
    """Test JSON to Track mapping"""

    def test_full_result(self, sample_result):
        track = track_from_ytmusic(sample_result)

        assert track.platform == "youtube"
        assert track.track_id == "Vk5-c_v4gMU"
        assert track.title == "Midnight City"
        assert track.artist == "M83"
        assert track.album == "Hurry Up, We're Dreaming"
        assert track.duration_seconds == 244
        assert track.url == "https://music.youtube.com/watch?v=Vk5-c_v4gMU"

    def test_duration_parsed_from_text(self, sample_result):
        del sample_result["duration_seconds"]
        assert track_from_ytmusic(sample_result).duration_seconds == 244
        assert track_from_ytmusic({**sample_result, "duration": "1:02:15"}).duration_seconds == 3735
        assert track_from_ytmusic({**sample_result, "duration": "live"}).duration_seconds is None

    def test_unavailable_entries_skipped(self, sample_result):
        assert track_from_ytmusic(None) is None
        assert track_from_ytmusic({**sample_result, "videoId": None}) is None
        assert track_from_ytmusic({**sample_result, "isAvailable": False}) is None


class TestYouTubeMusicCatalog:
    """Test catalog operations against a mocked YTMusic client"""

    def test_search(self, catalog, ytmusic_mock, sample_result):
        ytmusic_mock.search.return_value = [sample_result, {"title": "no video id"}]

        results = catalog.search_track("midnight city m83", max_results=5)

        ytmusic_mock.search.assert_called_once_with("midnight city m83", filter="songs", limit=5)
        assert [t.track_id for t in results] == ["Vk5-c_v4gMU"]

    def test_list_playlist(self, catalog, ytmusic_mock, sample_result):
        ytmusic_mock.get_playlist.return_value = {
            "title": "My Mix",
            "tracks": [sample_result, {**sample_result, "videoId": "other", "isAvailable": False}],
        }

        assert [t.track_id for t in catalog.list_playlist_tracks("PL1")] == ["Vk5-c_v4gMU"]
        assert catalog.get_playlist_name("PL1") == "My Mix"
        ytmusic_mock.get_playlist.assert_called_with("PL1", limit=None)

    def test_create_playlist(self, catalog, ytmusic_mock):
        ytmusic_mock.create_playlist.return_value = "PLnew"

        assert catalog.create_playlist("My Mix (from spotify)", "desc") == "PLnew"
        ytmusic_mock.create_playlist.assert_called_once_with(
            "My Mix (from spotify)", "desc", privacy_status="PRIVATE"
        )

    def test_create_playlist_error_response(self, catalog, ytmusic_mock):
        ytmusic_mock.create_playlist.return_value = {"error": "something"}

        with pytest.raises(CatalogError):
            catalog.create_playlist("x", "y")

    def test_add_track(self, catalog, ytmusic_mock):
        ytmusic_mock.add_playlist_items.return_value = {"status": "STATUS_SUCCEEDED"}

        catalog.add_track("PL1", "vid1")

        ytmusic_mock.add_playlist_items.assert_called_once_with("PL1", ["vid1"], duplicates=False)

    def test_add_track_refused(self, catalog, ytmusic_mock):
        ytmusic_mock.add_playlist_items.return_value = {"status": "STATUS_FAILED"}

        with pytest.raises(CatalogError):
            catalog.add_track("PL1", "vid1")

    def test_remove_track(self, catalog, ytmusic_mock, sample_result):
        ytmusic_mock.get_playlist.return_value = {"tracks": [sample_result]}
        ytmusic_mock.remove_playlist_items.return_value = "STATUS_SUCCEEDED"

        catalog.remove_track("PL1", "Vk5-c_v4gMU")

        ytmusic_mock.remove_playlist_items.assert_called_once_with(
            "PL1", [{"videoId": "Vk5-c_v4gMU", "setVideoId": "56B44F6D10557CC6"}]
        )

    def test_remove_absent_track(self, catalog, ytmusic_mock, sample_result):
        ytmusic_mock.get_playlist.return_value = {"tracks": [sample_result]}

        with pytest.raises(NotFoundError):
            catalog.remove_track("PL1", "not-there")
        ytmusic_mock.remove_playlist_items.assert_not_called()

    def test_playlist_url(self, catalog):
        assert catalog.playlist_url("PL1") == "https://music.youtube.com/playlist?list=PL1"


class TestYouTubeErrors:
    """Test error classification"""

    @pytest.mark.parametrize("status, expected", [
        (401, AuthInvalidError),
        (403, AuthInvalidError),
        (404, NotFoundError),
        (429, TransientNetworkError),
        (503, TransientNetworkError),
    ])
    def test_server_error_status(self, catalog, ytmusic_mock, status, expected):
        ytmusic_mock.search.side_effect = YTMusicServerError(
            f"Server returned HTTP {status}: Reason.\n"
        )

        with pytest.raises(expected) as exc_info:
            catalog.search_track("q", max_results=5)

        assert exc_info.value.platform == "youtube"

    def test_user_error_about_auth(self, catalog, ytmusic_mock):
        ytmusic_mock.create_playlist.side_effect = YTMusicUserError(
            "Please provide authentication before using this function"
        )

        with pytest.raises(AuthInvalidError):
            catalog.create_playlist("x", "y")

    def test_connection_error(self, catalog, ytmusic_mock):
        ytmusic_mock.search.side_effect = requests.exceptions.Timeout("read timed out")

        with pytest.raises(TransientNetworkError):
            catalog.search_track("q", max_results=5)

    def test_unknown_error(self, catalog, ytmusic_mock):
        ytmusic_mock.search.side_effect = KeyError("contents")

        with pytest.raises(CatalogError) as exc_info:
            catalog.search_track("q", max_results=5)
        assert not isinstance(exc_info.value, TransientNetworkError)

    def test_unusable_auth_file(self, temp_dir):
        auth_file = temp_dir / "broken.json"
        auth_file.write_text("not json", encoding="utf-8")

        with pytest.raises(AuthInvalidError):
            YouTubeMusicCatalog(YouTubeCredentials(auth_file=auth_file))
