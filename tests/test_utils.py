"""Test utilities and helpers"""

from datetime import timezone

import pytest

from tunebridge.utils import (
    ensure_directory,
    extract_playlist_id,
    format_duration,
    utc_now,
)


class TestExtractPlaylistId:
    """Test playlist ID extraction"""

    @pytest.mark.parametrize("value", [
        "https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M",
        "https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M?si=abc123",
        "https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M/",
        "spotify:playlist:37i9dQZF1DXcBWIGoYBM5M",
        "37i9dQZF1DXcBWIGoYBM5M",
    ])
    def test_spotify(self, value):
        assert extract_playlist_id("spotify", value) == "37i9dQZF1DXcBWIGoYBM5M"

    def test_spotify_track_url_rejected(self):
        with pytest.raises(ValueError):
            extract_playlist_id("spotify", "https://open.spotify.com/track/4uLU6hMCjMI75M1A2tKUQC")

    @pytest.mark.parametrize("value", [
        "https://music.youtube.com/playlist?list=PLabc123",
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ&list=PLabc123",
        "PLabc123",
    ])
    def test_youtube(self, value):
        assert extract_playlist_id("youtube", value) == "PLabc123"

    def test_youtube_without_list(self):
        with pytest.raises(ValueError):
            extract_playlist_id("youtube", "https://music.youtube.com/watch?v=dQw4w9WgXcQ")

    def test_empty_and_unknown_platform(self):
        with pytest.raises(ValueError):
            extract_playlist_id("spotify", "  ")
        with pytest.raises(ValueError):
            extract_playlist_id("deezer", "123")


class TestHelpers:
    """Test helper functions"""

    def test_format_duration(self):
        """Test duration formatting"""
        assert format_duration(90) == "1:30"
        assert format_duration(3661) == "1:01:01"
        assert format_duration(0) == "0:00"
        assert format_duration(-10) == "0:00"
        assert format_duration(None) == "?:??"

    def test_utc_now(self):
        assert utc_now().tzinfo == timezone.utc

    def test_ensure_directory(self, temp_dir):
        path = temp_dir / "a" / "b"
        assert ensure_directory(path) == path
        assert path.is_dir()
        ensure_directory(path)
