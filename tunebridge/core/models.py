"""
Data models shared by every tunebridge component.

All models are plain dataclasses. Tracks, outcomes and resolutions are
frozen so they can be passed between worker threads without copying.

Model overview:
    Track            - A song on one platform, built from raw API JSON at
                       the catalog client boundary
    CandidateMatch   - A target-platform search result with its score
    Matched          - Outcome: accepted best candidate
    NoMatch          - Outcome: searched, but nothing trustworthy was found
    Failed           - Outcome: the search itself could not complete
    Resolution       - One source track plus its outcome
    PlaylistMapping  - Persisted link between a source and a target playlist
    ConversionResult - Caller-facing summary of a convert or sync run
    ConversionStats  - Aggregate counters across all stored mappings

Tracks on different platforms are never compared by identity: the only
link between them is a Resolution.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Union


# Platform identifiers
SPOTIFY = "spotify"
YOUTUBE = "youtube"
PLATFORMS = (SPOTIFY, YOUTUBE)

# NoMatch reasons
REASON_AMBIGUOUS = "ambiguous"
REASON_LOW_CONFIDENCE = "low-confidence"
REASON_NO_RESULTS = "no-results"
NO_MATCH_REASONS = (REASON_AMBIGUOUS, REASON_LOW_CONFIDENCE, REASON_NO_RESULTS)

# Failed kinds
FAILED_TRANSIENT = "transient"
FAILED_NOT_FOUND = "not-found"
FAILED_ERROR = "error"
FAILED_KINDS = (FAILED_TRANSIENT, FAILED_NOT_FOUND, FAILED_ERROR)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Track:
    """
    A track on a single platform.

    Attributes:
        platform: "spotify" or "youtube".
        track_id: Platform-native identifier (Spotify track ID, YouTube videoId).
        title: Track title as reported by the platform.
        artist: Primary artist name.
        artists: All artist names. The first entry is the primary artist.
        album: Album name, or None if the platform does not report one.
        duration_seconds: Length in whole seconds, or None if unknown.
        url: Public URL of the track on its platform.
    """
    platform: str
    track_id: str
    title: str
    artist: str
    artists: tuple[str, ...] = ()
    album: str | None = None
    duration_seconds: int | None = None
    url: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON storage."""
        return {
            "platform": self.platform,
            "track_id": self.track_id,
            "title": self.title,
            "artist": self.artist,
            "artists": list(self.artists),
            "album": self.album,
            "duration_seconds": self.duration_seconds,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Track":
        """Rebuild a Track serialized by to_dict()."""
        return cls(
            platform=data["platform"],
            track_id=data["track_id"],
            title=data["title"],
            artist=data["artist"],
            artists=tuple(data.get("artists") or ()),
            album=data.get("album"),
            duration_seconds=data.get("duration_seconds"),
            url=data.get("url", ""),
        )

    def display(self) -> str:
        """'Artist - Title' for log lines."""
        return f"{self.artist} - {self.title}"


@dataclass(frozen=True)
class CandidateMatch:
    """A search result paired with its match score in [0, 1]."""
    track: Track
    score: float


@dataclass(frozen=True)
class Matched:
    """Outcome: the best candidate passed both the accept and margin rules."""
    target_track: Track
    score: float


@dataclass(frozen=True)
class NoMatch:
    """
    Outcome: the search completed but no candidate was trustworthy.

    Attributes:
        reason: "ambiguous" (runner-up too close), "low-confidence"
                (best score below the accept threshold) or "no-results".
    """
    reason: str

    def __post_init__(self) -> None:
        if self.reason not in NO_MATCH_REASONS:
            raise ValueError(f"Unknown NoMatch reason: {self.reason!r}")


@dataclass(frozen=True)
class Failed:
    """
    Outcome: the search could not complete.

    Attributes:
        error_kind: "transient" (retries exhausted), "not-found" or "error"
                    (unexpected exception, see the logs).
    """
    error_kind: str

    def __post_init__(self) -> None:
        if self.error_kind not in FAILED_KINDS:
            raise ValueError(f"Unknown Failed kind: {self.error_kind!r}")


Outcome = Union[Matched, NoMatch, Failed]


@dataclass(frozen=True)
class Resolution:
    """
    The result of resolving one source track against the target catalog.

    Equality compares source_track and outcome only, so two runs that
    reach the same decision produce equal resolutions.
    """
    source_track: Track
    outcome: Outcome
    attempted_at: datetime = field(compare=False, default_factory=_utc_now)

    @property
    def is_matched(self) -> bool:
        return isinstance(self.outcome, Matched)

    @property
    def target_track_id(self) -> str | None:
        """Target track ID for Matched outcomes, None otherwise."""
        if isinstance(self.outcome, Matched):
            return self.outcome.target_track.track_id
        return None

    @property
    def outcome_name(self) -> str:
        """'matched', 'no-match' or 'failed'."""
        if isinstance(self.outcome, Matched):
            return "matched"
        if isinstance(self.outcome, NoMatch):
            return "no-match"
        return "failed"

    @property
    def reason(self) -> str | None:
        """NoMatch reason or Failed kind; None for Matched."""
        if isinstance(self.outcome, NoMatch):
            return self.outcome.reason
        if isinstance(self.outcome, Failed):
            return self.outcome.error_kind
        return None


@dataclass
class PlaylistMapping:
    """
    Persisted link between a source playlist and the target playlist
    created from it.

    Attributes:
        source_playlist_id: Primary key. One mapping per source playlist.
        source_platform: Platform of the source playlist.
        target_playlist_id: Playlist created on the target platform.
        target_platform: Platform of the target playlist.
        source_name: Source playlist name at conversion time.
        resolutions: One entry per source track, in source order as of the
                     last successful convert/sync.
        created_at: When the mapping was first saved.
        last_synced_at: When the last successful sync finished, None if never.
    """
    source_playlist_id: str
    source_platform: str
    target_playlist_id: str
    target_platform: str
    source_name: str = ""
    resolutions: list[Resolution] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utc_now)
    last_synced_at: datetime | None = None

    @property
    def matched_count(self) -> int:
        return sum(1 for r in self.resolutions if r.is_matched)

    @property
    def pending_count(self) -> int:
        """Tracks without a Matched outcome (retried on the next sync)."""
        return len(self.resolutions) - self.matched_count


@dataclass
class ConversionResult:
    """
    Caller-facing summary of a convert or sync run.

    Attributes:
        converted_songs: Number of source tracks with a Matched outcome.
        failed_songs: Source track IDs of every non-matched track.
        unmatched: Per-track details (id, title, artist, outcome, reason)
                   for every non-matched track.
        success: Always True on a result returned by convert or sync,
                 since run-level failures raise instead. Non-matched
                 tracks do not make a run unsuccessful. The field keeps
                 the JSON shape of `sync --all` reports, where a playlist
                 that failed to sync is listed with success false.
        new_playlist_id: Target playlist ID.
        message: Human-readable summary line.
        added_tracks: Target tracks added during this run.
        removed_tracks: Target tracks removed during this run.
    """
    converted_songs: int = 0
    failed_songs: list[str] = field(default_factory=list)
    unmatched: list[dict[str, str | None]] = field(default_factory=list)
    success: bool = True
    new_playlist_id: str = ""
    message: str = ""
    added_tracks: int = 0
    removed_tracks: int = 0

    @classmethod
    def from_mapping(
        cls,
        mapping: PlaylistMapping,
        message: str = "",
        added_tracks: int = 0,
        removed_tracks: int = 0
    ) -> "ConversionResult":
        """
        Recompute the result from a mapping's resolutions.

        Args:
            mapping: The mapping as persisted at the end of a run.
            message: Summary line. Defaults to a count-based message.
            added_tracks: Add calls issued during the run.
            removed_tracks: Remove calls issued during the run.
        """
        failed_songs = []
        unmatched = []
        for resolution in mapping.resolutions:
            if resolution.is_matched:
                continue
            source = resolution.source_track
            failed_songs.append(source.track_id)
            unmatched.append({
                "track_id": source.track_id,
                "title": source.title,
                "artist": source.artist,
                "outcome": resolution.outcome_name,
                "reason": resolution.reason,
            })

        converted = mapping.matched_count
        if not message:
            message = (
                f"Converted {converted}/{len(mapping.resolutions)} tracks "
                f"to {mapping.target_platform}"
            )

        return cls(
            converted_songs=converted,
            failed_songs=failed_songs,
            unmatched=unmatched,
            success=True,
            new_playlist_id=mapping.target_playlist_id,
            message=message,
            added_tracks=added_tracks,
            removed_tracks=removed_tracks,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dictionary with snake_case keys."""
        return {
            "converted_songs": self.converted_songs,
            "failed_songs": list(self.failed_songs),
            "unmatched": [dict(entry) for entry in self.unmatched],
            "success": self.success,
            "new_playlist_id": self.new_playlist_id,
            "message": self.message,
            "added_tracks": self.added_tracks,
            "removed_tracks": self.removed_tracks,
        }


@dataclass(frozen=True)
class ConversionStats:
    """
    Aggregate statistics across all stored mappings.

    Attributes:
        playlists: Number of stored mappings.
        total_tracks: Resolutions across all mappings.
        matched_tracks: Resolutions with a Matched outcome.
        pending_tracks: Resolutions retried on the next sync.
    """
    playlists: int = 0
    total_tracks: int = 0
    matched_tracks: int = 0
    pending_tracks: int = 0

    @property
    def match_rate(self) -> float:
        """Matched share in [0, 1]. Zero when nothing is stored."""
        if self.total_tracks == 0:
            return 0.0
        return self.matched_tracks / self.total_tracks
