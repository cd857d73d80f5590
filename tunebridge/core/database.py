"""
Thread-safe SQLite mapping store for tunebridge.

One row per source playlist in `mappings`, and one ordered row per
source track in `resolutions`. Tracks are stored as JSON blobs because
they are only ever read back whole.

Schema:
    mappings:     Source/target playlist link (source_playlist_id is the key)
    resolutions:  (source_playlist_id, position) -> source track, outcome,
                  target track, score, reason, attempted_at

Both load_mapping and save_mapping are atomic single-record operations:
save_mapping upserts the mapping row and replaces all of its resolutions
inside one transaction, so readers never observe a half-written mapping.

Usage:
    store = MappingStore(output_dir / "tunebridge.db")

    mapping = store.load_mapping(playlist_id)
    if mapping is None:
        ...
    store.save_mapping(mapping)
"""

import json
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from tunebridge.core.exceptions import DatabaseError
from tunebridge.core.models import (
    ConversionStats,
    Failed,
    Matched,
    NoMatch,
    PlaylistMapping,
    Resolution,
    Track,
)


DATABASE_VERSION = 1

OUTCOME_MATCHED = "matched"
OUTCOME_NO_MATCH = "no-match"
OUTCOME_FAILED = "failed"


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS mappings (
    source_playlist_id TEXT PRIMARY KEY,
    source_platform TEXT NOT NULL,
    target_platform TEXT NOT NULL,
    target_playlist_id TEXT NOT NULL,
    source_name TEXT,
    created_at TEXT NOT NULL,
    last_synced_at TEXT
);

CREATE TABLE IF NOT EXISTS resolutions (
    source_playlist_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    source_track_id TEXT NOT NULL,
    source_track TEXT NOT NULL,  -- JSON object
    outcome TEXT NOT NULL,       -- matched | no-match | failed
    target_track TEXT,           -- JSON object, matched only
    score REAL,
    reason TEXT,                 -- NoMatch reason or Failed kind
    attempted_at TEXT NOT NULL,
    PRIMARY KEY (source_playlist_id, position),
    FOREIGN KEY (source_playlist_id) REFERENCES mappings(source_playlist_id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_resolutions_outcome ON resolutions(outcome);
"""


class MappingStore:
    """
    Thread-safe SQLite store for PlaylistMapping records.

    Uses a single persistent connection with thread locking for safety.
    All public methods acquire self._lock before executing.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

        if not db_path.parent.exists():
            raise DatabaseError(
                f"Parent directory does not exist: {db_path.parent}",
                details={"path": str(db_path.parent)}
            )

        try:
            self._init_database()
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to initialize database: {e}",
                details={"path": str(db_path)}
            ) from e

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """
        Get the persistent database connection.

        The connection is created once and reused for all operations.
        """
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                timeout=30.0,
                check_same_thread=False  # We handle thread safety with _lock
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.execute("PRAGMA journal_mode = WAL")
        yield self._conn

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[sqlite3.Connection]:
        """
        Lock, run, commit; roll back and wrap sqlite3 errors on failure.

        Args:
            operation: Short name used in the DatabaseError message.
        """
        with self._lock:
            with self._get_connection() as conn:
                try:
                    yield conn
                    conn.commit()
                except sqlite3.Error as e:
                    conn.rollback()
                    raise DatabaseError(
                        f"Database {operation} failed: {e}",
                        details={"path": str(self.db_path), "original_error": str(e)}
                    ) from e

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __del__(self) -> None:
        if hasattr(self, "_conn") and self._conn is not None:
            try:
                self._conn.close()
            except sqlite3.Error:
                pass

    def _init_database(self) -> None:
        with self._get_connection() as conn:
            conn.executescript(_SCHEMA_SQL)

            cursor = conn.execute("SELECT version FROM schema_version LIMIT 1")
            row = cursor.fetchone()

            if row is None:
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (DATABASE_VERSION,))
            elif row[0] != DATABASE_VERSION:
                raise DatabaseError(
                    f"Database version mismatch: expected {DATABASE_VERSION}, got {row[0]}",
                    details={"expected": DATABASE_VERSION, "actual": row[0]}
                )
            conn.commit()

    # =========================================================================
    # Row conversion
    # =========================================================================

    @staticmethod
    def _serialize_resolution(
        source_playlist_id: str, position: int, resolution: Resolution
    ) -> tuple:
        outcome = resolution.outcome
        target_track = None
        score = None
        reason = None

        if isinstance(outcome, Matched):
            kind = OUTCOME_MATCHED
            target_track = json.dumps(outcome.target_track.to_dict())
            score = outcome.score
        elif isinstance(outcome, NoMatch):
            kind = OUTCOME_NO_MATCH
            reason = outcome.reason
        else:
            kind = OUTCOME_FAILED
            reason = outcome.error_kind

        return (
            source_playlist_id,
            position,
            resolution.source_track.track_id,
            json.dumps(resolution.source_track.to_dict()),
            kind,
            target_track,
            score,
            reason,
            resolution.attempted_at.isoformat(),
        )

    @staticmethod
    def _deserialize_resolution(row: sqlite3.Row) -> Resolution:
        try:
            source_track = Track.from_dict(json.loads(row["source_track"]))

            if row["outcome"] == OUTCOME_MATCHED:
                outcome = Matched(
                    target_track=Track.from_dict(json.loads(row["target_track"])),
                    score=row["score"]
                )
            elif row["outcome"] == OUTCOME_NO_MATCH:
                outcome = NoMatch(row["reason"])
            elif row["outcome"] == OUTCOME_FAILED:
                outcome = Failed(row["reason"])
            else:
                raise ValueError(f"unknown outcome {row['outcome']!r}")

            return Resolution(
                source_track=source_track,
                outcome=outcome,
                attempted_at=datetime.fromisoformat(row["attempted_at"])
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise DatabaseError(
                f"Corrupted resolution row: {e}",
                details={
                    "source_playlist_id": row["source_playlist_id"],
                    "position": row["position"],
                }
            ) from e

    @staticmethod
    def _deserialize_mapping(row: sqlite3.Row, resolutions: list[Resolution]) -> PlaylistMapping:
        last_synced = row["last_synced_at"]
        return PlaylistMapping(
            source_playlist_id=row["source_playlist_id"],
            source_platform=row["source_platform"],
            target_playlist_id=row["target_playlist_id"],
            target_platform=row["target_platform"],
            source_name=row["source_name"] or "",
            resolutions=resolutions,
            created_at=datetime.fromisoformat(row["created_at"]),
            last_synced_at=datetime.fromisoformat(last_synced) if last_synced else None,
        )

    def _load_resolutions(
        self, conn: sqlite3.Connection, source_playlist_id: str
    ) -> list[Resolution]:
        cursor = conn.execute(
            "SELECT * FROM resolutions WHERE source_playlist_id = ? ORDER BY position",
            (source_playlist_id,)
        )
        return [self._deserialize_resolution(row) for row in cursor.fetchall()]

    # =========================================================================
    # Mapping Operations
    # =========================================================================

    def load_mapping(self, source_playlist_id: str) -> PlaylistMapping | None:
        """
        Load a mapping with its resolutions in stored order.

        Returns:
            The mapping, or None if the source playlist was never converted.

        Raises:
            DatabaseError: On SQLite failure or an unreadable row.
        """
        with self._transaction("read") as conn:
            cursor = conn.execute(
                "SELECT * FROM mappings WHERE source_playlist_id = ?",
                (source_playlist_id,)
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return self._deserialize_mapping(row, self._load_resolutions(conn, source_playlist_id))

    def save_mapping(self, mapping: PlaylistMapping) -> None:
        """
        Upsert a mapping and replace its resolutions atomically.

        Resolution positions are the list indexes, so the stored order is
        exactly mapping.resolutions.

        Raises:
            DatabaseError: On SQLite failure. Nothing is written in that case.
        """
        with self._transaction("write") as conn:
            conn.execute("""
                INSERT INTO mappings (
                    source_playlist_id, source_platform, target_platform,
                    target_playlist_id, source_name, created_at, last_synced_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(source_playlist_id) DO UPDATE SET
                    source_platform = excluded.source_platform,
                    target_platform = excluded.target_platform,
                    target_playlist_id = excluded.target_playlist_id,
                    source_name = excluded.source_name,
                    last_synced_at = excluded.last_synced_at
            """, (
                mapping.source_playlist_id,
                mapping.source_platform,
                mapping.target_platform,
                mapping.target_playlist_id,
                mapping.source_name,
                mapping.created_at.isoformat(),
                mapping.last_synced_at.isoformat() if mapping.last_synced_at else None,
            ))

            conn.execute(
                "DELETE FROM resolutions WHERE source_playlist_id = ?",
                (mapping.source_playlist_id,)
            )
            conn.executemany(
                """
                INSERT INTO resolutions (
                    source_playlist_id, position, source_track_id, source_track,
                    outcome, target_track, score, reason, attempted_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    self._serialize_resolution(mapping.source_playlist_id, position, resolution)
                    for position, resolution in enumerate(mapping.resolutions)
                ]
            )

    def mapping_exists(self, source_playlist_id: str) -> bool:
        with self._transaction("read") as conn:
            cursor = conn.execute(
                "SELECT 1 FROM mappings WHERE source_playlist_id = ?", (source_playlist_id,)
            )
            return cursor.fetchone() is not None

    def list_mappings(self) -> list[PlaylistMapping]:
        """All stored mappings, oldest first, with their resolutions."""
        with self._transaction("read") as conn:
            rows = conn.execute("SELECT * FROM mappings ORDER BY created_at").fetchall()
            return [
                self._deserialize_mapping(row, self._load_resolutions(conn, row["source_playlist_id"]))
                for row in rows
            ]

    def delete_mapping(self, source_playlist_id: str) -> bool:
        """
        Delete a mapping and its resolutions.

        The target playlist itself is left untouched on its platform.

        Returns:
            True if the mapping existed and was deleted, False otherwise.
        """
        with self._transaction("delete") as conn:
            cursor = conn.execute(
                "DELETE FROM mappings WHERE source_playlist_id = ?", (source_playlist_id,)
            )
            return cursor.rowcount > 0

    def get_stats(self) -> ConversionStats:
        """Aggregate counts across all stored mappings."""
        with self._transaction("read") as conn:
            playlists = conn.execute("SELECT COUNT(*) FROM mappings").fetchone()[0]
            row = conn.execute(f"""
                SELECT
                    COUNT(*) AS total,
                    COALESCE(SUM(CASE WHEN outcome = '{OUTCOME_MATCHED}' THEN 1 ELSE 0 END), 0) AS matched
                FROM resolutions
            """).fetchone()

        return ConversionStats(
            playlists=playlists,
            total_tracks=row["total"],
            matched_tracks=row["matched"],
            pending_tracks=row["total"] - row["matched"],
        )
