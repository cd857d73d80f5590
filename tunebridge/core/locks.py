"""
Per-playlist mutual exclusion for convert and sync.

Two concurrent runs on the same source playlist could both add the same
target track or remove it twice, so each run holds an exclusive lock
keyed by source_playlist_id. Runs on different playlists never block
each other. Read-only access (loading a mapping for display) does not lock.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from tunebridge.core.exceptions import PlaylistBusyError


class PlaylistLocks:
    """
    Registry of one threading.Lock per source playlist ID.

    Example:
        locks = PlaylistLocks()
        with locks.hold("37i9dQZF1DXcBWIGoYBM5M"):
            ...  # exclusive access to this mapping
    """

    def __init__(self) -> None:
        self._registry_lock = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, playlist_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(playlist_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[playlist_id] = lock
            return lock

    def is_held(self, playlist_id: str) -> bool:
        return self._lock_for(playlist_id).locked()

    @contextmanager
    def hold(self, playlist_id: str, timeout: float | None = None) -> Iterator[None]:
        """
        Acquire the playlist's lock for the duration of the with-block.

        Args:
            playlist_id: Source playlist ID.
            timeout: Seconds to wait for the lock. None waits forever.

        Raises:
            PlaylistBusyError: If the lock is not acquired within timeout.
        """
        lock = self._lock_for(playlist_id)
        acquired = lock.acquire(timeout=timeout) if timeout is not None else lock.acquire()
        if not acquired:
            raise PlaylistBusyError(
                f"Playlist {playlist_id} is busy with another convert/sync",
                details={"playlist_id": playlist_id}
            )
        try:
            yield
        finally:
            lock.release()
