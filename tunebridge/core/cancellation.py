"""
Cooperative cancellation for convert and sync calls.

A CancellationToken is created by the caller and handed down to the
Resolution Pipeline, the backoff waits and the orchestrator/reconciler.
It trips either when cancel() is called or when its deadline passes.
Every long-running step checks it and raises OperationCancelled.
"""

import threading
import time

from tunebridge.core.exceptions import OperationCancelled


class CancellationToken:
    """
    Thread-safe cancel flag with an optional deadline.

    Attributes:
        reason: Why cancel() was called, or None.

    Example:
        token = CancellationToken(timeout=60)
        result = orchestrator.convert(playlist_id, spotify, youtube, cancel=token)

        # From another thread (e.g. a signal handler):
        token.cancel("interrupted by user")
    """

    def __init__(self, timeout: float | None = None) -> None:
        """
        Args:
            timeout: Seconds from now after which the token counts as
                     cancelled. None means no deadline.
        """
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self.reason: str | None = None

    def cancel(self, reason: str = "cancelled") -> None:
        """Trip the token. Waiters wake up immediately."""
        if not self._event.is_set():
            self.reason = reason
        self._event.set()

    @property
    def timed_out(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.timed_out

    def remaining(self) -> float | None:
        """Seconds left before the deadline, None if there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        """
        Raise OperationCancelled if the token has tripped.

        An explicit cancel() takes precedence over the deadline when both apply.
        """
        if self._event.is_set():
            raise OperationCancelled(
                f"Operation cancelled: {self.reason}",
                details={"reason": self.reason}
            )
        if self.timed_out:
            raise OperationCancelled(
                "Operation timed out",
                details={"reason": "timeout"},
                timed_out=True
            )

    def wait(self, seconds: float) -> bool:
        """
        Sleep up to `seconds`, waking early on cancel or deadline.

        Returns:
            True if the token is cancelled when the wait ends.
        """
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        self._event.wait(max(0.0, seconds))
        return self.cancelled
