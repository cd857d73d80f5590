"""
Retry with exponential backoff for transient catalog failures.

Only TransientNetworkError is retried. AuthInvalidError, NotFoundError
and anything else propagate on the first occurrence.

Delays come from ResolutionConfig.backoff_delay(): with the defaults a
call is attempted 4 times with waits of 0.5s, 1.0s and 2.0s in between
(4.0s cap). There is no jitter, so waits are reproducible in tests.
"""

from collections.abc import Callable
from typing import TypeVar

from tunebridge.core.cancellation import CancellationToken
from tunebridge.core.config import ResolutionConfig
from tunebridge.core.exceptions import TransientNetworkError
from tunebridge.core.logger import get_logger


logger = get_logger(__name__)

T = TypeVar("T")

# sleep(seconds, token) -> None. Must return early when the token trips.
Sleeper = Callable[[float, CancellationToken], None]


def cancellable_sleep(seconds: float, cancel: CancellationToken) -> None:
    """Default Sleeper: waits on the token so cancel() cuts the wait short."""
    cancel.wait(seconds)


def call_with_retries(
    func: Callable[[], T],
    config: ResolutionConfig,
    cancel: CancellationToken,
    sleep: Sleeper = cancellable_sleep,
    description: str = "catalog call"
) -> T:
    """
    Call func, retrying TransientNetworkError with exponential backoff.

    Args:
        func: Zero-argument callable performing one attempt.
        config: Retry count and backoff parameters.
        cancel: Checked before every attempt and after every wait.
        sleep: Backoff wait implementation (injectable for tests).
        description: Text used in log messages.

    Returns:
        func's return value from the first successful attempt.

    Raises:
        TransientNetworkError: If every attempt failed transiently.
        OperationCancelled: If cancel trips before an attempt.
        Any other exception from func, unchanged, on first occurrence.
    """
    attempts = config.max_retries + 1

    for attempt in range(1, attempts + 1):
        cancel.raise_if_cancelled()
        try:
            return func()
        except TransientNetworkError as e:
            if attempt == attempts:
                logger.warning(f"{description} failed after {attempts} attempts (transient): {e}")
                raise

            delay = config.backoff_delay(attempt)
            logger.debug(
                f"{description} attempt {attempt}/{attempts} failed: {e}. "
                f"Retrying in {delay:.1f}s"
            )
            sleep(delay, cancel)

    # Unreachable: the loop either returns or raises
    raise AssertionError("retry loop exited without result")
