"""
Logging configuration for tunebridge.

This module sets up the logging system with multiple outputs:
    - Console: Real-time progress with tqdm-compatible formatting
    - log_full.log: Complete log of all events (DEBUG and above)
    - log_errors.log: Only ERROR and CRITICAL level messages
    - unmatched_tracks.log: Source tracks that were not matched, for manual review

Everything written to screen is also saved to file, then filtered into
specialized files.

Log File Locations:
    All log files are created in output_dir/logs. Each run gets its own
    timestamped set of files.

Usage:
    from tunebridge.core.logger import setup_logging, get_logger

    setup_logging(output_dir)  # Call once at startup
    logger = get_logger(__name__)  # Get logger for each module

    logger.info("Resolving 42 tracks")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(threadName)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Log format for console output (compact, tqdm-friendly)
CONSOLE_LOG_FORMAT = "%(levelname)s: %(message)s"


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that adds colors to console output.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        colored_levelname = f"{color}{record.levelname}{Colors.RESET}"
        return f"{colored_levelname}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to console without breaking progress bars.

    Standard logging to stderr interferes with in-place progress bar
    updates. This handler uses tqdm.write(), which prints above any
    active bar.

    Example:
        handler = TqdmLoggingHandler()
        handler.setFormatter(logging.Formatter(CONSOLE_LOG_FORMAT))
        logger.addHandler(handler)
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


class UnmatchedTrackHandler(logging.Handler):
    """
    Handler that captures unmatched source tracks for the review file.

    Listens for log records carrying unmatched track information and
    writes them to unmatched_tracks.log in a human-readable format:

        Artist Name - Song Title
        https://open.spotify.com/track/xxxxx
        no-match (ambiguous)

        Another Artist - Another Song
        https://open.spotify.com/track/yyyyy
        failed (transient)

    The handler looks for these extra fields:
        - 'unmatched_track_title'
        - 'unmatched_track_artist'
        - 'unmatched_track_url'
        - 'unmatched_outcome': "no-match" or "failed"
        - 'unmatched_reason': NoMatch reason or Failed kind

    Records without 'unmatched_track_title' are ignored.

    Usage:
        log_unmatched_track(logger, resolution)
    """

    def __init__(self, report_path: Path) -> None:
        """
        Args:
            report_path: Path to the unmatched_tracks log file.
                         File will be created/overwritten by open().
        """
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """Open the report file for writing (overwrites existing content)."""
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, "unmatched_track_title"):
            return

        if self.report_file is None:
            return

        try:
            title = getattr(record, "unmatched_track_title", "Unknown")
            artist = getattr(record, "unmatched_track_artist", "Unknown")
            url = getattr(record, "unmatched_track_url", "")
            outcome = getattr(record, "unmatched_outcome", "no-match")
            reason = getattr(record, "unmatched_reason", None)

            # Pipeline workers log concurrently
            self.acquire()
            try:
                self.report_file.write(f"{artist} - {title}\n")
                self.report_file.write(f"{url}\n")
                self.report_file.write(f"{outcome} ({reason})\n\n" if reason else f"{outcome}\n\n")
                self.report_file.flush()
            finally:
                self.release()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """Close the report file handle. Safe to call multiple times."""
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class ErrorOnlyFilter(logging.Filter):
    """
    Filter that only allows ERROR and CRITICAL level records.

    Used by the error log file handler to exclude DEBUG, INFO, and WARNING.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def _file_handler(path: Path) -> logging.FileHandler:
    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    return handler


def setup_logging(output_dir: Path) -> None:
    """
    Route all tunebridge logging to the console and to per-run log files.

    Call once from the main thread at startup, after the configuration is
    loaded. Existing root handlers are dropped. Files are written to
    output_dir/logs with a shared timestamp:

        log_full_{ts}.log          DEBUG and above
        log_errors_{ts}.log        ERROR and above
        unmatched_tracks_{ts}.log  tracks for manual review

    The console shows INFO and above through tqdm.write().
    """
    logs_dir = output_dir / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())

    error_handler = _file_handler(logs_dir / f"log_errors_{stamp}.log")
    error_handler.addFilter(ErrorOnlyFilter())

    unmatched_handler = UnmatchedTrackHandler(logs_dir / f"unmatched_tracks_{stamp}.log")
    unmatched_handler.open()

    for handler in (
        console_handler,
        _file_handler(logs_dir / f"log_full_{stamp}.log"),
        error_handler,
        unmatched_handler,
    ):
        root_logger.addHandler(handler)

    # Third-party HTTP chatter stays in the full log only at WARNING+
    for noisy in ("urllib3", "spotipy", "ytmusicapi"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Note:
        Loggers obtained before setup_logging() is called have no
        handlers of their own and propagate to whatever the root has.
    """
    return logging.getLogger(name)


def format_matched_message(artist: str, title: str, url: str, score: float) -> str:
    """Format a 'Matched' message with colors."""
    return (
        f"{Colors.GREEN}Matched{Colors.RESET}: "
        f"{artist} - {title} -> "
        f"{Colors.CYAN}{url}{Colors.RESET} "
        f"(score: {score:.2f})"
    )


def format_no_match_message(artist: str, title: str, reason: str) -> str:
    """Format a 'No match' warning message with colors."""
    return (
        f"{Colors.YELLOW}No match{Colors.RESET}: "
        f"{artist} - {title} "
        f"({reason})"
    )


def format_failed_message(artist: str, title: str, error_kind: str) -> str:
    """Format a 'Failed' error message with colors."""
    return (
        f"{Colors.RED}Failed{Colors.RESET}: "
        f"{artist} - {title} "
        f"({error_kind})"
    )


def format_summary_message(converted: int, total: int, added: int, removed: int) -> str:
    """
    Format the end-of-run summary line.

    Args:
        converted: Tracks with a Matched outcome.
        total: All source tracks.
        added: Add calls issued on the target playlist.
        removed: Remove calls issued on the target playlist.
    """
    unmatched = total - converted
    return (
        f"Converted {Colors.GREEN}{converted}{Colors.RESET}/{total} "
        f"(unmatched: {Colors.RED if unmatched else Colors.GREEN}{unmatched}{Colors.RESET}, "
        f"added: {added}, removed: {removed})"
    )


def log_unmatched_track(logger: logging.Logger, resolution) -> None:
    """
    Log a source track that ended without a Matched outcome.

    Attaches the extra fields UnmatchedTrackHandler uses to write
    unmatched_tracks.log. NoMatch is logged at WARNING, Failed at ERROR
    so failures also reach log_errors.log.

    Args:
        logger: The logger to use for the message.
        resolution: A Resolution whose outcome is NoMatch or Failed.
    """
    source = resolution.source_track
    outcome = resolution.outcome_name
    reason = resolution.reason

    extra = {
        "unmatched_track_title": source.title,
        "unmatched_track_artist": source.artist,
        "unmatched_track_url": source.url,
        "unmatched_outcome": outcome,
        "unmatched_reason": reason,
    }

    if outcome == "failed":
        logger.error(format_failed_message(source.artist, source.title, reason), extra=extra)
    else:
        logger.warning(format_no_match_message(source.artist, source.title, reason), extra=extra)


def shutdown_logging() -> None:
    """
    Flush, close and detach all root handlers.

    Typically called in a finally block at application exit.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except (OSError, ValueError):
            pass
        root_logger.removeHandler(handler)
