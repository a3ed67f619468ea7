"""
Logging configuration for spot-relay.

This module sets up the logging system with multiple outputs:
    - Console: Real-time output with tqdm-compatible formatting
    - log_full.log: Complete log of all events (DEBUG and above)
    - log_errors.log: Only ERROR and CRITICAL level messages
    - distribution_failures.log: Liked songs that could not be downloaded
      or published, with their Spotify URLs

Log File Locations:
    All log files are created in the logs/ subdirectory of the data
    directory. Each process run gets its own timestamped files.

Usage:
    from spot_relay.core.logger import setup_logging, get_logger

    setup_logging(log_dir)  # Call once at startup
    logger = get_logger(__name__)  # Get logger for each module

    logger.info("Starting sync")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


# Log file name prefixes (created in the logs directory)
LOG_FULL_FILENAME = "log_full"
LOG_ERRORS_FILENAME = "log_errors"
DISTRIBUTION_FAILURES_FILENAME = "distribution_failures"

# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that are too chatty at DEBUG/INFO
NOISY_LOGGERS = ("urllib3", "spotipy", "requests")


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
    Custom formatter that adds colors to console output.

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
        timestamp = self.formatTime(record, FILE_DATE_FORMAT)
        message = f"{timestamp} {colored_levelname}: {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to console without breaking tqdm progress bars.

    The distribution pipeline shows a tqdm bar while a batch of liked songs
    is processed. Writing log lines with tqdm.write() keeps them above the
    bar instead of tearing it.
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


class DistributionFailureHandler(logging.Handler):
    """
    Handler that captures failed distributions for the failures report.

    Listens for log records carrying distribution failure fields and writes
    them to distribution_failures.log in a human-readable format:

        Queen - Bohemian Rhapsody (A Night at the Opera)
        https://open.spotify.com/track/xxxxx
        SKIPPED_DOWNLOAD_FAILED: yt-dlp error: Video unavailable

    Looked-up extra fields:
        - 'failed_item_name': Display name of the liked song
        - 'failed_item_url': The Spotify URL
        - 'failed_item_outcome': Outcome name
        - 'failed_item_reason': Why it failed

    Only records containing these fields are written to the report.
    """

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """Open the report file for appending."""
        self.report_file = open(self.report_path, "a", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, "failed_item_name"):
            return

        if self.report_file is None:
            return

        try:
            name = getattr(record, "failed_item_name", "Unknown")
            url = getattr(record, "failed_item_url", "")
            outcome = getattr(record, "failed_item_outcome", "FAILED")
            reason = getattr(record, "failed_item_reason", "")

            self.report_file.write(f"{name}\n")
            self.report_file.write(f"{url}\n")
            self.report_file.write(f"{outcome}: {reason}\n\n")
            self.report_file.flush()
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
    """Filter that only allows ERROR and CRITICAL level records."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(log_dir: Path, console_level: int = logging.INFO) -> None:
    """
    Configure the logging system for the application.

    This function should be called ONCE at application startup, after
    the configuration is loaded but before any other operations.

    Args:
        log_dir: Directory where log files will be created.
        console_level: Minimum level shown on the console.

    Behavior:
        1. Create log_dir if it doesn't exist
        2. Configure root logger level to DEBUG
        3. Console handler (TqdmLoggingHandler, colored) at console_level
        4. Full log file handler at DEBUG
        5. Error-only log file handler
        6. Distribution failures report handler
        7. Cap third-party loggers at WARNING

    Thread Safety:
        NOT thread-safe. Call it from the main thread before starting the
        sync loop thread.
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    full_log_path = log_dir / f"{LOG_FULL_FILENAME}_{timestamp}.log"
    full_handler = logging.FileHandler(full_log_path, mode="w", encoding="utf-8")
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    root_logger.addHandler(full_handler)

    error_log_path = log_dir / f"{LOG_ERRORS_FILENAME}_{timestamp}.log"
    error_handler = logging.FileHandler(error_log_path, mode="w", encoding="utf-8")
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    failures_path = log_dir / f"{DISTRIBUTION_FAILURES_FILENAME}_{timestamp}.log"
    failures_handler = DistributionFailureHandler(failures_path)
    failures_handler.open()
    root_logger.addHandler(failures_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Note:
        Loggers obtained before setup_logging() is called have no handlers
        of their own and propagate to whatever the root logger has.
    """
    return logging.getLogger(name)


def log_distribution_failure(
    logger: logging.Logger,
    item_name: str,
    spotify_url: str,
    outcome: str,
    reason: str
) -> None:
    """
    Log a liked song that could not be distributed.

    Logs an ERROR with extra fields picked up by DistributionFailureHandler.

    Example:
        log_distribution_failure(
            logger,
            item_name="Queen - Bohemian Rhapsody (A Night at the Opera)",
            spotify_url="https://open.spotify.com/track/xxx",
            outcome="FAILED_PUBLISH",
            reason="Telegram API error 413: Request Entity Too Large"
        )
    """
    logger.error(
        f"{outcome}: {item_name} - {reason}",
        extra={
            "failed_item_name": item_name,
            "failed_item_url": spotify_url,
            "failed_item_outcome": outcome,
            "failed_item_reason": reason,
        }
    )


def shutdown_logging() -> None:
    """
    Flush and close all handlers on the root logger.

    Typically called in a finally block at application exit.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except OSError:
            pass
        root_logger.removeHandler(handler)
