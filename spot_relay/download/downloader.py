"""
Audio downloader for spot-relay.

Downloads the audio of a matched YouTube video with yt-dlp and leaves a
single M4A file, named "{artist} - {title}.m4a", in the directory the
caller provides. The distribution pipeline gives every item its own
scratch directory and removes it after publishing.

Audio Quality:
    - Free YouTube: 128 kbps (maximum available)
    - YouTube Premium (with cookies): 256 kbps
    Quality is auto-detected based on cookie file.

Retry Behavior:
    yt-dlp failures are classified (classify_error) and each class has
    its own retry strategy: 403s and empty files retry quickly, network
    errors back off exponentially, removed videos are never retried.
    When no retry is left, AcquisitionError is raised.

Dependencies:
    - yt-dlp: YouTube download and extraction
    - FFmpeg: Audio conversion (must be installed)

Usage:
    downloader = Downloader(cookie_file=Path("cookies.txt"))
    path = downloader.download(
        "https://music.youtube.com/watch?v=fJ9rUzIMcZQ",
        destination_dir=Path("/tmp/spot-relay/item-xyz"),
        filename="Queen - Bohemian Rhapsody.m4a",
    )
"""

import random
import time
from enum import Enum, auto
from pathlib import Path
from typing import Any, Callable

from yt_dlp import YoutubeDL

from spot_relay.core.exceptions import AcquisitionError
from spot_relay.core.logger import get_logger
from spot_relay.utils import ensure_directory

logger = get_logger(__name__)


# =============================================================================
# Retry Configuration
# =============================================================================

MAX_RETRIES = 3
BASE_DELAY = 1.5  # seconds
MAX_DELAY = 15.0  # seconds
JITTER_FACTOR = 0.3

AUDIO_EXTENSIONS = (".m4a", ".webm", ".opus", ".mp3", ".mp4")
PARTIAL_EXTENSIONS = (".part", ".ytdl") + AUDIO_EXTENSIONS


class YtDlpSilentLogger:
    """
    Logger for yt-dlp that suppresses output during retry attempts.

    yt-dlp ignores quiet=True for certain errors and prints directly to
    stderr. This logger captures the last error so it can be classified.
    """

    def __init__(self, show_errors: bool = False):
        self.show_errors = show_errors
        self.last_error: str | None = None

    def debug(self, msg: str) -> None:
        pass

    def info(self, msg: str) -> None:
        pass

    def warning(self, msg: str) -> None:
        pass

    def error(self, msg: str) -> None:
        self.last_error = msg
        if self.show_errors:
            logger.error(msg)


class ErrorType(Enum):
    """Classification of download errors for retry strategy."""
    FORBIDDEN = auto()          # 403 / no data - retry with backoff
    RATE_LIMITED = auto()       # 429 - one long retry
    FORMAT_UNAVAILABLE = auto() # Format not available - retry, yt-dlp tries other clients
    AGE_RESTRICTED = auto()     # Requires sign-in - needs cookies
    NETWORK_ERROR = auto()      # Connection issues - retry with backoff
    VIDEO_UNAVAILABLE = auto()  # Video removed/private - no retry
    EMPTY_FILE = auto()         # Downloaded file is empty - retry with backoff
    UNKNOWN = auto()            # Other errors - limited retry


def classify_error(error_message: str) -> ErrorType:
    """
    Classify a yt-dlp error message to determine retry strategy.

    Args:
        error_message: The error message from yt-dlp.

    Returns:
        ErrorType indicating which retry strategy to use.
    """
    msg = error_message.lower()

    # Rate limiting first: YouTube's rate limit message also contains
    # "video unavailable"
    if any(x in msg for x in ["rate-limited", "rate limit", "429", "too many requests", "try again later"]):
        return ErrorType.RATE_LIMITED

    # 403 or "no data blocks" (masked 403)
    if "403" in msg or "forbidden" in msg or "did not get any data" in msg:
        return ErrorType.FORBIDDEN

    if "format" in msg and ("not available" in msg or "unavailable" in msg):
        return ErrorType.FORMAT_UNAVAILABLE

    if "sign in" in msg or "confirm your age" in msg or "age-restricted" in msg:
        return ErrorType.AGE_RESTRICTED

    if any(x in msg for x in ["connection", "timeout", "timed out", "network", "urlopen error"]):
        return ErrorType.NETWORK_ERROR

    if any(x in msg for x in ["video unavailable", "private video", "removed", "deleted"]):
        return ErrorType.VIDEO_UNAVAILABLE

    if "file is empty" in msg or "empty file" in msg:
        return ErrorType.EMPTY_FILE

    return ErrorType.UNKNOWN


def calculate_backoff(attempt: int, base_delay: float = BASE_DELAY) -> float:
    """
    Exponential backoff delay with jitter, in seconds.

    Args:
        attempt: Current attempt number (0-indexed).
        base_delay: Base delay in seconds.
    """
    delay = min(base_delay * (2 ** attempt), MAX_DELAY)
    jitter = delay * JITTER_FACTOR * (2 * random.random() - 1)
    return max(0.5, delay + jitter)


class Downloader:
    """
    Downloads YouTube audio as M4A into a caller-provided directory.

    Attributes:
        _cookie_file: Optional cookies.txt for YouTube Premium quality.
        _sleep: Function used to wait between retries.
    """

    def __init__(
        self,
        cookie_file: Path | None = None,
        sleep: Callable[[float], Any] = time.sleep
    ) -> None:
        """
        Initialize the Downloader.

        Args:
            cookie_file: Optional path to cookies.txt file for
                        YouTube Premium quality (256 kbps).
                        If None or missing, downloads at 128 kbps.
            sleep: Replaceable wait function.
        """
        self._cookie_file = cookie_file
        self._sleep = sleep

        if self._cookie_file is not None:
            if not self._cookie_file.exists():
                logger.warning(
                    f"Cookie file not found: {self._cookie_file}. "
                    "Downloads will be limited to 128 kbps."
                )
                self._cookie_file = None
            else:
                logger.debug(f"Using cookies for premium quality: {self._cookie_file}")

    def download(self, youtube_url: str, destination_dir: Path, filename: str) -> Path:
        """
        Download one video's audio and rename it to `filename`.

        Args:
            youtube_url: YouTube (Music) watch URL.
            destination_dir: Directory for the download; created if missing.
            filename: Final file name, e.g. "Queen - Bohemian Rhapsody.m4a".

        Returns:
            Path to the downloaded file inside destination_dir.

        Raises:
            AcquisitionError: If the download fails after all retries, or
                             the file produced is empty.
        """
        ensure_directory(destination_dir)
        downloaded = self._download_audio(youtube_url, destination_dir)

        if downloaded.stat().st_size == 0:
            raise AcquisitionError(
                "Downloaded file is empty",
                details={"youtube_url": youtube_url, "file": str(downloaded)}
            )

        target = destination_dir / filename
        if downloaded.suffix != target.suffix:
            target = target.with_suffix(downloaded.suffix)
        if downloaded != target:
            downloaded.replace(target)

        logger.debug(f"Downloaded {youtube_url} -> {target.name}")
        return target

    def _download_audio(self, youtube_url: str, output_path: Path) -> Path:
        """
        Run yt-dlp with retry according to the classified error.

        Raises:
            AcquisitionError: If download fails after all retries.
        """
        output_template = str(output_path / "%(id)s.%(ext)s")
        last_error: str | None = None

        for attempt in range(MAX_RETRIES):
            is_last_attempt = (attempt == MAX_RETRIES - 1)
            yt_logger = YtDlpSilentLogger(show_errors=is_last_attempt)

            try:
                options = self._get_yt_dlp_options(output_template, yt_logger=yt_logger)
                with YoutubeDL(options) as ydl:
                    info = ydl.extract_info(youtube_url, download=True)
                    if info is None:
                        raise AcquisitionError("yt-dlp returned no info")
                    return self._find_downloaded_file(output_path, info.get("id", "unknown"))

            except Exception as e:
                error_msg = str(e)
                if yt_logger.last_error and yt_logger.last_error not in error_msg:
                    error_msg = f"{error_msg} | {yt_logger.last_error}"

                last_error = error_msg
                error_type = classify_error(error_msg)
                should_retry, delay = self._get_retry_strategy(error_type, attempt)

                if not should_retry:
                    raise AcquisitionError(
                        f"yt-dlp error: {error_msg}",
                        details={"youtube_url": youtube_url, "error_type": error_type.name}
                    ) from e

                if attempt < MAX_RETRIES - 1:
                    logger.debug(f"Retry {attempt + 1}/{MAX_RETRIES} after {delay:.1f}s ({error_type.name})")
                    self._sleep(delay)
                    self._cleanup_partial_downloads(output_path)

        raise AcquisitionError(
            f"yt-dlp error: {last_error}",
            details={"youtube_url": youtube_url, "attempts": MAX_RETRIES}
        )

    def _get_retry_strategy(
        self,
        error_type: ErrorType,
        attempt: int
    ) -> tuple[bool, float]:
        """
        Determine retry strategy based on error type.

        Returns:
            Tuple of (should_retry, delay_seconds)
        """
        if error_type in (ErrorType.FORBIDDEN, ErrorType.EMPTY_FILE):
            return (True, 1.5 + random.random())

        if error_type == ErrorType.RATE_LIMITED:
            # YouTube rate limiting can last up to an hour; one retry only
            if attempt == 0:
                logger.warning("YouTube rate limiting detected, retrying once in 30s")
                return (True, 30.0)
            return (False, 0)

        if error_type == ErrorType.FORMAT_UNAVAILABLE:
            return (True, 1.0 + random.random())

        if error_type == ErrorType.AGE_RESTRICTED:
            if self._cookie_file is not None and attempt == 0:
                logger.warning("Age-restricted video - cookies may be expired")
                return (True, 1.0)
            logger.warning("Age-restricted video requires cookies. Set download.cookie_file")
            return (False, 0)

        if error_type == ErrorType.NETWORK_ERROR:
            return (True, calculate_backoff(attempt, base_delay=1.5))

        if error_type == ErrorType.VIDEO_UNAVAILABLE:
            return (False, 0)

        # UNKNOWN: one retry with short delay
        if attempt == 0:
            return (True, 1.5)
        return (False, 0)

    def _find_downloaded_file(self, output_path: Path, video_id: str) -> Path:
        """
        Find the downloaded audio file in the output directory.

        Raises:
            AcquisitionError: If no audio file is found.
        """
        for ext in AUDIO_EXTENSIONS:
            candidate = output_path / f"{video_id}{ext}"
            if candidate.exists():
                return candidate

        for f in output_path.iterdir():
            if f.is_file() and f.suffix in AUDIO_EXTENSIONS:
                return f

        raise AcquisitionError(f"Downloaded file not found in {output_path}")

    def _cleanup_partial_downloads(self, output_path: Path) -> None:
        """Remove partial/incomplete download files before retry."""
        for f in output_path.iterdir():
            if f.is_file() and f.suffix in PARTIAL_EXTENSIONS:
                try:
                    f.unlink()
                except OSError as e:
                    logger.debug(f"Could not remove partial download {f}: {e}")

    def _get_yt_dlp_options(
        self,
        output_template: str,
        yt_logger: YtDlpSilentLogger | None = None
    ) -> dict[str, Any]:
        """
        Build yt-dlp options dictionary.

        - "bestaudio" format, yt-dlp picks the best available
        - extractor_args to try multiple YouTube player clients
        - FFmpeg postprocessor converts to m4a
        """
        options: dict[str, Any] = {
            "format": "bestaudio",
            "outtmpl": output_template,
            "quiet": True,
            "no_warnings": True,
            "noprogress": True,
            "encoding": "UTF-8",
            "retries": 3,
            "fragment_retries": 3,
            "noplaylist": True,
            # Fixes "format not available" on some videos
            "extractor_args": {
                "youtube": {
                    "player_client": ["web", "android", "default"],
                }
            },
            "postprocessors": [
                {
                    "key": "FFmpegExtractAudio",
                    "preferredcodec": "m4a",
                    "preferredquality": "0",
                }
            ],
            "keepvideo": False,
        }

        if yt_logger is not None:
            options["logger"] = yt_logger

        if self._cookie_file is not None:
            options["cookiefile"] = str(self._cookie_file)

        return options
