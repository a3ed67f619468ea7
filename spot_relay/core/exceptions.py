"""
Exception classes for spot-relay.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus a details dictionary,
and the hierarchy mirrors where each failure is contained.

Exception Hierarchy:
    SpotRelayError (base)
        ConfigError - Configuration issues (fatal at startup)
        AuthError - Spotify authorization issues (fails one sync cycle)
        FetchError - Transient Spotify listing issues (retried by the fetcher)
        AcquisitionError - Audio resolve/download issues (skips one item)
        PublishError - Telegram send issues (skips one item, file kept)
            TelegramError - Other Telegram Bot API failures
        LedgerError - Ledger file issues
"""

from enum import Enum


class SpotRelayError(Exception):
    """
    Base exception for all spot-relay errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch all spot-relay errors with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g., track id, URL).

    Example:
        try:
            # some operation
        except SpotRelayError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'track_id': Spotify track ID involved in the error
                     - 'url': URL that caused the error
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(SpotRelayError):
    """
    Raised when there's an issue with the configuration.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - Required environment variable missing (SPOTIFY_CLIENT_ID, TG_BOT_KEY, ...)
        - config.yaml has invalid YAML syntax
        - Invalid field values (e.g., non-numeric admin id, negative interval)

    Example:
        raise ConfigError(
            "'telegram.admin_id' must be an integer",
            details={'field': 'telegram.admin_id', 'value': 'abc'}
        )
    """
    pass


class AuthReason(Enum):
    """Why a Spotify authorization attempt failed."""
    NO_TOKEN = "no_token"    # Operator never ran /auth + /code
    REJECTED = "rejected"    # Spotify rejected the code or refresh token


class AuthError(SpotRelayError):
    """
    Raised when Spotify authorization is missing or rejected.

    Fails the current sync cycle. The loop backs off and retries, so an
    operator can fix the situation with /auth and /code without a restart.

    Attributes:
        reason: AuthReason.NO_TOKEN when no refresh token was ever saved,
                AuthReason.REJECTED when Spotify refused the token or code.
    """

    def __init__(
        self,
        message: str,
        reason: AuthReason = AuthReason.REJECTED,
        details: dict | None = None
    ) -> None:
        super().__init__(message, details)
        self.reason = reason


class FetchError(SpotRelayError):
    """
    Raised when a Liked Songs page cannot be retrieved.

    Transient by nature (network, rate limiting, 5xx). The snapshot
    fetcher retries these under its RetryPolicy; it only surfaces to the
    sync loop when a bounded policy is exhausted or shutdown was requested.

    Attributes:
        is_rate_limit: True if Spotify answered 429.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        is_rate_limit: bool = False
    ) -> None:
        super().__init__(message, details)
        self.is_rate_limit = is_rate_limit


class AcquisitionError(SpotRelayError):
    """
    Raised when audio for a liked song cannot be resolved or downloaded.

    This is a NON-CRITICAL error - the item is skipped and the cycle
    continues with the next one.

    Common causes:
        - YouTube Music search failing repeatedly
        - Video unavailable, removed or age-restricted
        - yt-dlp extraction or FFmpeg conversion failed
        - Disk full or permission denied in the scratch directory

    Example:
        raise AcquisitionError(
            "yt-dlp error: Video unavailable",
            details={'youtube_url': 'https://music.youtube.com/watch?v=xxx'}
        )
    """
    pass


class PublishError(SpotRelayError):
    """
    Raised when an audio file cannot be sent to the Telegram channel.

    The item is not recorded in the ledger and the downloaded file is
    left in place for inspection.

    Attributes:
        is_rate_limit: True if Telegram answered 429.
        retry_after: Seconds Telegram asked us to wait, if provided.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        is_rate_limit: bool = False,
        retry_after: int | None = None
    ) -> None:
        super().__init__(message, details)
        self.is_rate_limit = is_rate_limit
        self.retry_after = retry_after


class TelegramError(PublishError):
    """
    Raised for Telegram Bot API failures outside of publishing audio
    (sending replies, polling for updates).
    """
    pass


class LedgerError(SpotRelayError):
    """
    Raised when the published-ids ledger cannot be read or appended to.

    A read failure fails the whole cycle (we cannot tell what was already
    published). An append failure after a successful publish is logged and
    the local file is kept.
    """
    pass
