"""
Core module for spot-relay.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - logger: Logging system with multiple outputs
    - ledger: Append-only record of published track ids
    - credentials: Refresh-token storage and access-token refresh

Usage:
    from spot_relay.core import (
        Config, load_config,
        Ledger, CredentialStore,
        setup_logging, get_logger,
        SpotRelayError, ConfigError, AuthError
    )
"""

from spot_relay.core.exceptions import (
    AcquisitionError,
    AuthError,
    AuthReason,
    ConfigError,
    FetchError,
    LedgerError,
    PublishError,
    SpotRelayError,
    TelegramError,
)
from spot_relay.core.logger import (
    get_logger,
    log_distribution_failure,
    setup_logging,
    shutdown_logging,
)
from spot_relay.core.config import (
    Config,
    DownloadConfig,
    SpotifyConfig,
    StorageConfig,
    SyncConfig,
    TelegramConfig,
    load_config,
)
from spot_relay.core.ledger import Ledger
from spot_relay.core.credentials import CredentialStore, TokenGrant

__all__ = [
    # Config
    "Config",
    "SpotifyConfig",
    "TelegramConfig",
    "SyncConfig",
    "StorageConfig",
    "DownloadConfig",
    "load_config",
    # State
    "Ledger",
    "CredentialStore",
    "TokenGrant",
    # Exceptions
    "SpotRelayError",
    "ConfigError",
    "AuthError",
    "AuthReason",
    "FetchError",
    "AcquisitionError",
    "PublishError",
    "TelegramError",
    "LedgerError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_distribution_failure",
    "shutdown_logging",
]
