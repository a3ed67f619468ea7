"""
spot-relay: Publish Spotify Liked Songs to a Telegram channel.

A long-running agent that watches one user's Liked Songs and publishes
every newly liked song, as an audio file, to a Telegram channel. Each
song is published at most once, recorded in an append-only ledger.

Architecture:
    Every sync cycle runs the same steps:

    1. Refresh (spotify/, core/credentials)
        - Exchange the stored refresh token for an access token

    2. Snapshot (spotify/)
        - Fetch all Liked Songs page by page, oldest-liked first

    3. Diff (sync/diff)
        - New items = current snapshot minus previous snapshot

    4. Distribute (sync/pipeline, youtube/, download/, telegram/)
        - Skip items already in the ledger
        - Match on YouTube Music and download with yt-dlp
        - Send to the channel with sendAudio
        - Append the id to the ledger, then delete the local file

    The operator authorizes Spotify from Telegram with /auth and /code.

Modules:
    core/       - Configuration, logging, exceptions, ledger, credentials
    spotify/    - Spotify API client, models and snapshot fetcher
    youtube/    - YouTube Music matching
    download/   - yt-dlp downloads and the audio acquirer
    telegram/   - Bot API client and command interface
    sync/       - Diff, distribution pipeline and sync loop
    relay.py    - Component wiring and process lifecycle
    cli.py      - Command-line interface

Usage:
    Command Line:
        spot-relay
        spot-relay --resume

    Python API:
        from spot_relay.core import load_config, setup_logging
        from spot_relay.relay import Relay

        config = load_config()
        setup_logging(config.storage.log_dir)
        Relay(config).run(resume=True)
"""

__version__ = "0.1.0"
__author__ = "spot-relay contributors"

# Convenience imports for common usage
from spot_relay.core import (
    Config,
    ConfigError,
    SpotRelayError,
    get_logger,
    load_config,
    setup_logging,
)
from spot_relay.spotify import LikedItem, Snapshot

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "setup_logging",
    "get_logger",
    # Exceptions
    "SpotRelayError",
    "ConfigError",
    # Models
    "LikedItem",
    "Snapshot",
]
