"""
Command-line interface for spot-relay.

Starts the relay: the Telegram bot listens for operator commands and,
once Spotify is authorized, new liked songs are published to the
channel. rich-click is used for the output colors.

Usage:
    spot-relay                         Wait for /auth and /code on Telegram
    spot-relay --resume                Resume with the stored Spotify token
    spot-relay --config relay.yaml     Use a specific config file
    spot-relay --env-file prod.env     Load environment from a file

Configuration:
    Settings come from config.yaml (optional) and environment variables,
    environment winning. A .env file in the current directory is loaded
    automatically. Required:
    - SPOTIFY_CLIENT_ID, SPOTIFY_CLIENT_SECRET
    - TG_BOT_KEY, TG_CHANNEL_ID, TG_ADMIN_ID

Exit Codes:
    0    Clean shutdown (SIGINT/SIGTERM)
    1    Configuration error or unexpected failure
    130  Interrupted before the relay was running
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import rich_click as click
from dotenv import load_dotenv

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100
click.rich_click.OPTION_GROUPS = {
    "cli": [
        {
            "name": "Configuration",
            "options": ["--config", "--env-file"],
        },
        {
            "name": "Run Options",
            "options": ["--resume", "--verbose"],
        },
        {
            "name": "Info",
            "options": ["--version", "--help"],
        },
    ],
}

from spot_relay import __version__
from spot_relay.core import (
    ConfigError,
    SpotRelayError,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from spot_relay.relay import Relay

logger = get_logger(__name__)


@click.command()
@click.option(
    "--config", "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="YAML config file (default: ./config.yaml if present)"
)
@click.option(
    "--env-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    metavar="<.env>",
    help="Environment file to load (default: ./.env if present)"
)
@click.option(
    "--resume",
    is_flag=True,
    help="Start syncing right away if a Spotify token is already stored"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show debug messages on the console"
)
@click.option(
    "--version",
    is_flag=True,
    help="Show version and exit."
)
def cli(
    config_path: Optional[Path],
    env_file: Optional[Path],
    resume: bool,
    verbose: bool,
    version: bool
) -> None:
    """
    spot-relay: Publish your Spotify Liked Songs to a Telegram channel.

    Watches your Liked Songs, finds each new song on YouTube Music and
    posts the audio to a Telegram channel, exactly once per song.

    \b
    FIRST RUN:
        spot-relay                 # then send /auth and /code to the bot
    \b
    LATER RUNS:
        spot-relay --resume
    """
    if version:
        click.echo(f"spot-relay {__version__}")
        return

    load_dotenv(env_file or Path.cwd() / ".env")

    try:
        config = load_config(config_path)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    setup_logging(
        config.storage.log_dir,
        console_level=logging.DEBUG if verbose else logging.INFO
    )
    logger.info(f"spot-relay {__version__} starting")
    logger.debug(f"Data directory: {config.storage.data_dir}")

    try:
        relay = Relay(config)
        relay.install_signal_handlers()
        relay.run(resume=resume)

    except SpotRelayError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(1)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        shutdown_logging()


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `spot-relay` from the command line.
    """
    cli()


if __name__ == "__main__":
    main()
