"""
Configuration management for spot-relay.

This module handles loading, validating, and providing access to the
application configuration. Values come from three layers, lowest to
highest precedence:

    1. Built-in defaults
    2. An optional config.yaml (current working directory, or an explicit path)
    3. Environment variables (the CLI loads a .env file first via python-dotenv)

Environment Variables:
    SPOTIFY_CLIENT_ID, SPOTIFY_CLIENT_SECRET, SPOTIFY_REDIRECT_URI
    TG_BOT_KEY, TG_CHANNEL_ID, TG_ADMIN_ID
    GLOBAL_SYNC_SEC, SYNC_ERROR_BACKOFF_SEC, FETCH_RETRY_DELAY_SEC,
    FETCH_MAX_ATTEMPTS, SYNC_RETRY_FAILED, SYNC_COLD_START
    SPOT_RELAY_DATA_DIR, SPOT_RELAY_TOKEN_FILE, SPOT_RELAY_LEDGER_FILE,
    SPOT_RELAY_SCRATCH_DIR, YT_COOKIE_FILE

Example config.yaml:
    spotify:
      client_id: "your_client_id_here"
      client_secret: "your_client_secret_here"

    telegram:
      bot_token: "123456:ABC..."
      channel_id: "@my_liked_songs"
      admin_id: 123456789

    sync:
      interval_seconds: 60
      retry_failed: false
      cold_start: distribute

    storage:
      data_dir: "~/.spot-relay"
"""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from spot_relay.core.exceptions import ConfigError


# Default configuration file name (looked up in current working directory)
CONFIG_FILENAME = "config.yaml"

DEFAULT_REDIRECT_URI = "http://127.0.0.1:8888/copyThisCode"
DEFAULT_TOKEN_FILENAME = "spotify-token"
DEFAULT_LEDGER_FILENAME = "published.txt"

COLD_START_DISTRIBUTE = "distribute"
COLD_START_BASELINE = "baseline"
COLD_START_MODES = (COLD_START_DISTRIBUTE, COLD_START_BASELINE)

# (section, key) -> environment variable
ENV_OVERRIDES: dict[tuple[str, str], str] = {
    ("spotify", "client_id"): "SPOTIFY_CLIENT_ID",
    ("spotify", "client_secret"): "SPOTIFY_CLIENT_SECRET",
    ("spotify", "redirect_uri"): "SPOTIFY_REDIRECT_URI",
    ("telegram", "bot_token"): "TG_BOT_KEY",
    ("telegram", "channel_id"): "TG_CHANNEL_ID",
    ("telegram", "admin_id"): "TG_ADMIN_ID",
    ("sync", "interval_seconds"): "GLOBAL_SYNC_SEC",
    ("sync", "error_backoff_seconds"): "SYNC_ERROR_BACKOFF_SEC",
    ("sync", "fetch_retry_delay"): "FETCH_RETRY_DELAY_SEC",
    ("sync", "fetch_max_attempts"): "FETCH_MAX_ATTEMPTS",
    ("sync", "retry_failed"): "SYNC_RETRY_FAILED",
    ("sync", "cold_start"): "SYNC_COLD_START",
    ("storage", "data_dir"): "SPOT_RELAY_DATA_DIR",
    ("storage", "token_file"): "SPOT_RELAY_TOKEN_FILE",
    ("storage", "ledger_file"): "SPOT_RELAY_LEDGER_FILE",
    ("storage", "scratch_dir"): "SPOT_RELAY_SCRATCH_DIR",
    ("download", "cookie_file"): "YT_COOKIE_FILE",
}

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class SpotifyConfig:
    """
    Spotify application credentials.

    Attributes:
        client_id: The Spotify application client ID.
        client_secret: The Spotify application client secret.
        redirect_uri: Redirect URI registered in the Spotify dashboard.
                      The operator copies the ?code=... value from it
                      into the /code command.
    """
    client_id: str
    client_secret: str
    redirect_uri: str = DEFAULT_REDIRECT_URI


@dataclass(frozen=True)
class TelegramConfig:
    """
    Telegram bot configuration.

    Attributes:
        bot_token: Bot API key from @BotFather.
        channel_id: Target channel (numeric id or @username) for audio posts.
        admin_id: Chat id allowed to run /auth and /code.
    """
    bot_token: str
    channel_id: str
    admin_id: int


@dataclass(frozen=True)
class SyncConfig:
    """
    Sync loop behavior.

    Attributes:
        interval_seconds: Pause between successful cycles.
        error_backoff_seconds: Pause after a failed cycle.
        fetch_retry_delay: Pause between retries of one Liked Songs page.
        fetch_max_attempts: Attempts per page before the cycle fails.
                            None retries until success or shutdown.
        retry_failed: Re-offer items that failed download/publish
                      on the next cycle instead of skipping them for good.
        cold_start: "distribute" publishes the whole history on the first
                    cycle, "baseline" only records it.
    """
    interval_seconds: float = 60
    error_backoff_seconds: float = 10
    fetch_retry_delay: float = 5
    fetch_max_attempts: int | None = None
    retry_failed: bool = False
    cold_start: str = COLD_START_DISTRIBUTE


@dataclass(frozen=True)
class StorageConfig:
    """
    Locations of persisted state and scratch files.

    Attributes:
        data_dir: Base directory for state files and logs.
        token_file: Refresh token file (overwritten on each authorization).
        ledger_file: Append-only list of published track ids.
        scratch_dir: Root for per-track download directories.
    """
    data_dir: Path
    token_file: Path
    ledger_file: Path
    scratch_dir: Path

    @property
    def log_dir(self) -> Path:
        return self.data_dir / "logs"


@dataclass(frozen=True)
class DownloadConfig:
    """
    Download behavior configuration.

    Attributes:
        cookie_file: Optional path to a cookies.txt file exported from
                     music.youtube.com. Required for 256 kbps audio and
                     for age-restricted videos.
    """
    cookie_file: Path | None = None


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable.

    Example:
        config = load_config()
        print(f"Posting to: {config.telegram.channel_id}")
        print(f"Polling every {config.sync.interval_seconds}s")
    """
    spotify: SpotifyConfig
    telegram: TelegramConfig
    sync: SyncConfig
    storage: StorageConfig
    download: DownloadConfig


def load_config(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None
) -> Config:
    """
    Load and validate configuration from config.yaml and the environment.

    Args:
        config_path: Optional explicit path to a YAML file. If None,
                     config.yaml in the current working directory is used
                     when it exists; otherwise only the environment is read.
        environ: Environment mapping (defaults to os.environ).

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If an explicit config file is missing, the YAML is
                     invalid, or a required field is missing or invalid.
    """
    if environ is None:
        environ = os.environ

    raw_config = _read_yaml(config_path)
    _apply_env_overrides(raw_config, environ)

    return Config(
        spotify=_parse_spotify_config(raw_config["spotify"]),
        telegram=_parse_telegram_config(raw_config["telegram"]),
        sync=_parse_sync_config(raw_config["sync"]),
        storage=_parse_storage_config(raw_config["storage"]),
        download=_parse_download_config(raw_config["download"]),
    )


def _read_yaml(config_path: Path | None) -> dict[str, dict[str, Any]]:
    """
    Read the YAML layer into a dict with one dict per known section.

    A missing default config.yaml is not an error; a missing explicit
    path is.
    """
    sections = {section for section, _ in ENV_OVERRIDES}
    raw_config: dict[str, dict[str, Any]] = {section: {} for section in sections}

    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME
        if not config_path.exists():
            return raw_config
    elif not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except IOError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        loaded = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if loaded is None:
        return raw_config

    if not isinstance(loaded, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    for section, values in loaded.items():
        if section not in raw_config:
            continue
        if values is None:
            continue
        if not isinstance(values, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )
        raw_config[section].update(values)

    return raw_config


def _apply_env_overrides(
    raw_config: dict[str, dict[str, Any]],
    environ: Mapping[str, str]
) -> None:
    """Overlay environment variables on top of the YAML values."""
    for (section, key), env_name in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is not None and value.strip() != "":
            raw_config[section][key] = value.strip()


def _require_string(section: dict[str, Any], name: str, field: str) -> str:
    value = section.get(name)
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(
            f"'{field}' must be a non-empty string (env: {ENV_OVERRIDES.get(tuple(field.split('.')), '-')})",
            details={"field": field}
        )
    return value.strip()


def _parse_number(
    value: Any,
    field: str,
    default: float,
    minimum: float = 0
) -> float:
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(
            f"'{field}' must be a number",
            details={"field": field, "value": value}
        )
    if number < minimum:
        raise ConfigError(
            f"'{field}' must be >= {minimum}",
            details={"field": field, "value": value}
        )
    return number


def _parse_bool(value: Any, field: str, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ConfigError(
        f"'{field}' must be a boolean",
        details={"field": field, "value": value}
    )


def _parse_path(value: Any, field: str) -> Path:
    if not isinstance(value, (str, Path)) or not str(value).strip():
        raise ConfigError(
            f"'{field}' must be a non-empty path",
            details={"field": field}
        )
    return Path(str(value).strip()).expanduser().resolve()


def _parse_spotify_config(section: dict[str, Any]) -> SpotifyConfig:
    """
    Parse and validate the Spotify section.

    Raises:
        ConfigError: If client_id or client_secret is missing or empty.
    """
    client_id = _require_string(section, "client_id", "spotify.client_id")
    client_secret = _require_string(section, "client_secret", "spotify.client_secret")
    redirect_uri = section.get("redirect_uri") or DEFAULT_REDIRECT_URI

    return SpotifyConfig(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=str(redirect_uri).strip()
    )


def _parse_telegram_config(section: dict[str, Any]) -> TelegramConfig:
    """
    Parse and validate the Telegram section.

    Raises:
        ConfigError: If the bot token or channel is missing, or the admin
                     id is not an integer.
    """
    bot_token = _require_string(section, "bot_token", "telegram.bot_token")
    channel_id = _require_string(section, "channel_id", "telegram.channel_id")

    raw_admin = section.get("admin_id")
    if raw_admin is None or str(raw_admin).strip() == "":
        raise ConfigError(
            "'telegram.admin_id' is required (env: TG_ADMIN_ID)",
            details={"field": "telegram.admin_id"}
        )
    try:
        admin_id = int(str(raw_admin).strip())
    except ValueError:
        raise ConfigError(
            "'telegram.admin_id' must be an integer",
            details={"field": "telegram.admin_id", "value": raw_admin}
        )

    return TelegramConfig(
        bot_token=bot_token,
        channel_id=channel_id,
        admin_id=admin_id
    )


def _parse_sync_config(section: dict[str, Any]) -> SyncConfig:
    """
    Parse the sync section, applying defaults for missing fields.

    Raises:
        ConfigError: If a number is below its minimum or malformed, or cold_start
                     is not one of COLD_START_MODES.
    """
    defaults = SyncConfig()

    interval = _parse_number(
        section.get("interval_seconds"), "sync.interval_seconds",
        defaults.interval_seconds, minimum=1
    )
    backoff = _parse_number(
        section.get("error_backoff_seconds"), "sync.error_backoff_seconds",
        defaults.error_backoff_seconds, minimum=1
    )
    retry_delay = _parse_number(
        section.get("fetch_retry_delay"), "sync.fetch_retry_delay",
        defaults.fetch_retry_delay, minimum=1
    )

    max_attempts = None
    raw_attempts = section.get("fetch_max_attempts")
    if raw_attempts is not None:
        try:
            max_attempts = int(raw_attempts)
        except (TypeError, ValueError):
            raise ConfigError(
                "'sync.fetch_max_attempts' must be a positive integer",
                details={"field": "sync.fetch_max_attempts", "value": raw_attempts}
            )
        if max_attempts < 1:
            raise ConfigError(
                "'sync.fetch_max_attempts' must be a positive integer",
                details={"field": "sync.fetch_max_attempts", "value": raw_attempts}
            )

    retry_failed = _parse_bool(
        section.get("retry_failed"), "sync.retry_failed", defaults.retry_failed
    )

    cold_start = str(section.get("cold_start") or defaults.cold_start).strip().lower()
    if cold_start not in COLD_START_MODES:
        raise ConfigError(
            f"'sync.cold_start' must be one of {', '.join(COLD_START_MODES)}",
            details={"field": "sync.cold_start", "value": cold_start}
        )

    return SyncConfig(
        interval_seconds=interval,
        error_backoff_seconds=backoff,
        fetch_retry_delay=retry_delay,
        fetch_max_attempts=max_attempts,
        retry_failed=retry_failed,
        cold_start=cold_start
    )


def _parse_storage_config(section: dict[str, Any]) -> StorageConfig:
    """
    Parse storage paths. Token and ledger files default to the data
    directory; the scratch directory defaults to the system temp dir.
    Does NOT create any directory.
    """
    raw_data_dir = section.get("data_dir")
    if raw_data_dir is None:
        data_dir = Path.cwd().resolve()
    else:
        data_dir = _parse_path(raw_data_dir, "storage.data_dir")

    token_file = (
        _parse_path(section["token_file"], "storage.token_file")
        if section.get("token_file") is not None
        else data_dir / DEFAULT_TOKEN_FILENAME
    )
    ledger_file = (
        _parse_path(section["ledger_file"], "storage.ledger_file")
        if section.get("ledger_file") is not None
        else data_dir / DEFAULT_LEDGER_FILENAME
    )
    scratch_dir = (
        _parse_path(section["scratch_dir"], "storage.scratch_dir")
        if section.get("scratch_dir") is not None
        else Path(tempfile.gettempdir()) / "spot-relay"
    )

    return StorageConfig(
        data_dir=data_dir,
        token_file=token_file,
        ledger_file=ledger_file,
        scratch_dir=scratch_dir
    )


def _parse_download_config(section: dict[str, Any]) -> DownloadConfig:
    """
    Parse the download section.

    Raises:
        ConfigError: If cookie_file is given but does not exist.
    """
    raw_cookie = section.get("cookie_file")
    if raw_cookie is None:
        return DownloadConfig()

    cookie_path = _parse_path(raw_cookie, "download.cookie_file")
    if not cookie_path.exists():
        raise ConfigError(
            f"Cookie file not found: {cookie_path}",
            details={"field": "download.cookie_file", "path": str(cookie_path)}
        )
    return DownloadConfig(cookie_file=cookie_path)
