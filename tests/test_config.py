"""Test configuration loading"""

from pathlib import Path

import pytest

from spot_relay.core.config import (
    DEFAULT_REDIRECT_URI,
    load_config,
)
from spot_relay.core.exceptions import ConfigError


REQUIRED_ENV = {
    "SPOTIFY_CLIENT_ID": "client-id",
    "SPOTIFY_CLIENT_SECRET": "client-secret",
    "TG_BOT_KEY": "123:abc",
    "TG_CHANNEL_ID": "@liked",
    "TG_ADMIN_ID": "42",
}


@pytest.fixture
def in_temp_cwd(temp_dir, monkeypatch):
    """Run with an empty working directory (no config.yaml)"""
    monkeypatch.chdir(temp_dir)
    return temp_dir


class TestLoadConfig:
    """Test load_config() layering and validation"""

    def test_environment_only(self, in_temp_cwd):
        """Without config.yaml, the environment alone is enough"""
        config = load_config(environ=REQUIRED_ENV)

        assert config.spotify.client_id == "client-id"
        assert config.spotify.redirect_uri == DEFAULT_REDIRECT_URI
        assert config.telegram.channel_id == "@liked"
        assert config.telegram.admin_id == 42

    def test_defaults(self, in_temp_cwd):
        config = load_config(environ=REQUIRED_ENV)

        assert config.sync.interval_seconds == 60
        assert config.sync.error_backoff_seconds == 10
        assert config.sync.fetch_retry_delay == 5
        assert config.sync.fetch_max_attempts is None
        assert config.sync.retry_failed is False
        assert config.sync.cold_start == "distribute"
        assert config.storage.data_dir == Path(in_temp_cwd).resolve()
        assert config.storage.token_file.name == "spotify-token"
        assert config.storage.ledger_file.name == "published.txt"
        assert config.storage.log_dir == config.storage.data_dir / "logs"
        assert config.download.cookie_file is None

    def test_missing_required_value(self, in_temp_cwd):
        env = dict(REQUIRED_ENV)
        del env["TG_BOT_KEY"]

        with pytest.raises(ConfigError):
            load_config(environ=env)

    def test_admin_id_must_be_integer(self, in_temp_cwd):
        env = dict(REQUIRED_ENV, TG_ADMIN_ID="admin")

        with pytest.raises(ConfigError):
            load_config(environ=env)

    def test_yaml_values(self, temp_dir):
        config_path = temp_dir / "relay.yaml"
        config_path.write_text(
            "spotify:\n"
            "  client_id: yaml-id\n"
            "  client_secret: yaml-secret\n"
            "telegram:\n"
            "  bot_token: '1:x'\n"
            "  channel_id: -100123\n"
            "  admin_id: 7\n"
            "sync:\n"
            "  interval_seconds: 120\n"
            "  retry_failed: true\n"
            "  cold_start: baseline\n"
            f"storage:\n"
            f"  data_dir: {temp_dir / 'data'}\n",
            encoding="utf-8"
        )

        config = load_config(config_path, environ={})

        assert config.spotify.client_id == "yaml-id"
        assert config.telegram.channel_id == "-100123"
        assert config.telegram.admin_id == 7
        assert config.sync.interval_seconds == 120
        assert config.sync.retry_failed is True
        assert config.sync.cold_start == "baseline"
        assert config.storage.ledger_file == (temp_dir / "data" / "published.txt").resolve()

    def test_environment_overrides_yaml(self, temp_dir):
        """Precedence: environment > YAML > defaults"""
        config_path = temp_dir / "config.yaml"
        config_path.write_text(
            "spotify:\n"
            "  client_id: yaml-id\n"
            "sync:\n"
            "  interval_seconds: 120\n"
            "  error_backoff_seconds: 30\n",
            encoding="utf-8"
        )
        env = dict(REQUIRED_ENV, GLOBAL_SYNC_SEC="15")

        config = load_config(config_path, environ=env)

        assert config.spotify.client_id == "client-id"
        assert config.sync.interval_seconds == 15
        assert config.sync.error_backoff_seconds == 30
        assert config.sync.fetch_retry_delay == 5

    def test_default_config_file_in_cwd(self, in_temp_cwd):
        (in_temp_cwd / "config.yaml").write_text(
            "sync:\n  fetch_max_attempts: 3\n", encoding="utf-8"
        )

        config = load_config(environ=REQUIRED_ENV)

        assert config.sync.fetch_max_attempts == 3

    def test_explicit_missing_file(self, temp_dir):
        with pytest.raises(ConfigError):
            load_config(temp_dir / "nope.yaml", environ=REQUIRED_ENV)

    def test_invalid_yaml(self, temp_dir):
        config_path = temp_dir / "config.yaml"
        config_path.write_text("spotify: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            load_config(config_path, environ=REQUIRED_ENV)

    @pytest.mark.parametrize("name, value", [
        ("GLOBAL_SYNC_SEC", "soon"),
        ("GLOBAL_SYNC_SEC", "0"),
        ("SYNC_ERROR_BACKOFF_SEC", "-1"),
        ("SYNC_ERROR_BACKOFF_SEC", "0"),
        ("FETCH_RETRY_DELAY_SEC", "0"),
        ("FETCH_MAX_ATTEMPTS", "0"),
        ("SYNC_RETRY_FAILED", "maybe"),
        ("SYNC_COLD_START", "later"),
    ])
    def test_invalid_sync_values(self, in_temp_cwd, name, value):
        with pytest.raises(ConfigError):
            load_config(environ=dict(REQUIRED_ENV, **{name: value}))

    def test_boolean_strings(self, in_temp_cwd):
        config = load_config(environ=dict(REQUIRED_ENV, SYNC_RETRY_FAILED="yes"))

        assert config.sync.retry_failed is True

    def test_cookie_file_must_exist(self, in_temp_cwd):
        env = dict(REQUIRED_ENV, YT_COOKIE_FILE=str(in_temp_cwd / "cookies.txt"))

        with pytest.raises(ConfigError):
            load_config(environ=env)

        (in_temp_cwd / "cookies.txt").write_text("# Netscape HTTP Cookie File\n")
        config = load_config(environ=env)
        assert config.download.cookie_file.name == "cookies.txt"
