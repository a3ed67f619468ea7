"""Test the command-line entry point"""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from spot_relay import __version__
from spot_relay.cli import cli


REQUIRED_VARS = ("SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET", "TG_BOT_KEY", "TG_CHANNEL_ID", "TG_ADMIN_ID")


@pytest.fixture
def runner(temp_dir, monkeypatch):
    monkeypatch.chdir(temp_dir)
    for name in REQUIRED_VARS:
        monkeypatch.delenv(name, raising=False)
    return CliRunner()


class TestCli:
    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_missing_configuration(self, runner):
        result = runner.invoke(cli, [])

        assert result.exit_code == 1

    def test_runs_relay_with_resume(self, runner, temp_dir, monkeypatch):
        env_file = temp_dir / "test.env"
        env_file.write_text(
            "SPOTIFY_CLIENT_ID=id\n"
            "SPOTIFY_CLIENT_SECRET=secret\n"
            "TG_BOT_KEY=123:abc\n"
            "TG_CHANNEL_ID=@liked\n"
            "TG_ADMIN_ID=42\n"
            f"SPOT_RELAY_DATA_DIR={temp_dir / 'data'}\n"
        )
        # load_dotenv writes to os.environ; let monkeypatch restore it
        for name in REQUIRED_VARS + ("SPOT_RELAY_DATA_DIR",):
            monkeypatch.setenv(name, "placeholder")
            monkeypatch.delenv(name)

        with patch("spot_relay.cli.Relay") as relay_cls:
            result = runner.invoke(cli, ["--env-file", str(env_file), "--resume"])

        assert result.exit_code == 0, result.output
        config = relay_cls.call_args.args[0]
        assert config.telegram.admin_id == 42
        relay_cls.return_value.run.assert_called_once_with(resume=True)
