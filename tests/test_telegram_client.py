"""Test the Telegram Bot API client"""

from unittest.mock import Mock

import pytest
import requests

from spot_relay.core.exceptions import PublishError, TelegramError
from spot_relay.telegram import client as client_module
from spot_relay.telegram.client import TelegramClient


def api_response(payload, status_code=200):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


@pytest.fixture
def session():
    return Mock()


@pytest.fixture
def sleep():
    return Mock()


@pytest.fixture
def client(session, sleep):
    return TelegramClient("123:ABC", session=session, sleep=sleep)


@pytest.fixture
def audio_file(temp_dir):
    path = temp_dir / "Queen - Bohemian Rhapsody.m4a"
    path.write_bytes(b"fake audio")
    return path


class TestSendAudio:
    def test_uploads_file_with_metadata(self, client, session, audio_file):
        session.post.return_value = api_response({"ok": True, "result": {"message_id": 7}})

        result = client.send_audio("@liked", audio_file, title="Bohemian Rhapsody", performer="Queen")

        assert result == {"message_id": 7}
        args, kwargs = session.post.call_args
        assert args[0] == "https://api.telegram.org/bot123:ABC/sendAudio"
        assert kwargs["data"] == {
            "chat_id": "@liked",
            "title": "Bohemian Rhapsody",
            "performer": "Queen",
        }
        assert kwargs["files"]["audio"][0] == "Queen - Bohemian Rhapsody.m4a"

    def test_rate_limit_is_retried(self, client, session, sleep, audio_file):
        session.post.side_effect = [
            api_response({"ok": False, "error_code": 429, "description": "Too Many Requests",
                          "parameters": {"retry_after": 3}}, status_code=429),
            api_response({"ok": True, "result": {"message_id": 1}}),
        ]

        client.send_audio("@liked", audio_file)

        sleep.assert_called_once_with(3)
        assert session.post.call_count == 2

    def test_rate_limit_exhausted(self, client, session, sleep, audio_file):
        session.post.return_value = api_response(
            {"ok": False, "error_code": 429, "description": "Too Many Requests"}, status_code=429
        )

        with pytest.raises(PublishError) as exc_info:
            client.send_audio("@liked", audio_file)

        assert exc_info.value.is_rate_limit
        assert exc_info.value.retry_after == client_module.DEFAULT_RETRY_AFTER
        assert sleep.call_count == client_module.MAX_RATE_LIMIT_RETRIES
        assert session.post.call_count == client_module.MAX_RATE_LIMIT_RETRIES + 1

    def test_api_error(self, client, session, audio_file):
        session.post.return_value = api_response(
            {"ok": False, "error_code": 400, "description": "Bad Request: chat not found"},
            status_code=400,
        )

        with pytest.raises(PublishError, match="chat not found") as exc_info:
            client.send_audio("@liked", audio_file)
        assert not exc_info.value.is_rate_limit

    def test_network_error(self, client, session, audio_file):
        session.post.side_effect = requests.exceptions.ConnectionError("reset")

        with pytest.raises(PublishError, match="Network error"):
            client.send_audio("@liked", audio_file)

    def test_missing_file(self, client, session, temp_dir):
        with pytest.raises(PublishError):
            client.send_audio("@liked", temp_dir / "missing.m4a")
        session.post.assert_not_called()

    def test_file_too_large(self, client, session, audio_file, monkeypatch):
        monkeypatch.setattr(client_module, "MAX_UPLOAD_BYTES", 4)

        with pytest.raises(PublishError, match="upload limit"):
            client.send_audio("@liked", audio_file)
        session.post.assert_not_called()


class TestSendMessage:
    def test_html_message(self, client, session):
        session.post.return_value = api_response({"ok": True, "result": {"message_id": 1}})

        client.send_message(42, "<b>hi</b>")

        data = session.post.call_args.kwargs["data"]
        assert data["parse_mode"] == "HTML"
        assert data["disable_web_page_preview"] is True

    def test_plain_message(self, client, session):
        session.post.return_value = api_response({"ok": True, "result": {}})

        client.send_message(42, "Usage: /code YOUR_SPOTIFY_CODE", parse_mode=None)

        assert "parse_mode" not in session.post.call_args.kwargs["data"]

    def test_errors_are_telegram_errors(self, client, session):
        session.post.return_value = api_response(
            {"ok": False, "error_code": 403, "description": "Forbidden: bot was blocked"},
            status_code=403,
        )

        with pytest.raises(TelegramError):
            client.send_message(42, "hi")


class TestGetUpdates:
    def test_offset_and_timeout(self, client, session):
        session.post.return_value = api_response({"ok": True, "result": [{"update_id": 5}]})

        updates = client.get_updates(offset=5, timeout=10)

        assert updates == [{"update_id": 5}]
        kwargs = session.post.call_args.kwargs
        assert kwargs["data"]["offset"] == 5
        assert kwargs["timeout"] > 10

    def test_invalid_json(self, client, session):
        response = api_response(None, status_code=502)
        response.json.side_effect = ValueError("no json")
        session.post.return_value = response

        with pytest.raises(TelegramError, match="HTTP 502") as exc_info:
            client.get_updates()
        assert isinstance(exc_info.value.__cause__, ValueError)
