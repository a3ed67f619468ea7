"""
Telegram Bot API client for spot-relay.

Minimal requests-based client for the three Bot API methods the relay
uses:

    send_audio(chat_id, path, title, performer)  -> publish a track
    send_message(chat_id, text, parse_mode)      -> reply to the operator
    get_updates(offset, timeout)                 -> long-poll for commands

Rate Limiting:
    Telegram answers 429 with parameters.retry_after. The client waits
    that long and retries, up to MAX_RATE_LIMIT_RETRIES times, then raises
    with is_rate_limit=True.

Error Mapping:
    - send_audio failures             -> PublishError
    - send_message/get_updates failures -> TelegramError
"""

import time
from pathlib import Path
from typing import Any, Callable

import requests

from spot_relay.core.exceptions import PublishError, TelegramError
from spot_relay.core.logger import get_logger

logger = get_logger(__name__)


API_BASE_URL = "https://api.telegram.org"

# Bot API upload limit for sendAudio
MAX_UPLOAD_BYTES = 50 * 1024 * 1024

MAX_RATE_LIMIT_RETRIES = 3

# Used when a 429 reply carries no retry_after
DEFAULT_RETRY_AFTER = 5

# Uploads of large files can take a while on slow links
UPLOAD_TIMEOUT = 300
REQUEST_TIMEOUT = 30


class TelegramClient:
    """
    Telegram Bot API client bound to one bot token.

    Attributes:
        _base_url: https://api.telegram.org/bot<token>
        _session: requests.Session reused for all calls.
        _sleep: Function used to wait on 429 replies.
    """

    def __init__(
        self,
        bot_token: str,
        session: requests.Session | None = None,
        sleep: Callable[[float], Any] = time.sleep,
        max_rate_limit_retries: int = MAX_RATE_LIMIT_RETRIES
    ) -> None:
        self._base_url = f"{API_BASE_URL}/bot{bot_token}"
        self._session = session or requests.Session()
        self._sleep = sleep
        self._max_rate_limit_retries = max_rate_limit_retries

    def send_audio(
        self,
        chat_id: str | int,
        path: Path,
        title: str | None = None,
        performer: str | None = None
    ) -> dict[str, Any]:
        """
        Upload an audio file to a chat or channel.

        Args:
            chat_id: Channel username ("@name") or numeric id.
            path: Local audio file.
            title: Track title shown by Telegram clients.
            performer: Artist shown by Telegram clients.

        Returns:
            The Message object Telegram created.

        Raises:
            PublishError: If the file is missing or too large, or Telegram
                          rejected the upload.
        """
        try:
            size = path.stat().st_size
        except OSError as e:
            raise PublishError(
                f"Cannot read audio file {path}: {e}",
                details={"path": str(path)}
            ) from e

        if size > MAX_UPLOAD_BYTES:
            raise PublishError(
                f"Audio file exceeds the Bot API upload limit ({size} bytes)",
                details={"path": str(path), "size": size, "limit": MAX_UPLOAD_BYTES}
            )

        data: dict[str, Any] = {"chat_id": chat_id}
        if title:
            data["title"] = title
        if performer:
            data["performer"] = performer

        return self._call(
            "sendAudio",
            data=data,
            upload=("audio", path),
            timeout=UPLOAD_TIMEOUT,
            error_cls=PublishError,
        )

    def send_message(
        self,
        chat_id: str | int,
        text: str,
        parse_mode: str | None = "HTML"
    ) -> dict[str, Any]:
        """
        Send a text message.

        Raises:
            TelegramError: If Telegram rejected the message.
        """
        data: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        if parse_mode:
            data["parse_mode"] = parse_mode
        return self._call("sendMessage", data=data)

    def get_updates(self, offset: int | None = None, timeout: int = 30) -> list[dict[str, Any]]:
        """
        Long-poll for new updates.

        Args:
            offset: Id of the first update to return (last seen + 1).
            timeout: Seconds Telegram holds the request open.

        Raises:
            TelegramError: On network or API errors.
        """
        data: dict[str, Any] = {"timeout": timeout, "allowed_updates": '["message"]'}
        if offset is not None:
            data["offset"] = offset
        return self._call("getUpdates", data=data, timeout=timeout + REQUEST_TIMEOUT) or []

    def _call(
        self,
        method: str,
        data: dict[str, Any] | None = None,
        upload: tuple[str, Path] | None = None,
        timeout: float = REQUEST_TIMEOUT,
        error_cls: type[PublishError] = TelegramError
    ) -> Any:
        """
        POST one Bot API method and return its "result".

        429 replies are retried after retry_after seconds. The upload
        file is reopened on every attempt.
        """
        url = f"{self._base_url}/{method}"
        attempt = 0

        while True:
            try:
                if upload is not None:
                    field, path = upload
                    with open(path, "rb") as f:
                        response = self._session.post(
                            url, data=data, files={field: (path.name, f)}, timeout=timeout
                        )
                else:
                    response = self._session.post(url, data=data, timeout=timeout)
            except (requests.exceptions.RequestException, OSError) as e:
                raise error_cls(
                    f"Network error calling {method}: {e}",
                    details={"method": method, "original_error": str(e)}
                ) from e

            try:
                payload = response.json()
            except ValueError as e:
                raise error_cls(
                    f"Invalid response from {method} (HTTP {response.status_code})",
                    details={"method": method, "http_status": response.status_code}
                ) from e

            if payload.get("ok"):
                return payload.get("result")

            error_code = payload.get("error_code", response.status_code)
            description = payload.get("description", "unknown error")

            if error_code == 429:
                retry_after = (payload.get("parameters") or {}).get(
                    "retry_after", DEFAULT_RETRY_AFTER
                )
                if attempt < self._max_rate_limit_retries:
                    attempt += 1
                    logger.warning(
                        f"Telegram rate limit on {method}, retrying in {retry_after}s "
                        f"({attempt}/{self._max_rate_limit_retries})"
                    )
                    self._sleep(retry_after)
                    continue
                raise error_cls(
                    f"Telegram rate limit on {method}: {description}",
                    details={"method": method, "http_status": 429},
                    is_rate_limit=True,
                    retry_after=retry_after,
                )

            raise error_cls(
                f"Telegram API error {error_code} on {method}: {description}",
                details={"method": method, "http_status": error_code}
            )
