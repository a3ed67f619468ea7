"""
Telegram command interface for spot-relay.

The operator drives authorization from Telegram:

    /start, /help   Informational replies, available to anyone.
    /auth           (admin) Reply with the Spotify consent URL.
    /code <code>    (admin) Exchange the code copied from the redirect
                    URL, store the refresh token and start syncing.

Admin commands from any other chat are ignored silently: no reply, no
state change. Unknown commands and plain text are ignored as well.

Polling:
    poll() long-polls getUpdates on the calling thread until the
    shutdown event is set. Every update is handled in isolation: an
    exception while handling one is logged and polling continues.
"""

import html
import threading
from typing import Any, Callable, Protocol

from spot_relay.core.credentials import CredentialStore
from spot_relay.core.exceptions import SpotRelayError, TelegramError
from spot_relay.core.logger import get_logger
from spot_relay.telegram.client import TelegramClient

logger = get_logger(__name__)


AUTH_STATE = "telegram_auth"

HELLO_TEXT = (
    "<b>spot-relay</b>\n"
    "I publish the songs you like on Spotify to a Telegram channel.\n\n"
    "Send /help to see the available commands."
)

HELP_TEXT = (
    "<b>Commands</b>\n"
    "/auth - get the Spotify authorization link (admin only)\n"
    "/code <code>YOUR_CODE</code> - finish authorization with the code from "
    "the redirect URL (admin only)\n"
    "/help - show this message"
)

CODE_USAGE_TEXT = "Usage: /code YOUR_SPOTIFY_CODE"
AUTHORIZED_TEXT = "Authorized. Sync starting..."
AUTH_FAILED_TEXT = "Failed to authorize."

# Seconds Telegram holds a getUpdates request open
POLL_TIMEOUT = 30

# Seconds to wait after a failed getUpdates call
POLL_ERROR_BACKOFF = 5


class AuthorizeUrlSource(Protocol):
    def authorize_url(self, state: str | None = None) -> str: ...


class CommandInterface:
    """
    Dispatches operator commands received by the bot.

    Attributes:
        _telegram: TelegramClient used for replies and polling.
        _catalog: Builds the Spotify authorization URL.
        _credentials: CredentialStore that receives the refresh token.
        _admin_id: The only chat id allowed to run /auth and /code.
        _on_authorized: Called after a successful /code.
        _on_auth_requested: Called after /auth.
    """

    def __init__(
        self,
        telegram: TelegramClient,
        catalog: AuthorizeUrlSource,
        credentials: CredentialStore,
        admin_id: int,
        on_authorized: Callable[[], Any],
        on_auth_requested: Callable[[], Any] | None = None,
        poll_timeout: int = POLL_TIMEOUT,
        error_backoff: float = POLL_ERROR_BACKOFF
    ) -> None:
        self._telegram = telegram
        self._catalog = catalog
        self._credentials = credentials
        self._admin_id = admin_id
        self._on_authorized = on_authorized
        self._on_auth_requested = on_auth_requested
        self._poll_timeout = poll_timeout
        self._error_backoff = error_backoff

        self._handlers: dict[str, Callable[[int, list[str]], None]] = {
            "start": self._handle_start,
            "help": self._handle_help,
            "auth": self._handle_auth,
            "code": self._handle_code,
        }
        self._admin_commands = {"auth", "code"}

    # =========================================================================
    # Dispatch
    # =========================================================================

    def handle_update(self, update: dict[str, Any]) -> None:
        """
        Handle one getUpdates entry.

        Anything that is not a text message starting with "/" is ignored.
        """
        message = update.get("message") or {}
        text = message.get("text")
        chat_id = (message.get("chat") or {}).get("id")
        if not text or chat_id is None:
            return

        parsed = _parse_command(text)
        if parsed is None:
            return
        command, args = parsed

        handler = self._handlers.get(command)
        if handler is None:
            logger.debug(f"Ignoring unknown command /{command}")
            return

        if command in self._admin_commands and chat_id != self._admin_id:
            logger.warning(f"Ignoring /{command} from non-admin chat {chat_id}")
            return

        logger.debug(f"Handling /{command} from chat {chat_id}")
        handler(chat_id, args)

    def poll(self, stop_event: threading.Event) -> None:
        """
        Long-poll for updates until stop_event is set.

        Returns after the in-flight getUpdates request completes.
        """
        offset: int | None = None
        logger.info("Listening for Telegram commands")

        while not stop_event.is_set():
            try:
                updates = self._telegram.get_updates(offset=offset, timeout=self._poll_timeout)
            except TelegramError as e:
                logger.warning(f"Polling Telegram failed: {e}. Retrying in {self._error_backoff:.0f}s")
                stop_event.wait(self._error_backoff)
                continue

            for update in updates:
                update_id = update.get("update_id")
                if update_id is not None:
                    offset = update_id + 1
                try:
                    self.handle_update(update)
                except Exception:
                    logger.exception(f"Error handling update {update_id}")

        logger.debug("Command polling stopped")

    # =========================================================================
    # Commands
    # =========================================================================

    def _handle_start(self, chat_id: int, args: list[str]) -> None:
        self._reply(chat_id, HELLO_TEXT)

    def _handle_help(self, chat_id: int, args: list[str]) -> None:
        self._reply(chat_id, HELP_TEXT)

    def _handle_auth(self, chat_id: int, args: list[str]) -> None:
        url = html.escape(self._catalog.authorize_url(state=AUTH_STATE))
        if self._on_auth_requested is not None:
            self._on_auth_requested()
        self._reply(
            chat_id,
            f'<a href="{url}">{url}</a>\nThen use:\n<code>/code YOUR_CODE</code>'
        )

    def _handle_code(self, chat_id: int, args: list[str]) -> None:
        if len(args) != 1:
            self._reply(chat_id, CODE_USAGE_TEXT, parse_mode=None)
            return

        try:
            self._credentials.authorize(args[0].strip())
        except SpotRelayError as e:
            logger.error(f"Spotify authorization failed: {e}")
            self._reply(chat_id, AUTH_FAILED_TEXT, parse_mode=None)
            return

        logger.info("Spotify authorization succeeded")
        self._reply(chat_id, AUTHORIZED_TEXT, parse_mode=None)
        self._on_authorized()

    def _reply(self, chat_id: int, text: str, parse_mode: str | None = "HTML") -> None:
        try:
            self._telegram.send_message(chat_id, text, parse_mode=parse_mode)
        except TelegramError as e:
            logger.warning(f"Could not reply to chat {chat_id}: {e}")


def _parse_command(text: str) -> tuple[str, list[str]] | None:
    """
    Split "/Code@MyBot abc" into ("code", ["abc"]).

    Returns None for text that is not a command.
    """
    parts = text.strip().split()
    if not parts or not parts[0].startswith("/") or len(parts[0]) < 2:
        return None
    command = parts[0][1:].split("@", 1)[0].lower()
    if not command:
        return None
    return command, parts[1:]
