"""
Telegram module for spot-relay.

    - client: requests-based Bot API client (sendAudio, sendMessage, getUpdates)
    - bot: CommandInterface for /start, /help, /auth, /code
"""

from spot_relay.telegram.bot import CommandInterface
from spot_relay.telegram.client import TelegramClient

__all__ = [
    "CommandInterface",
    "TelegramClient",
]
