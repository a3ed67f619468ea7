"""
Composition root for spot-relay.

Relay wires every component from a Config and owns the process
lifecycle:

    Main thread   Telegram command polling (CommandInterface.poll)
    sync-loop     SyncLoop cycles, started after /code or with --resume

Each thread has its own TelegramClient, so the long-polling getUpdates
and the sendAudio uploads never share a requests.Session.

Shutdown:
    SIGINT/SIGTERM set the shared stop event. Polling returns after its
    in-flight getUpdates call, the sync loop exits at its next boundary,
    and run() joins the loop thread before returning.

Usage:
    relay = Relay(load_config())
    relay.install_signal_handlers()
    relay.run(resume=True)
"""

import signal
import threading

from spot_relay.core.config import Config
from spot_relay.core.credentials import CredentialStore
from spot_relay.core.ledger import Ledger
from spot_relay.core.logger import get_logger
from spot_relay.download.acquirer import AudioAcquirer
from spot_relay.download.downloader import Downloader
from spot_relay.spotify.client import CatalogClient
from spot_relay.spotify.fetcher import RetryPolicy, SnapshotFetcher
from spot_relay.sync.loop import SyncLoop
from spot_relay.sync.pipeline import Acquirer, DistributionPipeline
from spot_relay.telegram.bot import CommandInterface
from spot_relay.telegram.client import TelegramClient
from spot_relay.youtube.matcher import YouTubeMatcher

logger = get_logger(__name__)


# Seconds to wait for the sync thread to finish its current step on exit
SHUTDOWN_JOIN_TIMEOUT = 30


class Relay:
    """
    The running application.

    Collaborators can be injected for tests; anything not given is built
    from the config.

    Attributes:
        config: The loaded configuration.
        stop_event: Shared shutdown signal.
        credentials: Refresh-token store.
        ledger: Published-ids ledger.
        loop: The sync loop.
        commands: Telegram command interface.
        telegram: Client used by the polling thread.
        publisher: Client used by the sync thread for uploads.
    """

    def __init__(
        self,
        config: Config,
        stop_event: threading.Event | None = None,
        catalog: CatalogClient | None = None,
        telegram: TelegramClient | None = None,
        publisher: TelegramClient | None = None,
        acquirer: Acquirer | None = None
    ) -> None:
        self.config = config
        self.stop_event = stop_event or threading.Event()

        catalog = catalog or CatalogClient(
            client_id=config.spotify.client_id,
            client_secret=config.spotify.client_secret,
            redirect_uri=config.spotify.redirect_uri,
        )
        self.telegram = telegram or TelegramClient(config.telegram.bot_token)
        self.publisher = publisher or TelegramClient(config.telegram.bot_token)
        acquirer = acquirer or AudioAcquirer(
            matcher=YouTubeMatcher(),
            downloader=Downloader(cookie_file=config.download.cookie_file),
        )

        self.credentials = CredentialStore(config.storage.token_file, catalog)
        self.ledger = Ledger(config.storage.ledger_file)

        fetcher = SnapshotFetcher(
            catalog,
            RetryPolicy(
                max_attempts=config.sync.fetch_max_attempts,
                delay_seconds=config.sync.fetch_retry_delay,
            ),
            stop_event=self.stop_event,
        )
        pipeline = DistributionPipeline(
            ledger=self.ledger,
            acquirer=acquirer,
            publisher=self.publisher,
            channel_id=config.telegram.channel_id,
            scratch_dir=config.storage.scratch_dir,
            stop_event=self.stop_event,
        )
        self.loop = SyncLoop(
            self.credentials,
            fetcher,
            pipeline,
            config.sync,
            stop_event=self.stop_event,
        )
        self.commands = CommandInterface(
            telegram=self.telegram,
            catalog=catalog,
            credentials=self.credentials,
            admin_id=config.telegram.admin_id,
            on_authorized=self.start_sync,
            on_auth_requested=self.loop.mark_authorizing,
        )

    def start_sync(self) -> None:
        """Start the sync loop unless it is already running."""
        if not self.loop.start():
            logger.info("Sync loop already running, the new token is used from the next cycle")

    def install_signal_handlers(self) -> None:
        """Route SIGINT/SIGTERM to a graceful shutdown. Main thread only."""
        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)

    def _handle_signal(self, signum, frame) -> None:
        logger.info(f"Received {signal.Signals(signum).name}, shutting down")
        self.stop_event.set()

    def run(self, resume: bool = False) -> None:
        """
        Poll for commands until shutdown, then stop the sync loop.

        Args:
            resume: Start syncing immediately if a refresh token is stored.
        """
        if resume and self.credentials.has_token():
            logger.info("Stored Spotify token found, resuming sync")
            self.start_sync()
        elif resume:
            logger.warning("No stored Spotify token, send /auth to the bot to authorize")
        else:
            logger.info("Waiting for authorization: send /auth to the bot")

        try:
            self.commands.poll(self.stop_event)
        finally:
            self.shutdown()

    def shutdown(self, timeout: float | None = SHUTDOWN_JOIN_TIMEOUT) -> None:
        """Signal shutdown and wait for the sync loop thread."""
        self.stop_event.set()
        self.loop.join(timeout)
        if self.loop.is_running:
            logger.warning("Sync loop did not stop in time, exiting anyway")
        logger.info("spot-relay stopped")
