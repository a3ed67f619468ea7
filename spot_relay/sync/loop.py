"""
Sync loop: fetch, diff, distribute, sleep, forever.

Lifecycle:
    IDLE ──/auth──> AUTHORIZING ──/code──> CYCLING ──shutdown──> STOPPED

    start() may also be called directly from IDLE (--resume with a stored
    token). STOPPED is terminal; a stopped loop cannot be restarted.

Cycle:
    1. Refresh the Spotify access token
    2. Fetch the full Liked Songs snapshot
    3. Diff it against the previous snapshot
    4. Distribute the new items, strictly in order
    5. Replace the previous snapshot
       - failed items stay in it (skipped for good) unless retry_failed
       - items left out by a shutdown are always removed from it

Any exception in steps 1-4 fails the cycle: the previous snapshot is
kept and the loop waits error_backoff_seconds before trying again.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum

from spot_relay.core.config import COLD_START_BASELINE, SyncConfig
from spot_relay.core.credentials import CredentialStore
from spot_relay.core.logger import get_logger
from spot_relay.spotify.fetcher import SnapshotFetcher
from spot_relay.spotify.models import LikedItem, Snapshot
from spot_relay.sync.diff import diff
from spot_relay.sync.pipeline import DistributionPipeline, Outcome

logger = get_logger(__name__)


class LoopState(Enum):
    IDLE = "idle"
    AUTHORIZING = "authorizing"
    CYCLING = "cycling"
    STOPPED = "stopped"


@dataclass
class SyncState:
    """
    State carried from one cycle to the next.

    Attributes:
        previous: Snapshot the next diff is computed against.
        cycles: Number of completed cycles. 0 means cold start.
    """
    previous: Snapshot = field(default_factory=Snapshot.empty)
    cycles: int = 0


@dataclass(frozen=True)
class CycleReport:
    """
    Summary of one completed cycle.

    Attributes:
        cycle: 1-based cycle number.
        fetched: Size of the fetched snapshot.
        results: (item, outcome) for every processed new item.
        unprocessed: Ids of new items left out because of shutdown.
        baseline: True if the cycle only recorded the snapshot.
    """
    cycle: int
    fetched: int
    results: tuple[tuple[LikedItem, Outcome], ...] = ()
    unprocessed: tuple[str, ...] = ()
    baseline: bool = False

    @property
    def published(self) -> int:
        return sum(1 for _, o in self.results if o is Outcome.PUBLISHED)

    @property
    def failed(self) -> int:
        return sum(1 for _, o in self.results if o.is_failure)


class SyncLoop:
    """
    Runs sync cycles on a dedicated thread.

    Attributes:
        _credentials: Provides access tokens.
        _fetcher: Builds Liked Songs snapshots.
        _pipeline: Distributes new items.
        _config: Intervals and failure policies.
        _stop_event: Shared shutdown signal.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        fetcher: SnapshotFetcher,
        pipeline: DistributionPipeline,
        config: SyncConfig,
        stop_event: threading.Event | None = None
    ) -> None:
        self._credentials = credentials
        self._fetcher = fetcher
        self._pipeline = pipeline
        self._config = config
        self._stop_event = stop_event or threading.Event()

        self._lock = threading.Lock()
        self._state = LoopState.IDLE
        self._thread: threading.Thread | None = None

    @property
    def state(self) -> LoopState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def mark_authorizing(self) -> None:
        """Record that the operator started authorization (/auth)."""
        with self._lock:
            if self._state is LoopState.IDLE:
                self._state = LoopState.AUTHORIZING

    def start(self) -> bool:
        """
        Start cycling on a background thread.

        Returns:
            True if the thread was started, False if it was already
            running or the loop has stopped.
        """
        with self._lock:
            if self._state is LoopState.STOPPED:
                logger.debug("Sync loop already stopped, not starting")
                return False
            if self._thread is not None and self._thread.is_alive():
                logger.debug("Sync loop already running")
                return False

            self._state = LoopState.CYCLING
            self._thread = threading.Thread(target=self.run, name="sync-loop", daemon=True)
            self._thread.start()

        logger.info(f"Sync loop started (every {self._config.interval_seconds:.0f}s)")
        return True

    def stop(self) -> None:
        """Request shutdown. The loop exits at the next boundary."""
        self._stop_event.set()

    def join(self, timeout: float | None = None) -> None:
        thread = self._thread
        if thread is not None:
            thread.join(timeout)

    def run(self) -> None:
        """
        Repeat cycles until shutdown.

        Never raises: cycle failures are logged and followed by the
        error backoff.
        """
        sync_state = SyncState()

        try:
            while not self._stop_event.is_set():
                try:
                    report = self.run_cycle(sync_state)
                except Exception:
                    logger.exception(
                        f"Sync cycle failed, retrying in "
                        f"{self._config.error_backoff_seconds:.0f}s"
                    )
                    wait = self._config.error_backoff_seconds
                else:
                    logger.debug(
                        f"Cycle {report.cycle} done: {report.fetched} liked, "
                        f"{report.published} published, {report.failed} failed"
                    )
                    wait = self._config.interval_seconds

                self._stop_event.wait(wait)
        finally:
            with self._lock:
                self._state = LoopState.STOPPED
            logger.info("Sync loop stopped")

    def run_cycle(self, sync_state: SyncState) -> CycleReport:
        """
        Run one cycle and update sync_state on success.

        Raises:
            AuthError: If no valid refresh token is available.
            FetchError: If the snapshot could not be fetched.
            LedgerError: If the ledger cannot be read.
        """
        access_token = self._credentials.refresh()
        current = self._fetcher.fetch_all(access_token)
        cycle = sync_state.cycles + 1

        if sync_state.cycles == 0 and self._config.cold_start == COLD_START_BASELINE:
            sync_state.previous = current
            sync_state.cycles = cycle
            logger.info(f"Recorded {len(current)} liked songs as baseline, nothing published")
            return CycleReport(cycle=cycle, fetched=len(current), baseline=True)

        new_items = diff(sync_state.previous, current)
        if new_items:
            logger.info(f"Found {len(new_items)} new liked song(s)")

        results = self._pipeline.distribute_all(new_items)

        processed = {item.item_id for item, _ in results}
        unprocessed = tuple(i.item_id for i in new_items if i.item_id not in processed)

        excluded = set(unprocessed)
        if self._config.retry_failed:
            excluded.update(item.item_id for item, outcome in results if outcome.is_failure)

        sync_state.previous = current.without(excluded)
        sync_state.cycles = cycle

        return CycleReport(
            cycle=cycle,
            fetched=len(current),
            results=tuple(results),
            unprocessed=unprocessed,
        )
