"""
Distribution pipeline: one liked song from Spotify to the channel.

Each item goes through strictly sequential steps:

    1. Check ledger    already published -> SKIPPED_ALREADY_LEDGERED
    2. Acquire audio   no source / download error -> SKIPPED_DOWNLOAD_FAILED
    3. Publish         sendAudio error -> FAILED_PUBLISH (file kept)
    4. Record          ledger append, fsynced before step 5
    5. Cleanup         remove the per-item scratch directory

Only step 1 can raise: a ledger that cannot be read means we cannot
tell what was already published, so the whole cycle fails and is
retried. Every other failure is contained in the item's Outcome and
reported through log_distribution_failure().

Ledger append failures after a successful publish keep the local file
and still count as PUBLISHED. The error log names the file, so the
operator can add the id to the ledger by hand.
"""

import shutil
import tempfile
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Protocol

from tqdm import tqdm

from spot_relay.core.exceptions import LedgerError
from spot_relay.core.ledger import Ledger
from spot_relay.core.logger import get_logger, log_distribution_failure
from spot_relay.download.acquirer import TrackHandle
from spot_relay.spotify.models import LikedItem
from spot_relay.utils import ensure_directory, format_duration

logger = get_logger(__name__)


class Outcome(Enum):
    """Result of distributing one liked song."""
    PUBLISHED = "published"
    SKIPPED_ALREADY_LEDGERED = "skipped_already_ledgered"
    SKIPPED_DOWNLOAD_FAILED = "skipped_download_failed"
    FAILED_PUBLISH = "failed_publish"

    @property
    def is_failure(self) -> bool:
        return self in (Outcome.SKIPPED_DOWNLOAD_FAILED, Outcome.FAILED_PUBLISH)


class Acquirer(Protocol):
    def resolve(self, item: LikedItem) -> TrackHandle | None: ...
    def download(self, handle: TrackHandle, destination_dir: Path) -> Path: ...


class Publisher(Protocol):
    def send_audio(
        self,
        chat_id: str | int,
        path: Path,
        title: str | None = None,
        performer: str | None = None
    ) -> Any: ...


class DistributionPipeline:
    """
    Publishes liked songs to the channel, one at a time.

    Attributes:
        _ledger: Ledger of already published ids.
        _acquirer: Resolves and downloads audio.
        _publisher: Sends audio to the channel (TelegramClient).
        _channel_id: Target channel.
        _scratch_dir: Root for per-item download directories.
        _stop_event: Checked between items by distribute_all().
    """

    def __init__(
        self,
        ledger: Ledger,
        acquirer: Acquirer,
        publisher: Publisher,
        channel_id: str | int,
        scratch_dir: Path,
        stop_event: threading.Event | None = None
    ) -> None:
        self._ledger = ledger
        self._acquirer = acquirer
        self._publisher = publisher
        self._channel_id = channel_id
        self._scratch_dir = scratch_dir
        self._stop_event = stop_event or threading.Event()

    def distribute(self, item: LikedItem) -> Outcome:
        """
        Run one item through the pipeline.

        Raises:
            LedgerError: If the ledger cannot be read.
        """
        if self._ledger.contains(item.item_id):
            logger.debug(f"Already published, skipping: {item.display_name}")
            return Outcome.SKIPPED_ALREADY_LEDGERED

        work_dir: Path | None = None
        try:
            handle = self._acquirer.resolve(item)
            if handle is None:
                self._report(item, Outcome.SKIPPED_DOWNLOAD_FAILED, "No matching audio source found")
                return Outcome.SKIPPED_DOWNLOAD_FAILED

            work_dir = Path(tempfile.mkdtemp(
                prefix=f"{item.item_id[:8]}-",
                dir=ensure_directory(self._scratch_dir)
            ))
            audio_path = self._acquirer.download(handle, work_dir)
        except Exception as e:
            if work_dir is not None:
                self._cleanup(work_dir)
            self._report(item, Outcome.SKIPPED_DOWNLOAD_FAILED, str(e))
            return Outcome.SKIPPED_DOWNLOAD_FAILED

        try:
            self._publisher.send_audio(
                self._channel_id,
                audio_path,
                title=item.title,
                performer=item.primary_artist,
            )
        except Exception as e:
            self._report(
                item,
                Outcome.FAILED_PUBLISH,
                f"{e} (file kept at {audio_path})"
            )
            return Outcome.FAILED_PUBLISH

        try:
            self._ledger.append(item.item_id)
        except LedgerError as e:
            logger.error(
                f"Published {item.display_name} but could not record it: {e}. "
                f"Keeping {audio_path}"
            )
            return Outcome.PUBLISHED

        self._cleanup(work_dir)
        logger.info(
            f"Published: {item.primary_artist} - {item.title} "
            f"[{format_duration(item.duration_ms // 1000)}]"
        )
        return Outcome.PUBLISHED

    def distribute_all(self, items: Iterable[LikedItem]) -> list[tuple[LikedItem, Outcome]]:
        """
        Distribute items in order until done or shutdown is requested.

        Returns:
            (item, outcome) for every item that was processed. Items left
            out because of shutdown are not in the list.

        Raises:
            LedgerError: If the ledger cannot be read.
        """
        items = list(items)
        results: list[tuple[LikedItem, Outcome]] = []
        if not items:
            return results

        logger.info(f"Distributing {len(items)} new liked song(s)")

        with tqdm(
            total=len(items),
            desc="Distributing",
            unit="track",
            disable=len(items) <= 1,
        ) as progress:
            for item in items:
                if self._stop_event.is_set():
                    logger.info(
                        f"Shutdown requested, leaving {len(items) - len(results)} "
                        "item(s) for the next run"
                    )
                    break
                results.append((item, self.distribute(item)))
                progress.update(1)

        published = sum(1 for _, o in results if o is Outcome.PUBLISHED)
        failed = sum(1 for _, o in results if o.is_failure)
        logger.info(f"Cycle distribution: {published} published, {failed} failed")
        return results

    def _report(self, item: LikedItem, outcome: Outcome, reason: str) -> None:
        log_distribution_failure(
            logger,
            item_name=item.display_name,
            spotify_url=item.source_url,
            outcome=outcome.name,
            reason=reason,
        )

    def _cleanup(self, work_dir: Path) -> None:
        try:
            shutil.rmtree(work_dir)
        except OSError as e:
            logger.warning(f"Could not remove scratch directory {work_dir}: {e}")
