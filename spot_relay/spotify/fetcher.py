"""
Liked Songs snapshot fetcher.

Retrieves the complete Liked Songs list page by page and returns it as a
Snapshot ordered oldest-liked first, so new songs are published to the
channel in the order they were liked.

Retry Behavior:
    Each page is retried on FetchError (network, 429, 5xx) according to an
    explicit RetryPolicy. The default policy never gives up: an unreachable
    Spotify stalls the cycle rather than producing an empty snapshot that
    would later make the whole history look "new".

    AuthError is never retried here; it fails the cycle.

Usage:
    fetcher = SnapshotFetcher(catalog, RetryPolicy(delay_seconds=5))
    snapshot = fetcher.fetch_all(access_token)
"""

import threading
from dataclasses import dataclass
from typing import Protocol

from spot_relay.core.exceptions import FetchError
from spot_relay.core.logger import get_logger
from spot_relay.spotify.client import MAX_PAGE_SIZE
from spot_relay.spotify.models import LikedItem, LikedPage, Snapshot

logger = get_logger(__name__)


class LikedSongsSource(Protocol):
    def list_liked_songs(self, access_token: str, limit: int, offset: int) -> LikedPage: ...


@dataclass(frozen=True)
class RetryPolicy:
    """
    How often, and how patiently, a failing page request is retried.

    Attributes:
        max_attempts: Total attempts per page, or None for no limit.
        delay_seconds: Fixed pause between attempts.
    """
    max_attempts: int | None = None
    delay_seconds: float = 5.0

    def allows(self, attempt: int) -> bool:
        """Whether another try is allowed after `attempt` failed tries."""
        return self.max_attempts is None or attempt < self.max_attempts


class SnapshotFetcher:
    """
    Builds a Snapshot from the paginated saved-tracks endpoint.

    Attributes:
        _source: Anything with list_liked_songs() (normally CatalogClient).
        _policy: RetryPolicy applied to every page.
        _page_size: Items requested per page.
        _stop_event: Set on shutdown; interrupts retry waits.
    """

    def __init__(
        self,
        source: LikedSongsSource,
        policy: RetryPolicy | None = None,
        page_size: int = MAX_PAGE_SIZE,
        stop_event: threading.Event | None = None
    ) -> None:
        self._source = source
        self._policy = policy or RetryPolicy()
        self._page_size = min(page_size, MAX_PAGE_SIZE)
        self._stop_event = stop_event or threading.Event()

    def fetch_all(self, access_token: str) -> Snapshot:
        """
        Fetch every liked song and return them oldest-liked first.

        Raises:
            FetchError: If a bounded RetryPolicy is exhausted, or shutdown
                        was requested while retrying.
            AuthError: If Spotify rejects the access token.
        """
        raw_items: list[dict] = []
        offset = 0

        while True:
            page = self._fetch_page(access_token, offset)
            raw_items.extend(page.items)
            if not page.has_next:
                break
            offset += self._page_size

        # Spotify lists newest first
        raw_items.reverse()

        items: list[LikedItem] = []
        seen: set[str] = set()
        for raw in raw_items:
            if not LikedItem.is_valid_saved_track(raw):
                logger.debug("Skipping unplayable saved track entry (local file or removed)")
                continue
            item = LikedItem.from_saved_track(raw)
            if item.item_id in seen:
                logger.debug(f"Dropping repeated id in snapshot: {item.item_id}")
                continue
            seen.add(item.item_id)
            items.append(item)

        logger.debug(f"Fetched {len(items)} liked songs")
        return Snapshot(tuple(items))

    def _fetch_page(self, access_token: str, offset: int) -> LikedPage:
        attempt = 0
        while True:
            try:
                return self._source.list_liked_songs(
                    access_token, limit=self._page_size, offset=offset
                )
            except FetchError as e:
                attempt += 1
                if not self._policy.allows(attempt):
                    logger.error(
                        f"Giving up on Liked Songs page at offset {offset} "
                        f"after {attempt} attempts: {e}"
                    )
                    raise
                logger.warning(
                    f"Liked Songs page at offset {offset} failed "
                    f"(attempt {attempt}): {e}. Retrying in {self._policy.delay_seconds:.0f}s"
                )
                if self._stop_event.wait(self._policy.delay_seconds):
                    raise FetchError(
                        "Shutdown requested while fetching Liked Songs",
                        details={"offset": offset}
                    ) from e
