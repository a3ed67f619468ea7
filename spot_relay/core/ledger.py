"""
Append-only ledger of published Spotify track ids.

The ledger is the durable source of truth for "already sent to the
channel". It is a plain text file with one track id per line:

    4cOdK2wGLETKBW3PvgPWqT
    7ouMYWpwJ422jRcDASZB7P

Rules:
    - Only append() writes to the file; nothing rewrites or compacts it.
    - append() flushes and fsyncs before returning, so callers may delete
      the local audio file as soon as it returns.
    - contains() re-reads the whole file on every call, so ids appended
      by an earlier process run are always seen.

Usage:
    ledger = Ledger(data_dir / "published.txt")

    if not ledger.contains(track_id):
        ...publish...
        ledger.append(track_id)
"""

import os
import threading
from pathlib import Path

from spot_relay.core.exceptions import LedgerError
from spot_relay.core.logger import get_logger

logger = get_logger(__name__)


class Ledger:
    """
    Thread-safe, append-only record of published track ids.

    All public methods acquire self._lock before touching the file.

    Attributes:
        path: Location of the ledger file. Missing file = empty ledger.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()

    def _read_ids(self) -> set[str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return {line.strip() for line in f if line.strip()}
        except FileNotFoundError:
            return set()
        except OSError as e:
            raise LedgerError(
                f"Failed to read ledger: {e}",
                details={"file_path": str(self.path), "original_error": str(e)}
            ) from e

    def contains(self, item_id: str) -> bool:
        """
        Check whether a track id has already been published.

        Raises:
            LedgerError: If the ledger exists but cannot be read.
        """
        with self._lock:
            return item_id.strip() in self._read_ids()

    def __contains__(self, item_id: object) -> bool:
        return isinstance(item_id, str) and self.contains(item_id)

    def append(self, item_id: str) -> None:
        """
        Durably record a published track id.

        Creates parent directories on first use. Returns only after the
        line has been flushed and fsynced.

        Raises:
            LedgerError: If the id is blank or the write fails.
        """
        item_id = item_id.strip()
        if not item_id or "\n" in item_id:
            raise LedgerError(
                "Ledger ids must be non-empty single-line strings",
                details={"item_id": item_id}
            )

        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(f"{item_id}\n")
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as e:
                raise LedgerError(
                    f"Failed to append to ledger: {e}",
                    details={
                        "file_path": str(self.path),
                        "item_id": item_id,
                        "original_error": str(e)
                    }
                ) from e

        logger.debug(f"Ledgered {item_id}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._read_ids())
