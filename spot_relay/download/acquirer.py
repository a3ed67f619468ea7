"""
Audio acquisition for the distribution pipeline.

Combines YouTube Music matching and yt-dlp downloading behind two calls:

    resolve(item)                      -> TrackHandle | None
    download(handle, destination_dir)  -> Path

resolve() returning None means "no acceptable source exists"; both
methods raise AcquisitionError for failures worth logging. The pipeline
treats either as a skipped item.
"""

from dataclasses import dataclass
from pathlib import Path

from spot_relay.core.logger import get_logger
from spot_relay.download.downloader import Downloader
from spot_relay.spotify.models import LikedItem
from spot_relay.utils import generate_track_filename
from spot_relay.youtube.matcher import YouTubeMatcher

logger = get_logger(__name__)


@dataclass(frozen=True)
class TrackHandle:
    """
    A liked song resolved to a downloadable source.

    Attributes:
        item: The liked song.
        youtube_url: URL passed to yt-dlp.
        youtube_title: Title of the matched upload, for logs.
    """
    item: LikedItem
    youtube_url: str
    youtube_title: str = ""

    @property
    def filename(self) -> str:
        return generate_track_filename(self.item.primary_artist, self.item.title)


class AudioAcquirer:
    """
    Resolves liked songs on YouTube Music and downloads them.

    Attributes:
        _matcher: YouTubeMatcher used by resolve().
        _downloader: Downloader used by download().
    """

    def __init__(self, matcher: YouTubeMatcher, downloader: Downloader) -> None:
        self._matcher = matcher
        self._downloader = downloader

    def resolve(self, item: LikedItem) -> TrackHandle | None:
        """
        Find a source for a liked song.

        Returns:
            TrackHandle, or None if no acceptable match exists.

        Raises:
            AcquisitionError: If YouTube Music kept failing.
        """
        result = self._matcher.match(item)
        if result is None:
            return None
        logger.debug(f"Resolved {item.display_name} -> {result.url}")
        return TrackHandle(item=item, youtube_url=result.url, youtube_title=result.title)

    def download(self, handle: TrackHandle, destination_dir: Path) -> Path:
        """
        Download the audio of a resolved song into destination_dir.

        Raises:
            AcquisitionError: If the download fails.
        """
        return self._downloader.download(handle.youtube_url, destination_dir, handle.filename)
