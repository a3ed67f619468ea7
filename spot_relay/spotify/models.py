"""
Data models for Spotify entities.

This module defines immutable dataclasses representing the Liked Songs
list as the sync engine sees it.

Design Decisions:
    - All dataclasses are frozen (immutable); the sync loop replaces
      snapshots rather than mutating them
    - Fields follow the Spotify saved-track response where possible
    - Models are independent of how the ledger stores ids

Usage:
    from spot_relay.spotify.models import LikedItem, Snapshot

    items = [LikedItem.from_saved_track(raw) for raw in page["items"]]
    snapshot = Snapshot(tuple(items))
"""

from dataclasses import dataclass
from typing import Any, Iterable, Iterator


@dataclass(frozen=True)
class LikedItem:
    """
    One entry of the user's Liked Songs.

    Attributes:
        item_id: Spotify track ID (22-character base62 string).
                 Example: "4cOdK2wGLETKBW3PvgPWqT"

        title: Track title as it appears on Spotify.
               Example: "Bohemian Rhapsody"

        primary_artist: First artist in the track's artist list.
                        Example: "Queen"

        album_name: Album name.
                    Example: "A Night at the Opera"

        source_url: Canonical Spotify URL for the track, resolved by the
                    audio acquisition layer.
                    Example: "https://open.spotify.com/track/4cOdK2wGLETKBW3PvgPWqT"

        artists: All artist names, in Spotify order.

        duration_ms: Track duration in milliseconds, used to reject
                     YouTube results of the wrong length.

        isrc: International Standard Recording Code, if Spotify has one.

        explicit: Spotify's explicit flag.

        added_at: ISO timestamp of when the song was liked.
    """

    item_id: str
    title: str
    primary_artist: str
    album_name: str
    source_url: str
    artists: tuple[str, ...] = ()
    duration_ms: int = 0
    isrc: str | None = None
    explicit: bool = False
    added_at: str | None = None

    @staticmethod
    def is_valid_saved_track(saved_item: dict[str, Any] | None) -> bool:
        """
        Check whether a saved-track entry can be distributed.

        Local files, removed tracks and episodes come back with a null
        track, a null id, or no Spotify URL.
        """
        if not saved_item:
            return False
        track = saved_item.get("track")
        if not track or not isinstance(track, dict):
            return False
        if track.get("is_local"):
            return False
        if not track.get("id"):
            return False
        if not (track.get("external_urls") or {}).get("spotify"):
            return False
        return True

    @classmethod
    def from_saved_track(cls, saved_item: dict[str, Any]) -> "LikedItem":
        """
        Create a LikedItem from an item of current_user_saved_tracks().

        Args:
            saved_item: {"added_at": "...", "track": {...}} as returned by
                        the Spotify Web API.

        Raises:
            KeyError: If the entry is missing required track fields.
                      Call is_valid_saved_track() first.
        """
        track = saved_item["track"]

        artists = tuple(
            a["name"] for a in track.get("artists", []) if a and a.get("name")
        )
        primary_artist = artists[0] if artists else "Unknown Artist"
        album_name = (track.get("album") or {}).get("name") or "Unknown Album"

        return cls(
            item_id=track["id"],
            title=track.get("name") or "Unknown Title",
            primary_artist=primary_artist,
            album_name=album_name,
            source_url=track["external_urls"]["spotify"],
            artists=artists,
            duration_ms=track.get("duration_ms") or 0,
            isrc=(track.get("external_ids") or {}).get("isrc"),
            explicit=bool(track.get("explicit", False)),
            added_at=saved_item.get("added_at"),
        )

    @property
    def display_name(self) -> str:
        """Artist - Title (Album), the form used in logs."""
        return f"{self.primary_artist} - {self.title} ({self.album_name})"

    @property
    def search_query(self) -> str:
        """Text query for YouTube Music: "Artist - Title"."""
        return f"{self.primary_artist} - {self.title}"


@dataclass(frozen=True)
class Snapshot:
    """
    The full Liked Songs list at one fetch, oldest-liked first.

    Attributes:
        items: Tuple of LikedItem with unique item_id values.
    """

    items: tuple[LikedItem, ...] = ()

    @classmethod
    def empty(cls) -> "Snapshot":
        return cls(())

    @classmethod
    def of(cls, items: Iterable[LikedItem]) -> "Snapshot":
        return cls(tuple(items))

    @property
    def ids(self) -> frozenset[str]:
        return frozenset(item.item_id for item in self.items)

    def without(self, item_ids: Iterable[str]) -> "Snapshot":
        """Return a copy of this snapshot minus the given ids."""
        excluded = set(item_ids)
        if not excluded:
            return self
        return Snapshot(tuple(i for i in self.items if i.item_id not in excluded))

    def __iter__(self) -> Iterator[LikedItem]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __bool__(self) -> bool:
        return bool(self.items)


@dataclass(frozen=True)
class LikedPage:
    """
    One page of current_user_saved_tracks().

    Attributes:
        items: Raw saved-track objects, newest-liked first (Spotify order).
        has_next: False on the last page.
        total: Total number of liked songs reported by Spotify.
    """

    items: tuple[dict[str, Any], ...]
    has_next: bool
    total: int = 0
