"""
Data models for YouTube Music search results.
"""

from dataclasses import dataclass
from typing import Any


def _parse_duration(duration_str: str | None) -> int:
    """
    Parse duration string to seconds.

    Examples:
        "3:33" -> 213
        "1:02:15" -> 3735
        None -> 0
    """
    if not duration_str:
        return 0

    try:
        parts = [int(p) for p in duration_str.split(":")]
    except (ValueError, TypeError):
        return 0

    if len(parts) == 2:
        minutes, seconds = parts
        return minutes * 60 + seconds
    if len(parts) == 3:
        hours, minutes, seconds = parts
        return hours * 3600 + minutes * 60 + seconds
    return 0


def _parse_views(views_data: Any) -> int | None:
    """Parse view counts like 1500, "1.5M views" or "12K"."""
    if not views_data:
        return None
    if isinstance(views_data, int):
        return views_data
    if not isinstance(views_data, str):
        return None

    views_str = views_data.lower().replace(",", "").replace(" views", "").strip()
    try:
        if "b" in views_str:
            return int(float(views_str.replace("b", "")) * 1_000_000_000)
        if "m" in views_str:
            return int(float(views_str.replace("m", "")) * 1_000_000)
        if "k" in views_str:
            return int(float(views_str.replace("k", "")) * 1_000)
        return int(views_str)
    except (ValueError, TypeError):
        return None


@dataclass(frozen=True)
class YouTubeResult:
    """
    Immutable representation of a YouTube Music search result.

    Attributes:
        video_id: YouTube video ID (11-character string).
        url: music.youtube.com URL for songs, www.youtube.com for videos.
        title: Video/song title as it appears on YouTube.
        author: Primary artist or channel name.
        duration_seconds: Duration used to reject wrong versions.
        is_verified: True for official YouTube Music songs.
        artists: All artist names (may be empty for uploads).
        album: Album name (songs only).
        is_explicit: Explicit flag if YouTube Music reports one.
        views: View count if available.
        result_type: "song" or "video".
    """

    video_id: str
    url: str
    title: str
    author: str
    duration_seconds: int
    is_verified: bool

    artists: tuple[str, ...] = ()
    album: str | None = None
    is_explicit: bool | None = None
    views: int | None = None
    result_type: str = "video"

    @classmethod
    def from_ytmusic_result(cls, result: dict[str, Any]) -> "YouTubeResult":
        """Create a YouTubeResult from one YTMusic.search() entry."""
        video_id = result.get("videoId", "")

        result_type = result.get("resultType", "video")
        if result_type == "song":
            url = f"https://music.youtube.com/watch?v={video_id}"
        else:
            url = f"https://www.youtube.com/watch?v={video_id}"

        artists_data = result.get("artists", [])
        if artists_data and isinstance(artists_data, list):
            artists = tuple(
                a.get("name", "") for a in artists_data
                if isinstance(a, dict) and a.get("name")
            )
        else:
            artists = ()
        author = artists[0] if artists else ""

        duration_seconds = _parse_duration(result.get("duration"))
        if duration_seconds == 0 and "duration_seconds" in result:
            try:
                duration_seconds = int(result["duration_seconds"])
            except (ValueError, TypeError):
                pass

        album_data = result.get("album")
        album = None
        if isinstance(album_data, dict):
            album = album_data.get("name")
        elif isinstance(album_data, str):
            album = album_data

        return cls(
            video_id=video_id,
            url=url,
            title=result.get("title", ""),
            author=author,
            duration_seconds=duration_seconds,
            is_verified=result_type == "song",
            artists=artists,
            album=album,
            is_explicit=result.get("isExplicit"),
            views=_parse_views(result.get("views")),
            result_type=result_type,
        )
