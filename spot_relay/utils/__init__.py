"""
Utility functions for spot-relay.

    - Filename sanitization (using yt-dlp's sanitize_filename)
    - Path helpers
    - Small formatting helpers used in logs and bot replies

Usage:
    from spot_relay.utils import (
        sanitize_filename,
        generate_track_filename,
        ensure_directory
    )
"""

from pathlib import Path

from yt_dlp.utils import sanitize_filename as yt_dlp_sanitize


# Keeps names under the 255-byte limit of common filesystems
MAX_FILENAME_STEM = 180


def sanitize_filename(name: str, restricted: bool = False) -> str:
    """
    Sanitize a string for use as a filename.

    Uses yt-dlp's sanitize_filename function for consistency with
    how yt-dlp names downloaded files.

    Examples:
        sanitize_filename("AC/DC")  # "AC⧸DC"
        sanitize_filename("What?")  # "What？"
    """
    return yt_dlp_sanitize(name, restricted=restricted)


def generate_track_filename(artist: str, title: str, extension: str = "m4a") -> str:
    """
    Generate the published filename for a track.

    Creates a filename in the format: {artist} - {title}.{ext}

    Example:
        generate_track_filename("Queen", "Bohemian Rhapsody")
        # Returns: "Queen - Bohemian Rhapsody.m4a"
    """
    stem = f"{sanitize_filename(artist)} - {sanitize_filename(title)}"
    stem = stem[:MAX_FILENAME_STEM].strip() or "track"
    return f"{stem}.{extension}"


def ensure_directory(path: Path) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Returns:
        The same path (for chaining).

    Raises:
        OSError: If directory cannot be created (permissions, etc.)
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def format_duration(seconds: int) -> str:
    """
    Format duration in seconds to "3:45" or "1:02:30".
    """
    if seconds < 3600:
        return f"{seconds // 60}:{seconds % 60:02d}"
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    return f"{hours}:{minutes:02d}:{seconds % 60:02d}"
