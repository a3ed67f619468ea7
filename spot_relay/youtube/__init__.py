"""
YouTube Music integration module for spot-relay.

Components:
    - YouTubeResult: Data model for YouTube search results
    - YouTubeMatcher: Finds the YouTube Music upload for a liked song
"""

from spot_relay.youtube.matcher import YouTubeMatcher
from spot_relay.youtube.models import YouTubeResult

__all__ = [
    "YouTubeResult",
    "YouTubeMatcher",
]
