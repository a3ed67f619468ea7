"""
Download module for spot-relay.

Components:
    - Downloader: yt-dlp wrapper with classified retries
    - AudioAcquirer: resolve (YouTube Music match) + download
    - TrackHandle: a liked song with its chosen source
"""

from spot_relay.download.acquirer import AudioAcquirer, TrackHandle
from spot_relay.download.downloader import Downloader, ErrorType, classify_error

__all__ = [
    "AudioAcquirer",
    "TrackHandle",
    "Downloader",
    "ErrorType",
    "classify_error",
]
