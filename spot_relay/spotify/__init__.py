"""
Spotify module for spot-relay.

    - client: spotipy wrapper (authorization + Liked Songs pages)
    - models: LikedItem, Snapshot, LikedPage
    - fetcher: SnapshotFetcher with an explicit RetryPolicy
"""

from spot_relay.spotify.client import SCOPES, CatalogClient
from spot_relay.spotify.fetcher import RetryPolicy, SnapshotFetcher
from spot_relay.spotify.models import LikedItem, LikedPage, Snapshot

__all__ = [
    "SCOPES",
    "CatalogClient",
    "RetryPolicy",
    "SnapshotFetcher",
    "LikedItem",
    "LikedPage",
    "Snapshot",
]
