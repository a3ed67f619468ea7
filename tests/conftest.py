"""Test configuration and fixtures"""

import tempfile
from pathlib import Path

import pytest

from spot_relay.core.config import SyncConfig
from spot_relay.core.credentials import TokenGrant
from spot_relay.core.exceptions import AcquisitionError, AuthError, PublishError
from spot_relay.download.acquirer import TrackHandle
from spot_relay.spotify.models import LikedItem, LikedPage


def make_saved_track(track_id, name="Test Song", artist="Test Artist", **overrides):
    """Saved-track object shaped like current_user_saved_tracks() items"""
    track = {
        'id': track_id,
        'name': name,
        'artists': [{'id': 'artist_123', 'name': artist}],
        'album': {'id': 'album_123', 'name': 'Test Album'},
        'duration_ms': 210000,  # 3:30
        'explicit': False,
        'is_local': False,
        'external_ids': {'isrc': 'USRC17607839'},
        'external_urls': {'spotify': f'https://open.spotify.com/track/{track_id}'},
    }
    track.update(overrides)
    return {'added_at': '2024-01-01T00:00:00Z', 'track': track}


def make_item(item_id, title=None, artist="Test Artist"):
    return LikedItem(
        item_id=item_id,
        title=title or f"Song {item_id}",
        primary_artist=artist,
        album_name="Test Album",
        source_url=f"https://open.spotify.com/track/{item_id}",
        artists=(artist,),
        duration_ms=210000,
    )


class FakeCatalog:
    """
    In-memory stand-in for CatalogClient.

    liked holds saved-track objects newest first, like Spotify returns them.
    """

    def __init__(self, liked=None, refresh_token="refresh-1"):
        self.liked = list(liked or [])
        self.refresh_token = refresh_token
        self.rotate_to = None
        self.reject_refresh = False
        self.reject_code = False
        self.page_calls = []
        self.page_errors = []

    def authorize_url(self, state=None):
        return f"https://accounts.spotify.com/authorize?client_id=abc&state={state}"

    def exchange_code(self, code):
        if self.reject_code:
            raise AuthError("invalid_grant")
        return TokenGrant(access_token="access-1", refresh_token=self.refresh_token)

    def refresh_access_token(self, refresh_token):
        if self.reject_refresh:
            raise AuthError("refresh token revoked")
        return TokenGrant(access_token=f"access-for-{refresh_token}", refresh_token=self.rotate_to)

    def list_liked_songs(self, access_token, limit=50, offset=0):
        self.page_calls.append((limit, offset))
        if self.page_errors:
            raise self.page_errors.pop(0)
        items = self.liked[offset:offset + limit]
        return LikedPage(
            items=tuple(items),
            has_next=offset + limit < len(self.liked),
            total=len(self.liked),
        )

    def like(self, track_id, **kwargs):
        """Like a song now: it goes to the front of the list"""
        self.liked.insert(0, make_saved_track(track_id, **kwargs))


class FakeAcquirer:
    """Resolves every item except those in not_found / broken"""

    def __init__(self):
        self.not_found = set()
        self.broken = set()
        self.resolved = []
        self.downloaded = []

    def resolve(self, item):
        self.resolved.append(item.item_id)
        if item.item_id in self.not_found:
            return None
        return TrackHandle(item=item, youtube_url=f"https://music.youtube.com/watch?v={item.item_id}")

    def download(self, handle, destination_dir):
        if handle.item.item_id in self.broken:
            raise AcquisitionError("yt-dlp error: Video unavailable")
        path = destination_dir / handle.filename
        path.write_bytes(b"fake audio")
        self.downloaded.append(handle.item.item_id)
        return path


class FakePublisher:
    """Records sent audio; raises PublishError for titles in failing"""

    def __init__(self):
        self.failing = set()
        self.sent = []
        self.sent_paths = []

    def send_audio(self, chat_id, path, title=None, performer=None):
        if title in self.failing:
            raise PublishError("Telegram API error 400 on sendAudio: Bad Request")
        assert path.exists()
        self.sent.append((chat_id, title, performer))
        self.sent_paths.append(path)
        return {"message_id": len(self.sent)}


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def sample_track_data():
    """Sample saved-track data for testing"""
    return make_saved_track('4cOdK2wGLETKBW3PvgPWqT', name='Bohemian Rhapsody', artist='Queen')


@pytest.fixture
def fake_catalog():
    return FakeCatalog()


@pytest.fixture
def fake_acquirer():
    return FakeAcquirer()


@pytest.fixture
def fake_publisher():
    return FakePublisher()


@pytest.fixture
def sync_config():
    """Sync config with no waiting"""
    return SyncConfig(
        interval_seconds=0,
        error_backoff_seconds=0,
        fetch_retry_delay=0,
    )


@pytest.fixture
def item_factory():
    return make_item


@pytest.fixture
def saved_track_factory():
    return make_saved_track
