"""
Spotify Web API client for spot-relay.

Thin wrapper around spotipy that exposes exactly what the sync engine
needs, and translates spotipy/requests failures into spot-relay
exceptions:

    authorize_url(state)                 -> URL the operator opens
    exchange_code(code)                  -> TokenGrant (access + refresh)
    refresh_access_token(refresh_token)  -> TokenGrant
    list_liked_songs(token, limit, offset) -> LikedPage

Authentication:
    The Authorization Code flow is driven from Telegram instead of a local
    browser: /auth returns the URL, the operator approves access, copies
    the ?code=... parameter from the redirect and sends /code <code>.
    spotipy's token cache is kept in memory only; the refresh token is
    persisted by CredentialStore.

Error Mapping:
    - OAuth errors, HTTP 401           -> AuthError(REJECTED)
    - HTTP 429                         -> FetchError(is_rate_limit=True)
    - Other HTTP errors, network errors -> FetchError
"""

import requests
import spotipy
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from spot_relay.core.credentials import TokenGrant
from spot_relay.core.exceptions import AuthError, AuthReason, FetchError
from spot_relay.core.logger import get_logger
from spot_relay.spotify.models import LikedPage

logger = get_logger(__name__)


# Scopes needed to read Liked Songs
SCOPES = ("user-library-read", "playlist-read-private")

# Spotify caps saved-tracks pages at 50
MAX_PAGE_SIZE = 50

# Seconds before a single HTTP request to Spotify is abandoned
REQUEST_TIMEOUT = 30


class CatalogClient:
    """
    Spotify client bound to one application (client id/secret).

    Attributes:
        _oauth: spotipy OAuth manager used for code exchange and refresh.
        _cache: In-memory token cache backing _oauth.
        _spotify: spotipy.Spotify instance for the last access token.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scopes: tuple[str, ...] = SCOPES
    ) -> None:
        self._cache = MemoryCacheHandler()
        self._oauth = SpotifyOAuth(
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=redirect_uri,
            scope=" ".join(scopes),
            cache_handler=self._cache,
            open_browser=False,
            requests_timeout=REQUEST_TIMEOUT,
        )
        self._spotify: spotipy.Spotify | None = None
        self._spotify_token: str | None = None

    # =========================================================================
    # Authorization
    # =========================================================================

    def authorize_url(self, state: str | None = None) -> str:
        """Build the Spotify consent URL for the configured scopes."""
        return self._oauth.get_authorize_url(state=state)

    def exchange_code(self, code: str) -> TokenGrant:
        """
        Exchange a one-time authorization code for tokens.

        The refresh token is read from the response to this exchange, never
        from the shared token cache that refreshes also write to.

        Raises:
            AuthError: If Spotify rejects the code.
            FetchError: On network failure.
        """
        try:
            token_info = self._oauth.get_access_token(
                code, as_dict=True, check_cache=False
            )
        except SpotifyOauthError as e:
            raise AuthError(
                f"Spotify rejected the authorization code: {e}",
                reason=AuthReason.REJECTED,
                details={"original_error": str(e)}
            ) from e
        except requests.exceptions.RequestException as e:
            raise FetchError(
                f"Network error during code exchange: {e}",
                details={"original_error": str(e)}
            ) from e

        return TokenGrant(
            access_token=token_info["access_token"],
            refresh_token=token_info.get("refresh_token"),
            expires_in=token_info.get("expires_in", 3600),
        )

    def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        """
        Exchange a refresh token for a new access token.

        Raises:
            AuthError: If Spotify rejects the refresh token (expired/revoked).
            FetchError: On network failure.
        """
        try:
            token_info = self._oauth.refresh_access_token(refresh_token)
        except SpotifyOauthError as e:
            raise AuthError(
                f"Spotify rejected the refresh token: {e}",
                reason=AuthReason.REJECTED,
                details={"original_error": str(e)}
            ) from e
        except requests.exceptions.RequestException as e:
            raise FetchError(
                f"Network error during token refresh: {e}",
                details={"original_error": str(e)}
            ) from e

        return TokenGrant(
            access_token=token_info["access_token"],
            refresh_token=token_info.get("refresh_token"),
            expires_in=token_info.get("expires_in", 3600),
        )

    # =========================================================================
    # User Library Operations
    # =========================================================================

    def _client_for(self, access_token: str) -> spotipy.Spotify:
        if self._spotify is None or self._spotify_token != access_token:
            self._spotify = spotipy.Spotify(
                auth=access_token,
                requests_timeout=REQUEST_TIMEOUT,
            )
            self._spotify_token = access_token
        return self._spotify

    def list_liked_songs(
        self,
        access_token: str,
        limit: int = MAX_PAGE_SIZE,
        offset: int = 0
    ) -> LikedPage:
        """
        Get one page of the user's Liked Songs, newest first.

        Args:
            access_token: Token from refresh_access_token().
            limit: Page size (capped at 50).
            offset: Index of first track to return.

        Raises:
            AuthError: If the access token is invalid (401).
            FetchError: If rate limited, on server errors or network errors.
        """
        try:
            result = self._client_for(access_token).current_user_saved_tracks(
                limit=min(limit, MAX_PAGE_SIZE),
                offset=offset
            )
        except spotipy.SpotifyException as e:
            if e.http_status == 401:
                raise AuthError(
                    "Authentication expired or invalid for accessing Liked Songs",
                    reason=AuthReason.REJECTED,
                    details={"http_status": 401}
                ) from e
            if e.http_status == 429:
                raise FetchError(
                    "Rate limited while fetching saved tracks",
                    details={"http_status": 429, "offset": offset},
                    is_rate_limit=True
                ) from e
            raise FetchError(
                f"Failed to fetch saved tracks: {e}",
                details={"http_status": e.http_status, "offset": offset}
            ) from e
        except requests.exceptions.RequestException as e:
            raise FetchError(
                f"Network error while fetching saved tracks: {e}",
                details={"offset": offset, "original_error": str(e)}
            ) from e

        if result is None:
            raise FetchError(
                "Spotify returned an empty response for saved tracks",
                details={"offset": offset, "limit": limit}
            )

        return LikedPage(
            items=tuple(result.get("items") or ()),
            has_next=result.get("next") is not None,
            total=result.get("total") or 0,
        )
