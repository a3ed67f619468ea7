"""
Persistent Spotify credential storage.

Only the long-lived refresh token is persisted; short-lived access tokens
are exchanged for it at the start of every sync cycle and never written
to disk.

The token file is plain text (the token itself), overwritten on every new
authorization and whenever Spotify rotates the refresh token. It is
created with owner-only permissions where the platform supports it.

Thread Safety:
    The command handler (/code) writes while the sync loop reads, so every
    operation runs under one lock.
"""

import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from spot_relay.core.exceptions import AuthError, AuthReason
from spot_relay.core.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TokenGrant:
    """
    Result of a Spotify token exchange.

    Attributes:
        access_token: Short-lived bearer token for Web API calls.
        refresh_token: Long-lived token, or None when Spotify did not
                       rotate it during a refresh.
        expires_in: Access token lifetime in seconds.
    """
    access_token: str
    refresh_token: str | None = None
    expires_in: int = 3600


class TokenExchanger(Protocol):
    def exchange_code(self, code: str) -> TokenGrant: ...
    def refresh_access_token(self, refresh_token: str) -> TokenGrant: ...


class CredentialStore:
    """
    Owner of the refresh-token file.

    Attributes:
        path: Location of the token file.
    """

    def __init__(self, path: Path, exchanger: TokenExchanger) -> None:
        self.path = path
        self._exchanger = exchanger
        self._lock = threading.Lock()

    def _load_unlocked(self) -> str | None:
        try:
            token = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        return token or None

    def _save_unlocked(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(prefix=".token-", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(token)
                f.flush()
                os.fsync(f.fileno())
            try:
                os.chmod(tmp_name, 0o600)
            except OSError:
                # chmod is not meaningful on every platform
                pass
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def load(self) -> str | None:
        """Return the stored refresh token, or None if none was saved."""
        with self._lock:
            return self._load_unlocked()

    def has_token(self) -> bool:
        return self.load() is not None

    def save(self, token: str) -> None:
        """Persist a refresh token, replacing any previous one."""
        token = token.strip()
        if not token:
            raise ValueError("Refusing to save an empty refresh token")
        with self._lock:
            self._save_unlocked(token)
        logger.debug(f"Refresh token saved to {self.path}")

    def refresh(self) -> str:
        """
        Exchange the stored refresh token for a fresh access token.

        Returns:
            The access token.

        Raises:
            AuthError(NO_TOKEN): No refresh token has ever been saved.
            AuthError(REJECTED): Spotify refused the refresh token.
        """
        with self._lock:
            refresh_token = self._load_unlocked()
            if refresh_token is None:
                raise AuthError(
                    "No refresh token found. Run /auth and /code first.",
                    reason=AuthReason.NO_TOKEN,
                    details={"file_path": str(self.path)}
                )

            grant = self._exchanger.refresh_access_token(refresh_token)

            if grant.refresh_token and grant.refresh_token != refresh_token:
                logger.info("Spotify rotated the refresh token, saving the new one")
                self._save_unlocked(grant.refresh_token)

            return grant.access_token

    def authorize(self, code: str) -> TokenGrant:
        """
        Exchange a one-time authorization code and persist the refresh token.

        The exchange and the write run under the store lock, so a refresh
        from the sync loop cannot interleave with them.

        Raises:
            AuthError(REJECTED): The code was refused, or the grant did not
                                 include a refresh token.
        """
        with self._lock:
            grant = self._exchanger.exchange_code(code)
            refresh_token = (grant.refresh_token or "").strip()
            if not refresh_token:
                raise AuthError(
                    "Spotify did not return a refresh token",
                    reason=AuthReason.REJECTED
                )
            self._save_unlocked(refresh_token)
        logger.debug(f"Refresh token saved to {self.path}")
        return grant
