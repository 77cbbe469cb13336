"""Spotify credential providers.

- StaticCredentialProvider: a token handed over by the caller (e.g. from the
  ``Authorization`` header); it cannot be renewed
- RefreshingCredentialProvider: OAuth refresh-token grant against the Spotify
  accounts service; concurrent callers share a single refresh
"""

import asyncio
import logging
from time import monotonic

import httpx

from playlist_agent.platform.clients.spotify.exceptions import (
    SpotifyAuthError,
    TokenRefreshError,
)
from playlist_agent.platform.constants import USER_AGENT

logger = logging.getLogger(__name__)


class StaticCredentialProvider:
    """Credential provider for a caller-supplied access token."""

    def __init__(self, access_token: str | None, user_id: str | None = None):
        self._access_token = access_token
        self._user_id = user_id

    async def get_access_token(self) -> str:
        if not self._access_token:
            raise SpotifyAuthError("No Spotify access token available")
        return self._access_token

    async def get_user_id(self) -> str | None:
        return self._user_id

    async def invalidate(self, token: str) -> bool:
        # A static token cannot be renewed
        return False


class RefreshingCredentialProvider:
    """Credential provider using the OAuth refresh-token grant.

    The access token is cached until shortly before it expires. Refreshes are
    single-flight: the first caller refreshes under a lock and everyone who was
    waiting re-checks the cache before starting another one.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        token_url: str,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        user_id: str | None = None,
        expiry_margin_seconds: float = 60.0,
        timeout_seconds: float = 15.0,
    ):
        """Initialize the provider.

        Args:
            http_client: Shared HTTP client
            token_url: Spotify accounts token endpoint
            client_id: OAuth client id
            client_secret: OAuth client secret
            refresh_token: Long-lived refresh token of the account to act as
            user_id: Spotify user id of that account, if known
            expiry_margin_seconds: Refresh this long before the token expires
            timeout_seconds: Timeout for the token request
        """
        self._http = http_client
        self._token_url = token_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._user_id = user_id
        self._expiry_margin = expiry_margin_seconds
        self._timeout = timeout_seconds
        self._access_token: str | None = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()
        self.refresh_count = 0

    async def get_access_token(self) -> str:
        token = self._cached_token()
        if token is not None:
            return token

        async with self._lock:
            # Another caller may have refreshed while we waited
            token = self._cached_token()
            if token is not None:
                return token
            return await self._refresh()

    async def get_user_id(self) -> str | None:
        return self._user_id

    async def invalidate(self, token: str) -> bool:
        async with self._lock:
            if self._access_token == token:
                self._access_token = None
                self._expires_at = 0.0
        return True

    def _cached_token(self) -> str | None:
        if self._access_token and monotonic() < self._expires_at:
            return self._access_token
        return None

    async def _refresh(self) -> str:
        try:
            response = await self._http.post(
                self._token_url,
                data={"grant_type": "refresh_token", "refresh_token": self._refresh_token},
                auth=(self._client_id, self._client_secret),
                headers={"User-Agent": USER_AGENT},
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            raise TokenRefreshError(f"{type(e).__name__}: {e}") from e

        if response.status_code != 200:
            raise TokenRefreshError(
                f"token endpoint returned {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
            access_token = payload.get("access_token")
            expires_in = float(payload.get("expires_in", 3600))
        except (ValueError, TypeError, AttributeError) as e:
            raise TokenRefreshError(f"token endpoint returned a malformed body: {e}") from e
        if not access_token:
            raise TokenRefreshError("token endpoint returned no access_token")

        self._access_token = access_token
        self._expires_at = monotonic() + max(expires_in - self._expiry_margin, 0.0)
        # Spotify may rotate the refresh token
        if payload.get("refresh_token"):
            self._refresh_token = payload["refresh_token"]
        self.refresh_count += 1

        logger.info("Refreshed Spotify access token (expires in %ss)", int(expires_in))
        return access_token
