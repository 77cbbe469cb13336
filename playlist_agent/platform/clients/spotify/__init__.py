"""Spotify Web API client and credential providers."""

from playlist_agent.platform.clients.spotify.auth import (
    RefreshingCredentialProvider,
    StaticCredentialProvider,
)
from playlist_agent.platform.clients.spotify.client import SpotifyClient
from playlist_agent.platform.clients.spotify.exceptions import (
    SpotifyApiError,
    SpotifyAuthError,
    TokenRefreshError,
)

__all__ = [
    "RefreshingCredentialProvider",
    "SpotifyApiError",
    "SpotifyAuthError",
    "SpotifyClient",
    "StaticCredentialProvider",
    "TokenRefreshError",
]
