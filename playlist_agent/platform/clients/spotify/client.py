"""Spotify Web API client.

Thin async wrapper over the three endpoints the playlist agent uses. Every
failure is mapped onto the agent error taxonomy:

- 429: transient, not applied downstream (honours ``Retry-After``)
- 5xx and read timeouts: transient, possibly applied downstream
- connection failures: transient, never reached Spotify
- 401: the token is invalidated and the request retried once with a fresh one
  when the provider can renew it, otherwise SpotifyAuthError
- any other non-2xx: permanent SpotifyApiError with the status preserved
"""

import logging
from typing import Any
from urllib.parse import quote

import httpx
from opentelemetry import propagate

from playlist_agent.platform.agent.protocol import CredentialProvider
from playlist_agent.platform.clients.spotify.exceptions import SpotifyApiError, SpotifyAuthError
from playlist_agent.platform.constants import USER_AGENT
from playlist_agent.platform.observability import correlation_id_ctx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.spotify.com/v1"


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


def _error_message(response: httpx.Response) -> str:
    """Spotify error bodies look like ``{"error": {"status": 404, "message": "..."}}``."""
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or response.text[:200]
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or response.reason_phrase)
    if isinstance(error, str):
        return body.get("error_description") or error
    return response.reason_phrase


def _track_descriptor(track: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": track.get("id"),
        "uri": track.get("uri"),
        "name": track.get("name"),
        "artists": [artist.get("name") for artist in track.get("artists", [])],
        "album": (track.get("album") or {}).get("name"),
        "duration_ms": track.get("duration_ms"),
    }


class SpotifyClient:
    """Async client for the Spotify Web API.

    The HTTP client is shared and owned by the application; credentials are
    passed per call because they belong to the turn, not to the client.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 15.0,
    ):
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds

    async def search_tracks(
        self,
        credentials: CredentialProvider | None,
        query: str,
        limit: int = 5,
    ) -> list[dict[str, Any]]:
        """Search the catalogue for tracks, best match first."""
        body = await self._request(
            credentials,
            "GET",
            "/search",
            params={"q": query, "type": "track", "limit": limit},
        )
        items = (body.get("tracks") or {}).get("items") or []
        return [_track_descriptor(track) for track in items if track]

    async def create_playlist(
        self,
        credentials: CredentialProvider | None,
        name: str,
        description: str = "",
        public: bool = True,
        collaborative: bool = False,
    ) -> dict[str, Any]:
        """Create a playlist owned by the credential's user."""
        user_id = await self.current_user_id(credentials)
        body = await self._request(
            credentials,
            "POST",
            f"/users/{quote(user_id, safe='')}/playlists",
            json={
                "name": name,
                "description": description,
                "public": public,
                "collaborative": collaborative,
            },
        )
        return {
            "id": body.get("id"),
            "uri": body.get("uri"),
            "name": body.get("name"),
            "url": (body.get("external_urls") or {}).get("spotify"),
        }

    async def add_tracks(
        self,
        credentials: CredentialProvider | None,
        playlist_id: str,
        track_uris: list[str],
    ) -> dict[str, Any]:
        """Append tracks to a playlist."""
        body = await self._request(
            credentials,
            "POST",
            f"/playlists/{quote(playlist_id, safe='')}/tracks",
            json={"uris": track_uris},
        )
        return {
            "playlist_id": playlist_id,
            "snapshot_id": body.get("snapshot_id"),
            "added": len(track_uris),
        }

    async def current_user_id(self, credentials: CredentialProvider | None) -> str:
        """Return the user id known to the provider, asking Spotify when it has none.

        Raises:
            SpotifyAuthError: If no user id can be determined
        """
        if credentials is not None:
            user_id = await credentials.get_user_id()
            if user_id:
                return user_id
        body = await self._request(credentials, "GET", "/me")
        user_id = body.get("id")
        if not user_id:
            raise SpotifyAuthError("No Spotify user id available")
        return user_id

    async def _request(
        self,
        credentials: CredentialProvider | None,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if credentials is None:
            raise SpotifyAuthError("No Spotify access token available")

        token = await credentials.get_access_token()
        response = await self._send(method, path, token, params=params, json=json)

        if response.status_code == httpx.codes.UNAUTHORIZED:
            if await credentials.invalidate(token):
                logger.info("Spotify rejected the access token; retrying %s %s once", method, path)
                token = await credentials.get_access_token()
                response = await self._send(method, path, token, params=params, json=json)
            if response.status_code == httpx.codes.UNAUTHORIZED:
                raise SpotifyAuthError(
                    f"Spotify rejected the access token: {_error_message(response)}",
                    status_code=response.status_code,
                )

        if response.is_success:
            if not response.content:
                return {}
            return response.json()

        raise self._api_error(method, path, response)

    async def _send(
        self,
        method: str,
        path: str,
        token: str,
        *,
        params: dict[str, Any] | None,
        json: dict[str, Any] | None,
    ) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {token}",
            "User-Agent": USER_AGENT,
        }
        propagate.inject(headers)
        correlation_id = correlation_id_ctx.get()
        if correlation_id:
            headers["X-Request-ID"] = correlation_id

        url = f"{self._base_url}{path}"
        try:
            return await self._http.request(
                method,
                url,
                params=params,
                json=json,
                headers=headers,
                timeout=self._timeout,
            )
        except (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout) as e:
            raise SpotifyApiError(
                f"could not reach Spotify: {type(e).__name__}",
                transient=True,
                dispatched=False,
            ) from e
        except httpx.TimeoutException as e:
            raise SpotifyApiError(
                f"{method} {path} timed out",
                transient=True,
                dispatched=True,
            ) from e
        except httpx.TransportError as e:
            raise SpotifyApiError(
                f"{method} {path} failed: {type(e).__name__}",
                transient=True,
                dispatched=True,
            ) from e

    @staticmethod
    def _api_error(method: str, path: str, response: httpx.Response) -> SpotifyApiError:
        status = response.status_code
        message = f"{method} {path}: {_error_message(response)}"
        if status == httpx.codes.TOO_MANY_REQUESTS:
            return SpotifyApiError(
                message,
                status_code=status,
                transient=True,
                dispatched=False,
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            )
        if status >= 500:
            return SpotifyApiError(message, status_code=status, transient=True, dispatched=True)
        return SpotifyApiError(message, status_code=status)
