"""Spotify credential dependencies for FastAPI routes."""

from typing import Annotated

from fastapi import Header, HTTPException, status

from playlist_agent.platform.agent.protocol import CredentialProvider
from playlist_agent.platform.clients.spotify import StaticCredentialProvider


def get_spotify_credentials(
    authorization: Annotated[str | None, Header()] = None,
    x_spotify_user_id: Annotated[str | None, Header()] = None,
) -> CredentialProvider | None:
    """Build credentials from the caller's ``Authorization: Bearer`` header.

    Returns None when the header is absent, so the agent falls back to its
    default (service account) credentials.

    Raises:
        HTTPException: 401 if the header is present but not a bearer token
    """
    if authorization is None:
        return None

    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header must be 'Bearer <spotify access token>'",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return StaticCredentialProvider(token, user_id=x_spotify_user_id or None)
