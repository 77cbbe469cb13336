"""Exceptions raised by the Spotify client.

They extend the agent error taxonomy so tool handlers can let them propagate:
API failures are ToolExecutionErrors the executor may retry and then reports
back to the model, credential failures are AuthErrors that end the turn.
"""

from playlist_agent.platform.agent.errors import AuthError, ToolExecutionError


class SpotifyApiError(ToolExecutionError):
    """Raised when a Spotify Web API request fails."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        *,
        transient: bool = False,
        dispatched: bool = True,
        retry_after: float | None = None,
    ):
        status_info = f" (HTTP {status_code})" if status_code else ""
        super().__init__(
            f"Spotify API error{status_info}: {message}",
            status_code=status_code,
            transient=transient,
            dispatched=dispatched,
            retry_after=retry_after,
        )


class SpotifyAuthError(AuthError):
    """Raised when no usable Spotify access token is available."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class TokenRefreshError(SpotifyAuthError):
    """Raised when the refresh-token grant fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(f"Token refresh failed: {message}", status_code=status_code)
