"""playlist-agent - A tool-using LLM agent that builds Spotify playlists."""

from .platform.server.app import create_app
from .platform.settings import Settings


def app():
    """Create the FastAPI application instance."""
    settings = Settings()
    return create_app(settings)
