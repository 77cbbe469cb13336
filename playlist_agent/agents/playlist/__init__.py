"""Spotify playlist agent."""

from playlist_agent.agents.playlist.agent import PlaylistAgentBuilder
from playlist_agent.agents.playlist.routes import playlist_router

__all__ = ["PlaylistAgentBuilder", "playlist_router"]
