"""Spotify tools exposed to the playlist agent.

Each tool is a ToolDefinition: a pydantic model the model's arguments are
validated against, and a handler that calls the Spotify client with the
turn's credentials.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from playlist_agent.platform.agent.registry import ToolContext, ToolDefinition
from playlist_agent.platform.clients.spotify import SpotifyClient

MAX_SEARCH_LIMIT = 50
MAX_TRACKS_PER_REQUEST = 100


class SearchTracksArgs(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    query: str = Field(min_length=1, description="Track name, artist, album or keywords")
    limit: int = Field(
        default=5,
        gt=0,
        le=MAX_SEARCH_LIMIT,
        description="Maximum number of tracks to return",
    )


class CreatePlaylistArgs(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, description="Playlist name")
    description: str = Field(default="", description="Playlist description")
    public: bool = Field(default=True, description="Whether the playlist is public")
    collaborative: bool = Field(default=False, description="Whether others may edit it")


class AddTracksArgs(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    playlistId: str = Field(min_length=1, description="Id of the playlist to add tracks to")  # noqa: N815
    trackUris: list[str] = Field(  # noqa: N815
        min_length=1,
        max_length=MAX_TRACKS_PER_REQUEST,
        description="Spotify track URIs (spotify:track:...)",
    )

    @field_validator("trackUris", mode="before")
    @classmethod
    def _wrap_single_uri(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("trackUris")
    @classmethod
    def _reject_blank_uris(cls, v: list[str]) -> list[str]:
        if any(not uri for uri in v):
            raise ValueError("track URIs must not be empty")
        return v


def build_playlist_tools(spotify: SpotifyClient) -> list[ToolDefinition]:
    """Create the playlist agent's tools bound to a Spotify client."""

    async def search_tracks(args: SearchTracksArgs, context: ToolContext) -> list[dict[str, Any]]:
        return await spotify.search_tracks(context.credentials, args.query, args.limit)

    async def create_playlist(args: CreatePlaylistArgs, context: ToolContext) -> dict[str, Any]:
        return await spotify.create_playlist(
            context.credentials,
            name=args.name,
            description=args.description,
            public=args.public,
            collaborative=args.collaborative,
        )

    async def add_tracks_to_playlist(args: AddTracksArgs, context: ToolContext) -> dict[str, Any]:
        return await spotify.add_tracks(context.credentials, args.playlistId, args.trackUris)

    return [
        ToolDefinition(
            name="search_tracks",
            description="Search for tracks on Spotify by name, artist, or album",
            input_model=SearchTracksArgs,
            handler=search_tracks,
            idempotent=True,
        ),
        ToolDefinition(
            name="create_playlist",
            description="Create a new playlist on Spotify",
            input_model=CreatePlaylistArgs,
            handler=create_playlist,
        ),
        ToolDefinition(
            name="add_tracks_to_playlist",
            description="Add tracks to an existing playlist",
            input_model=AddTracksArgs,
            handler=add_tracks_to_playlist,
        ),
    ]
