"""Unit tests for the playlist agent's tool definitions."""

from unittest.mock import AsyncMock, Mock

import pytest
from pydantic import ValidationError

from playlist_agent.agents.playlist.tools import (
    AddTracksArgs,
    CreatePlaylistArgs,
    SearchTracksArgs,
    build_playlist_tools,
)
from playlist_agent.platform.agent.registry import ToolContext
from playlist_agent.platform.clients.spotify import SpotifyClient, StaticCredentialProvider


class TestSearchTracksArgs:
    def test_defaults(self):
        args = SearchTracksArgs(query="  Bohemian Rhapsody ")
        assert args.query == "Bohemian Rhapsody"
        assert args.limit == 5

    @pytest.mark.parametrize("query", ["", "   "])
    def test_blank_query(self, query):
        with pytest.raises(ValidationError):
            SearchTracksArgs(query=query)

    @pytest.mark.parametrize("limit", [0, 51])
    def test_limit_bounds(self, limit):
        with pytest.raises(ValidationError):
            SearchTracksArgs(query="jazz", limit=limit)


class TestCreatePlaylistArgs:
    def test_defaults(self):
        args = CreatePlaylistArgs(name="Morning Workout")
        assert args.description == ""
        assert args.public is True
        assert args.collaborative is False

    def test_empty_name(self):
        with pytest.raises(ValidationError) as exc_info:
            CreatePlaylistArgs(name="")

        assert exc_info.value.errors()[0]["loc"] == ("name",)


class TestAddTracksArgs:
    def test_accepts_uri_list(self):
        args = AddTracksArgs(playlistId="pl1", trackUris=["spotify:track:a", "spotify:track:b"])
        assert args.trackUris == ["spotify:track:a", "spotify:track:b"]

    def test_single_uri_is_wrapped(self):
        args = AddTracksArgs(playlistId="pl1", trackUris="spotify:track:a")
        assert args.trackUris == ["spotify:track:a"]

    def test_empty_list(self):
        with pytest.raises(ValidationError):
            AddTracksArgs(playlistId="pl1", trackUris=[])

    def test_too_many_uris(self):
        with pytest.raises(ValidationError):
            AddTracksArgs(playlistId="pl1", trackUris=[f"spotify:track:{i}" for i in range(101)])

    def test_blank_uri(self):
        with pytest.raises(ValidationError):
            AddTracksArgs(playlistId="pl1", trackUris=["spotify:track:a", " "])

    def test_missing_playlist_id(self):
        with pytest.raises(ValidationError):
            AddTracksArgs(trackUris=["spotify:track:a"])


class TestBuildPlaylistTools:
    """Tests for the tool definitions bound to a Spotify client."""

    @pytest.fixture
    def spotify(self) -> Mock:
        spotify = Mock(spec=SpotifyClient)
        spotify.search_tracks = AsyncMock(return_value=[])
        spotify.create_playlist = AsyncMock(return_value={"id": "pl1"})
        spotify.add_tracks = AsyncMock(return_value={"added": 1})
        return spotify

    def test_names_and_idempotency(self, spotify):
        tools = {tool.name: tool for tool in build_playlist_tools(spotify)}

        assert list(tools) == ["search_tracks", "create_playlist", "add_tracks_to_playlist"]
        assert tools["search_tracks"].idempotent
        assert not tools["create_playlist"].idempotent
        assert not tools["add_tracks_to_playlist"].idempotent

    def test_schemas_use_wire_names(self, spotify):
        tools = {tool.name: tool for tool in build_playlist_tools(spotify)}

        schema = tools["add_tracks_to_playlist"].input_schema
        assert set(schema["required"]) == {"playlistId", "trackUris"}

    async def test_handlers_pass_turn_credentials(self, spotify):
        tools = {tool.name: tool for tool in build_playlist_tools(spotify)}
        credentials = StaticCredentialProvider("token")
        context = ToolContext(thread_id="t-1", credentials=credentials)

        await tools["search_tracks"].handler(SearchTracksArgs(query="jazz", limit=3), context)
        await tools["create_playlist"].handler(CreatePlaylistArgs(name="Jazz", public=False), context)
        await tools["add_tracks_to_playlist"].handler(
            AddTracksArgs(playlistId="pl1", trackUris=["spotify:track:a"]), context
        )

        spotify.search_tracks.assert_awaited_once_with(credentials, "jazz", 3)
        spotify.create_playlist.assert_awaited_once_with(
            credentials, name="Jazz", description="", public=False, collaborative=False
        )
        spotify.add_tracks.assert_awaited_once_with(credentials, "pl1", ["spotify:track:a"])
