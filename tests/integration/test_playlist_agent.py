"""End-to-end tests of the playlist agent.

The agent is built by PlaylistAgentBuilder with the real Spotify client and
tools; Spotify is mocked at the HTTP layer with respx and the model is
scripted.
"""

import httpx
import pytest
import respx

from playlist_agent.agents.playlist.agent import PlaylistAgentBuilder
from playlist_agent.platform.agent.config import AgentIdentity, LlmConfig
from playlist_agent.platform.agent.messages import FinalAnswer, Role, ToolCall, ToolRequest
from playlist_agent.platform.clients.spotify import SpotifyClient, StaticCredentialProvider

API = "https://api.spotify.com/v1"

QUEEN = {
    "id": "4u7EnebtmKWzUH433cf5Qv",
    "uri": "spotify:track:4u7EnebtmKWzUH433cf5Qv",
    "name": "Bohemian Rhapsody",
    "artists": [{"name": "Queen"}],
    "album": {"name": "A Night at the Opera"},
    "duration_ms": 354320,
}


@pytest.fixture
async def http_client():
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def build_agent(http_client, scripted_model, memory_store, fast_config):
    def factory(credentials=None):
        return PlaylistAgentBuilder(
            agent_config=fast_config,
            llm_config=LlmConfig(model="test/model"),
            spotify=SpotifyClient(http_client),
            store=memory_store,
            identity=AgentIdentity(
                name="Playlist",
                description="Test playlist agent",
                slug="playlist",
                squad="tests",
            ),
            credentials=credentials,
            model=scripted_model,
        ).build()

    return factory


class TestPlaylistAgent:
    """Full turns against a mocked Spotify API."""

    @respx.mock
    async def test_rate_limited_search_is_retried(self, build_agent, scripted_model, credentials):
        """A search rate limited three times succeeds on the fourth attempt."""
        rate_limited = httpx.Response(429, headers={"Retry-After": "0"})
        search = respx.get(f"{API}/search").mock(
            side_effect=[
                rate_limited,
                rate_limited,
                rate_limited,
                httpx.Response(200, json={"tracks": {"items": [QUEEN]}}),
            ]
        )
        scripted_model.steps = [
            ToolRequest((ToolCall("call_1", "search_tracks", {"query": "Bohemian Rhapsody"}),)),
            FinalAnswer("Found Bohemian Rhapsody by Queen"),
        ]
        agent = build_agent()

        result = await agent.run_turn("t-queen", "Search for Bohemian Rhapsody", credentials=credentials)

        assert result.ok
        assert search.call_count == 4
        tool_message = scripted_model.calls[1][-1]
        assert tool_message.error_kind is None
        assert "Bohemian Rhapsody" in tool_message.content

    @respx.mock
    async def test_exhausted_retries_reach_the_model(self, build_agent, scripted_model, credentials):
        """Persistent 503s surface as a ToolExecutionError result after every attempt."""
        search = respx.get(f"{API}/search").mock(return_value=httpx.Response(503))
        scripted_model.steps = [
            ToolRequest((ToolCall("call_1", "search_tracks", {"query": "jazz"}),)),
            FinalAnswer("Spotify is unavailable right now"),
        ]
        agent = build_agent()

        result = await agent.run_turn("t-down", "Find jazz", credentials=credentials)

        assert result.ok
        assert search.call_count == 4
        message = scripted_model.calls[1][-1]
        assert message.error_kind == "ToolExecutionError"
        assert "503" in message.content

    @respx.mock
    async def test_playlist_creation_is_not_repeated_after_server_error(
        self, build_agent, scripted_model, credentials
    ):
        """A 500 from a non-idempotent create is reported without retrying."""
        create = respx.post(f"{API}/users/test-user/playlists").mock(
            return_value=httpx.Response(500)
        )
        scripted_model.steps = [
            ToolRequest((ToolCall("call_1", "create_playlist", {"name": "Road Trip"}),)),
            FinalAnswer("Could not create the playlist"),
        ]
        agent = build_agent()

        await agent.run_turn("t-create", "Make a road trip playlist", credentials=credentials)

        assert create.call_count == 1
        assert scripted_model.calls[1][-1].error_kind == "ToolExecutionError"

    @respx.mock
    async def test_playlist_creation_retried_when_never_sent(
        self, build_agent, scripted_model, credentials
    ):
        """A rate-limited create is safe to retry because Spotify did not apply it."""
        create = respx.post(f"{API}/users/test-user/playlists").mock(
            side_effect=[
                httpx.Response(429, headers={"Retry-After": "0"}),
                httpx.Response(201, json={"id": "pl1", "uri": "spotify:playlist:pl1", "name": "Road Trip"}),
            ]
        )
        scripted_model.steps = [
            ToolRequest((ToolCall("call_1", "create_playlist", {"name": "Road Trip"}),)),
            FinalAnswer("Created Road Trip"),
        ]
        agent = build_agent()

        result = await agent.run_turn("t-create-429", "Make a road trip playlist", credentials=credentials)

        assert result.ok
        assert create.call_count == 2

    @respx.mock
    async def test_full_playlist_flow(self, build_agent, scripted_model, credentials, memory_store):
        """Search, create and fill a playlist across three tool rounds."""
        respx.get(f"{API}/search").mock(
            return_value=httpx.Response(200, json={"tracks": {"items": [QUEEN]}})
        )
        respx.post(f"{API}/users/test-user/playlists").mock(
            return_value=httpx.Response(201, json={"id": "pl1", "uri": "spotify:playlist:pl1"})
        )
        add = respx.post(f"{API}/playlists/pl1/tracks").mock(
            return_value=httpx.Response(201, json={"snapshot_id": "snap1"})
        )
        scripted_model.steps = [
            ToolRequest((ToolCall("c1", "search_tracks", {"query": "queen"}),)),
            ToolRequest((ToolCall("c2", "create_playlist", {"name": "Queen Classics"}),)),
            ToolRequest(
                (
                    ToolCall(
                        "c3",
                        "add_tracks_to_playlist",
                        {"playlistId": "pl1", "trackUris": [QUEEN["uri"]]},
                    ),
                )
            ),
            FinalAnswer("Queen Classics is ready"),
        ]
        agent = build_agent()

        result = await agent.run_turn("t-flow", "Make a Queen playlist", credentials=credentials)

        assert result.text == "Queen Classics is ready"
        assert result.tool_rounds == 3
        assert QUEEN["uri"].encode() in add.calls.last.request.content
        thread = await memory_store.get("t-flow")
        assert [m.role for m in thread.messages].count(Role.TOOL) == 3
        assert all(m.error_kind is None for m in thread.messages if m.role == Role.TOOL)

    @respx.mock
    async def test_expired_user_token_ends_turn(self, build_agent, scripted_model):
        """A 401 for a caller token that cannot be renewed ends the turn with AuthError."""
        respx.get(f"{API}/search").mock(return_value=httpx.Response(401))
        scripted_model.steps = [
            ToolRequest((ToolCall("call_1", "search_tracks", {"query": "jazz"}),)),
        ]
        agent = build_agent()

        result = await agent.run_turn(
            "t-401", "Find jazz", credentials=StaticCredentialProvider("stale", user_id="u")
        )

        assert result.error.kind == "AuthError"
        assert len(scripted_model.calls) == 1

    @respx.mock
    async def test_service_credentials_are_the_default(self, build_agent, scripted_model, credentials):
        """Turns without caller credentials use the builder's default provider."""
        search = respx.get(f"{API}/search").mock(
            return_value=httpx.Response(200, json={"tracks": {"items": []}})
        )
        scripted_model.steps = [
            ToolRequest((ToolCall("call_1", "search_tracks", {"query": "jazz"}),)),
            FinalAnswer("Nothing found"),
        ]
        agent = build_agent(credentials=credentials)

        result = await agent.run_turn("t-service", "Find jazz")

        assert result.ok
        assert search.calls.last.request.headers["Authorization"] == "Bearer test-token"
