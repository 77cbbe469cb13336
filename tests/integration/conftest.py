"""Integration test fixtures.

This module provides shared fixtures for integration tests including:
- A scripted model invoker standing in for the LLM
- A fake Spotify client behind the real playlist tools
- In-memory and SQLite-backed checkpoint stores
- Route/handler tests with a shallow app
"""

import asyncio
from collections.abc import AsyncIterator, Callable, Iterable, Sequence
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from playlist_agent.agents.playlist.agent import PlaylistAgentBuilder
from playlist_agent.agents.playlist.routes import playlist_router
from playlist_agent.agents.playlist.tools import build_playlist_tools
from playlist_agent.platform.agent.config import AgentConfig, ExecutorConfig
from playlist_agent.platform.agent.loop import AgentLoop
from playlist_agent.platform.agent.messages import (
    Message,
    ModelResponse,
    TurnResult,
)
from playlist_agent.platform.agent.registry import ToolContext, ToolDefinition, ToolRegistry
from playlist_agent.platform.checkpoint import InMemoryCheckpointStore, SqlCheckpointStore
from playlist_agent.platform.clients.spotify import SpotifyClient, StaticCredentialProvider
from playlist_agent.platform.database import DbEngine
from playlist_agent.platform.server.health import HealthCheck
from playlist_agent.platform.server.routes import root as root_router

JAZZ_TRACKS = [
    {
        "id": f"jazz{i}",
        "uri": f"spotify:track:jazz{i}",
        "name": name,
        "artists": [artist],
        "album": album,
        "duration_ms": 300000 + i,
    }
    for i, (name, artist, album) in enumerate(
        [
            ("So What", "Miles Davis", "Kind of Blue"),
            ("Take Five", "The Dave Brubeck Quartet", "Time Out"),
            ("Naima", "John Coltrane", "Giant Steps"),
            ("Round Midnight", "Thelonious Monk", "Genius of Modern Music"),
            ("Cantaloupe Island", "Herbie Hancock", "Empyrean Isles"),
        ]
    )
]


# =============================================================================
# Model Fakes
# =============================================================================


type ScriptStep = ModelResponse | Exception | Callable[[Sequence[Message]], Any]


class ScriptedModel:
    """Model invoker that replays canned responses in order.

    A step may be a response, an exception to raise, or a callable receiving
    the messages (sync or async) that returns the response. Every invocation
    records a copy of the messages the model was shown.
    """

    def __init__(self, steps: Iterable[ScriptStep] = ()):
        self.steps = list(steps)
        self.calls: list[list[Message]] = []
        self.tools: list[Sequence[dict[str, Any]]] = []

    async def invoke(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
    ) -> ModelResponse:
        self.calls.append(list(messages))
        self.tools.append(tools)
        if not self.steps:
            raise AssertionError("ScriptedModel ran out of responses")
        step = self.steps.pop(0)
        if isinstance(step, Exception):
            raise step
        if callable(step):
            result = step(messages)
            if asyncio.iscoroutine(result):
                result = await result
            return result
        return step


@pytest.fixture
def scripted_model() -> ScriptedModel:
    return ScriptedModel()


@pytest.fixture
def model_factory() -> type[ScriptedModel]:
    """Build additional scripted models inside a test."""
    return ScriptedModel


@pytest.fixture
def jazz_tracks() -> list[dict[str, Any]]:
    return [dict(track) for track in JAZZ_TRACKS]


# =============================================================================
# Tool Fakes
# =============================================================================


@pytest.fixture
def fake_spotify() -> Mock:
    """Create a fake Spotify client with canned results for each endpoint."""
    spotify = Mock(spec=SpotifyClient)
    spotify.search_tracks = AsyncMock(return_value=JAZZ_TRACKS)
    spotify.create_playlist = AsyncMock(
        return_value={
            "id": "pl1",
            "uri": "spotify:playlist:pl1",
            "name": "Morning Workout",
            "url": "https://open.spotify.com/playlist/pl1",
        }
    )
    spotify.add_tracks = AsyncMock(
        side_effect=lambda credentials, playlist_id, uris: {
            "playlist_id": playlist_id,
            "snapshot_id": "snap1",
            "added": len(uris),
        }
    )
    return spotify


@pytest.fixture
def playlist_registry(fake_spotify: Mock) -> ToolRegistry:
    return ToolRegistry(build_playlist_tools(fake_spotify))


class EchoArgs(BaseModel):
    value: str
    delay: float = 0.0


async def _echo(args: EchoArgs, context: ToolContext) -> dict[str, Any]:
    await asyncio.sleep(args.delay)
    return {"value": args.value}


@pytest.fixture
def echo_tool() -> ToolDefinition:
    """A tool that sleeps for ``delay`` seconds and returns ``value``."""
    return ToolDefinition(
        name="echo",
        description="Echo a value after a delay",
        input_model=EchoArgs,
        handler=_echo,
        idempotent=True,
    )


# =============================================================================
# Agent Fixtures
# =============================================================================


@pytest.fixture
def fast_config() -> AgentConfig:
    """Agent config with no retry backoff so retried calls finish instantly."""
    return AgentConfig(
        max_tool_rounds=5,
        executor=ExecutorConfig(
            max_in_flight=4,
            timeout=5.0,
            max_attempts=4,
            retry_initial_wait=0.0,
            retry_max_wait=0.0,
        ),
    )


@pytest.fixture
def credentials() -> StaticCredentialProvider:
    return StaticCredentialProvider("test-token", user_id="test-user")


@pytest.fixture
def memory_store() -> InMemoryCheckpointStore:
    return InMemoryCheckpointStore()


@pytest.fixture
def make_loop(
    scripted_model: ScriptedModel,
    playlist_registry: ToolRegistry,
    memory_store: InMemoryCheckpointStore,
    fast_config: AgentConfig,
) -> Callable[..., AgentLoop]:
    """Factory for AgentLoops sharing the default fakes; override any part by keyword."""

    def factory(**overrides: Any) -> AgentLoop:
        kwargs: dict[str, Any] = {
            "model": scripted_model,
            "registry": playlist_registry,
            "store": memory_store,
            "config": fast_config,
            "agent_slug": "test-agent",
        }
        kwargs.update(overrides)
        return AgentLoop(**kwargs)

    return factory


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'checkpoints.db'}"


@pytest.fixture
async def sqlite_engine(sqlite_url: str) -> AsyncIterator[DbEngine]:
    db = DbEngine(instance_name="test-db", app_name="tests")
    await db.connect(sqlite_url)
    yield db
    await db.disconnect()


@pytest.fixture
async def sql_store(sqlite_engine: DbEngine) -> SqlCheckpointStore:
    store = SqlCheckpointStore(sqlite_engine)
    await store.setup()
    return store


# =============================================================================
# FastAPI App Fixtures (Shallow - no middleware, minimal lifespan)
# =============================================================================


@pytest.fixture
def stub_agent() -> Mock:
    """Create a stub agent loop that returns a canned successful turn."""
    agent = Mock(spec=AgentLoop)
    agent.run_turn = AsyncMock(
        side_effect=lambda thread_id, message, **kwargs: TurnResult(
            thread_id=thread_id,
            text="Here are five jazz tracks.",
            tool_rounds=1,
        )
    )
    agent.describe.return_value = {
        "slug": "playlist",
        "name": "Playlist",
        "description": "Builds playlists",
        "squad": "tests",
        "tools": ["search_tracks", "create_playlist", "add_tracks_to_playlist"],
    }
    return agent


@pytest.fixture
def test_app(stub_agent: Mock, memory_store: InMemoryCheckpointStore) -> FastAPI:
    """Create a minimal test FastAPI app for integration tests.

    This is intentionally SHALLOW - no middleware, no full lifespan.
    Tests route handlers and their interaction with dependencies.
    """
    app = FastAPI()

    # Register stubs directly in app.state
    app.state.agents = {PlaylistAgentBuilder: stub_agent}
    app.state.checkpoint_store = memory_store

    app.include_router(root_router)
    app.include_router(playlist_router)

    return app


@pytest.fixture
def client(test_app: FastAPI) -> TestClient:
    """Create a test client for the test app.

    No context manager needed since we're not using lifespan.
    """
    return TestClient(test_app)


@pytest.fixture
def client_with_health_enabled(test_app: FastAPI):
    """Create a test client with health checks enabled."""
    HealthCheck.enable()
    yield TestClient(test_app)
    HealthCheck.disable()


@pytest.fixture
def client_with_health_disabled(test_app: FastAPI):
    """Create a test client with health checks disabled."""
    HealthCheck.disable()
    yield TestClient(test_app)
