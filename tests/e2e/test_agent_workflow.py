"""E2E tests for the playlist agent workflow with a real database.

Tests the complete agent workflow with:
- Real PostgreSQL checkpoints (via testcontainers)
- Fake LLM responses through the real LlmClient (predictable, no API costs)
- Spotify mocked at the HTTP layer

Run with: pytest tests/e2e/ -m e2e
Skip with: pytest -m "not e2e"
"""

from typing import Any

import httpx
import pytest
import respx
from langchain_core.callbacks import CallbackManagerForLLMRun
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, SystemMessage
from langchain_core.outputs import ChatGeneration, ChatResult

from playlist_agent.agents.playlist.agent import PlaylistAgentBuilder
from playlist_agent.platform.agent.config import AgentConfig, AgentIdentity, ExecutorConfig, LlmConfig
from playlist_agent.platform.agent.messages import Role
from playlist_agent.platform.checkpoint import SqlCheckpointStore
from playlist_agent.platform.clients.spotify import SpotifyClient, StaticCredentialProvider
from playlist_agent.platform.database import DbEngine

API = "https://api.spotify.com/v1"

KIND_OF_BLUE = {
    "id": "1",
    "uri": "spotify:track:1",
    "name": "So What",
    "artists": [{"name": "Miles Davis"}],
    "album": {"name": "Kind of Blue"},
    "duration_ms": 562000,
}


class FakeChatModelForTests(BaseChatModel):
    """Fake chat model for E2E tests that replays scripted responses."""

    responses: list[AIMessage] = []
    seen: list[list[BaseMessage]] = []
    model: str = "fake-test-model"

    @property
    def _llm_type(self) -> str:
        return "fake-test-model"

    def _generate(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: CallbackManagerForLLMRun | None = None,
        **kwargs: Any,
    ) -> ChatResult:
        """Return the next scripted response."""
        self.seen.append(list(messages))
        ai_message = self.responses[len(self.seen) - 1]
        ai_message.usage_metadata = {"input_tokens": 100, "output_tokens": 50, "total_tokens": 150}
        return ChatResult(generations=[ChatGeneration(message=ai_message)])

    def bind_tools(self, tools: Any, **kwargs: Any) -> "FakeChatModelForTests":
        """Bind tools - returns self since the script decides tool use."""
        return self


def search_then_answer(query: str, answer: str) -> list[AIMessage]:
    return [
        AIMessage(
            content="",
            tool_calls=[{"id": "call_1", "name": "search_tracks", "args": {"query": query}}],
        ),
        AIMessage(content=answer),
    ]


@pytest.fixture
async def http_client():
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def fake_llm(monkeypatch) -> FakeChatModelForTests:
    """Create a fake LLM and install it in place of ChatLiteLLM."""
    llm = FakeChatModelForTests()
    monkeypatch.setattr(
        "playlist_agent.platform.agent.llm_client.ChatLiteLLM",
        lambda **kwargs: llm,
    )
    return llm


@pytest.fixture
def build_agent(http_client, pg_store):
    def factory(store: SqlCheckpointStore = pg_store):
        return PlaylistAgentBuilder(
            agent_config=AgentConfig(
                max_tool_rounds=5,
                executor=ExecutorConfig(retry_initial_wait=0.0, retry_max_wait=0.0),
            ),
            llm_config=LlmConfig(model="test-model", api_key="test-key"),
            spotify=SpotifyClient(http_client),
            store=store,
            identity=AgentIdentity(
                name="Test Playlist",
                slug="test-playlist",
                description="Test agent for E2E tests",
                squad="test-squad",
            ),
            credentials=StaticCredentialProvider("test-token", user_id="test-user"),
        ).build()

    return factory


@pytest.mark.e2e
class TestAgentWorkflowWithRealDB:
    """E2E tests for the agent loop with PostgreSQL checkpoints."""

    @respx.mock
    async def test_turn_is_checkpointed(self, build_agent, fake_llm, pg_store):
        """A tool-using turn stores every message in the database."""
        respx.get(f"{API}/search").mock(
            return_value=httpx.Response(200, json={"tracks": {"items": [KIND_OF_BLUE]}})
        )
        fake_llm.responses = search_then_answer("modal jazz", "Try So What by Miles Davis.")

        result = await build_agent().run_turn("e2e-001", "Some modal jazz please")

        assert result.ok
        assert result.text == "Try So What by Miles Davis."
        assert result.tool_rounds == 1

        thread = await pg_store.get("e2e-001")
        assert [m.role for m in thread.messages] == [
            Role.USER,
            Role.ASSISTANT,
            Role.TOOL,
            Role.ASSISTANT,
        ]
        assert thread.messages[2].tool_call_id == "call_1"
        assert "So What" in thread.messages[2].content

    async def test_system_prompt_is_not_persisted(self, build_agent, fake_llm, pg_store):
        fake_llm.responses = [AIMessage(content="Hello!")]

        await build_agent().run_turn("e2e-002", "Hi")

        assert isinstance(fake_llm.seen[0][0], SystemMessage)
        thread = await pg_store.get("e2e-002")
        assert [m.role for m in thread.messages] == [Role.USER, Role.ASSISTANT]

    async def test_same_thread_continues_conversation(self, build_agent, fake_llm, pg_store):
        """The second turn sees the first turn's history."""
        fake_llm.responses = [AIMessage(content="First answer"), AIMessage(content="Second answer")]
        agent = build_agent()

        await agent.run_turn("e2e-003", "First question")
        await agent.run_turn("e2e-003", "Follow up question")

        second_request = [m.content for m in fake_llm.seen[1]]
        assert second_request[1:] == ["First question", "First answer", "Follow up question"]
        thread = await pg_store.get("e2e-003")
        assert thread.turn_count == 2
        assert len(thread) == 4

    async def test_history_survives_restart(self, build_agent, fake_llm, postgres_url):
        """A new engine and store read back the exact same thread."""
        fake_llm.responses = [AIMessage(content="Remembered")]
        await build_agent().run_turn("e2e-004", "Remember this")

        db = DbEngine(instance_name="restarted", app_name="test-suite")
        await db.connect(postgres_url)
        try:
            restarted = SqlCheckpointStore(db)
            thread = await restarted.get("e2e-004")
            assert [m.content for m in thread.messages] == ["Remember this", "Remembered"]

            fake_llm.responses.append(AIMessage(content="Still here"))
            result = await build_agent(store=restarted).run_turn("e2e-004", "Are you there?")
            assert result.text == "Still here"
        finally:
            await db.disconnect()

    async def test_finished_turn_is_replayed(self, build_agent, fake_llm):
        fake_llm.responses = [AIMessage(content="Only once")]
        agent = build_agent()

        first = await agent.run_turn("e2e-005", "Say it once", turn_id="turn-1")
        second = await agent.run_turn("e2e-005", "Say it once", turn_id="turn-1")

        assert first.text == second.text == "Only once"
        assert second.replayed
        assert len(fake_llm.seen) == 1

    async def test_different_threads_are_isolated(self, build_agent, fake_llm, pg_store):
        fake_llm.responses = [AIMessage(content="Answer A"), AIMessage(content="Answer B")]
        agent = build_agent()

        await agent.run_turn("e2e-006a", "Question for A")
        await agent.run_turn("e2e-006b", "Question for B")

        thread_a = await pg_store.get("e2e-006a")
        thread_b = await pg_store.get("e2e-006b")
        assert thread_a.messages[0].content == "Question for A"
        assert thread_b.messages[0].content == "Question for B"
        assert set(await pg_store.list_threads()) == {"e2e-006a", "e2e-006b"}
