"""Playlist agent builder module.

This module provides the builder class that wires the playlist agent: the
LiteLLM model invoker, the Spotify tools, the checkpoint store and the
default Spotify credentials, assembled into an AgentLoop.
"""

from typing import Self

import httpx

from playlist_agent.agents.playlist.prompt import build_system_prompt
from playlist_agent.agents.playlist.tools import build_playlist_tools
from playlist_agent.platform.agent.config import (
    AgentConfig,
    AgentIdentity,
    ExecutorConfig,
    LlmConfig,
)
from playlist_agent.platform.agent.llm_client import LlmClient
from playlist_agent.platform.agent.loop import AgentLoop
from playlist_agent.platform.agent.protocol import (
    CheckpointStore,
    CredentialProvider,
    ModelInvoker,
)
from playlist_agent.platform.agent.registry import ToolRegistry
from playlist_agent.platform.clients.spotify import RefreshingCredentialProvider, SpotifyClient
from playlist_agent.platform.constants import SQUAD_NAME
from playlist_agent.platform.settings import Settings


class PlaylistAgentBuilder:
    """Builder for the Spotify playlist agent.

    Every collaborator is injected, so several independently configured
    agents can live in one process and tests can swap in fakes.
    """

    SLUG = "playlist"

    def __init__(
        self,
        agent_config: AgentConfig,
        llm_config: LlmConfig,
        spotify: SpotifyClient,
        store: CheckpointStore,
        identity: AgentIdentity,
        credentials: CredentialProvider | None = None,
        model: ModelInvoker | None = None,
    ) -> None:
        """Initialize the builder with configuration.

        Args:
            agent_config: Turn budget, tool execution policy, credential requirement
            llm_config: Configuration for the LLM client
            spotify: Spotify Web API client used by the tools
            store: Checkpoint store for conversation persistence
            identity: Agent identity (name, description, slug, squad)
            credentials: Default Spotify credentials for turns that bring none
            model: Optional model invoker; defaults to an LlmClient. Inject for testing.
        """
        self.agent_config = agent_config
        self.llm_config = llm_config
        self.spotify = spotify
        self.store = store
        self.identity = identity
        self.credentials = credentials
        self.model = model

    def build(self) -> AgentLoop:
        """Build and return a configured AgentLoop."""
        model = self.model or LlmClient.from_config(
            self.llm_config,
            agent_slug=self.identity.slug,
            system_prompt=build_system_prompt(),
        )
        registry = ToolRegistry(build_playlist_tools(self.spotify))
        return AgentLoop(
            model=model,
            registry=registry,
            store=self.store,
            config=self.agent_config,
            agent_slug=self.identity.slug,
            credentials=self.credentials,
            identity=self.identity,
        )

    @classmethod
    def default_builder(
        cls,
        settings: Settings,
        store: CheckpointStore,
        http_client: httpx.AsyncClient,
        identity: AgentIdentity | None = None,
    ) -> Self:
        """Create a builder configured from application settings.

        A service-level refresh-token credential is installed as the default
        when client id, secret and refresh token are all configured.
        """
        default_identity = AgentIdentity(
            name="Playlist",
            description="Searches Spotify and builds playlists from natural-language requests",
            slug=cls.SLUG,
            squad=SQUAD_NAME,
        )

        spotify_settings = settings.spotify
        credentials = None
        if spotify_settings.has_service_credentials:
            credentials = RefreshingCredentialProvider(
                http_client=http_client,
                token_url=spotify_settings.token_url,
                client_id=spotify_settings.client_id,  # type: ignore[arg-type]
                client_secret=spotify_settings.client_secret,  # type: ignore[arg-type]
                refresh_token=spotify_settings.refresh_token,  # type: ignore[arg-type]
                user_id=spotify_settings.user_id,
                timeout_seconds=spotify_settings.timeout_seconds,
            )

        agent_settings = settings.agent
        return cls(
            agent_config=AgentConfig(
                max_tool_rounds=agent_settings.max_tool_rounds,
                executor=ExecutorConfig(
                    max_in_flight=agent_settings.max_in_flight_tools,
                    timeout=agent_settings.tool_timeout_seconds,
                    max_attempts=agent_settings.tool_max_attempts,
                    retry_initial_wait=agent_settings.retry_initial_wait,
                    retry_max_wait=agent_settings.retry_max_wait,
                ),
                turn_timeout=agent_settings.turn_timeout_seconds,
                require_credentials=agent_settings.require_credentials,
            ),
            llm_config=LlmConfig(
                model=settings.litellm.model,
                api_key=settings.litellm.api_key,
                base_url=settings.litellm.api_base,
                temperature=settings.litellm.temperature,
                timeout=settings.litellm.timeout_seconds,
            ),
            spotify=SpotifyClient(
                http_client,
                base_url=spotify_settings.api_base_url,
                timeout_seconds=spotify_settings.timeout_seconds,
            ),
            store=store,
            identity=identity or default_identity,
            credentials=credentials,
        )
