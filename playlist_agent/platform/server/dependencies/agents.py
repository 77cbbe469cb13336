"""Agent dependencies for FastAPI routes."""

from collections.abc import Callable

from fastapi import Request

from playlist_agent.platform.agent.loop import AgentLoop


def get_agent(builder_cls: type) -> Callable[[Request], AgentLoop]:
    """Create a dependency that retrieves a built agent by its builder class.

    Args:
        builder_cls: The agent builder class (e.g., PlaylistAgentBuilder)

    Returns:
        A FastAPI dependency function that returns the agent loop

    Raises:
        KeyError: If the agent is not found in the registry

    Example:
        from playlist_agent.agents.playlist.agent import PlaylistAgentBuilder

        @router.post("/invoke")
        async def invoke(
            payload: Payload,
            agent: AgentLoop = Depends(get_agent(PlaylistAgentBuilder)),
        ):
            return await agent.run_turn(payload.thread_id, payload.message)
    """

    def _get_agent(request: Request) -> AgentLoop:
        agents = request.app.state.agents
        if builder_cls not in agents:
            raise KeyError(
                f"Agent for {builder_cls.__name__} not found. "
                f"Available: {[cls.__name__ for cls in agents.keys()]}"
            )
        return agents[builder_cls]

    return _get_agent
