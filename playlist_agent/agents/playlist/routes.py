"""Playlist agent HTTP endpoints."""

import uuid

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from playlist_agent.agents.playlist.agent import PlaylistAgentBuilder
from playlist_agent.platform.agent.loop import AgentLoop
from playlist_agent.platform.agent.messages import TurnResult
from playlist_agent.platform.agent.protocol import CredentialProvider
from playlist_agent.platform.server.dependencies.agents import get_agent
from playlist_agent.platform.server.dependencies.credentials import get_spotify_credentials

playlist_router = APIRouter(
    prefix=f"/{PlaylistAgentBuilder.SLUG}",
    tags=["agents"],
)


class AgentPayload(BaseModel):
    """Request payload for agent invocation.

    Attributes:
        message: The user's request (1-10000 characters)
        thread_id: Conversation thread ID (auto-generated if not provided)
        turn_id: Idempotency key; resending a turn with the same key resumes it.
            Generated when not provided, so a repeated message is a new turn
    """

    message: str = Field(
        min_length=1,
        max_length=10000,
        description="The user's request for the agent",
    )
    thread_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        min_length=1,
        max_length=255,
    )
    turn_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        min_length=1,
        max_length=255,
    )


class TurnErrorResponse(BaseModel):
    kind: str
    detail: str


class TurnResponse(BaseModel):
    """Outcome of one turn; structured errors are returned with HTTP 200."""

    thread_id: str
    text: str | None = None
    error: TurnErrorResponse | None = None
    tool_rounds: int = 0
    replayed: bool = False

    @classmethod
    def from_result(cls, result: TurnResult) -> "TurnResponse":
        return cls(
            thread_id=result.thread_id,
            text=result.text,
            error=(
                TurnErrorResponse(kind=result.error.kind, detail=result.error.detail)
                if result.error
                else None
            ),
            tool_rounds=result.tool_rounds,
            replayed=result.replayed,
        )


@playlist_router.post("/invoke", response_model=TurnResponse)
async def invoke_handler(
    payload: AgentPayload,
    agent: AgentLoop = Depends(get_agent(PlaylistAgentBuilder)),
    credentials: CredentialProvider | None = Depends(get_spotify_credentials),
):
    """Run one turn of the playlist agent.

    Spotify credentials come from the ``Authorization: Bearer`` header (plus
    optional ``X-Spotify-User-Id``); without them the agent falls back to the
    service account, if one is configured.
    """
    result = await agent.run_turn(
        payload.thread_id,
        payload.message,
        credentials=credentials,
        turn_id=payload.turn_id,
    )
    return TurnResponse.from_result(result)
