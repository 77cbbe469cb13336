"""Checkpoint store dependencies for FastAPI routes."""

from fastapi import Request

from playlist_agent.platform.agent.protocol import CheckpointStore


def get_checkpoint_store(request: Request) -> CheckpointStore:
    """Get the checkpoint store the agents persist threads in."""
    return request.app.state.checkpoint_store
