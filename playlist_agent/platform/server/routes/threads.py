"""Conversation thread endpoints.

List, inspect and delete persisted threads, for debugging and reviewing
agent interactions.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel

from playlist_agent.platform.agent.errors import ThreadNotFoundError
from playlist_agent.platform.agent.messages import message_adapter
from playlist_agent.platform.agent.protocol import CheckpointStore
from playlist_agent.platform.server.dependencies.checkpoint import get_checkpoint_store

threads_router = APIRouter(prefix="/threads", tags=["threads"])

MAX_PAGE_SIZE = 100


class ThreadListResponse(BaseModel):
    """Page of thread ids, most recently written first."""

    items: list[str]
    limit: int
    offset: int


class ThreadDetailResponse(BaseModel):
    """Full message history of one thread."""

    thread_id: str
    turn_count: int
    messages: list[dict[str, Any]]


@threads_router.get("", response_model=ThreadListResponse)
async def list_threads(
    store: CheckpointStore = Depends(get_checkpoint_store),
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    items = await store.list_threads(limit=limit, offset=offset)
    return ThreadListResponse(items=items, limit=limit, offset=offset)


@threads_router.get("/{thread_id}", response_model=ThreadDetailResponse)
async def get_thread(
    thread_id: str,
    store: CheckpointStore = Depends(get_checkpoint_store),
):
    """Return a thread's history.

    Raises:
        HTTPException: 404 if the thread does not exist
    """
    try:
        thread = await store.get(thread_id)
    except ThreadNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.detail) from e

    return ThreadDetailResponse(
        thread_id=thread.id,
        turn_count=thread.turn_count,
        messages=[message_adapter.dump_python(m, mode="json") for m in thread.messages],
    )


@threads_router.delete("/{thread_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_thread(
    thread_id: str,
    store: CheckpointStore = Depends(get_checkpoint_store),
):
    if not await store.delete(thread_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Thread not found: {thread_id!r}",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
