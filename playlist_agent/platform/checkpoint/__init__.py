"""Conversation checkpoint stores.

- InMemoryCheckpointStore: process-local, for local runs and tests
- SqlCheckpointStore: durable, one row per message
"""

from playlist_agent.platform.checkpoint.memory import InMemoryCheckpointStore
from playlist_agent.platform.checkpoint.setup import (
    close_checkpoint_store,
    setup_checkpoint_store,
)
from playlist_agent.platform.checkpoint.sql import SqlCheckpointStore

__all__ = [
    "InMemoryCheckpointStore",
    "SqlCheckpointStore",
    "close_checkpoint_store",
    "setup_checkpoint_store",
]
