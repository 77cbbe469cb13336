"""Checkpoint persistence setup and teardown.

This module provides functions for initializing and closing the checkpoint
store during FastAPI application lifecycle.
"""

import logging

from fastapi import FastAPI

from playlist_agent.platform.checkpoint.memory import InMemoryCheckpointStore
from playlist_agent.platform.checkpoint.sql import SqlCheckpointStore
from playlist_agent.platform.constants import SERVICE_NAME
from playlist_agent.platform.database import DbEngine

logger = logging.getLogger(__name__)


async def setup_checkpoint_store(app: FastAPI) -> None:
    settings = app.state.settings.checkpoint
    app.state.db_engine = None

    if settings.backend == "memory":
        logger.info("Using in-memory checkpoint store; threads are lost on restart")
        app.state.checkpoint_store = InMemoryCheckpointStore()
        return

    if not settings.url:
        raise RuntimeError("CHECKPOINT__URL is required when CHECKPOINT__BACKEND=sql")

    logger.info("Setting up database...")
    db_engine = DbEngine(
        instance_name="Checkpoints",
        app_name=SERVICE_NAME,
        pool_size=settings.pool_size,
    )
    await db_engine.connect(settings.url, echo=settings.echo)
    app.state.db_engine = db_engine

    store = SqlCheckpointStore(db_engine)
    logger.info("Setting up checkpoint tables...")
    await store.setup()
    app.state.checkpoint_store = store

    logger.info("Database setup complete")


async def close_checkpoint_store(app: FastAPI) -> None:
    db_engine = getattr(app.state, "db_engine", None)
    if db_engine is None:
        return

    logger.info("Closing database...")
    await db_engine.disconnect()
    app.state.db_engine = None
    logger.info("Database closed")
