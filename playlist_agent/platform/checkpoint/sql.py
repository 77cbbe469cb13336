"""SQL checkpoint store.

Each message is one ``thread_messages`` row keyed by ``(thread_id, seq)``.
Appends are optimistic: the caller passes the length it last observed and a
stale length (or losing the race for a ``seq``) raises ConflictError.
"""

import logging
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from playlist_agent.platform.agent.errors import ConflictError, ThreadNotFoundError
from playlist_agent.platform.agent.messages import Message, Thread, message_adapter
from playlist_agent.platform.database import DbEngine, db_metadata, thread_messages

logger = logging.getLogger(__name__)


class SqlCheckpointStore:
    """CheckpointStore persisted through SQLAlchemy async."""

    backend = "sql"

    def __init__(self, db_engine: DbEngine) -> None:
        self.db_engine = db_engine

    async def setup(self) -> None:
        """Create the checkpoint table if it does not exist yet."""
        engine = self.db_engine.get_engine()
        async with engine.begin() as conn:
            await conn.run_sync(db_metadata.create_all, tables=[thread_messages])

    async def get(self, thread_id: str) -> Thread:
        query = (
            sa.select(thread_messages.c.payload)
            .where(thread_messages.c.thread_id == thread_id)
            .order_by(thread_messages.c.seq)
        )
        async with self.db_engine.transaction() as conn:
            rows = (await conn.execute(query)).all()

        if not rows:
            raise ThreadNotFoundError(thread_id)
        return Thread(
            id=thread_id,
            messages=tuple(message_adapter.validate_python(row.payload) for row in rows),
        )

    async def append(
        self,
        thread_id: str,
        message: Message,
        expected_length: int | None = None,
    ) -> int:
        count_query = sa.select(sa.func.count()).where(thread_messages.c.thread_id == thread_id)
        async with self.db_engine.transaction() as conn:
            length = (await conn.execute(count_query)).scalar_one()
            if expected_length is not None and length != expected_length:
                raise ConflictError(thread_id, expected_length, length)
            try:
                await conn.execute(
                    sa.insert(thread_messages).values(
                        thread_id=thread_id,
                        seq=length,
                        role=str(message.role),
                        payload=message_adapter.dump_python(message, mode="json"),
                        created_at=datetime.now(UTC),
                    )
                )
            except IntegrityError as e:
                logger.warning("Lost append race on thread %s at seq %d", thread_id, length)
                raise ConflictError(thread_id, expected_length, length + 1) from e
        return length + 1

    async def list_threads(self, limit: int = 50, offset: int = 0) -> list[str]:
        last_write = sa.func.max(thread_messages.c.created_at)
        query = (
            sa.select(thread_messages.c.thread_id)
            .group_by(thread_messages.c.thread_id)
            .order_by(last_write.desc(), thread_messages.c.thread_id)
            .limit(limit)
            .offset(offset)
        )
        async with self.db_engine.transaction() as conn:
            rows = (await conn.execute(query)).all()
        return [row.thread_id for row in rows]

    async def delete(self, thread_id: str) -> bool:
        query = sa.delete(thread_messages).where(thread_messages.c.thread_id == thread_id)
        async with self.db_engine.transaction() as conn:
            result = await conn.execute(query)
        return result.rowcount > 0
