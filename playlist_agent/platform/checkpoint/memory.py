"""In-process checkpoint store.

Threads live in a dict for the lifetime of the process. Snapshots returned by
``get`` are immutable copies, so later appends never alter them.
"""

import asyncio
from collections import OrderedDict

from playlist_agent.platform.agent.errors import ConflictError, ThreadNotFoundError
from playlist_agent.platform.agent.messages import Message, Thread


class InMemoryCheckpointStore:
    """CheckpointStore backed by process memory (local runs and tests)."""

    backend = "memory"

    def __init__(self) -> None:
        # Ordered by last write, oldest first
        self._threads: OrderedDict[str, list[Message]] = OrderedDict()
        self._lock = asyncio.Lock()

    async def get(self, thread_id: str) -> Thread:
        async with self._lock:
            messages = self._threads.get(thread_id)
            if messages is None:
                raise ThreadNotFoundError(thread_id)
            return Thread(id=thread_id, messages=tuple(messages))

    async def append(
        self,
        thread_id: str,
        message: Message,
        expected_length: int | None = None,
    ) -> int:
        async with self._lock:
            messages = self._threads.setdefault(thread_id, [])
            if expected_length is not None and len(messages) != expected_length:
                if not messages:
                    del self._threads[thread_id]
                raise ConflictError(thread_id, expected_length, len(messages))
            messages.append(message)
            self._threads.move_to_end(thread_id)
            return len(messages)

    async def list_threads(self, limit: int = 50, offset: int = 0) -> list[str]:
        async with self._lock:
            newest_first = list(reversed(self._threads))
        return newest_first[offset : offset + limit]

    async def delete(self, thread_id: str) -> bool:
        async with self._lock:
            return self._threads.pop(thread_id, None) is not None
