"""Collaborator protocols for the agent loop.

The loop is wired from these interfaces only, so the model, the credential
source and the persistence backend can each be swapped (and faked in tests)
independently.
"""

from collections.abc import Sequence
from typing import Any, Protocol

from playlist_agent.platform.agent.messages import Message, ModelResponse, Thread


class ModelInvoker(Protocol):
    """Asks the language model for the next step."""

    async def invoke(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
    ) -> ModelResponse:
        """Return either a final answer or one or more tool calls.

        Args:
            messages: Ordered thread history
            tools: Tool specs (name, description, JSON schema), never handlers

        Raises:
            ModelInvocationError: On network, timeout or malformed-response failures
        """
        ...


class CheckpointStore(Protocol):
    """Durable mapping from thread id to ordered message history."""

    async def get(self, thread_id: str) -> Thread:
        """Return the latest checkpoint of a thread.

        Raises:
            ThreadNotFoundError: If the thread has never been written
        """
        ...

    async def append(
        self,
        thread_id: str,
        message: Message,
        expected_length: int | None = None,
    ) -> int:
        """Append one message, creating the thread on first write.

        Args:
            thread_id: Thread identifier
            message: Message to append
            expected_length: Thread length the caller last observed; when given
                the append only succeeds if nothing was written since

        Returns:
            The thread length after the append

        Raises:
            ConflictError: If ``expected_length`` is stale
        """
        ...

    async def list_threads(self, limit: int = 50, offset: int = 0) -> list[str]:
        """Return thread ids, most recently written first."""
        ...

    async def delete(self, thread_id: str) -> bool:
        """Remove a thread; returns False when it did not exist."""
        ...


class CredentialProvider(Protocol):
    """Source of the downstream (Spotify) access token."""

    async def get_access_token(self) -> str:
        """Return a usable access token.

        Raises:
            AuthError: If no credential is available
        """
        ...

    async def get_user_id(self) -> str | None:
        """Return the platform user id the token belongs to, if known."""
        ...

    async def invalidate(self, token: str) -> bool:
        """Mark ``token`` as rejected.

        Returns:
            True if a fresh token can be obtained by calling get_access_token again
        """
        ...
