"""Tool definitions and the registry the executor dispatches through.

Tools are registered once while the agent is being built; the registry is
then frozen and only read, so concurrent lookups need no locking.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel

from playlist_agent.platform.agent.errors import DuplicateToolError, UnknownToolError
from playlist_agent.platform.agent.protocol import CredentialProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolContext:
    """Per-turn values handed to every tool handler.

    Attributes:
        thread_id: Conversation the call belongs to
        credentials: Downstream credential source, None when the caller has none
    """

    thread_id: str
    credentials: CredentialProvider | None = None


type ToolHandler = Callable[[Any, ToolContext], Awaitable[Any]]


@dataclass(frozen=True)
class ToolDefinition:
    """A named action the model may request.

    Attributes:
        name: Unique tool name
        description: What the tool does, shown to the model
        input_model: Pydantic model the arguments are validated against
        handler: Coroutine called with the validated model and a ToolContext
        idempotent: Safe to retry after a request may have reached the downstream service
        timeout: Per-attempt timeout in seconds, overriding the executor default
    """

    name: str
    description: str
    input_model: type[BaseModel]
    handler: ToolHandler
    idempotent: bool = False
    timeout: float | None = None

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.input_model.model_json_schema()

    def spec(self) -> dict[str, Any]:
        """OpenAI function-calling schema: everything but the handler."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }


class ToolRegistry:
    """Holds the tool definitions available to one agent."""

    def __init__(self, definitions: Iterable[ToolDefinition] = ()):
        self._tools: dict[str, ToolDefinition] = {}
        self._frozen = False
        for definition in definitions:
            self.register(definition)

    def register(self, definition: ToolDefinition) -> None:
        """Register a tool.

        Raises:
            DuplicateToolError: If the name is already registered
            RuntimeError: If the registry has been frozen
        """
        if self._frozen:
            raise RuntimeError("Tool registry is frozen; register tools before building the agent")
        if definition.name in self._tools:
            raise DuplicateToolError(definition.name)
        self._tools[definition.name] = definition
        logger.debug("Registered tool: %s", definition.name)

    def freeze(self) -> "ToolRegistry":
        if not self._frozen:
            self._tools = MappingProxyType(self._tools)  # type: ignore[assignment]
            self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def lookup(self, name: str) -> ToolDefinition:
        """Return the definition registered under ``name``.

        Raises:
            UnknownToolError: If no such tool exists
        """
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def names(self) -> list[str]:
        return list(self._tools)

    def specs(self) -> list[dict[str, Any]]:
        return [definition.spec() for definition in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
