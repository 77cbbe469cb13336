"""Message, tool and result types.

These types are the common vocabulary between the agent loop, the model
adapter, the tool executor and the checkpoint stores. All of them are
immutable; a thread only ever grows by appending new values.
"""

import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import TypeAdapter


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model.

    Attributes:
        id: Identifier unique within the turn
        name: Requested tool name
        arguments: Structured arguments; a raw string when the model produced
            arguments that were not valid JSON
    """

    id: str
    name: str
    arguments: Any = field(default_factory=dict)


@dataclass(frozen=True)
class Message:
    """One entry of a conversation thread.

    Attributes:
        role: Message role ("user", "assistant", "tool")
        content: Message text content
        tool_calls: Tool calls requested by an assistant message
        tool_call_id: ID of the tool call a tool message answers
        name: Tool name (for tool messages)
        error_kind: Error kind when a tool message carries a failure
        turn_id: Idempotency key of the turn a user message opened
    """

    role: Role
    content: str
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None
    name: str | None = None
    error_kind: str | None = None
    turn_id: str | None = None

    @classmethod
    def user(cls, content: str, turn_id: str | None = None) -> "Message":
        return cls(role=Role.USER, content=content, turn_id=turn_id)

    @classmethod
    def assistant(cls, content: str, tool_calls: tuple[ToolCall, ...] = ()) -> "Message":
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tuple(tool_calls))

    @property
    def is_final_answer(self) -> bool:
        return self.role == Role.ASSISTANT and not self.tool_calls


@dataclass(frozen=True)
class ToolResult:
    """Outcome of exactly one ToolCall.

    Either ``content`` is set (success) or ``error_kind`` and ``detail`` are.
    """

    call_id: str
    name: str
    content: Any = None
    error_kind: str | None = None
    detail: str | None = None

    @property
    def is_error(self) -> bool:
        return self.error_kind is not None

    @classmethod
    def failure(cls, call: ToolCall, error_kind: str, detail: str) -> "ToolResult":
        return cls(call_id=call.id, name=call.name, error_kind=error_kind, detail=detail)

    def to_message(self) -> Message:
        """Render the result as the tool message the model will read."""
        if self.is_error:
            payload = json.dumps({"error": self.error_kind, "detail": self.detail})
        elif isinstance(self.content, str):
            payload = self.content
        else:
            payload = json.dumps(self.content, default=str)
        return Message(
            role=Role.TOOL,
            content=payload,
            tool_call_id=self.call_id,
            name=self.name,
            error_kind=self.error_kind,
        )


@dataclass(frozen=True)
class Thread:
    """Snapshot of a persisted conversation (a checkpoint)."""

    id: str
    messages: tuple[Message, ...] = ()

    @property
    def turn_count(self) -> int:
        return sum(1 for m in self.messages if m.role == Role.USER)

    def __len__(self) -> int:
        return len(self.messages)

    def last_user_index(self) -> int | None:
        for i in range(len(self.messages) - 1, -1, -1):
            if self.messages[i].role == Role.USER:
                return i
        return None

    def pending_tool_calls(self) -> tuple[Message | None, tuple[ToolCall, ...]]:
        """Return the last assistant tool-call message and its calls that have
        no result yet. ``(None, ())`` when nothing is outstanding."""
        for i in range(len(self.messages) - 1, -1, -1):
            msg = self.messages[i]
            if msg.role == Role.TOOL:
                continue
            if msg.role != Role.ASSISTANT or not msg.tool_calls:
                return None, ()
            answered = {m.tool_call_id for m in self.messages[i + 1 :]}
            missing = tuple(tc for tc in msg.tool_calls if tc.id not in answered)
            return (msg, missing) if missing else (None, ())
        return None, ()


@dataclass(frozen=True)
class FinalAnswer:
    text: str


@dataclass(frozen=True)
class ToolRequest:
    calls: tuple[ToolCall, ...]
    text: str = ""


type ModelResponse = FinalAnswer | ToolRequest


@dataclass(frozen=True)
class TurnError:
    kind: str
    detail: str


@dataclass(frozen=True)
class TurnResult:
    """What a caller gets back from one turn.

    Attributes:
        thread_id: Conversation thread identifier
        text: Final answer, when the turn ended normally
        error: Structured failure, when it did not
        tool_rounds: Agent/Tools round trips performed in this turn
        replayed: True when the answer came from an existing checkpoint
    """

    thread_id: str
    text: str | None = None
    error: TurnError | None = None
    tool_rounds: int = 0
    replayed: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


message_adapter: TypeAdapter[Message] = TypeAdapter(Message)
