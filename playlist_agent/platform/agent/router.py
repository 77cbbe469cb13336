"""Router state machine for one agent turn.

    agent --ToolRequest--> tools --all results appended--> agent
    agent --FinalAnswer--> end

A ToolRequest arriving once ``max_tool_rounds`` rounds have completed forces
``end`` and raises TurnBudgetExceeded instead of entering ``tools`` again.
"""

from collections.abc import Iterable, Sequence
from enum import StrEnum

from playlist_agent.platform.agent.errors import TurnBudgetExceeded
from playlist_agent.platform.agent.messages import (
    FinalAnswer,
    ModelResponse,
    ToolCall,
    ToolRequest,
    ToolResult,
)


class RouterState(StrEnum):
    AGENT = "agent"
    TOOLS = "tools"
    END = "end"


class Router:
    """Decides, after each model response or tool step, where a turn goes next."""

    def __init__(
        self,
        max_tool_rounds: int,
        tool_rounds: int = 0,
        state: RouterState = RouterState.AGENT,
    ):
        """Initialize the router.

        Args:
            max_tool_rounds: Agent/Tools round trips allowed in the turn
            tool_rounds: Rounds already completed (when resuming a turn)
            state: State to start in (``tools`` when resuming with pending calls)
        """
        if max_tool_rounds < 1:
            raise ValueError("max_tool_rounds must be at least 1")
        self.max_tool_rounds = max_tool_rounds
        self.tool_rounds = tool_rounds
        self.state = state
        self.history: list[RouterState] = [state]
        self._pending: tuple[ToolCall, ...] = ()

    @property
    def done(self) -> bool:
        return self.state == RouterState.END

    @property
    def pending(self) -> tuple[ToolCall, ...]:
        """Calls the current ``tools`` step still has to answer."""
        return self._pending

    def on_model_response(self, response: ModelResponse) -> RouterState:
        """Transition out of ``agent``.

        Raises:
            TurnBudgetExceeded: If the model asks for tools with no rounds left
                (the router is left in ``end``)
        """
        self._require(RouterState.AGENT)
        if isinstance(response, FinalAnswer):
            return self._move(RouterState.END)
        if not isinstance(response, ToolRequest) or not response.calls:
            raise ValueError(f"Unexpected model response: {response!r}")
        if self.tool_rounds >= self.max_tool_rounds:
            self._move(RouterState.END)
            raise TurnBudgetExceeded(self.max_tool_rounds)
        self._pending = tuple(response.calls)
        return self._move(RouterState.TOOLS)

    def resume_tools(self, calls: Sequence[ToolCall]) -> None:
        """Declare the calls outstanding when a turn resumes in ``tools``."""
        self._require(RouterState.TOOLS)
        self._pending = tuple(calls)

    def on_tool_results(self, results: Iterable[ToolResult]) -> RouterState:
        """Transition ``tools -> agent`` once every pending call has a result.

        Raises:
            RuntimeError: If a call is missing its result or has more than one
        """
        self._require(RouterState.TOOLS)
        counts: dict[str, int] = {}
        for result in results:
            counts[result.call_id] = counts.get(result.call_id, 0) + 1
        for call in self._pending:
            if counts.get(call.id, 0) != 1:
                raise RuntimeError(
                    f"Tool call {call.id!r} has {counts.get(call.id, 0)} results, expected exactly 1"
                )
        self._pending = ()
        self.tool_rounds += 1
        return self._move(RouterState.AGENT)

    def force_end(self) -> RouterState:
        """Terminate the turn from any state (fatal error or cancellation)."""
        if self.state != RouterState.END:
            self._move(RouterState.END)
        return self.state

    def _require(self, expected: RouterState) -> None:
        if self.state != expected:
            raise RuntimeError(f"Invalid transition from '{self.state}', expected '{expected}'")

    def _move(self, state: RouterState) -> RouterState:
        self.state = state
        self.history.append(state)
        return state
