"""Error taxonomy for the agent orchestration loop.

Every error carries a stable ``kind`` string which is what callers (and the
model, for in-band errors) see. Errors split into two families:

- recoverable in band: written back into history as a tool result so the
  model can correct itself (ToolValidationError, UnknownToolError, and
  ToolExecutionError once retries are exhausted)
- turn-fatal: stop the loop and surface to the caller (AuthError,
  ModelInvocationError, TurnBudgetExceeded, Cancelled, ConflictError)
"""


class AgentError(Exception):
    """Base exception for all agent errors."""

    kind: str = "AgentError"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class AuthError(AgentError):
    """Raised when no usable downstream credential is available."""

    kind = "AuthError"


class ToolValidationError(AgentError):
    """Raised when tool arguments do not match the tool's input schema."""

    kind = "ValidationError"

    def __init__(self, tool_name: str, detail: str):
        self.tool_name = tool_name
        super().__init__(detail)


class UnknownToolError(AgentError):
    """Raised when a tool name is not registered."""

    kind = "UnknownToolError"

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Unknown tool: {tool_name!r}")


class DuplicateToolError(AgentError):
    """Raised when a tool name is registered twice."""

    kind = "DuplicateToolError"

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool already registered: {tool_name!r}")


class ToolExecutionError(AgentError):
    """Raised when a tool handler fails.

    Attributes:
        status_code: Downstream HTTP status, if the failure came from a response
        transient: The failure may succeed if attempted again
        dispatched: The request may have reached the downstream service, so a
            retry could repeat a side effect
    """

    kind = "ToolExecutionError"

    def __init__(
        self,
        detail: str,
        status_code: int | None = None,
        transient: bool = False,
        dispatched: bool = True,
        retry_after: float | None = None,
    ):
        self.status_code = status_code
        self.transient = transient
        self.dispatched = dispatched
        self.retry_after = retry_after
        super().__init__(detail)


class ModelInvocationError(AgentError):
    """Raised when the language model is unreachable or answers malformed."""

    kind = "ModelInvocationError"


class TurnBudgetExceeded(AgentError):
    """Raised when a turn needs more tool rounds than allowed."""

    kind = "TurnBudgetExceeded"

    def __init__(self, max_tool_rounds: int):
        self.max_tool_rounds = max_tool_rounds
        super().__init__(f"Maximum tool rounds ({max_tool_rounds}) exceeded")


class Cancelled(AgentError):
    """Raised when a turn is aborted or runs past its deadline."""

    kind = "Cancelled"


class ConflictError(AgentError):
    """Raised when a thread was advanced concurrently by another writer."""

    kind = "ConflictError"

    def __init__(self, thread_id: str, expected_length: int | None, actual_length: int):
        self.thread_id = thread_id
        self.expected_length = expected_length
        self.actual_length = actual_length
        super().__init__(
            f"Thread {thread_id!r} has {actual_length} messages, expected {expected_length}"
        )


class ThreadNotFoundError(AgentError):
    """Raised when a thread has no checkpoint."""

    kind = "ThreadNotFound"

    def __init__(self, thread_id: str):
        self.thread_id = thread_id
        super().__init__(f"Thread not found: {thread_id!r}")
