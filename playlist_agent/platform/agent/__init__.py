"""Agent infrastructure module.

This module provides the core abstractions for running a tool-using agent:
- Message, tool call and result types
- Configuration dataclasses
- Tool registry and executor
- Router state machine and the orchestration loop
- LiteLLM-backed model invoker
- Agent-specific metrics
"""

from playlist_agent.platform.agent.config import (
    AgentConfig,
    AgentIdentity,
    ExecutorConfig,
    LlmConfig,
)
from playlist_agent.platform.agent.errors import (
    AgentError,
    AuthError,
    Cancelled,
    ConflictError,
    DuplicateToolError,
    ModelInvocationError,
    ThreadNotFoundError,
    ToolExecutionError,
    ToolValidationError,
    TurnBudgetExceeded,
    UnknownToolError,
)
from playlist_agent.platform.agent.executor import ToolExecutor
from playlist_agent.platform.agent.llm_client import LlmClient
from playlist_agent.platform.agent.loop import AgentLoop
from playlist_agent.platform.agent.messages import (
    FinalAnswer,
    Message,
    Role,
    Thread,
    ToolCall,
    ToolRequest,
    ToolResult,
    TurnError,
    TurnResult,
)
from playlist_agent.platform.agent.protocol import (
    CheckpointStore,
    CredentialProvider,
    ModelInvoker,
)
from playlist_agent.platform.agent.registry import ToolContext, ToolDefinition, ToolRegistry
from playlist_agent.platform.agent.router import Router, RouterState

__all__ = [
    # Protocols
    "CheckpointStore",
    "CredentialProvider",
    "ModelInvoker",
    # Configuration
    "AgentConfig",
    "AgentIdentity",
    "ExecutorConfig",
    "LlmConfig",
    # Orchestration
    "AgentLoop",
    "LlmClient",
    "Router",
    "RouterState",
    "ToolContext",
    "ToolDefinition",
    "ToolExecutor",
    "ToolRegistry",
    # Message types
    "FinalAnswer",
    "Message",
    "Role",
    "Thread",
    "ToolCall",
    "ToolRequest",
    "ToolResult",
    "TurnError",
    "TurnResult",
    # Errors
    "AgentError",
    "AuthError",
    "Cancelled",
    "ConflictError",
    "DuplicateToolError",
    "ModelInvocationError",
    "ThreadNotFoundError",
    "ToolExecutionError",
    "ToolValidationError",
    "TurnBudgetExceeded",
    "UnknownToolError",
]
